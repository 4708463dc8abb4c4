"""POST /security/events, the inbound call from the authentication flow."""
from security.errors import PersistenceError
from security.gate import AUTO_BLOCK_WARNING
from security.store import SecurityStore

URL = "/security/events"


def _post(client, payload, ip="203.0.113.5", **headers):
    headers.setdefault("X-Forwarded-For", ip)
    return client.post(URL, json=payload, headers=headers)


def test_records_event_with_forwarded_address(client, store, clock):
    resp = client.post(
        URL,
        json={"event_type": "login_attempt", "email": "doc@clinic.example"},
        headers={"X-Forwarded-For": "203.0.113.5, 10.0.0.1", "User-Agent": "Firefox"},
    )

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["success"] is True
    assert "warning" not in body

    row = store.list_events()[0]
    assert row.id == body["event_id"]
    assert row.ip_address == "203.0.113.5"
    assert row.user_agent == "Firefox"
    assert row.email == "doc@clinic.example"
    assert row.created_at == clock()


def test_body_address_and_agent_take_precedence(client, store):
    resp = _post(client, {
        "event_type": "logout",
        "ip_address": "198.51.100.8",
        "user_agent": "mobile-app/2.1",
        "user_id": "u-3",
    })
    assert resp.status_code == 200
    row = store.list_events()[0]
    assert row.ip_address == "198.51.100.8"
    assert row.user_agent == "mobile-app/2.1"
    assert row.user_id == "u-3"


def test_falls_back_to_remote_addr(client, store):
    resp = client.post(URL, json={"event_type": "login_attempt"})
    assert resp.status_code == 200
    # werkzeug's test client connects from 127.0.0.1
    assert store.list_events()[0].ip_address == "127.0.0.1"


def test_caller_timestamp_is_ignored(client, store, clock):
    _post(client, {"event_type": "login_attempt", "created_at": "2001-01-01T00:00:00"})
    assert store.list_events()[0].created_at == clock()


def test_fifth_failure_warns_then_denies(client):
    for _ in range(4):
        resp = _post(client, {"event_type": "login_failure", "email": "x@y.org"})
        assert resp.status_code == 200
        assert "warning" not in resp.get_json()

    resp = _post(client, {"event_type": "login_failure", "email": "x@y.org"})
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["success"] is True
    assert body["warning"] == AUTO_BLOCK_WARNING
    assert body["blocked_until"]

    resp = _post(client, {"event_type": "login_attempt"})
    assert resp.status_code == 403
    assert resp.get_json() == {"error": "Access denied", "blocked": True}


def test_denied_request_records_blocked_access(client, store, gate):
    gate.block_address("203.0.113.5", "scanner")
    resp = _post(client, {"event_type": "login_attempt", "details": {"path": "/login"}})

    assert resp.status_code == 403
    types = [r.event_type for r in store.list_events()]
    assert types == ["blocked_access"]
    assert store.list_events()[0].details == {"path": "/login", "block_reason": "scanner"}


def test_validation_errors(client, store):
    assert client.post(URL, data="nope", content_type="text/plain").status_code == 400
    assert _post(client, ["login_failure"]).status_code == 400
    assert _post(client, {}).status_code == 400
    assert _post(client, {"event_type": "   "}).status_code == 400
    assert _post(client, {"event_type": "x" * 65}).status_code == 400
    assert _post(client, {"event_type": "logout", "details": "text"}).status_code == 400
    assert store.list_events() == []


def test_overlong_address_is_rejected(client, store):
    resp = _post(client, {"event_type": "login_failure", "ip_address": "9" * 65})
    assert resp.status_code == 400
    assert resp.get_json() == {"error": "ip_address is too long"}

    resp = _post(client, {"event_type": "login_failure"}, ip="f" * 80)
    assert resp.status_code == 400
    assert store.list_events() == []


def test_empty_details_round_trip(client, store):
    assert _post(client, {"event_type": "logout", "details": {}}).status_code == 200
    assert store.list_events()[0].details == {}


def test_store_failure_is_internal_error(client, monkeypatch):
    def _boom(self, **kwargs):
        raise PersistenceError("insert security event failed")

    monkeypatch.setattr(SecurityStore, "insert_event", _boom)
    resp = _post(client, {"event_type": "login_attempt"})

    assert resp.status_code == 500
    assert resp.get_json() == {"error": "Internal server error"}


def test_security_headers(client):
    resp = _post(client, {"event_type": "login_attempt"})
    assert resp.headers["X-Content-Type-Options"] == "nosniff"
    assert resp.headers["X-Frame-Options"] == "DENY"


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.get_json() == {"status": "ok", "database": True}
