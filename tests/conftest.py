"""
Shared pytest fixtures.

- Unit tests drive SecurityStore / BlockGate directly on an in-memory SQLite DB.
- Route tests use the Flask test client on the same app.
Time is controlled through FakeClock so windows and expiry are deterministic.
"""
from datetime import datetime, timedelta

import pytest

from app import create_app
from config import Config
from models import db as _db
from security.gate import BlockGate
from security.store import SecurityStore

ADMIN_TOKEN = "test-admin-token"
START = datetime(2026, 1, 1, 12, 0, 0)


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    ADMIN_API_TOKEN = ADMIN_TOKEN
    LOG_LEVEL = "DEBUG"
    SECURITY_STREAM_KEEPALIVE_SECONDS = 1


class FakeClock:
    def __init__(self, start=START):
        self.current = start

    def __call__(self):
        return self.current

    def advance(self, **kwargs):
        self.current += timedelta(**kwargs)
        return self.current


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def app(clock):
    app = create_app(TestingConfig)
    app.config["SECURITY_CLOCK"] = clock
    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def store(db, clock):
    return SecurityStore(db.session, clock=clock)


@pytest.fixture
def gate(store):
    return BlockGate(store)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {ADMIN_TOKEN}", "X-Operator-Id": "op-42"}


def fail_logins(gate, ip, count, clock=None, step_minutes=0, **kwargs):
    """Send `count` login_failure events from ip, optionally spacing them."""
    results = []
    for i in range(count):
        if clock is not None and i and step_minutes:
            clock.advance(minutes=step_minutes)
        results.append(gate.guard("login_failure", ip, "pytest-agent", **kwargs))
    return results
