import secrets
from functools import wraps
from flask import current_app, g, jsonify, request

OPERATOR_HEADER = "X-Operator-Id"


def _bearer_token():
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def require_admin(fn):
    """
    Usage: @require_admin
    Checks the bearer token against ADMIN_API_TOKEN and exposes the
    operator id (X-Operator-Id header) as g.operator_id.
    """
    @wraps(fn)
    def wrapper(*args, **kwargs):
        token = _bearer_token()
        if token is None:
            return jsonify(error="Authentication required"), 401

        expected = current_app.config.get("ADMIN_API_TOKEN")
        if not expected or not secrets.compare_digest(token.encode(), expected.encode()):
            return jsonify(error="Forbidden"), 403

        g.operator_id = (request.headers.get(OPERATOR_HEADER) or "").strip()[:64] or None
        return fn(*args, **kwargs)
    return wrapper
