from flask import Blueprint, jsonify, request

from security.errors import ValidationError
from security.event_types import MAX_EVENT_TYPE_LENGTH
from utils.request_meta import client_ip, client_user_agent
from utils.security_context import get_gate

security_bp = Blueprint("security", __name__, url_prefix="/security")


def _optional_str(value):
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


@security_bp.post("/events")
def log_security_event():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify(error="JSON body required"), 400

    event_type = _optional_str(data.get("event_type"))
    if not event_type:
        return jsonify(error="event_type is required"), 400
    if len(event_type) > MAX_EVENT_TYPE_LENGTH:
        return jsonify(error="event_type is too long"), 400

    details = data.get("details")
    if details is not None and not isinstance(details, dict):
        return jsonify(error="details must be an object"), 400

    user_id = data.get("user_id")
    # Any created_at in the body is ignored, the store stamps the event
    try:
        result = get_gate().guard(
            event_type,
            _optional_str(data.get("ip_address")) or client_ip(),
            _optional_str(data.get("user_agent")) or client_user_agent(),
            user_id=str(user_id) if user_id not in (None, "") else None,
            email=_optional_str(data.get("email")),
            details=details,
        )
    except ValidationError as exc:
        return jsonify(error=str(exc)), 400

    if not result.allowed:
        return jsonify(error="Access denied", blocked=True), 403

    body = {"success": True, "event_id": result.event.id}
    if result.warning:
        body["warning"] = result.warning
        body["blocked_until"] = result.blocked_until.isoformat()
    return jsonify(body), 200
