from flask import request

UNKNOWN = "unknown"


def client_ip() -> str:
    # First hop of X-Forwarded-For is the original client
    forwarded = request.headers.get("X-Forwarded-For", "")
    first = forwarded.split(",")[0].strip()
    return first or request.remote_addr or UNKNOWN


def client_user_agent() -> str:
    return request.headers.get("User-Agent") or UNKNOWN
