# Known security event types. The vocabulary is open: callers may record
# any other string, the gate only reacts to LOGIN_FAILURE.
LOGIN_ATTEMPT = "login_attempt"
LOGIN_SUCCESS = "login_success"
LOGIN_FAILURE = "login_failure"
LOGOUT = "logout"
BLOCKED_ACCESS = "blocked_access"
AUTO_BLOCK = "auto_block"
RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
SUSPICIOUS_ACTIVITY = "suspicious_activity"

MAX_EVENT_TYPE_LENGTH = 64
# Width of the ip_address columns
MAX_ADDRESS_LENGTH = 64
