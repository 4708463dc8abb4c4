from .db import db
from .security_event import SecurityEvent
from .blocked_ip import BlockedIp
