from .health import health_bp
from .security_events import security_bp
from .admin import admin_bp
