from flask import current_app, g

from models import db
from security.gate import BlockGate
from security.store import SecurityStore, utcnow


def get_store() -> SecurityStore:
    """Per-request store bound to the app's SQLAlchemy session."""
    if "security_store" not in g:
        clock = current_app.config.get("SECURITY_CLOCK") or utcnow
        g.security_store = SecurityStore(db.session, clock=clock)
    return g.security_store


def get_gate() -> BlockGate:
    if "block_gate" not in g:
        g.block_gate = BlockGate.from_config(get_store(), current_app.config)
    return g.block_gate
