import json
from datetime import datetime
from models.db import db


class SecurityEvent(db.Model):
    __tablename__ = "security_events"

    id = db.Column(db.Integer, primary_key=True)
    event_type = db.Column(db.String(64), nullable=False, index=True)  # e.g. login_failure, auto_block

    ip_address = db.Column(db.String(64), nullable=False, index=True)
    user_agent = db.Column(db.String(255), nullable=True)

    # Identity is for correlation only, never required
    user_id = db.Column(db.String(64), nullable=True)
    email = db.Column(db.String(255), nullable=True)

    details_json = db.Column(db.Text, nullable=True)

    # Set by the store clock at insert time; sole basis for windowing
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

    __table_args__ = (
        db.Index("ix_security_events_type_ip_created", "event_type", "ip_address", "created_at"),
    )

    @property
    def details(self):
        if not self.details_json:
            return None
        return json.loads(self.details_json)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "event_type": self.event_type,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "user_id": self.user_id,
            "email": self.email,
            "details": self.details,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
