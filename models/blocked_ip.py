from datetime import datetime
from models.db import db


class BlockedIp(db.Model):
    __tablename__ = "blocked_ips"

    id = db.Column(db.Integer, primary_key=True)
    ip_address = db.Column(db.String(64), nullable=False, unique=True, index=True)
    reason = db.Column(db.String(255), nullable=False)
    blocked_by = db.Column(db.String(64), nullable=True)  # null for automatic blocks

    blocked_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    expires_at = db.Column(db.DateTime, nullable=True)  # null = permanent
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now

    def is_blocking(self, now: datetime) -> bool:
        """
        A record blocks only while active and not yet expired.
        Expiry is evaluated here at read time, there is no sweeper.
        """
        return bool(self.is_active) and not self.is_expired(now)

    def to_dict(self, now: datetime) -> dict:
        return {
            "id": self.id,
            "ip_address": self.ip_address,
            "reason": self.reason,
            "blocked_by": self.blocked_by,
            "blocked_at": self.blocked_at.isoformat() if self.blocked_at else None,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "is_active": self.is_active,
            "is_expired": self.is_expired(now),
            "is_blocking": self.is_blocking(now),
        }
