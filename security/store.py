import json
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import func, or_
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from models.blocked_ip import BlockedIp
from models.security_event import SecurityEvent
from security.errors import PersistenceError


def utcnow() -> datetime:
    # Naive UTC, same as the DateTime columns
    return datetime.now(timezone.utc).replace(tzinfo=None)


# Dialects with a native INSERT ... ON CONFLICT DO UPDATE
_UPSERT_INSERTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


class SecurityStore:
    """
    Persistence for the security event log and the blocked address registry.

    Every write commits immediately. Any SQLAlchemy failure rolls the
    session back and is raised as PersistenceError. Timestamps come from
    the store clock only.
    """

    def __init__(self, session, clock=utcnow):
        self.session = session
        self._clock = clock

    def now(self) -> datetime:
        return self._clock()

    @contextmanager
    def _write(self, action: str):
        try:
            yield
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise PersistenceError(f"{action} failed") from exc

    @contextmanager
    def _read(self, action: str):
        try:
            yield
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise PersistenceError(f"{action} failed") from exc

    # ---------- security events (append-only) ----------

    def insert_event(self, event_type: str, ip_address: str, user_agent=None,
                     user_id=None, email=None, details=None) -> SecurityEvent:
        row = SecurityEvent(
            event_type=event_type,
            ip_address=ip_address,
            user_agent=user_agent[:255] if user_agent else None,
            user_id=str(user_id) if user_id is not None else None,
            email=email,
            details_json=json.dumps(details, default=str) if details is not None else None,
            created_at=self.now(),
        )
        with self._write("insert security event"):
            self.session.add(row)
        return row

    def count_events(self, event_type: str, ip_address: str, since: datetime) -> int:
        with self._read("count security events"):
            return (
                self.session.query(func.count(SecurityEvent.id))
                .filter(
                    SecurityEvent.event_type == event_type,
                    SecurityEvent.ip_address == ip_address,
                    SecurityEvent.created_at >= since,
                )
                .scalar()
            ) or 0

    def list_events(self, event_type=None, limit: int = 100, search=None) -> list:
        with self._read("list security events"):
            q = self.session.query(SecurityEvent)
            if event_type:
                q = q.filter(SecurityEvent.event_type == event_type)
            if search:
                pattern = f"%{search}%"
                q = q.filter(or_(
                    SecurityEvent.ip_address.ilike(pattern),
                    SecurityEvent.email.ilike(pattern),
                    SecurityEvent.event_type.ilike(pattern),
                ))
            return (
                q.order_by(SecurityEvent.created_at.desc(), SecurityEvent.id.desc())
                .limit(limit)
                .all()
            )

    def count_events_by_type(self, since: datetime) -> dict:
        with self._read("count security events by type"):
            rows = (
                self.session.query(SecurityEvent.event_type, func.count(SecurityEvent.id))
                .filter(SecurityEvent.created_at >= since)
                .group_by(SecurityEvent.event_type)
                .all()
            )
        return {event_type: count for event_type, count in rows}

    # ---------- blocked addresses (one row per address) ----------

    def get_block(self, block_id: int):
        with self._read("load block"):
            return self.session.get(BlockedIp, block_id)

    def get_block_by_address(self, ip_address: str):
        with self._read("load block"):
            return (
                self.session.query(BlockedIp)
                .populate_existing()
                .filter_by(ip_address=ip_address)
                .first()
            )

    def list_blocks(self) -> list:
        with self._read("list blocks"):
            return (
                self.session.query(BlockedIp)
                .order_by(BlockedIp.blocked_at.desc(), BlockedIp.id.desc())
                .all()
            )

    def upsert_block(self, ip_address: str, reason: str, blocked_at: datetime,
                     expires_at=None, blocked_by=None) -> BlockedIp:
        """
        Create or fully replace the block for ip_address in one statement.
        Concurrent callers for the same address converge on a single row.
        """
        values = {
            "ip_address": ip_address,
            "reason": reason,
            "blocked_by": blocked_by,
            "blocked_at": blocked_at,
            "expires_at": expires_at,
            "is_active": True,
        }
        dialect = self.session.get_bind(mapper=BlockedIp).dialect.name
        make_insert = _UPSERT_INSERTS.get(dialect)

        with self._write("upsert block"):
            if make_insert is not None:
                stmt = make_insert(BlockedIp.__table__).values(**values)
                stmt = stmt.on_conflict_do_update(
                    index_elements=[BlockedIp.__table__.c.ip_address],
                    set_={k: stmt.excluded[k] for k in values if k != "ip_address"},
                )
                self.session.execute(stmt)
            else:
                self._upsert_with_savepoint(values)

        return self.get_block_by_address(ip_address)

    def _upsert_with_savepoint(self, values: dict) -> None:
        try:
            with self.session.begin_nested():
                self.session.add(BlockedIp(**values))
        except IntegrityError:
            row = self.session.query(BlockedIp).filter_by(ip_address=values["ip_address"]).one()
            for key, value in values.items():
                setattr(row, key, value)

    def expire_block(self, block_id: int, now: datetime) -> bool:
        """
        Deactivate a block only if it is still active and already expired,
        so a concurrent refresh of the same address is never undone.
        """
        with self._write("deactivate expired block"):
            updated = (
                self.session.query(BlockedIp)
                .filter(
                    BlockedIp.id == block_id,
                    BlockedIp.is_active.is_(True),
                    BlockedIp.expires_at.is_not(None),
                    BlockedIp.expires_at <= now,
                )
                .update({"is_active": False}, synchronize_session="fetch")
            )
        return updated > 0

    def deactivate_block(self, block_id: int):
        row = self.get_block(block_id)
        if row is None:
            return None
        with self._write("deactivate block"):
            row.is_active = False
        return row

    def delete_block(self, block_id: int) -> bool:
        row = self.get_block(block_id)
        if row is None:
            return False
        with self._write("delete block"):
            self.session.delete(row)
        return True
