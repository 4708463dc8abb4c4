import logging

from blinker import Namespace

logger = logging.getLogger(__name__)

_signals = Namespace()

# Sent after a security event is committed. Receivers get the event dict
# as the "event" keyword argument.
security_event_recorded = _signals.signal("security-event-recorded")


class EventRecorder:
    """Append-only writer for security events."""

    def __init__(self, store):
        self.store = store

    def record(self, event_type: str, ip_address: str, user_agent=None,
               user_id=None, email=None, details=None):
        """
        Persist one event stamped with the store clock.
        Raises PersistenceError if the insert fails.
        """
        row = self.store.insert_event(
            event_type=event_type,
            ip_address=ip_address,
            user_agent=user_agent,
            user_id=user_id,
            email=email,
            details=details,
        )
        self._publish(row)
        return row

    def _publish(self, row) -> None:
        if not security_event_recorded.receivers:
            return
        payload = row.to_dict()
        try:
            security_event_recorded.send(self, event=payload)
        except Exception:
            # The row is already committed; a broken listener must not undo that
            logger.exception("Security event listener failed for event %s", payload["id"])
