import ipaddress
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from security.errors import NotFoundError, PersistenceError, ValidationError
from security.event_types import AUTO_BLOCK, BLOCKED_ACCESS, LOGIN_FAILURE, MAX_ADDRESS_LENGTH
from security.recorder import EventRecorder

logger = logging.getLogger(__name__)

UNKNOWN_ADDRESS = "unknown"

# Policy defaults, overridable through config
DEFAULT_THRESHOLD = 5
DEFAULT_WINDOW_MINUTES = 15
DEFAULT_BLOCK_HOURS = 1

AUTO_BLOCK_REASON = "Automatic block: Too many failed login attempts"
AUTO_BLOCK_DETAIL_REASON = "Too many failed login attempts"
AUTO_BLOCK_WARNING = "IP has been temporarily blocked due to suspicious activity"


@dataclass
class GuardResult:
    allowed: bool
    event: Optional[object] = None
    reason: Optional[str] = None
    warning: Optional[str] = None
    blocked_until: Optional[datetime] = None
    escalation_error: Optional[str] = None


def validate_address(value) -> str:
    address = (value or "").strip() if isinstance(value, str) else ""
    if not address:
        raise ValidationError("ip_address is required")
    if len(address) > MAX_ADDRESS_LENGTH:
        raise ValidationError("ip_address is too long")
    try:
        ipaddress.ip_address(address)
    except ValueError:
        raise ValidationError(f"Invalid IP address: {address}") from None
    return address


def _validate_duration(duration_hours):
    if duration_hours is None:
        return None
    if isinstance(duration_hours, bool) or not isinstance(duration_hours, (int, float)):
        raise ValidationError("duration_hours must be a number")
    try:
        finite = math.isfinite(duration_hours)
    except OverflowError:
        raise ValidationError("duration_hours is out of range") from None
    if not finite:
        raise ValidationError("duration_hours must be a finite number")
    if duration_hours < 0:
        raise ValidationError("duration_hours must be positive")
    # 0 keeps the "no duration means permanent" behaviour
    return duration_hours or None


def _expiry(now: datetime, duration_hours) -> Optional[datetime]:
    if not duration_hours:
        return None
    try:
        return now + timedelta(hours=duration_hours)
    except (OverflowError, ValueError):
        raise ValidationError("duration_hours is out of range") from None


class BlockGate:
    """
    Brute-force detector and IP block list in front of the event recorder.

    guard() denies requests from an address with an active, unexpired block,
    records everything else, and after each login_failure counts the
    failures from that address inside a sliding window. Reaching the
    threshold installs a time-bounded block for later requests.
    """

    def __init__(self, store, threshold: int = DEFAULT_THRESHOLD,
                 window_minutes: int = DEFAULT_WINDOW_MINUTES,
                 block_hours: float = DEFAULT_BLOCK_HOURS):
        self.store = store
        self.recorder = EventRecorder(store)
        self.threshold = threshold
        self.window = timedelta(minutes=window_minutes)
        self.block_duration = timedelta(hours=block_hours)

    @classmethod
    def from_config(cls, store, config) -> "BlockGate":
        return cls(
            store,
            threshold=config.get("BRUTE_FORCE_THRESHOLD", DEFAULT_THRESHOLD),
            window_minutes=config.get("BRUTE_FORCE_WINDOW_MINUTES", DEFAULT_WINDOW_MINUTES),
            block_hours=config.get("AUTO_BLOCK_HOURS", DEFAULT_BLOCK_HOURS),
        )

    # ---------- request path ----------

    def guard(self, event_type: str, ip_address: str, user_agent=None,
              user_id=None, email=None, details=None) -> GuardResult:
        ip_address = ip_address or UNKNOWN_ADDRESS
        if len(ip_address) > MAX_ADDRESS_LENGTH:
            raise ValidationError("ip_address is too long")

        denial = self._pre_check(event_type, ip_address, user_agent, user_id, email, details)
        if denial is not None:
            return denial

        # A failed insert here is a hard error for the caller
        event = self.recorder.record(
            event_type, ip_address, user_agent,
            user_id=user_id, email=email, details=details,
        )
        if event_type != LOGIN_FAILURE:
            return GuardResult(allowed=True, event=event)

        return self._escalate(event, ip_address, user_agent)

    def _pre_check(self, event_type, ip_address, user_agent, user_id, email, details):
        block = self.store.get_block_by_address(ip_address)
        if block is None or not block.is_active:
            return None

        now = self.store.now()
        if block.is_expired(now):
            if self.store.expire_block(block.id, now):
                logger.info("Block on %s expired at %s; deactivated", ip_address, block.expires_at)
            return None

        blocked_details = dict(details or {})
        blocked_details["block_reason"] = block.reason
        try:
            self.recorder.record(
                BLOCKED_ACCESS, ip_address, user_agent,
                user_id=user_id, email=email, details=blocked_details,
            )
        except PersistenceError:
            logger.exception("Could not record blocked access from %s", ip_address)

        logger.info("Denied %s from blocked address %s", event_type, ip_address)
        return GuardResult(allowed=False, reason=block.reason, blocked_until=block.expires_at)

    def _escalate(self, event, ip_address, user_agent) -> GuardResult:
        # The triggering event is committed; nothing below may undo it
        try:
            now = self.store.now()
            failures = self.store.count_events(LOGIN_FAILURE, ip_address, now - self.window)
            if failures < self.threshold:
                return GuardResult(allowed=True, event=event)

            expires_at = now + self.block_duration
            self.store.upsert_block(
                ip_address, AUTO_BLOCK_REASON, blocked_at=now, expires_at=expires_at,
            )
        except PersistenceError as exc:
            logger.exception("Brute-force escalation failed for %s", ip_address)
            return GuardResult(allowed=True, event=event, escalation_error=str(exc))

        logger.warning(
            "Auto-blocked %s after %d failed logins in %s (until %s)",
            ip_address, failures, self.window, expires_at.isoformat(),
        )
        result = GuardResult(
            allowed=True, event=event, warning=AUTO_BLOCK_WARNING, blocked_until=expires_at,
        )
        try:
            self.recorder.record(
                AUTO_BLOCK, ip_address, user_agent,
                details={
                    "reason": AUTO_BLOCK_DETAIL_REASON,
                    "failed_attempts": failures,
                    "expires_at": expires_at.isoformat(),
                },
            )
        except PersistenceError as exc:
            logger.exception("Could not record auto_block event for %s", ip_address)
            result.escalation_error = str(exc)
        return result

    # ---------- operator path ----------

    def block_address(self, ip_address, reason, duration_hours=None, blocked_by=None):
        """
        Manually block an address. Replaces any existing record for it.
        Without a duration the block is permanent.
        """
        address = validate_address(ip_address)
        reason = reason.strip() if isinstance(reason, str) else ""
        if not reason:
            raise ValidationError("reason is required")
        duration_hours = _validate_duration(duration_hours)

        now = self.store.now()
        expires_at = _expiry(now, duration_hours)
        block = self.store.upsert_block(
            address, reason, blocked_at=now, expires_at=expires_at,
            blocked_by=str(blocked_by) if blocked_by is not None else None,
        )
        logger.info(
            "Blocked %s %s: %s",
            address, f"until {expires_at.isoformat()}" if expires_at else "permanently", reason,
        )
        return block

    def unblock(self, block_id: int):
        block = self.store.deactivate_block(block_id)
        if block is None:
            raise NotFoundError(f"Block {block_id} not found")
        logger.info("Unblocked %s (block %s)", block.ip_address, block_id)
        return block

    def delete_block(self, block_id: int) -> None:
        if not self.store.delete_block(block_id):
            raise NotFoundError(f"Block {block_id} not found")
        logger.info("Deleted block %s", block_id)
