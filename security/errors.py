class SecurityGateError(Exception):
    """Base class for errors raised by the block gate and its store."""


class ValidationError(SecurityGateError):
    """Operator input rejected before any state change."""


class NotFoundError(SecurityGateError):
    pass


class PersistenceError(SecurityGateError):
    """
    A write or query against the store failed.
    The underlying SQLAlchemy error is kept as __cause__.
    """
