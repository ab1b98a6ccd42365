from __future__ import annotations


class BookingEngineError(RuntimeError):
    """Base class for errors raised by the booking engine."""
    pass


class ValidationError(BookingEngineError):
    """Raised when a request is missing fields or carries values that cannot be booked."""
    pass


class ConfigError(BookingEngineError):
    """Raised when stored business hours or booking settings are malformed."""
    pass


class ConflictError(BookingEngineError):
    """Raised when the requested interval collides with an existing booking or busy time."""

    def __init__(self, message: str, reason: str = "already_booked") -> None:
        super().__init__(message)
        self.reason = reason


class CalendarUnavailable(BookingEngineError):
    """Raised when the external calendar fails (auth expiry, network errors, timeouts)."""

    def __init__(self, message: str, auth_expired: bool = False) -> None:
        super().__init__(message)
        self.auth_expired = auth_expired


class PersistenceError(BookingEngineError):
    """Raised when the datastore fails to read or commit."""
    pass
