"""Error taxonomy for the event relay."""


class EventRelayError(Exception):
    """Base class for event relay errors."""


class StorageUnavailableError(EventRelayError):
    """Raised when a pending event storage operation fails."""

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Storage {operation} failed: {reason}")


class UnknownEventTypeError(EventRelayError, KeyError):
    """Raised when an observer target does not name a registered event type."""

    def __str__(self) -> str:
        return f"Unknown event type: {self.args[0]!r}"
