"""
Exception classes for the reminder engine.
"""


class ReminderEngineError(Exception):
    """Base exception for all reminder engine errors."""
    pass


class InvalidDateFormat(ReminderEngineError, ValueError):
    """Raised when a calendar date is not a well-formed, in-range YYYY-MM-DD string."""

    def __init__(self, value):
        self.value = value
        super().__init__(f"Invalid calendar date: {value!r} (expected YYYY-MM-DD)")


class UserNotFound(ReminderEngineError):
    """Raised when a reminder's owner cannot be resolved."""

    def __init__(self, owner_id):
        self.owner_id = owner_id
        super().__init__(f"User {owner_id} not found")


class SendFailure(ReminderEngineError):
    """Raised by a mail transport when one recipient could not be delivered to."""

    def __init__(self, address, reason):
        self.address = address
        self.reason = reason
        super().__init__(f"Sending to {address} failed: {reason}")


class StorageUnavailable(ReminderEngineError):
    """Raised when the storage collaborator cannot serve a tick."""
    pass


class TransportUnconfigured(ReminderEngineError):
    """Raised when a send is attempted on a transport without credentials."""
    pass
