# companion_lifecycle/errors.py
"""
Lifecycle error taxonomy.

- StoreIOError: a record store read/write failed; aborts the current pass
- ChannelDeliveryError: a single warning send failed; logged per recipient
- ValidationError: malformed erasure request; raised to the caller
"""


class LifecycleError(Exception):
    """Base class for lifecycle engine errors."""

    pass


class StoreIOError(LifecycleError):
    """Raised when the record store fails to read or write."""

    pass


class ChannelDeliveryError(LifecycleError):
    """Raised when a notification channel fails to deliver one message."""

    def __init__(self, message: str, phone_number: str | None = None):
        super().__init__(message)
        self.phone_number = phone_number


class ValidationError(LifecycleError):
    """Raised when an erasure request is malformed or not processable."""

    pass
