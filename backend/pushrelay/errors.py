"""Exception types shared by the backend services and the client store."""


class PushRelayError(Exception):
    """Base class for pushrelay errors."""


class NoActiveDevicesError(PushRelayError):
    """A dispatch resolved to no active device; nothing was sent or recorded."""

    def __init__(self, message: str = "No active devices found"):
        super().__init__(message)


class DeliveryError(PushRelayError):
    """A push gateway failed to deliver to a single device."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class StorageError(PushRelayError):
    """The persistence layer is unavailable or rejected a write."""
