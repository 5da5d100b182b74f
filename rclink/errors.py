"""Error kinds raised by the transport session and codec.

All of them derive from LinkError so the link state machine can catch the
whole family at one boundary and turn it into a log entry.
"""


class LinkError(RuntimeError):
    """Base class for recoverable link failures."""
    pass


class SelectionCancelled(LinkError):
    """Raised when the operator aborts device selection."""
    pass


class NoMatchingDevice(LinkError):
    """Raised when no device advertises the expected service."""
    pass


class LinkEstablishFailed(LinkError):
    """Raised when the link to the selected device cannot be opened."""
    pass


class ServiceNotFound(LinkError):
    """Raised when the device does not expose the expected service."""
    pass


class ChannelNotFound(LinkError):
    """Raised when the service has no matching data characteristic."""
    pass


class SubscribeFailed(LinkError):
    """Raised when notifications cannot be enabled on the channel."""
    pass


class WriteFailed(LinkError):
    """Raised (and logged, never retried) when a chunk write fails."""
    pass


class DecodeFailed(LinkError):
    """Raised when an inbound notification is not valid UTF-8.

    Attributes:
        text: Best-effort decode with invalid sequences replaced
    """
    def __init__(self, message: str, text: str = ""):
        super().__init__(message)
        self.text = text
