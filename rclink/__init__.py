"""RC Link - BLE remote control link for a steer/drive car."""

from .config import LinkConfig, ReconnectPolicy
from .errors import (
    LinkError,
    SelectionCancelled,
    NoMatchingDevice,
    LinkEstablishFailed,
    ServiceNotFound,
    ChannelNotFound,
    SubscribeFailed,
    WriteFailed,
    DecodeFailed,
)
from .log_sink import LogSink
from .models import (
    InputVector,
    Direction,
    CommandFrame,
    ConnectionState,
    LogDirection,
    LogEntry,
)
from .link import LinkStateMachine, RemoteLink

__all__ = [
    "LinkConfig",
    "ReconnectPolicy",
    "LinkError",
    "SelectionCancelled",
    "NoMatchingDevice",
    "LinkEstablishFailed",
    "ServiceNotFound",
    "ChannelNotFound",
    "SubscribeFailed",
    "WriteFailed",
    "DecodeFailed",
    "LogSink",
    "InputVector",
    "Direction",
    "CommandFrame",
    "ConnectionState",
    "LogDirection",
    "LogEntry",
    "LinkStateMachine",
    "RemoteLink",
]
