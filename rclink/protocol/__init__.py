"""Protocol layer for the car's text command link."""

from .base import Protocol
from .frame_protocol import FrameProtocol
from .parser import NotificationDecoder
from .serializer import CommandSerializer, LINE_TERMINATOR

__all__ = [
    "Protocol",
    "FrameProtocol",
    "NotificationDecoder",
    "CommandSerializer",
    "LINE_TERMINATOR",
]
