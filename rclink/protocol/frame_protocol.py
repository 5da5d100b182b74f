"""Text frame protocol implementation.

Wraps CommandSerializer and NotificationDecoder.
"""
from __future__ import annotations

from typing import List

from ..config import MAX_CHUNK_SIZE
from ..models import CommandFrame, InputVector
from .base import Protocol
from .parser import NotificationDecoder
from .serializer import CommandSerializer


class FrameProtocol(Protocol):
    """Newline-terminated text protocol for the car.

    Uses:
    - <R{angle}> for the steering servo
    - <M{speed}> for the drive motor
    - Raw byte-range fragments of at most max_chunk bytes
    """

    def __init__(self, max_chunk: int = MAX_CHUNK_SIZE):
        self._max_chunk = max_chunk
        self._serializer = CommandSerializer()
        self._decoder = NotificationDecoder()

    def to_command(self, vector: InputVector) -> CommandFrame:
        return self._serializer.to_command(vector)

    def encode_command(self, frame: CommandFrame) -> bytes:
        return self._serializer.serialize_frame(frame)

    def encode_text(self, text: str) -> bytes:
        return self._serializer.serialize_text(text)

    def fragment(self, data: bytes) -> List[bytes]:
        return self._serializer.fragment(data, self._max_chunk)

    def decode_notification(self, data: bytes) -> str:
        return self._decoder.decode(data)

    @property
    def name(self) -> str:
        return "frame"
