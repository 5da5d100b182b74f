"""Abstract base class for car communication protocols.

Defines the interface for encoding commands and decoding notifications.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List

from ..models import CommandFrame, InputVector


class Protocol(ABC):
    """Abstract protocol for car communication.

    Protocols handle:
    - Mapping input vectors to command frames
    - Serializing commands into wire chunks
    - Decoding inbound notifications into text
    """

    @abstractmethod
    def to_command(self, vector: InputVector) -> CommandFrame:
        """Map an input vector to a command frame."""
        pass

    @abstractmethod
    def encode_command(self, frame: CommandFrame) -> bytes:
        """Serialize a command frame into wire bytes.

        Args:
            frame: Command to serialize

        Returns:
            Bytes ready to be fragmented and written
        """
        pass

    @abstractmethod
    def encode_text(self, text: str) -> bytes:
        """Serialize a free-form text command into wire bytes."""
        pass

    @abstractmethod
    def fragment(self, data: bytes) -> List[bytes]:
        """Split wire bytes into chunks that fit one physical write."""
        pass

    @abstractmethod
    def decode_notification(self, data: bytes) -> str:
        """Decode a notification payload into text.

        Raises:
            DecodeFailed: if the payload is malformed
        """
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Protocol identifier (e.g., 'frame')."""
        pass
