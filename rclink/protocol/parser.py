"""Decoder for inbound notifications from the car.

The firmware sends free-form text (debug prints, sensor readouts). It is not
parsed further; the decoded text goes into the log feed as-is.
"""
from __future__ import annotations

from ..errors import DecodeFailed
from .serializer import ENCODING


class NotificationDecoder:
    """Turns raw notification payloads into text."""

    @staticmethod
    def decode(data: bytes) -> str:
        """Decode one notification payload.

        Args:
            data: Raw bytes from the notify characteristic

        Returns:
            Decoded text, unchanged (no stripping)

        Raises:
            DecodeFailed: payload is not valid UTF-8; ``err.text`` carries a
                best-effort decode with invalid sequences replaced
        """
        try:
            return bytes(data).decode(ENCODING)
        except UnicodeDecodeError as e:
            text = bytes(data).decode(ENCODING, errors="replace")
            raise DecodeFailed(f"Malformed notification ({e.reason})", text=text) from e
