"""Command serializer for the car's text protocol.

Converts input vectors to command frames and command frames to wire bytes.
Pure functions with no side effects.
"""
from __future__ import annotations

import math
from typing import List

from ..config import MAX_CHUNK_SIZE
from ..models import (
    CommandFrame,
    Direction,
    InputVector,
    MOTOR_MAX,
    MOTOR_MIN,
    SERVO_CENTER,
    SERVO_MAX,
    SERVO_MIN,
)

LINE_TERMINATOR = "\n"
ENCODING = "utf-8"


def _round_half_up(value: float) -> int:
    """Round a non-negative value with .5 going up (not to even)."""
    return int(math.floor(value + 0.5))


class CommandSerializer:
    """Serializer for the steering/throttle command protocol.

    Frames look like ``<R{angle}><M{speed}>\\n``; the firmware reassembles
    fragments by waiting for the newline.
    """

    @staticmethod
    def to_command(vector: InputVector) -> CommandFrame:
        """Map an input vector to a command frame.

        Out-of-range input is clamped, never rejected.

        Examples:
            >>> CommandSerializer.to_command(InputVector(x=0.0, y=1.0))
            CommandFrame(servo_angle=90, motor_speed=255, direction=<Direction.FORWARD: 'forward'>)
        """
        vector = vector.clamped()

        offset = _round_half_up(abs(vector.x) * (SERVO_MAX - SERVO_CENTER))
        if vector.x > 0:
            angle = SERVO_CENTER + offset
        else:
            angle = SERVO_CENTER - offset
        angle = max(SERVO_MIN, min(SERVO_MAX, angle))

        speed = _round_half_up(abs(vector.y) * MOTOR_MAX)
        speed = max(MOTOR_MIN, min(MOTOR_MAX, speed))

        direction = Direction.FORWARD if vector.y >= 0 else Direction.BACKWARD

        return CommandFrame(servo_angle=angle, motor_speed=speed, direction=direction)

    @staticmethod
    def serialize_frame(frame: CommandFrame) -> bytes:
        """Serialize a command frame to terminated wire bytes."""
        return (frame.to_text() + LINE_TERMINATOR).encode(ENCODING)

    @staticmethod
    def serialize_text(text: str) -> bytes:
        """Serialize a free-form text command.

        Empty text produces no bytes at all, so nothing is sent.
        """
        if not text:
            return b""
        return (text + LINE_TERMINATOR).encode(ENCODING)

    @staticmethod
    def fragment(data: bytes, max_chunk: int = MAX_CHUNK_SIZE) -> List[bytes]:
        """Split bytes into consecutive chunks of at most max_chunk bytes.

        Splits on fixed offsets only; a ``<R``/``M>`` tag may straddle two
        chunks. Concatenating the chunks yields the input unchanged.
        """
        if max_chunk < 1:
            raise ValueError(f"max_chunk must be >= 1, got {max_chunk}")
        return [data[i:i + max_chunk] for i in range(0, len(data), max_chunk)]
