"""Immutable data models for the remote link.

All models are frozen dataclasses so snapshots can be handed between the
event loop thread and a UI thread without copying.
These models serve as the contract between codec, transport, link and
application layers.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum

SERVO_MIN = 0
SERVO_CENTER = 90
SERVO_MAX = 180
MOTOR_MIN = 0
MOTOR_MAX = 255


def _clamp_unit(value: float) -> float:
    if math.isnan(value):
        return 0.0
    return max(-1.0, min(1.0, value))


@dataclass(frozen=True)
class InputVector:
    """2D input from the steering widget.

    Attributes:
        x: Steering, -1.0 (full left) to 1.0 (full right)
        y: Throttle, -1.0 (full reverse) to 1.0 (full forward)
    """
    x: float = 0.0
    y: float = 0.0

    def clamped(self) -> InputVector:
        """Return a copy with both axes forced into [-1, 1] (NaN becomes 0)."""
        return InputVector(x=_clamp_unit(self.x), y=_clamp_unit(self.y))


class Direction(Enum):
    """Drive direction, derived from the sign of the throttle axis."""
    FORWARD = "forward"
    BACKWARD = "backward"


@dataclass(frozen=True)
class CommandFrame:
    """One control command for the actuator.

    Direction is not part of the wire text; the peer derives it from the
    sign convention of the original vector.

    Attributes:
        servo_angle: Steering servo angle in degrees (0-180, 90 is centered)
        motor_speed: Drive motor PWM duty (0-255)
        direction: FORWARD or BACKWARD
    """
    servo_angle: int = SERVO_CENTER
    motor_speed: int = MOTOR_MIN
    direction: Direction = Direction.FORWARD

    def to_text(self) -> str:
        """Frame text without the line terminator, e.g. ``<R90><M255>``."""
        return f"<R{self.servo_angle}><M{self.motor_speed}>"


class ConnectionState(Enum):
    """Link state. Only the LinkStateMachine moves between these."""
    DISCONNECTED = "disconnected"
    REQUESTING = "requesting"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


class LogDirection(Enum):
    """Whether a log entry describes inbound data, outbound data or neither."""
    IN = "in"
    OUT = "out"
    NONE = ""


@dataclass(frozen=True)
class LogEntry:
    """One line of the human-readable link feed.

    Attributes:
        message: Text shown to the operator
        direction: IN for decoded notifications, OUT for sent frames
        timestamp: Unix timestamp when the entry was appended
        seq: Position in the feed, strictly increasing
    """
    message: str
    direction: LogDirection = LogDirection.NONE
    timestamp: float = 0.0
    seq: int = 0
