"""Configuration constants and settings for the remote link.

Defaults match the HM-10 style serial-over-BLE module on the car: one
service (0xFFE0) with one characteristic (0xFFE1) used for both writes and
notifications, and a 20 byte payload limit per write.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

SERVICE_ID = 0xFFE0
CHANNEL_ID = 0xFFE1

CONTROL_PERIOD = 0.1  # seconds between control ticks
CHUNK_DELAY = 0.1  # seconds between consecutive chunks of one frame
MAX_CHUNK_SIZE = 20  # bytes per physical write

SCAN_TIMEOUT = 10.0  # seconds
CONNECT_TIMEOUT = 20.0  # seconds

RECONNECT_ATTEMPTS = 1
RECONNECT_DELAY = 1.0  # seconds before the second attempt
RECONNECT_BACKOFF = 2.0  # delay multiplier for each further attempt


@dataclass(frozen=True)
class ReconnectPolicy:
    """How the link recovers from an involuntary loss.

    Attributes:
        max_attempts: Reconnect attempts per loss event (0 disables recovery)
        delay: Seconds to wait before the second attempt
        backoff: Multiplier applied to the delay after every failed attempt
    """
    max_attempts: int = RECONNECT_ATTEMPTS
    delay: float = RECONNECT_DELAY
    backoff: float = RECONNECT_BACKOFF

    def __post_init__(self):
        if self.max_attempts < 0:
            raise ValueError(f"max_attempts must be >= 0, got {self.max_attempts}")
        if self.delay < 0:
            raise ValueError(f"delay must be >= 0, got {self.delay}")
        if self.backoff < 1.0:
            raise ValueError(f"backoff must be >= 1.0, got {self.backoff}")

    def delay_before(self, attempt: int) -> float:
        """Seconds to sleep before the given attempt (1-based)."""
        if attempt <= 1:
            return 0.0
        return self.delay * (self.backoff ** (attempt - 2))


@dataclass(frozen=True)
class LinkConfig:
    """Settings shared by the transport, control loop and state machine.

    Attributes:
        service_id: 16-bit GATT service identifier to scan for
        channel_id: 16-bit characteristic identifier used for write/notify
        control_period: Seconds between control ticks
        chunk_delay: Seconds between staggered chunks of one frame
        max_chunk_size: Maximum bytes per physical write
        scan_timeout: Seconds to scan during device selection
        connect_timeout: Seconds allowed for link establishment, or None
        reconnect: Recovery policy after an involuntary loss
    """
    service_id: int = SERVICE_ID
    channel_id: int = CHANNEL_ID
    control_period: float = CONTROL_PERIOD
    chunk_delay: float = CHUNK_DELAY
    max_chunk_size: int = MAX_CHUNK_SIZE
    scan_timeout: float = SCAN_TIMEOUT
    connect_timeout: Optional[float] = CONNECT_TIMEOUT
    reconnect: ReconnectPolicy = field(default_factory=ReconnectPolicy)

    def __post_init__(self):
        if self.control_period <= 0:
            raise ValueError(f"control_period must be > 0, got {self.control_period}")
        if self.chunk_delay < 0:
            raise ValueError(f"chunk_delay must be >= 0, got {self.chunk_delay}")
        if self.max_chunk_size < 1:
            raise ValueError(f"max_chunk_size must be >= 1, got {self.max_chunk_size}")
        if self.scan_timeout <= 0:
            raise ValueError(f"scan_timeout must be > 0, got {self.scan_timeout}")
        if self.connect_timeout is not None and self.connect_timeout <= 0:
            raise ValueError(f"connect_timeout must be > 0, got {self.connect_timeout}")
