"""Abstract base class for the transport session.

The Transport interface owns the device handle and the write/notify channel
of the single supported car. Implementations can be BLE, a simulator, or
anything else that can discover a device, open a channel and move bytes.

Key principles:
- The session is the only owner of the device/channel pair
- Discovery operations are coroutines and raise LinkError subclasses
- Writes are fire-and-forget and keep their submission order
- Inbound data and involuntary loss are delivered through subscriptions
"""
from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, List, Optional

logger = logging.getLogger(__name__)


def describe_device(device: Any) -> str:
    """Human-readable device name for log messages."""
    if device is None:
        return "unknown"
    name = getattr(device, "name", None)
    if name:
        return name
    return getattr(device, "address", None) or str(device)


class Transport(ABC):
    """Abstract transport session for the remote link.

    Transports are responsible for:
    1. Selecting the device that advertises the configured service
    2. Opening the link and locating the data channel
    3. Writing chunks and publishing inbound notifications
    4. Reporting involuntary loss of the link

    Transports should NOT contain business logic like reconnect policy or
    command generation. They are pure communication channels.
    """

    def __init__(self):
        self._data_callbacks: List[Callable[[bytes], None]] = []
        self._disconnect_callbacks: List[Callable[[Any], None]] = []
        self._callback_lock = threading.Lock()

    @property
    @abstractmethod
    def device(self) -> Optional[Any]:
        """Currently selected device handle, or None."""
        pass

    @property
    @abstractmethod
    def channel(self) -> Optional[Any]:
        """Currently open channel handle, or None."""
        pass

    @abstractmethod
    def is_connected(self) -> bool:
        """Check if the link is up and a channel is open."""
        pass

    @abstractmethod
    async def request_device(self, service_id: int) -> Any:
        """Select the device advertising service_id and cache it.

        Raises:
            SelectionCancelled: the operator aborted selection
            NoMatchingDevice: nothing advertises service_id
        """
        pass

    @abstractmethod
    async def open_channel(self, device: Any, service_id: int, channel_id: int) -> Any:
        """Establish the link, then look up the service, then the channel.

        Returns the cached channel without repeating discovery when the link
        is already up.

        Raises:
            LinkEstablishFailed, ServiceNotFound, ChannelNotFound
        """
        pass

    @abstractmethod
    async def subscribe(self, channel: Any) -> None:
        """Enable inbound notifications on the channel.

        Raises:
            SubscribeFailed: notifications could not be enabled
        """
        pass

    @abstractmethod
    def write(self, data: bytes) -> bool:
        """Queue one chunk for transmission.

        Does not block and does not report delivery. Chunks are written in
        the order they were queued.

        Returns:
            True if queued, False if there is no open channel
        """
        pass

    @abstractmethod
    async def close(self, forget_device: bool = False) -> None:
        """Stop notifications, close the channel and the link.

        Must not report an involuntary loss. Safe to call multiple times.

        Args:
            forget_device: Also drop the cached device handle
        """
        pass

    def subscribe_data(self, callback: Callable[[bytes], None]) -> Callable[[], None]:
        """Subscribe to inbound notification payloads.

        Returns:
            Unsubscribe function (call to remove subscription)
        """
        return self._add_callback(self._data_callbacks, callback)

    def subscribe_disconnect(self, callback: Callable[[Any], None]) -> Callable[[], None]:
        """Subscribe to involuntary loss of the link.

        The callback receives the device handle. It fires once per loss.

        Returns:
            Unsubscribe function (call to remove subscription)
        """
        return self._add_callback(self._disconnect_callbacks, callback)

    def _add_callback(self, callbacks: List[Callable], callback: Callable) -> Callable[[], None]:
        with self._callback_lock:
            callbacks.append(callback)

        def unsubscribe():
            with self._callback_lock:
                if callback in callbacks:
                    callbacks.remove(callback)

        return unsubscribe

    def _notify_data(self, data: bytes) -> None:
        with self._callback_lock:
            callbacks = list(self._data_callbacks)

        for callback in callbacks:
            try:
                callback(data)
            except Exception as e:
                logger.error(f"Error in data callback: {e}")

    def _notify_disconnect(self, device: Any) -> None:
        with self._callback_lock:
            callbacks = list(self._disconnect_callbacks)

        for callback in callbacks:
            try:
                callback(device)
            except Exception as e:
                logger.error(f"Error in disconnect callback: {e}")
