"""Bluetooth Low Energy transport session for the car.

The car carries a serial-over-BLE module that:
- Advertises one service (0xFFE0 by default)
- Exposes one characteristic (0xFFE1) for both writes and notifications
- Accepts at most 20 bytes per write
- Forwards everything written to the motor controller's UART

This module handles:
- Device selection by service identifier (device_finder)
- Link establishment, service and characteristic lookup
- Ordered, fire-and-forget chunk writes through a single writer task
- Notification forwarding and involuntary loss detection

Note: This is a RAW BYTE layer. It does not build or decode frames.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from bleak import BleakClient
from bleak.backends.characteristic import BleakGATTCharacteristic
from bleak.backends.device import BLEDevice
from bleak.exc import BleakError

from ..config import CONNECT_TIMEOUT, SCAN_TIMEOUT
from ..errors import (
    ChannelNotFound,
    LinkEstablishFailed,
    ServiceNotFound,
    SubscribeFailed,
    WriteFailed,
)
from ..log_sink import LogSink
from .base import Transport, describe_device
from .device_finder import Chooser, find_single_device, service_uuid

logger = logging.getLogger(__name__)


class BleTransport(Transport):
    """BLE transport session backed by bleak.

    Owns the BLEDevice (device handle), the BleakClient and the
    characteristic (channel handle). At most one pair exists at a time.

    Example:
        >>> sink = LogSink()
        >>> transport = BleTransport(sink=sink)
        >>> device = await transport.request_device(0xFFE0)
        >>> channel = await transport.open_channel(device, 0xFFE0, 0xFFE1)
        >>> transport.subscribe_data(lambda data: print(data))
        <function>
        >>> await transport.subscribe(channel)
        >>> transport.write(b"<R90><M0>\\n")
        True
        >>> await transport.close(forget_device=True)
    """

    def __init__(self,
                 sink: Optional[LogSink] = None,
                 scan_timeout: float = SCAN_TIMEOUT,
                 connect_timeout: Optional[float] = CONNECT_TIMEOUT,
                 chooser: Optional[Chooser] = None,
                 write_with_response: bool = False):
        """Initialize BLE transport.

        Args:
            sink: Log feed for discovery milestones and errors
            scan_timeout: Seconds to scan during device selection
            connect_timeout: Seconds allowed for link establishment, or None
            chooser: Picks one device from the scan results; returning None
                cancels selection. Default picks the strongest signal.
            write_with_response: Use acknowledged GATT writes
        """
        super().__init__()
        self._sink = sink if sink is not None else LogSink()
        self._scan_timeout = scan_timeout
        self._connect_timeout = connect_timeout
        self._chooser = chooser
        self._write_with_response = write_with_response

        # Handles
        self._device: Optional[BLEDevice] = None
        self._client: Optional[BleakClient] = None
        self._channel: Optional[BleakGATTCharacteristic] = None
        self._notifying = False

        # Voluntary close in progress, loss events are suppressed
        self._closing = False

        # Writer
        self._write_queue: Optional[asyncio.Queue] = None
        self._writer_task: Optional[asyncio.Task] = None

    @property
    def device(self) -> Optional[BLEDevice]:
        return self._device

    @property
    def channel(self) -> Optional[BleakGATTCharacteristic]:
        return self._channel

    def is_connected(self) -> bool:
        return (
            self._client is not None
            and self._client.is_connected
            and self._channel is not None
        )

    async def request_device(self, service_id: int) -> BLEDevice:
        """Scan for the car and cache the selected device."""
        self._sink.log("Requesting bluetooth device...")
        try:
            device = await find_single_device(
                service_id,
                timeout=self._scan_timeout,
                chooser=self._chooser,
            )
        except Exception as e:
            logger.warning(f"Device selection failed: {e}")
            raise

        if self._client is not None and device is not self._device:
            await self.close()
        self._device = device
        self._sink.log(f'"{describe_device(device)}" bluetooth device selected')
        return device

    async def open_channel(self, device: BLEDevice, service_id: int, channel_id: int) -> BleakGATTCharacteristic:
        """Connect to the GATT server and locate the data characteristic."""
        if self.is_connected():
            return self._channel

        if device is not self._device:
            await self.close()
            self._device = device

        self._sink.log("Connecting to GATT server...")

        kwargs = {"disconnected_callback": self._on_client_disconnected}
        if self._connect_timeout is not None:
            kwargs["timeout"] = self._connect_timeout
        client = BleakClient(device, **kwargs)
        self._client = client

        try:
            await client.connect()
        except (BleakError, asyncio.TimeoutError, OSError) as e:
            self._client = None
            raise LinkEstablishFailed(
                f'Failed to connect to "{describe_device(device)}": {str(e) or type(e).__name__}'
            ) from e

        self._sink.log("GATT server connected, getting service...")
        service = client.services.get_service(service_uuid(service_id))
        if service is None:
            raise ServiceNotFound(f"No service matching UUID {service_uuid(service_id)} found")

        self._sink.log("Service found, getting characteristic...")
        channel = service.get_characteristic(service_uuid(channel_id))
        if channel is None:
            raise ChannelNotFound(f"No characteristic matching UUID {service_uuid(channel_id)} found")

        self._sink.log("Characteristic found")
        self._channel = channel
        self._start_writer()
        return channel

    async def subscribe(self, channel: BleakGATTCharacteristic) -> None:
        """Enable notifications and forward payloads to data subscribers."""
        if self._client is None or not self._client.is_connected:
            raise SubscribeFailed("Cannot start notifications, not connected")

        self._sink.log("Starting notifications...")
        try:
            await self._client.start_notify(channel, self._on_notification)
        except (BleakError, asyncio.TimeoutError, OSError) as e:
            raise SubscribeFailed(f"Failed to start notifications: {e}") from e

        self._notifying = True
        self._sink.log("Notifications started")

    def write(self, data: bytes) -> bool:
        """Queue one chunk for the writer task."""
        if self._channel is None or self._write_queue is None:
            logger.debug(f"Dropping write of {len(data)} bytes, no open channel")
            return False

        self._write_queue.put_nowait(bytes(data))
        return True

    async def close(self, forget_device: bool = False) -> None:
        """Close channel and link without reporting a loss."""
        self._closing = True
        try:
            self._stop_writer()

            client = self._client
            channel = self._channel
            self._channel = None

            if client is not None and self._notifying and client.is_connected:
                try:
                    await client.stop_notify(channel)
                except (BleakError, asyncio.TimeoutError, OSError) as e:
                    logger.warning(f"Error stopping notifications: {e}")
            self._notifying = False

            name = describe_device(self._device)
            if client is not None and client.is_connected:
                self._sink.log(f'Disconnecting from "{name}" bluetooth device...')
                try:
                    await client.disconnect()
                except (BleakError, asyncio.TimeoutError, OSError) as e:
                    logger.error(f"Error closing link: {e}")
                self._sink.log(f'"{name}" bluetooth device disconnected')

            self._client = None
        finally:
            if forget_device:
                self._device = None
            self._closing = False

    # Internal methods

    def _start_writer(self) -> None:
        """Start the task that drains the write queue in order."""
        self._stop_writer()
        self._write_queue = asyncio.Queue()
        self._writer_task = asyncio.get_running_loop().create_task(
            self._writer_loop(self._write_queue, self._client, self._channel),
            name="BleWriter",
        )

    def _stop_writer(self) -> None:
        """Cancel the writer task; queued chunks are dropped."""
        if self._writer_task is not None and not self._writer_task.done():
            self._writer_task.cancel()
        self._writer_task = None
        self._write_queue = None

    async def _writer_loop(self,
                           write_queue: asyncio.Queue,
                           client: BleakClient,
                           channel: BleakGATTCharacteristic) -> None:
        """Write queued chunks one at a time."""
        logger.debug("Writer task started")
        while True:
            data = await write_queue.get()
            try:
                await client.write_gatt_char(channel, data, response=self._write_with_response)
            except (BleakError, asyncio.TimeoutError, OSError) as e:
                error = WriteFailed(f"Write of {data!r} failed: {e}")
                self._sink.log(str(error), level=logging.WARNING)

    def _on_notification(self, sender: Any, data: bytearray) -> None:
        """bleak notification callback."""
        self._notify_data(bytes(data))

    def _on_client_disconnected(self, client: BleakClient) -> None:
        """bleak disconnect callback, fires for voluntary and involuntary loss."""
        if self._closing or client is not self._client or self._channel is None:
            logger.debug("Ignoring disconnect callback (voluntary or stale client)")
            return

        logger.warning(f'Link to "{describe_device(self._device)}" lost')
        self._stop_writer()
        self._channel = None
        self._notifying = False
        self._client = None
        self._notify_disconnect(self._device)
