"""Connection state machine for the remote link.

Drives the transport session through selection, discovery and subscription,
recovers from involuntary loss, and arms the control loop exactly while the
link is connected.

States:
    DISCONNECTED -> REQUESTING -> CONNECTING -> CONNECTED
    CONNECTED -> RECONNECTING -> CONNECTED | DISCONNECTED
    CONNECTED -> DISCONNECTED (voluntary)

No operation raises. Every failure ends up in the log feed and leaves the
machine in a well-defined state.
"""
from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Callable, List, Optional

from ..config import LinkConfig
from ..errors import DecodeFailed, LinkError
from ..log_sink import LogSink
from ..models import CommandFrame, ConnectionState, LogDirection
from ..protocol import FrameProtocol, Protocol
from ..transport.base import Transport, describe_device
from .control_loop import ControlLoop, InputSource

logger = logging.getLogger(__name__)

RECOVERABLE_ERRORS = (LinkError, asyncio.TimeoutError)


class LinkStateMachine:
    """Orchestrates a Transport session for one car.

    The machine is the only writer of ConnectionState. The transport owns the
    device and channel handles; the machine only passes them back into
    discovery calls.
    """

    def __init__(self,
                 transport: Transport,
                 sink: Optional[LogSink] = None,
                 config: Optional[LinkConfig] = None,
                 input_source: Optional[InputSource] = None,
                 protocol: Optional[Protocol] = None):
        """Initialize the state machine.

        Args:
            transport: Session that owns the device/channel handles
            sink: Log feed (a new one is created if omitted)
            config: Link settings (defaults if omitted)
            input_source: Where the control loop reads the latest vector
            protocol: Frame encoding (default: FrameProtocol)
        """
        self._config = config or LinkConfig()
        self._transport = transport
        self._sink = sink if sink is not None else LogSink()
        self._input = input_source or InputSource()
        self._protocol = protocol or FrameProtocol(max_chunk=self._config.max_chunk_size)
        self._control_loop = ControlLoop(
            transport=transport,
            input_source=self._input,
            sink=self._sink,
            protocol=self._protocol,
            period=self._config.control_period,
            chunk_delay=self._config.chunk_delay,
        )

        self._state = ConnectionState.DISCONNECTED
        self._state_callbacks: List[Callable[[ConnectionState], None]] = []
        self._callback_lock = threading.Lock()

        self._unsubscribe_loss: Optional[Callable[[], None]] = None
        self._unsubscribe_data: Optional[Callable[[], None]] = None
        self._connect_task: Optional[asyncio.Task] = None
        self._reconnect_task: Optional[asyncio.Task] = None

        logger.debug(f"Link state machine using {self._protocol.name} protocol")

    # --- Observation ---

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def sink(self) -> LogSink:
        return self._sink

    @property
    def input_source(self) -> InputSource:
        return self._input

    @property
    def control_loop(self) -> ControlLoop:
        return self._control_loop

    @property
    def command(self) -> CommandFrame:
        """Command for the current input, for display. The wire frame is authoritative."""
        return self._protocol.to_command(self._input.latest())

    def subscribe_state(self, callback: Callable[[ConnectionState], None]) -> Callable[[], None]:
        """Subscribe to state transitions.

        Returns:
            Unsubscribe function (call to remove subscription)
        """
        with self._callback_lock:
            self._state_callbacks.append(callback)

        def unsubscribe():
            with self._callback_lock:
                if callback in self._state_callbacks:
                    self._state_callbacks.remove(callback)

        return unsubscribe

    # --- Control surface ---

    async def connect(self) -> bool:
        """Select (if needed), discover, subscribe and start sending.

        Returns:
            True if the link is connected afterwards
        """
        if self._state is ConnectionState.CONNECTED:
            self._sink.log("Already connected")
            return True

        if self._state is not ConnectionState.DISCONNECTED:
            self._sink.log(f"Connection already in progress ({self._state.value})", level=logging.WARNING)
            return False

        task = asyncio.get_running_loop().create_task(self._establish(), name="LinkConnect")
        self._connect_task = task
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            if self._connect_task is task:
                self._connect_task = None

        if task.cancelled():
            self._sink.log("Connect aborted")
            return False
        return task.result()

    async def disconnect(self) -> None:
        """Voluntarily tear the link down.

        Order: stop the control loop, drop the loss listener, cancel any
        connect or reconnect in flight, then close channel and link and
        forget the device.
        """
        if (self._state is ConnectionState.DISCONNECTED
                and self._connect_task is None
                and not self._transport.is_connected()):
            self._sink.log("Already disconnected")
            if self._transport.device is not None:
                # Left over from a failed connect or reconnect
                await self._close_transport()
            return

        self._control_loop.disarm()

        if self._unsubscribe_loss is not None:
            self._unsubscribe_loss()
            self._unsubscribe_loss = None

        await self._cancel_task(self._reconnect_task)
        await self._cancel_task(self._connect_task)

        if self._unsubscribe_data is not None:
            self._unsubscribe_data()
            self._unsubscribe_data = None

        await self._close_transport()
        self._set_state(ConnectionState.DISCONNECTED)

    async def send(self, text: str) -> bool:
        """Send a free-form text command through the fragmenting writer.

        Returns:
            True if the frame was accepted
        """
        if self._state is not ConnectionState.CONNECTED:
            self._sink.log("Not connected, cannot send", level=logging.WARNING)
            return False

        data = self._protocol.encode_text(str(text))
        return self._control_loop.submit(data)

    async def __aenter__(self) -> LinkStateMachine:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.disconnect()

    # --- Internal ---

    def _set_state(self, state: ConnectionState) -> None:
        """Change state and keep the control loop armed iff CONNECTED."""
        if state is not ConnectionState.CONNECTED:
            self._control_loop.disarm()

        if state is self._state:
            return

        previous = self._state
        self._state = state
        logger.debug(f"State {previous.value} -> {state.value}")

        if state is ConnectionState.CONNECTED:
            self._control_loop.arm()

        with self._callback_lock:
            callbacks = list(self._state_callbacks)

        for callback in callbacks:
            try:
                callback(state)
            except Exception as e:
                logger.error(f"Error in state callback: {e}")

    async def _establish(self) -> bool:
        """The connect chain. Catches everything it can recover from."""
        device = self._transport.device
        try:
            if device is None:
                self._set_state(ConnectionState.REQUESTING)
                device = await self._transport.request_device(self._config.service_id)
            self._set_state(ConnectionState.CONNECTING)
            await self._open_and_subscribe(device)
        except RECOVERABLE_ERRORS as e:
            self._sink.log(str(e) or type(e).__name__, level=logging.ERROR)
            await self._release_channel()
            self._set_state(ConnectionState.DISCONNECTED)
            return False
        except Exception as e:
            self._sink.log(f"Unexpected error while connecting: {e}", level=logging.ERROR)
            await self._release_channel()
            self._set_state(ConnectionState.DISCONNECTED)
            return False

        if self._unsubscribe_loss is None:
            self._unsubscribe_loss = self._transport.subscribe_disconnect(self._on_unexpected_disconnect)

        self._set_state(ConnectionState.CONNECTED)
        self._sink.log(f'Connected to "{describe_device(device)}"')
        return True

    async def _open_and_subscribe(self, device: Any) -> None:
        channel = await self._transport.open_channel(
            device,
            self._config.service_id,
            self._config.channel_id,
        )
        if self._unsubscribe_data is None:
            self._unsubscribe_data = self._transport.subscribe_data(self._on_data)
        await self._transport.subscribe(channel)

    async def _release_channel(self) -> None:
        """Close channel and link after a failure, keeping the selected device."""
        try:
            await self._transport.close()
        except Exception as e:
            logger.error(f"Error releasing channel: {e}")

    async def _close_transport(self) -> None:
        """Close channel and link and forget the device."""
        try:
            await self._transport.close(forget_device=True)
        except Exception as e:
            self._sink.log(f"Error while disconnecting: {e}", level=logging.ERROR)

    async def _cancel_task(self, task: Optional[asyncio.Task]) -> None:
        if task is None or task.done() or task is asyncio.current_task():
            return
        task.cancel()
        await asyncio.wait({task})

    def _on_unexpected_disconnect(self, device: Any) -> None:
        """Transport callback for involuntary loss."""
        if self._state is not ConnectionState.CONNECTED:
            logger.debug(f"Ignoring loss event in state {self._state.value}")
            return

        self._sink.log(
            f'"{describe_device(device)}" bluetooth device disconnected, trying to reconnect...',
            level=logging.WARNING,
        )
        self._set_state(ConnectionState.RECONNECTING)
        self._reconnect_task = asyncio.get_running_loop().create_task(
            self._reconnect(device),
            name="LinkReconnect",
        )

    async def _reconnect(self, device: Any) -> None:
        """Recover the link with the cached device according to the policy."""
        policy = self._config.reconnect
        try:
            for attempt in range(1, policy.max_attempts + 1):
                delay = policy.delay_before(attempt)
                if delay > 0:
                    await asyncio.sleep(delay)
                try:
                    await self._open_and_subscribe(device)
                except RECOVERABLE_ERRORS as e:
                    self._sink.log(
                        f"Reconnect attempt {attempt}/{policy.max_attempts} failed: {e}",
                        level=logging.WARNING,
                    )
                    await self._release_channel()
                    continue
                except Exception as e:
                    self._sink.log(f"Unexpected error while reconnecting: {e}", level=logging.ERROR)
                    await self._release_channel()
                    break

                self._set_state(ConnectionState.CONNECTED)
                self._sink.log(f'Reconnected to "{describe_device(device)}"')
                return

            self._sink.log("Reconnect failed, link is down", level=logging.ERROR)
            self._set_state(ConnectionState.DISCONNECTED)
        finally:
            if self._reconnect_task is asyncio.current_task():
                self._reconnect_task = None

    def _on_data(self, data: bytes) -> None:
        """Transport callback for inbound notifications."""
        try:
            text = self._protocol.decode_notification(data)
        except DecodeFailed as e:
            self._sink.log(str(e), level=logging.WARNING)
            text = e.text
        self._sink.log(text, LogDirection.IN)
