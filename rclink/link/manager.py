"""Remote link facade.

Runs the link state machine on a private asyncio loop in a background
thread and exposes a simple blocking interface for UI code.
"""
from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import threading
from typing import Callable, Coroutine, Optional, Tuple

from ..config import LinkConfig
from ..log_sink import LogSink
from ..models import CommandFrame, ConnectionState, LogEntry
from ..transport.base import Transport
from ..transport.ble import BleTransport
from ..transport.device_finder import Chooser
from .control_loop import InputSource
from .state_machine import LinkStateMachine

logger = logging.getLogger(__name__)

SHUTDOWN_TIMEOUT = 5.0  # seconds


class RemoteLink:
    """High-level interface to the car.

    This class acts as a facade, managing:
    1. The transport session (BleTransport by default)
    2. The link state machine and its control loop
    3. The log feed shared by all of them

    The three entry points for a UI are set_input_vector(), connect() and
    disconnect(). Everything else is observation.
    """

    def __init__(self,
                 config: Optional[LinkConfig] = None,
                 transport: Optional[Transport] = None,
                 sink: Optional[LogSink] = None,
                 chooser: Optional[Chooser] = None):
        """Initialize the link and start its event loop thread.

        Args:
            config: Link settings, defaults if omitted
            transport: Transport session, or None for BLE
            sink: Log feed, a new one is created if omitted
            chooser: Device chooser passed to the BLE transport
        """
        self._config = config or LinkConfig()
        self._sink = sink if sink is not None else LogSink()
        self._transport = transport or BleTransport(
            sink=self._sink,
            scan_timeout=self._config.scan_timeout,
            connect_timeout=self._config.connect_timeout,
            chooser=chooser,
        )
        self._input = InputSource()
        self._machine = LinkStateMachine(
            transport=self._transport,
            sink=self._sink,
            config=self._config,
            input_source=self._input,
        )

        self._closed = False
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(
            target=self._loop.run_forever,
            daemon=True,
            name="RemoteLinkLoop",
        )
        self._thread.start()

    # --- Control Interface ---

    def set_input_vector(self, x: float, y: float) -> None:
        """Store the latest steering/throttle input. Safe from any thread."""
        self._input.set(x, y)

    def connect(self, timeout: Optional[float] = None) -> bool:
        """Connect to the car (blocking).

        Args:
            timeout: Seconds to wait, or None to wait for the outcome

        Returns:
            True if connected
        """
        try:
            return self._run(self._machine.connect(), timeout)
        except concurrent.futures.TimeoutError:
            self._sink.log(f"Connect did not finish within {timeout}s", level=logging.ERROR)
            self._run(self._machine.disconnect(), SHUTDOWN_TIMEOUT)
            return False

    def disconnect(self, timeout: Optional[float] = SHUTDOWN_TIMEOUT) -> None:
        """Disconnect from the car (blocking)."""
        self._run(self._machine.disconnect(), timeout)

    def send(self, text: str, timeout: Optional[float] = SHUTDOWN_TIMEOUT) -> bool:
        """Send a free-form text command (blocking until queued)."""
        return self._run(self._machine.send(text), timeout)

    def close(self) -> None:
        """Disconnect and stop the event loop thread."""
        if self._closed:
            return
        self._closed = True
        try:
            self._run(self._machine.disconnect(), SHUTDOWN_TIMEOUT)
        except Exception as e:
            logger.error(f"Error disconnecting during close: {e}")
        finally:
            self._loop.call_soon_threadsafe(self._loop.stop)
            self._thread.join(timeout=SHUTDOWN_TIMEOUT)
            if not self._thread.is_alive():
                self._loop.close()

    def __enter__(self) -> RemoteLink:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # --- Status Interface ---

    @property
    def state(self) -> ConnectionState:
        return self._machine.state

    @property
    def is_connected(self) -> bool:
        return self._machine.state is ConnectionState.CONNECTED

    @property
    def command(self) -> CommandFrame:
        """Servo angle, motor speed and direction for the current input."""
        return self._machine.command

    def logs(self) -> Tuple[LogEntry, ...]:
        """Snapshot of the log feed, oldest first."""
        return self._sink.entries()

    def subscribe_logs(self, callback: Callable[[LogEntry], None]) -> Callable[[], None]:
        """Subscribe to new log entries. Callbacks run on the loop thread."""
        return self._sink.subscribe(callback)

    def subscribe_state(self, callback: Callable[[ConnectionState], None]) -> Callable[[], None]:
        """Subscribe to state transitions. Callbacks run on the loop thread."""
        return self._machine.subscribe_state(callback)

    # --- Internal ---

    def _run(self, coro: Coroutine, timeout: Optional[float]):
        if self._closed and not self._loop.is_running():
            coro.close()
            raise RuntimeError("RemoteLink is closed")
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        try:
            return future.result(timeout)
        except concurrent.futures.TimeoutError:
            future.cancel()
            raise
