"""Periodic sender that turns the latest input into command frames.

Runs as a task on the event loop while the link is connected. Each tick
reads the most recent InputVector, encodes it and writes the chunks of the
frame with a fixed stagger between them.
"""
from __future__ import annotations

import asyncio
import logging
import threading
from typing import List, Optional

from ..config import CHUNK_DELAY, CONTROL_PERIOD
from ..log_sink import LogSink
from ..models import InputVector, LogDirection
from ..protocol import FrameProtocol, Protocol
from ..transport.base import Transport

logger = logging.getLogger(__name__)


class InputSource:
    """Last-value-wins holder for the operator's input vector.

    ``set`` may be called from any thread at any rate; the control loop only
    ever sees the latest value.
    """

    def __init__(self):
        self._latest = InputVector()
        self._lock = threading.Lock()

    def set(self, x: float, y: float) -> None:
        vector = InputVector(x=float(x), y=float(y))
        with self._lock:
            self._latest = vector

    def latest(self) -> InputVector:
        with self._lock:
            return self._latest


class ControlLoop:
    """Fixed-period command sender.

    Ordering:
    - Chunk 0 of a frame is written immediately, chunk n after n * chunk_delay.
    - A new frame is not started while chunks of the previous one are still
      scheduled; the tick is skipped and the next one carries the newest input.
    - disarm() cancels the periodic task and every scheduled chunk.
    """

    def __init__(self,
                 transport: Transport,
                 input_source: InputSource,
                 sink: LogSink,
                 protocol: Optional[Protocol] = None,
                 period: float = CONTROL_PERIOD,
                 chunk_delay: float = CHUNK_DELAY):
        self._transport = transport
        self._input = input_source
        self._sink = sink
        self._protocol = protocol or FrameProtocol()
        self._period = period
        self._chunk_delay = chunk_delay

        self._task: Optional[asyncio.Task] = None
        self._pending: List[asyncio.TimerHandle] = []

    @property
    def armed(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def draining(self) -> bool:
        """True while chunks of the last frame are still scheduled."""
        return bool(self._pending)

    def arm(self) -> None:
        """Start ticking. No-op if already armed."""
        if self.armed:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name="ControlLoop")
        logger.debug(f"Control loop armed (period={self._period}s)")

    def disarm(self) -> None:
        """Stop ticking and cancel staggered chunk writes. Synchronous."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

        for handle in self._pending:
            handle.cancel()
        if self._pending:
            logger.debug(f"Cancelled {len(self._pending)} pending chunk writes")
        self._pending = []

    def tick(self) -> bool:
        """Encode the latest input and submit it.

        Returns:
            True if a frame was submitted
        """
        if self.draining:
            logger.debug("Previous frame still draining, skipping tick")
            return False
        command = self._protocol.to_command(self._input.latest())
        return self.submit(self._protocol.encode_command(command))

    def submit(self, data: bytes) -> bool:
        """Fragment and write one frame.

        Args:
            data: Complete, terminated frame bytes

        Returns:
            True if the frame was accepted, False if empty, the previous
            frame is still being sent, or the transport has no channel
        """
        if not data:
            return False

        if self.draining:
            self._sink.log(
                f"Previous frame still sending, dropped {data!r}",
                level=logging.WARNING,
            )
            return False

        chunks = self._protocol.fragment(data)
        if not self._transport.write(chunks[0]):
            logger.debug(f"Frame {data!r} dropped by transport")
            return False

        rest = chunks[1:]
        if rest and self._chunk_delay == 0:
            for chunk in rest:
                self._transport.write(chunk)
        elif rest:
            loop = asyncio.get_running_loop()
            for n, chunk in enumerate(rest, start=1):
                handle = loop.call_later(
                    n * self._chunk_delay,
                    self._write_chunk,
                    chunk,
                    n == len(rest),
                )
                self._pending.append(handle)

        self._sink.log(
            data.decode("utf-8", errors="replace"),
            LogDirection.OUT,
            level=logging.DEBUG,
        )
        return True

    # Internal methods

    def _write_chunk(self, chunk: bytes, last: bool) -> None:
        self._transport.write(chunk)
        if last:
            self._pending = []

    async def _run(self) -> None:
        """Tick on a fixed schedule until cancelled."""
        loop = asyncio.get_running_loop()
        deadline = loop.time()
        while True:
            deadline += self._period
            delay = deadline - loop.time()
            if delay < 0:
                # Fell behind, do not burst the missed ticks
                deadline = loop.time()
                delay = 0.0
            await asyncio.sleep(delay)
            try:
                self.tick()
            except Exception as e:
                self._sink.log(f"Control tick failed: {e}", level=logging.ERROR)
