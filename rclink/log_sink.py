"""Log sink for the remote link.

Provides a thread-safe, append-only feed of human-readable link events that
a UI can poll or subscribe to.
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Callable, List, Tuple

from .models import LogDirection, LogEntry

logger = logging.getLogger(__name__)


class LogSink:
    """Thread-safe append-only sequence of LogEntry.

    Writers are the transport (discovery stages, errors), the state machine
    (transitions) and the control loop (outbound frames). Entries are never
    evicted. Every entry is also forwarded to the ``logging`` module.
    """

    def __init__(self):
        self._entries: List[LogEntry] = []
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[LogEntry], None]] = []
        self._callback_lock = threading.Lock()

    def log(self,
            message: str,
            direction: LogDirection = LogDirection.NONE,
            level: int = logging.INFO) -> LogEntry:
        """Append an entry to the feed.

        Args:
            message: Human-readable text
            direction: IN, OUT or NONE
            level: Level used when mirroring into ``logging``

        Returns:
            The appended entry
        """
        with self._lock:
            entry = LogEntry(
                message=message,
                direction=direction,
                timestamp=time.time(),
                seq=len(self._entries),
            )
            self._entries.append(entry)

        if direction is LogDirection.NONE:
            logger.log(level, message)
        else:
            logger.log(level, f"[{direction.value}] {message!r}")

        self._notify_callbacks(entry)
        return entry

    def entries(self) -> Tuple[LogEntry, ...]:
        """Snapshot of the feed, oldest first."""
        with self._lock:
            return tuple(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def subscribe(self, callback: Callable[[LogEntry], None]) -> Callable[[], None]:
        """Subscribe to new entries.

        Callbacks run on the thread that appended the entry and should not
        block.

        Returns:
            Unsubscribe function (call to remove subscription)
        """
        with self._callback_lock:
            self._callbacks.append(callback)

        def unsubscribe():
            with self._callback_lock:
                if callback in self._callbacks:
                    self._callbacks.remove(callback)

        return unsubscribe

    def _notify_callbacks(self, entry: LogEntry) -> None:
        with self._callback_lock:
            callbacks = list(self._callbacks)

        for callback in callbacks:
            try:
                callback(entry)
            except Exception as e:
                logger.error(f"Error in log callback: {e}")
