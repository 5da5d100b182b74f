"""Unit tests for LogSink."""
import logging
import threading
import unittest

from rclink.log_sink import LogSink
from rclink.models import LogDirection


class TestLogSink(unittest.TestCase):

    def setUp(self):
        self.sink = LogSink()

    def test_append_order_and_seq(self):
        self.sink.log("Requesting bluetooth device...")
        self.sink.log("<R90><M0>\n", LogDirection.OUT)
        self.sink.log("pong", LogDirection.IN)

        entries = self.sink.entries()
        self.assertEqual([e.seq for e in entries], [0, 1, 2])
        self.assertEqual([e.direction for e in entries],
                         [LogDirection.NONE, LogDirection.OUT, LogDirection.IN])
        self.assertEqual(len(self.sink), 3)

    def test_timestamps_non_decreasing(self):
        for i in range(10):
            self.sink.log(f"entry {i}")
        stamps = [e.timestamp for e in self.sink.entries()]
        self.assertEqual(stamps, sorted(stamps))

    def test_snapshot_is_immutable(self):
        self.sink.log("first")
        snapshot = self.sink.entries()
        self.sink.log("second")
        self.assertEqual(len(snapshot), 1)
        self.assertIsInstance(snapshot, tuple)

    def test_subscribe_and_unsubscribe(self):
        received = []
        unsubscribe = self.sink.subscribe(received.append)

        self.sink.log("one")
        unsubscribe()
        self.sink.log("two")

        self.assertEqual([e.message for e in received], ["one"])

    def test_callback_error_does_not_stop_others(self):
        received = []

        def broken(entry):
            raise RuntimeError("boom")

        self.sink.subscribe(broken)
        self.sink.subscribe(received.append)

        with self.assertLogs("rclink.log_sink", level="ERROR"):
            self.sink.log("still delivered")
        self.assertEqual(len(received), 1)
        self.assertEqual(len(self.sink), 1)

    def test_mirrors_to_logging(self):
        with self.assertLogs("rclink.log_sink", level="DEBUG") as captured:
            self.sink.log("Characteristic found")
            self.sink.log("<R90><M0>\n", LogDirection.OUT, level=logging.DEBUG)
            self.sink.log("Reconnect failed", level=logging.ERROR)

        self.assertEqual(captured.records[0].getMessage(), "Characteristic found")
        self.assertEqual(captured.records[0].levelno, logging.INFO)
        self.assertEqual(captured.records[1].getMessage(), "[out] '<R90><M0>\\n'")
        self.assertEqual(captured.records[2].levelno, logging.ERROR)

    def test_concurrent_writers(self):
        """Sequence numbers stay unique and dense under contention."""
        def writer(n):
            for i in range(100):
                self.sink.log(f"{n}-{i}", level=logging.DEBUG)

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual([e.seq for e in self.sink.entries()], list(range(800)))


if __name__ == '__main__':
    unittest.main()
