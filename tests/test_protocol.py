"""Unit tests for the protocol layer.

Tests verify:
- Input vector to command mapping (angle, speed, direction)
- Frame serialization
- Fragmentation at the 20 byte boundary
- Notification decoding, including malformed payloads
"""
import unittest

from rclink.errors import DecodeFailed
from rclink.models import CommandFrame, Direction, InputVector
from rclink.protocol import (
    CommandSerializer,
    FrameProtocol,
    NotificationDecoder,
    Protocol,
)


def to_command(x, y):
    return CommandSerializer.to_command(InputVector(x=x, y=y))


class TestServoAngle(unittest.TestCase):
    """Steering axis mapping."""

    def test_center(self):
        self.assertEqual(to_command(0.0, 0.0).servo_angle, 90)

    def test_extremes(self):
        self.assertEqual(to_command(1.0, 0.0).servo_angle, 180)
        self.assertEqual(to_command(-1.0, 0.0).servo_angle, 0)

    def test_partial(self):
        self.assertEqual(to_command(0.5, 0.0).servo_angle, 135)
        self.assertEqual(to_command(-0.5, 0.0).servo_angle, 45)

    def test_half_rounds_up(self):
        """0.25 * 90 = 22.5 rounds away from zero, not to even."""
        self.assertEqual(to_command(0.25, 0.0).servo_angle, 113)
        self.assertEqual(to_command(-0.25, 0.0).servo_angle, 67)

    def test_range_and_monotonic(self):
        """Angle stays in [0, 180] and never decreases as x grows."""
        previous = -1
        for i in range(-100, 101):
            angle = to_command(i / 100.0, 0.0).servo_angle
            self.assertGreaterEqual(angle, 0)
            self.assertLessEqual(angle, 180)
            self.assertGreaterEqual(angle, previous)
            previous = angle

    def test_out_of_range_clamped(self):
        self.assertEqual(to_command(5.0, 0.0).servo_angle, 180)
        self.assertEqual(to_command(-5.0, 0.0).servo_angle, 0)


class TestMotorSpeed(unittest.TestCase):
    """Throttle axis mapping."""

    def test_speed_ignores_sign(self):
        self.assertEqual(to_command(0.0, 1.0).motor_speed, 255)
        self.assertEqual(to_command(0.0, -1.0).motor_speed, 255)
        self.assertEqual(to_command(0.0, 0.0).motor_speed, 0)

    def test_half_rounds_up(self):
        """0.5 * 255 = 127.5 -> 128."""
        self.assertEqual(to_command(0.0, 0.5).motor_speed, 128)
        self.assertEqual(to_command(0.0, -0.5).motor_speed, 128)

    def test_speed_grid(self):
        for i in range(-20, 21):
            y = i / 20.0
            expected = int(abs(y) * 255 + 0.5)
            self.assertEqual(to_command(0.0, y).motor_speed, expected)

    def test_out_of_range_clamped(self):
        self.assertEqual(to_command(0.0, 2.0).motor_speed, 255)
        self.assertEqual(to_command(0.0, -2.0).motor_speed, 255)


class TestDirection(unittest.TestCase):
    """Direction derives from the throttle sign."""

    def test_forward(self):
        self.assertEqual(to_command(0.0, 0.3).direction, Direction.FORWARD)

    def test_zero_is_forward(self):
        self.assertEqual(to_command(0.0, 0.0).direction, Direction.FORWARD)
        self.assertEqual(to_command(0.0, -0.0).direction, Direction.FORWARD)

    def test_backward(self):
        self.assertEqual(to_command(0.0, -0.01).direction, Direction.BACKWARD)


class TestSerialization(unittest.TestCase):
    """Frame and text serialization."""

    def test_full_forward_frame(self):
        """{x:0, y:1} -> <R90><M255>\\n, 12 bytes, one chunk."""
        frame = to_command(0.0, 1.0)
        data = CommandSerializer.serialize_frame(frame)
        self.assertEqual(data, b"<R90><M255>\n")
        self.assertEqual(len(data), 12)
        self.assertEqual(CommandSerializer.fragment(data), [data])
        self.assertEqual(frame.direction, Direction.FORWARD)

    def test_left_reverse_frame(self):
        """{x:-1, y:-0.5} -> <R0><M128>\\n, backward."""
        frame = to_command(-1.0, -0.5)
        self.assertEqual(frame, CommandFrame(0, 128, Direction.BACKWARD))
        self.assertEqual(CommandSerializer.serialize_frame(frame), b"<R0><M128>\n")

    def test_serialize_text(self):
        self.assertEqual(CommandSerializer.serialize_text("LIGHTS ON"), b"LIGHTS ON\n")

    def test_serialize_empty_text(self):
        """Empty text sends nothing."""
        self.assertEqual(CommandSerializer.serialize_text(""), b"")


class TestFragmentation(unittest.TestCase):
    """Raw byte-range fragmentation."""

    def test_25_byte_frame_two_chunks(self):
        data = b"<R180><M255><R180><M25>\n"
        data = data + b"x" * (25 - len(data))
        self.assertEqual(len(data), 25)
        chunks = CommandSerializer.fragment(data)
        self.assertEqual(len(chunks), 2)
        self.assertEqual(len(chunks[0]), 20)
        self.assertEqual(len(chunks[1]), 5)

    def test_concatenation_restores_frame(self):
        for length in (1, 13, 19, 20, 21, 40, 41, 77):
            data = bytes((65 + i % 26) for i in range(length - 1)) + b"\n"
            chunks = CommandSerializer.fragment(data)
            self.assertEqual(b"".join(chunks), data)
            self.assertTrue(all(1 <= len(c) <= 20 for c in chunks))

    def test_tags_may_straddle_chunks(self):
        """Split ignores field boundaries."""
        data = b"<R123><M234><R123><M234>\n"
        chunks = CommandSerializer.fragment(data)
        self.assertEqual(chunks[0], b"<R123><M234><R123><M")
        self.assertEqual(chunks[1], b"234>\n")

    def test_empty(self):
        self.assertEqual(CommandSerializer.fragment(b""), [])

    def test_custom_chunk_size(self):
        self.assertEqual(CommandSerializer.fragment(b"abcdefg", 3), [b"abc", b"def", b"g"])

    def test_invalid_chunk_size(self):
        with self.assertRaises(ValueError):
            CommandSerializer.fragment(b"abc", 0)


class TestNotificationDecoder(unittest.TestCase):
    """Inbound decoding."""

    def test_text_verbatim(self):
        """Decoded text is not stripped or parsed."""
        self.assertEqual(NotificationDecoder.decode(b"BATT 7.4V\r\n"), "BATT 7.4V\r\n")

    def test_bytearray(self):
        self.assertEqual(NotificationDecoder.decode(bytearray(b"ok")), "ok")

    def test_utf8(self):
        self.assertEqual(NotificationDecoder.decode("90°".encode("utf-8")), "90°")

    def test_malformed(self):
        """Invalid UTF-8 raises DecodeFailed with a best-effort text."""
        with self.assertRaises(DecodeFailed) as ctx:
            NotificationDecoder.decode(b"ok\xff\xfe!")
        self.assertEqual(ctx.exception.text, "ok\ufffd\ufffd!")


class TestFrameProtocol(unittest.TestCase):
    """FrameProtocol wraps serializer and decoder."""

    def test_is_protocol(self):
        self.assertIsInstance(FrameProtocol(), Protocol)
        self.assertEqual(FrameProtocol().name, "frame")

    def test_protocol_is_abstract(self):
        with self.assertRaises(TypeError):
            Protocol()

    def test_round_trip_through_protocol(self):
        protocol = FrameProtocol()
        frame = protocol.to_command(InputVector(x=0.0, y=1.0))
        self.assertEqual(protocol.encode_command(frame), b"<R90><M255>\n")
        self.assertEqual(protocol.encode_text("hi"), b"hi\n")
        self.assertEqual(protocol.decode_notification(b"pong"), "pong")

    def test_custom_chunk_size(self):
        protocol = FrameProtocol(max_chunk=5)
        self.assertEqual(protocol.fragment(b"<R90><M255>\n"), [b"<R90>", b"<M255", b">\n"])


if __name__ == '__main__':
    unittest.main()
