#!/usr/bin/env python3
"""
Interactive Remote Link Test Script.

Connects to the car over BLE, drives a short steering/throttle pattern and
prints what the car sends back.
"""

import asyncio
import sys
import time
import logging
from pathlib import Path

# Add package to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from rclink import LogDirection, RemoteLink

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)

# (x, y, seconds)
PATTERN = [
    (0.0, 0.5, 2.0),
    (1.0, 0.5, 1.5),
    (-1.0, 0.5, 1.5),
    (0.0, -0.3, 2.0),
    (0.0, 0.0, 1.0),
]


async def choose(candidates):
    """Let the operator pick a car when more than one is in range.

    input() runs in an executor so the link's event loop keeps delivering
    notifications while the prompt is open.
    """
    if len(candidates) == 1:
        return candidates[0]

    for i, candidate in enumerate(candidates):
        print(f"  [{i}] {candidate.name} ({candidate.address}, {candidate.rssi} dBm)")
    loop = asyncio.get_running_loop()
    answer = await loop.run_in_executor(None, input, "Select a device (empty to cancel): ")
    answer = answer.strip()
    if not answer:
        return None
    return candidates[int(answer)]


def print_inbound(entry):
    if entry.direction is LogDirection.IN:
        print(f"\nReceived: {entry.message!r}")


def main():
    print("Initializing Remote Link...")
    link = RemoteLink(chooser=choose)
    link.subscribe_logs(print_inbound)

    print("\nScanning and connecting...")
    if not link.connect(timeout=60.0):
        print("Failed to connect! Is the car powered on?")
        link.close()
        return

    print("Connected!")

    try:
        for x, y, seconds in PATTERN:
            link.set_input_vector(x, y)
            command = link.command
            print(f"\rServo: {command.servo_angle:3d} | "
                  f"Speed: {command.motor_speed:3d} | "
                  f"Direction: {command.direction.value:8s} | "
                  f"State: {link.state.value}", end="")
            sys.stdout.flush()
            time.sleep(seconds)

        print("\n\nSending a text command...")
        link.send("PING")
        time.sleep(1.0)

    except KeyboardInterrupt:
        print("\nInterrupted by user.")
    finally:
        print("\nDisconnecting...")
        link.set_input_vector(0.0, 0.0)
        link.close()
        print("Done.")

if __name__ == "__main__":
    main()
