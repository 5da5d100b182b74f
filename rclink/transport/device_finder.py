from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Union

from bleak import BleakScanner
from bleak.backends.device import BLEDevice
from bleak.exc import BleakError
from bleak.uuids import normalize_uuid_16

from ..config import SCAN_TIMEOUT
from ..errors import NoMatchingDevice, SelectionCancelled

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeviceCandidate:
    """
    One advertising device as seen by the scanner.

    Attributes:
        device: bleak device handle, passed on to BleakClient.
        rssi: Signal strength of the advertisement in dBm, or None.
        service_uuids: Service UUIDs listed in the advertisement.
    """
    device: BLEDevice
    rssi: Optional[int]
    service_uuids: tuple

    @property
    def name(self) -> str:
        return self.device.name or self.device.address

    @property
    def address(self) -> str:
        return self.device.address


Chooser = Callable[
    [Sequence[DeviceCandidate]],
    Union[Optional[DeviceCandidate], Awaitable[Optional[DeviceCandidate]]],
]


def service_uuid(service_id: Union[int, str]) -> str:
    """Expand a 16-bit identifier to the full 128-bit UUID string."""
    if isinstance(service_id, int):
        return normalize_uuid_16(service_id)
    return service_id.lower()


def is_matching_device(service_uuids: Sequence[str], expected_uuid: str) -> bool:
    """
    Decide whether an advertisement describes our car.

    Some backends ignore the scan filter, so the advertised service list is
    checked again here.
    """
    return expected_uuid.lower() in {u.lower() for u in service_uuids}


async def find_devices(
    service_id: Union[int, str],
    *,
    timeout: float = SCAN_TIMEOUT,
) -> List[DeviceCandidate]:
    """
    Scan for devices advertising service_id.

    Returns:
        Candidates sorted by signal strength, strongest first.

    Raises:
        NoMatchingDevice: if the scan itself fails.
    """
    expected = service_uuid(service_id)
    try:
        found = await BleakScanner.discover(
            timeout=timeout,
            return_adv=True,
            service_uuids=[expected],
        )
    except (BleakError, OSError) as e:
        raise NoMatchingDevice(f"Bluetooth scan failed: {e}") from e

    results: List[DeviceCandidate] = []
    for device, adv in found.values():
        uuids = tuple(adv.service_uuids or ())
        if is_matching_device(uuids, expected):
            results.append(DeviceCandidate(device=device, rssi=adv.rssi, service_uuids=uuids))

    results.sort(key=lambda c: c.rssi if c.rssi is not None else -1000, reverse=True)
    return results


async def find_single_device(
    service_id: Union[int, str],
    *,
    timeout: float = SCAN_TIMEOUT,
    chooser: Optional[Chooser] = None,
) -> BLEDevice:
    """
    Select exactly one device.

    Behaviour:
        - 0 matches             -> NoMatchingDevice
        - chooser returns None  -> SelectionCancelled
        - otherwise             -> the chosen device (default: strongest signal)

    The chooser stands in for an operator picking from a list; it may be a
    plain function or a coroutine function.
    """
    candidates = await find_devices(service_id, timeout=timeout)

    if not candidates:
        raise NoMatchingDevice(f"No device advertises service {service_uuid(service_id)}")

    if len(candidates) > 1:
        logger.info(
            "Multiple matching devices found: %s",
            ", ".join(f"{c.name} ({c.rssi} dBm)" for c in candidates),
        )

    if chooser is None:
        return candidates[0].device

    choice: Any = chooser(candidates)
    if inspect.isawaitable(choice):
        choice = await choice

    if choice is None:
        raise SelectionCancelled("Device selection cancelled")

    return choice.device
