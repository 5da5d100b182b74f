"""Unit tests for BLE device discovery with a mocked scanner."""
import unittest
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

from bleak.exc import BleakError

from rclink.errors import NoMatchingDevice, SelectionCancelled
from rclink.transport.device_finder import (
    DeviceCandidate,
    find_devices,
    find_single_device,
    is_matching_device,
    service_uuid,
)

SERVICE_UUID = "0000ffe0-0000-1000-8000-00805f9b34fb"
OTHER_UUID = "0000180f-0000-1000-8000-00805f9b34fb"


def advert(name, address, rssi, uuids=(SERVICE_UUID,)):
    device = SimpleNamespace(name=name, address=address)
    adv = SimpleNamespace(rssi=rssi, service_uuids=list(uuids))
    return address, (device, adv)


def scan_result(*entries):
    return dict(entries)


class TestHelpers(unittest.TestCase):

    def test_service_uuid_from_int(self):
        self.assertEqual(service_uuid(0xFFE0), SERVICE_UUID)
        self.assertEqual(service_uuid(0xFFE1), "0000ffe1-0000-1000-8000-00805f9b34fb")

    def test_service_uuid_from_string(self):
        self.assertEqual(service_uuid(SERVICE_UUID.upper()), SERVICE_UUID)

    def test_is_matching_device(self):
        self.assertTrue(is_matching_device([OTHER_UUID, SERVICE_UUID.upper()], SERVICE_UUID))
        self.assertFalse(is_matching_device([OTHER_UUID], SERVICE_UUID))
        self.assertFalse(is_matching_device([], SERVICE_UUID))

    def test_candidate_name_falls_back_to_address(self):
        candidate = DeviceCandidate(
            device=SimpleNamespace(name=None, address="AA:BB"),
            rssi=-40,
            service_uuids=(SERVICE_UUID,),
        )
        self.assertEqual(candidate.name, "AA:BB")


class TestFindDevices(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        patcher = patch(
            "rclink.transport.device_finder.BleakScanner.discover",
            new_callable=AsyncMock,
        )
        self.discover = patcher.start()
        self.addCleanup(patcher.stop)

    async def test_filters_and_sorts_by_signal(self):
        self.discover.return_value = scan_result(
            advert("Far car", "01", -80),
            advert("Heart rate", "02", -30, uuids=(OTHER_UUID,)),
            advert("Near car", "03", -45),
            advert("Silent", "04", None),
        )

        candidates = await find_devices(0xFFE0, timeout=0.5)

        self.assertEqual([c.name for c in candidates], ["Near car", "Far car", "Silent"])
        self.discover.assert_awaited_once_with(
            timeout=0.5,
            return_adv=True,
            service_uuids=[SERVICE_UUID],
        )

    async def test_scan_failure(self):
        self.discover.side_effect = BleakError("adapter off")
        with self.assertRaises(NoMatchingDevice) as ctx:
            await find_devices(0xFFE0)
        self.assertIn("adapter off", str(ctx.exception))

    async def test_no_device(self):
        self.discover.return_value = {}
        with self.assertRaises(NoMatchingDevice):
            await find_single_device(0xFFE0)

    async def test_default_picks_strongest(self):
        self.discover.return_value = scan_result(
            advert("Far car", "01", -80),
            advert("Near car", "03", -45),
        )
        device = await find_single_device(0xFFE0)
        self.assertEqual(device.name, "Near car")

    async def test_chooser(self):
        self.discover.return_value = scan_result(
            advert("Far car", "01", -80),
            advert("Near car", "03", -45),
        )
        device = await find_single_device(0xFFE0, chooser=lambda candidates: candidates[-1])
        self.assertEqual(device.name, "Far car")

    async def test_async_chooser(self):
        self.discover.return_value = scan_result(advert("Car", "01", -60))

        async def choose(candidates):
            return candidates[0]

        device = await find_single_device(0xFFE0, chooser=choose)
        self.assertEqual(device.address, "01")

    async def test_chooser_cancels(self):
        self.discover.return_value = scan_result(advert("Car", "01", -60))
        with self.assertRaises(SelectionCancelled):
            await find_single_device(0xFFE0, chooser=lambda candidates: None)


if __name__ == '__main__':
    unittest.main()
