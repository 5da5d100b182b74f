"""Transport layer for the remote link."""

from .base import Transport, describe_device
from .ble import BleTransport
from .device_finder import DeviceCandidate, find_devices, find_single_device, service_uuid

__all__ = [
    "Transport",
    "BleTransport",
    "DeviceCandidate",
    "describe_device",
    "find_devices",
    "find_single_device",
    "service_uuid",
]
