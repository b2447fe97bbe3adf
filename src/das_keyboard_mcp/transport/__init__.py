"""USB HID transport."""

from .usb_connection import HIDConnection, DeviceInfo, enumerate_devices
