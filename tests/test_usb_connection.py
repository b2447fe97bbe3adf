"""Tests for the HID transport backends."""

from unittest.mock import patch

import pytest

from das_keyboard_mcp.errors import DeviceNotFoundError, NotOpenError
from das_keyboard_mcp.transport.usb_connection import DeviceInfo, HIDConnection


def test_pyusb_fallback_matches_enumerated_product():
    info = DeviceInfo(product_id=0x2037, interface_number=1, path=b"1-1:1.1")
    conn = HIDConnection()

    with patch("usb.core.find", return_value=None) as find:
        with pytest.raises(DeviceNotFoundError):
            conn._open_pyusb(info)

    find.assert_called_once_with(idVendor=0x24F0, idProduct=0x2037)
    assert not conn.connected


def test_pyusb_fallback_without_descriptor_matches_vendor():
    conn = HIDConnection()

    with patch("usb.core.find", return_value=None) as find:
        with pytest.raises(DeviceNotFoundError):
            conn._open_pyusb()

    find.assert_called_once_with(idVendor=0x24F0)


def test_close_when_not_open():
    with pytest.raises(NotOpenError):
        HIDConnection().close()
