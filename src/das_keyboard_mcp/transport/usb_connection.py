"""USB HID connection to the Das Keyboard 4Q.

Supports both ``hidapi`` (preferred) and ``pyusb`` backends.
The keyboard exposes several HID interfaces; the lighting protocol runs on
interface 1 as 8-byte output reports (SET_REPORT) and 8-byte feature reports
(GET_REPORT), both with report id 1.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator

from ..errors import DeviceNotFoundError, NotOpenError, TransportError

logger = logging.getLogger(__name__)

VENDOR_ID = 0x24F0
KEYBOARD_INTERFACE = 1
REPORT_SIZE = 8
CTRL_TIMEOUT_MS = 1000

# HID class requests
_REQ_GET_REPORT = 0x01
_REQ_SET_REPORT = 0x09
_REPORT_TYPE_OUTPUT = 0x02
_REPORT_TYPE_FEATURE = 0x03


@dataclass
class DeviceInfo:
    """Basic device identification from USB descriptors."""

    vendor_id: int = VENDOR_ID
    product_id: int = 0
    interface_number: int = -1
    manufacturer: str = ""
    product: str = ""
    serial_number: str = ""
    path: bytes = b""

    def to_dict(self) -> dict:
        return {
            "vendor_id": f"0x{self.vendor_id:04X}",
            "product_id": f"0x{self.product_id:04X}",
            "interface": self.interface_number,
            "manufacturer": self.manufacturer,
            "product": self.product,
            "serial_number": self.serial_number,
        }


def enumerate_devices(
    vendor_id: int = VENDOR_ID,
    interface: int | None = KEYBOARD_INTERFACE,
) -> Iterator[DeviceInfo]:
    """Yield the HID interfaces of attached keyboards.

    The scan is lazy and runs again from scratch on every call.

    Args:
        vendor_id: USB vendor id to match.
        interface: Only yield this interface number, or all if ``None``.
    """
    import hid

    for d in hid.enumerate(vendor_id, 0):
        if interface is not None and d.get("interface_number") != interface:
            continue
        yield DeviceInfo(
            vendor_id=d.get("vendor_id", vendor_id),
            product_id=d.get("product_id", 0),
            interface_number=d.get("interface_number", -1),
            manufacturer=d.get("manufacturer_string") or "",
            product=d.get("product_string") or "",
            serial_number=d.get("serial_number") or "",
            path=d.get("path") or b"",
        )


class HIDConnection:
    """Manages the USB HID connection to the keyboard.

    Usage::

        conn = HIDConnection()
        conn.open()
        conn.send(1, report)
        data = conn.receive(1)
        conn.close()
    """

    def __init__(
        self,
        vendor_id: int = VENDOR_ID,
        interface: int = KEYBOARD_INTERFACE,
    ) -> None:
        self._vendor_id = vendor_id
        self._interface = interface
        self._device = None
        self._backend: str = ""
        self._connected = False
        self._device_info = DeviceInfo(vendor_id=vendor_id, interface_number=interface)

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def backend(self) -> str:
        return self._backend

    @property
    def device_info(self) -> DeviceInfo:
        return self._device_info

    def open(self, device: DeviceInfo | None = None) -> DeviceInfo:
        """Open a connection to the keyboard, trying hidapi first, then pyusb.

        Args:
            device: A descriptor from :func:`enumerate_devices`. If omitted,
                the first matching interface is used.

        Returns:
            DeviceInfo with USB descriptor information.

        Raises:
            DeviceNotFoundError: If no matching device exists.
            TransportError: If a device was found but could not be opened.
        """
        try:
            return self._open_hidapi(device)
        except DeviceNotFoundError:
            raise
        except Exception as e:
            logger.debug("hidapi backend failed: %s, trying pyusb", e)

        try:
            return self._open_pyusb(device)
        except DeviceNotFoundError:
            raise
        except Exception as e:
            raise TransportError(
                f"Could not open keyboard "
                f"({self._vendor_id:#06x}, interface {self._interface}). "
                f"Ensure the device is connected and you have permissions. "
                f"Last error: {e}"
            ) from e

    def _open_hidapi(self, device: DeviceInfo | None) -> DeviceInfo:
        """Open using the hidapi library."""
        import hid

        if device is None:
            device = next(enumerate_devices(self._vendor_id, self._interface), None)
            if device is None:
                raise DeviceNotFoundError(
                    f"No keyboard with vendor id {self._vendor_id:#06x} "
                    f"on interface {self._interface}"
                )

        dev = hid.device()
        dev.open_path(device.path)
        dev.set_nonblocking(False)

        self._device = dev
        self._backend = "hidapi"
        self._connected = True
        self._device_info = device

        logger.info(
            "Connected via hidapi: %s %s",
            self._device_info.manufacturer,
            self._device_info.product,
        )
        return self._device_info

    def _open_pyusb(self, device: DeviceInfo | None = None) -> DeviceInfo:
        """Open using pyusb + libusb.

        When ``device`` is given, only a device with the same product id
        is considered.
        """
        import usb.core
        import usb.util

        match = {"idVendor": self._vendor_id}
        if device is not None and device.product_id:
            match["idProduct"] = device.product_id

        dev = usb.core.find(**match)
        if dev is None:
            raise DeviceNotFoundError(f"No USB device matching {match}")

        # Detach kernel driver if needed
        if dev.is_kernel_driver_active(self._interface):
            dev.detach_kernel_driver(self._interface)

        usb.util.claim_interface(dev, self._interface)

        self._device = dev
        self._backend = "pyusb"
        self._connected = True
        self._device_info = DeviceInfo(
            vendor_id=self._vendor_id,
            product_id=dev.idProduct,
            interface_number=self._interface,
            manufacturer=usb.util.get_string(dev, dev.iManufacturer) or "",
            product=usb.util.get_string(dev, dev.iProduct) or "",
        )

        logger.info(
            "Connected via pyusb: %s %s",
            self._device_info.manufacturer,
            self._device_info.product,
        )
        return self._device_info

    def close(self) -> None:
        """Close the USB connection."""
        if not self._connected:
            raise NotOpenError("Not connected to device")

        try:
            if self._backend == "hidapi":
                self._device.close()
            elif self._backend == "pyusb":
                import usb.util
                usb.util.release_interface(self._device, self._interface)
                usb.util.dispose_resources(self._device)
        except Exception as e:
            logger.warning("Error closing device: %s", e)
        finally:
            self._device = None
            self._connected = False
            logger.info("Disconnected")

    def send(self, block_id: int, data: bytes) -> None:
        """Write one output report.

        Args:
            block_id: HID report id.
            data: The report, including the leading report id byte.

        Raises:
            NotOpenError: If not connected.
            TransportError: If the write fails.
        """
        if not self._connected:
            raise NotOpenError("Not connected to device")

        if len(data) != REPORT_SIZE:
            raise ValueError(f"HID report must be {REPORT_SIZE} bytes, got {len(data)}")

        try:
            if self._backend == "hidapi":
                written = self._device.write(data)
                if written < 0:
                    raise OSError(self._device.error())
            elif self._backend == "pyusb":
                self._device.ctrl_transfer(
                    0x21,
                    _REQ_SET_REPORT,
                    (_REPORT_TYPE_OUTPUT << 8) | block_id,
                    self._interface,
                    data,
                    timeout=CTRL_TIMEOUT_MS,
                )
            else:
                raise RuntimeError(f"Unknown backend: {self._backend}")
        except Exception as e:
            raise TransportError(f"send({block_id}) failed: {e}") from e

    def receive(self, block_id: int) -> bytes:
        """Read one 8-byte report.

        Returns:
            The report contents without the report id. All zero bytes if the
            keyboard has nothing to say.

        Raises:
            NotOpenError: If not connected.
            TransportError: If the read fails.
        """
        if not self._connected:
            raise NotOpenError("Not connected to device")

        try:
            if self._backend == "hidapi":
                # hidapi returns the report id as the first byte
                data = self._device.get_feature_report(block_id, REPORT_SIZE + 1)
                if not data:
                    raise OSError(self._device.error())
                return bytes(data[1:])
            elif self._backend == "pyusb":
                data = self._device.ctrl_transfer(
                    0xA1,
                    _REQ_GET_REPORT,
                    (_REPORT_TYPE_FEATURE << 8) | block_id,
                    self._interface,
                    REPORT_SIZE,
                    timeout=CTRL_TIMEOUT_MS,
                )
                return bytes(data)
            else:
                raise RuntimeError(f"Unknown backend: {self._backend}")
        except Exception as e:
            raise TransportError(f"receive({block_id}) failed: {e}") from e
