"""USB connection to an ANT USB stick.

Uses ``pyusb`` + libusb. The USB2 and USB-m sticks expose a single
vendor-specific interface with one bulk IN and one bulk OUT endpoint.
The stick streams messages without framing, so reads return whatever
bytes are available and the caller is responsible for reassembly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)

VENDOR_ID = 0x0FCF
PRODUCT_IDS = (0x1008, 0x1009)  # ANT USB2 stick, ANTUSB-m
INTERFACE = 0
USB_PACKET_SIZE = 64
READ_TIMEOUT_MS = 10
WRITE_TIMEOUT_MS = 500


@dataclass
class DeviceInfo:
    """Basic device identification from USB descriptors."""

    vendor_id: int = VENDOR_ID
    product_id: int = 0
    manufacturer: str = ""
    product: str = ""
    serial_number: str = ""

    def to_dict(self) -> dict:
        return {
            "vendor_id": f"{self.vendor_id:#06x}",
            "product_id": f"{self.product_id:#06x}",
            "manufacturer": self.manufacturer,
            "product": self.product,
            "serial_number": self.serial_number,
        }


class USBConnection:
    """Manages the USB connection to the ANT stick.

    Usage::

        conn = USBConnection()
        if conn.find() and conn.open():
            conn.write(message_bytes)
            data = conn.read(1)
            conn.close()
    """

    def __init__(
        self,
        vendor_id: int = VENDOR_ID,
        product_ids: tuple[int, ...] = PRODUCT_IDS,
    ) -> None:
        self._vendor_id = vendor_id
        self._product_ids = product_ids
        self._device = None
        self._ep_in = None
        self._ep_out = None
        self._connected = False
        self._pending = bytearray()
        self._device_info = DeviceInfo(vendor_id=vendor_id)

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def device_info(self) -> DeviceInfo:
        return self._device_info

    def find(self) -> bool:
        """Locate the first attached stick matching the known product ids."""
        import usb.core

        for product_id in self._product_ids:
            dev = usb.core.find(idVendor=self._vendor_id, idProduct=product_id)
            if dev is not None:
                self._device = dev
                self._device_info.product_id = product_id
                logger.debug(
                    "Found ANT stick %04x:%04x", self._vendor_id, product_id
                )
                return True

        logger.debug("No ANT stick found for vendor %04x", self._vendor_id)
        return False

    def open(self) -> bool:
        """Claim the stick's interface and locate its bulk endpoints.

        Returns:
            True if the stick is ready for reads and writes.
        """
        if self._connected:
            return True
        if self._device is None and not self.find():
            return False

        import usb.core
        import usb.util

        dev = self._device
        try:
            if dev.is_kernel_driver_active(INTERFACE):
                dev.detach_kernel_driver(INTERFACE)
        except (NotImplementedError, usb.core.USBError) as e:
            logger.debug("Could not check kernel driver: %s", e)

        try:
            dev.set_configuration()
            usb.util.claim_interface(dev, INTERFACE)
            intf = dev.get_active_configuration()[(INTERFACE, 0)]
        except usb.core.USBError as e:
            logger.warning("Could not claim ANT stick: %s", e)
            return False

        self._ep_in = usb.util.find_descriptor(
            intf,
            custom_match=lambda ep: usb.util.endpoint_direction(ep.bEndpointAddress)
            == usb.util.ENDPOINT_IN,
        )
        self._ep_out = usb.util.find_descriptor(
            intf,
            custom_match=lambda ep: usb.util.endpoint_direction(ep.bEndpointAddress)
            == usb.util.ENDPOINT_OUT,
        )
        if self._ep_in is None or self._ep_out is None:
            logger.warning("ANT stick is missing bulk endpoints")
            usb.util.release_interface(dev, INTERFACE)
            return False

        self._pending.clear()
        self._connected = True
        self._device_info = DeviceInfo(
            vendor_id=self._vendor_id,
            product_id=self._device_info.product_id,
            manufacturer=_usb_string(dev, dev.iManufacturer),
            product=_usb_string(dev, dev.iProduct),
            serial_number=_usb_string(dev, dev.iSerialNumber),
        )

        logger.info(
            "Connected to %s %s",
            self._device_info.manufacturer,
            self._device_info.product,
        )
        return True

    def close(self) -> None:
        """Release the stick."""
        if not self._connected:
            return

        try:
            import usb.util

            usb.util.release_interface(self._device, INTERFACE)
            usb.util.dispose_resources(self._device)
        except Exception as e:
            logger.warning("Error closing device: %s", e)
        finally:
            self._device = None
            self._ep_in = None
            self._ep_out = None
            self._pending.clear()
            self._connected = False
            logger.info("Disconnected")

    def write(self, data: bytes) -> int:
        """Write raw message bytes to the stick.

        Returns:
            Number of bytes written.

        Raises:
            ConnectionError: If not connected.
            IOError: If the stick did not accept the write.
        """
        if not self._connected:
            raise ConnectionError("Not connected to ANT stick")

        import usb.core

        try:
            return self._ep_out.write(data, timeout=WRITE_TIMEOUT_MS)
        except usb.core.USBError as e:
            raise IOError(f"Write to ANT stick failed: {e}") from e

    def read(self, max_bytes: int = 1, timeout_ms: int = READ_TIMEOUT_MS) -> bytes:
        """Read up to ``max_bytes`` from the stick.

        A USB transfer may return more bytes than requested; the surplus is
        kept and served by later calls.

        Returns:
            The bytes read, or ``b""`` if none arrived within ``timeout_ms``.

        Raises:
            ConnectionError: If not connected.
        """
        if not self._connected:
            raise ConnectionError("Not connected to ANT stick")

        if not self._pending:
            import usb.core

            try:
                data = self._ep_in.read(USB_PACKET_SIZE, timeout=timeout_ms)
            except usb.core.USBTimeoutError:
                return b""
            except usb.core.USBError as e:
                logger.debug("Read error: %s", e)
                return b""
            self._pending.extend(data)

        chunk = bytes(self._pending[:max_bytes])
        del self._pending[:max_bytes]
        return chunk


def _usb_string(dev, index: int) -> str:
    import usb.util

    if not index:
        return ""
    try:
        return usb.util.get_string(dev, index) or ""
    except Exception:
        return ""
