"""Transport layer: byte-level I/O to the ANT stick."""

from .usb_connection import USBConnection
