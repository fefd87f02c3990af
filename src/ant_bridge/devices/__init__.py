"""Channel device handlers."""

from .power import DeviceHandler, PowerDevice
