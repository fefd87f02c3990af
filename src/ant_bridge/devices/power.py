"""ANT+ bicycle power device.

The bridge acts as a power meter: the equipment controller pushes its
current power and cadence in through the setters, and every time the
stick reports a transmit slot (``EVENT_TX``) the next power-only data page
is queued for broadcast.
"""

from __future__ import annotations

import logging
import threading
from typing import Protocol

from ..models.channel import ChannelConfig
from ..models.readings import TrainerState
from ..protocol.framing import Frame
from ..protocol.messages import (
    EVENT_OFFSET_MESSAGE_CODE,
    EVENT_OFFSET_MESSAGE_ID,
    ChannelEventCode,
    build_assign_channel,
    build_broadcast_data,
    build_channel_id,
    build_channel_period,
    build_channel_rf_frequency,
    build_close_channel,
    build_open_channel,
    write_message,
)

logger = logging.getLogger(__name__)

PAGE_POWER_ONLY = 0x10
PEDAL_POWER_NOT_USED = 0xFF
RF_EVENT_MESSAGE_ID = 0x01  # CHANNEL_EVENT byte 1 for RF events
MAX_POWER = 0xFFFF
MAX_CADENCE = 0xFE  # 0xFF means invalid


class Writer(Protocol):
    def write(self, data: bytes) -> int: ...


class DeviceHandler(Protocol):
    """Consumer of routed channel events."""

    def configure_channel(self) -> None: ...

    def close_channel(self) -> None: ...

    def on_channel_event(self, frame: Frame) -> None: ...

    def on_ack_data(self, frame: Frame) -> None: ...

    def set_target_power(self, value: int) -> None: ...

    def set_target_cadence(self, value: int) -> None: ...


def build_power_only_page(
    event_count: int, cadence: int, accumulated_power: int, power: int
) -> bytes:
    """Build the 8-byte standard power-only data page (0x10)."""
    return bytes(
        [
            PAGE_POWER_ONLY,
            event_count & 0xFF,
            PEDAL_POWER_NOT_USED,
            cadence & 0xFF,
        ]
    ) + (accumulated_power & 0xFFFF).to_bytes(2, "little") + (
        power & 0xFFFF
    ).to_bytes(2, "little")


class PowerDevice:
    """Bicycle power master on a single channel.

    Setters may be called from any thread; the channel callbacks are
    called from the receiver thread.

    Args:
        transport: Anything with ``write(bytes) -> int``.
        channel: Radio parameters for the channel this device occupies.
    """

    def __init__(self, transport: Writer, channel: ChannelConfig | None = None) -> None:
        self._transport = transport
        self.channel = channel or ChannelConfig()
        self._lock = threading.Lock()
        self._state = TrainerState()
        self._event_count = 0
        self._accumulated_power = 0
        self.last_ack: bytes = b""

    @property
    def state(self) -> TrainerState:
        with self._lock:
            return TrainerState(power=self._state.power, cadence=self._state.cadence)

    def configure_channel(self) -> None:
        """Assign, identify, tune and open the channel."""
        ch = self.channel
        messages = [
            build_assign_channel(ch.number, ch.channel_type, ch.network),
            build_channel_id(
                ch.number, ch.device_number, ch.device_type, ch.transmission_type
            ),
            build_channel_period(ch.number, ch.period),
            build_channel_rf_frequency(ch.number, ch.rf_frequency),
            build_open_channel(ch.number),
        ]
        for message in messages:
            write_message(self._transport, message)
        logger.info(
            "Opened power channel %d (device %d)", ch.number, ch.device_number
        )

    def close_channel(self) -> None:
        """Stop broadcasting on the channel."""
        write_message(self._transport, build_close_channel(self.channel.number))
        logger.info("Closed power channel %d", self.channel.number)

    def on_channel_event(self, frame: Frame) -> None:
        payload = frame.payload
        if len(payload) <= EVENT_OFFSET_MESSAGE_CODE:
            return

        message_id = payload[EVENT_OFFSET_MESSAGE_ID]
        code = payload[EVENT_OFFSET_MESSAGE_CODE]

        if message_id == RF_EVENT_MESSAGE_ID:
            if code == ChannelEventCode.EVENT_TX:
                write_message(self._transport, self._next_broadcast())
            elif code == ChannelEventCode.EVENT_CHANNEL_CLOSED:
                logger.warning("Channel %d closed by stick", frame.channel)
            return

        # Response to one of our commands
        if code != ChannelEventCode.RESPONSE_NO_ERROR:
            logger.warning(
                "Command 0x%02X on channel %d failed with code 0x%02X",
                message_id,
                frame.channel,
                code,
            )

    def on_ack_data(self, frame: Frame) -> None:
        self.last_ack = frame.payload[1:]
        logger.debug("Ack data on channel %d: %s", frame.channel, self.last_ack.hex(" "))

    def set_target_power(self, value: int) -> None:
        with self._lock:
            self._state.power = max(0, min(int(value), MAX_POWER))

    def set_target_cadence(self, value: int) -> None:
        with self._lock:
            self._state.cadence = max(0, min(int(value), MAX_CADENCE))

    def _next_broadcast(self) -> bytes:
        with self._lock:
            self._event_count = (self._event_count + 1) & 0xFF
            self._accumulated_power = (
                self._accumulated_power + self._state.power
            ) & 0xFFFF
            page = build_power_only_page(
                self._event_count,
                self._state.cadence,
                self._accumulated_power,
                self._state.power,
            )
        return build_broadcast_data(self.channel.number, page)
