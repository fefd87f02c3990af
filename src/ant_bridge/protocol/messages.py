"""Message identifiers and host-to-stick command builders.

Each message is identified by a single-byte id. Channel-scoped messages
carry the channel number in the first payload byte; stick-wide control
messages (version, capabilities, serial number) do not.
"""

from __future__ import annotations

from enum import IntEnum

from .framing import build_frame

# ANT+ managed network key, loaded into network 0.
ANT_PLUS_NETWORK_KEY = bytes([0xB9, 0xA5, 0x21, 0xFB, 0xBD, 0x72, 0xC3, 0x45])


class MessageId(IntEnum):
    """Message identifiers used on the serial interface."""

    # Configuration
    UNASSIGN_CHANNEL = 0x41
    ASSIGN_CHANNEL = 0x42
    CHANNEL_PERIOD = 0x43
    SEARCH_TIMEOUT = 0x44
    CHANNEL_RF_FREQUENCY = 0x45
    SET_NETWORK = 0x46
    TRANSMIT_POWER = 0x47
    CHANNEL_ID = 0x51

    # Control
    SYSTEM_RESET = 0x4A
    OPEN_CHANNEL = 0x4B
    CLOSE_CHANNEL = 0x4C
    REQUEST_MESSAGE = 0x4D

    # Data
    BROADCAST_DATA = 0x4E
    ACK_DATA = 0x4F
    BURST_DATA = 0x50

    # Events and notifications
    CHANNEL_EVENT = 0x40
    CHANNEL_STATUS = 0x52
    STARTUP_NOTIFICATION = 0x6F

    # Requested responses
    VERSION = 0x3E
    CAPABILITIES = 0x54
    SERIAL_NUMBER = 0x61


class ChannelEventCode(IntEnum):
    """Message codes carried by CHANNEL_EVENT messages."""

    RESPONSE_NO_ERROR = 0x00
    EVENT_RX_SEARCH_TIMEOUT = 0x01
    EVENT_RX_FAIL = 0x02
    EVENT_TX = 0x03
    EVENT_TRANSFER_RX_FAILED = 0x04
    EVENT_TRANSFER_TX_COMPLETED = 0x05
    EVENT_TRANSFER_TX_FAILED = 0x06
    EVENT_CHANNEL_CLOSED = 0x07
    EVENT_RX_FAIL_GO_TO_SEARCH = 0x08
    EVENT_CHANNEL_COLLISION = 0x09
    EVENT_TRANSFER_TX_START = 0x0A


class ChannelType(IntEnum):
    """Channel direction passed to ASSIGN_CHANNEL."""

    BIDIRECTIONAL_RECEIVE = 0x00
    BIDIRECTIONAL_TRANSMIT = 0x10


# Payload offsets within a CHANNEL_EVENT message
EVENT_OFFSET_MESSAGE_ID = 1
EVENT_OFFSET_MESSAGE_CODE = 2

# Stick-wide messages that never address a channel
CONTROL_MESSAGE_IDS = frozenset(
    {
        MessageId.STARTUP_NOTIFICATION,
        MessageId.VERSION,
        MessageId.CAPABILITIES,
        MessageId.SERIAL_NUMBER,
    }
)

# Messages that always address a channel
CHANNEL_MESSAGE_IDS = frozenset(
    {
        MessageId.ACK_DATA,
        MessageId.BROADCAST_DATA,
        MessageId.CHANNEL_STATUS,
        MessageId.CHANNEL_ID,
        MessageId.BURST_DATA,
    }
)


def build_message(message_id: MessageId, payload: bytes) -> bytes:
    """Build a wire message for a known message id."""
    return build_frame(message_id.value, payload)


def build_set_network_key(
    network: int = 0, key: bytes = ANT_PLUS_NETWORK_KEY
) -> bytes:
    """Build a SET_NETWORK command loading an 8-byte key into ``network``."""
    if len(key) != 8:
        raise ValueError(f"Network key must be 8 bytes, got {len(key)}")
    if not 0 <= network <= 0xFF:
        raise ValueError(f"Network number must be 0-255, got {network}")
    return build_message(MessageId.SET_NETWORK, bytes([network]) + key)


def build_assign_channel(
    channel: int, channel_type: ChannelType, network: int = 0
) -> bytes:
    return build_message(
        MessageId.ASSIGN_CHANNEL, bytes([channel, channel_type, network])
    )


def build_channel_id(
    channel: int, device_number: int, device_type: int, transmission_type: int
) -> bytes:
    """Build a CHANNEL_ID command.

    Args:
        channel: Channel number.
        device_number: 16-bit device number, sent little-endian.
        device_type: Device type (7 bits; bit 7 is the pairing flag).
        transmission_type: Transmission type byte.
    """
    if not 0 <= device_number <= 0xFFFF:
        raise ValueError(f"Device number must be 0-65535, got {device_number}")
    return build_message(
        MessageId.CHANNEL_ID,
        bytes([channel])
        + device_number.to_bytes(2, "little")
        + bytes([device_type, transmission_type]),
    )


def build_channel_period(channel: int, period: int) -> bytes:
    """Build a CHANNEL_PERIOD command (period in 1/32768 s units)."""
    if not 0 <= period <= 0xFFFF:
        raise ValueError(f"Channel period must be 0-65535, got {period}")
    return build_message(
        MessageId.CHANNEL_PERIOD, bytes([channel]) + period.to_bytes(2, "little")
    )


def build_channel_rf_frequency(channel: int, frequency: int) -> bytes:
    """Build a CHANNEL_RF_FREQUENCY command (offset in MHz from 2400)."""
    if not 0 <= frequency <= 124:
        raise ValueError(f"RF frequency offset must be 0-124, got {frequency}")
    return build_message(MessageId.CHANNEL_RF_FREQUENCY, bytes([channel, frequency]))


def build_open_channel(channel: int) -> bytes:
    return build_message(MessageId.OPEN_CHANNEL, bytes([channel]))


def build_close_channel(channel: int) -> bytes:
    return build_message(MessageId.CLOSE_CHANNEL, bytes([channel]))


def build_broadcast_data(channel: int, data: bytes) -> bytes:
    """Build a BROADCAST_DATA message carrying one 8-byte data page."""
    if len(data) != 8:
        raise ValueError(f"Broadcast data must be 8 bytes, got {len(data)}")
    return build_message(MessageId.BROADCAST_DATA, bytes([channel]) + data)


def write_message(transport, message: bytes) -> int:
    """Write one complete message to ``transport``.

    Raises:
        IOError: If the transport accepted fewer bytes than the message holds.
    """
    written = transport.write(message)
    if written != len(message):
        raise IOError(
            f"Short write to ANT stick: {written} of {len(message)} bytes"
        )
    return written
