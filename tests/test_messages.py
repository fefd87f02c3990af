"""Tests for message ids and command builders."""

import pytest

from ant_bridge.protocol.framing import FrameDecoder
from ant_bridge.protocol.messages import (
    ANT_PLUS_NETWORK_KEY,
    ChannelEventCode,
    ChannelType,
    MessageId,
    build_assign_channel,
    build_broadcast_data,
    build_channel_id,
    build_channel_period,
    build_channel_rf_frequency,
    build_close_channel,
    build_open_channel,
    build_set_network_key,
    write_message,
)


def _decode(data):
    frames = FrameDecoder().feed(data)
    assert len(frames) == 1
    return frames[0]


def test_message_id_values():
    """Verify key message ids."""
    assert MessageId.CHANNEL_EVENT == 0x40
    assert MessageId.SET_NETWORK == 0x46
    assert MessageId.BROADCAST_DATA == 0x4E
    assert MessageId.ACK_DATA == 0x4F
    assert MessageId.BURST_DATA == 0x50
    assert MessageId.CHANNEL_ID == 0x51
    assert MessageId.STARTUP_NOTIFICATION == 0x6F


def test_event_code_values():
    assert ChannelEventCode.EVENT_TX == 0x03
    assert ChannelEventCode.EVENT_TRANSFER_TX_COMPLETED == 0x05
    assert ChannelEventCode.EVENT_TRANSFER_TX_FAILED == 0x06


def test_set_network_key_wire_bytes():
    """The ANT+ key command has a well-known encoding."""
    msg = build_set_network_key()
    assert msg == bytes(
        [0xA4, 0x09, 0x46, 0x00, 0xB9, 0xA5, 0x21, 0xFB, 0xBD, 0x72, 0xC3, 0x45, 0x64]
    )


def test_set_network_key_decodes():
    frame = _decode(build_set_network_key(0, ANT_PLUS_NETWORK_KEY))
    assert frame.message_id == MessageId.SET_NETWORK
    assert frame.length == 9
    assert frame.payload[0] == 0
    assert frame.payload[1:] == ANT_PLUS_NETWORK_KEY


def test_set_network_key_bad_key():
    with pytest.raises(ValueError):
        build_set_network_key(0, b"\x00" * 7)


def test_assign_channel():
    frame = _decode(build_assign_channel(1, ChannelType.BIDIRECTIONAL_TRANSMIT))
    assert frame.message_id == MessageId.ASSIGN_CHANNEL
    assert frame.payload == bytes([1, 0x10, 0])


def test_channel_id_little_endian():
    frame = _decode(build_channel_id(0, 0x1234, 11, 5))
    assert frame.message_id == MessageId.CHANNEL_ID
    assert frame.payload == bytes([0, 0x34, 0x12, 11, 5])


def test_channel_id_bounds():
    with pytest.raises(ValueError):
        build_channel_id(0, 0x10000, 11, 5)


def test_channel_period():
    frame = _decode(build_channel_period(0, 8182))
    assert frame.payload == bytes([0]) + (8182).to_bytes(2, "little")


def test_rf_frequency_bounds():
    assert _decode(build_channel_rf_frequency(0, 57)).payload == bytes([0, 57])
    with pytest.raises(ValueError):
        build_channel_rf_frequency(0, 125)


def test_open_close_channel():
    assert _decode(build_open_channel(3)).message_id == MessageId.OPEN_CHANNEL
    assert _decode(build_close_channel(3)).payload == bytes([3])


def test_broadcast_data():
    page = bytes(range(8))
    frame = _decode(build_broadcast_data(2, page))
    assert frame.message_id == MessageId.BROADCAST_DATA
    assert frame.channel == 2
    assert frame.payload[1:] == page


def test_broadcast_data_requires_full_page():
    with pytest.raises(ValueError):
        build_broadcast_data(0, b"\x10")


class CountingWriter:
    def __init__(self, shortfall=0):
        self.shortfall = shortfall

    def write(self, data):
        return len(data) - self.shortfall


def test_write_message_full_write():
    msg = build_open_channel(0)
    assert write_message(CountingWriter(), msg) == len(msg)


def test_write_message_short_write_raises():
    """Fewer bytes accepted than sent is an I/O error."""
    with pytest.raises(IOError):
        write_message(CountingWriter(shortfall=1), build_open_channel(0))
