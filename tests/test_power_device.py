"""Tests for the bicycle power device handler."""

import threading

from ant_bridge.devices.power import (
    PAGE_POWER_ONLY,
    PowerDevice,
    build_power_only_page,
)
from ant_bridge.models.channel import ChannelConfig
from ant_bridge.protocol.framing import Frame, FrameDecoder
from ant_bridge.protocol.messages import ChannelEventCode, MessageId


class FakeWriter:
    def __init__(self):
        self.written = []

    def write(self, data):
        self.written.append(bytes(data))
        return len(data)

    def frames(self):
        decoder = FrameDecoder()
        return decoder.feed(b"".join(self.written))


def _tx_event(channel=0):
    return Frame(
        message_id=MessageId.CHANNEL_EVENT,
        payload=bytes([channel, 0x01, ChannelEventCode.EVENT_TX]),
    )


def test_power_only_page_layout():
    page = build_power_only_page(event_count=3, cadence=90, accumulated_power=700, power=250)
    assert len(page) == 8
    assert page[0] == PAGE_POWER_ONLY
    assert page[1] == 3
    assert page[2] == 0xFF
    assert page[3] == 90
    assert int.from_bytes(page[4:6], "little") == 700
    assert int.from_bytes(page[6:8], "little") == 250


def test_configure_channel_sequence():
    """Channel is assigned, identified, tuned and opened in that order."""
    writer = FakeWriter()
    config = ChannelConfig(number=2, device_number=0x0102)
    PowerDevice(writer, config).configure_channel()

    frames = writer.frames()
    assert [f.message_id for f in frames] == [
        MessageId.ASSIGN_CHANNEL,
        MessageId.CHANNEL_ID,
        MessageId.CHANNEL_PERIOD,
        MessageId.CHANNEL_RF_FREQUENCY,
        MessageId.OPEN_CHANNEL,
    ]
    assert all(f.channel == 2 for f in frames)
    assert frames[1].payload == bytes([2, 0x02, 0x01, 11, 5])


def test_tx_event_broadcasts_power():
    writer = FakeWriter()
    device = PowerDevice(writer)
    device.set_target_power(200)
    device.set_target_cadence(85)

    device.on_channel_event(_tx_event())
    device.on_channel_event(_tx_event())

    frames = writer.frames()
    assert [f.message_id for f in frames] == [MessageId.BROADCAST_DATA] * 2
    first, second = (f.payload[1:] for f in frames)
    assert first[0] == PAGE_POWER_ONLY
    assert first[1] == 1
    assert second[1] == 2
    assert first[3] == 85
    assert int.from_bytes(first[6:8], "little") == 200
    assert int.from_bytes(second[4:6], "little") == 400


def test_command_response_does_not_write():
    writer = FakeWriter()
    device = PowerDevice(writer)
    ok = Frame(
        message_id=MessageId.CHANNEL_EVENT,
        payload=bytes([0, MessageId.OPEN_CHANNEL, ChannelEventCode.RESPONSE_NO_ERROR]),
    )
    failed = Frame(message_id=MessageId.CHANNEL_EVENT, payload=bytes([0, MessageId.OPEN_CHANNEL, 0x15]))
    device.on_channel_event(ok)
    device.on_channel_event(failed)
    assert writer.written == []


def test_ack_data_recorded():
    device = PowerDevice(FakeWriter())
    device.on_ack_data(Frame(message_id=MessageId.ACK_DATA, payload=bytes([0, 0x46, 1, 2, 3, 4, 5, 6, 7])))
    assert device.last_ack == bytes([0x46, 1, 2, 3, 4, 5, 6, 7])


def test_setters_clamp():
    device = PowerDevice(FakeWriter())
    device.set_target_power(-5)
    device.set_target_cadence(300)
    assert device.state.to_dict() == {"power": 0, "cadence": 0xFE}


def test_setters_from_other_threads():
    device = PowerDevice(FakeWriter())
    threads = [
        threading.Thread(target=device.set_target_power, args=(w,)) for w in range(50)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert 0 <= device.state.power < 50


def test_close_channel():
    writer = FakeWriter()
    PowerDevice(writer, ChannelConfig(number=3)).close_channel()
    frames = writer.frames()
    assert [f.message_id for f in frames] == [MessageId.CLOSE_CHANNEL]
    assert frames[0].payload == bytes([3])
