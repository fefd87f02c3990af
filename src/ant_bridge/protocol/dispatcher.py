"""Routing of decoded Frames to channel handlers.

:class:`MessageDispatcher` decides whether a Frame addresses a channel at
all; :class:`ChannelEventRouter` resolves the channel number and hands the
event to the device handler.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .framing import Frame
from .messages import (
    CHANNEL_MESSAGE_IDS,
    CONTROL_MESSAGE_IDS,
    EVENT_OFFSET_MESSAGE_CODE,
    ChannelEventCode,
    MessageId,
)

if TYPE_CHECKING:
    from ..devices.power import DeviceHandler

logger = logging.getLogger(__name__)

CHANNEL_COUNT = 8  # channels on a USB2/USBm stick


@dataclass
class ChannelEvent:
    """A Frame resolved to the channel it addresses."""

    channel: int
    frame: Frame

    @property
    def message_id(self) -> int:
        return self.frame.message_id


class ChannelEventRouter:
    """Resolves channel-scoped Frames to a channel and delivers them.

    Args:
        channel_count: Number of channels the stick provides. Frames naming
            a channel outside ``[0, channel_count)`` are dropped.
    """

    def __init__(self, channel_count: int = CHANNEL_COUNT) -> None:
        if channel_count < 1:
            raise ValueError(f"Channel count must be positive, got {channel_count}")
        self.channel_count = channel_count
        self.dropped = 0

    def route(self, frame: Frame) -> ChannelEvent | None:
        channel = frame.channel
        if 0 <= channel < self.channel_count:
            return ChannelEvent(channel=channel, frame=frame)
        # Out-of-range channel numbers only come from a misbehaving stick.
        logger.debug("Dropping %r for channel %d", frame, channel)
        self.dropped += 1
        return None

    def deliver(self, event: ChannelEvent, handler: DeviceHandler) -> None:
        """Invoke the handler operation matching the event's message id."""
        message_id = event.message_id
        if message_id == MessageId.CHANNEL_EVENT:
            handler.on_channel_event(event.frame)
        elif message_id == MessageId.ACK_DATA:
            logger.debug("Channel %d ack data", event.channel)
            handler.on_ack_data(event.frame)
        elif message_id in (
            MessageId.BROADCAST_DATA,
            MessageId.CHANNEL_ID,
            MessageId.BURST_DATA,
        ):
            logger.debug(
                "Channel %d %s", event.channel, MessageId(message_id).name.lower()
            )


class MessageDispatcher:
    """Filters decoded Frames down to the ones that address a channel."""

    def __init__(self, router: ChannelEventRouter) -> None:
        self.router = router

    def dispatch(self, frame: Frame) -> ChannelEvent | None:
        message_id = frame.message_id

        if message_id in CONTROL_MESSAGE_IDS:
            return None

        if message_id == MessageId.CHANNEL_EVENT:
            if _message_code(frame) == ChannelEventCode.EVENT_TRANSFER_TX_FAILED:
                return None
            return self.router.route(frame)

        if message_id in CHANNEL_MESSAGE_IDS:
            return self.router.route(frame)

        return None


def _message_code(frame: Frame) -> int | None:
    if len(frame.payload) <= EVENT_OFFSET_MESSAGE_CODE:
        return None
    return frame.payload[EVENT_OFFSET_MESSAGE_CODE]
