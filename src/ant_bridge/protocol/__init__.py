"""Protocol layer: message framing, checksums, command builders, and routing."""

from .framing import Frame, FrameDecoder, build_frame
from .messages import MessageId, ChannelEventCode
from .dispatcher import ChannelEvent, ChannelEventRouter, MessageDispatcher
