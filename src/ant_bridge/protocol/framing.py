"""ANT serial message builder and byte-stream decoder.

Message layout::

    +---------+---------+------------+---------------------+----------+
    |  Sync   | Length  | Message ID |       Payload       | Checksum |
    | 1 byte  | 1 byte  |   1 byte   |  ``length`` bytes   |  1 byte  |
    +---------+---------+------------+---------------------+----------+

- Sync: always 0xA4
- Length: number of payload bytes, 1..MAX_LENGTH
- Checksum: XOR of every preceding byte, sync included

The stick delivers messages as an unframed byte stream, so
:class:`FrameDecoder` rebuilds them one byte at a time and resynchronises
on the sync byte whenever a length or checksum is rejected.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from ..utils.checksum import xor_checksum

logger = logging.getLogger(__name__)

SYNC_BYTE = 0xA4
MAX_LENGTH = 17  # extended data message: 9 data + flag + 4 id + 3 rssi/timestamp
CHANNEL_MASK = 0x07


@dataclass
class Frame:
    """A parsed, checksum-valid protocol message."""

    message_id: int
    payload: bytes

    @property
    def sync(self) -> int:
        return SYNC_BYTE

    @property
    def length(self) -> int:
        return len(self.payload)

    @property
    def checksum(self) -> int:
        return xor_checksum(
            bytes([self.length, self.message_id]) + self.payload, SYNC_BYTE
        )

    @property
    def channel(self) -> int:
        """Channel number carried in the low bits of the first payload byte."""
        return self.payload[0] & CHANNEL_MASK

    def to_bytes(self) -> bytes:
        return build_frame(self.message_id, self.payload)

    def __repr__(self) -> str:
        return (
            f"Frame(message_id=0x{self.message_id:02X}, "
            f"payload={self.payload.hex(' ')})"
        )


def build_frame(message_id: int, payload: bytes) -> bytes:
    """Build a complete wire message.

    Args:
        message_id: Single-byte message identifier.
        payload: 1..MAX_LENGTH payload bytes.

    Returns:
        ``bytes`` ready to write to the stick.

    Raises:
        ValueError: If the payload is empty or longer than MAX_LENGTH.
    """
    if not 1 <= len(payload) <= MAX_LENGTH:
        raise ValueError(
            f"Payload must be 1-{MAX_LENGTH} bytes, got {len(payload)}"
        )
    if not 0 <= message_id <= 0xFF:
        raise ValueError(f"Message id must be 0-255, got {message_id}")
    body = bytes([SYNC_BYTE, len(payload), message_id]) + bytes(payload)
    return body + bytes([xor_checksum(body)])


class DecoderState(Enum):
    """Position of the decoder within the current message."""

    WAIT_FOR_SYNC = "wait_for_sync"
    GET_LENGTH = "get_length"
    GET_MESSAGE_ID = "get_message_id"
    GET_DATA = "get_data"
    VALIDATE_PACKET = "validate_packet"


class DecodeError(Enum):
    """Reason the most recent candidate message was thrown away."""

    FRAMING = "framing"
    CHECKSUM = "checksum"


@dataclass
class DecoderStats:
    """Running counters for accepted and rejected messages."""

    frames: int = 0
    framing_errors: int = 0
    checksum_errors: int = 0

    def to_dict(self) -> dict:
        return {
            "frames": self.frames,
            "framing_errors": self.framing_errors,
            "checksum_errors": self.checksum_errors,
        }


class FrameDecoder:
    """Byte-at-a-time state machine turning the stick's stream into Frames.

    At most one candidate message is held at a time. Any rejected length
    or checksum drops the candidate and returns to ``WAIT_FOR_SYNC``; the
    state also returns there after every validation attempt.

    Usage::

        decoder = FrameDecoder()
        for byte in stream:
            frame = decoder.consume_byte(byte)
            if frame is not None:
                handle(frame)
    """

    def __init__(self) -> None:
        self.state = DecoderState.WAIT_FOR_SYNC
        self.stats = DecoderStats()
        self.last_error: DecodeError | None = None
        self._checksum = 0
        self._length = 0
        self._count = 0
        self._message_id = 0
        self._buffer = bytearray(MAX_LENGTH)

    def reset(self) -> None:
        """Drop any partial message and wait for the next sync byte."""
        self.state = DecoderState.WAIT_FOR_SYNC
        self._checksum = 0
        self._length = 0
        self._count = 0
        self._message_id = 0

    def consume_byte(self, byte: int) -> Frame | None:
        """Advance the state machine by one byte.

        Returns:
            A ``Frame`` when ``byte`` completes a valid message, else ``None``.
        """
        state = self.state

        if state is DecoderState.WAIT_FOR_SYNC:
            if byte == SYNC_BYTE:
                self._checksum = SYNC_BYTE
                self.state = DecoderState.GET_LENGTH

        elif state is DecoderState.GET_LENGTH:
            if byte == 0 or byte > MAX_LENGTH:
                logger.debug("Rejected message length %d, resyncing", byte)
                self.stats.framing_errors += 1
                self.last_error = DecodeError.FRAMING
                self.reset()
            else:
                self._length = byte
                self._checksum ^= byte
                self._count = 0
                self.state = DecoderState.GET_MESSAGE_ID

        elif state is DecoderState.GET_MESSAGE_ID:
            self._message_id = byte
            self._checksum ^= byte
            self.state = DecoderState.GET_DATA

        elif state is DecoderState.GET_DATA:
            self._buffer[self._count] = byte
            self._checksum ^= byte
            self._count += 1
            if self._count >= self._length:
                self.state = DecoderState.VALIDATE_PACKET

        elif state is DecoderState.VALIDATE_PACKET:
            frame = None
            if byte == self._checksum:
                frame = Frame(
                    message_id=self._message_id,
                    payload=bytes(self._buffer[: self._length]),
                )
                self.stats.frames += 1
                self.last_error = None
            else:
                logger.debug(
                    "Checksum mismatch for message 0x%02X: expected 0x%02X, got 0x%02X",
                    self._message_id,
                    self._checksum,
                    byte,
                )
                self.stats.checksum_errors += 1
                self.last_error = DecodeError.CHECKSUM
            self.reset()
            return frame

        return None

    def feed(self, data: bytes) -> list[Frame]:
        """Consume every byte of ``data`` and return the Frames it completed."""
        frames: list[Frame] = []
        for byte in data:
            frame = self.consume_byte(byte)
            if frame is not None:
                frames.append(frame)
        return frames
