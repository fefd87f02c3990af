"""Receiver thread owning the stick, the decoder and the routing layer.

The thread first loads the network key and has the device handler
configure its channel, then polls the stick one byte at a time until
:meth:`ReceiverLoop.stop` is called. Decoder, dispatcher and router state
is touched only by this thread; the device handler is the only object
shared with the rest of the program.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Protocol

from .devices.power import DeviceHandler, PowerDevice
from .protocol.dispatcher import CHANNEL_COUNT, ChannelEventRouter, MessageDispatcher
from .protocol.framing import Frame, FrameDecoder
from .protocol.messages import (
    ANT_PLUS_NETWORK_KEY,
    build_set_network_key,
    write_message,
)

logger = logging.getLogger(__name__)

SETTLE_INTERVAL = 0.1  # after loading the network key
IDLE_SLEEP = 0.005  # when no byte was available
READ_TIMEOUT_MS = 10
SETUP_RETRIES = 3
RETRY_BACKOFF = 0.5  # doubled after each failed attempt


class Transport(Protocol):
    def find(self) -> bool: ...

    def open(self) -> bool: ...

    def read(self, max_bytes: int = 1, timeout_ms: int = READ_TIMEOUT_MS) -> bytes: ...

    def write(self, data: bytes) -> int: ...

    def close(self) -> None: ...


class ReceiverLoop(threading.Thread):
    """Worker thread turning the stick's byte stream into handler calls.

    Args:
        transport: Byte-level connection to the stick.
        handler_factory: Builds the device handler once the transport is
            open. Receives the transport so the handler can write commands.
        channel_count: Channels available on the stick.
        network_key: 8-byte key loaded into network 0.

    Usage::

        loop = ReceiverLoop(USBConnection())
        loop.start()
        loop.wait_ready()
        loop.set_target_power(180)
        ...
        loop.stop()
        loop.join()
    """

    def __init__(
        self,
        transport: Transport,
        handler_factory: Callable[[Transport], DeviceHandler] = PowerDevice,
        channel_count: int = CHANNEL_COUNT,
        network_key: bytes = ANT_PLUS_NETWORK_KEY,
    ) -> None:
        super().__init__(name="ant-receiver", daemon=True)
        self._transport = transport
        self._handler_factory = handler_factory
        self._network_key = network_key
        self._stop_event = threading.Event()
        self._ready = threading.Event()
        self.decoder = FrameDecoder()
        self.router = ChannelEventRouter(channel_count)
        self.dispatcher = MessageDispatcher(self.router)
        self.handler: DeviceHandler | None = None
        self.error: Exception | None = None

    def stop(self) -> None:
        """Ask the thread to exit after the current byte."""
        self._stop_event.set()

    def wait_ready(self, timeout: float | None = None) -> bool:
        """Block until setup finished.

        Returns:
            True once polling has started, False on timeout.

        Raises:
            ConnectionError: If setup failed; the original error is chained.
        """
        if not self._ready.wait(timeout):
            return False
        if self.error is not None:
            raise ConnectionError(f"ANT receiver setup failed: {self.error}") from self.error
        return True

    def stats(self) -> dict:
        result = self.decoder.stats.to_dict()
        result["dropped_channel_events"] = self.router.dropped
        return result

    # ─── SETUP ───────────────────────────────────────────────────────

    def setup(self) -> None:
        """Open the stick, load the network key and configure the channel.

        Writes that fail are retried after reopening the stick, up to
        ``SETUP_RETRIES`` attempts with a doubling backoff.

        Raises:
            ConnectionError: If the stick cannot be found or opened.
            OSError: If writes still fail after the last attempt.
        """
        self._open_transport()
        delay = RETRY_BACKOFF
        for attempt in range(1, SETUP_RETRIES + 1):
            try:
                self._configure()
                return
            except OSError as e:
                if attempt == SETUP_RETRIES:
                    raise
                logger.warning(
                    "Setup attempt %d/%d failed: %s, reopening stick",
                    attempt,
                    SETUP_RETRIES,
                    e,
                )
                self._transport.close()
                if self._stop_event.wait(delay):
                    return
                delay *= 2
                self._open_transport()

    def _open_transport(self) -> None:
        if not self._transport.find():
            raise ConnectionError("ANT stick not found")
        if not self._transport.open():
            raise ConnectionError("ANT stick could not be opened")

    def _configure(self) -> None:
        write_message(self._transport, build_set_network_key(0, self._network_key))
        self._stop_event.wait(SETTLE_INTERVAL)
        if self.handler is None:
            self.handler = self._handler_factory(self._transport)
        self.handler.configure_channel()

    # ─── POLL ────────────────────────────────────────────────────────

    def run(self) -> None:
        logger.info("Starting ANT receiver")
        try:
            self.setup()
        except Exception as e:
            logger.error("ANT receiver setup failed: %s", e)
            self.error = e
            self._transport.close()
            self._ready.set()
            return

        self._ready.set()
        try:
            while not self._stop_event.is_set():
                self.poll_once()
        finally:
            self._close_channel()
            self._transport.close()
            logger.info("ANT receiver stopped")

    def _close_channel(self) -> None:
        if self.handler is None:
            return
        try:
            self.handler.close_channel()
        except OSError as e:
            logger.warning("Could not close channel: %s", e)

    def poll_once(self) -> None:
        """Read at most one byte and process any Frame it completes."""
        data = self._transport.read(1, READ_TIMEOUT_MS)
        if not data:
            self._stop_event.wait(IDLE_SLEEP)
            return

        for frame in self.decoder.feed(data):
            self.process_frame(frame)

    def process_frame(self, frame: Frame) -> None:
        """Dispatch, route and deliver one decoded Frame."""
        logger.debug("Recv: %r", frame)
        event = self.dispatcher.dispatch(frame)
        if event is None or self.handler is None:
            return
        try:
            self.router.deliver(event, self.handler)
        except OSError as e:
            # Drops one outbound message; polling continues.
            logger.warning("Handler write failed on channel %d: %s", event.channel, e)

    # ─── INBOUND SETTERS ─────────────────────────────────────────────

    def set_target_power(self, value: int) -> None:
        handler = self.handler
        if handler is not None:
            handler.set_target_power(value)

    def set_target_cadence(self, value: int) -> None:
        handler = self.handler
        if handler is not None:
            handler.set_target_cadence(value)
