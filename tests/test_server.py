"""Tests for the MCP tool functions that do not need a stick attached."""

import threading

import pytest

from ant_bridge import server


class SlowTransport:
    """Transport whose discovery blocks until released."""

    def __init__(self):
        self.release = threading.Event()
        self.entered = threading.Event()
        self.thread = None
        self.closed = 0

    def find(self):
        self.thread = threading.current_thread()
        self.entered.set()
        self.release.wait(2)
        return False

    def open(self):
        return False

    def read(self, max_bytes=1, timeout_ms=10):
        return b""

    def write(self, data):
        return len(data)

    def close(self):
        self.closed += 1


@pytest.fixture(autouse=True)
def no_receiver(monkeypatch):
    monkeypatch.setattr(server, "_receiver", None)
    monkeypatch.setattr(server, "_connection", None)


@pytest.mark.parametrize("device_number", [0, 0x10000])
def test_connect_rejects_bad_device_number(device_number):
    result = server.connect(device_number=device_number)
    assert "error" in result
    assert server._receiver is None


@pytest.mark.parametrize("channel", [-1, 8, 300])
def test_connect_rejects_bad_channel(channel):
    result = server.connect(channel=channel)
    assert "error" in result
    assert server._receiver is None


def test_connect_timeout_clears_receiver(monkeypatch):
    """A setup that overruns the timeout leaves no receiver behind."""
    transport = SlowTransport()
    monkeypatch.setattr(server, "USBConnection", lambda: transport)
    monkeypatch.setattr(server, "SETUP_TIMEOUT", 0.05)

    result = server.connect()
    assert result["connected"] is False
    assert server._receiver is None
    assert server._connection is None

    assert transport.entered.wait(2)
    transport.release.set()
    transport.thread.join(timeout=2)
    assert not transport.thread.is_alive()
    assert transport.closed == 1


def test_set_power_requires_connection():
    with pytest.raises(RuntimeError):
        server.set_target_power(100)


def test_set_power_range():
    assert "error" in server.set_target_power(-1)
    assert "error" in server.set_target_cadence(255)
