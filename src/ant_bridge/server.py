"""MCP server entry point for the ANT+ trainer bridge.

Exposes tools and resources via the Model Context Protocol using the
official Python MCP SDK with stdio transport.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from mcp.server.fastmcp import FastMCP

from .devices.power import PowerDevice
from .models.channel import ChannelConfig
from .protocol.dispatcher import CHANNEL_COUNT
from .receiver import ReceiverLoop
from .transport.usb_connection import USBConnection

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "ant-bridge",
    instructions="MCP server bridging exercise equipment to ANT+ over a USB stick",
)

SETUP_TIMEOUT = 5.0

# Global receiver state
_connection: USBConnection | None = None
_receiver: ReceiverLoop | None = None


def _get_receiver() -> ReceiverLoop:
    """Get the running receiver, raising if not connected."""
    if _receiver is None or not _receiver.is_alive():
        raise RuntimeError("Not connected to ANT stick. Use the 'connect' tool first.")
    return _receiver


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def connect(device_number: int = 1, channel: int = 0) -> dict[str, Any]:
    """Open the ANT USB stick and start broadcasting as a power meter.

    Loads the ANT+ network key, opens a bicycle power channel and starts
    the receiver thread.

    Args:
        device_number: ANT+ device number to broadcast (1-65535).
        channel: Stick channel to use (0-7).
    """
    global _connection, _receiver
    if _receiver is not None and _receiver.is_alive():
        return {
            "connected": True,
            "message": "Already connected",
            "device": _connection.device_info.to_dict(),
        }

    if not 1 <= device_number <= 0xFFFF:
        return {"error": "Device number must be 1-65535"}
    if not 0 <= channel < CHANNEL_COUNT:
        return {"error": f"Channel must be 0-{CHANNEL_COUNT - 1}"}

    config = ChannelConfig(number=channel, device_number=device_number)
    _connection = USBConnection()
    _receiver = ReceiverLoop(
        _connection,
        handler_factory=lambda transport: PowerDevice(transport, config),
    )
    _receiver.start()
    try:
        ready = _receiver.wait_ready(SETUP_TIMEOUT)
    except ConnectionError:
        _receiver = None
        _connection = None
        raise

    if not ready:
        _receiver.stop()
        _receiver = None
        _connection = None
        return {"connected": False, "error": "Timed out configuring ANT stick"}

    return {
        "connected": True,
        "device": _connection.device_info.to_dict(),
        "channel": config.to_dict(),
    }


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Stop the receiver thread and release the ANT stick."""
    global _connection, _receiver
    if _receiver is None:
        return {"disconnected": True}
    _receiver.stop()
    _receiver.join(timeout=SETUP_TIMEOUT)
    _receiver = None
    _connection = None
    return {"disconnected": True}


@mcp.tool()
def get_status() -> dict[str, Any]:
    """Report the trainer state being broadcast and receiver counters."""
    receiver = _get_receiver()
    result: dict[str, Any] = {"stats": receiver.stats()}
    if isinstance(receiver.handler, PowerDevice):
        result["trainer"] = receiver.handler.state.to_dict()
    return result


# ─── TRAINER TOOLS ────────────────────────────────────────────────────

@mcp.tool()
def set_target_power(watts: int) -> dict[str, Any]:
    """Set the power value broadcast to paired head units.

    Args:
        watts: Instantaneous power in watts (0-65535).
    """
    if not 0 <= watts <= 0xFFFF:
        return {"error": "Power must be 0-65535 W"}
    _get_receiver().set_target_power(watts)
    return {"power": watts}


@mcp.tool()
def set_target_cadence(rpm: int) -> dict[str, Any]:
    """Set the cadence value broadcast to paired head units.

    Args:
        rpm: Cadence in revolutions per minute (0-254).
    """
    if not 0 <= rpm <= 0xFE:
        return {"error": "Cadence must be 0-254 rpm"}
    _get_receiver().set_target_cadence(rpm)
    return {"cadence": rpm}


# ─── MCP RESOURCES ────────────────────────────────────────────────────

@mcp.resource("ant://receiver/stats")
def resource_receiver_stats() -> str:
    """Frame decoder and router counters."""
    if _receiver is None:
        return json.dumps({"connected": False})
    return json.dumps(_receiver.stats(), indent=2)


@mcp.resource("ant://trainer/state")
def resource_trainer_state() -> str:
    """Current power and cadence being broadcast."""
    if _receiver is None or not isinstance(_receiver.handler, PowerDevice):
        return json.dumps({"connected": False})
    return json.dumps(_receiver.handler.state.to_dict(), indent=2)


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
