"""MCP server entry point for a Move.Me motion controller server.

Exposes tools, resources, and prompts via the Model Context Protocol
using the official Python MCP SDK with stdio transport.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from mcp.server.fastmcp import FastMCP

from .client import MoveMeClient
from .listener import StateRecorder
from .models.buttons import Button
from .protocol.commands import (
    COMMAND_SCHEMAS,
    DONT_TRACK,
    MAX_CAMERA_FRAME_SLICES,
    MAX_CONTROLLERS,
    PICK_FOR_ME,
    Side,
)
from .protocol.layout import STANDARD_STATE_LAYOUT
from .protocol.parser import PACKET_MAGIC, PROTOCOL_VERSION
from .transport.connection import DEFAULT_PORT, ChannelWriteFailed

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "moveme",
    instructions="MCP server for PlayStation Move controllers tracked by a Move.Me server",
)

# Global connection state
_client: MoveMeClient | None = None
_recorder = StateRecorder()

HUE_ALIASES = {"auto": PICK_FOR_ME, "none": DONT_TRACK}


def _get_client() -> MoveMeClient:
    """Get the connected client, raising if not connected."""
    if _client is None or not _client.connected:
        raise RuntimeError(
            "Not connected to a Move.Me server. Use the 'connect' tool first."
        )
    return _client


def _drop_client() -> None:
    global _client
    if _client is not None:
        _client.close()
        _client = None


def _send(action, **result: Any) -> dict[str, Any]:
    """Run a client call and convert failures into tool results."""
    try:
        action(_get_client())
    except ValueError as e:
        return {"error": str(e)}
    except ChannelWriteFailed as e:
        logger.warning("Command channel failed, dropping connection: %s", e)
        _drop_client()
        return {"error": f"Connection lost: {e}"}
    return result


def _check_controller(controller: int) -> dict[str, Any] | None:
    if not 0 <= controller < MAX_CONTROLLERS:
        return {"error": f"Controller must be 0-{MAX_CONTROLLERS - 1}"}
    return None


def _parse_side(side: str) -> Side | None:
    try:
        return Side(side.lower())
    except ValueError:
        return None


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def connect(host: str, port: int = DEFAULT_PORT) -> dict[str, Any]:
    """Connect to a Move.Me server and start receiving controller telemetry.

    Opens the command stream, binds a local UDP port for telemetry and
    announces it to the server.

    Args:
        host: Address of the Move.Me server (the PlayStation 3).
        port: Server command port (default 7899).
    """
    global _client
    if _client is not None and _client.connected:
        info = _client.info
        return {
            "connected": True,
            "message": "Already connected",
            "host": info.host,
            "port": info.port,
        }

    client = MoveMeClient()
    _recorder.reset()
    client.register_listener(_recorder)
    try:
        info = client.connect(host, port)
    except ConnectionError as e:
        return {"connected": False, "error": str(e)}

    _client = client
    return {
        "connected": True,
        "host": info.host,
        "port": info.port,
        "udp_port": info.local_udp_port,
    }


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Close the connection to the Move.Me server."""
    _drop_client()
    return {"disconnected": True}


@mcp.tool()
def get_state() -> dict[str, Any]:
    """Latest controller update: pointer position, buttons and trigger."""
    state = _recorder.snapshot()
    state["connected"] = _client is not None and _client.connected
    return state


@mcp.tool()
def get_stats() -> dict[str, Any]:
    """Telemetry counters: datagrams received, accepted and dropped by reason."""
    client = _get_client()
    return client.stats.to_dict()


# ─── UPDATE STREAM TOOLS ─────────────────────────────────────────────

@mcp.tool()
def pause_updates() -> dict[str, Any]:
    """Pause the controller state stream."""
    return _send(lambda c: c.pause(), paused=True)


@mcp.tool()
def resume_updates() -> dict[str, Any]:
    """Resume the controller state stream."""
    return _send(lambda c: c.resume(), paused=False)


@mcp.tool()
def set_update_delay(delay_ms: int) -> dict[str, Any]:
    """Set the delay between controller state packets.

    Args:
        delay_ms: Milliseconds between packets (2 is a good value).
    """
    return _send(lambda c: c.delay_change(delay_ms), delay_ms=delay_ms)


@mcp.tool()
def configure_camera(max_exposure: int, image_quality: float) -> dict[str, Any]:
    """Configure the PlayStation Eye camera.

    Args:
        max_exposure: Exposure time in image rows (40-511). Longer exposure
                      means less noise but more motion blur.
        image_quality: Image quality knob (0.0-1.0).
    """
    return _send(
        lambda c: c.configure_camera(max_exposure, image_quality),
        max_exposure=max_exposure,
        image_quality=image_quality,
    )


# ─── CONTROLLER TOOLS ────────────────────────────────────────────────

@mcp.tool()
def calibrate_controller(controller: int = 0) -> dict[str, Any]:
    """Calibrate a controller. It should point at the camera and be held still.

    Args:
        controller: Controller index (0-3).
    """
    return _send(lambda c: c.calibrate_controller(controller), calibrating=controller)


@mcp.tool()
def reset_controller(controller: int = 0) -> dict[str, Any]:
    """Reset a controller.

    Args:
        controller: Controller index (0-3).
    """
    return _send(lambda c: c.reset_controller(controller), reset=controller)


@mcp.tool()
def force_rgb(controller: int, r: float, g: float, b: float) -> dict[str, Any]:
    """Force the sphere to a fixed colour. This disables hue tracking.

    Args:
        controller: Controller index (0-3).
        r: Red (0.0-1.0).
        g: Green (0.0-1.0).
        b: Blue (0.0-1.0).
    """
    return _send(
        lambda c: c.force_rgb(controller, r, g, b),
        controller=controller,
        rgb=[r, g, b],
    )


@mcp.tool()
def set_rumble(controller: int, rumble: int) -> dict[str, Any]:
    """Set controller vibration.

    Args:
        controller: Controller index (0-3).
        rumble: 0 (off) to 255 (full).
    """
    return _send(lambda c: c.set_rumble(controller, rumble), controller=controller, rumble=rumble)


@mcp.tool()
def set_tracking_hues(hues: list[int | str]) -> dict[str, Any]:
    """Request sphere hues for all four controllers while keeping tracking on.

    Args:
        hues: Four entries, one per controller. Each is a hue 0-359,
              "auto" to let the server choose, or "none" to stop tracking
              that controller.
    """
    if len(hues) != MAX_CONTROLLERS:
        return {"error": f"Expected {MAX_CONTROLLERS} hues, got {len(hues)}"}

    values = []
    for hue in hues:
        if isinstance(hue, str):
            if hue.lower() not in HUE_ALIASES:
                return {"error": f"Unknown hue '{hue}'. Use 0-359, 'auto' or 'none'"}
            values.append(HUE_ALIASES[hue.lower()])
        else:
            values.append(int(hue))

    return _send(lambda c: c.set_tracking_color(*values), hues=hues)


# ─── POINTER CALIBRATION TOOLS ───────────────────────────────────────

@mcp.tool()
def set_laser_bound(controller: int, side: str) -> dict[str, Any]:
    """Set one edge of the laser pointer box to where the controller points now.

    Args:
        controller: Controller index (0-3).
        side: left, right, bottom or top.
    """
    parsed = _parse_side(side)
    if parsed is None:
        return {"error": f"Unknown side '{side}'. Valid: {[s.value for s in Side]}"}
    error = _check_controller(controller)
    if error:
        return error
    setters = {
        Side.LEFT: "set_laser_left",
        Side.RIGHT: "set_laser_right",
        Side.BOTTOM: "set_laser_bottom",
        Side.TOP: "set_laser_top",
    }
    return _send(
        lambda c: getattr(c, setters[parsed])(controller),
        controller=controller,
        laser_side=parsed.value,
    )


@mcp.tool()
def set_laser_enabled(controller: int, enabled: bool) -> dict[str, Any]:
    """Enable or disable laser pointer tracking for a controller.

    Args:
        controller: Controller index (0-3).
        enabled: True to enable, False to disable.
    """
    if enabled:
        return _send(lambda c: c.enable_laser(controller), controller=controller, laser=True)
    return _send(lambda c: c.disable_laser(controller), controller=controller, laser=False)


@mcp.tool()
def set_position_bound(controller: int, side: str) -> dict[str, Any]:
    """Set one edge of the position pointer box to where the controller is now.

    Args:
        controller: Controller index (0-3).
        side: left, right, bottom or top.
    """
    parsed = _parse_side(side)
    if parsed is None:
        return {"error": f"Unknown side '{side}'. Valid: {[s.value for s in Side]}"}
    error = _check_controller(controller)
    if error:
        return error
    setters = {
        Side.LEFT: "set_position_left",
        Side.RIGHT: "set_position_right",
        Side.BOTTOM: "set_position_bottom",
        Side.TOP: "set_position_top",
    }
    return _send(
        lambda c: getattr(c, setters[parsed])(controller),
        controller=controller,
        position_side=parsed.value,
    )


@mcp.tool()
def set_position_enabled(controller: int, enabled: bool) -> dict[str, Any]:
    """Enable or disable position pointer tracking for a controller.

    Args:
        controller: Controller index (0-3).
        enabled: True to enable, False to disable.
    """
    if enabled:
        return _send(lambda c: c.enable_position(controller), controller=controller, position=True)
    return _send(lambda c: c.disable_position(controller), controller=controller, position=False)


# ─── CAMERA FRAME TOOLS ──────────────────────────────────────────────

@mcp.tool()
def set_camera_frame_delay(delay_ms: int) -> dict[str, Any]:
    """Set the delay between camera frame packets.

    Args:
        delay_ms: Milliseconds between frames (16-255).
    """
    return _send(lambda c: c.camera_frame_delay_change(delay_ms), delay_ms=delay_ms)


@mcp.tool()
def set_camera_frame_slices(num_slices: int) -> dict[str, Any]:
    """Set how many horizontal slices each camera frame is sent in.

    Args:
        num_slices: 1-7. Two is usually enough.
    """
    if not 1 <= num_slices <= MAX_CAMERA_FRAME_SLICES:
        return {"error": f"Slices must be 1-{MAX_CAMERA_FRAME_SLICES}"}
    return _send(lambda c: c.camera_frame_set_num_slices(num_slices), num_slices=num_slices)


@mcp.tool()
def set_camera_frames_paused(paused: bool) -> dict[str, Any]:
    """Pause or resume camera frame packets.

    Args:
        paused: True to pause, False to resume.
    """
    if paused:
        return _send(lambda c: c.camera_frame_pause(), camera_frames_paused=True)
    return _send(lambda c: c.camera_frame_resume(), camera_frames_paused=False)


# ─── MCP RESOURCES ───────────────────────────────────────────────────

@mcp.resource("moveme://connection/status")
def resource_connection_status() -> str:
    """Connection state and telemetry endpoints."""
    if _client is None or not _client.connected:
        return json.dumps({"connected": False})

    info = _client.info
    return json.dumps({
        "connected": True,
        "host": info.host,
        "port": info.port,
        "udp_port": info.local_udp_port,
        "stats": _client.stats.to_dict(),
    })


@mcp.resource("moveme://controller/state")
def resource_controller_state() -> str:
    """Latest controller update (cached)."""
    return json.dumps(_recorder.snapshot())


@mcp.resource("moveme://protocol/layout")
def resource_protocol_layout() -> str:
    """Field offsets of the standard state datagram."""
    return json.dumps({
        "magic": f"0x{PACKET_MAGIC:08X}",
        "version": PROTOCOL_VERSION,
        "size": STANDARD_STATE_LAYOUT.size,
        "fields": STANDARD_STATE_LAYOUT.describe(),
    })


@mcp.resource("moveme://protocol/commands")
def resource_protocol_commands() -> str:
    """Request codes and their payload field types."""
    commands = [
        {
            "name": request.name,
            "code": f"0x{request.value:02X}",
            "fields": [kind.__name__ for kind in schema],
        }
        for request, schema in COMMAND_SCHEMAS.items()
    ]
    return json.dumps({"commands": commands})


@mcp.resource("moveme://catalog/buttons")
def resource_button_catalog() -> str:
    """Digital button names and bitmask values."""
    buttons = [{"name": b.name, "mask": int(b)} for b in Button]
    return json.dumps({"buttons": buttons})


# ─── MCP PROMPTS ─────────────────────────────────────────────────────

@mcp.prompt()
def calibrate_pointer(controller: int = 0) -> str:
    """Walk the user through calibrating the laser pointer box.

    Args:
        controller: Controller to calibrate (0-3).
    """
    return f"""Calibrate the laser pointer for controller {controller}.
Steps:
1. Ask the user to point the controller at the camera and hold it still,
   then call calibrate_controller({controller}).
2. For each side in left, right, bottom, top: ask the user to point at
   that edge of the screen, then call set_laser_bound({controller}, side).
3. Call set_laser_enabled({controller}, true).
4. Use get_state to confirm that updates now carry a position.

If get_state reports no_controller updates, the controller is not
connected to the server; stop and tell the user."""


@mcp.prompt()
def diagnose_tracking() -> str:
    """Investigate why no position updates are arriving."""
    return """Check the tracking pipeline:
- get_state: are any updates arriving at all? Only button updates means
  no pointer is calibrated and enabled yet.
- get_stats: many stale or bad_magic drops point at packets from an old
  session; unsupported_payload means camera frames are enabled.
- If nothing arrives, try resume_updates and set_update_delay(2).
- Poor tracking can come from camera exposure; try configure_camera.
Report what you find before changing anything."""


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
