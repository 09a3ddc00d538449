"""Request code constants and high-level command builders.

Each request is identified by a 32-bit code and carries a fixed payload
schema (protocol version 1). The builders validate arguments and return a
:class:`~moveme_mcp.protocol.framing.CommandFrame` ready to be written to the
reliable channel.
"""

from __future__ import annotations

from enum import Enum, IntEnum

from .framing import CommandFrame, encode_command

MAX_CONTROLLERS = 4
MAX_CAMERA_FRAME_SLICES = 7

# Hue sentinels for TRACK_HUES
PICK_FOR_ME = 4 << 24
DONT_TRACK = 2 << 24


class Request(IntEnum):
    """Request identifiers for the reliable channel."""

    INIT = 0x0
    PAUSE = 0x1
    RESUME = 0x2
    DELAY_CHANGE = 0x3
    CONFIG_CAMERA = 0x4
    CALIBRATE_CONTROLLER = 0x5
    LASER_SET_LEFT = 0x7
    LASER_SET_RIGHT = 0x8
    LASER_SET_BOTTOM = 0x9
    LASER_SET_TOP = 0x10
    LASER_ENABLE = 0x11
    LASER_DISABLE = 0x12
    CONTROLLER_RESET = 0x13
    POSITION_SET_LEFT = 0x14
    POSITION_SET_RIGHT = 0x15
    POSITION_SET_BOTTOM = 0x16
    POSITION_SET_TOP = 0x17
    POSITION_ENABLE = 0x18
    POSITION_DISABLE = 0x19
    FORCE_RGB = 0x20
    SET_RUMBLE = 0x21
    TRACK_HUES = 0x22
    CAMERA_FRAME_DELAY_CHANGE = 0x23
    CAMERA_FRAME_SET_NUM_SLICES = 0x24
    CAMERA_FRAME_PAUSE = 0x25
    CAMERA_FRAME_RESUME = 0x26


# Ordered payload field types per request
COMMAND_SCHEMAS: dict[Request, tuple[type, ...]] = {
    Request.INIT: (int,),
    Request.PAUSE: (),
    Request.RESUME: (),
    Request.DELAY_CHANGE: (int,),
    Request.CONFIG_CAMERA: (int, float),
    Request.CALIBRATE_CONTROLLER: (int,),
    Request.LASER_SET_LEFT: (int,),
    Request.LASER_SET_RIGHT: (int,),
    Request.LASER_SET_BOTTOM: (int,),
    Request.LASER_SET_TOP: (int,),
    Request.LASER_ENABLE: (int,),
    Request.LASER_DISABLE: (int,),
    Request.CONTROLLER_RESET: (int,),
    Request.POSITION_SET_LEFT: (int,),
    Request.POSITION_SET_RIGHT: (int,),
    Request.POSITION_SET_BOTTOM: (int,),
    Request.POSITION_SET_TOP: (int,),
    Request.POSITION_ENABLE: (int,),
    Request.POSITION_DISABLE: (int,),
    Request.FORCE_RGB: (int, float, float, float),
    Request.SET_RUMBLE: (int, int),
    Request.TRACK_HUES: (int, int, int, int),
    Request.CAMERA_FRAME_DELAY_CHANGE: (int,),
    Request.CAMERA_FRAME_SET_NUM_SLICES: (int,),
    Request.CAMERA_FRAME_PAUSE: (),
    Request.CAMERA_FRAME_RESUME: (),
}


class Side(str, Enum):
    """Edge of a laser or position pointer calibration box."""

    LEFT = "left"
    RIGHT = "right"
    BOTTOM = "bottom"
    TOP = "top"


LASER_SIDE_REQUESTS: dict[Side, Request] = {
    Side.LEFT: Request.LASER_SET_LEFT,
    Side.RIGHT: Request.LASER_SET_RIGHT,
    Side.BOTTOM: Request.LASER_SET_BOTTOM,
    Side.TOP: Request.LASER_SET_TOP,
}

POSITION_SIDE_REQUESTS: dict[Side, Request] = {
    Side.LEFT: Request.POSITION_SET_LEFT,
    Side.RIGHT: Request.POSITION_SET_RIGHT,
    Side.BOTTOM: Request.POSITION_SET_BOTTOM,
    Side.TOP: Request.POSITION_SET_TOP,
}


def build_command(request: Request, *values: int | float) -> CommandFrame:
    """Build a frame for ``request``, coercing values to its schema.

    Raises:
        ValueError: If the number of values does not match the schema, or
            a non-integral float is given for an integer field.
    """
    request = Request(request)
    schema = COMMAND_SCHEMAS[request]
    if len(values) != len(schema):
        raise ValueError(
            f"{request.name} takes {len(schema)} field(s), got {len(values)}"
        )
    for index, (kind, value) in enumerate(zip(schema, values)):
        if kind is int and isinstance(value, float) and not value.is_integer():
            raise ValueError(
                f"{request.name} field {index} must be an integer, got {value}"
            )
    fields = [kind(value) for kind, value in zip(schema, values)]
    return encode_command(request.value, fields)


def _check_controller(controller: int) -> int:
    if not 0 <= controller < MAX_CONTROLLERS:
        raise ValueError(
            f"Controller must be 0-{MAX_CONTROLLERS - 1}, got {controller}"
        )
    return controller


def _check_delay(delay_ms: int) -> int:
    if delay_ms < 0:
        raise ValueError(f"Delay must be >= 0 ms, got {delay_ms}")
    return delay_ms


def build_init(udp_port: int) -> CommandFrame:
    """Build the handshake request carrying the local datagram port."""
    if not 1 <= udp_port <= 65535:
        raise ValueError(f"UDP port must be 1-65535, got {udp_port}")
    return build_command(Request.INIT, udp_port)


def build_pause() -> CommandFrame:
    """Pause standard state packets."""
    return build_command(Request.PAUSE)


def build_resume() -> CommandFrame:
    """Resume standard state packets."""
    return build_command(Request.RESUME)


def build_delay_change(delay_ms: int) -> CommandFrame:
    """Set the delay between standard state packets.

    Args:
        delay_ms: Milliseconds between packets. 2 ms works well.
    """
    return build_command(Request.DELAY_CHANGE, _check_delay(delay_ms))


def build_configure_camera(max_exposure: int, image_quality: float) -> CommandFrame:
    """Configure the camera.

    Both values are passed through to the server unchanged.

    Args:
        max_exposure: Exposure time in image rows (the server accepts 40-511).
        image_quality: Image quality knob (0.0-1.0).
    """
    return build_command(Request.CONFIG_CAMERA, max_exposure, image_quality)


def build_calibrate_controller(controller: int) -> CommandFrame:
    return build_command(Request.CALIBRATE_CONTROLLER, _check_controller(controller))


def build_laser_bound(side: Side | str, controller: int) -> CommandFrame:
    """Set one edge of the laser pointer box to where the controller points."""
    request = LASER_SIDE_REQUESTS[Side(side)]
    return build_command(request, _check_controller(controller))


def build_laser_enable(controller: int) -> CommandFrame:
    return build_command(Request.LASER_ENABLE, _check_controller(controller))


def build_laser_disable(controller: int) -> CommandFrame:
    return build_command(Request.LASER_DISABLE, _check_controller(controller))


def build_controller_reset(controller: int) -> CommandFrame:
    return build_command(Request.CONTROLLER_RESET, _check_controller(controller))


def build_position_bound(side: Side | str, controller: int) -> CommandFrame:
    """Set one edge of the position pointer box to where the controller is."""
    request = POSITION_SIDE_REQUESTS[Side(side)]
    return build_command(request, _check_controller(controller))


def build_position_enable(controller: int) -> CommandFrame:
    return build_command(Request.POSITION_ENABLE, _check_controller(controller))


def build_position_disable(controller: int) -> CommandFrame:
    return build_command(Request.POSITION_DISABLE, _check_controller(controller))


def build_force_rgb(controller: int, r: float, g: float, b: float) -> CommandFrame:
    """Force the sphere to a fixed colour.

    This disables hue tracking and costs tracking accuracy.

    Args:
        controller: Controller index (0-3).
        r: Red component (0.0-1.0).
        g: Green component (0.0-1.0).
        b: Blue component (0.0-1.0).
    """
    for name, value in (("r", r), ("g", g), ("b", b)):
        if not 0.0 <= value <= 1.0:
            raise ValueError(f"Colour component {name} must be 0.0-1.0, got {value}")
    return build_command(Request.FORCE_RGB, _check_controller(controller), r, g, b)


def build_set_rumble(controller: int, rumble: int) -> CommandFrame:
    """Set controller vibration, 0 (off) to 255 (full)."""
    if not 0 <= rumble <= 255:
        raise ValueError(f"Rumble must be 0-255, got {rumble}")
    return build_command(Request.SET_RUMBLE, _check_controller(controller), rumble)


def build_track_hues(hue0: int, hue1: int, hue2: int, hue3: int) -> CommandFrame:
    """Request sphere hues for all four controllers at once.

    Hues are requests only; the server may move them to keep tracking
    reliable. Use :data:`PICK_FOR_ME` to let the server choose and
    :data:`DONT_TRACK` to disable tracking of a controller.

    Args:
        hue0: Hue for controller 0 (0-359 or a sentinel).
        hue1: Hue for controller 1.
        hue2: Hue for controller 2.
        hue3: Hue for controller 3.
    """
    hues = (hue0, hue1, hue2, hue3)
    for hue in hues:
        if hue not in (PICK_FOR_ME, DONT_TRACK) and not 0 <= hue <= 359:
            raise ValueError(f"Hue must be 0-359, PICK_FOR_ME or DONT_TRACK, got {hue}")
    return build_command(Request.TRACK_HUES, *hues)


def build_camera_frame_delay(delay_ms: int) -> CommandFrame:
    """Set the delay between camera frame packets (the server uses 16-255 ms)."""
    return build_command(Request.CAMERA_FRAME_DELAY_CHANGE, _check_delay(delay_ms))


def build_camera_frame_slices(num_slices: int) -> CommandFrame:
    """Set the number of horizontal slices each camera frame is sent in."""
    if not 1 <= num_slices <= MAX_CAMERA_FRAME_SLICES:
        raise ValueError(
            f"Slices must be 1-{MAX_CAMERA_FRAME_SLICES}, got {num_slices}"
        )
    return build_command(Request.CAMERA_FRAME_SET_NUM_SLICES, num_slices)


def build_camera_frame_pause() -> CommandFrame:
    return build_command(Request.CAMERA_FRAME_PAUSE)


def build_camera_frame_resume() -> CommandFrame:
    return build_command(Request.CAMERA_FRAME_RESUME)
