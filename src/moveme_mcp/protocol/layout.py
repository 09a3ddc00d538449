"""Standard state record layout.

The server sends one C structure per standard state datagram. This module
declares that structure once, as an ordered list of named, typed fields
(alignment padding included), and derives every offset from it. The
decoder reads the handful of fields it needs by name.

Record overview (offsets are from the start of the datagram)::

    +--------+---------------------------------------+--------+
    | Offset | Block                                 | Size   |
    +--------+---------------------------------------+--------+
    |      0 | header                                |     16 |
    |     16 | server config                         |      8 |
    |     24 | client config (+4 pad)                |     16 |
    |     40 | controller status x4                  |     64 |
    |    104 | controller state x4                   |    704 |
    |    808 | image state x4                        |    192 |
    |   1000 | laser pointer state x4                |     48 |
    |   1048 | nav pad port status x7                |     28 |
    |   1076 | nav pad data x7                       |    924 |
    |   2000 | sphere state x4                       |     80 |
    |   2080 | camera state                          |     20 |
    |   2100 | position pointer state x4             |     48 |
    +--------+---------------------------------------+--------+
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Iterator, Union

from .wire import WIDTHS, OutOfBounds, decode

MAX_CONTROLLERS = 4
MAX_NAV_PADS = 7
NAV_PAD_MAX_CODES = 64

# An entry is (name, kind) or (None, pad_bytes)
Entry = tuple[Union[str, None], Union[str, int]]


@dataclass(frozen=True)
class Field:
    """A named field at a fixed offset within a record."""

    name: str
    kind: str
    offset: int
    width: int


class RecordLayout:
    """An ordered, fixed-size binary record."""

    def __init__(self, entries: Iterable[Entry]) -> None:
        self._fields: dict[str, Field] = {}
        offset = 0
        for name, kind in entries:
            if name is None:
                offset += int(kind)
                continue
            if name in self._fields:
                raise ValueError(f"Duplicate field name: {name}")
            width = WIDTHS[kind]
            self._fields[name] = Field(name=name, kind=kind, offset=offset, width=width)
            offset += width
        self._size = offset

    @property
    def size(self) -> int:
        return self._size

    @property
    def fields(self) -> list[Field]:
        return list(self._fields.values())

    def field(self, name: str) -> Field:
        try:
            return self._fields[name]
        except KeyError:
            raise KeyError(f"Unknown field '{name}'") from None

    def offset(self, name: str) -> int:
        return self.field(name).offset

    def read(self, buffer: bytes, name: str) -> Any:
        """Read a single field, bounds-checked against ``buffer``."""
        f = self.field(name)
        return decode(f.kind, buffer, f.offset)

    def parse(self, buffer: bytes) -> dict[str, Any]:
        """Parse every field of the record in order.

        Raises:
            OutOfBounds: If ``buffer`` is shorter than the record.
        """
        if len(buffer) < self._size:
            raise OutOfBounds(0, self._size, len(buffer))
        return {f.name: decode(f.kind, buffer, f.offset) for f in self._fields.values()}

    def describe(self) -> list[dict[str, Any]]:
        return [
            {"name": f.name, "kind": f.kind, "offset": f.offset, "width": f.width}
            for f in self._fields.values()
        ]


def _pad(count: int) -> Entry:
    return (None, count)


def _vec4(name: str) -> list[Entry]:
    return [(f"{name}[{i}]", "f32") for i in range(4)]


def _repeat(prefix: str, count: int, entries: list[Entry]) -> Iterator[Entry]:
    for i in range(count):
        for name, kind in entries:
            yield (f"{prefix}[{i}].{name}" if name is not None else None, kind)


_HEADER = [
    ("magic", "u32"),
    ("version", "u32"),
    ("payload_code", "u32"),
    ("packet_index", "i32"),
]

_SERVER_CONFIG = [
    ("server_config.num_image_slices", "i32"),
    ("server_config.image_slice_format", "i32"),
]

_CLIENT_CONFIG = [
    ("client_config.ms_delay_between_standard_packets", "u32"),
    ("client_config.ms_delay_between_camera_frame_packets", "u32"),
    ("client_config.camera_frame_packet_paused", "u32"),
    _pad(4),  # status block is 8-byte aligned
]

_STATUS = [
    ("connected", "i32"),
    ("code", "i32"),
    ("flags", "u64"),
]

# 16-byte aligned vectors; 176 bytes per controller
_STATE = [
    *_vec4("pos"),
    *_vec4("vel"),
    *_vec4("accel"),
    *_vec4("quat"),
    *_vec4("angvel"),
    *_vec4("angaccel"),
    *_vec4("handle_pos"),
    *_vec4("handle_vel"),
    *_vec4("handle_accel"),
    ("digital_buttons", "u16"),
    ("analog_trigger", "u16"),
    _pad(4),
    ("timestamp", "u64"),
    ("temperature", "f32"),
    ("camera_pitch_angle", "f32"),
    ("tracking_flags", "u32"),
    _pad(4),
]

# 48 bytes per controller
_IMAGE_STATE = [
    ("frame_timestamp", "u64"),
    ("timestamp", "u64"),
    ("u", "f32"),
    ("v", "f32"),
    ("r", "f32"),
    ("projection_x", "f32"),
    ("projection_y", "f32"),
    ("distance", "f32"),
    ("visible", "u8"),
    ("r_valid", "u8"),
    _pad(6),
]

_POINTER = [
    ("valid", "u32"),
    ("normalized_x", "f32"),
    ("normalized_y", "f32"),
]

_NAV_PAD = [
    ("length", "i32"),
    *[(f"button[{i}]", "u16") for i in range(NAV_PAD_MAX_CODES)],
]

_SPHERE = [
    ("tracking", "u32"),
    ("tracking_hue", "u32"),
    ("r", "f32"),
    ("g", "f32"),
    ("b", "f32"),
]

_CAMERA = [
    ("camera.exposure", "i32"),
    ("camera.exposure_time", "f32"),
    ("camera.gain", "f32"),
    ("camera.pitch_angle", "f32"),
    ("camera.pitch_angle_estimate", "f32"),
]

STANDARD_STATE_LAYOUT = RecordLayout([
    *_HEADER,
    *_SERVER_CONFIG,
    *_CLIENT_CONFIG,
    *_repeat("status", MAX_CONTROLLERS, _STATUS),
    *_repeat("state", MAX_CONTROLLERS, _STATE),
    *_repeat("image_state", MAX_CONTROLLERS, _IMAGE_STATE),
    *_repeat("pointer", MAX_CONTROLLERS, _POINTER),
    *[(f"nav_port_status[{i}]", "i32") for i in range(MAX_NAV_PADS)],
    *_repeat("nav_pad", MAX_NAV_PADS, _NAV_PAD),
    *_repeat("sphere", MAX_CONTROLLERS, _SPHERE),
    *_CAMERA,
    *_repeat("position_pointer", MAX_CONTROLLERS, _POINTER),
])
