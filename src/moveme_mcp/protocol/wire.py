"""Fixed-width big-endian primitives shared by the command and telemetry codecs.

Every value on both channels is big-endian with no implicit padding or
alignment. Decoders are bounds-checked: reading past the end of a buffer
raises :class:`OutOfBounds` instead of returning partial data.
"""

from __future__ import annotations

import struct

# kind name -> big-endian struct
_FORMATS: dict[str, struct.Struct] = {
    "u8": struct.Struct(">B"),
    "u16": struct.Struct(">H"),
    "i32": struct.Struct(">i"),
    "u32": struct.Struct(">I"),
    "i64": struct.Struct(">q"),
    "u64": struct.Struct(">Q"),
    "f32": struct.Struct(">f"),
}

WIDTHS: dict[str, int] = {kind: fmt.size for kind, fmt in _FORMATS.items()}

INT32_MIN = -(2**31)
UINT32_LIMIT = 2**32


class OutOfBounds(ValueError):
    """A fixed-width read would run past the end of the buffer."""

    def __init__(self, offset: int, width: int, length: int) -> None:
        super().__init__(
            f"Cannot read {width} bytes at offset {offset} "
            f"from a {length}-byte buffer"
        )
        self.offset = offset
        self.width = width
        self.length = length


def encode_i32(value: int) -> bytes:
    """Encode a 32-bit integer field.

    Both signed and unsigned 32-bit values are accepted and written as the
    same four bytes a 32-bit register would hold.
    """
    value = int(value)
    if not INT32_MIN <= value < UINT32_LIMIT:
        raise ValueError(f"Value does not fit in 32 bits: {value}")
    return _FORMATS["u32"].pack(value & 0xFFFFFFFF)


encode_u32 = encode_i32


def encode_f32(value: float) -> bytes:
    """Encode a 32-bit IEEE-754 float field."""
    try:
        return _FORMATS["f32"].pack(float(value))
    except (OverflowError, struct.error) as e:
        raise ValueError(f"Value does not fit in a 32-bit float: {value}") from e


def decode(kind: str, buffer: bytes, offset: int):
    """Read one value of ``kind`` at ``offset``."""
    fmt = _FORMATS[kind]
    if offset < 0 or offset + fmt.size > len(buffer):
        raise OutOfBounds(offset, fmt.size, len(buffer))
    return fmt.unpack_from(buffer, offset)[0]


def decode_u8(buffer: bytes, offset: int) -> int:
    return decode("u8", buffer, offset)


def decode_u16(buffer: bytes, offset: int) -> int:
    return decode("u16", buffer, offset)


def decode_i32(buffer: bytes, offset: int) -> int:
    return decode("i32", buffer, offset)


def decode_u32(buffer: bytes, offset: int) -> int:
    return decode("u32", buffer, offset)


def decode_i64(buffer: bytes, offset: int) -> int:
    return decode("i64", buffer, offset)


def decode_u64(buffer: bytes, offset: int) -> int:
    return decode("u64", buffer, offset)


def decode_f32(buffer: bytes, offset: int) -> float:
    return decode("f32", buffer, offset)
