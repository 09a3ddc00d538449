"""Command frame builder and parser for the reliable (TCP) channel.

Frame layout::

    +-----------+-----------+------------------------------+
    | Code      | Length    | Payload                      |
    | 4 bytes   | 4 bytes   | ``length`` bytes             |
    +-----------+-----------+------------------------------+

- Code: request identifier, big-endian u32
- Length: byte length of the payload, big-endian u32. The server may use it
  to skip requests it does not know, so it is always sent.
- Payload: zero or more 4-byte fields, each a big-endian Int32 or Float32
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Union

from .wire import OutOfBounds, decode_u32, encode_f32, encode_i32, encode_u32

FRAME_HEADER_SIZE = 8
FIELD_SIZE = 4

FieldValue = Union[int, float]


@dataclass(frozen=True)
class CommandFrame:
    """A single request on the reliable channel."""

    code: int
    length: int
    payload: bytes

    def to_bytes(self) -> bytes:
        return encode_u32(self.code) + encode_u32(self.length) + self.payload

    def __repr__(self) -> str:
        return (
            f"CommandFrame(code=0x{self.code:02X}, length={self.length}, "
            f"payload={self.payload.hex(' ') if self.payload else '(empty)'})"
        )


def encode_command(code: int, fields: Sequence[FieldValue] = ()) -> CommandFrame:
    """Build a command frame from an ordered list of fields.

    ``int`` fields are written as Int32 and ``float`` fields as Float32.
    The arity is not checked against ``code``; see
    :func:`~moveme_mcp.protocol.commands.build_command` for that.

    Args:
        code: Request identifier.
        fields: Ordered payload fields.

    Returns:
        The frame, with ``length`` equal to the payload byte count.
    """
    parts = []
    for value in fields:
        if isinstance(value, float):
            parts.append(encode_f32(value))
        else:
            parts.append(encode_i32(value))
    payload = b"".join(parts)
    return CommandFrame(code=code, length=len(payload), payload=payload)


def parse_frame_header(data: bytes) -> tuple[int, int]:
    """Return ``(code, length)`` from the first 8 bytes of a frame."""
    return decode_u32(data, 0), decode_u32(data, 4)


def parse_frame(data: bytes) -> CommandFrame:
    """Parse one complete frame from the start of ``data``.

    Raises:
        OutOfBounds: If ``data`` is shorter than the header or the payload
            length it announces.
    """
    code, length = parse_frame_header(data)
    end = FRAME_HEADER_SIZE + length
    if end > len(data):
        raise OutOfBounds(FRAME_HEADER_SIZE, length, len(data))
    return CommandFrame(code=code, length=length, payload=bytes(data[FRAME_HEADER_SIZE:end]))
