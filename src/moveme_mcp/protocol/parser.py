"""Telemetry datagram validation and decoding.

Every datagram starts with a 16-byte header::

    +-----------+-----------+--------------+--------------+-----------------+
    | Magic     | Version   | Payload code | Packet index | Payload         |
    | u32       | u32       | u32          | i32          | per payload code|
    +-----------+-----------+--------------+--------------+-----------------+

Datagrams arrive unordered and may be lost or duplicated, and stray packets
from an earlier connection can still be in flight. A datagram is only
accepted if its magic and version match and its packet index is not lower
than the last accepted one.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any

from ..models.telemetry import TelemetryFrame
from .layout import STANDARD_STATE_LAYOUT
from .wire import INT32_MIN, decode_i32, decode_u32

PACKET_MAGIC = 0xFF0000DD
PROTOCOL_VERSION = 1
HEADER_SIZE = 16


class PayloadCode(IntEnum):
    """Datagram payload kinds."""

    STANDARD_STATE = 0x1
    CAMERA_FRAME_SLICE = 0x2
    CAMERA_FRAME_STATE = 0x3


class RejectReason(Enum):
    MALFORMED = "malformed"
    BAD_MAGIC = "bad_magic"
    BAD_VERSION = "bad_version"
    STALE = "stale"
    UNSUPPORTED_PAYLOAD = "unsupported_payload"


@dataclass(frozen=True)
class DatagramHeader:
    magic: int
    version: int
    payload_code: int
    packet_index: int


class DatagramRejected(Exception):
    """A datagram failed validation and was not applied."""

    def __init__(
        self,
        reason: RejectReason,
        message: str,
        header: DatagramHeader | None = None,
    ) -> None:
        super().__init__(message)
        self.reason = reason
        self.header = header

    @property
    def payload_code(self) -> int | None:
        return self.header.payload_code if self.header is not None else None


@dataclass
class SequenceState:
    """Highest packet index accepted on the current connection."""

    last_accepted_index: int = INT32_MIN


def parse_header(datagram: bytes) -> DatagramHeader:
    """Read the fixed datagram header.

    Raises:
        DatagramRejected: With ``MALFORMED`` if the datagram is shorter
            than the header.
    """
    if len(datagram) < HEADER_SIZE:
        raise DatagramRejected(
            RejectReason.MALFORMED,
            f"Datagram too short for header: {len(datagram)} < {HEADER_SIZE}",
        )
    return DatagramHeader(
        magic=decode_u32(datagram, 0),
        version=decode_u32(datagram, 4),
        payload_code=decode_u32(datagram, 8),
        packet_index=decode_i32(datagram, 12),
    )


def _check_identity(header: DatagramHeader) -> None:
    if header.magic != PACKET_MAGIC:
        raise DatagramRejected(
            RejectReason.BAD_MAGIC,
            f"Bad magic 0x{header.magic:08X}",
            header,
        )
    if header.version != PROTOCOL_VERSION:
        raise DatagramRejected(
            RejectReason.BAD_VERSION,
            f"Unsupported server version {header.version}",
            header,
        )


def _check_payload(header: DatagramHeader) -> None:
    if header.payload_code != PayloadCode.STANDARD_STATE:
        raise DatagramRejected(
            RejectReason.UNSUPPORTED_PAYLOAD,
            f"Unimplemented payload code {header.payload_code}",
            header,
        )


def decode_datagram(datagram: bytes, sequence: SequenceState) -> TelemetryFrame:
    """Validate a datagram and extract the first controller's state.

    ``sequence`` is only advanced when a frame is returned; any rejection
    or read error leaves it unchanged.

    Args:
        datagram: Raw datagram bytes.
        sequence: Sequencing state of the current connection.

    Returns:
        The decoded :class:`TelemetryFrame`.

    Raises:
        DatagramRejected: On a short header, wrong magic or version, a
            stale packet index, or a payload other than standard state.
        OutOfBounds: If the payload is too short for a field being read.
    """
    header = parse_header(datagram)
    _check_identity(header)
    if header.packet_index < sequence.last_accepted_index:
        raise DatagramRejected(
            RejectReason.STALE,
            f"Stale packet {header.packet_index} "
            f"(last accepted {sequence.last_accepted_index})",
            header,
        )
    _check_payload(header)

    read = STANDARD_STATE_LAYOUT.read
    frame = TelemetryFrame(
        packet_index=header.packet_index,
        controller_connected=read(datagram, "status[0].connected") != 0,
        controller_status_code=read(datagram, "status[0].code"),
        controller_flags=read(datagram, "status[0].flags"),
        digital_buttons=read(datagram, "state[0].digital_buttons"),
        trigger_analog=read(datagram, "state[0].analog_trigger"),
        sphere_visible=read(datagram, "image_state[0].visible") != 0,
        pointer_valid=read(datagram, "pointer[0].valid") != 0,
        pointer_x=read(datagram, "pointer[0].normalized_x"),
        pointer_y=read(datagram, "pointer[0].normalized_y"),
        tracking_enabled=read(datagram, "sphere[0].tracking") != 0,
        position_pointer_valid=read(datagram, "position_pointer[0].valid") != 0,
        position_x=read(datagram, "position_pointer[0].normalized_x"),
        position_y=read(datagram, "position_pointer[0].normalized_y"),
    )
    sequence.last_accepted_index = header.packet_index
    return frame


def decode_full_state(datagram: bytes) -> dict[str, Any]:
    """Parse every field of a standard state datagram.

    Intended for diagnostics; it does not apply sequencing.
    """
    header = parse_header(datagram)
    _check_identity(header)
    _check_payload(header)
    return STANDARD_STATE_LAYOUT.parse(datagram)
