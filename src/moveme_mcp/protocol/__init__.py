"""Protocol layer: wire primitives, command framing, record layout, and datagram decoding."""

from .framing import CommandFrame, encode_command, parse_frame
from .commands import Request, build_command
from .parser import decode_datagram, DatagramRejected, RejectReason, SequenceState
