"""Shared helpers for building telemetry datagrams and a loopback server."""

from __future__ import annotations

import socket
import struct

import pytest

from moveme_mcp.protocol.layout import STANDARD_STATE_LAYOUT
from moveme_mcp.protocol.parser import PACKET_MAGIC, PayloadCode

_PACK = {
    "u8": ">B",
    "u16": ">H",
    "i32": ">i",
    "u32": ">I",
    "u64": ">Q",
    "f32": ">f",
}


def _put(buf: bytearray, name: str, value) -> None:
    f = STANDARD_STATE_LAYOUT.field(name)
    struct.pack_into(_PACK[f.kind], buf, f.offset, value)


def make_datagram(
    packet_index: int = 0,
    *,
    magic: int = PACKET_MAGIC,
    version: int = 1,
    payload_code: int = PayloadCode.STANDARD_STATE,
    connected: bool = True,
    status_code: int = 0,
    flags: int = 0,
    buttons: int = 0,
    trigger: int = 0,
    visible: bool = False,
    pointer: tuple[float, float] | None = None,
    tracking: bool = False,
    position: tuple[float, float] | None = None,
    size: int | None = None,
) -> bytes:
    """Build a standard state datagram for controller slot 0."""
    buf = bytearray(STANDARD_STATE_LAYOUT.size)
    _put(buf, "magic", magic)
    _put(buf, "version", version)
    _put(buf, "payload_code", payload_code)
    _put(buf, "packet_index", packet_index)
    _put(buf, "status[0].connected", 1 if connected else 0)
    _put(buf, "status[0].code", status_code)
    _put(buf, "status[0].flags", flags)
    _put(buf, "state[0].digital_buttons", buttons)
    _put(buf, "state[0].analog_trigger", trigger)
    _put(buf, "image_state[0].visible", 1 if visible else 0)
    _put(buf, "sphere[0].tracking", 1 if tracking else 0)
    if pointer is not None:
        _put(buf, "pointer[0].valid", 1)
        _put(buf, "pointer[0].normalized_x", pointer[0])
        _put(buf, "pointer[0].normalized_y", pointer[1])
    if position is not None:
        _put(buf, "position_pointer[0].valid", 1)
        _put(buf, "position_pointer[0].normalized_x", position[0])
        _put(buf, "position_pointer[0].normalized_y", position[1])
    data = bytes(buf)
    return data if size is None else data[:size]


def recv_exact(sock: socket.socket, count: int) -> bytes:
    data = b""
    while len(data) < count:
        chunk = sock.recv(count - len(data))
        if not chunk:
            break
        data += chunk
    return data


@pytest.fixture
def datagram():
    return make_datagram


@pytest.fixture
def tcp_server():
    """A listening TCP socket on loopback standing in for the Move.Me server."""
    server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    server.bind(("127.0.0.1", 0))
    server.listen(1)
    server.settimeout(5.0)
    yield server
    server.close()


@pytest.fixture
def udp_sender():
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    yield sock
    sock.close()
