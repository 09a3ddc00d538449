"""Socket transport to a Move.Me server.

Commands go over a TCP stream; the server streams telemetry back as UDP
datagrams to a port the client announces in its init request. This module
owns both sockets and nothing else: framing and decoding live in
:mod:`moveme_mcp.protocol`.
"""

from __future__ import annotations

import logging
import socket
import threading
from dataclasses import dataclass

from ..protocol.framing import CommandFrame

logger = logging.getLogger(__name__)

DEFAULT_PORT = 7899
MAX_DATAGRAM_SIZE = 65536
CONNECT_TIMEOUT_S = 5.0


class ChannelWriteFailed(ConnectionError):
    """A command could not be written to the reliable channel."""


class EndpointClosed(Exception):
    """The datagram endpoint was closed; no more telemetry will arrive."""


@dataclass
class ConnectionInfo:
    """Endpoints of an open connection."""

    host: str = ""
    port: int = DEFAULT_PORT
    local_udp_port: int = 0


class MoveMeConnection:
    """Manages the command stream and telemetry socket of one session.

    Usage::

        conn = MoveMeConnection("192.168.1.20")
        info = conn.open()
        conn.send_frame(build_init(info.local_udp_port))
        datagram = conn.receive_datagram()
        conn.close()

    A connection is single-use: once closed, open a new one.
    """

    def __init__(self, host: str, port: int = DEFAULT_PORT) -> None:
        self._host = host
        self._port = port
        self._tcp: socket.socket | None = None
        self._udp: socket.socket | None = None
        self._send_lock = threading.Lock()
        self._closed = threading.Event()
        self._connected = False
        self._info = ConnectionInfo(host=host, port=port)

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def info(self) -> ConnectionInfo:
        return self._info

    def open(self) -> ConnectionInfo:
        """Open the TCP command stream and bind the UDP telemetry socket.

        Returns:
            ConnectionInfo including the local UDP port to announce.

        Raises:
            ConnectionError: If the server cannot be reached or the UDP
                socket cannot be bound. Nothing is left open.
        """
        if self._connected or self._closed.is_set():
            raise RuntimeError("Connection already used; create a new one")

        try:
            tcp = socket.create_connection((self._host, self._port), timeout=CONNECT_TIMEOUT_S)
        except OSError as e:
            raise ConnectionError(
                f"Could not connect to Move.Me server at {self._host}:{self._port}. "
                f"Last error: {e}"
            ) from e

        try:
            tcp.settimeout(None)
            tcp.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)
            udp = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
            try:
                udp.bind(("", 0))
            except OSError:
                udp.close()
                raise
        except OSError as e:
            tcp.close()
            raise ConnectionError(f"Could not set up telemetry socket: {e}") from e

        self._tcp = tcp
        self._udp = udp
        self._connected = True
        self._info = ConnectionInfo(
            host=self._host,
            port=self._port,
            local_udp_port=udp.getsockname()[1],
        )
        logger.info(
            "Connected to %s:%d, telemetry on UDP port %d",
            self._host,
            self._port,
            self._info.local_udp_port,
        )
        return self._info

    def close(self) -> None:
        """Close both sockets, unblocking any pending receive."""
        if self._closed.is_set():
            return
        self._closed.set()

        # shutdown() wakes a thread blocked in recvfrom(); close() alone does not
        for sock in (self._udp, self._tcp):
            if sock is None:
                continue
            try:
                sock.shutdown(socket.SHUT_RDWR)
            except OSError as e:
                logger.debug("Socket shutdown: %s", e)
            try:
                sock.close()
            except OSError as e:
                logger.warning("Error closing socket: %s", e)

        was_connected = self._connected
        self._tcp = None
        self._udp = None
        self._connected = False
        if was_connected:
            logger.info("Disconnected from %s:%d", self._host, self._port)

    def send_frame(self, frame: CommandFrame) -> None:
        """Write one command frame in full.

        Writes from different threads are serialized so frames never
        interleave on the stream.

        Raises:
            ChannelWriteFailed: If not connected or the write fails. The
                connection should be treated as unusable.
        """
        data = frame.to_bytes()
        with self._send_lock:
            sock = self._tcp
            if sock is None or not self._connected:
                raise ChannelWriteFailed("Not connected to server")
            try:
                sock.sendall(data)
            except OSError as e:
                raise ChannelWriteFailed(f"Command write failed: {e}") from e
        logger.debug("TX %r", frame)

    def receive_datagram(self) -> bytes:
        """Block until a telemetry datagram arrives.

        There is no timeout; :meth:`close` is the way to unblock.

        Raises:
            EndpointClosed: If the connection is (or becomes) closed.
            OSError: On any other socket error.
        """
        sock = self._udp
        if sock is None or self._closed.is_set():
            raise EndpointClosed()
        try:
            data, _addr = sock.recvfrom(MAX_DATAGRAM_SIZE)
        except OSError as e:
            if self._closed.is_set():
                raise EndpointClosed() from e
            raise
        if self._closed.is_set():
            raise EndpointClosed()
        return data
