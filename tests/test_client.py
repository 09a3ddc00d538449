"""End-to-end tests of the client against a loopback server."""

import threading

import pytest

from conftest import recv_exact
from moveme_mcp.client import MoveMeClient
from moveme_mcp.listener import UpdateListener
from moveme_mcp.models.buttons import Button
from moveme_mcp.protocol.commands import PICK_FOR_ME, Request
from moveme_mcp.protocol.framing import parse_frame_header
from moveme_mcp.transport.connection import ChannelWriteFailed


class EventListener(UpdateListener):
    def __init__(self):
        self.updates = []
        self.got_update = threading.Event()

    def on_button_update(self, pushed, held, released, trigger):
        self.updates.append(("button", pushed, held, released, trigger))
        self.got_update.set()

    def on_position_update(self, x, y, pushed, held, released, trigger):
        self.updates.append(("position", x, y, pushed, held, released, trigger))
        self.got_update.set()


def _connect(client, tcp_server):
    info = client.connect("127.0.0.1", tcp_server.getsockname()[1])
    peer, _ = tcp_server.accept()
    peer.settimeout(5.0)
    return info, peer


def test_connect_sends_init_with_udp_port(tcp_server):
    with MoveMeClient() as client:
        info, peer = _connect(client, tcp_server)
        try:
            data = recv_exact(peer, 12)
            assert parse_frame_header(data) == (Request.INIT, 4)
            assert int.from_bytes(data[8:], "big") == info.local_udp_port
            assert client.connected
        finally:
            peer.close()
    assert not client.connected


def test_commands_written_in_order(tcp_server):
    with MoveMeClient() as client:
        _, peer = _connect(client, tcp_server)
        try:
            recv_exact(peer, 12)
            client.pause()
            client.set_rumble(0, 255)
            client.set_tracking_color(PICK_FOR_ME, 0, 0, 0)
            data = recv_exact(peer, 8 + 16 + 24)
            assert parse_frame_header(data) == (Request.PAUSE, 0)
            assert parse_frame_header(data[8:]) == (Request.SET_RUMBLE, 8)
            assert parse_frame_header(data[24:]) == (Request.TRACK_HUES, 16)
        finally:
            peer.close()


def test_send_when_not_connected():
    client = MoveMeClient()
    with pytest.raises(ChannelWriteFailed):
        client.pause()
    with pytest.raises(ChannelWriteFailed):
        client.send_command(Request.DELAY_CHANGE, 2)


def test_invalid_argument_not_sent(tcp_server):
    with MoveMeClient() as client:
        _, peer = _connect(client, tcp_server)
        try:
            recv_exact(peer, 12)
            with pytest.raises(ValueError):
                client.calibrate_controller(9)
            client.resume()
            assert parse_frame_header(recv_exact(peer, 8)) == (Request.RESUME, 0)
        finally:
            peer.close()


def test_connect_twice(tcp_server):
    with MoveMeClient() as client:
        _, peer = _connect(client, tcp_server)
        try:
            with pytest.raises(RuntimeError):
                client.connect("127.0.0.1", tcp_server.getsockname()[1])
        finally:
            peer.close()


def test_telemetry_reaches_listener(tcp_server, udp_sender, datagram):
    listener = EventListener()
    with MoveMeClient() as client:
        client.register_listener(listener)
        info, peer = _connect(client, tcp_server)
        try:
            udp_sender.sendto(
                datagram(1, buttons=Button.CROSS, trigger=50),
                ("127.0.0.1", info.local_udp_port),
            )
            assert listener.got_update.wait(timeout=5.0)
            assert listener.updates == [("button", Button.CROSS, 0, 0, 50)]
            assert client.stats.accepted == 1
        finally:
            peer.close()


def test_listener_registered_after_connect(tcp_server, udp_sender, datagram):
    listener = EventListener()
    with MoveMeClient() as client:
        info, peer = _connect(client, tcp_server)
        client.register_listener(listener)
        try:
            udp_sender.sendto(
                datagram(1, pointer=(0.5, 0.5)),
                ("127.0.0.1", info.local_udp_port),
            )
            assert listener.got_update.wait(timeout=5.0)
            assert listener.updates[0][:3] == ("position", 0.5, 0.5)
            assert client.listener is listener
        finally:
            peer.close()


def test_concurrent_sends_do_not_interleave(tcp_server):
    """Frames written from several threads arrive whole and in sequence."""
    threads_count = 4
    per_thread = 200
    with MoveMeClient() as client:
        _, peer = _connect(client, tcp_server)
        try:
            recv_exact(peer, 12)

            def _send(worker):
                for i in range(per_thread):
                    if (worker + i) % 2:
                        client.set_rumble(worker % 4, i % 256)
                    else:
                        client.set_tracking_color(i % 360, PICK_FOR_ME, 0, 0)

            workers = [
                threading.Thread(target=_send, args=(n,)) for n in range(threads_count)
            ]
            for t in workers:
                t.start()
            for t in workers:
                t.join(timeout=10.0)

            # half of each thread's frames are rumble, half track hues
            expected = threads_count * per_thread
            total_bytes = expected // 2 * (8 + 8) + expected // 2 * (8 + 16)
            data = recv_exact(peer, total_bytes)
            assert len(data) == total_bytes

            valid = {Request.SET_RUMBLE: 8, Request.TRACK_HUES: 16}
            offset = 0
            frames = 0
            while offset < len(data):
                code, length = parse_frame_header(data[offset:])
                assert valid[code] == length
                offset += 8 + length
                frames += 1
            assert offset == total_bytes
            assert frames == expected
        finally:
            peer.close()


def test_command_from_listener_callback(tcp_server, udp_sender, datagram):
    """A listener can send commands from the receive thread."""

    class RumbleOnPress(EventListener):
        def __init__(self, client):
            super().__init__()
            self.client = client

        def on_button_update(self, pushed, held, released, trigger):
            self.client.set_rumble(0, 255)
            super().on_button_update(pushed, held, released, trigger)

    with MoveMeClient() as client:
        listener = RumbleOnPress(client)
        client.register_listener(listener)
        info, peer = _connect(client, tcp_server)
        try:
            recv_exact(peer, 12)
            udp_sender.sendto(
                datagram(1, buttons=Button.MOVE),
                ("127.0.0.1", info.local_udp_port),
            )
            assert listener.got_update.wait(timeout=5.0)
            data = recv_exact(peer, 16)
            assert parse_frame_header(data) == (Request.SET_RUMBLE, 8)
            assert data[8:] == b"\x00\x00\x00\x00\x00\x00\x00\xff"
        finally:
            peer.close()


def test_close_without_connect():
    client = MoveMeClient()
    client.close()
    assert client.info is None
    assert client.stats.received == 0
