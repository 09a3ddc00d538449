"""Tests for the receive loop and listener dispatch."""

from unittest.mock import MagicMock

from moveme_mcp.listener import UpdateListener
from moveme_mcp.models.buttons import Button
from moveme_mcp.protocol.parser import PayloadCode
from moveme_mcp.receiver import LoopState, ReceiveLoop
from moveme_mcp.transport.connection import EndpointClosed


class FakeEndpoint:
    """Yields queued items, raising exceptions in the queue, then closes."""

    def __init__(self, items):
        self._items = list(items)
        self.closed = False

    def receive_datagram(self):
        if self.closed or not self._items:
            raise EndpointClosed()
        item = self._items.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def close(self):
        self.closed = True


def _run(items, listener=None):
    loop = ReceiveLoop(FakeEndpoint(items), listener)
    loop.run()
    return loop


def test_button_only_update(datagram):
    """No pointer calibrated: one button update and no position update."""
    listener = MagicMock(spec=UpdateListener)
    _run([datagram(1, buttons=0b0001), datagram(2, buttons=0b0101, trigger=128)], listener)

    assert listener.on_button_update.call_count == 2
    listener.on_button_update.assert_called_with(0b0100, 0b0001, 0, 128)
    listener.on_position_update.assert_not_called()
    listener.on_no_controller.assert_not_called()


def test_position_update(datagram):
    listener = MagicMock(spec=UpdateListener)
    _run([datagram(1, buttons=Button.T, trigger=10, pointer=(0.5, -0.5))], listener)

    listener.on_position_update.assert_called_once_with(0.5, -0.5, Button.T, 0, 0, 10)
    listener.on_button_update.assert_not_called()


def test_position_pointer_used_when_laser_invalid(datagram):
    listener = MagicMock(spec=UpdateListener)
    _run([datagram(1, position=(0.25, 0.75))], listener)
    listener.on_position_update.assert_called_once_with(0.25, 0.75, 0, 0, 0, 0)


def test_no_controller_once_per_datagram(datagram):
    """No-controller fires alongside the button update, once each."""
    listener = MagicMock(spec=UpdateListener)
    _run([datagram(1, connected=False, status_code=1)], listener)

    listener.on_no_controller.assert_called_once_with()
    listener.on_button_update.assert_called_once_with(0, 0, 0, 0)


def test_no_controller_dispatched_first(datagram):
    calls = []

    class Recorder(UpdateListener):
        def on_button_update(self, pushed, held, released, trigger):
            calls.append("button")

        def on_no_controller(self):
            calls.append("no_controller")

    _run([datagram(1, connected=False, status_code=1)], Recorder())
    assert calls == ["no_controller", "button"]


def test_stale_datagram_does_not_touch_buttons(datagram):
    listener = MagicMock(spec=UpdateListener)
    loop = _run(
        [datagram(100, buttons=Button.CROSS), datagram(99, buttons=0), datagram(101, buttons=Button.CROSS)],
        listener,
    )

    assert listener.on_button_update.call_count == 2
    listener.on_button_update.assert_called_with(0, Button.CROSS, 0, 0)
    assert loop.buttons.state.down == Button.CROSS
    assert loop.sequence.last_accepted_index == 101
    assert loop.stats.rejected["stale"] == 1


def test_rejections_are_counted(datagram):
    loop = _run([
        b"\x00" * 4,
        datagram(1, magic=0),
        datagram(1, version=7),
        datagram(1, payload_code=PayloadCode.CAMERA_FRAME_SLICE),
        datagram(1, size=200),
        datagram(1),
    ])
    stats = loop.stats
    assert stats.received == 6
    assert stats.accepted == 1
    assert stats.rejected == {
        "malformed": 1,
        "bad_magic": 1,
        "bad_version": 1,
        "stale": 0,
        "unsupported_payload": 1,
    }
    assert stats.out_of_bounds == 1


def test_receive_error_continues(datagram):
    listener = MagicMock(spec=UpdateListener)
    loop = _run([OSError("boom"), datagram(1)], listener)
    assert loop.stats.receive_errors == 1
    listener.on_button_update.assert_called_once()


def test_listener_exception_does_not_stop_loop(datagram):
    listener = MagicMock(spec=UpdateListener)
    listener.on_button_update.side_effect = [RuntimeError("bad listener"), None]
    loop = _run([datagram(1), datagram(2)], listener)

    assert listener.on_button_update.call_count == 2
    assert loop.stats.listener_errors == 1
    assert loop.stats.accepted == 2


def test_failing_no_controller_still_dispatches_update(datagram):
    """The button update is delivered even if the no-controller callback raises."""
    listener = MagicMock(spec=UpdateListener)
    listener.on_no_controller.side_effect = RuntimeError("bad listener")
    loop = ReceiveLoop(FakeEndpoint([]), listener)

    loop.handle_datagram(datagram(1, connected=False, status_code=1, buttons=Button.CROSS))

    listener.on_no_controller.assert_called_once_with()
    listener.on_button_update.assert_called_once_with(Button.CROSS, 0, 0, 0)
    assert loop.stats.listener_errors == 1


def test_no_listener_still_tracks_buttons(datagram):
    loop = _run([datagram(1, buttons=Button.START)])
    assert loop.buttons.state.down == Button.START
    assert loop.stats.accepted == 1


def test_listener_slot_replaced(datagram):
    first = MagicMock(spec=UpdateListener)
    second = MagicMock(spec=UpdateListener)
    loop = ReceiveLoop(FakeEndpoint([]), first)
    loop.listener = second
    loop.handle_datagram(datagram(1))
    first.on_button_update.assert_not_called()
    second.on_button_update.assert_called_once()


def test_handle_datagram_returns_frame(datagram):
    loop = ReceiveLoop(FakeEndpoint([]))
    assert loop.handle_datagram(datagram(5)).packet_index == 5
    assert loop.handle_datagram(datagram(4)) is None


def test_stop_closes_endpoint(datagram):
    endpoint = FakeEndpoint([datagram(1)])
    loop = ReceiveLoop(endpoint)
    loop.stop()
    assert endpoint.closed
    assert loop.state is LoopState.STOPPED
    loop.run()
    assert loop.stats.received == 0


def test_stats_is_a_copy(datagram):
    loop = ReceiveLoop(FakeEndpoint([]))
    stats = loop.stats
    stats.rejected["stale"] = 99
    assert loop.stats.rejected["stale"] == 0
