"""Tests for button edge detection."""

from moveme_mcp.models.buttons import (
    Button,
    ButtonEdgeTracker,
    ButtonEdges,
    ButtonState,
    button_names,
    detect_edges,
)


def test_button_bits():
    assert Button.SELECT == 1
    assert Button.T == 2
    assert Button.MOVE == 4
    assert Button.START == 8
    assert Button.TRIANGLE == 16
    assert Button.CIRCLE == 32
    assert Button.CROSS == 64
    assert Button.SQUARE == 128


def test_press_while_holding():
    """SELECT held while MOVE goes down."""
    edges = detect_edges(0b0001, 0b0101)
    assert edges == ButtonEdges(pushed=0b0100, held=0b0001, released=0)


def test_release():
    edges = detect_edges(0b0110, 0b0010)
    assert edges.pushed == 0
    assert edges.held == 0b0010
    assert edges.released == 0b0100


def test_no_change():
    assert detect_edges(0, 0) == ButtonEdges()
    assert detect_edges(0x81, 0x81) == ButtonEdges(held=0x81)


def test_edge_properties_exhaustive():
    """Every pair of 4-bit samples partitions cleanly."""
    for prev in range(16):
        for cur in range(16):
            e = detect_edges(prev, cur)
            assert e.pushed & e.held == 0
            assert e.held & e.released == 0
            assert e.pushed & e.released == 0
            assert e.pushed | e.held == cur
            assert e.held | e.released == prev


def test_high_bits_are_masked():
    edges = detect_edges(0, 0x1_0001)
    assert edges.pushed == 0x0001


def test_button_names():
    assert button_names(0) == []
    assert button_names(Button.CROSS | Button.SELECT) == ["SELECT", "CROSS"]
    assert button_names(0x100) == []


def test_edges_names():
    names = ButtonEdges(pushed=Button.T, held=0, released=Button.MOVE).names()
    assert names == {"pushed": ["T"], "held": [], "released": ["MOVE"]}


def test_tracker_persists_state():
    tracker = ButtonEdgeTracker()
    assert tracker.update(Button.CROSS).pushed == Button.CROSS
    assert tracker.state.down == Button.CROSS

    edges = tracker.update(Button.CROSS | Button.SQUARE)
    assert edges.pushed == Button.SQUARE
    assert edges.held == Button.CROSS

    edges = tracker.update(0)
    assert edges.released == Button.CROSS | Button.SQUARE
    assert tracker.state.down == 0


def test_tracker_shares_state():
    state = ButtonState(down=Button.START)
    tracker = ButtonEdgeTracker(state)
    tracker.update(0)
    assert state.down == 0


def test_tracker_reset():
    tracker = ButtonEdgeTracker()
    tracker.update(Button.MOVE)
    tracker.reset()
    assert tracker.update(Button.MOVE).pushed == Button.MOVE
