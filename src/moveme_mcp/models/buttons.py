"""Digital button bitmasks and edge detection.

The server reports which buttons are down in each sample. Consecutive
samples are turned into pushed/held/released sets::

    diff     = previous ^ current
    pushed   = diff & current
    held     = previous & current
    released = diff & previous

This is an edge detector over a sampled signal: it must see every accepted
sample exactly once and in order, or presses and releases are lost.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntFlag

BUTTON_MASK = 0xFFFF


class Button(IntFlag):
    """Motion controller digital buttons."""

    SELECT = 1 << 0
    T = 1 << 1
    MOVE = 1 << 2
    START = 1 << 3
    TRIANGLE = 1 << 4
    CIRCLE = 1 << 5
    CROSS = 1 << 6
    SQUARE = 1 << 7


def button_names(mask: int) -> list[str]:
    """Names of the known buttons set in ``mask``."""
    return [button.name for button in Button if mask & button]


@dataclass(frozen=True)
class ButtonEdges:
    """Button transitions between two samples."""

    pushed: int = 0
    held: int = 0
    released: int = 0

    def names(self) -> dict[str, list[str]]:
        return {
            "pushed": button_names(self.pushed),
            "held": button_names(self.held),
            "released": button_names(self.released),
        }


def detect_edges(previous_down: int, current_down: int) -> ButtonEdges:
    previous_down &= BUTTON_MASK
    current_down &= BUTTON_MASK
    diff = previous_down ^ current_down
    return ButtonEdges(
        pushed=diff & current_down,
        held=previous_down & current_down,
        released=diff & previous_down,
    )


@dataclass
class ButtonState:
    """Buttons held down as of the last accepted sample."""

    down: int = 0


class ButtonEdgeTracker:
    """Applies :func:`detect_edges` against a persisted :class:`ButtonState`."""

    def __init__(self, state: ButtonState | None = None) -> None:
        self.state = state if state is not None else ButtonState()

    def update(self, current_down: int) -> ButtonEdges:
        edges = detect_edges(self.state.down, current_down)
        self.state.down = current_down & BUTTON_MASK
        return edges

    def reset(self) -> None:
        self.state.down = 0
