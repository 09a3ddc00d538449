"""Consumer-side callback interface for controller updates."""

from __future__ import annotations

import threading
import time
from typing import Any

from .models.buttons import ButtonEdges, button_names


class UpdateListener:
    """Receives controller updates from the receive loop.

    Callbacks run on the receive thread, one per accepted datagram. They
    may send commands through the client. Override the ones you need; the
    defaults do nothing. Button masks can be tested against
    :class:`~moveme_mcp.models.buttons.Button`.
    """

    def on_button_update(self, pushed: int, held: int, released: int, trigger: int) -> None:
        """Button update before any pointer is calibrated.

        Args:
            pushed: Buttons pushed down this tick.
            held: Buttons still held from the previous tick.
            released: Buttons released this tick.
            trigger: Analog trigger, 0 (off) to 255 (fully down).
        """

    def on_position_update(
        self,
        x: float,
        y: float,
        pushed: int,
        held: int,
        released: int,
        trigger: int,
    ) -> None:
        """Button update with a normalized pointer position.

        ``x`` and ``y`` are in [-1, 1] with 0 at the centre of the
        calibrated box.
        """

    def on_no_controller(self) -> None:
        """The server reports no controller connected."""


class StateRecorder(UpdateListener):
    """Keeps the most recent update for polling from other threads.

    If ``forward_to`` is given, every callback is passed on to it after
    being recorded.
    """

    def __init__(self, forward_to: UpdateListener | None = None) -> None:
        self._lock = threading.Lock()
        self._forward_to = forward_to
        self._last: dict[str, Any] | None = None
        self._down = 0
        self._counts = {"button_updates": 0, "position_updates": 0, "no_controller": 0}
        self._no_controller_at: float | None = None

    def _record(self, kind: str, position, edges: ButtonEdges, trigger: int) -> None:
        with self._lock:
            self._down = edges.pushed | edges.held
            self._last = {
                "kind": kind,
                "position": position,
                "pushed": edges.pushed,
                "held": edges.held,
                "released": edges.released,
                "trigger": trigger,
                "at": time.monotonic(),
            }

    def on_button_update(self, pushed: int, held: int, released: int, trigger: int) -> None:
        self._record("button", None, ButtonEdges(pushed, held, released), trigger)
        with self._lock:
            self._counts["button_updates"] += 1
        if self._forward_to is not None:
            self._forward_to.on_button_update(pushed, held, released, trigger)

    def on_position_update(self, x, y, pushed, held, released, trigger) -> None:
        self._record("position", (x, y), ButtonEdges(pushed, held, released), trigger)
        with self._lock:
            self._counts["position_updates"] += 1
        if self._forward_to is not None:
            self._forward_to.on_position_update(x, y, pushed, held, released, trigger)

    def on_no_controller(self) -> None:
        with self._lock:
            self._counts["no_controller"] += 1
            self._no_controller_at = time.monotonic()
        if self._forward_to is not None:
            self._forward_to.on_no_controller()

    def reset(self) -> None:
        with self._lock:
            self._last = None
            self._down = 0
            self._no_controller_at = None
            for key in self._counts:
                self._counts[key] = 0

    def snapshot(self) -> dict[str, Any]:
        """JSON-serializable view of the latest update."""
        with self._lock:
            last = dict(self._last) if self._last is not None else None
            counts = dict(self._counts)
            down = self._down
            no_controller_at = self._no_controller_at

        result: dict[str, Any] = {
            "updates": counts,
            "buttons_down": button_names(down),
            "last_update": None,
        }
        if last is not None:
            age_s = time.monotonic() - last.pop("at")
            position = last["position"]
            last["position"] = (
                {"x": position[0], "y": position[1]} if position is not None else None
            )
            last["age_s"] = round(age_s, 3)
            last["buttons"] = ButtonEdges(last["pushed"], last["held"], last["released"]).names()
            result["last_update"] = last
        if no_controller_at is not None:
            result["no_controller_age_s"] = round(time.monotonic() - no_controller_at, 3)
        return result
