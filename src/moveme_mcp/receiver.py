"""Telemetry receive loop.

One loop runs per connection, on its own thread, for the lifetime of the
connection. It is the only code that touches the sequencing and button
state, so neither needs locking.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

from .listener import UpdateListener
from .models.buttons import ButtonEdges, ButtonEdgeTracker
from .models.telemetry import TelemetryFrame
from .protocol.parser import DatagramRejected, RejectReason, SequenceState, decode_datagram
from .protocol.wire import OutOfBounds
from .transport.connection import EndpointClosed

logger = logging.getLogger(__name__)


class DatagramEndpoint(Protocol):
    def receive_datagram(self) -> bytes: ...

    def close(self) -> None: ...


class LoopState(Enum):
    RUNNING = "running"
    STOPPED = "stopped"


@dataclass
class ReceiveStats:
    received: int = 0
    accepted: int = 0
    rejected: dict[str, int] = field(
        default_factory=lambda: {reason.value: 0 for reason in RejectReason}
    )
    out_of_bounds: int = 0
    receive_errors: int = 0
    listener_errors: int = 0

    def to_dict(self) -> dict:
        return dataclasses.asdict(self)


class ReceiveLoop:
    """Drains the datagram endpoint and dispatches to a single listener.

    ``listener`` is a single slot; assigning it replaces the previous
    listener. With no listener set, datagrams are still decoded and button
    edges still tracked.
    """

    def __init__(
        self,
        endpoint: DatagramEndpoint,
        listener: UpdateListener | None = None,
    ) -> None:
        self._endpoint = endpoint
        self.listener = listener
        self.sequence = SequenceState()
        self.buttons = ButtonEdgeTracker()
        self._stats = ReceiveStats()
        self._state = LoopState.RUNNING

    @property
    def state(self) -> LoopState:
        return self._state

    @property
    def stats(self) -> ReceiveStats:
        return dataclasses.replace(self._stats, rejected=dict(self._stats.rejected))

    def stop(self) -> None:
        """Stop the loop by closing its endpoint."""
        self._state = LoopState.STOPPED
        self._endpoint.close()

    def run(self) -> None:
        logger.debug("Receive loop started")
        while self._state is LoopState.RUNNING:
            try:
                datagram = self._endpoint.receive_datagram()
            except EndpointClosed:
                break
            except OSError as e:
                self._stats.receive_errors += 1
                logger.warning("Datagram receive failed: %s", e)
                continue
            if self._state is not LoopState.RUNNING:
                break
            self.handle_datagram(datagram)
        self._state = LoopState.STOPPED
        logger.debug("Receive loop stopped")

    def handle_datagram(self, datagram: bytes) -> TelemetryFrame | None:
        """Decode one datagram and dispatch it.

        Returns:
            The accepted frame, or ``None`` if the datagram was dropped.
        """
        self._stats.received += 1
        try:
            frame = decode_datagram(datagram, self.sequence)
        except DatagramRejected as e:
            self._stats.rejected[e.reason.value] += 1
            if e.reason is RejectReason.UNSUPPORTED_PAYLOAD:
                logger.warning("%s", e)
            else:
                logger.debug("Dropped datagram: %s", e)
            return None
        except OutOfBounds as e:
            self._stats.out_of_bounds += 1
            logger.debug("Dropped truncated datagram: %s", e)
            return None

        self._stats.accepted += 1
        edges = self.buttons.update(frame.digital_buttons)
        self._dispatch(frame, edges)
        return frame

    def _dispatch(self, frame: TelemetryFrame, edges: ButtonEdges) -> None:
        listener = self.listener
        if listener is None:
            return
        if frame.no_controller:
            self._call(listener.on_no_controller, frame)

        position = frame.position
        if position is None:
            self._call(
                listener.on_button_update,
                frame,
                edges.pushed, edges.held, edges.released, frame.trigger_analog,
            )
        else:
            x, y = position
            self._call(
                listener.on_position_update,
                frame,
                x, y, edges.pushed, edges.held, edges.released, frame.trigger_analog,
            )

    def _call(self, callback, frame: TelemetryFrame, *args) -> None:
        try:
            callback(*args)
        except Exception:
            self._stats.listener_errors += 1
            logger.exception("Listener failed on packet %d", frame.packet_index)
