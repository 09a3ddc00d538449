"""Decoded telemetry snapshot for the first controller slot."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import IntEnum, IntFlag


class StatusCode(IntEnum):
    """Controller status reported by the server."""

    TRACKING = 0
    NOT_CONNECTED = 1
    NOT_CALIBRATED = 2
    CALIBRATING = 3
    COMPUTING_AVAILABLE_COLORS = 4
    HUE_NOT_SET = 5


class StatusFlag(IntFlag):
    """Calibration and warning bits of the controller status flags."""

    CALIBRATION_OCCURRED = 0x1
    CALIBRATION_SUCCEEDED = 0x2
    FAIL_CANT_FIND_SPHERE = 0x4
    FAIL_MOTION_DETECTED = 0x8
    WARN_MOTION_DETECTED = 0x20


@dataclass(frozen=True)
class TelemetryFrame:
    """The fields of one standard state datagram this client consumes."""

    packet_index: int
    controller_connected: bool
    controller_status_code: int
    controller_flags: int
    digital_buttons: int
    trigger_analog: int
    sphere_visible: bool
    pointer_valid: bool
    pointer_x: float
    pointer_y: float
    tracking_enabled: bool
    position_pointer_valid: bool
    position_x: float
    position_y: float

    @property
    def status(self) -> StatusCode | None:
        try:
            return StatusCode(self.controller_status_code)
        except ValueError:
            return None

    @property
    def flags(self) -> StatusFlag:
        known = 0
        for flag in StatusFlag:
            known |= flag
        return StatusFlag(self.controller_flags & known)

    @property
    def no_controller(self) -> bool:
        """True when the server reports no controller in slot 0."""
        return (
            not self.controller_connected
            and self.controller_status_code == StatusCode.NOT_CONNECTED
        )

    @property
    def position(self) -> tuple[float, float] | None:
        """Normalized (x, y) in [-1, 1], laser pointer first.

        ``None`` until either pointer has been calibrated and enabled.
        """
        if self.pointer_valid:
            return (self.pointer_x, self.pointer_y)
        if self.position_pointer_valid:
            return (self.position_x, self.position_y)
        return None

    def to_dict(self) -> dict:
        d = asdict(self)
        status = self.status
        d["status"] = status.name if status is not None else None
        d["flag_names"] = [flag.name for flag in StatusFlag if self.controller_flags & flag]
        return d
