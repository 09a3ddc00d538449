"""Data models for decoded telemetry and button state."""

from .telemetry import TelemetryFrame, StatusCode, StatusFlag
from .buttons import (
    Button,
    ButtonEdges,
    ButtonEdgeTracker,
    ButtonState,
    detect_edges,
)
