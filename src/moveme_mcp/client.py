"""High-level Move.Me client.

Usage::

    client = MoveMeClient()
    client.register_listener(MyListener())
    client.connect("192.168.1.20")
    client.delay_change(2)
    ...
    client.close()
"""

from __future__ import annotations

import logging
import threading

from .listener import UpdateListener
from .protocol.commands import (
    Request,
    Side,
    build_calibrate_controller,
    build_camera_frame_delay,
    build_camera_frame_pause,
    build_camera_frame_resume,
    build_camera_frame_slices,
    build_command,
    build_configure_camera,
    build_controller_reset,
    build_delay_change,
    build_force_rgb,
    build_init,
    build_laser_bound,
    build_laser_disable,
    build_laser_enable,
    build_pause,
    build_position_bound,
    build_position_disable,
    build_position_enable,
    build_resume,
    build_set_rumble,
    build_track_hues,
)
from .protocol.framing import CommandFrame
from .receiver import ReceiveLoop, ReceiveStats
from .transport.connection import (
    DEFAULT_PORT,
    ChannelWriteFailed,
    ConnectionInfo,
    MoveMeConnection,
)

logger = logging.getLogger(__name__)

THREAD_JOIN_TIMEOUT_S = 2.0


class MoveMeClient:
    """Client for a Move.Me server.

    Commands can be sent from any thread, including from inside listener
    callbacks. Every command method raises
    :class:`~moveme_mcp.transport.connection.ChannelWriteFailed` if the
    command could not be written; there are no retries, and a failed
    channel means the session is over.
    """

    def __init__(self) -> None:
        self._connection: MoveMeConnection | None = None
        self._loop: ReceiveLoop | None = None
        self._thread: threading.Thread | None = None
        self._listener: UpdateListener | None = None
        self._lifecycle_lock = threading.Lock()

    def __enter__(self) -> MoveMeClient:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def connected(self) -> bool:
        return self._connection is not None and self._connection.connected

    @property
    def info(self) -> ConnectionInfo | None:
        return self._connection.info if self._connection is not None else None

    @property
    def stats(self) -> ReceiveStats:
        return self._loop.stats if self._loop is not None else ReceiveStats()

    @property
    def listener(self) -> UpdateListener | None:
        return self._listener

    def register_listener(self, listener: UpdateListener | None) -> None:
        """Set the listener for controller updates.

        Only one listener is active; registering another replaces it.
        """
        self._listener = listener
        if self._loop is not None:
            self._loop.listener = listener

    def connect(self, host: str, port: int = DEFAULT_PORT) -> ConnectionInfo:
        """Connect to a Move.Me server and start receiving telemetry.

        Raises:
            RuntimeError: If already connected.
            ConnectionError: If the server cannot be reached or the init
                request cannot be sent.
        """
        with self._lifecycle_lock:
            if self._connection is not None:
                raise RuntimeError("Already connected; close() first")

            connection = MoveMeConnection(host, port)
            info = connection.open()

            loop = ReceiveLoop(connection, self._listener)
            thread = threading.Thread(target=loop.run, name="moveme-rx", daemon=True)
            self._connection = connection
            self._loop = loop
            self._thread = thread
            thread.start()

        try:
            self.send_frame(build_init(info.local_udp_port))
        except ChannelWriteFailed:
            self.close()
            raise
        return info

    def close(self) -> None:
        """Close the connection and wait for the receive thread to exit."""
        with self._lifecycle_lock:
            connection, thread = self._connection, self._thread
            self._connection = None
            self._loop = None
            self._thread = None

        if connection is not None:
            connection.close()
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=THREAD_JOIN_TIMEOUT_S)
            if thread.is_alive():
                logger.warning("Receive thread did not stop within %.1fs", THREAD_JOIN_TIMEOUT_S)

    def send_frame(self, frame: CommandFrame) -> None:
        connection = self._connection
        if connection is None:
            raise ChannelWriteFailed("Not connected to server")
        connection.send_frame(frame)

    def send_command(self, request: Request, *values: int | float) -> None:
        """Send any request with raw values checked against its schema."""
        self.send_frame(build_command(request, *values))

    # ─── Update stream ───────────────────────────────────────────────

    def pause(self) -> None:
        """Pause standard state packets."""
        self.send_frame(build_pause())

    def resume(self) -> None:
        """Resume standard state packets after :meth:`pause`."""
        self.send_frame(build_resume())

    def delay_change(self, delay_ms: int) -> None:
        """Set the delay between state packets; 2 ms works well."""
        self.send_frame(build_delay_change(delay_ms))

    def configure_camera(self, max_exposure: int, image_quality: float) -> None:
        """Configure the camera.

        Args:
            max_exposure: Exposure in image rows, 40-511. Longer exposure
                lowers noise but adds motion blur, which hurts tracking.
            image_quality: Image quality knob, 0.0-1.0.
        """
        self.send_frame(build_configure_camera(max_exposure, image_quality))

    # ─── Controller ──────────────────────────────────────────────────

    def calibrate_controller(self, controller: int) -> None:
        """Calibrate a controller. Point it at the camera and hold it still."""
        self.send_frame(build_calibrate_controller(controller))

    def reset_controller(self, controller: int) -> None:
        self.send_frame(build_controller_reset(controller))

    def force_rgb(self, controller: int, r: float, g: float, b: float) -> None:
        """Force the sphere colour. Disables hue tracking."""
        self.send_frame(build_force_rgb(controller, r, g, b))

    def set_rumble(self, controller: int, rumble: int) -> None:
        """Set vibration from 0 (off) to 255 (full)."""
        self.send_frame(build_set_rumble(controller, rumble))

    def set_tracking_color(self, hue0: int, hue1: int, hue2: int, hue3: int) -> None:
        """Request sphere hues for all four controllers.

        See :func:`~moveme_mcp.protocol.commands.build_track_hues`.
        """
        self.send_frame(build_track_hues(hue0, hue1, hue2, hue3))

    # ─── Laser pointer ───────────────────────────────────────────────

    def set_laser_left(self, controller: int) -> None:
        self.send_frame(build_laser_bound(Side.LEFT, controller))

    def set_laser_right(self, controller: int) -> None:
        self.send_frame(build_laser_bound(Side.RIGHT, controller))

    def set_laser_bottom(self, controller: int) -> None:
        self.send_frame(build_laser_bound(Side.BOTTOM, controller))

    def set_laser_top(self, controller: int) -> None:
        self.send_frame(build_laser_bound(Side.TOP, controller))

    def enable_laser(self, controller: int) -> None:
        self.send_frame(build_laser_enable(controller))

    def disable_laser(self, controller: int) -> None:
        self.send_frame(build_laser_disable(controller))

    # ─── Position pointer ────────────────────────────────────────────

    def set_position_left(self, controller: int) -> None:
        self.send_frame(build_position_bound(Side.LEFT, controller))

    def set_position_right(self, controller: int) -> None:
        self.send_frame(build_position_bound(Side.RIGHT, controller))

    def set_position_bottom(self, controller: int) -> None:
        self.send_frame(build_position_bound(Side.BOTTOM, controller))

    def set_position_top(self, controller: int) -> None:
        self.send_frame(build_position_bound(Side.TOP, controller))

    def enable_position(self, controller: int) -> None:
        self.send_frame(build_position_enable(controller))

    def disable_position(self, controller: int) -> None:
        self.send_frame(build_position_disable(controller))

    # ─── Camera frames ───────────────────────────────────────────────

    def camera_frame_delay_change(self, delay_ms: int) -> None:
        self.send_frame(build_camera_frame_delay(delay_ms))

    def camera_frame_set_num_slices(self, num_slices: int) -> None:
        """Number of slices per camera frame (1-7; 2 is usually enough)."""
        self.send_frame(build_camera_frame_slices(num_slices))

    def camera_frame_pause(self) -> None:
        self.send_frame(build_camera_frame_pause())

    def camera_frame_resume(self) -> None:
        self.send_frame(build_camera_frame_resume())
