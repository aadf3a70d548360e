"""Heading (yaw) estimation from the device rotation vector."""

from __future__ import annotations

import threading

from .pose import quaternion_to_yaw


class HeadingEstimator:
    """Holds the latest yaw computed from the orientation sensor.

    Orientation samples arrive on the sensor callback context while the step
    integrator reads the heading from another one. The heading is a single
    float published under a lock, so a reader always gets either the previous
    or the latest value. No history is kept.

    Heading is in radians, 0 = facing the positive X axis at start-up,
    positive angles rotate counter-clockwise.
    """

    def __init__(self, initial_heading: float = 0.0) -> None:
        self._lock = threading.Lock()
        self._heading = float(initial_heading)
        self._running = False

    def start(self) -> None:
        """Begin accepting orientation updates."""
        with self._lock:
            self._running = True

    def stop(self) -> None:
        """Stop accepting orientation updates. The last heading is kept."""
        with self._lock:
            self._running = False

    def update(self, qx: float, qy: float, qz: float, qw: float) -> None:
        """Publish a new heading from quaternion components.

        Ignored while the estimator is stopped.
        """
        yaw = quaternion_to_yaw(qx, qy, qz, qw)
        with self._lock:
            if self._running:
                self._heading = yaw

    def update_from_quaternion(self, quaternion: tuple[float, float, float, float]) -> None:
        """Publish a new heading from a (qx, qy, qz, qw) tuple."""
        qx, qy, qz, qw = quaternion
        self.update(qx, qy, qz, qw)

    def set_heading(self, heading: float) -> None:
        """Publish a heading directly (external or simulated orientation)."""
        with self._lock:
            self._heading = float(heading)

    @property
    def heading(self) -> float:
        """Latest heading in radians."""
        with self._lock:
            return self._heading

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._running
