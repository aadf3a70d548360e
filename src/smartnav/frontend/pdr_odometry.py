"""Pedestrian dead-reckoning odometry.

Consumes pushed linear-acceleration and orientation samples and emits a
planar pose on the pose channel for every detected step. No external
reference is used, so drift accumulates with every step.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import replace

import numpy as np

from ..config import PDRConfig
from ..events import PoseChannel, PoseSource
from .heading import HeadingEstimator
from .pose import Pose2D
from .step_detector import StepDetector, StepDetectorState

logger = logging.getLogger(__name__)


class PDROdometry:
    """Step-and-heading dead reckoning with a start/stop/reset lifecycle.

    Samples are only processed while running. `stop()` and a later `start()`
    keep the accumulated pose; only `reset()` returns to the origin.
    """

    def __init__(
        self,
        channel: PoseChannel | None = None,
        config: PDRConfig | None = None,
        heading_estimator: HeadingEstimator | None = None,
    ) -> None:
        """Initialize dead reckoning.

        Args:
            channel: Channel receiving the emitted poses (a private one if None)
            config: Step detection parameters
            heading_estimator: Shared heading source (a private one if None)
        """
        self._channel = channel or PoseChannel()
        self._detector = StepDetector(config)
        self._heading = heading_estimator or HeadingEstimator()

        self._lock = threading.RLock()
        self._state: StepDetectorState = self._detector.initial_state()
        self._trajectory: list[Pose2D] = []
        self._is_running = False

    def start(self) -> None:
        """Start processing samples. No-op if already running."""
        with self._lock:
            if self._is_running:
                return
            self._is_running = True
        self._heading.start()
        logger.info("Dead reckoning started")

    def stop(self) -> None:
        """Stop processing samples. The accumulated pose is kept."""
        with self._lock:
            if not self._is_running:
                return
            self._is_running = False
        self._heading.stop()
        logger.info("Dead reckoning stopped after %d steps", self._state.step_count)

    def reset(self) -> Pose2D:
        """Return to the origin and emit the zero pose.

        The last-step timestamp is cleared as well; the acceleration filter
        keeps its history.
        """
        with self._lock:
            self._state = replace(
                self._state,
                pose=Pose2D.zero(),
                last_step_timestamp_ns=None,
                step_count=0,
            )
            self._trajectory = []
            pose = self._state.pose
            self._channel.emit(PoseSource.DEAD_RECKONING, pose)
        return pose

    def process_acceleration(
        self, x: float, y: float, z: float, timestamp_ns: int
    ) -> Pose2D | None:
        """Process one linear-acceleration sample.

        Args:
            x, y, z: Linear acceleration in m/s² (gravity removed)
            timestamp_ns: Sample timestamp in nanoseconds

        Returns:
            The new pose if a step was detected, otherwise None
        """
        return self.process_sample(np.array([x, y, z], dtype=np.float64), timestamp_ns)

    def process_sample(self, acceleration: np.ndarray, timestamp_ns: int) -> Pose2D | None:
        """Process one linear-acceleration vector. See `process_acceleration`."""
        with self._lock:
            if not self._is_running:
                return None

            result = self._detector.process(
                self._state, acceleration, timestamp_ns, self._heading.heading
            )
            self._state = result.state
            if not result.step_detected:
                return None

            pose = result.state.pose
            self._trajectory.append(pose)
            self._channel.emit(PoseSource.DEAD_RECKONING, pose, timestamp_ns)

        logger.debug("Step %d at t=%d: %s", result.state.step_count, timestamp_ns, pose)
        return pose

    def process_orientation(self, qx: float, qy: float, qz: float, qw: float) -> None:
        """Forward a rotation-vector sample to the heading estimator."""
        self._heading.update(qx, qy, qz, qw)

    def get_trajectory(self) -> list[Pose2D]:
        """Return all poses emitted for steps since the last reset."""
        with self._lock:
            return self._trajectory.copy()

    @property
    def current_pose(self) -> Pose2D:
        with self._lock:
            return self._state.pose

    @property
    def step_count(self) -> int:
        with self._lock:
            return self._state.step_count

    @property
    def heading(self) -> float:
        return self._heading.heading

    @property
    def heading_estimator(self) -> HeadingEstimator:
        return self._heading

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._is_running

    @property
    def channel(self) -> PoseChannel:
        return self._channel
