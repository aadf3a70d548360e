"""Visual tracking state machine.

Owns the tracker state, the sparse feature map and the pose channel, and
delegates the per-frame work to a motion source. Every processed frame emits
exactly one visual pose.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from typing import TYPE_CHECKING

from ...config import EngineConfig
from ...events import PoseChannel, PoseSource
from ..frame import VisualFrame
from ..pose import Pose2D
from .map_point import Map
from .motion_source import (
    FrameResult,
    MotionSource,
    TrackerState,
    make_motion_source,
)

if TYPE_CHECKING:
    from ...io.frame_source import FrameSource

logger = logging.getLogger(__name__)


class VisualTracker:
    """Stopped/Running state machine around a motion source.

    Frames are only processed while running; `process_frame` on a stopped
    tracker is a no-op. The map and the previous-frame cache are only mutated
    from `process_frame`, `reset` and `stop`, which are serialized by a lock so
    `stop()` can be called while a frame is in flight.
    """

    def __init__(
        self,
        channel: PoseChannel | None = None,
        config: EngineConfig | None = None,
        motion_source: MotionSource | None = None,
    ) -> None:
        """Initialize visual tracker.

        Args:
            channel: Channel receiving the emitted poses (a private one if None)
            config: Engine configuration (defaults if None)
            motion_source: Per-frame strategy. Defaults to the one named in
                `config.tracker.motion_source`.
        """
        self._config = config or EngineConfig()
        self._channel = channel or PoseChannel()
        self._motion_source = motion_source or make_motion_source(self._config)

        self._lock = threading.RLock()
        self._state = TrackerState()
        self._map = Map(
            max_points=self._config.map.max_points,
            pixel_to_meter=self._config.fusion.pixel_to_meter,
        )
        self._trajectory: list[Pose2D] = []

    def start(self) -> None:
        """Start processing frames from a clean state. No-op if running."""
        with self._lock:
            if self._state.is_running:
                return
            self._state = TrackerState(is_running=True)
            self._map.clear()
            self._trajectory = []
        logger.info("Visual tracking started (motion source: %s)", self._motion_source.name)

    def stop(self) -> None:
        """Stop processing frames and drop the map and frame cache."""
        with self._lock:
            if not self._state.is_running:
                return
            frames = self._state.frame_counter
            self._state = TrackerState(is_running=False)
            self._map.clear()
        logger.info("Visual tracking stopped after %d frames", frames)

    def reset(self) -> Pose2D:
        """Clear pose, frame counter, map and frame cache, and emit the zero pose."""
        with self._lock:
            self._state = TrackerState(is_running=self._state.is_running)
            self._map.clear()
            self._trajectory = []
            pose = Pose2D.zero()
            self._channel.emit(PoseSource.VISUAL, pose)
        logger.info("Visual tracking reset")
        return pose

    def process_frame(self, frame: VisualFrame) -> FrameResult | None:
        """Run one frame through the state machine and emit its pose.

        Args:
            frame: Frame with grayscale pixels and reference pose

        Returns:
            FrameResult for the frame, or None if the tracker is stopped
        """
        with self._lock:
            if not self._state.is_running:
                return None

            state, result = self.step(self._state, frame)
            self._state = state
            self._trajectory.append(result.pose)
            self._channel.emit(PoseSource.VISUAL, result.pose, frame.timestamp_ns)

        if state.frame_counter % 30 == 0:
            logger.debug(
                "Frame %d: %s pose=%s features=%d matches=%d map=%d",
                state.frame_counter,
                result.status.value,
                result.pose,
                result.num_features,
                result.num_matches,
                self._map.num_points,
            )
        return result

    def process_next(self, source: FrameSource) -> FrameResult | None:
        """Pull one frame from a source and process it.

        The source is not touched while the tracker is stopped, so frames
        queued after `stop()` stay available for a later start.

        Returns:
            FrameResult for the frame, or None if stopped or no frame was ready
        """
        with self._lock:
            if not self._state.is_running:
                return None
            frame = source.get_next_frame()
            if frame is None:
                return None
            return self.process_frame(frame)

    def step(self, state: TrackerState, frame: VisualFrame) -> tuple[TrackerState, FrameResult]:
        """Pure state transition for one frame (apart from map updates).

        Args:
            state: State before the frame
            frame: Frame to process

        Returns:
            Tuple of (state after the frame, result)
        """
        new_state, result = self._motion_source.step(state, frame, self._map)
        return replace(new_state, frame_counter=state.frame_counter + 1), result

    def get_trajectory(self) -> list[Pose2D]:
        """Return all poses emitted for frames since start/reset."""
        with self._lock:
            return self._trajectory.copy()

    def get_map(self) -> Map:
        """Return the sparse map."""
        return self._map

    @property
    def state(self) -> TrackerState:
        with self._lock:
            return self._state

    @property
    def current_pose(self) -> Pose2D:
        """Accumulated pose relative to the initial reference pose."""
        with self._lock:
            return self._state.relative_pose

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._state.is_running

    @property
    def num_frames(self) -> int:
        with self._lock:
            return self._state.frame_counter

    @property
    def num_map_points(self) -> int:
        return self._map.num_points

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def motion_source(self) -> MotionSource:
        return self._motion_source

    @property
    def channel(self) -> PoseChannel:
        return self._channel
