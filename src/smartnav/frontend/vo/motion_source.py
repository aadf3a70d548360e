"""Motion sources driving the visual tracking state machine.

A motion source turns one frame into the next tracker state and the pose to
emit for that frame. Three variants exist:

- FeatureMotionSource: corner detection, descriptor matching and motion
  estimation fused with the reference pose, falling back to the reference
  pose when features are unusable
- ReferencePoseMotionSource: the reference pose alone
- SimulatedMotionSource: constant-velocity motion for running without an AR
  session
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from enum import Enum

import numpy as np

from ...config import EngineConfig, SimulationConfig
from ..frame import VisualFrame
from ..pose import Pose2D, ReferencePose
from .feature_detector import FeatureDetector, FeaturePoint
from .feature_matcher import FeatureMatcher
from .map_point import Map
from .motion_estimator import MotionEstimator

logger = logging.getLogger(__name__)


class TrackingStatus(Enum):
    """How the pose of a frame was obtained."""

    NOT_TRACKING = "NOT_TRACKING"
    BOOTSTRAP = "BOOTSTRAP"
    TRACKED = "TRACKED"
    FALLBACK_NO_FEATURES = "FALLBACK_NO_FEATURES"
    FALLBACK_FEW_MATCHES = "FALLBACK_FEW_MATCHES"
    FALLBACK_ESTIMATION_FAILED = "FALLBACK_ESTIMATION_FAILED"
    REFERENCE_ONLY = "REFERENCE_ONLY"
    SIMULATED = "SIMULATED"


@dataclass(frozen=True, eq=False)
class PreviousFrame:
    """Features and pixels of the last frame that reached matching."""

    features: tuple[FeaturePoint, ...]
    gray: np.ndarray | bytes
    width: int
    height: int


@dataclass(frozen=True)
class TrackerState:
    """Complete state of the visual tracking state machine.

    Attributes:
        is_running: True between start() and stop()
        initial_pose: Pose of the first reference sample, None until then
        accumulated_pose: Current absolute pose estimate
        frame_counter: Number of frames processed while running
        previous_frame: Last frame that reached matching
        last_update_ns: Frame time of the last simulated update
    """

    is_running: bool = False
    initial_pose: Pose2D | None = None
    accumulated_pose: Pose2D = field(default_factory=Pose2D.zero)
    frame_counter: int = 0
    previous_frame: PreviousFrame | None = None
    last_update_ns: int | None = None

    @property
    def relative_pose(self) -> Pose2D:
        """Accumulated pose relative to the initial pose (zero before init)."""
        if self.initial_pose is None:
            return Pose2D.zero()
        return self.accumulated_pose - self.initial_pose


@dataclass(frozen=True)
class FrameResult:
    """Pose emitted for one frame plus diagnostics.

    Attributes:
        pose: Pose relative to the initial reference pose
        status: How the pose was obtained
        num_features: Features detected in the frame
        num_matches: Accepted matches against the previous frame
        new_map_points: Map points added by the frame
    """

    pose: Pose2D
    status: TrackingStatus
    num_features: int = 0
    num_matches: int = 0
    new_map_points: int = 0

    @property
    def used_fallback(self) -> bool:
        return self.status in (
            TrackingStatus.FALLBACK_NO_FEATURES,
            TrackingStatus.FALLBACK_FEW_MATCHES,
            TrackingStatus.FALLBACK_ESTIMATION_FAILED,
        )


def hold_pose(state: TrackerState, reference: ReferencePose) -> tuple[TrackerState, FrameResult]:
    """Handle a frame while the AR subsystem is not tracking.

    The first reference sample with a position initializes the origin and
    yields the zero pose; otherwise the last relative pose is repeated so
    consumers keep receiving updates.
    """
    if state.initial_pose is None and reference.has_position():
        anchor = reference.to_pose2d()
        state = replace(state, initial_pose=anchor, accumulated_pose=anchor)
        return state, FrameResult(Pose2D.zero(), TrackingStatus.NOT_TRACKING)
    return state, FrameResult(state.relative_pose, TrackingStatus.NOT_TRACKING)


def anchor_to_reference(
    state: TrackerState, reference: ReferencePose
) -> tuple[TrackerState, Pose2D]:
    """Compute the reference-pose fallback estimate.

    The first sample becomes the origin (zero pose). Afterwards the
    accumulated pose is replaced by the reference pose and the pose relative
    to the origin is returned.
    """
    anchor = reference.to_pose2d()
    if state.initial_pose is None:
        return replace(state, initial_pose=anchor, accumulated_pose=anchor), Pose2D.zero()
    state = replace(state, accumulated_pose=anchor)
    return state, state.relative_pose


class MotionSource(ABC):
    """Strategy that advances the tracker state by one frame."""

    name: str = ""

    @abstractmethod
    def step(
        self, state: TrackerState, frame: VisualFrame, feature_map: Map
    ) -> tuple[TrackerState, FrameResult]:
        """Process one frame.

        Args:
            state: Tracker state before the frame
            frame: Frame to process
            feature_map: Sparse map owned by the tracker

        Returns:
            Tuple of (new state, result to emit)
        """


class FeatureMotionSource(MotionSource):
    """Feature tracking fused with the reference pose.

    Per tracking frame:
    1. Compute the reference-pose fallback estimate
    2. Detect features; none -> fallback
    3. First frame with features -> seed the map, emit zero
    4. Match against the previous frame; too few -> fallback
    5. Estimate motion; success -> add increment to the accumulated pose and
       add unmatched features to the map; failure -> fallback
    """

    name = "features"

    def __init__(
        self,
        detector: FeatureDetector | None = None,
        matcher: FeatureMatcher | None = None,
        estimator: MotionEstimator | None = None,
    ) -> None:
        self._detector = detector or FeatureDetector()
        self._matcher = matcher or FeatureMatcher()
        self._estimator = estimator or MotionEstimator(min_matches=self._matcher.min_matches)

    @classmethod
    def from_config(cls, config: EngineConfig) -> FeatureMotionSource:
        return cls(
            detector=FeatureDetector(config.detector),
            matcher=FeatureMatcher(config.matcher),
            estimator=MotionEstimator(config.fusion, min_matches=config.matcher.min_matches),
        )

    def step(
        self, state: TrackerState, frame: VisualFrame, feature_map: Map
    ) -> tuple[TrackerState, FrameResult]:
        if not frame.is_tracking:
            return hold_pose(state, frame.reference)

        state, fallback_pose = anchor_to_reference(state, frame.reference)

        features = self._detector.detect(frame.gray, frame.width, frame.height)
        if len(features) == 0:
            logger.debug("No features detected, using reference pose")
            return state, FrameResult(fallback_pose, TrackingStatus.FALLBACK_NO_FEATURES)

        current = PreviousFrame(
            features=tuple(features), gray=frame.gray, width=frame.width, height=frame.height
        )

        if state.previous_frame is None:
            added = feature_map.seed(features)
            state = replace(state, previous_frame=current)
            return state, FrameResult(
                Pose2D.zero(),
                TrackingStatus.BOOTSTRAP,
                num_features=len(features),
                new_map_points=added,
            )

        matches = self._matcher.match(list(state.previous_frame.features), features)
        state = replace(state, previous_frame=current)

        if not self._matcher.has_enough(matches):
            logger.debug(
                "Only %d matches (< %d), using reference pose",
                len(matches),
                self._matcher.min_matches,
            )
            return state, FrameResult(
                fallback_pose,
                TrackingStatus.FALLBACK_FEW_MATCHES,
                num_features=len(features),
                num_matches=len(matches),
            )

        motion = self._estimator.estimate(matches, frame.reference)
        if not motion.success or motion.pose is None:
            logger.debug("Motion estimation failed, using reference pose")
            return state, FrameResult(
                fallback_pose,
                TrackingStatus.FALLBACK_ESTIMATION_FAILED,
                num_features=len(features),
                num_matches=len(matches),
            )

        state = replace(state, accumulated_pose=state.accumulated_pose + motion.pose)
        added = feature_map.add_unmatched(features, matches)
        return state, FrameResult(
            state.relative_pose,
            TrackingStatus.TRACKED,
            num_features=len(features),
            num_matches=len(matches),
            new_map_points=added,
        )


class ReferencePoseMotionSource(MotionSource):
    """Uses the AR reference pose directly, without looking at the image."""

    name = "reference"

    def step(
        self, state: TrackerState, frame: VisualFrame, feature_map: Map
    ) -> tuple[TrackerState, FrameResult]:
        if not frame.is_tracking:
            return hold_pose(state, frame.reference)
        state, pose = anchor_to_reference(state, frame.reference)
        return state, FrameResult(pose, TrackingStatus.REFERENCE_ONLY)


class SimulatedMotionSource(MotionSource):
    """Constant-velocity motion along a fixed heading.

    Used when no AR session is available. The pose advances by
    speed * elapsed frame time along the current heading, at most once every
    `min_update_interval_ns`. It does not respond to turns or to the images.
    """

    name = "simulated"

    def __init__(self, config: SimulationConfig | None = None) -> None:
        self._config = config or SimulationConfig()

    def step(
        self, state: TrackerState, frame: VisualFrame, feature_map: Map
    ) -> tuple[TrackerState, FrameResult]:
        if state.initial_pose is None or state.last_update_ns is None:
            state = replace(
                state,
                initial_pose=Pose2D.zero(),
                accumulated_pose=Pose2D.zero(),
                last_update_ns=frame.timestamp_ns,
            )
            return state, FrameResult(Pose2D.zero(), TrackingStatus.SIMULATED)

        elapsed_ns = frame.timestamp_ns - state.last_update_ns
        if elapsed_ns < self._config.min_update_interval_ns:
            return state, FrameResult(state.relative_pose, TrackingStatus.SIMULATED)

        pose = state.accumulated_pose
        distance = self._config.speed * elapsed_ns * 1e-9
        state = replace(
            state,
            accumulated_pose=pose.advanced(distance, pose.theta),
            last_update_ns=frame.timestamp_ns,
        )
        return state, FrameResult(state.relative_pose, TrackingStatus.SIMULATED)


def make_motion_source(config: EngineConfig) -> MotionSource:
    """Build the motion source named by `config.tracker.motion_source`."""
    kind = config.tracker.motion_source
    if kind == FeatureMotionSource.name:
        return FeatureMotionSource.from_config(config)
    if kind == ReferencePoseMotionSource.name:
        return ReferencePoseMotionSource()
    if kind == SimulatedMotionSource.name:
        return SimulatedMotionSource(config.simulation)
    raise ValueError(f"Unknown motion source: {kind!r}")
