"""SmartNav - pedestrian dead reckoning and visual tracking in Python."""

__version__ = "0.1.0"

# Re-export main classes for convenient imports
from .config import (
    DetectorConfig,
    EngineConfig,
    FusionConfig,
    MapConfig,
    MatcherConfig,
    PDRConfig,
    SimulationConfig,
    TrackerConfig,
)
from .events import PoseChannel, PoseEvent, PoseSource
from .frontend import (
    HeadingEstimator,
    PDROdometry,
    Pose2D,
    ReferencePose,
    StepDetector,
    StepDetectorState,
    VisualFrame,
    quaternion_to_yaw,
)
from .frontend.vo import (
    FeatureDetector,
    FeatureMatcher,
    FeatureMotionSource,
    FrameResult,
    Map,
    MotionEstimator,
    ReferencePoseMotionSource,
    SimulatedMotionSource,
    TrackerState,
    TrackingStatus,
    VisualTracker,
)
from .io import DatasetFrameSource, FrameSource, SensorLogReader, SequenceFrameSource
from .runtime import FramePoller
from .trajectory import TrajectoryRecorder

__all__ = [
    "__version__",
    # Configuration
    "EngineConfig",
    "PDRConfig",
    "DetectorConfig",
    "MatcherConfig",
    "FusionConfig",
    "MapConfig",
    "SimulationConfig",
    "TrackerConfig",
    # Events
    "PoseChannel",
    "PoseEvent",
    "PoseSource",
    # Pose
    "Pose2D",
    "ReferencePose",
    "quaternion_to_yaw",
    # Dead reckoning
    "HeadingEstimator",
    "StepDetector",
    "StepDetectorState",
    "PDROdometry",
    # Visual tracking
    "VisualFrame",
    "VisualTracker",
    "TrackerState",
    "FrameResult",
    "TrackingStatus",
    "FeatureMotionSource",
    "ReferencePoseMotionSource",
    "SimulatedMotionSource",
    "FeatureDetector",
    "FeatureMatcher",
    "MotionEstimator",
    "Map",
    # I/O
    "FrameSource",
    "SequenceFrameSource",
    "DatasetFrameSource",
    "SensorLogReader",
    # Runtime
    "FramePoller",
    # Session recording
    "TrajectoryRecorder",
]
