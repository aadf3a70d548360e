"""Visual tracking components.

Components:
- VisualTracker: Stopped/Running state machine emitting one pose per frame
- MotionSource: Per-frame strategies (feature tracking, reference pose only,
  simulated constant velocity)
- FeatureDetector: Grid-based Harris corner detection with patch descriptors
- FeatureMatcher: Greedy nearest-neighbour descriptor matching
- MotionEstimator: Feature displacement fused with the reference pose
- Map/MapPoint: Capped sparse feature map
"""

from .feature_detector import FeatureDetector, FeaturePoint
from .feature_matcher import FeatureMatch, FeatureMatcher, descriptor_distance
from .map_point import Map, MapPoint
from .motion_estimator import MotionEstimator, MotionResult
from .motion_source import (
    FeatureMotionSource,
    FrameResult,
    MotionSource,
    PreviousFrame,
    ReferencePoseMotionSource,
    SimulatedMotionSource,
    TrackerState,
    TrackingStatus,
    make_motion_source,
)
from .visual_tracker import VisualTracker

__all__ = [
    # Tracker
    "VisualTracker",
    "TrackerState",
    "PreviousFrame",
    "FrameResult",
    "TrackingStatus",
    # Motion sources
    "MotionSource",
    "FeatureMotionSource",
    "ReferencePoseMotionSource",
    "SimulatedMotionSource",
    "make_motion_source",
    # Features
    "FeatureDetector",
    "FeaturePoint",
    # Matching
    "FeatureMatcher",
    "FeatureMatch",
    "descriptor_distance",
    # Motion Estimation
    "MotionEstimator",
    "MotionResult",
    # Map
    "Map",
    "MapPoint",
]
