"""Frontend components for pose estimation.

Core components kept in this module:
- Pose2D / ReferencePose: Planar pose and external 3D camera pose
- HeadingEstimator: Yaw from the device rotation vector
- StepDetector / PDROdometry: Pedestrian dead reckoning
- VisualFrame: Frame delivered by the AR subsystem

Visual tracking components live in the `vo` submodule.
"""

from .frame import VisualFrame
from .heading import HeadingEstimator
from .pdr_odometry import PDROdometry
from .pose import Pose2D, ReferencePose, quaternion_to_yaw
from .step_detector import StepDetector, StepDetectorState, StepResult

__all__ = [
    # Pose
    "Pose2D",
    "ReferencePose",
    "quaternion_to_yaw",
    # Frames
    "VisualFrame",
    # Dead reckoning
    "HeadingEstimator",
    "StepDetector",
    "StepDetectorState",
    "StepResult",
    "PDROdometry",
]
