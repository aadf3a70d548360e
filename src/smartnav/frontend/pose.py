"""Planar pose representation shared by dead reckoning and visual tracking."""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np


def quaternion_to_yaw(qx: float, qy: float, qz: float, qw: float) -> float:
    """Convert quaternion components into yaw (heading) in radians.

    Uses the Z-axis rotation of the ZYX Euler decomposition:

        yaw = atan2(2(qw*qz + qx*qy), 1 - 2(qy^2 + qz^2))

    Args:
        qx, qy, qz: Vector part of the quaternion
        qw: Scalar part of the quaternion

    Returns:
        Yaw angle in radians in [-pi, pi]
    """
    siny_cosp = 2.0 * (qw * qz + qx * qy)
    cosy_cosp = 1.0 - 2.0 * (qy * qy + qz * qz)
    return math.atan2(siny_cosp, cosy_cosp)


@dataclass(frozen=True)
class Pose2D:
    """Planar pose (x, y, theta).

    Position is expressed in meters along the device's initial X/Y axes, heading
    in radians where 0 is the initial facing direction and positive angles
    rotate counter-clockwise.

    Pose2D is immutable: every update produces a new instance.

    Attributes:
        x: Position along the initial X axis (m)
        y: Position along the initial Y axis (m)
        theta: Heading (rad)
    """

    x: float = 0.0
    y: float = 0.0
    theta: float = 0.0

    @classmethod
    def zero(cls) -> Pose2D:
        """Return the origin pose (0, 0, 0)."""
        return cls(0.0, 0.0, 0.0)

    @classmethod
    def from_array(cls, values: np.ndarray) -> Pose2D:
        """Create a pose from a length-3 array [x, y, theta]."""
        values = np.asarray(values, dtype=np.float64).flatten()
        if values.shape != (3,):
            raise ValueError(f"Pose array must be (3,), got {values.shape}")
        return cls(float(values[0]), float(values[1]), float(values[2]))

    def __add__(self, other: Pose2D) -> Pose2D:
        """Component-wise sum, used to apply an incremental update."""
        if not isinstance(other, Pose2D):
            return NotImplemented
        return Pose2D(self.x + other.x, self.y + other.y, self.theta + other.theta)

    def __sub__(self, other: Pose2D) -> Pose2D:
        """Component-wise difference, used to express a pose relative to an origin."""
        if not isinstance(other, Pose2D):
            return NotImplemented
        return Pose2D(self.x - other.x, self.y - other.y, self.theta - other.theta)

    def advanced(self, distance: float, heading: float) -> Pose2D:
        """Move `distance` meters along `heading` and adopt that heading.

        Args:
            distance: Travelled distance in meters
            heading: Direction of travel in radians

        Returns:
            New pose (x + d*cos(heading), y + d*sin(heading), heading)
        """
        return Pose2D(
            self.x + distance * math.cos(heading),
            self.y + distance * math.sin(heading),
            heading,
        )

    def distance_to(self, other: Pose2D) -> float:
        """Euclidean distance between the positions of two poses."""
        return math.hypot(other.x - self.x, other.y - self.y)

    def is_finite(self) -> bool:
        """Return True if all components are finite."""
        return math.isfinite(self.x) and math.isfinite(self.y) and math.isfinite(self.theta)

    def as_array(self) -> np.ndarray:
        """Return [x, y, theta] as a float64 array."""
        return np.array([self.x, self.y, self.theta], dtype=np.float64)

    def __repr__(self) -> str:
        return f"Pose2D(x={self.x:.3f}, y={self.y:.3f}, theta={self.theta:.3f})"


@dataclass(frozen=True)
class ReferencePose:
    """Externally supplied 3D camera pose (translation + orientation).

    The AR tracking subsystem reports camera poses in a Y-up frame where the
    camera looks along -Z. The planar projection keeps X and uses -Z as the
    planar Y axis.

    Attributes:
        translation: (x, y, z) camera position in meters
        quaternion: (qx, qy, qz, qw) camera orientation
    """

    translation: tuple[float, float, float] = (0.0, 0.0, 0.0)
    quaternion: tuple[float, float, float, float] = (0.0, 0.0, 0.0, 1.0)

    def __post_init__(self) -> None:
        """Normalize inputs to float tuples."""
        translation = tuple(float(v) for v in np.asarray(self.translation).flatten())
        quaternion = tuple(float(v) for v in np.asarray(self.quaternion).flatten())
        if len(translation) != 3:
            raise ValueError(f"Translation must have 3 values, got {len(translation)}")
        if len(quaternion) != 4:
            raise ValueError(f"Quaternion must have 4 values, got {len(quaternion)}")
        object.__setattr__(self, "translation", translation)
        object.__setattr__(self, "quaternion", quaternion)

    @classmethod
    def identity(cls) -> ReferencePose:
        """Pose at the origin with no rotation."""
        return cls()

    @property
    def x(self) -> float:
        return self.translation[0]

    @property
    def z(self) -> float:
        return self.translation[2]

    @property
    def yaw(self) -> float:
        """Heading of the reference pose in radians."""
        qx, qy, qz, qw = self.quaternion
        return quaternion_to_yaw(qx, qy, qz, qw)

    def has_position(self, epsilon: float = 0.001) -> bool:
        """Return True once the tracker reports a non-trivial position.

        The AR subsystem reports an exact origin until it has a fix, so a pose
        with |x| and |z| both below `epsilon` is treated as "no sample yet".
        """
        return abs(self.x) > epsilon or abs(self.z) > epsilon

    def to_pose2d(self) -> Pose2D:
        """Project onto the plane: (x, -z, yaw)."""
        return Pose2D(self.x, -self.z, self.yaw)
