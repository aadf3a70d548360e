"""Planar motion estimation from feature displacement fused with a reference pose."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from ...config import FusionConfig, MatcherConfig
from ..pose import Pose2D, ReferencePose
from .feature_matcher import FeatureMatch

logger = logging.getLogger(__name__)


@dataclass
class MotionResult:
    """Result of motion estimation.

    Attributes:
        success: True if an incremental pose was estimated
        pose: Incremental pose to add to the accumulated pose. None if failed.
        num_matches: Number of matches used for the displacement
        rotation_samples: Number of matches that contributed to the rotation
        pixel_displacement: Mean (dx, dy) displacement in pixels
    """

    success: bool
    pose: Pose2D | None
    num_matches: int = 0
    rotation_samples: int = 0
    pixel_displacement: tuple[float, float] = (0.0, 0.0)

    @classmethod
    def failed(cls, num_matches: int = 0) -> MotionResult:
        return cls(success=False, pose=None, num_matches=num_matches)


class MotionEstimator:
    """Best-effort 2D motion estimate from matched features.

    The feature displacement only provides an image-space direction; scale and
    absolute accuracy come from the external reference pose:

    1. Mean pixel displacement (avg_dx, avg_dy) over all matches
    2. Conversion to meters with a fixed `pixel_to_meter` scale
    3. Rotation as the mean atan2(dy, dx) over the first `max_rotation_samples`
       matches that moved more than `min_displacement` pixels on either axis
       (0 if none did)
    4. Weighted fusion with the reference pose, independently per component:

           x     = wf * dx_m  + wr * ref.x
           y     = wf * dy_m  + wr * (-ref.z)
           theta = wf * rot   + wr * ref.yaw
    """

    def __init__(
        self,
        config: FusionConfig | None = None,
        min_matches: int | None = None,
    ) -> None:
        """Initialize motion estimator.

        Args:
            config: Fusion parameters (defaults: 0.001 m/px, weights 0.3/0.7)
            min_matches: Minimum matches for a valid estimate (default from
                MatcherConfig)
        """
        self._config = config or FusionConfig()
        self._min_matches = MatcherConfig().min_matches if min_matches is None else min_matches

    def estimate(self, matches: list[FeatureMatch], reference: ReferencePose) -> MotionResult:
        """Estimate the incremental planar pose for one frame.

        Args:
            matches: Accepted feature matches between previous and current frame
            reference: Externally supplied pose of the current frame

        Returns:
            MotionResult; `success` is False on too few matches or on any
            numerical failure, in which case the caller falls back to the
            reference pose
        """
        if len(matches) < self._min_matches or len(matches) == 0:
            return MotionResult.failed(num_matches=len(matches))

        try:
            with np.errstate(all="raise"):
                return self._estimate(matches, reference)
        except (FloatingPointError, ValueError, OverflowError, ZeroDivisionError) as e:
            logger.debug("Motion estimation failed: %s", e)
            return MotionResult.failed(num_matches=len(matches))

    def _estimate(self, matches: list[FeatureMatch], reference: ReferencePose) -> MotionResult:
        cfg = self._config

        displacements = np.array([m.displacement for m in matches], dtype=np.float64)
        avg_dx, avg_dy = displacements.mean(axis=0)

        dx_m = avg_dx * cfg.pixel_to_meter
        dy_m = avg_dy * cfg.pixel_to_meter

        leading = displacements[: cfg.max_rotation_samples]
        moving = (np.abs(leading[:, 0]) > cfg.min_displacement) | (
            np.abs(leading[:, 1]) > cfg.min_displacement
        )
        rotation_samples = int(np.count_nonzero(moving))
        if rotation_samples > 0:
            angles = np.arctan2(leading[moving, 1], leading[moving, 0])
            rotation = float(angles.mean())
        else:
            rotation = 0.0

        wf = cfg.feature_weight
        wr = cfg.reference_weight
        pose = Pose2D(
            x=float(dx_m * wf + reference.x * wr),
            y=float(dy_m * wf + (-reference.z) * wr),
            theta=float(rotation * wf + reference.yaw * wr),
        )

        if not pose.is_finite():
            raise ValueError(f"non-finite motion estimate {pose}")

        return MotionResult(
            success=True,
            pose=pose,
            num_matches=len(matches),
            rotation_samples=rotation_samples,
            pixel_displacement=(float(avg_dx), float(avg_dy)),
        )

    @property
    def pixel_to_meter(self) -> float:
        return self._config.pixel_to_meter

    @property
    def config(self) -> FusionConfig:
        return self._config
