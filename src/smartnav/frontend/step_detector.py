"""Step detection and pedestrian dead-reckoning integration.

Each detected step advances the planar position by a nominal step length
along the current heading. Steps are found as peaks of a high-passed
acceleration magnitude, debounced by a minimum interval between footfalls.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace

import numpy as np

from ..config import PDRConfig
from .pose import Pose2D


@dataclass(frozen=True)
class StepDetectorState:
    """Integrator state after a given acceleration sample.

    Attributes:
        last_step_timestamp_ns: Timestamp of the last detected step, None before
            the first step
        high_pass: Current high-passed acceleration magnitude
        last_magnitude: Raw magnitude of the previous sample
        pose: Integrated planar pose
        step_count: Number of steps detected so far
    """

    last_step_timestamp_ns: int | None = None
    high_pass: float = 0.0
    last_magnitude: float = 0.0
    pose: Pose2D = field(default_factory=Pose2D.zero)
    step_count: int = 0


@dataclass(frozen=True)
class StepResult:
    """Output of processing one acceleration sample."""

    state: StepDetectorState
    step_detected: bool


class StepDetector:
    """Peak-based step detector with heading integration.

    Per sample with acceleration vector a and timestamp t:

    1. magnitude = |a|
    2. hp = alpha * (hp_prev + magnitude - last_magnitude) + (1 - alpha) * magnitude
    3. A step fires when hp > step_threshold and
       t - last_step_timestamp > min_step_interval
    4. On a step the pose advances by step_length along the current heading.

    The detector itself is stateless; `process` maps a state to a new state.
    """

    def __init__(self, config: PDRConfig | None = None) -> None:
        self._config = config or PDRConfig()

    def initial_state(self) -> StepDetectorState:
        """Return the state at the origin with no step history."""
        return StepDetectorState()

    def process(
        self,
        state: StepDetectorState,
        acceleration: np.ndarray | tuple[float, float, float],
        timestamp_ns: int,
        heading: float,
    ) -> StepResult:
        """Process one linear-acceleration sample.

        Args:
            state: State before the sample
            acceleration: Linear acceleration (x, y, z) in m/s²
            timestamp_ns: Sample timestamp in nanoseconds
            heading: Current heading in radians

        Returns:
            StepResult with the new state and whether a step fired
        """
        ax, ay, az = (float(v) for v in np.asarray(acceleration, dtype=np.float64).flatten()[:3])
        magnitude = math.sqrt(ax * ax + ay * ay + az * az)

        alpha = self._config.alpha
        high_pass = alpha * (state.high_pass + magnitude - state.last_magnitude) + (
            1.0 - alpha
        ) * magnitude

        is_step = high_pass > self._config.step_threshold and (
            state.last_step_timestamp_ns is None
            or timestamp_ns - state.last_step_timestamp_ns > self._config.min_step_interval_ns
        )

        if not is_step:
            return StepResult(
                state=replace(state, high_pass=high_pass, last_magnitude=magnitude),
                step_detected=False,
            )

        return StepResult(
            state=StepDetectorState(
                last_step_timestamp_ns=timestamp_ns,
                high_pass=high_pass,
                last_magnitude=magnitude,
                pose=state.pose.advanced(self._config.step_length, heading),
                step_count=state.step_count + 1,
            ),
            step_detected=True,
        )

    @property
    def config(self) -> PDRConfig:
        return self._config
