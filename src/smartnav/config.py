"""Engine configuration.

The step-detection constants, detector/matcher thresholds, pixel-to-meter scale
and fusion weights are empirical values without a calibration procedure, so
they are grouped here instead of being hard-coded in the algorithms. A YAML
file can override any subset of them:

    pdr:
      step_length: 0.7
    fusion:
      feature_weight: 0.2
      reference_weight: 0.8
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml


@dataclass
class PDRConfig:
    """Pedestrian dead reckoning parameters.

    Attributes:
        step_length: Nominal step length in meters
        step_threshold: High-passed acceleration magnitude that fires a step (m/s²)
        min_step_interval_ns: Debounce interval between two steps (nanoseconds)
        alpha: High-pass filter coefficient
    """

    step_length: float = 0.75
    step_threshold: float = 1.0
    min_step_interval_ns: int = 400_000_000
    alpha: float = 0.8


@dataclass
class DetectorConfig:
    """Corner detector parameters.

    Attributes:
        max_features: Maximum number of features returned per frame
        threshold: Minimum corner response
        window_size: Half-size of the gradient accumulation window (pixels)
        step_size: Grid stride between evaluated pixels
        harris_k: Harris trace weight
        patch_size: Side of the square intensity-patch descriptor (pixels)
    """

    max_features: int = 200
    threshold: float = 30.0
    window_size: int = 3
    step_size: int = 4
    harris_k: float = 0.04
    patch_size: int = 8


@dataclass
class MatcherConfig:
    """Descriptor matcher parameters.

    Attributes:
        max_distance: Matches must have descriptor distance strictly below this
        min_matches: Minimum number of matches for motion estimation
        cross_check: If True, only keep mutually-best matches
    """

    max_distance: float = 30.0
    min_matches: int = 3
    cross_check: bool = False


@dataclass
class FusionConfig:
    """Feature/reference fusion parameters.

    Attributes:
        pixel_to_meter: Fixed approximate image scale (m per pixel)
        feature_weight: Weight of the feature-based estimate
        reference_weight: Weight of the reference pose
        max_rotation_samples: Number of leading matches used for rotation
        min_displacement: Per-axis displacement noise floor (pixels)
    """

    pixel_to_meter: float = 0.001
    feature_weight: float = 0.3
    reference_weight: float = 0.7
    max_rotation_samples: int = 20
    min_displacement: float = 0.1


@dataclass
class MapConfig:
    """Sparse map parameters."""

    max_points: int = 500


@dataclass
class SimulationConfig:
    """Constant-velocity motion source used without an AR session.

    Attributes:
        speed: Simulated walking speed (m/s)
        min_update_interval_ns: Minimum frame time between two updates
    """

    speed: float = 1.2
    min_update_interval_ns: int = 100_000_000


@dataclass
class TrackerConfig:
    """Frame scheduling parameters.

    Attributes:
        frame_period: Delay between two frame ticks in seconds (~30 Hz)
        motion_source: One of "features", "reference", "simulated"
    """

    frame_period: float = 1.0 / 30.0
    motion_source: str = "features"


_MOTION_SOURCES = ("features", "reference", "simulated")


@dataclass
class EngineConfig:
    """Complete engine configuration."""

    pdr: PDRConfig = field(default_factory=PDRConfig)
    detector: DetectorConfig = field(default_factory=DetectorConfig)
    matcher: MatcherConfig = field(default_factory=MatcherConfig)
    fusion: FusionConfig = field(default_factory=FusionConfig)
    map: MapConfig = field(default_factory=MapConfig)
    simulation: SimulationConfig = field(default_factory=SimulationConfig)
    tracker: TrackerConfig = field(default_factory=TrackerConfig)

    def __post_init__(self) -> None:
        """Validate values that would make the pipeline meaningless."""
        positive = {
            "pdr.step_length": self.pdr.step_length,
            "pdr.min_step_interval_ns": self.pdr.min_step_interval_ns,
            "detector.max_features": self.detector.max_features,
            "detector.window_size": self.detector.window_size,
            "detector.step_size": self.detector.step_size,
            "detector.patch_size": self.detector.patch_size,
            "matcher.max_distance": self.matcher.max_distance,
            "matcher.min_matches": self.matcher.min_matches,
            "fusion.pixel_to_meter": self.fusion.pixel_to_meter,
            "map.max_points": self.map.max_points,
            "tracker.frame_period": self.tracker.frame_period,
        }
        for name, value in positive.items():
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")

        if not 0.0 <= self.pdr.alpha <= 1.0:
            raise ValueError(f"pdr.alpha must be in [0, 1], got {self.pdr.alpha}")
        if self.fusion.feature_weight < 0 or self.fusion.reference_weight < 0:
            raise ValueError("fusion weights must be non-negative")
        if self.tracker.motion_source not in _MOTION_SOURCES:
            raise ValueError(
                f"tracker.motion_source must be one of {_MOTION_SOURCES}, "
                f"got {self.tracker.motion_source!r}"
            )

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> EngineConfig:
        """Build a config from nested dictionaries, filling in defaults.

        Args:
            data: Mapping of section name -> {key: value}

        Returns:
            EngineConfig

        Raises:
            ValueError: On unknown sections/keys or invalid values
        """
        data = data or {}
        if not isinstance(data, dict):
            raise ValueError(f"Config must be a mapping, got {type(data).__name__}")

        sections = {f.name: f for f in fields(cls)}
        kwargs: dict[str, Any] = {}
        for section_name, values in data.items():
            if section_name not in sections:
                raise ValueError(f"Unknown config section: {section_name!r}")
            section_cls = sections[section_name].default_factory
            values = values or {}
            if not isinstance(values, dict):
                raise ValueError(f"Config section {section_name!r} must be a mapping")
            known = {f.name for f in fields(section_cls)}
            unknown = set(values) - known
            if unknown:
                raise ValueError(
                    f"Unknown keys in config section {section_name!r}: {sorted(unknown)}"
                )
            kwargs[section_name] = section_cls(**values)

        return cls(**kwargs)

    @classmethod
    def from_yaml(cls, path: str | Path) -> EngineConfig:
        """Load configuration from a YAML file.

        Args:
            path: Path to the YAML file

        Returns:
            EngineConfig

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If the content is invalid
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path, "r") as f:
            data = yaml.safe_load(f)

        return cls.from_dict(data)

    def to_dict(self) -> dict[str, Any]:
        """Return the configuration as nested dictionaries."""
        return asdict(self)

    def save_yaml(self, path: str | Path) -> None:
        """Write the configuration to a YAML file."""
        with open(path, "w") as f:
            yaml.safe_dump(self.to_dict(), f, sort_keys=False)
