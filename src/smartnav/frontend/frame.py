"""Camera frame delivered by the AR tracking subsystem."""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from .pose import ReferencePose


@dataclass
class VisualFrame:
    """One grayscale frame with its externally computed reference pose.

    Attributes:
        gray: Grayscale pixels, a (height, width) uint8 array or a row-major
            byte buffer of at least width * height bytes
        width: Image width in pixels
        height: Image height in pixels
        reference: Camera pose reported by the AR subsystem for this frame
        is_tracking: True if the AR subsystem is currently tracking
        timestamp_ns: Frame timestamp in nanoseconds
    """

    gray: np.ndarray | bytes
    width: int
    height: int
    reference: ReferencePose = field(default_factory=ReferencePose.identity)
    is_tracking: bool = True
    timestamp_ns: int = 0

    @classmethod
    def from_image(
        cls,
        image: np.ndarray,
        reference: ReferencePose | None = None,
        is_tracking: bool = True,
        timestamp_ns: int = 0,
    ) -> VisualFrame:
        """Create a frame from a (height, width) grayscale image."""
        image = np.asarray(image)
        if image.ndim != 2:
            raise ValueError(f"Expected a 2-D grayscale image, got shape {image.shape}")
        height, width = image.shape
        return cls(
            gray=image,
            width=width,
            height=height,
            reference=reference if reference is not None else ReferencePose.identity(),
            is_tracking=is_tracking,
            timestamp_ns=timestamp_ns,
        )
