"""Descriptor matching between consecutive frames."""

from __future__ import annotations

from dataclasses import dataclass

import cv2
import numpy as np

from ...config import MatcherConfig
from .feature_detector import FeaturePoint


@dataclass(frozen=True, eq=False)
class FeatureMatch:
    """A correspondence between a previous-frame and a current-frame feature.

    Attributes:
        previous: Feature in the previous frame
        current: Feature in the current frame
        distance: Descriptor distance (root of the summed squared intensity
            differences)
    """

    previous: FeaturePoint
    current: FeaturePoint
    distance: float = 0.0

    @property
    def displacement(self) -> tuple[float, float]:
        """Pixel displacement (dx, dy) from previous to current."""
        return (self.current.x - self.previous.x, self.current.y - self.previous.y)


def descriptor_distance(a: np.ndarray | None, b: np.ndarray | None) -> float:
    """Euclidean distance between two intensity-patch descriptors.

    Returns infinity if either descriptor is missing or their lengths differ.
    """
    if a is None or b is None or len(a) != len(b):
        return float("inf")
    diff = np.asarray(a, dtype=np.float64) - np.asarray(b, dtype=np.float64)
    return float(np.sqrt(np.dot(diff, diff)))


def _group_by_descriptor_length(features: list[FeaturePoint]) -> dict[int, list[int]]:
    groups: dict[int, list[int]] = {}
    for i, feature in enumerate(features):
        if feature.descriptor is None or len(feature.descriptor) == 0:
            continue
        groups.setdefault(len(feature.descriptor), []).append(i)
    return groups


class FeatureMatcher:
    """Greedy nearest-neighbour descriptor matcher.

    For every previous-frame feature, the current-frame feature with the
    smallest descriptor distance is selected, and the pair is accepted if the
    distance is below `max_distance`. The search is brute force (O(n*m)).

    By default matches are not mutually exclusive: one current feature can be
    the best match of several previous features. With `cross_check=True` only
    pairs that are each other's nearest neighbour are kept.
    """

    def __init__(self, config: MatcherConfig | None = None) -> None:
        """Initialize matcher.

        Args:
            config: Matcher parameters (defaults: max distance 30.0,
                min matches 3, no cross check)
        """
        self._config = config or MatcherConfig()
        self._bf_matcher = cv2.BFMatcher(cv2.NORM_L2, crossCheck=self._config.cross_check)

    def match(
        self, features_prev: list[FeaturePoint], features_curr: list[FeaturePoint]
    ) -> list[FeatureMatch]:
        """Match features from the previous frame to the current frame.

        Only descriptors that are present and have the same length are
        compared.

        Args:
            features_prev: Features from previous frame
            features_curr: Features from current frame

        Returns:
            Accepted matches, in the order of the previous-frame features
        """
        if len(features_prev) == 0 or len(features_curr) == 0:
            return []

        prev_groups = _group_by_descriptor_length(features_prev)
        curr_groups = _group_by_descriptor_length(features_curr)

        matches: dict[int, FeatureMatch] = {}
        for length, prev_indices in prev_groups.items():
            curr_indices = curr_groups.get(length)
            if not curr_indices:
                continue

            query = np.stack(
                [features_prev[i].descriptor for i in prev_indices]
            ).astype(np.float32)
            train = np.stack(
                [features_curr[i].descriptor for i in curr_indices]
            ).astype(np.float32)

            for m in self._bf_matcher.match(query, train):
                if m.distance >= self._config.max_distance:
                    continue
                prev_idx = prev_indices[m.queryIdx]
                matches[prev_idx] = FeatureMatch(
                    previous=features_prev[prev_idx],
                    current=features_curr[curr_indices[m.trainIdx]],
                    distance=float(m.distance),
                )

        return [matches[i] for i in sorted(matches)]

    def has_enough(self, matches: list[FeatureMatch]) -> bool:
        """Return True if there are enough matches for motion estimation."""
        return len(matches) >= self._config.min_matches

    @property
    def max_distance(self) -> float:
        """Return the maximum accepted descriptor distance."""
        return self._config.max_distance

    @property
    def min_matches(self) -> int:
        """Return the minimum number of matches for motion estimation."""
        return self._config.min_matches
