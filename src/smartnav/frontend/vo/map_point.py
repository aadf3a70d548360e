"""Map point and capped sparse map data structures."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .feature_detector import FeaturePoint
from .feature_matcher import FeatureMatch


@dataclass
class MapPoint:
    """Approximate world-space location of a tracked feature.

    Positions are projected from pixel coordinates with the fixed
    pixel-to-meter scale and assume planar motion (z = 0).

    Attributes:
        id: Unique identifier for this map point
        x, y, z: World position in meters
        observation_count: Number of frames that observed the point
    """

    id: int
    x: float
    y: float
    z: float = 0.0
    observation_count: int = 1

    @property
    def position(self) -> np.ndarray:
        """Return (x, y, z) as a float64 array."""
        return np.array([self.x, self.y, self.z], dtype=np.float64)

    def add_observation(self) -> None:
        """Count one more observation of this point."""
        self.observation_count += 1


class Map:
    """Sparse feature map with a fixed capacity.

    Once `max_points` points are stored, further points are simply not added.
    There is no eviction.

    The points created or continued by the latest frame are remembered so that
    the matches of the next tracked frame can extend them.
    """

    def __init__(self, max_points: int = 500, pixel_to_meter: float = 0.001) -> None:
        """Initialize empty map.

        Args:
            max_points: Maximum number of points kept
            pixel_to_meter: Scale used to project pixel coordinates
        """
        self._points: list[MapPoint] = []
        self._max_points = max_points
        self._pixel_to_meter = pixel_to_meter
        self._next_point_id: int = 0
        # id(feature) -> (feature, point) for the features of the latest frame
        self._tracks: dict[int, tuple[FeaturePoint, MapPoint]] = {}

    def add_point(self, x: float, y: float, z: float = 0.0) -> MapPoint | None:
        """Create and add a new map point.

        Returns:
            The new MapPoint, or None if the map is full
        """
        if self.is_full:
            return None

        point = MapPoint(id=self._next_point_id, x=float(x), y=float(y), z=float(z))
        self._next_point_id += 1
        self._points.append(point)
        return point

    def add_feature(self, feature: FeaturePoint) -> MapPoint | None:
        """Project a feature to world coordinates and add it."""
        return self.add_point(
            feature.x * self._pixel_to_meter,
            feature.y * self._pixel_to_meter,
            0.0,
        )

    def seed(self, features: list[FeaturePoint]) -> int:
        """Add all features of a bootstrap frame.

        Returns:
            Number of points added
        """
        self._tracks = {}
        return self._add_features(features, self._tracks)

    def add_unmatched(self, features: list[FeaturePoint], matches: list[FeatureMatch]) -> int:
        """Extend matched points and add the features that were not matched.

        A match whose previous-frame feature belongs to a map point counts one
        more observation of that point, at most once per current feature.

        Args:
            features: All features of the current frame
            matches: Accepted matches from the previous frame to this one

        Returns:
            Number of points added
        """
        tracks: dict[int, tuple[FeaturePoint, MapPoint]] = {}
        for match in matches:
            entry = self._tracks.get(id(match.previous))
            if entry is None or id(match.current) in tracks:
                continue
            point = entry[1]
            point.add_observation()
            tracks[id(match.current)] = (match.current, point)

        matched_ids = {id(m.current) for m in matches}
        unmatched = [f for f in features if id(f) not in matched_ids]
        added = self._add_features(unmatched, tracks)
        self._tracks = tracks
        return added

    def _add_features(
        self, features: list[FeaturePoint], tracks: dict[int, tuple[FeaturePoint, MapPoint]]
    ) -> int:
        added = 0
        for feature in features:
            point = self.add_feature(feature)
            if point is None:
                break
            tracks[id(feature)] = (feature, point)
            added += 1
        return added

    def get_all_points(self) -> list[MapPoint]:
        """Return all map points."""
        return list(self._points)

    def get_all_positions(self) -> np.ndarray:
        """Return positions of all map points.

        Returns:
            Nx3 array of positions in meters
        """
        if len(self._points) == 0:
            return np.empty((0, 3), dtype=np.float64)
        return np.array([p.position for p in self._points], dtype=np.float64)

    @property
    def num_points(self) -> int:
        """Return number of map points."""
        return len(self._points)

    @property
    def max_points(self) -> int:
        return self._max_points

    @property
    def is_full(self) -> bool:
        return len(self._points) >= self._max_points

    def clear(self) -> None:
        """Remove all points from the map."""
        self._points.clear()
        self._next_point_id = 0
        self._tracks = {}

    def __len__(self) -> int:
        """Return number of map points."""
        return self.num_points
