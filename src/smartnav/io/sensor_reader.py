"""Recorded inertial sensor logs.

Loads linear-acceleration and rotation-vector samples of a recorded session:

    session/
        imu0/accel.csv         #timestamp [ns],ax,ay,az
        imu0/orientation.csv   #timestamp [ns],qx,qy,qz,qw
"""

from __future__ import annotations

import bisect
import heapq
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

import numpy as np


@dataclass
class AccelerationSample:
    """Linear acceleration (gravity removed) at a given timestamp.

    Attributes:
        timestamp_ns: Sample timestamp in nanoseconds
        acceleration: (ax, ay, az) in m/s²
    """

    timestamp_ns: int
    acceleration: np.ndarray  # (3,) m/s²

    def __post_init__(self) -> None:
        """Ensure array has correct shape."""
        self.acceleration = np.asarray(self.acceleration, dtype=np.float64).flatten()


@dataclass
class OrientationSample:
    """Rotation-vector sample as a quaternion (qx, qy, qz, qw)."""

    timestamp_ns: int
    quaternion: tuple[float, float, float, float]


SensorSample = AccelerationSample | OrientationSample


def _read_rows(path: Path, num_values: int) -> list[tuple[int, list[float]]]:
    """Read `timestamp,v1..vn` rows, skipping comments and malformed lines."""
    rows = []
    with open(path, "r") as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue

            parts = line.split(",")
            if len(parts) < num_values + 1:
                continue

            try:
                timestamp_ns = int(parts[0])
                values = [float(p) for p in parts[1 : num_values + 1]]
            except ValueError:
                continue
            rows.append((timestamp_ns, values))

    rows.sort(key=lambda row: row[0])
    return rows


class SensorLogReader:
    """Reader for recorded acceleration and orientation logs.

    Example usage:
        reader = SensorLogReader("data/session_01")
        for sample in reader.iter_samples():
            if isinstance(sample, AccelerationSample):
                pdr.process_sample(sample.acceleration, sample.timestamp_ns)
            else:
                pdr.process_orientation(*sample.quaternion)
    """

    def __init__(self, dataset_path: str | Path) -> None:
        """Initialize sensor reader.

        Args:
            dataset_path: Path to the session directory

        Raises:
            FileNotFoundError: If imu0/accel.csv is missing
        """
        self._dataset_path = Path(dataset_path)
        self._accel_path = self._dataset_path / "imu0" / "accel.csv"
        self._orientation_path = self._dataset_path / "imu0" / "orientation.csv"

        if not self._accel_path.exists():
            raise FileNotFoundError(
                f"Acceleration data not found: {self._accel_path}\n"
                f"Expected session format with imu0/accel.csv"
            )

        self._accel: list[AccelerationSample] = [
            AccelerationSample(timestamp_ns=t, acceleration=np.array(v))
            for t, v in _read_rows(self._accel_path, 3)
        ]
        self._accel_timestamps = [s.timestamp_ns for s in self._accel]

        # Orientation is optional: without it the heading stays at 0.
        self._orientation: list[OrientationSample] = []
        if self._orientation_path.exists():
            self._orientation = [
                OrientationSample(timestamp_ns=t, quaternion=(v[0], v[1], v[2], v[3]))
                for t, v in _read_rows(self._orientation_path, 4)
            ]

    def iter_samples(self) -> Iterator[SensorSample]:
        """Yield acceleration and orientation samples merged by timestamp.

        At equal timestamps the orientation sample comes first so the step
        uses the freshest heading.
        """
        keyed_orientation = ((s.timestamp_ns, 0, i, s) for i, s in enumerate(self._orientation))
        keyed_accel = ((s.timestamp_ns, 1, i, s) for i, s in enumerate(self._accel))
        for _, _, _, sample in heapq.merge(keyed_orientation, keyed_accel):
            yield sample

    def get_acceleration_between(self, start_ns: int, end_ns: int) -> list[AccelerationSample]:
        """Acceleration samples with start_ns <= t < end_ns."""
        start_idx = bisect.bisect_left(self._accel_timestamps, start_ns)
        end_idx = bisect.bisect_left(self._accel_timestamps, end_ns)
        return self._accel[start_idx:end_idx]

    @property
    def acceleration(self) -> list[AccelerationSample]:
        return list(self._accel)

    @property
    def orientation(self) -> list[OrientationSample]:
        return list(self._orientation)

    @property
    def start_timestamp(self) -> int | None:
        """First acceleration timestamp in nanoseconds."""
        return self._accel_timestamps[0] if self._accel_timestamps else None

    @property
    def end_timestamp(self) -> int | None:
        """Last acceleration timestamp in nanoseconds."""
        return self._accel_timestamps[-1] if self._accel_timestamps else None

    def __len__(self) -> int:
        """Number of acceleration samples."""
        return len(self._accel)
