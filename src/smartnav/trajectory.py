"""Recorded trajectories of both estimators and the drift between them.

Sessions are written as CSV files, one row per index:

    timestamp_ms,dr_x,dr_y,slam_x,slam_y
    1034,0.750,0.000,0.702,0.013
    1102,,,0.731,0.020

A missing value of the shorter trajectory is left empty.
"""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timezone
from pathlib import Path

from .events import PoseEvent, PoseSource
from .frontend.pose import Pose2D

logger = logging.getLogger(__name__)

CSV_HEADER = "timestamp_ms,dr_x,dr_y,slam_x,slam_y"


def _format_value(value: float | None) -> str:
    return "" if value is None else f"{value:.3f}"


def _parse_value(text: str) -> float | None:
    try:
        return float(text)
    except ValueError:
        return None


def _monotonic_ms() -> int:
    return time.monotonic_ns() // 1_000_000


class TrajectoryRecorder:
    """Collects dead-reckoning and visual poses of one session.

    Timestamps are kept per row index: a new timestamp is recorded whenever
    either trajectory grows beyond the current number of rows.

    Example usage:
        recorder = TrajectoryRecorder()
        channel.subscribe(recorder.on_event)
        ...
        print(f"Drift: {recorder.compute_drift():.2f} m")
        recorder.save_csv("sessions")
    """

    def __init__(self) -> None:
        self._dead_reckoning: list[Pose2D] = []
        self._visual: list[Pose2D] = []
        self._timestamps_ms: list[int] = []
        self._lock = threading.Lock()

    def reset(self) -> None:
        """Drop both trajectories and their timestamps."""
        with self._lock:
            self._dead_reckoning.clear()
            self._visual.clear()
            self._timestamps_ms.clear()

    def add_dead_reckoning_pose(self, pose: Pose2D, timestamp_ms: int | None = None) -> None:
        with self._lock:
            self._dead_reckoning.append(pose)
            self._add_timestamp_if_missing(timestamp_ms)

    def add_visual_pose(self, pose: Pose2D, timestamp_ms: int | None = None) -> None:
        with self._lock:
            self._visual.append(pose)
            self._add_timestamp_if_missing(timestamp_ms)

    def on_event(self, event: PoseEvent) -> None:
        """PoseChannel listener routing events by source.

        Event timestamps are used when known. Events without one, such as the
        zero pose emitted on reset, reuse the last recorded timestamp (0 for
        the first row) so a session never mixes clocks.
        """
        if event.timestamp_ns:
            timestamp_ms = event.timestamp_ns // 1_000_000
        else:
            with self._lock:
                timestamp_ms = self._timestamps_ms[-1] if self._timestamps_ms else 0
        if event.source is PoseSource.DEAD_RECKONING:
            self.add_dead_reckoning_pose(event.pose, timestamp_ms)
        else:
            self.add_visual_pose(event.pose, timestamp_ms)

    def _add_timestamp_if_missing(self, timestamp_ms: int | None) -> None:
        if len(self._timestamps_ms) < max(len(self._dead_reckoning), len(self._visual)):
            self._timestamps_ms.append(
                timestamp_ms if timestamp_ms is not None else _monotonic_ms()
            )

    def get_dead_reckoning(self) -> list[Pose2D]:
        with self._lock:
            return list(self._dead_reckoning)

    def get_visual(self) -> list[Pose2D]:
        with self._lock:
            return list(self._visual)

    def get_timestamps_ms(self) -> list[int]:
        with self._lock:
            return list(self._timestamps_ms)

    def compute_drift(self) -> float:
        """Distance in metres between the latest poses of both trajectories.

        Returns:
            Euclidean distance, or 0.0 if either trajectory is empty
        """
        with self._lock:
            if not self._dead_reckoning or not self._visual:
                return 0.0
            return self._visual[-1].distance_to(self._dead_reckoning[-1])

    def save_csv(self, directory: str | Path) -> Path | None:
        """Write the session to `<directory>/session_<ISO time>.csv`.

        Args:
            directory: Session directory, created if needed

        Returns:
            Path of the written file, or None if both trajectories are empty
        """
        with self._lock:
            if not self._dead_reckoning and not self._visual:
                return None
            rows = self._rows()

        session_dir = Path(directory)
        session_dir.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
        stamp = stamp.replace("+00:00", "Z").replace(":", "-")
        path = session_dir / f"session_{stamp}.csv"

        with open(path, "w") as f:
            f.write(CSV_HEADER + "\n")
            for row in rows:
                f.write(",".join(row) + "\n")

        logger.info("Saved session with %d rows to %s", len(rows), path)
        return path

    def _rows(self) -> list[list[str]]:
        rows = []
        for i in range(max(len(self._dead_reckoning), len(self._visual))):
            if i < len(self._timestamps_ms):
                timestamp = self._timestamps_ms[i]
            elif self._timestamps_ms:
                timestamp = self._timestamps_ms[-1]
            else:
                timestamp = 0
            dr = self._dead_reckoning[i] if i < len(self._dead_reckoning) else None
            visual = self._visual[i] if i < len(self._visual) else None
            rows.append(
                [
                    str(timestamp),
                    _format_value(dr.x if dr else None),
                    _format_value(dr.y if dr else None),
                    _format_value(visual.x if visual else None),
                    _format_value(visual.y if visual else None),
                ]
            )
        return rows

    def load_csv(self, path: str | Path) -> tuple[list[Pose2D], list[Pose2D]]:
        """Replace both trajectories with the contents of a session file.

        Headings are not stored in session files and are restored as 0.
        Lines with fewer than five columns are skipped.

        Raises:
            FileNotFoundError: If the file doesn't exist
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Session file not found: {path}")

        dead_reckoning: list[Pose2D] = []
        visual: list[Pose2D] = []
        timestamps_ms: list[int] = []

        with open(path, "r") as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith("timestamp"):
                    continue
                parts = line.split(",")
                if len(parts) < 5:
                    continue

                dr_x, dr_y, visual_x, visual_y = (_parse_value(p) for p in parts[1:5])
                if dr_x is not None and dr_y is not None:
                    dead_reckoning.append(Pose2D(dr_x, dr_y, 0.0))
                if visual_x is not None and visual_y is not None:
                    visual.append(Pose2D(visual_x, visual_y, 0.0))
                try:
                    timestamps_ms.append(int(parts[0]))
                except ValueError:
                    timestamps_ms.append(timestamps_ms[-1] if timestamps_ms else 0)

        with self._lock:
            self._dead_reckoning = dead_reckoning
            self._visual = visual
            self._timestamps_ms = timestamps_ms[: max(len(dead_reckoning), len(visual))]

        logger.info(
            "Loaded session %s (%d DR poses, %d visual poses)",
            path.name,
            len(dead_reckoning),
            len(visual),
        )
        return list(dead_reckoning), list(visual)

    def load_last_session(self, directory: str | Path) -> tuple[list[Pose2D], list[Pose2D]] | None:
        """Load the most recently modified session file of a directory.

        Returns:
            Tuple of (dead-reckoning poses, visual poses), or None if the
            directory doesn't exist or holds no session files
        """
        session_dir = Path(directory)
        if not session_dir.is_dir():
            return None
        files = [p for p in session_dir.glob("session_*.csv") if p.is_file()]
        if not files:
            return None
        latest = max(files, key=lambda p: p.stat().st_mtime)
        return self.load_csv(latest)

    @property
    def num_dead_reckoning(self) -> int:
        with self._lock:
            return len(self._dead_reckoning)

    @property
    def num_visual(self) -> int:
        with self._lock:
            return len(self._visual)
