"""Frame sources feeding the visual tracker.

A frame source is pulled once per frame tick and returns the next frame with
its reference pose, or None when no new frame is ready yet. Recorded sessions
use this layout:

    session/
        cam0/data.csv    #timestamp [ns],filename,tx,ty,tz,qx,qy,qz,qw,tracking
        cam0/data/       grayscale PNG images
"""

from __future__ import annotations

import threading
from collections import deque
from pathlib import Path
from typing import Iterable, Iterator, Protocol, runtime_checkable

import cv2
import numpy as np

from ..frontend.frame import VisualFrame
from ..frontend.pose import ReferencePose


@runtime_checkable
class FrameSource(Protocol):
    """Capability that delivers frames with a reference pose and tracking flag."""

    def get_next_frame(self) -> VisualFrame | None:
        """Return the next frame, or None if none is available yet."""
        ...


class SequenceFrameSource:
    """In-memory frame queue.

    Frames can be pushed from a producer thread while the frame poller pulls
    them; an empty queue yields None instead of blocking.
    """

    def __init__(self, frames: Iterable[VisualFrame] = ()) -> None:
        self._frames: deque[VisualFrame] = deque(frames)
        self._lock = threading.Lock()

    def push(self, frame: VisualFrame) -> None:
        """Append a frame to the queue."""
        with self._lock:
            self._frames.append(frame)

    def get_next_frame(self) -> VisualFrame | None:
        with self._lock:
            if not self._frames:
                return None
            return self._frames.popleft()

    def __len__(self) -> int:
        """Number of frames waiting."""
        with self._lock:
            return len(self._frames)


class DatasetFrameSource:
    """Reader for recorded sessions of camera frames and reference poses."""

    def __init__(self, dataset_path: str | Path) -> None:
        """Initialize reader with path to a session directory.

        Args:
            dataset_path: Path to the session directory

        Raises:
            FileNotFoundError: If the session or required files don't exist
            ValueError: If data.csv is empty or invalid
        """
        self.dataset_path = Path(dataset_path)
        self.cam0_path = self.dataset_path / "cam0"
        self.cam0_data_path = self.cam0_path / "data"

        self._validate_paths()

        self._frame_list = self._load_frame_list()
        if not self._frame_list:
            raise ValueError(f"No frames found in {self.cam0_path / 'data.csv'}")

        self._current_idx = 0

    def _validate_paths(self) -> None:
        """Validate that all required paths exist."""
        if not self.dataset_path.exists():
            raise FileNotFoundError(f"Dataset path does not exist: {self.dataset_path}")

        if not self.cam0_path.exists():
            raise FileNotFoundError(
                f"cam0 directory not found: {self.cam0_path}\n"
                f"Expected structure: {self.dataset_path}/cam0/"
            )

        if not self.cam0_data_path.exists():
            raise FileNotFoundError(f"cam0/data directory not found: {self.cam0_data_path}")

        csv_path = self.cam0_path / "data.csv"
        if not csv_path.exists():
            raise FileNotFoundError(
                f"cam0/data.csv not found: {csv_path}\n"
                f"This file is required to list frames and their reference poses."
            )

    def _load_frame_list(self) -> list[tuple[int, str, ReferencePose, bool]]:
        """Parse cam0/data.csv.

        CSV format:
            #timestamp [ns],filename,tx,ty,tz,qx,qy,qz,qw,tracking
            1403636579763555584,1403636579763555584.png,0.0,0.0,0.0,0,0,0,1,1

        Returns:
            List of (timestamp_ns, filename, reference, is_tracking) sorted by time
        """
        csv_path = self.cam0_path / "data.csv"
        frame_list = []

        with open(csv_path, "r") as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith("#"):
                    continue

                parts = [p.strip() for p in line.split(",")]
                try:
                    if len(parts) != 10:
                        raise ValueError(f"expected 10 columns, got {len(parts)}")
                    timestamp_ns = int(parts[0])
                    reference = ReferencePose(
                        translation=tuple(float(v) for v in parts[2:5]),
                        quaternion=tuple(float(v) for v in parts[5:9]),
                    )
                    is_tracking = parts[9] not in ("0", "false", "False")
                except ValueError as e:
                    raise ValueError(
                        f"Invalid line in {csv_path}: '{line}'\n"
                        f"Expected format: timestamp,filename,tx,ty,tz,qx,qy,qz,qw,tracking"
                    ) from e
                frame_list.append((timestamp_ns, parts[1], reference, is_tracking))

        frame_list.sort(key=lambda item: item[0])
        return frame_list

    def _load_image(self, filename: str) -> np.ndarray:
        """Load a grayscale image by filename.

        Raises:
            FileNotFoundError: If the image file doesn't exist
            ValueError: If image loading fails
        """
        path = self.cam0_data_path / filename
        if not path.exists():
            raise FileNotFoundError(f"Camera image not found: {path}")

        image = cv2.imread(str(path), cv2.IMREAD_GRAYSCALE)
        if image is None:
            raise ValueError(f"Failed to load image: {path}")
        return image

    def get_next_frame(self) -> VisualFrame | None:
        """Return the next recorded frame, or None when exhausted."""
        if self._current_idx >= len(self._frame_list):
            return None

        timestamp_ns, filename, reference, is_tracking = self._frame_list[self._current_idx]
        image = self._load_image(filename)
        self._current_idx += 1

        return VisualFrame.from_image(
            image,
            reference=reference,
            is_tracking=is_tracking,
            timestamp_ns=timestamp_ns,
        )

    def reset(self) -> None:
        """Reset iterator to beginning of the session."""
        self._current_idx = 0

    @property
    def timestamps(self) -> list[int]:
        """Frame timestamps in nanoseconds."""
        return [item[0] for item in self._frame_list]

    def __len__(self) -> int:
        """Return total number of frames."""
        return len(self._frame_list)

    def __iter__(self) -> Iterator[VisualFrame]:
        self.reset()
        return self

    def __next__(self) -> VisualFrame:
        frame = self.get_next_frame()
        if frame is None:
            raise StopIteration
        return frame
