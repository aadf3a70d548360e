"""Periodic frame tick running the visual tracker on a background thread.

Each tick pulls one frame from the frame source and feeds it to the tracker,
then waits for the next period. The source is never waited on: a tick that
finds no frame simply does nothing. Once the tracker is stopped no frame is
pulled any more and the thread exits.
"""

from __future__ import annotations

import logging
import threading

from ..frontend.vo.visual_tracker import VisualTracker
from ..io.frame_source import FrameSource

logger = logging.getLogger(__name__)


class FramePoller:
    """Drives `VisualTracker.process_next` at a fixed period.

    Example usage:
        poller = FramePoller(source, tracker, period=1 / 30)
        tracker.start()
        poller.start()
        ...
        poller.stop()
        tracker.stop()
    """

    def __init__(
        self,
        source: FrameSource,
        tracker: VisualTracker,
        period: float | None = None,
    ) -> None:
        """Initialize frame poller.

        Args:
            source: Frame source pulled once per tick
            tracker: Tracker receiving the frames
            period: Seconds between ticks (tracker config frame period if None)
        """
        if period is None:
            period = tracker.config.tracker.frame_period
        if period <= 0:
            raise ValueError(f"period must be positive, got {period}")

        self._source = source
        self._tracker = tracker
        self._period = period

        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self._num_ticks = 0
        self._num_frames = 0

    def start(self) -> None:
        """Start the tick thread. No-op if already running.

        The thread ends on its own as soon as it finds the tracker stopped.
        """
        with self._lock:
            if self._thread is not None:
                return
            self._stop_event.clear()
            self._thread = threading.Thread(
                target=self._run, name="smartnav-frame-poller", daemon=True
            )
            self._thread.start()
        logger.info("Frame poller started (period %.3f s)", self._period)

    def stop(self, timeout: float | None = 2.0) -> None:
        """Stop ticking and wait for an in-flight tick to finish.

        Args:
            timeout: Seconds to wait for the thread to exit
        """
        with self._lock:
            thread = self._thread
            if thread is None:
                return
            self._stop_event.set()
            self._thread = None

        if thread is not threading.current_thread():
            thread.join(timeout=timeout)
            if thread.is_alive():
                logger.warning("Frame poller thread did not exit within %.1f s", timeout)
        logger.info(
            "Frame poller stopped after %d ticks (%d frames)", self._num_ticks, self._num_frames
        )

    def tick(self) -> bool:
        """Run a single tick.

        The source is left untouched while the tracker is stopped.

        Returns:
            True if a frame was handed to the tracker
        """
        self._num_ticks += 1
        if self._tracker.process_next(self._source) is None:
            return False
        self._num_frames += 1
        return True

    def _run(self) -> None:
        while not self._stop_event.is_set():
            if not self._tracker.is_running:
                logger.info("Tracker stopped, frame poller exiting")
                self._detach()
                return
            try:
                self.tick()
            except Exception:
                logger.exception("Frame tick failed")
            if self._stop_event.wait(self._period):
                break

    def _detach(self) -> None:
        with self._lock:
            if self._thread is threading.current_thread():
                self._thread = None

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._thread is not None

    @property
    def period(self) -> float:
        return self._period

    @property
    def num_ticks(self) -> int:
        return self._num_ticks

    @property
    def num_frames(self) -> int:
        """Frames delivered to the tracker so far."""
        return self._num_frames
