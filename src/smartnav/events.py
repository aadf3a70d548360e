"""Pose event channel between the estimators and their consumers.

Both estimators publish `PoseEvent`s on a `PoseChannel`. Delivery is
synchronous and in publish order, so each producer's stream stays ordered;
events of the two sources interleave without any cross-stream guarantee.
"""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from .frontend.pose import Pose2D

logger = logging.getLogger(__name__)


class PoseSource(Enum):
    """Producer of a pose event."""

    DEAD_RECKONING = "dr"
    VISUAL = "visual"


@dataclass(frozen=True)
class PoseEvent:
    """A pose emitted by one of the estimators.

    Attributes:
        source: Which estimator produced the pose
        pose: Pose relative to the estimator's origin
        timestamp_ns: Timestamp of the input that produced the pose (0 if unknown)
    """

    source: PoseSource
    pose: Pose2D
    timestamp_ns: int = 0


PoseListener = Callable[[PoseEvent], None]


class PoseChannel:
    """Observer list plus an optional bounded queue of pose events.

    Subscribers are called on the publishing thread. When a queue size is
    given, events are also buffered for a consumer on another thread; a full
    queue drops its oldest event.
    """

    def __init__(self, maxsize: int = 0) -> None:
        """Initialize the channel.

        Args:
            maxsize: Capacity of the event queue. 0 disables buffering.
        """
        self._listeners: list[PoseListener] = []
        self._lock = threading.Lock()
        self._queue: queue.Queue[PoseEvent] | None = (
            queue.Queue(maxsize=maxsize) if maxsize > 0 else None
        )

    def subscribe(self, listener: PoseListener) -> Callable[[], None]:
        """Register a listener.

        Returns:
            Function that removes the listener again
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def publish(self, event: PoseEvent) -> None:
        """Deliver an event to all listeners and the queue."""
        with self._lock:
            listeners = list(self._listeners)

        for listener in listeners:
            listener(event)

        if self._queue is not None:
            self._enqueue(self._queue, event)

    def emit(self, source: PoseSource, pose: Pose2D, timestamp_ns: int = 0) -> PoseEvent:
        """Build and publish an event."""
        event = PoseEvent(source=source, pose=pose, timestamp_ns=timestamp_ns)
        self.publish(event)
        return event

    def _enqueue(self, events: queue.Queue[PoseEvent], event: PoseEvent) -> None:
        while True:
            try:
                events.put_nowait(event)
                return
            except queue.Full:
                try:
                    dropped = events.get_nowait()
                    logger.debug("Pose queue full, dropped %s event", dropped.source.value)
                except queue.Empty:
                    pass

    def drain(self) -> list[PoseEvent]:
        """Return and remove all buffered events (oldest first)."""
        if self._queue is None:
            return []
        events = []
        while True:
            try:
                events.append(self._queue.get_nowait())
            except queue.Empty:
                return events

    @property
    def num_listeners(self) -> int:
        with self._lock:
            return len(self._listeners)
