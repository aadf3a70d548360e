"""Background execution of the frame tick."""

from .frame_poller import FramePoller

__all__ = ["FramePoller"]
