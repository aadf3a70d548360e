"""I/O utilities for recorded sessions and live frame delivery."""

from .frame_source import DatasetFrameSource, FrameSource, SequenceFrameSource
from .sensor_reader import AccelerationSample, OrientationSample, SensorLogReader

__all__ = [
    "FrameSource",
    "SequenceFrameSource",
    "DatasetFrameSource",
    "SensorLogReader",
    "AccelerationSample",
    "OrientationSample",
]
