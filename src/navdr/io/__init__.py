"""Replay readers for recorded sensor logs and camera frames."""

from .frame_reader import FrameReader
from .sensor_log import SensorLogReader

__all__ = [
    "FrameReader",
    "SensorLogReader",
]
