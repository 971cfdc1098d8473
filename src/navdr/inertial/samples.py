"""Inertial sensor samples delivered to the dead-reckoning producer."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import numpy as np


class SensorKind(Enum):
    """Kind of inertial sensor that produced a sample."""

    ACCELEROMETER = "ACCELEROMETER"
    GYROSCOPE = "GYROSCOPE"
    MAGNETOMETER = "MAGNETOMETER"
    LINEAR_ACCELERATION = "LINEAR_ACCELERATION"
    ROTATION_VECTOR = "ROTATION_VECTOR"
    STEP_DETECTOR = "STEP_DETECTOR"

    @classmethod
    def parse(cls, name: str) -> SensorKind:
        """Parse a kind from its name, case-insensitively.

        Short aliases ("accel", "gyro", "magnet", "linear_accel", "step")
        are accepted as well.

        Raises:
            ValueError: If the name is not a known sensor kind
        """
        key = name.strip().upper()
        key = _ALIASES.get(key, key)
        try:
            return cls[key]
        except KeyError:
            raise ValueError(f"Unknown sensor kind: {name!r}") from None


_ALIASES = {
    "ACCEL": "ACCELEROMETER",
    "GYRO": "GYROSCOPE",
    "MAGNET": "MAGNETOMETER",
    "LINEAR_ACCEL": "LINEAR_ACCELERATION",
    "STEP": "STEP_DETECTOR",
}


@dataclass
class InertialSample:
    """Single raw sensor reading in the device (body) frame.

    Attributes:
        kind: Sensor that produced the reading
        values: Sensor values. Three axes for vector sensors, 3-5 values for
            ROTATION_VECTOR, at least one value (step count) for STEP_DETECTOR.
        timestamp_ns: Monotonic timestamp in nanoseconds (monotonic per kind)
    """

    kind: SensorKind
    values: np.ndarray
    timestamp_ns: int

    def __post_init__(self) -> None:
        """Ensure values are a flat float64 array."""
        self.values = np.asarray(self.values, dtype=np.float64).flatten()
        self.timestamp_ns = int(self.timestamp_ns)

    @property
    def is_finite(self) -> bool:
        """Return True if every value is finite."""
        return bool(len(self.values) > 0 and np.isfinite(self.values).all())

    @property
    def vector(self) -> np.ndarray:
        """Return the first three values as a (3,) array, zero-padded."""
        v = np.zeros(3, dtype=np.float64)
        n = min(3, len(self.values))
        v[:n] = self.values[:n]
        return v
