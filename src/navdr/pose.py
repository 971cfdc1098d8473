"""Pose snapshots emitted by the dead-reckoning producers."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class Pose:
    """Immutable pose snapshot at a given time.

    Produced once per processed inertial event or video frame. The inertial
    and visual producers each emit their own stream; the two streams are
    never interleaved or reconciled.

    Attributes:
        timestamp_ns: Monotonic timestamp in nanoseconds
        position: (x, y, z) position in metres, world frame
        velocity: (x, y, z) velocity in m/s, world frame
        orientation: (roll, pitch, yaw) in degrees
        step_count: Number of steps counted so far
    """

    timestamp_ns: int
    position: tuple[float, float, float] = (0.0, 0.0, 0.0)
    velocity: tuple[float, float, float] = (0.0, 0.0, 0.0)
    orientation: tuple[float, float, float] = (0.0, 0.0, 0.0)
    step_count: int = 0

    @classmethod
    def origin(cls, timestamp_ns: int = 0) -> Pose:
        """Create a pose at the origin with zero velocity and orientation."""
        return cls(timestamp_ns=timestamp_ns)

    @classmethod
    def from_arrays(
        cls,
        timestamp_ns: int,
        position: np.ndarray,
        velocity: np.ndarray,
        orientation_deg: np.ndarray,
        step_count: int = 0,
    ) -> Pose:
        """Create a snapshot from (3,) state arrays.

        The arrays are copied into plain float tuples so the snapshot does not
        alias the producer's mutable state.
        """
        return cls(
            timestamp_ns=int(timestamp_ns),
            position=_as_triple(position),
            velocity=_as_triple(velocity),
            orientation=_as_triple(orientation_deg),
            step_count=int(step_count),
        )

    @property
    def x(self) -> float:
        return self.position[0]

    @property
    def y(self) -> float:
        return self.position[1]

    @property
    def z(self) -> float:
        return self.position[2]

    @property
    def roll_deg(self) -> float:
        return self.orientation[0]

    @property
    def pitch_deg(self) -> float:
        return self.orientation[1]

    @property
    def yaw_deg(self) -> float:
        return self.orientation[2]

    def position_array(self) -> np.ndarray:
        """Return position as a (3,) float64 array."""
        return np.array(self.position, dtype=np.float64)

    def velocity_array(self) -> np.ndarray:
        """Return velocity as a (3,) float64 array."""
        return np.array(self.velocity, dtype=np.float64)

    def __repr__(self) -> str:
        """Return string representation."""
        x, y, z = self.position
        return (
            f"Pose(t={self.timestamp_ns}, position=[{x:.3f}, {y:.3f}, {z:.3f}], "
            f"yaw={self.yaw_deg:.1f}deg, steps={self.step_count})"
        )


def _as_triple(values: np.ndarray) -> tuple[float, float, float]:
    v = np.asarray(values, dtype=np.float64).flatten()
    if v.shape != (3,):
        raise ValueError(f"Expected 3 values, got shape {v.shape}")
    return (float(v[0]), float(v[1]), float(v[2]))
