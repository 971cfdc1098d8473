"""Device orientation from rotation-vector or accelerometer+magnetometer samples.

Orientation angles follow the Android sensor convention:
    - yaw (azimuth): rotation around -Z, 0 when the device Y axis points north
    - pitch: rotation around X
    - roll: rotation around Y

The rotation matrix maps body-frame vectors into the world frame
(X east, Y north, Z up).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import numpy as np
from scipy.spatial.transform import Rotation

logger = logging.getLogger(__name__)

STANDARD_GRAVITY = 9.80665

# Below 10% of g the accelerometer cannot give a tilt reference (free fall)
_FREE_FALL_GRAVITY_SQUARED = (0.1 * STANDARD_GRAVITY) ** 2

# |E x A| below this means the magnetic field is (nearly) parallel to gravity
_MIN_HORIZONTAL_FIELD = 0.1


@dataclass
class OrientationState:
    """Current device orientation.

    Attributes:
        rotation: 3x3 body-to-world rotation matrix
        yaw: Azimuth in radians, [-pi, pi]
        pitch: Pitch in radians, [-pi/2, pi/2]
        roll: Roll in radians, [-pi, pi]
    """

    rotation: np.ndarray = field(default_factory=lambda: np.eye(3))
    yaw: float = 0.0
    pitch: float = 0.0
    roll: float = 0.0

    def set_rotation(self, rotation: np.ndarray) -> None:
        """Replace the rotation matrix and recompute the angles."""
        self.rotation = np.asarray(rotation, dtype=np.float64).reshape(3, 3).copy()
        self.yaw, self.pitch, self.roll = orientation_angles(self.rotation)

    @property
    def angles_deg(self) -> np.ndarray:
        """Return (roll, pitch, yaw) in degrees."""
        return np.degrees([self.roll, self.pitch, self.yaw])

    def copy(self) -> OrientationState:
        return OrientationState(
            rotation=self.rotation.copy(), yaw=self.yaw, pitch=self.pitch, roll=self.roll
        )


def orientation_angles(R: np.ndarray) -> tuple[float, float, float]:
    """Extract (yaw, pitch, roll) in radians from a rotation matrix.

    Args:
        R: 3x3 body-to-world rotation matrix

    Returns:
        Tuple of (yaw, pitch, roll)
    """
    yaw = float(np.arctan2(R[0, 1], R[1, 1]))
    pitch = float(np.arcsin(np.clip(-R[2, 1], -1.0, 1.0)))
    roll = float(np.arctan2(-R[2, 0], R[2, 2]))
    return yaw, pitch, roll


def rotation_from_vector(rotation_vector: np.ndarray) -> np.ndarray | None:
    """Convert a fused rotation-vector sample to a rotation matrix.

    The sample holds the quaternion vector part (x, y, z) and optionally the
    scalar part w. When w is absent it is recovered from the unit norm.

    Args:
        rotation_vector: (3,) to (5,) rotation-vector values

    Returns:
        3x3 rotation matrix, or None if the quaternion is degenerate
    """
    rv = np.asarray(rotation_vector, dtype=np.float64).flatten()
    if len(rv) < 3 or not np.isfinite(rv[:4]).all():
        return None

    x, y, z = rv[:3]
    if len(rv) >= 4:
        w = rv[3]
    else:
        w_sq = 1.0 - x * x - y * y - z * z
        w = np.sqrt(w_sq) if w_sq > 0 else 0.0

    try:
        # scipy uses scalar-last (x, y, z, w) order
        return Rotation.from_quat([x, y, z, w]).as_matrix()
    except ValueError:
        return None


def rotation_from_gravity_and_field(
    gravity: np.ndarray, geomagnetic: np.ndarray
) -> np.ndarray | None:
    """Compute a tilt-compensated rotation matrix from accel and magnetometer.

    Rows of the result are the world east (H = E x A), north (M = A x H) and
    up (A) directions expressed in the body frame.

    Args:
        gravity: (3,) accelerometer reading (gravity direction), m/s²
        geomagnetic: (3,) magnetometer reading, µT

    Returns:
        3x3 rotation matrix, or None if the inputs are degenerate (free fall,
        field parallel to gravity, non-finite values)
    """
    A = np.asarray(gravity, dtype=np.float64)
    E = np.asarray(geomagnetic, dtype=np.float64)
    if not (np.isfinite(A).all() and np.isfinite(E).all()):
        return None

    norm_sq_a = float(A @ A)
    if norm_sq_a < _FREE_FALL_GRAVITY_SQUARED:
        return None

    H = np.cross(E, A)
    norm_h = float(np.linalg.norm(H))
    if norm_h < _MIN_HORIZONTAL_FIELD:
        return None

    H = H / norm_h
    A = A / np.sqrt(norm_sq_a)
    M = np.cross(A, H)
    return np.vstack([H, M, A])


class OrientationEstimator:
    """Tracks device orientation from orientation-bearing sensor samples.

    The fused rotation vector is preferred. When it is not available, the
    orientation is computed from the latest accelerometer and magnetometer
    samples, which must both be present. Degenerate samples leave the
    previous orientation untouched.
    """

    def __init__(self, prefer_rotation_vector: bool = True) -> None:
        """Initialize the estimator at identity orientation.

        Args:
            prefer_rotation_vector: If True, accelerometer/magnetometer samples
                are cached but never overwrite the orientation.
        """
        self.prefer_rotation_vector = prefer_rotation_vector
        self._state = OrientationState()
        self._accel: np.ndarray | None = None
        self._magnet: np.ndarray | None = None

    def update_rotation_vector(self, values: np.ndarray) -> bool:
        """Update orientation from a rotation-vector sample.

        Returns:
            True if the orientation changed
        """
        R = rotation_from_vector(values)
        if R is None:
            logger.debug("Discarding degenerate rotation vector %s", values)
            return False
        self._state.set_rotation(R)
        return True

    def update_accelerometer(self, values: np.ndarray) -> bool:
        """Cache an accelerometer sample and refresh the fallback orientation.

        Returns:
            True if the orientation changed
        """
        values = np.asarray(values, dtype=np.float64).flatten()[:3]
        if len(values) < 3 or not np.isfinite(values).all():
            return False
        self._accel = values.copy()
        return self._update_from_accel_magnet()

    def update_magnetometer(self, values: np.ndarray) -> bool:
        """Cache a magnetometer sample and refresh the fallback orientation.

        Returns:
            True if the orientation changed
        """
        values = np.asarray(values, dtype=np.float64).flatten()[:3]
        if len(values) < 3 or not np.isfinite(values).all():
            return False
        self._magnet = values.copy()
        return self._update_from_accel_magnet()

    def _update_from_accel_magnet(self) -> bool:
        if self.prefer_rotation_vector:
            return False
        if self._accel is None or self._magnet is None:
            return False

        R = rotation_from_gravity_and_field(self._accel, self._magnet)
        if R is None:
            logger.debug("Accel/magnet rotation failed, keeping previous orientation")
            return False
        self._state.set_rotation(R)
        return True

    def reset(self) -> None:
        """Reset to identity orientation and forget cached samples."""
        self._state = OrientationState()
        self._accel = None
        self._magnet = None

    @property
    def state(self) -> OrientationState:
        """Return the live orientation state."""
        return self._state

    @property
    def rotation(self) -> np.ndarray:
        """Return a copy of the current rotation matrix."""
        return self._state.rotation.copy()

    @property
    def yaw(self) -> float:
        """Return current yaw in radians."""
        return self._state.yaw


class HeadingFilter:
    """Low-pass filter on yaw, in degrees within [0, 360).

    The filter steps along the shortest arc between the current heading and
    the new reading, so crossing north does not swing through south.
    A plain linear blend of the normalized degrees, as some implementations
    use, would instead sweep through 180 when the reading crosses 0/360.
    """

    def __init__(self, alpha: float = 0.2) -> None:
        """Initialize filter.

        Args:
            alpha: Weight of the new reading (0 < alpha <= 1)
        """
        self._alpha = alpha
        self._heading_deg = 0.0
        self._has_heading = False

    def update(self, yaw_rad: float) -> float:
        """Feed a yaw reading and return the smoothed heading in degrees."""
        if not np.isfinite(yaw_rad):
            return self._heading_deg

        reading = float(np.degrees(yaw_rad)) % 360.0
        if not self._has_heading:
            self._heading_deg = reading
            self._has_heading = True
            return self._heading_deg

        delta = (reading - self._heading_deg + 180.0) % 360.0 - 180.0
        self._heading_deg = (self._heading_deg + self._alpha * delta) % 360.0
        return self._heading_deg

    def reset(self) -> None:
        """Forget the heading."""
        self._heading_deg = 0.0
        self._has_heading = False

    @property
    def heading_deg(self) -> float:
        """Return smoothed heading in degrees, [0, 360)."""
        return self._heading_deg

    @property
    def heading_rad(self) -> float:
        """Return smoothed heading in radians."""
        return float(np.radians(self._heading_deg))

    @property
    def has_heading(self) -> bool:
        return self._has_heading

    @property
    def alpha(self) -> float:
        return self._alpha
