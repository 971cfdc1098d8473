"""Stationary detection for zero-velocity updates (ZUPT) and bias estimation."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass
class BiasEstimate:
    """Accelerometer offset in the body frame (x, y), m/s².

    Only refreshed while the device is confirmed stationary.
    """

    bias_x: float = 0.0
    bias_y: float = 0.0

    def update(self, ax: float, ay: float, smoothing: float = 0.2) -> None:
        """Move the estimate toward a raw reading by exponential smoothing."""
        self.bias_x = self.bias_x * (1.0 - smoothing) + ax * smoothing
        self.bias_y = self.bias_y * (1.0 - smoothing) + ay * smoothing

    def reset(self) -> None:
        self.bias_x = 0.0
        self.bias_y = 0.0

    def as_array(self) -> np.ndarray:
        """Return bias as a (2,) array."""
        return np.array([self.bias_x, self.bias_y], dtype=np.float64)


class StationaryDetector:
    """Time-based still detector driven by acceleration and angular rate.

    Still time accumulates while both the linear acceleration norm and the
    angular rate norm stay below their thresholds, and resets to zero as soon
    as either exceeds it. The device is stationary once still time exceeds
    the required duration.
    """

    def __init__(
        self,
        accel_threshold: float = 0.12,
        gyro_threshold: float = 0.05,
        required_still_time: float = 0.5,
        bias_smoothing: float = 0.2,
    ) -> None:
        """Initialize detector.

        Args:
            accel_threshold: Linear acceleration norm threshold, m/s²
            gyro_threshold: Angular rate norm threshold, rad/s
            required_still_time: Still time before declaring stationary, s
            bias_smoothing: Smoothing factor for the bias estimate
        """
        self._accel_threshold = accel_threshold
        self._gyro_threshold = gyro_threshold
        self._required_still_time = required_still_time
        self._bias_smoothing = bias_smoothing

        self._still_time = 0.0
        self._is_stationary = False
        self._bias = BiasEstimate()

    def update(
        self, accel: np.ndarray, gyro: np.ndarray | None, dt: float
    ) -> bool:
        """Classify one integration tick.

        Args:
            accel: (3,) body-frame linear acceleration, m/s²
            gyro: (3,) angular rate in rad/s, or None if unavailable
            dt: Tick duration in seconds

        Returns:
            True if the device is stationary
        """
        accel = np.asarray(accel, dtype=np.float64)
        accel_norm = float(np.linalg.norm(accel))
        gyro_norm = 0.0 if gyro is None else float(np.linalg.norm(gyro))

        if accel_norm < self._accel_threshold and gyro_norm < self._gyro_threshold:
            self._still_time += dt
        else:
            self._still_time = 0.0

        self._is_stationary = self._still_time > self._required_still_time
        if self._is_stationary:
            self._bias.update(accel[0], accel[1], self._bias_smoothing)
        return self._is_stationary

    def reset(self) -> None:
        """Clear still time and bias."""
        self._still_time = 0.0
        self._is_stationary = False
        self._bias.reset()

    @property
    def still_time(self) -> float:
        """Accumulated still time in seconds."""
        return self._still_time

    @property
    def required_still_time(self) -> float:
        return self._required_still_time

    @property
    def is_stationary(self) -> bool:
        return self._is_stationary

    @property
    def bias(self) -> BiasEstimate:
        return self._bias


class SampleCountStationaryDetector:
    """Still detector counting consecutive quiet 2-D acceleration samples.

    Only the horizontal (x, y) acceleration magnitude is checked; angular rate
    is ignored.
    """

    def __init__(
        self,
        accel_threshold: float = 0.12,
        required_samples: int = 6,
        bias_smoothing: float = 0.2,
    ) -> None:
        self._accel_threshold = accel_threshold
        self._required_samples = required_samples
        self._bias_smoothing = bias_smoothing

        self._still_samples = 0
        self._is_stationary = False
        self._bias = BiasEstimate()

    def update(
        self, accel: np.ndarray, gyro: np.ndarray | None = None, dt: float = 0.0
    ) -> bool:
        """Classify one sample. ``gyro`` and ``dt`` are accepted but unused.

        Returns:
            True if the device is stationary
        """
        accel = np.asarray(accel, dtype=np.float64)
        if float(np.hypot(accel[0], accel[1])) < self._accel_threshold:
            self._still_samples += 1
        else:
            self._still_samples = 0

        self._is_stationary = self._still_samples >= self._required_samples
        if self._is_stationary:
            self._bias.update(accel[0], accel[1], self._bias_smoothing)
        return self._is_stationary

    def reset(self) -> None:
        """Clear the sample count and bias."""
        self._still_samples = 0
        self._is_stationary = False
        self._bias.reset()

    @property
    def still_samples(self) -> int:
        """Number of consecutive quiet samples."""
        return self._still_samples

    @property
    def required_samples(self) -> int:
        return self._required_samples

    @property
    def is_stationary(self) -> bool:
        return self._is_stationary

    @property
    def bias(self) -> BiasEstimate:
        return self._bias
