"""Robust 2-D frame-to-frame motion from keypoint matches."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .features import Matches


@dataclass
class MotionEstimate:
    """Displacement between two consecutive frames.

    Attributes:
        dx_px: Median x displacement in pixels
        dy_px: Median y displacement in pixels
        dx_m: World x displacement in metres (after axis remap)
        dy_m: World y displacement in metres (after axis remap)
        num_matches: Number of matches the estimate is based on
    """

    dx_px: float = 0.0
    dy_px: float = 0.0
    dx_m: float = 0.0
    dy_m: float = 0.0
    num_matches: int = 0

    @property
    def is_zero(self) -> bool:
        return self.dx_m == 0.0 and self.dy_m == 0.0


def upper_median(values: np.ndarray) -> float:
    """Return the middle element of the sorted values.

    For an even count this is the upper of the two middle values, so the
    result is always one of the inputs.
    """
    ordered = np.sort(np.asarray(values, dtype=np.float64))
    return float(ordered[len(ordered) // 2])


class VisualOdometryEstimator:
    """Reduces keypoint matches to one displacement and accumulates a 2-D pose.

    The x and y displacements are reduced independently with the median,
    which tolerates a minority of wrong matches. The pixel displacement is
    scaled to metres and remapped to the world axes according to how the
    camera is mounted. With the default signs, scene content moving right in
    the image means the device moved left.
    """

    def __init__(
        self,
        pixel_to_meter: float = 0.002,
        axis_signs: tuple[float, float] = (-1.0, 1.0),
        swap_axes: bool = False,
    ) -> None:
        """Initialize estimator.

        Args:
            pixel_to_meter: Metres of device motion per pixel of image motion
            axis_signs: Signs applied to (x, y) after any swap
            swap_axes: Exchange image x and y before applying signs
        """
        self._pixel_to_meter = pixel_to_meter
        self._axis_signs = (float(axis_signs[0]), float(axis_signs[1]))
        self._swap_axes = swap_axes
        self._position = np.zeros(2)

    def estimate(self, matches: Matches) -> MotionEstimate:
        """Estimate the frame-to-frame displacement.

        Args:
            matches: Accepted matches for the frame pair

        Returns:
            MotionEstimate; exactly zero when there are no matches
        """
        if len(matches) == 0:
            return MotionEstimate()

        d = matches.displacements
        dx_px = upper_median(d[:, 0])
        dy_px = upper_median(d[:, 1])

        wx, wy = (dy_px, dx_px) if self._swap_axes else (dx_px, dy_px)
        return MotionEstimate(
            dx_px=dx_px,
            dy_px=dy_px,
            dx_m=wx * self._pixel_to_meter * self._axis_signs[0],
            dy_m=wy * self._pixel_to_meter * self._axis_signs[1],
            num_matches=len(matches),
        )

    def accumulate(self, motion: MotionEstimate) -> np.ndarray:
        """Add a displacement to the running pose and return the new (x, y)."""
        self._position = self._position + np.array([motion.dx_m, motion.dy_m])
        return self._position.copy()

    def update(self, matches: Matches) -> tuple[MotionEstimate, np.ndarray]:
        """Estimate and accumulate in one call."""
        motion = self.estimate(matches)
        return motion, self.accumulate(motion)

    def reset(self) -> None:
        """Return the accumulated pose to the origin."""
        self._position = np.zeros(2)

    @property
    def position(self) -> np.ndarray:
        """Accumulated (x, y) position in metres."""
        return self._position.copy()

    @property
    def pixel_to_meter(self) -> float:
        return self._pixel_to_meter
