"""FAST-style corner detection with grid non-maximum suppression."""

from __future__ import annotations

import cv2
import numpy as np

from .features import Features

# 16-point Bresenham circle of radius 3 as (dx, dy), walked clockwise from the left
RING_OFFSETS = (
    (-3, 0), (-3, 1), (-2, 2), (-1, 3),
    (0, 3), (1, 3), (2, 2), (3, 1),
    (3, 0), (3, -1), (2, -2), (1, -3),
    (0, -3), (-1, -3), (-2, -2), (-3, -1),
)
RING_RADIUS = 3


class FeatureDetector:
    """Sparse corner detector for real-time frame-to-frame tracking.

    Candidates are tested on a strided grid. A candidate is a corner when
    enough of the 16 ring pixels are all brighter (or all darker) than the
    center by more than the threshold; unlike classic FAST the agreeing
    pixels need not be contiguous. Only the strongest corner in each grid
    cell survives, so keypoints are spread over the image.
    """

    def __init__(
        self,
        threshold: int = 20,
        arc_length: int = 12,
        stride: int = 3,
        border: int = 10,
        grid_size: int = 8,
        max_features: int = 1000,
    ) -> None:
        """Initialize detector.

        Args:
            threshold: Intensity difference (0-255) for a ring pixel to count
                as brighter or darker than the center
            arc_length: Number of agreeing ring pixels (of 16) for a corner
            stride: Row/column step between tested candidates
            border: Margin in pixels where no candidate is tested. Must be at
                least the ring radius (3).
            grid_size: Cell size in pixels for non-maximum suppression
            max_features: Maximum number of keypoints returned
        """
        if border < RING_RADIUS:
            raise ValueError(f"border must be >= {RING_RADIUS}, got {border}")
        self._threshold = threshold
        self._arc_length = arc_length
        self._stride = stride
        self._border = border
        self._grid_size = grid_size
        self._max_features = max_features

    def detect(self, image: np.ndarray) -> Features:
        """Detect corners in a grayscale image.

        The result is deterministic: keypoints are ordered by descending
        score, then by row and column.

        Args:
            image: HxW uint8 luma image. Color (HxWx3 BGR) images are
                converted to grayscale.

        Returns:
            Features with at most max_features keypoints
        """
        if image.ndim == 3:
            image = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)

        h, w = image.shape[:2]
        ys = np.arange(self._border, h - self._border, self._stride)
        xs = np.arange(self._border, w - self._border, self._stride)
        if len(ys) == 0 or len(xs) == 0:
            return Features.empty()

        img = image.astype(np.int16)
        center = img[np.ix_(ys, xs)]
        upper = center + self._threshold
        lower = center - self._threshold

        brighter = np.zeros(center.shape, dtype=np.int32)
        darker = np.zeros(center.shape, dtype=np.int32)
        for dx, dy in RING_OFFSETS:
            ring = img[np.ix_(ys + dy, xs + dx)]
            brighter += ring > upper
            darker += ring < lower

        score = np.maximum(brighter, darker)
        rows, cols = np.nonzero(score >= self._arc_length)
        if len(rows) == 0:
            return Features.empty()

        # np.nonzero returns candidates in row-major scan order
        px = xs[cols]
        py = ys[rows]
        scores = score[rows, cols]

        keep = self._grid_suppression(px, py, scores, w)
        px, py, scores = px[keep], py[keep], scores[keep]

        order = np.lexsort((px, py, -scores))[: self._max_features]
        return Features(
            points=np.column_stack([px[order], py[order]]),
            scores=scores[order],
        )

    def _grid_suppression(
        self, px: np.ndarray, py: np.ndarray, scores: np.ndarray, width: int
    ) -> np.ndarray:
        """Return indices of the best corner per grid cell.

        Ties within a cell go to the corner found first in scan order.
        """
        n_cols = width // self._grid_size + 1
        cells = (py // self._grid_size) * n_cols + (px // self._grid_size)
        scan_order = np.arange(len(px))

        order = np.lexsort((scan_order, -scores, cells))
        _, first = np.unique(cells[order], return_index=True)
        return order[first]

    @property
    def max_features(self) -> int:
        """Return maximum number of features to detect."""
        return self._max_features

    @property
    def border(self) -> int:
        return self._border

    @property
    def threshold(self) -> int:
        return self._threshold
