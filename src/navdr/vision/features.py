"""Keypoint and correspondence containers for the visual odometry pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, NamedTuple

import numpy as np


class Feature(NamedTuple):
    """Single keypoint.

    Attributes:
        x: Pixel column
        y: Pixel row
        score: Corner strength (ring pixels agreeing with the corner test)
    """

    x: int
    y: int
    score: int = 0


class Match(NamedTuple):
    """Correspondence between a previous-frame and a current-frame keypoint."""

    previous: Feature
    current: Feature


@dataclass
class Features:
    """Keypoints detected in one frame.

    Attributes:
        points: Nx2 int32 array of (x, y) pixel coordinates
        scores: (N,) int32 array of corner scores
    """

    points: np.ndarray  # (N, 2) int32
    scores: np.ndarray  # (N,) int32

    def __post_init__(self) -> None:
        """Ensure arrays have correct shape and type."""
        self.points = np.asarray(self.points, dtype=np.int32).reshape(-1, 2)
        self.scores = np.asarray(self.scores, dtype=np.int32).flatten()
        if len(self.points) != len(self.scores):
            raise ValueError(
                f"points and scores differ in length: {len(self.points)} != {len(self.scores)}"
            )

    @classmethod
    def empty(cls) -> Features:
        return cls(
            points=np.empty((0, 2), dtype=np.int32),
            scores=np.empty(0, dtype=np.int32),
        )

    @classmethod
    def from_list(cls, features: Iterable[Feature]) -> Features:
        """Build from Feature tuples."""
        features = list(features)
        if not features:
            return cls.empty()
        return cls(
            points=np.array([(f.x, f.y) for f in features], dtype=np.int32),
            scores=np.array([f.score for f in features], dtype=np.int32),
        )

    def __len__(self) -> int:
        """Return number of keypoints."""
        return len(self.points)

    def __getitem__(self, index: int) -> Feature:
        x, y = self.points[index]
        return Feature(int(x), int(y), int(self.scores[index]))

    def __iter__(self) -> Iterator[Feature]:
        for i in range(len(self)):
            yield self[i]

    def subsample(self, step: int) -> Features:
        """Return every ``step``-th keypoint."""
        return Features(points=self.points[::step], scores=self.scores[::step])

    def to_pairs(self) -> list[tuple[int, int]]:
        """Return keypoints as a list of (x, y) tuples for display."""
        return [(int(x), int(y)) for x, y in self.points]


@dataclass
class Matches:
    """Correspondences between two consecutive frames.

    Attributes:
        prev_points: Nx2 keypoint coordinates in the previous frame
        curr_points: Nx2 matched coordinates in the current frame
        ssd: (N,) sum of squared differences of each match
    """

    prev_points: np.ndarray  # (N, 2)
    curr_points: np.ndarray  # (N, 2)
    ssd: np.ndarray  # (N,) float64

    def __post_init__(self) -> None:
        """Ensure arrays have correct shape and type."""
        self.prev_points = np.asarray(self.prev_points, dtype=np.float64).reshape(-1, 2)
        self.curr_points = np.asarray(self.curr_points, dtype=np.float64).reshape(-1, 2)
        self.ssd = np.asarray(self.ssd, dtype=np.float64).flatten()
        if not (len(self.prev_points) == len(self.curr_points) == len(self.ssd)):
            raise ValueError("prev_points, curr_points and ssd must have equal length")

    @classmethod
    def empty(cls) -> Matches:
        return cls(
            prev_points=np.empty((0, 2)),
            curr_points=np.empty((0, 2)),
            ssd=np.empty(0),
        )

    @classmethod
    def from_pairs(
        cls,
        pairs: Iterable[tuple[tuple[float, float], tuple[float, float]]],
    ) -> Matches:
        """Build from ((x0, y0), (x1, y1)) coordinate pairs, with zero SSD."""
        pairs = list(pairs)
        if not pairs:
            return cls.empty()
        prev = np.array([p for p, _ in pairs], dtype=np.float64)
        curr = np.array([c for _, c in pairs], dtype=np.float64)
        return cls(prev_points=prev, curr_points=curr, ssd=np.zeros(len(pairs)))

    def __len__(self) -> int:
        """Return number of matches."""
        return len(self.prev_points)

    def __iter__(self) -> Iterator[Match]:
        for (px, py), (cx, cy) in zip(self.prev_points, self.curr_points):
            yield Match(
                previous=Feature(int(px), int(py)),
                current=Feature(int(cx), int(cy)),
            )

    @property
    def displacements(self) -> np.ndarray:
        """Return Nx2 pixel displacements (current minus previous)."""
        return self.curr_points - self.prev_points
