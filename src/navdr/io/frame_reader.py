"""Replay of recorded camera frames as 8-bit luma images."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator

import cv2
import numpy as np

logger = logging.getLogger(__name__)


class FrameReader:
    """Reader for a recorded frame sequence.

    Expected layout (EuRoC camera style):

        <path>/data.csv         #timestamp [ns],filename
        <path>/data/<filename>  image files
    """

    def __init__(self, path: str | Path) -> None:
        """Initialize reader.

        Args:
            path: Directory containing data.csv and data/

        Raises:
            FileNotFoundError: If the directory, data/ or data.csv is missing
            ValueError: If data.csv lists no frames or has invalid lines
        """
        self.path = Path(path)
        self.data_path = self.path / "data"
        self.csv_path = self.path / "data.csv"

        self._validate_paths()

        self._frame_list = self._load_frame_list()
        if not self._frame_list:
            raise ValueError(f"No frames found in {self.csv_path}")

        self._current_idx = 0
        logger.info(f"Loaded {len(self._frame_list)} frames from {self.path}")

    def _validate_paths(self) -> None:
        if not self.path.exists():
            raise FileNotFoundError(f"Frame directory does not exist: {self.path}")

        if not self.data_path.exists():
            raise FileNotFoundError(
                f"data directory not found: {self.data_path}\n"
                f"Expected structure: {self.path}/data/"
            )

        if not self.csv_path.exists():
            raise FileNotFoundError(
                f"data.csv not found: {self.csv_path}\n"
                f"This file is required to list frame timestamps and filenames."
            )

    def _load_frame_list(self) -> list[tuple[int, str]]:
        """Parse data.csv.

        Returns:
            List of (timestamp_ns, filename) tuples in chronological order
        """
        frame_list = []

        with open(self.csv_path, "r") as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith("#"):
                    continue

                try:
                    timestamp_str, filename = line.split(",")
                    frame_list.append((int(timestamp_str.strip()), filename.strip()))
                except ValueError as e:
                    raise ValueError(
                        f"Invalid line in {self.csv_path}: '{line}'\n"
                        f"Expected format: timestamp,filename"
                    ) from e

        frame_list.sort(key=lambda item: item[0])
        return frame_list

    def _load_frame(self, filename: str) -> np.ndarray:
        frame_path = self.data_path / filename
        if not frame_path.exists():
            raise FileNotFoundError(f"Frame image not found: {frame_path}")

        image = cv2.imread(str(frame_path), cv2.IMREAD_GRAYSCALE)
        if image is None:
            raise ValueError(f"Failed to load frame image: {frame_path}")
        return image

    def get_next_frame(self) -> tuple[np.ndarray, int] | None:
        """Get the next frame.

        Returns:
            Tuple of (luma, timestamp_ns) where luma is an HxW uint8 array,
            or None when the sequence is exhausted
        """
        if self._current_idx >= len(self._frame_list):
            return None

        timestamp_ns, filename = self._frame_list[self._current_idx]
        luma = self._load_frame(filename)

        self._current_idx += 1
        return luma, timestamp_ns

    def reset(self) -> None:
        """Rewind to the first frame."""
        self._current_idx = 0

    @property
    def timestamps(self) -> list[int]:
        return [t for t, _ in self._frame_list]

    def __len__(self) -> int:
        """Return total number of frames."""
        return len(self._frame_list)

    def __iter__(self) -> Iterator[tuple[np.ndarray, int]]:
        """Iterate from the first frame, yielding (luma, timestamp_ns)."""
        self.reset()
        return self

    def __next__(self) -> tuple[np.ndarray, int]:
        frame = self.get_next_frame()
        if frame is None:
            raise StopIteration
        return frame
