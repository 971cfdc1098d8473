"""Replay of recorded inertial sensor logs.

Log format, one sample per line, ``#`` starts a comment:

    #timestamp [ns],kind,v0,v1,v2[,v3[,v4]]
    1000000000,LINEAR_ACCELERATION,0.01,-0.02,0.00
    1000500000,ROTATION_VECTOR,0.0,0.0,0.7071,0.7071
    1002000000,STEP_DETECTOR,1
"""

from __future__ import annotations

import bisect
import logging
from pathlib import Path
from typing import Iterator

import numpy as np

from ..inertial.samples import InertialSample, SensorKind

logger = logging.getLogger(__name__)


class SensorLogReader:
    """Loads an inertial sensor log into memory, ordered by timestamp.

    Example usage:
        reader = SensorLogReader("logs/walk.csv")
        dr.process_samples(reader)
    """

    def __init__(self, path: str | Path) -> None:
        """Initialize reader.

        Args:
            path: Path to the CSV log

        Raises:
            FileNotFoundError: If the log does not exist
        """
        self._path = Path(path)
        if not self._path.exists():
            raise FileNotFoundError(f"Sensor log not found: {self._path}")

        self._samples: list[InertialSample] = []
        self._timestamps: list[int] = []  # For fast binary search
        self._skipped = 0
        self._load_samples()

    def _load_samples(self) -> None:
        """Parse the log, skipping malformed lines."""
        samples = []
        with open(self._path, "r") as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith("#"):
                    continue

                parts = [p.strip() for p in line.split(",")]
                if len(parts) < 3:
                    self._skipped += 1
                    continue

                try:
                    timestamp_ns = int(parts[0])
                    kind = SensorKind.parse(parts[1])
                    values = np.array([float(v) for v in parts[2:]])
                except ValueError:
                    self._skipped += 1
                    continue

                samples.append(InertialSample(kind=kind, values=values, timestamp_ns=timestamp_ns))

        # Stable sort keeps file order for equal timestamps
        samples.sort(key=lambda s: s.timestamp_ns)
        self._samples = samples
        self._timestamps = [s.timestamp_ns for s in samples]

        if self._skipped:
            logger.warning(f"Skipped {self._skipped} malformed lines in {self._path}")
        logger.info(f"Loaded {len(self._samples)} samples from {self._path}")

    def get_samples_between(self, start_ns: int, end_ns: int) -> list[InertialSample]:
        """Get samples with start_ns <= timestamp < end_ns."""
        if not self._timestamps:
            return []

        start_idx = bisect.bisect_left(self._timestamps, start_ns)
        end_idx = bisect.bisect_left(self._timestamps, end_ns)
        return self._samples[start_idx:end_idx]

    @property
    def kinds(self) -> frozenset[SensorKind]:
        """Sensor kinds present in the log."""
        return frozenset(s.kind for s in self._samples)

    @property
    def num_skipped(self) -> int:
        """Number of malformed lines skipped while loading."""
        return self._skipped

    @property
    def start_timestamp(self) -> int | None:
        """First timestamp in nanoseconds."""
        return self._timestamps[0] if self._timestamps else None

    @property
    def end_timestamp(self) -> int | None:
        """Last timestamp in nanoseconds."""
        return self._timestamps[-1] if self._timestamps else None

    def __len__(self) -> int:
        """Number of samples."""
        return len(self._samples)

    def __iter__(self) -> Iterator[InertialSample]:
        return iter(self._samples)
