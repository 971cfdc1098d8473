"""Owned, reusable luma buffers for one-frame lookback."""

from __future__ import annotations

import logging

import numpy as np

logger = logging.getLogger(__name__)


class FrameBuffer:
    """Two fixed-size luma buffers reused across frames.

    ``load()`` copies an incoming frame into the current slot, ``commit()``
    turns it into the previous frame for the next call. Only the immediately
    preceding frame is ever kept; ``has_previous`` says whether it is valid.
    A change of frame size reallocates both slots and invalidates the
    previous frame.
    """

    def __init__(self, width: int = 0, height: int = 0) -> None:
        self._width = 0
        self._height = 0
        self._slots = [np.empty((0, 0), dtype=np.uint8), np.empty((0, 0), dtype=np.uint8)]
        self._current = 0
        self._has_previous = False
        if width > 0 and height > 0:
            self._allocate(width, height)

    def _allocate(self, width: int, height: int) -> None:
        self._width = width
        self._height = height
        self._slots = [
            np.zeros((height, width), dtype=np.uint8),
            np.zeros((height, width), dtype=np.uint8),
        ]
        self._current = 0
        self._has_previous = False
        logger.debug("Allocated %dx%d frame buffers", width, height)

    def load(self, data: bytes | bytearray | memoryview | np.ndarray, width: int, height: int) -> bool:
        """Copy the luma plane of a frame into the current slot.

        Only the first width*height bytes are used, so a full planar
        YUV buffer (e.g. NV21) can be passed directly.

        Args:
            data: Frame bytes or uint8 array
            width: Frame width in pixels
            height: Frame height in pixels

        Returns:
            False if the frame is malformed; the buffers are left unchanged
        """
        if width <= 0 or height <= 0:
            return False

        n = width * height
        if isinstance(data, np.ndarray):
            flat = np.ravel(data)
            if flat.dtype != np.uint8:
                return False
        else:
            flat = np.frombuffer(data, dtype=np.uint8)
        if len(flat) < n:
            return False

        if (width, height) != (self._width, self._height):
            self._allocate(width, height)

        np.copyto(self._slots[self._current].reshape(-1), flat[:n])
        return True

    def commit(self) -> None:
        """Make the current frame the previous one."""
        self._current = 1 - self._current
        self._has_previous = True

    def invalidate(self) -> None:
        """Forget the previous frame."""
        self._has_previous = False

    @property
    def current(self) -> np.ndarray:
        """HxW view of the most recently loaded frame."""
        return self._slots[self._current]

    @property
    def previous(self) -> np.ndarray:
        """HxW view of the previous frame. Only meaningful if has_previous."""
        return self._slots[1 - self._current]

    @property
    def has_previous(self) -> bool:
        return self._has_previous

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height
