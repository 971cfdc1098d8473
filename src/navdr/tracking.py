"""Tracking state shared by the inertial and visual producers."""

from enum import Enum


class TrackingState(Enum):
    """Lifecycle state of a pose producer.

    ``start()`` moves a producer from STOPPED to TRACKING and ``stop()`` moves
    it back. ``reset()`` is independent of this state.
    """

    STOPPED = "STOPPED"
    TRACKING = "TRACKING"
