"""Pedestrian dead reckoning from step-detector events."""

from __future__ import annotations

import numpy as np

from .integrator import IntegratorState


class StepAccumulator:
    """Advances position by a fixed step length along the heading.

    Heading 0 points along +y (north) and increases clockwise, so each step
    moves by (L·sin(yaw), L·cos(yaw)).
    """

    def __init__(self, step_length: float = 0.75) -> None:
        """Initialize accumulator.

        Args:
            step_length: Distance per step in metres
        """
        self._step_length = step_length

    @staticmethod
    def steps_in_event(value: float) -> int:
        """Number of steps represented by a step-detector event value.

        An event means at least one step occurred, so the count is never
        below one.
        """
        if not np.isfinite(value):
            return 1
        return max(1, int(value))

    def apply(
        self, state: IntegratorState, event_value: float, heading_rad: float
    ) -> int:
        """Apply one step-detector event to the state in place.

        Args:
            state: State whose position and step count are advanced
            event_value: First value of the step-detector event
            heading_rad: Heading in radians

        Returns:
            Number of steps applied
        """
        steps = self.steps_in_event(event_value)
        dx = self._step_length * np.sin(heading_rad)
        dy = self._step_length * np.cos(heading_rad)

        state.step_count += steps
        state.position[0] += steps * dx
        state.position[1] += steps * dy

        return steps

    @property
    def step_length(self) -> float:
        return self._step_length
