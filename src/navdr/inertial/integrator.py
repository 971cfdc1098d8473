"""Acceleration integration for inertial dead reckoning.

Two integrator variants share the PoseIntegrator interface:

- RotationMatrixIntegrator trusts the full device orientation and rotates
  3-D body acceleration with the 3x3 rotation matrix.
- HeadingIntegrator assumes a level device and trusts only the heading. It
  removes the estimated bias, applies a deadzone and integrates in the
  horizontal plane.

Both use semi-implicit Euler integration (velocity first, then position with
the updated velocity) with a drift-limiting velocity decay.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

import numpy as np

from ..config import InertialConfig
from .orientation import OrientationState
from .stationary import BiasEstimate

logger = logging.getLogger(__name__)


@dataclass
class IntegratorState:
    """Kinematic state of one inertial producer.

    Attributes:
        last_timestamp_ns: Timestamp of the last acceleration sample, or None
            before the first one
        position: Position in world frame (3,), metres
        velocity: Velocity in world frame (3,), m/s
        step_count: Steps counted by the step accumulator
    """

    last_timestamp_ns: int | None = None
    position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    velocity: np.ndarray = field(default_factory=lambda: np.zeros(3))
    step_count: int = 0

    def __post_init__(self) -> None:
        """Ensure arrays have correct shape and type."""
        self.position = np.asarray(self.position, dtype=np.float64).flatten()
        self.velocity = np.asarray(self.velocity, dtype=np.float64).flatten()

    def reset(self) -> None:
        """Return to the origin at rest."""
        self.last_timestamp_ns = None
        self.position = np.zeros(3)
        self.velocity = np.zeros(3)
        self.step_count = 0

    def copy(self) -> IntegratorState:
        return IntegratorState(
            last_timestamp_ns=self.last_timestamp_ns,
            position=self.position.copy(),
            velocity=self.velocity.copy(),
            step_count=self.step_count,
        )


class PoseIntegrator(ABC):
    """Integrates body-frame acceleration into world velocity and position."""

    def __init__(
        self,
        max_dt: float,
        min_dt: float = 0.0,
        gap_policy: str = "clamp",
    ) -> None:
        """Initialize time-step validation.

        Args:
            max_dt: Largest time step in seconds
            min_dt: Time steps below this are rejected
            gap_policy: "clamp" limits larger steps to max_dt, "reject"
                discards them
        """
        self._max_dt = max_dt
        self._min_dt = min_dt
        self._gap_policy = gap_policy

    def compute_dt(self, state: IntegratorState, timestamp_ns: int) -> float | None:
        """Compute the time step for a new sample and advance the clock.

        The state's timestamp is always updated to the new sample, even when
        the step is rejected. The first sample only initializes the clock.

        Args:
            state: Integrator state (its timestamp is updated in place)
            timestamp_ns: Sample timestamp in nanoseconds

        Returns:
            Time step in seconds, or None if the sample must not be integrated
        """
        prev_ns = state.last_timestamp_ns
        state.last_timestamp_ns = int(timestamp_ns)
        if prev_ns is None:
            return None

        dt = (timestamp_ns - prev_ns) * 1e-9
        if dt <= 0 or dt < self._min_dt:
            logger.debug("Rejecting sample with dt=%.6f s", dt)
            return None
        if dt > self._max_dt:
            if self._gap_policy == "reject":
                logger.debug("Rejecting sample after %.3f s gap", dt)
                return None
            dt = self._max_dt
        return dt

    @abstractmethod
    def step(
        self,
        state: IntegratorState,
        accel: np.ndarray,
        dt: float,
        orientation: OrientationState,
        heading_deg: float,
        bias: BiasEstimate,
    ) -> IntegratorState:
        """Integrate one acceleration sample.

        Args:
            state: State before the sample
            accel: (3,) body-frame linear acceleration, m/s²
            dt: Time step in seconds (already validated)
            orientation: Freshest device orientation
            heading_deg: Freshest smoothed heading in degrees
            bias: Freshest accelerometer bias estimate

        Returns:
            Updated state (a new object; the input is not modified)
        """

    def integrate(
        self,
        samples: list[tuple[int, np.ndarray]],
        initial_state: IntegratorState,
        orientation: OrientationState | None = None,
        heading_deg: float = 0.0,
        bias: BiasEstimate | None = None,
    ) -> IntegratorState:
        """Integrate a sequence of (timestamp_ns, accel) samples.

        Orientation, heading and bias are held fixed over the sequence and no
        stationary detection is applied.

        Args:
            samples: Samples in chronological order
            initial_state: Starting state
            orientation: Device orientation (default: identity)
            heading_deg: Heading in degrees
            bias: Accelerometer bias (default: zero)

        Returns:
            Final state after integrating all samples
        """
        orientation = orientation or OrientationState()
        bias = bias or BiasEstimate()
        state = initial_state.copy()

        for timestamp_ns, accel in samples:
            dt = self.compute_dt(state, timestamp_ns)
            if dt is None:
                continue
            accel = np.asarray(accel, dtype=np.float64).flatten()
            if not np.isfinite(accel).all():
                continue
            state = self.step(state, accel, dt, orientation, heading_deg, bias)

        return state

    @property
    def max_dt(self) -> float:
        return self._max_dt

    @property
    def min_dt(self) -> float:
        return self._min_dt

    @property
    def gap_policy(self) -> str:
        return self._gap_policy


class RotationMatrixIntegrator(PoseIntegrator):
    """Full 3-D integrator using the orientation rotation matrix.

    a_world = R @ a_body, then v += a·dt, v *= damping, p += v·dt.
    """

    def __init__(
        self,
        damping: float = 0.98,
        max_dt: float = 0.1,
        min_dt: float = 0.0,
        gap_policy: str = "clamp",
    ) -> None:
        super().__init__(max_dt=max_dt, min_dt=min_dt, gap_policy=gap_policy)
        self._damping = damping

    def step(
        self,
        state: IntegratorState,
        accel: np.ndarray,
        dt: float,
        orientation: OrientationState,
        heading_deg: float,
        bias: BiasEstimate,
    ) -> IntegratorState:
        accel_world = orientation.rotation @ accel

        v_new = (state.velocity + accel_world * dt) * self._damping
        p_new = state.position + v_new * dt

        return IntegratorState(
            last_timestamp_ns=state.last_timestamp_ns,
            position=p_new,
            velocity=v_new,
            step_count=state.step_count,
        )

    @property
    def damping(self) -> float:
        return self._damping


class HeadingIntegrator(PoseIntegrator):
    """Planar integrator for a level device that trusts only the heading.

    The bias is removed from the raw (x, y) acceleration, components below the
    deadzone are zeroed, and the result is rotated by the heading:

        wx =  ax·cos(h) + ay·sin(h)
        wy = -ax·sin(h) + ay·cos(h)

    Velocity decays continuously as v *= exp(-k·dt). The z axis stays at zero.
    """

    def __init__(
        self,
        damping_rate: float = 1.0,
        deadzone: float = 0.05,
        max_dt: float = 1.0,
        min_dt: float = 0.001,
        gap_policy: str = "reject",
    ) -> None:
        super().__init__(max_dt=max_dt, min_dt=min_dt, gap_policy=gap_policy)
        self._damping_rate = damping_rate
        self._deadzone = deadzone

    def step(
        self,
        state: IntegratorState,
        accel: np.ndarray,
        dt: float,
        orientation: OrientationState,
        heading_deg: float,
        bias: BiasEstimate,
    ) -> IntegratorState:
        a = accel[:2] - bias.as_array()
        a[np.abs(a) < self._deadzone] = 0.0

        h = np.radians(heading_deg)
        cos_h, sin_h = np.cos(h), np.sin(h)
        accel_world = np.array(
            [
                a[0] * cos_h + a[1] * sin_h,
                -a[0] * sin_h + a[1] * cos_h,
                0.0,
            ]
        )

        decay = np.exp(-self._damping_rate * dt)
        v_new = (state.velocity + accel_world * dt) * decay
        v_new[2] = 0.0
        p_new = state.position + v_new * dt

        return IntegratorState(
            last_timestamp_ns=state.last_timestamp_ns,
            position=p_new,
            velocity=v_new,
            step_count=state.step_count,
        )

    @property
    def damping_rate(self) -> float:
        return self._damping_rate

    @property
    def deadzone(self) -> float:
        return self._deadzone


def make_integrator(config: InertialConfig) -> PoseIntegrator:
    """Create the integrator variant selected by ``config.mode``."""
    if config.mode == "heading":
        return HeadingIntegrator(
            damping_rate=config.damping_rate,
            deadzone=config.deadzone,
            max_dt=config.max_dt,
            min_dt=config.min_dt,
            gap_policy=config.gap_policy,
        )
    return RotationMatrixIntegrator(
        damping=config.damping,
        max_dt=config.max_dt,
        min_dt=config.min_dt,
        gap_policy=config.gap_policy,
    )
