"""Inertial dead-reckoning producer.

Routes each inertial sample to the orientation estimator, the stationary
detector, the integrator or the step accumulator, and emits a Pose snapshot
per processed event. Position drifts without bound over time; zero-velocity
updates and damping only slow the drift down.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from pathlib import Path
from typing import Callable, Iterable

import numpy as np

from ..config import InertialConfig, load_config
from ..pose import Pose
from ..tracking import TrackingState
from .integrator import IntegratorState, PoseIntegrator, make_integrator
from .orientation import HeadingFilter, OrientationEstimator, OrientationState
from .samples import InertialSample, SensorKind
from .stationary import BiasEstimate, SampleCountStationaryDetector, StationaryDetector
from .steps import StepAccumulator

logger = logging.getLogger(__name__)

PoseListener = Callable[[Pose], None]


class DeadReckoner:
    """Inertial pose producer (orientation + integration + steps).

    Samples are processed synchronously, one at a time, through
    process_sample(). Every public method holds the same lock, so samples
    from several event sources may be delivered from different threads.

    Example:
        >>> dr = DeadReckoner(InertialConfig(mode="heading"))
        >>> dr.start()
        >>> pose = dr.process_sample(InertialSample(SensorKind.STEP_DETECTOR, [1.0], 1_000_000))
    """

    def __init__(
        self,
        config: InertialConfig | None = None,
        available_sensors: Iterable[SensorKind] | None = None,
        listener: PoseListener | None = None,
    ) -> None:
        """Initialize the producer in the STOPPED state.

        Args:
            config: Pipeline parameters (default: InertialConfig())
            available_sensors: Sensors present on the device (default: all).
                Missing sensors are never subscribed.
            listener: Called with every emitted pose
        """
        self._config = config or InertialConfig()
        self._available = (
            frozenset(SensorKind) if available_sensors is None else frozenset(available_sensors)
        )
        self._listener = listener

        self._orientation = OrientationEstimator(
            prefer_rotation_vector=SensorKind.ROTATION_VECTOR in self._available
        )
        self._heading = HeadingFilter(alpha=self._config.heading_alpha)
        self._detector = self._make_detector(self._config)
        self._integrator: PoseIntegrator = make_integrator(self._config)
        self._steps = StepAccumulator(step_length=self._config.step_length)

        # State
        self._state = IntegratorState()
        self._gyro: np.ndarray | None = None
        self._last_pose = Pose.origin()
        self._trajectory: deque[Pose] = deque(maxlen=self._config.max_trajectory)
        self._tracking_state = TrackingState.STOPPED
        self._subscriptions: frozenset[SensorKind] = frozenset()
        self._lock = threading.RLock()

        self._handlers: dict[SensorKind, Callable[[InertialSample], bool]] = {
            SensorKind.ROTATION_VECTOR: self._handle_rotation_vector,
            SensorKind.ACCELEROMETER: self._handle_accelerometer,
            SensorKind.MAGNETOMETER: self._handle_magnetometer,
            SensorKind.GYROSCOPE: self._handle_gyroscope,
            SensorKind.LINEAR_ACCELERATION: self._handle_linear_acceleration,
            SensorKind.STEP_DETECTOR: self._handle_step_detector,
        }

    @classmethod
    def from_config_file(
        cls,
        path: str | Path,
        available_sensors: Iterable[SensorKind] | None = None,
        listener: PoseListener | None = None,
    ) -> DeadReckoner:
        """Create a DeadReckoner from the ``inertial`` section of a YAML file."""
        return cls(
            config=load_config(path).inertial,
            available_sensors=available_sensors,
            listener=listener,
        )

    @staticmethod
    def _make_detector(
        config: InertialConfig,
    ) -> StationaryDetector | SampleCountStationaryDetector:
        if config.stationary == "count":
            return SampleCountStationaryDetector(
                accel_threshold=config.accel_still_threshold,
                required_samples=config.required_still_samples,
                bias_smoothing=config.bias_smoothing,
            )
        return StationaryDetector(
            accel_threshold=config.accel_still_threshold,
            gyro_threshold=config.gyro_still_threshold,
            required_still_time=config.required_still_time,
            bias_smoothing=config.bias_smoothing,
        )

    # ------------------------------------------------------------------
    # Lifecycle

    def start(self) -> None:
        """Begin accepting samples. Accumulated state is kept."""
        with self._lock:
            if self._tracking_state == TrackingState.TRACKING:
                return

            subscriptions = set()
            if SensorKind.ROTATION_VECTOR in self._available:
                subscriptions.add(SensorKind.ROTATION_VECTOR)
            else:
                # Fallback orientation needs both accel and magnet
                subscriptions.update(
                    self._available & {SensorKind.ACCELEROMETER, SensorKind.MAGNETOMETER}
                )
            subscriptions.update(
                self._available
                & {
                    SensorKind.LINEAR_ACCELERATION,
                    SensorKind.GYROSCOPE,
                    SensorKind.STEP_DETECTOR,
                }
            )

            self._orientation.prefer_rotation_vector = (
                SensorKind.ROTATION_VECTOR in subscriptions
            )
            self._subscriptions = frozenset(subscriptions)
            self._tracking_state = TrackingState.TRACKING
            logger.info(
                f"Inertial tracking started (mode={self._config.mode}, "
                f"sensors={sorted(k.value for k in self._subscriptions)})"
            )

    def stop(self) -> None:
        """Stop accepting samples. The last pose is retained."""
        with self._lock:
            if self._tracking_state == TrackingState.STOPPED:
                return
            self._subscriptions = frozenset()
            self._tracking_state = TrackingState.STOPPED
            logger.info(f"Inertial tracking stopped at {self._last_pose!r}")

    def reset(self) -> None:
        """Zero all accumulators without changing the tracking state."""
        with self._lock:
            self._orientation.reset()
            self._heading.reset()
            self._detector.reset()
            self._state.reset()
            self._gyro = None
            self._last_pose = Pose.origin()
            self._trajectory.clear()
            logger.info("Inertial state reset")

    # ------------------------------------------------------------------
    # Processing

    def process_sample(self, sample: InertialSample) -> Pose:
        """Process one inertial sample.

        Samples are ignored while stopped or when their sensor is not
        subscribed. Malformed samples are discarded and the previous state is
        kept.

        Args:
            sample: Inertial sample

        Returns:
            The latest pose (possibly unchanged)
        """
        with self._lock:
            if (
                self._tracking_state != TrackingState.TRACKING
                or sample.kind not in self._subscriptions
            ):
                return self._last_pose

            if self._handlers[sample.kind](sample):
                self._emit(sample.timestamp_ns)
            return self._last_pose

    def process_samples(self, samples: Iterable[InertialSample]) -> Pose:
        """Process samples in order and return the final pose."""
        with self._lock:
            for sample in samples:
                self.process_sample(sample)
            return self._last_pose

    def _handle_rotation_vector(self, sample: InertialSample) -> bool:
        if not self._orientation.update_rotation_vector(sample.values):
            return False
        self._heading.update(self._orientation.yaw)
        return True

    def _handle_accelerometer(self, sample: InertialSample) -> bool:
        if not self._orientation.update_accelerometer(sample.values):
            return False
        self._heading.update(self._orientation.yaw)
        return True

    def _handle_magnetometer(self, sample: InertialSample) -> bool:
        if not self._orientation.update_magnetometer(sample.values):
            return False
        self._heading.update(self._orientation.yaw)
        return True

    def _handle_gyroscope(self, sample: InertialSample) -> bool:
        if sample.is_finite and len(sample.values) >= 3:
            self._gyro = sample.vector
        return False

    def _handle_linear_acceleration(self, sample: InertialSample) -> bool:
        if not sample.is_finite or len(sample.values) < 2:
            logger.debug("Discarding malformed acceleration sample %s", sample.values)
            return False

        dt = self._integrator.compute_dt(self._state, sample.timestamp_ns)
        if dt is None:
            return False

        accel = sample.vector
        if self._detector.update(accel, self._gyro, dt):
            # Zero-velocity update: position stays frozen
            self._state.velocity = np.zeros(3)
            return True

        self._state = self._integrator.step(
            self._state,
            accel,
            dt,
            self._orientation.state,
            self._heading.heading_deg,
            self._detector.bias,
        )
        return True

    def _handle_step_detector(self, sample: InertialSample) -> bool:
        value = sample.values[0] if len(sample.values) > 0 else 1.0
        self._steps.apply(self._state, value, self._heading.heading_rad)
        return True

    def _emit(self, timestamp_ns: int) -> None:
        pose = Pose.from_arrays(
            timestamp_ns=timestamp_ns,
            position=self._state.position,
            velocity=self._state.velocity,
            orientation_deg=self._orientation.state.angles_deg,
            step_count=self._state.step_count,
        )
        self._last_pose = pose
        self._trajectory.append(pose)
        if self._listener is not None:
            self._listener(pose)

    # ------------------------------------------------------------------
    # Accessors

    def get_trajectory(self) -> list[Pose]:
        """Return the most recent emitted poses, oldest first."""
        with self._lock:
            return list(self._trajectory)

    def get_trajectory_positions(self) -> np.ndarray:
        """Return emitted positions as an Nx3 array."""
        with self._lock:
            if not self._trajectory:
                return np.zeros((0, 3))
            return np.array([pose.position for pose in self._trajectory])

    @property
    def config(self) -> InertialConfig:
        return self._config

    @property
    def state(self) -> TrackingState:
        """Current tracking state."""
        return self._tracking_state

    @property
    def subscriptions(self) -> frozenset[SensorKind]:
        """Sensors whose samples are currently accepted."""
        return self._subscriptions

    @property
    def current_pose(self) -> Pose:
        """Last emitted pose (origin before the first one)."""
        return self._last_pose

    @property
    def position(self) -> np.ndarray:
        return self._state.position.copy()

    @property
    def velocity(self) -> np.ndarray:
        return self._state.velocity.copy()

    @property
    def step_count(self) -> int:
        return self._state.step_count

    @property
    def bias(self) -> BiasEstimate:
        """Current accelerometer bias estimate."""
        return self._detector.bias

    @property
    def heading_deg(self) -> float:
        """Smoothed heading in degrees, [0, 360)."""
        return self._heading.heading_deg

    @property
    def orientation(self) -> OrientationState:
        """Copy of the current orientation."""
        return self._orientation.state.copy()

    @property
    def still_time(self) -> float:
        """Accumulated still time in seconds (0 for the sample-count detector)."""
        if isinstance(self._detector, StationaryDetector):
            return self._detector.still_time
        return 0.0

    @property
    def still_samples(self) -> int:
        """Consecutive quiet samples (0 for the time-based detector)."""
        if isinstance(self._detector, SampleCountStationaryDetector):
            return self._detector.still_samples
        return 0

    @property
    def is_stationary(self) -> bool:
        return self._detector.is_stationary

    @property
    def integrator(self) -> PoseIntegrator:
        return self._integrator
