"""Inertial dead reckoning: orientation, ZUPT, integration and step counting."""

from .dead_reckoning import DeadReckoner
from .integrator import (
    HeadingIntegrator,
    IntegratorState,
    PoseIntegrator,
    RotationMatrixIntegrator,
    make_integrator,
)
from .orientation import HeadingFilter, OrientationEstimator, OrientationState
from .samples import InertialSample, SensorKind
from .stationary import BiasEstimate, SampleCountStationaryDetector, StationaryDetector
from .steps import StepAccumulator

__all__ = [
    # Producer
    "DeadReckoner",
    # Samples
    "InertialSample",
    "SensorKind",
    # Orientation
    "OrientationEstimator",
    "OrientationState",
    "HeadingFilter",
    # Stationary detection
    "StationaryDetector",
    "SampleCountStationaryDetector",
    "BiasEstimate",
    # Integration
    "PoseIntegrator",
    "RotationMatrixIntegrator",
    "HeadingIntegrator",
    "IntegratorState",
    "make_integrator",
    # Pedestrian DR
    "StepAccumulator",
]
