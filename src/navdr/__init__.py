"""navdr - Inertial and visual dead reckoning for handheld devices."""

__version__ = "0.1.0"

# Re-export main classes for convenient imports
from .config import InertialConfig, NavConfig, VisionConfig, load_config
from .pose import Pose
from .tracking import TrackingState
from .inertial import (
    BiasEstimate,
    DeadReckoner,
    HeadingFilter,
    HeadingIntegrator,
    InertialSample,
    IntegratorState,
    OrientationEstimator,
    OrientationState,
    PoseIntegrator,
    RotationMatrixIntegrator,
    SampleCountStationaryDetector,
    SensorKind,
    StationaryDetector,
    StepAccumulator,
)
from .vision import (
    Feature,
    FeatureDetector,
    Features,
    FeatureTracker,
    FrameBuffer,
    Match,
    Matches,
    MotionEstimate,
    VisualOdometry,
    VisualOdometryEstimator,
    VOFrame,
    VOStatus,
)
from .io import FrameReader, SensorLogReader

__all__ = [
    "__version__",
    # Configuration
    "NavConfig",
    "InertialConfig",
    "VisionConfig",
    "load_config",
    # Pose
    "Pose",
    "TrackingState",
    # Inertial dead reckoning
    "DeadReckoner",
    "InertialSample",
    "SensorKind",
    "OrientationEstimator",
    "OrientationState",
    "HeadingFilter",
    "StationaryDetector",
    "SampleCountStationaryDetector",
    "BiasEstimate",
    "PoseIntegrator",
    "RotationMatrixIntegrator",
    "HeadingIntegrator",
    "IntegratorState",
    "StepAccumulator",
    # Visual odometry
    "VisualOdometry",
    "VOFrame",
    "VOStatus",
    "FeatureDetector",
    "FeatureTracker",
    "VisualOdometryEstimator",
    "MotionEstimate",
    "FrameBuffer",
    "Feature",
    "Features",
    "Match",
    "Matches",
    # I/O
    "FrameReader",
    "SensorLogReader",
]
