"""Monocular visual odometry: corner detection, patch tracking, median motion.

Components:
- VisualOdometry: Frame-by-frame producer with start/stop/reset
- FeatureDetector: FAST-style ring test with grid non-maximum suppression
- FeatureTracker: Patch SSD search in a local window
- VisualOdometryEstimator: Median displacement and 2-D pose accumulation
- FrameBuffer: Reused luma buffers with one-frame lookback
"""

from .feature_detector import FeatureDetector
from .feature_tracker import FeatureTracker
from .features import Feature, Features, Match, Matches
from .frame_buffer import FrameBuffer
from .motion_estimator import MotionEstimate, VisualOdometryEstimator
from .visual_odometry import VisualOdometry, VOFrame, VOStatus, VOTiming

__all__ = [
    # Visual Odometry
    "VisualOdometry",
    "VOFrame",
    "VOStatus",
    "VOTiming",
    # Features
    "FeatureDetector",
    "Feature",
    "Features",
    # Tracking
    "FeatureTracker",
    "Match",
    "Matches",
    # Motion Estimation
    "VisualOdometryEstimator",
    "MotionEstimate",
    # Buffers
    "FrameBuffer",
]
