"""Monocular visual odometry producer.

Pipeline per frame:
1. Copy the luma plane into the owned frame buffer
2. Track the previous frame's keypoints into the current frame (patch SSD)
3. Reduce the matches to one median displacement and accumulate the pose
4. Detect keypoints on the current frame for use by the next frame only
"""

from __future__ import annotations

import logging
import threading
from collections import deque
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable

import numpy as np

from ..config import VisionConfig, load_config
from ..pose import Pose
from ..tracking import TrackingState
from .feature_detector import FeatureDetector
from .feature_tracker import FeatureTracker
from .features import Features
from .frame_buffer import FrameBuffer
from .motion_estimator import MotionEstimate, VisualOdometryEstimator

logger = logging.getLogger(__name__)

PoseListener = Callable[[Pose], None]
KeypointListener = Callable[[list[tuple[int, int]], int, int], None]


class VOStatus(Enum):
    """Outcome of visual odometry for one frame."""

    OK = "OK"
    INITIALIZING = "INITIALIZING"  # No valid previous frame or keypoints
    LOST = "LOST"  # Previous keypoints existed but none matched


@dataclass
class VOTiming:
    """Timing breakdown for a single frame."""

    track_ms: float = 0.0
    estimate_ms: float = 0.0
    detect_ms: float = 0.0
    total_ms: float = 0.0


@dataclass
class VOFrame:
    """Output of visual odometry for a single frame.

    Attributes:
        frame_id: Sequential frame identifier (-1 before the first frame)
        timestamp_ns: Frame timestamp in nanoseconds
        pose: Accumulated VO pose (only x and y are populated)
        displacement: Frame-to-frame motion estimate
        keypoints: Keypoints detected on this frame
        width: Frame width in pixels
        height: Frame height in pixels
        status: Tracking outcome
        fps: Frame rate from consecutive timestamps, capped
        timing: Processing time breakdown
    """

    frame_id: int
    timestamp_ns: int
    pose: Pose
    displacement: MotionEstimate
    keypoints: Features
    width: int
    height: int
    status: VOStatus
    fps: int = 0
    timing: VOTiming = field(default_factory=VOTiming)

    @classmethod
    def initial(cls) -> VOFrame:
        """Frame result reported before any frame has been processed."""
        return cls(
            frame_id=-1,
            timestamp_ns=0,
            pose=Pose.origin(),
            displacement=MotionEstimate(),
            keypoints=Features.empty(),
            width=0,
            height=0,
            status=VOStatus.INITIALIZING,
        )

    @property
    def position(self) -> np.ndarray:
        """Return accumulated (x, y) position in metres."""
        return np.array(self.pose.position[:2])

    @property
    def num_matches(self) -> int:
        return self.displacement.num_matches

    @property
    def num_keypoints(self) -> int:
        return len(self.keypoints)


class VisualOdometry:
    """Frame-to-frame monocular visual odometry producer.

    Keypoints are carried exactly one frame: the keypoints detected on frame
    N are tracked into frame N+1 and then replaced. Frames are processed to
    completion one at a time under a lock; there is no frame queue.
    """

    def __init__(
        self,
        config: VisionConfig | None = None,
        camera_available: bool = True,
        listener: PoseListener | None = None,
        keypoint_listener: KeypointListener | None = None,
    ) -> None:
        """Initialize visual odometry in the STOPPED state.

        Args:
            config: Pipeline parameters (default: VisionConfig())
            camera_available: If False the producer never subscribes and
                every frame is ignored
            listener: Called with every emitted pose
            keypoint_listener: Called with (points, width, height) for every
                processed frame, for visualization
        """
        self._config = config or VisionConfig()
        self._camera_available = camera_available
        self._listener = listener
        self._keypoint_listener = keypoint_listener

        c = self._config
        self._detector = FeatureDetector(
            threshold=c.fast_threshold,
            arc_length=c.arc_length,
            stride=c.detect_stride,
            border=c.border,
            grid_size=c.grid_size,
            max_features=c.max_features,
        )
        self._tracker = FeatureTracker(
            patch_radius=c.patch_radius,
            search_radius=c.search_radius,
            search_stride=c.search_stride,
            max_ssd=c.max_ssd,
            max_tracked=c.max_tracked,
        )
        self._estimator = VisualOdometryEstimator(
            pixel_to_meter=c.pixel_to_meter,
            axis_signs=c.axis_signs,
            swap_axes=c.swap_axes,
        )

        # State
        self._buffer = FrameBuffer()
        self._prev_features = Features.empty()
        self._last_frame = VOFrame.initial()
        self._last_timestamp_ns: int | None = None
        self._trajectory: deque[Pose] = deque(maxlen=self._config.max_trajectory)
        self._frame_id = 0
        self._tracking_state = TrackingState.STOPPED
        self._subscribed = False
        self._lock = threading.RLock()

    @classmethod
    def from_config_file(
        cls,
        path: str | Path,
        camera_available: bool = True,
        listener: PoseListener | None = None,
        keypoint_listener: KeypointListener | None = None,
    ) -> VisualOdometry:
        """Create VisualOdometry from the ``vision`` section of a YAML file."""
        return cls(
            config=load_config(path).vision,
            camera_available=camera_available,
            listener=listener,
            keypoint_listener=keypoint_listener,
        )

    # ------------------------------------------------------------------
    # Lifecycle

    def start(self) -> None:
        """Begin accepting frames. Accumulated state is kept."""
        with self._lock:
            if self._tracking_state == TrackingState.TRACKING:
                return
            self._subscribed = self._camera_available
            self._tracking_state = TrackingState.TRACKING
            if self._subscribed:
                logger.info("Visual odometry started")
            else:
                logger.info("Visual odometry started without a camera; frames are ignored")

    def stop(self) -> None:
        """Stop accepting frames. The last pose is retained."""
        with self._lock:
            if self._tracking_state == TrackingState.STOPPED:
                return
            self._subscribed = False
            self._tracking_state = TrackingState.STOPPED
            logger.info(f"Visual odometry stopped at {self._last_frame.pose!r}")

    def reset(self) -> None:
        """Zero the accumulated pose and forget the previous frame."""
        with self._lock:
            self._estimator.reset()
            self._buffer.invalidate()
            self._prev_features = Features.empty()
            self._last_frame = VOFrame.initial()
            self._last_timestamp_ns = None
            self._trajectory.clear()
            self._frame_id = 0
            logger.info("Visual odometry state reset")

    # ------------------------------------------------------------------
    # Processing

    def process_frame(
        self,
        luma: bytes | bytearray | memoryview | np.ndarray,
        width: int,
        height: int,
        timestamp_ns: int,
    ) -> VOFrame:
        """Process one video frame.

        Args:
            luma: 8-bit luma plane (first width*height bytes are used)
            width: Frame width in pixels
            height: Frame height in pixels
            timestamp_ns: Frame timestamp in nanoseconds

        Returns:
            Result for this frame, or the previous result if the frame was
            ignored (stopped, no camera) or malformed
        """
        with self._lock:
            if self._tracking_state != TrackingState.TRACKING or not self._subscribed:
                return self._last_frame

            start_time = time.perf_counter()
            timing = VOTiming()

            if not self._buffer.load(luma, width, height):
                logger.debug("Discarding malformed %dx%d frame", width, height)
                return self._last_frame

            motion = MotionEstimate()
            status = VOStatus.INITIALIZING
            if self._buffer.has_previous and len(self._prev_features) > 0:
                t = time.perf_counter()
                matches = self._tracker.track(
                    self._prev_features, self._buffer.previous, self._buffer.current
                )
                timing.track_ms = (time.perf_counter() - t) * 1000

                t = time.perf_counter()
                motion = self._estimator.estimate(matches)
                self._estimator.accumulate(motion)
                timing.estimate_ms = (time.perf_counter() - t) * 1000
                status = VOStatus.OK if len(matches) > 0 else VOStatus.LOST

            t = time.perf_counter()
            features = self._detector.detect(self._buffer.current)
            timing.detect_ms = (time.perf_counter() - t) * 1000

            self._prev_features = features
            self._buffer.commit()

            fps = self._update_fps(timestamp_ns)
            x, y = self._estimator.position
            pose = Pose(timestamp_ns=int(timestamp_ns), position=(float(x), float(y), 0.0))
            timing.total_ms = (time.perf_counter() - start_time) * 1000

            frame = VOFrame(
                frame_id=self._frame_id,
                timestamp_ns=int(timestamp_ns),
                pose=pose,
                displacement=motion,
                keypoints=features,
                width=width,
                height=height,
                status=status,
                fps=fps,
                timing=timing,
            )
            self._frame_id += 1
            self._last_frame = frame
            self._trajectory.append(pose)

            if self._listener is not None:
                self._listener(pose)
            if self._keypoint_listener is not None:
                self._keypoint_listener(features.to_pairs(), width, height)
            return frame

    def _update_fps(self, timestamp_ns: int) -> int:
        prev = self._last_timestamp_ns
        self._last_timestamp_ns = int(timestamp_ns)
        if prev is None or timestamp_ns <= prev:
            return self._last_frame.fps
        return min(self._config.max_fps, int(1e9 / (timestamp_ns - prev)))

    # ------------------------------------------------------------------
    # Accessors

    def get_trajectory(self) -> list[Pose]:
        """Return the most recent emitted poses, oldest first."""
        with self._lock:
            return list(self._trajectory)

    def get_trajectory_positions(self) -> np.ndarray:
        """Return emitted (x, y) positions as an Nx2 array."""
        with self._lock:
            if not self._trajectory:
                return np.zeros((0, 2))
            return np.array([pose.position[:2] for pose in self._trajectory])

    @property
    def config(self) -> VisionConfig:
        return self._config

    @property
    def state(self) -> TrackingState:
        """Current tracking state."""
        return self._tracking_state

    @property
    def is_subscribed(self) -> bool:
        """True while frames from the camera are accepted."""
        return self._subscribed

    @property
    def current_pose(self) -> Pose:
        """Last emitted pose (origin before the first frame)."""
        return self._last_frame.pose

    @property
    def last_frame(self) -> VOFrame:
        return self._last_frame

    @property
    def previous_features(self) -> Features:
        """Keypoints that will be tracked into the next frame."""
        return self._prev_features

    @property
    def has_previous_frame(self) -> bool:
        return self._buffer.has_previous

    @property
    def num_frames(self) -> int:
        """Number of frames processed since the last reset."""
        return self._frame_id
