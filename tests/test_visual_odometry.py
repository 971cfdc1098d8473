"""Tests for the visual odometry producer."""

import numpy as np
import pytest

from navdr.config import VisionConfig
from navdr.pose import Pose
from navdr.tracking import TrackingState
from navdr.vision.visual_odometry import VisualOdometry, VOFrame, VOStatus

W, H = 160, 120
T0 = 1_000_000_000
FRAME_NS = 33_333_333  # ~30 fps


@pytest.fixture
def texture():
    rng = np.random.default_rng(11)
    return rng.integers(0, 256, size=(H, W), dtype=np.uint8)


@pytest.fixture
def vo():
    odometry = VisualOdometry()
    odometry.start()
    return odometry


class TestLifecycle:
    """Test suite for start/stop/reset behaviour."""

    def test_initial_state(self):
        vo = VisualOdometry()
        assert vo.state == TrackingState.STOPPED
        assert vo.current_pose == Pose.origin()
        assert vo.last_frame.frame_id == -1

    def test_frames_ignored_while_stopped(self, texture):
        """Test that a stopped producer ignores frames."""
        vo = VisualOdometry()
        frame = vo.process_frame(texture, W, H, T0)

        assert frame.frame_id == -1
        assert vo.num_frames == 0

    def test_no_camera(self, texture):
        """Test that a producer without a camera never processes frames."""
        vo = VisualOdometry(camera_available=False)
        vo.start()

        frame = vo.process_frame(texture, W, H, T0)

        assert vo.state == TrackingState.TRACKING
        assert not vo.is_subscribed
        assert frame.frame_id == -1

    def test_stop_retains_pose(self, vo, texture):
        vo.process_frame(texture, W, H, T0)
        vo.process_frame(np.roll(texture, 6, axis=1), W, H, T0 + FRAME_NS)
        pose = vo.current_pose

        vo.stop()
        vo.process_frame(texture, W, H, T0 + 2 * FRAME_NS)

        assert vo.current_pose == pose
        assert vo.num_frames == 2

    def test_reset_keeps_tracking_state(self, vo, texture):
        """Test that reset zeroes the pose and forgets the previous frame."""
        vo.process_frame(texture, W, H, T0)
        vo.process_frame(np.roll(texture, 6, axis=1), W, H, T0 + FRAME_NS)

        vo.reset()

        assert vo.state == TrackingState.TRACKING
        assert vo.current_pose == Pose.origin()
        assert not vo.has_previous_frame
        assert len(vo.previous_features) == 0
        assert vo.get_trajectory() == []

        frame = vo.process_frame(texture, W, H, T0 + 2 * FRAME_NS)
        assert frame.status == VOStatus.INITIALIZING
        assert frame.frame_id == 0


class TestProcessFrame:
    """Test suite for per-frame processing."""

    def test_first_frame(self, vo, texture):
        """Test that the first frame only detects keypoints."""
        frame = vo.process_frame(texture, W, H, T0)

        assert isinstance(frame, VOFrame)
        assert frame.frame_id == 0
        assert frame.status == VOStatus.INITIALIZING
        assert frame.pose == Pose(timestamp_ns=T0)
        assert frame.num_keypoints > 0
        assert frame.num_matches == 0

    def test_static_scene(self, vo, texture):
        """Test that identical frames give exactly zero displacement."""
        vo.process_frame(texture, W, H, T0)
        frame = vo.process_frame(texture.copy(), W, H, T0 + FRAME_NS)

        assert frame.status == VOStatus.OK
        assert frame.num_matches > 0
        assert frame.displacement.dx_px == 0.0
        assert frame.displacement.dy_px == 0.0
        np.testing.assert_array_equal(frame.position, [0.0, 0.0])

    def test_translating_scene(self, vo, texture):
        """Test that scene motion to the right moves the device left."""
        vo.process_frame(texture, W, H, T0)
        frame = vo.process_frame(np.roll(texture, 6, axis=1), W, H, T0 + FRAME_NS)

        assert frame.displacement.dx_px == 6.0
        assert frame.displacement.dy_px == 0.0
        assert frame.pose.x == pytest.approx(-0.012)
        assert frame.pose.y == pytest.approx(0.0)
        assert frame.pose.z == 0.0

    def test_motion_accumulates(self, vo, texture):
        """Test that per-frame displacements add up along the trajectory."""
        for i in range(4):
            vo.process_frame(np.roll(texture, 3 * i, axis=1), W, H, T0 + i * FRAME_NS)

        positions = vo.get_trajectory_positions()

        assert positions.shape == (4, 2)
        np.testing.assert_allclose(positions[:, 0], [0.0, -0.006, -0.012, -0.018])

    def test_trajectory_capped(self, texture):
        """Test that only the most recent poses are kept."""
        vo = VisualOdometry(VisionConfig(max_trajectory=3))
        vo.start()
        for i in range(5):
            vo.process_frame(np.roll(texture, 3 * i, axis=1), W, H, T0 + i * FRAME_NS)

        trajectory = vo.get_trajectory()

        assert len(trajectory) == 3
        assert [p.timestamp_ns for p in trajectory] == [T0 + i * FRAME_NS for i in (2, 3, 4)]
        np.testing.assert_allclose(
            vo.get_trajectory_positions()[:, 0], [-0.012, -0.018, -0.024]
        )
        assert vo.current_pose.x == pytest.approx(-0.024)

    def test_lost_when_nothing_matches(self, vo, texture):
        """Test that an unrelated frame gives zero motion."""
        rng = np.random.default_rng(99)
        vo.process_frame(texture, W, H, T0)
        frame = vo.process_frame(
            rng.integers(0, 256, size=(H, W), dtype=np.uint8), W, H, T0 + FRAME_NS
        )

        if frame.status == VOStatus.LOST:
            assert frame.displacement.is_zero
        assert frame.num_keypoints > 0

    def test_featureless_previous_frame(self, vo, texture):
        """Test that a flat previous frame leaves nothing to track."""
        vo.process_frame(np.full((H, W), 128, dtype=np.uint8), W, H, T0)
        frame = vo.process_frame(texture, W, H, T0 + FRAME_NS)

        assert frame.status == VOStatus.INITIALIZING
        assert frame.displacement.is_zero

    def test_malformed_frame_discarded(self, vo, texture):
        """Test that a short buffer is ignored and the last result returned."""
        first = vo.process_frame(texture, W, H, T0)

        result = vo.process_frame(bytes(100), W, H, T0 + FRAME_NS)

        assert result is first
        assert vo.num_frames == 1
        assert vo.has_previous_frame

    def test_nv21_bytes(self, vo, texture):
        """Test a full YUV buffer passed as bytes."""
        data = texture.tobytes() + bytes(W * H // 2)

        frame = vo.process_frame(data, W, H, T0)

        assert frame.frame_id == 0
        assert frame.num_keypoints > 0

    def test_size_change_restarts(self, vo, texture):
        """Test that a new frame size starts over from INITIALIZING."""
        vo.process_frame(texture, W, H, T0)
        small = np.ascontiguousarray(texture[:80, :100])

        frame = vo.process_frame(small, 100, 80, T0 + FRAME_NS)

        assert frame.status == VOStatus.INITIALIZING
        assert (frame.width, frame.height) == (100, 80)

    def test_fps(self, vo, texture):
        """Test frame rate from timestamps, capped at max_fps."""
        vo.process_frame(texture, W, H, T0)
        assert vo.process_frame(texture, W, H, T0 + FRAME_NS).fps == 30
        assert vo.process_frame(texture, W, H, T0 + FRAME_NS + 1_000_000).fps == 60


class TestListeners:
    """Test suite for pose and keypoint callbacks."""

    def test_listeners_called(self, texture):
        poses = []
        keypoints = []
        vo = VisualOdometry(
            listener=poses.append,
            keypoint_listener=lambda points, w, h: keypoints.append((points, w, h)),
        )
        vo.start()

        frame = vo.process_frame(texture, W, H, T0)

        assert poses == [frame.pose]
        points, w, h = keypoints[0]
        assert (w, h) == (W, H)
        assert points == frame.keypoints.to_pairs()

    def test_custom_config(self, texture):
        """Test that configuration reaches the pipeline."""
        vo = VisualOdometry(VisionConfig(max_features=10, pixel_to_meter=0.01))
        vo.start()

        vo.process_frame(texture, W, H, T0)
        frame = vo.process_frame(np.roll(texture, 6, axis=1), W, H, T0 + FRAME_NS)

        assert frame.num_keypoints <= 10
        assert frame.pose.x == pytest.approx(-0.06)

    def test_from_config_file(self, tmp_path):
        path = tmp_path / "nav.yaml"
        path.write_text("vision:\n  pixel_to_meter: 0.005\n")

        vo = VisualOdometry.from_config_file(path)

        assert vo.config.pixel_to_meter == 0.005
