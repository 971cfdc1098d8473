"""Tests for the inertial dead-reckoning producer."""

import threading

import numpy as np
import pytest

from navdr.config import InertialConfig
from navdr.inertial.dead_reckoning import DeadReckoner
from navdr.inertial.integrator import HeadingIntegrator
from navdr.inertial.samples import InertialSample, SensorKind
from navdr.pose import Pose
from navdr.tracking import TrackingState

T0 = 1_000_000_000
TICK = 10_000_000  # 10 ms


def linear(accel, t):
    return InertialSample(SensorKind.LINEAR_ACCELERATION, accel, t)


def step(t, value=1.0):
    return InertialSample(SensorKind.STEP_DETECTOR, [value], t)


def rotation_vector_for_azimuth(azimuth_deg, t):
    """Rotation vector sample that yields the requested azimuth."""
    half = -np.radians(azimuth_deg) / 2
    return InertialSample(
        SensorKind.ROTATION_VECTOR, [0.0, 0.0, np.sin(half), np.cos(half)], t
    )


@pytest.fixture
def reckoner():
    """Started producer with undamped 3-D integration."""
    dr = DeadReckoner(InertialConfig(damping=1.0))
    dr.start()
    return dr


class TestLifecycle:
    """Test suite for start/stop/reset behaviour."""

    def test_initial_state(self):
        """Test that a new producer is stopped at the origin."""
        dr = DeadReckoner()
        assert dr.state == TrackingState.STOPPED
        assert dr.current_pose == Pose.origin()
        assert dr.subscriptions == frozenset()

    def test_samples_ignored_while_stopped(self):
        """Test that a stopped producer does not change state."""
        poses = []
        dr = DeadReckoner(listener=poses.append)

        pose = dr.process_sample(step(T0))

        assert pose == Pose.origin()
        assert dr.step_count == 0
        assert poses == []

    def test_stop_retains_pose(self, reckoner):
        """Test that stopping keeps the last pose and ignores new samples."""
        reckoner.process_sample(step(T0))
        reckoner.stop()
        reckoner.process_sample(step(T0 + TICK))

        assert reckoner.state == TrackingState.STOPPED
        assert reckoner.step_count == 1
        assert reckoner.current_pose.step_count == 1

    def test_start_does_not_reset(self, reckoner):
        """Test that restarting continues from the accumulated state."""
        reckoner.process_sample(step(T0))
        reckoner.stop()
        reckoner.start()
        reckoner.process_sample(step(T0 + TICK))

        assert reckoner.step_count == 2
        assert reckoner.position[1] == pytest.approx(1.5)

    @pytest.mark.parametrize("mode", ["rotation_matrix", "heading"])
    @pytest.mark.parametrize("running", [True, False])
    def test_reset_round_trip(self, mode, running):
        """Test that reset zeroes every accumulator and keeps the tracking state."""
        dr = DeadReckoner(InertialConfig(mode=mode))
        dr.start()
        dr.process_sample(rotation_vector_for_azimuth(45.0, T0))
        for i in range(30):
            dr.process_sample(linear([0.1, -0.05, 0.0], T0 + i * TICK))
        dr.process_sample(step(T0 + 40 * TICK))
        assert dr.still_time > 0.0 or dr.still_samples > 0
        if not running:
            dr.stop()
        expected_state = dr.state

        dr.reset()

        assert dr.state == expected_state
        assert dr.current_pose == Pose.origin()
        np.testing.assert_array_equal(dr.position, np.zeros(3))
        np.testing.assert_array_equal(dr.velocity, np.zeros(3))
        assert dr.step_count == 0
        assert dr.heading_deg == 0.0
        assert dr.bias.bias_x == 0.0
        assert dr.bias.bias_y == 0.0
        assert dr.still_time == 0.0
        assert dr.still_samples == 0
        assert not dr.is_stationary
        assert dr.get_trajectory() == []
        np.testing.assert_array_equal(dr.orientation.rotation, np.eye(3))


class TestSubscriptions:
    """Test suite for sensor subscription."""

    def test_rotation_vector_preferred(self, reckoner):
        """Test that accel/magnet are not subscribed when the fused sensor exists."""
        assert SensorKind.ROTATION_VECTOR in reckoner.subscriptions
        assert SensorKind.ACCELEROMETER not in reckoner.subscriptions
        assert SensorKind.MAGNETOMETER not in reckoner.subscriptions
        assert SensorKind.LINEAR_ACCELERATION in reckoner.subscriptions
        assert SensorKind.GYROSCOPE in reckoner.subscriptions
        assert SensorKind.STEP_DETECTOR in reckoner.subscriptions

    def test_fallback_subscriptions(self):
        """Test the accel/magnet fallback when no rotation vector exists."""
        available = {
            SensorKind.ACCELEROMETER,
            SensorKind.MAGNETOMETER,
            SensorKind.LINEAR_ACCELERATION,
            SensorKind.STEP_DETECTOR,
        }
        dr = DeadReckoner(available_sensors=available)
        dr.start()

        assert dr.subscriptions == frozenset(available)

    def test_missing_sensor_ignored(self):
        """Test that samples of an unavailable sensor never change state."""
        dr = DeadReckoner(available_sensors={SensorKind.ROTATION_VECTOR})
        dr.start()

        dr.process_sample(step(T0))

        assert dr.step_count == 0

    def test_accel_magnet_orientation(self):
        """Test heading from the fallback orientation source."""
        dr = DeadReckoner(
            available_sensors={
                SensorKind.ACCELEROMETER,
                SensorKind.MAGNETOMETER,
                SensorKind.STEP_DETECTOR,
            }
        )
        dr.start()
        dr.process_sample(InertialSample(SensorKind.ACCELEROMETER, [0.0, 0.0, 9.81], T0))
        dr.process_sample(InertialSample(SensorKind.MAGNETOMETER, [22.0, 0.0, -40.0], T0))
        dr.process_sample(step(T0 + TICK))

        assert dr.heading_deg == pytest.approx(270.0)
        np.testing.assert_allclose(dr.position, [-0.75, 0.0, 0.0], atol=1e-9)


class TestIntegration:
    """Test suite for acceleration integration and zero-velocity updates."""

    def test_constant_acceleration(self, reckoner):
        """Test 1 m/s² along +x for 1 s."""
        for i in range(101):
            reckoner.process_sample(linear([1.0, 0.0, 0.0], T0 + i * TICK))

        assert reckoner.velocity[0] == pytest.approx(1.0, rel=1e-6)
        assert reckoner.position[0] == pytest.approx(0.5, abs=0.01)
        assert reckoner.current_pose.x == pytest.approx(reckoner.position[0])

    def test_configured_damping(self):
        """Test that default damping keeps velocity below the undamped value."""
        dr = DeadReckoner()
        dr.start()
        for i in range(101):
            dr.process_sample(linear([1.0, 0.0, 0.0], T0 + i * TICK))

        assert 0.0 < dr.velocity[0] < 1.0

    def test_zero_velocity_update(self, reckoner):
        """Test that velocity is exactly zero once stationary."""
        t = T0
        for _ in range(20):
            reckoner.process_sample(linear([1.0, 0.0, 0.0], t))
            t += TICK
        for _ in range(80):
            reckoner.process_sample(linear([0.0, 0.0, 0.0], t))
            t += TICK

        assert reckoner.is_stationary
        np.testing.assert_array_equal(reckoner.velocity, np.zeros(3))

        frozen = reckoner.position
        for _ in range(10):
            pose = reckoner.process_sample(linear([0.1, 0.0, 0.0], t))
            t += TICK
            assert pose.velocity == (0.0, 0.0, 0.0)
        np.testing.assert_array_equal(reckoner.position, frozen)

    def test_rotation_prevents_stationary(self, reckoner):
        """Test that angular rate blocks the zero-velocity update."""
        reckoner.process_sample(InertialSample(SensorKind.GYROSCOPE, [0.0, 0.0, 1.0], T0))
        for i in range(80):
            reckoner.process_sample(linear([0.0, 0.0, 0.0], T0 + i * TICK))

        assert not reckoner.is_stationary
        assert reckoner.still_time == 0.0

    def test_duplicate_timestamp_discarded(self, reckoner):
        """Test that a non-positive dt changes nothing and emits no pose."""
        reckoner.process_sample(linear([1.0, 0.0, 0.0], T0))
        reckoner.process_sample(linear([1.0, 0.0, 0.0], T0 + TICK))
        velocity = reckoner.velocity
        n_poses = len(reckoner.get_trajectory())

        reckoner.process_sample(linear([1.0, 0.0, 0.0], T0 + TICK))

        np.testing.assert_array_equal(reckoner.velocity, velocity)
        assert len(reckoner.get_trajectory()) == n_poses

    def test_non_finite_discarded(self, reckoner):
        """Test that NaN acceleration is discarded."""
        reckoner.process_sample(linear([1.0, 0.0, 0.0], T0))
        reckoner.process_sample(linear([1.0, 0.0, 0.0], T0 + TICK))
        position = reckoner.position

        reckoner.process_sample(linear([np.nan, 0.0, 0.0], T0 + 2 * TICK))

        np.testing.assert_array_equal(reckoner.position, position)
        assert np.isfinite(reckoner.velocity).all()

    def test_gap_clamped(self, reckoner):
        """Test that a long gap is integrated as max_dt in 3-D mode."""
        reckoner.process_sample(linear([1.0, 0.0, 0.0], T0))
        reckoner.process_sample(linear([1.0, 0.0, 0.0], T0 + 500_000_000))

        assert reckoner.velocity[0] == pytest.approx(0.1)

    def test_gap_rejected_in_heading_mode(self):
        """Test that a long gap is skipped in heading mode."""
        dr = DeadReckoner(InertialConfig(mode="heading"))
        dr.start()
        dr.process_sample(linear([1.0, 0.0, 0.0], T0))
        dr.process_sample(linear([1.0, 0.0, 0.0], T0 + 2_000_000_000))

        np.testing.assert_array_equal(dr.velocity, np.zeros(3))
        assert dr.get_trajectory() == []


class TestHeadingMode:
    """Test suite for the planar heading integrator variant."""

    def test_uses_heading_integrator(self):
        dr = DeadReckoner(InertialConfig(mode="heading"))
        assert isinstance(dr.integrator, HeadingIntegrator)

    def test_bias_learned_while_stationary(self):
        """Test bias convergence from a constant offset while still."""
        dr = DeadReckoner(InertialConfig(mode="heading"))
        dr.start()
        for i in range(30):
            dr.process_sample(linear([0.1, -0.05, 0.0], T0 + i * TICK))

        assert dr.is_stationary
        assert dr.bias.bias_x == pytest.approx(0.1, rel=0.01)
        assert dr.bias.bias_y == pytest.approx(-0.05, rel=0.01)
        np.testing.assert_array_equal(dr.velocity, np.zeros(3))

    def test_planar_motion(self):
        """Test that motion stays in the horizontal plane."""
        dr = DeadReckoner(InertialConfig(mode="heading"))
        dr.start()
        for i in range(20):
            dr.process_sample(linear([0.5, 0.0, 2.0], T0 + i * TICK))

        assert dr.velocity[0] > 0.0
        assert dr.velocity[2] == 0.0
        assert dr.position[2] == 0.0


class TestSteps:
    """Test suite for step-event handling."""

    def test_step_along_heading(self, reckoner):
        """Test that a step moves 0.75 m along the smoothed heading."""
        reckoner.process_sample(rotation_vector_for_azimuth(90.0, T0))
        pose = reckoner.process_sample(step(T0 + TICK))

        assert reckoner.heading_deg == pytest.approx(90.0)
        assert pose.step_count == 1
        assert pose.x == pytest.approx(0.75)
        assert pose.y == pytest.approx(0.0, abs=1e-9)
        assert pose.yaw_deg == pytest.approx(90.0)

    def test_multi_step_event(self, reckoner):
        reckoner.process_sample(step(T0, value=2.0))
        assert reckoner.step_count == 2
        assert reckoner.position[1] == pytest.approx(1.5)

    def test_huge_step_event_does_not_block(self, reckoner):
        """Test that an absurd step count neither stalls nor blocks later samples."""
        reckoner.process_sample(step(T0, value=1e12))
        pose = reckoner.process_sample(step(T0 + TICK))

        assert pose.step_count == 10**12 + 1
        assert pose.y == pytest.approx(0.75 * (10**12 + 1))

    def test_concurrent_delivery(self, reckoner):
        """Test that samples delivered from several threads are all applied."""

        def deliver(offset):
            for i in range(200):
                reckoner.process_sample(step(T0 + offset + i))

        threads = [threading.Thread(target=deliver, args=(k * 1000,)) for k in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert reckoner.step_count == 400
        assert reckoner.position[1] == pytest.approx(400 * 0.75)


class TestEmission:
    """Test suite for pose emission."""

    def test_listener_receives_poses(self):
        """Test that every emitted pose reaches the listener."""
        poses = []
        dr = DeadReckoner(listener=poses.append)
        dr.start()

        dr.process_sample(step(T0))
        dr.process_sample(step(T0 + TICK))

        assert [p.step_count for p in poses] == [1, 2]
        assert poses == dr.get_trajectory()
        assert poses[-1].timestamp_ns == T0 + TICK

    def test_gyroscope_does_not_emit(self):
        poses = []
        dr = DeadReckoner(listener=poses.append)
        dr.start()

        dr.process_sample(InertialSample(SensorKind.GYROSCOPE, [0.0, 0.0, 0.1], T0))

        assert poses == []

    def test_trajectory_positions(self, reckoner):
        reckoner.process_sample(step(T0))
        reckoner.process_sample(step(T0 + TICK))

        positions = reckoner.get_trajectory_positions()

        assert positions.shape == (2, 3)
        np.testing.assert_allclose(positions[:, 1], [0.75, 1.5])

    def test_trajectory_capped(self):
        """Test that only the most recent poses are kept while the state keeps growing."""
        dr = DeadReckoner(InertialConfig(max_trajectory=4))
        dr.start()
        for i in range(10):
            dr.process_sample(step(T0 + i * TICK))

        trajectory = dr.get_trajectory()

        assert len(trajectory) == 4
        assert [p.step_count for p in trajectory] == [7, 8, 9, 10]
        assert dr.get_trajectory_positions().shape == (4, 3)
        assert dr.step_count == 10

    def test_process_samples(self, reckoner):
        pose = reckoner.process_samples([step(T0), step(T0 + TICK), step(T0 + 2 * TICK)])
        assert pose.step_count == 3


class TestFromConfigFile:
    """Test suite for YAML construction."""

    def test_from_config_file(self, tmp_path):
        path = tmp_path / "nav.yaml"
        path.write_text("inertial:\n  mode: heading\n  step_length: 0.6\n")

        dr = DeadReckoner.from_config_file(path)

        assert dr.config.mode == "heading"
        assert isinstance(dr.integrator, HeadingIntegrator)
        dr.start()
        dr.process_sample(step(T0))
        assert dr.position[1] == pytest.approx(0.6)
