#!/usr/bin/env python3
"""Demo script for inertial dead reckoning.

Replays a recorded sensor log, or a synthetic walk when no log is given,
and prints the pose as it evolves.

Usage:
    uv run python examples/imu_demo.py [sensor_log.csv] [--heading]
"""

import logging
import sys

import numpy as np

from navdr import DeadReckoner, InertialConfig, InertialSample, SensorKind, SensorLogReader

TICK_NS = 10_000_000  # 100 Hz


def synthetic_walk() -> list[InertialSample]:
    """Walk north for 10 steps, turn east, walk 10 more, then stand still."""
    samples = []
    t = 1_000_000_000

    def rotation_vector(azimuth_deg: float) -> list[float]:
        half = -np.radians(azimuth_deg) / 2
        return [0.0, 0.0, float(np.sin(half)), float(np.cos(half))]

    for leg, azimuth in enumerate((0.0, 90.0)):
        samples.append(InertialSample(SensorKind.ROTATION_VECTOR, rotation_vector(azimuth), t))
        for i in range(500):
            # Gait bounce along the body y axis
            accel = [0.0, 0.6 * np.sin(2 * np.pi * 2.0 * i * TICK_NS * 1e-9), 0.0]
            samples.append(InertialSample(SensorKind.LINEAR_ACCELERATION, accel, t))
            if i % 50 == 25:
                samples.append(InertialSample(SensorKind.STEP_DETECTOR, [1.0], t))
            t += TICK_NS

    for _ in range(200):
        samples.append(InertialSample(SensorKind.LINEAR_ACCELERATION, [0.01, -0.01, 0.0], t))
        t += TICK_NS

    return samples


def main() -> None:
    """Run the inertial dead-reckoning demo."""
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    args = [a for a in sys.argv[1:] if not a.startswith("--")]
    mode = "heading" if "--heading" in sys.argv else "rotation_matrix"

    if args:
        reader = SensorLogReader(args[0])
        samples = list(reader)
        available = reader.kinds
        print(f"Loaded {len(samples)} samples ({reader.num_skipped} skipped) from {args[0]}")
    else:
        samples = synthetic_walk()
        available = None
        print(f"Generated {len(samples)} synthetic samples")

    dr = DeadReckoner(InertialConfig(mode=mode), available_sensors=available)
    dr.start()

    print("=" * 80)
    print(f"{'Sample':>7} {'Kind':^20} | {'Position':^26} | {'Heading':>7} {'Steps':>5} {'Still':>5}")
    print("-" * 80)

    for i, sample in enumerate(samples):
        pose = dr.process_sample(sample)
        if i % 200 == 0:
            print(
                f"{i:7d} {sample.kind.value:^20} | "
                f"[{pose.x:7.2f}, {pose.y:7.2f}, {pose.z:7.2f}] | "
                f"{dr.heading_deg:6.1f}° {pose.step_count:5d} {str(dr.is_stationary):>5}"
            )

    dr.stop()

    positions = dr.get_trajectory_positions()
    distance = float(np.sum(np.linalg.norm(np.diff(positions, axis=0), axis=1))) if len(positions) > 1 else 0.0

    print()
    print("=" * 80)
    print("SUMMARY")
    print("=" * 80)
    print(f"Poses emitted:     {len(positions)}")
    print(f"Steps counted:     {dr.step_count}")
    print(f"Path length:       {distance:.2f} m")
    print(f"Bias estimate:     [{dr.bias.bias_x:.4f}, {dr.bias.bias_y:.4f}] m/s²")
    pose = dr.current_pose
    print(f"Final position:    [{pose.x:.2f}, {pose.y:.2f}, {pose.z:.2f}]")
    print()
    print("Note: inertial dead reckoning drifts without bound; ZUPT and damping only slow it.")


if __name__ == "__main__":
    main()
