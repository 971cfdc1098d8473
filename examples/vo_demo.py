#!/usr/bin/env python3
"""Demo script for visual odometry with timing diagnostics.

Replays a recorded frame directory (data.csv + data/), or a synthetic
texture sliding across the image when no directory is given.

Usage:
    uv run python examples/vo_demo.py [frame_dir]
"""

import logging
import sys

import numpy as np

from navdr import FrameReader, VisualOdometry, VOStatus

FRAME_NS = 33_333_333  # ~30 fps


def synthetic_frames(n_frames: int = 120, width: int = 320, height: int = 240):
    """Yield (luma, timestamp_ns) for a random texture panning right then down."""
    rng = np.random.default_rng(0)
    world = rng.integers(0, 256, size=(height * 2, width * 2), dtype=np.uint8)

    x, y = 0, 0
    for i in range(n_frames):
        if i < n_frames // 2:
            x += 3
        else:
            y += 3
        x = min(x, world.shape[1] - width)
        y = min(y, world.shape[0] - height)
        yield np.ascontiguousarray(world[y : y + height, x : x + width]), 1_000_000_000 + i * FRAME_NS


def main() -> None:
    """Run the visual odometry demo."""
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    if len(sys.argv) > 1:
        frames = FrameReader(sys.argv[1])
        print(f"Processing {len(frames)} frames from {sys.argv[1]}...")
    else:
        frames = synthetic_frames()
        print("Processing synthetic frames...")
    print()

    vo = VisualOdometry()
    vo.start()

    print(
        f"{'Frame':>6} {'Status':^12} {'Kpts':>5} {'Match':>5} {'FPS':>4} | "
        f"{'Track':>7} {'Est':>6} {'Detect':>7} {'Total':>7} | "
        f"{'Position'}"
    )
    print("-" * 100)

    lost_count = 0
    timing_totals = {"track": 0.0, "estimate": 0.0, "detect": 0.0, "total": 0.0}

    for i, (luma, timestamp_ns) in enumerate(frames):
        height, width = luma.shape
        result = vo.process_frame(luma, width, height, timestamp_ns)

        if result.status == VOStatus.LOST:
            lost_count += 1

        t = result.timing
        timing_totals["track"] += t.track_ms
        timing_totals["estimate"] += t.estimate_ms
        timing_totals["detect"] += t.detect_ms
        timing_totals["total"] += t.total_ms

        if i % 20 == 0 or result.status == VOStatus.LOST:
            pos = result.position
            print(
                f"{i:6d} {result.status.value:^12} {result.num_keypoints:5d} "
                f"{result.num_matches:5d} {result.fps:4d} | "
                f"{t.track_ms:5.1f}ms {t.estimate_ms:4.1f}ms {t.detect_ms:5.1f}ms "
                f"{t.total_ms:5.1f}ms | "
                f"[{pos[0]:7.3f}, {pos[1]:7.3f}]"
            )

    n_frames = max(vo.num_frames, 1)
    print()
    print("=" * 80)
    print("SUMMARY")
    print("=" * 80)
    print(f"Frames processed:  {vo.num_frames}")
    print(f"Lost count:        {lost_count} ({100*lost_count/n_frames:.1f}%)")
    print()
    print("Average timing per frame:")
    print(f"  Track:     {timing_totals['track']/n_frames:6.1f} ms")
    print(f"  Estimate:  {timing_totals['estimate']/n_frames:6.1f} ms")
    print(f"  Detect:    {timing_totals['detect']/n_frames:6.1f} ms")
    print(f"  Total:     {timing_totals['total']/n_frames:6.1f} ms")
    print()

    pos = vo.current_pose.position
    print(f"Final position: [{pos[0]:.3f}, {pos[1]:.3f}]")


if __name__ == "__main__":
    main()
