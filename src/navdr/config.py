"""Configuration for the inertial and visual dead-reckoning producers.

All tunable constants live here. Values can be overridden in code or loaded
from a YAML file with top-level ``inertial:`` and ``vision:`` sections:

    inertial:
      mode: heading
      step_length: 0.7
    vision:
      max_features: 500
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

INTEGRATOR_MODES = ("rotation_matrix", "heading")
STATIONARY_DETECTORS = ("time", "count")
GAP_POLICIES = ("clamp", "reject")

# Per-mode defaults for fields left as None: (stationary, max_dt, min_dt, gap_policy)
_MODE_DEFAULTS = {
    "rotation_matrix": ("time", 0.1, 0.0, "clamp"),
    "heading": ("count", 1.0, 0.001, "reject"),
}


@dataclass
class InertialConfig:
    """Parameters of the inertial dead-reckoning pipeline.

    Attributes:
        mode: Integrator variant. "rotation_matrix" rotates body acceleration
            with the full 3x3 orientation; "heading" trusts only yaw and
            integrates in the horizontal plane with bias and deadzone.
        stationary: Stationary detector. "time" accumulates still time from
            acceleration and angular rate; "count" counts consecutive quiet
            2-D acceleration samples. Defaults from mode.
        max_dt: Largest accepted sample interval in seconds. Defaults from mode.
        min_dt: Smallest accepted sample interval in seconds. Defaults from mode.
        gap_policy: What to do when dt > max_dt: "clamp" or "reject".
        damping: Multiplicative velocity damping per tick (rotation_matrix mode)
        damping_rate: Exponential velocity decay rate k in 1/s (heading mode)
        deadzone: Acceleration components below this magnitude are zeroed
            (heading mode), m/s²
        accel_still_threshold: Linear acceleration norm below which the
            device may be still, m/s²
        gyro_still_threshold: Angular rate norm below which the device may be
            still, rad/s
        required_still_time: Still time needed to declare stationary, seconds
        required_still_samples: Quiet samples needed by the count detector
        bias_smoothing: Exponential smoothing factor for the bias estimate
        heading_alpha: Low-pass factor for the smoothed heading
        step_length: Distance advanced per detected step, metres
        max_trajectory: Number of most recent emitted poses kept for
            get_trajectory()
    """

    mode: str = "rotation_matrix"
    stationary: str | None = None
    max_dt: float | None = None
    min_dt: float | None = None
    gap_policy: str | None = None
    damping: float = 0.98
    damping_rate: float = 1.0
    deadzone: float = 0.05
    accel_still_threshold: float = 0.12
    gyro_still_threshold: float = 0.05
    required_still_time: float = 0.5
    required_still_samples: int = 6
    bias_smoothing: float = 0.2
    heading_alpha: float = 0.2
    step_length: float = 0.75
    max_trajectory: int = 10_000

    def __post_init__(self) -> None:
        """Resolve mode-dependent defaults and validate values."""
        if self.mode not in INTEGRATOR_MODES:
            raise ValueError(
                f"Unknown integrator mode {self.mode!r}, expected one of {INTEGRATOR_MODES}"
            )

        stationary, max_dt, min_dt, gap_policy = _MODE_DEFAULTS[self.mode]
        if self.stationary is None:
            self.stationary = stationary
        if self.max_dt is None:
            self.max_dt = max_dt
        if self.min_dt is None:
            self.min_dt = min_dt
        if self.gap_policy is None:
            self.gap_policy = gap_policy

        if self.stationary not in STATIONARY_DETECTORS:
            raise ValueError(
                f"Unknown stationary detector {self.stationary!r}, "
                f"expected one of {STATIONARY_DETECTORS}"
            )
        if self.gap_policy not in GAP_POLICIES:
            raise ValueError(
                f"Unknown gap policy {self.gap_policy!r}, expected one of {GAP_POLICIES}"
            )
        if self.max_dt <= 0:
            raise ValueError(f"max_dt must be positive, got {self.max_dt}")
        if not 0 <= self.min_dt < self.max_dt:
            raise ValueError(
                f"min_dt must be in [0, max_dt), got {self.min_dt} (max_dt={self.max_dt})"
            )
        if not 0 < self.damping <= 1:
            raise ValueError(f"damping must be in (0, 1], got {self.damping}")
        if self.damping_rate < 0:
            raise ValueError(f"damping_rate must be >= 0, got {self.damping_rate}")
        if not 0 < self.bias_smoothing <= 1:
            raise ValueError(f"bias_smoothing must be in (0, 1], got {self.bias_smoothing}")
        if not 0 < self.heading_alpha <= 1:
            raise ValueError(f"heading_alpha must be in (0, 1], got {self.heading_alpha}")
        if self.required_still_samples < 1:
            raise ValueError(
                f"required_still_samples must be >= 1, got {self.required_still_samples}"
            )
        if self.step_length <= 0:
            raise ValueError(f"step_length must be positive, got {self.step_length}")
        if self.max_trajectory < 1:
            raise ValueError(f"max_trajectory must be >= 1, got {self.max_trajectory}")


@dataclass
class VisionConfig:
    """Parameters of the visual odometry pipeline.

    Attributes:
        fast_threshold: Intensity difference (0-255) for a ring pixel to count
            as brighter or darker than the center
        arc_length: Ring pixels (out of 16) that must agree to accept a corner
        detect_stride: Row/column stride of the candidate scan
        border: Candidates closer than this to any edge are not tested
        grid_size: Cell size in pixels for grid non-maximum suppression
        max_features: Maximum number of keypoints kept per frame
        patch_radius: Half size of the square SSD patch
        search_radius: Half size of the square search window
        search_stride: Stride of the candidate scan inside the window
        max_ssd: SSD ceiling; matches at or above it are rejected
        max_tracked: Approximate number of keypoints tracked per frame
        pixel_to_meter: Scale converting pixel displacement to metres
        axis_signs: Sign applied to the (x, y) displacement after any swap
        swap_axes: Swap image x/y before applying signs (camera mounted
            rotated by 90 degrees)
        max_fps: Upper bound on the reported frame rate
        max_trajectory: Number of most recent emitted poses kept for
            get_trajectory()
    """

    fast_threshold: int = 20
    arc_length: int = 12
    detect_stride: int = 3
    border: int = 10
    grid_size: int = 8
    max_features: int = 1000
    patch_radius: int = 3
    search_radius: int = 12
    search_stride: int = 3
    max_ssd: float = 2000.0
    max_tracked: int = 300
    pixel_to_meter: float = 0.002
    axis_signs: tuple[float, float] = (-1.0, 1.0)
    swap_axes: bool = False
    max_fps: int = 60
    max_trajectory: int = 10_000

    def __post_init__(self) -> None:
        """Validate values."""
        self.axis_signs = tuple(float(s) for s in self.axis_signs)
        if len(self.axis_signs) != 2:
            raise ValueError(f"axis_signs must have 2 values, got {self.axis_signs}")
        if not 0 <= self.fast_threshold <= 255:
            raise ValueError(f"fast_threshold must be in [0, 255], got {self.fast_threshold}")
        if not 1 <= self.arc_length <= 16:
            raise ValueError(f"arc_length must be in [1, 16], got {self.arc_length}")
        if self.detect_stride < 1 or self.search_stride < 1:
            raise ValueError("detect_stride and search_stride must be >= 1")
        if self.grid_size < 1:
            raise ValueError(f"grid_size must be >= 1, got {self.grid_size}")
        if self.max_features < 1 or self.max_tracked < 1:
            raise ValueError("max_features and max_tracked must be >= 1")
        if self.patch_radius < 1 or self.search_radius < 0:
            raise ValueError("patch_radius must be >= 1 and search_radius >= 0")
        # Ring radius is 3; keypoints must also leave room for a tracking patch
        if self.border < 3 or self.border <= self.patch_radius:
            raise ValueError(
                f"border must be >= 3 and > patch_radius, got {self.border} "
                f"(patch_radius={self.patch_radius})"
            )
        if self.max_ssd <= 0:
            raise ValueError(f"max_ssd must be positive, got {self.max_ssd}")
        if self.pixel_to_meter <= 0:
            raise ValueError(f"pixel_to_meter must be positive, got {self.pixel_to_meter}")
        if self.max_trajectory < 1:
            raise ValueError(f"max_trajectory must be >= 1, got {self.max_trajectory}")


@dataclass
class NavConfig:
    """Configuration of both producers."""

    inertial: InertialConfig = field(default_factory=InertialConfig)
    vision: VisionConfig = field(default_factory=VisionConfig)


def _build(cls: type, section: dict[str, Any] | None, name: str, source: Path) -> Any:
    if section is None:
        return cls()
    if not isinstance(section, dict):
        raise ValueError(f"Section '{name}' in {source} must be a mapping")

    known = {f.name for f in dataclasses.fields(cls)}
    unknown = sorted(set(section) - known)
    if unknown:
        raise ValueError(f"Unknown keys in section '{name}' of {source}: {unknown}")
    return cls(**section)


def load_config(path: str | Path) -> NavConfig:
    """Load configuration from a YAML file.

    Missing sections and keys keep their defaults.

    Args:
        path: Path to YAML configuration file

    Returns:
        NavConfig with both sections populated

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the file content is invalid
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Configuration in {path} must be a mapping")

    unknown = sorted(set(data) - {"inertial", "vision"})
    if unknown:
        raise ValueError(f"Unknown sections in {path}: {unknown}")

    config = NavConfig(
        inertial=_build(InertialConfig, data.get("inertial"), "inertial", path),
        vision=_build(VisionConfig, data.get("vision"), "vision", path),
    )
    logger.info(f"Loaded configuration from {path} (mode={config.inertial.mode})")
    return config
