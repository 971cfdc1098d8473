"""Frame-to-frame keypoint tracking by local patch SSD search."""

from __future__ import annotations

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from .features import Features, Matches


class FeatureTracker:
    """Finds each previous keypoint's best local match in the current frame.

    For every sampled keypoint a square reference patch is cut from the
    previous frame and compared, by sum of squared differences, against
    patches centered on a strided grid of candidates inside the search
    window of the current frame. The whole window is scored at once with
    numpy; candidates at or above the SSD ceiling can never be accepted, so
    no early termination is needed to bound the result.

    Keypoints without an acceptable match are dropped silently.
    """

    def __init__(
        self,
        patch_radius: int = 3,
        search_radius: int = 12,
        search_stride: int = 3,
        max_ssd: float = 2000.0,
        max_tracked: int = 300,
    ) -> None:
        """Initialize tracker.

        Args:
            patch_radius: Half size of the square patch (patch is 2r+1 wide)
            search_radius: Half size of the square search window
            search_stride: Step between candidate centers in the window
            max_ssd: SSD ceiling. A match is accepted only below it.
            max_tracked: Target number of keypoints tracked per frame. Larger
                keypoint sets are subsampled with a proportional stride.
        """
        self._patch_radius = patch_radius
        self._search_radius = search_radius
        self._search_stride = search_stride
        self._max_ssd = max_ssd
        self._max_tracked = max_tracked
        # Offsets are symmetric about zero and always include it
        half = np.arange(0, search_radius + 1, search_stride)
        self._offsets = np.concatenate([-half[:0:-1], half])

    def track(
        self,
        prev_features: Features,
        prev_frame: np.ndarray,
        curr_frame: np.ndarray,
    ) -> Matches:
        """Match previous keypoints into the current frame.

        Args:
            prev_features: Keypoints detected in the previous frame
            prev_frame: HxW uint8 previous luma frame
            curr_frame: HxW uint8 current luma frame (same size)

        Returns:
            Matches with SSD strictly below max_ssd
        """
        if len(prev_features) == 0 or prev_frame.shape != curr_frame.shape:
            return Matches.empty()

        r = self._patch_radius
        h, w = curr_frame.shape[:2]
        if h < 2 * r + 3 or w < 2 * r + 3:
            return Matches.empty()

        # Valid patch centers lie in [r + 1, dim - r - 1)
        lo = r + 1
        hi_x = w - r - 1
        hi_y = h - r - 1

        prev_img = prev_frame.astype(np.int32)
        curr_img = curr_frame.astype(np.int32)
        # windows[y - r, x - r] is the patch centered at (x, y)
        windows = sliding_window_view(curr_img, (2 * r + 1, 2 * r + 1))

        step = max(1, len(prev_features) // self._max_tracked)
        sampled = prev_features.subsample(step)

        prev_points = []
        curr_points = []
        ssds = []

        for px, py in sampled.points:
            px, py = int(px), int(py)
            if not (lo <= px < hi_x and lo <= py < hi_y):
                continue

            ref = prev_img[py - r : py + r + 1, px - r : px + r + 1]

            cxs = px + self._offsets
            cys = py + self._offsets
            cxs = cxs[(cxs >= lo) & (cxs < hi_x)]
            cys = cys[(cys >= lo) & (cys < hi_y)]
            if len(cxs) == 0 or len(cys) == 0:
                continue

            patches = windows[cys[:, None] - r, cxs[None, :] - r]
            diff = patches - ref
            ssd = np.einsum("ijkl,ijkl->ij", diff, diff)

            # First minimum in scan order (rows outer, columns inner)
            iy, ix = np.unravel_index(np.argmin(ssd), ssd.shape)
            best_ssd = ssd[iy, ix]

            # Zero displacement wins ties
            zx = np.flatnonzero(cxs == px)
            zy = np.flatnonzero(cys == py)
            if len(zx) and len(zy) and ssd[zy[0], zx[0]] <= best_ssd:
                iy, ix = zy[0], zx[0]
                best_ssd = ssd[iy, ix]

            if best_ssd < self._max_ssd:
                prev_points.append((px, py))
                curr_points.append((int(cxs[ix]), int(cys[iy])))
                ssds.append(float(best_ssd))

        if not prev_points:
            return Matches.empty()

        return Matches(
            prev_points=np.array(prev_points, dtype=np.float64),
            curr_points=np.array(curr_points, dtype=np.float64),
            ssd=np.array(ssds, dtype=np.float64),
        )

    @property
    def patch_radius(self) -> int:
        return self._patch_radius

    @property
    def search_radius(self) -> int:
        return self._search_radius

    @property
    def max_ssd(self) -> float:
        """Return the SSD acceptance ceiling."""
        return self._max_ssd

    @property
    def max_tracked(self) -> int:
        return self._max_tracked
