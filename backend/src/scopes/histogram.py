"""Histogram — overlapping R/G/B brightness distributions."""

import numpy as np

from config import ScopeSettings
from scopes.analyzer import ScopeData
from scopes.graticule import draw_graticule
from scopes.intensity import ScratchArena

SCOPE_ID = "histogram"
SCOPE_NAME = "Histogram"
DEFAULT_SIZE = (512, 200)

# Space kept free above the tallest bar
HEADROOM = 20

BAR_COLORS = (
    (255, 0, 0),
    (0, 255, 0),
    (0, 102, 255),
)


def shared_max(data: ScopeData) -> int:
    """Scale shared by all three series. The luminance histogram is not included."""
    hist = data.histogram
    return max(int(hist.r.max()), int(hist.g.max()), int(hist.b.max()), 1)


def bar_heights(counts: np.ndarray, max_val: int, height: int) -> np.ndarray:
    """Bar height in whole rows for each of the 256 buckets."""
    usable = max(0, height - HEADROOM)
    return np.round(counts.astype(np.float64) / max_val * usable).astype(np.int64)


def render(
    data: ScopeData,
    settings: ScopeSettings | None = None,
    arena: ScratchArena | None = None,
) -> np.ndarray:
    """Render the histogram. Returns an opaque (H, W, 3) uint8 raster.

    `arena` is accepted for a uniform renderer signature; no intensity map
    is needed.
    """
    settings = settings or ScopeSettings()
    width, height = settings.histogram_size
    alpha = settings.histogram_alpha

    canvas = np.zeros((height, width, 3), dtype=np.float64)
    max_val = shared_max(data)

    # Bucket under each canvas column; bars are width / 256 wide
    buckets = np.minimum(255, (np.arange(width) * 256) // max(1, width))
    rows = np.arange(height)[:, np.newaxis]

    hist = data.histogram
    for counts, color in zip((hist.r, hist.g, hist.b), BAR_COLORS):
        column_heights = bar_heights(counts, max_val, height)[buckets]
        covered = rows >= (height - column_heights)[np.newaxis, :]
        covered &= column_heights[np.newaxis, :] > 0
        canvas[covered] = canvas[covered] * (1.0 - alpha) + np.asarray(color) * alpha

    raster = np.clip(np.round(canvas), 0, 255).astype(np.uint8)
    draw_graticule(raster, "histogram")
    return raster
