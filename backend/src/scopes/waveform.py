"""Waveform scope — luminance against horizontal position."""

import numpy as np

from config import ScopeSettings
from scopes.analyzer import ScopeData
from scopes.graticule import draw_graticule
from scopes.intensity import (
    IntensityMap,
    ScratchArena,
    composite,
    normalize_and_colorize,
)

SCOPE_ID = "waveform"
SCOPE_NAME = "Waveform"
DEFAULT_SIZE = (512, 256)

# Green phosphor
RAMP = (100, 255, 100)


def plot_columns(intensity_map: IntensityMap, columns: np.ndarray):
    """Plot column multisets of 8-bit values into a map.

    Column c lands at x = floor(c / len(columns) * map.width); value v lands
    at y = floor((h - 1) - v / 255 * (h - 1)), so 255 is the top row.
    """
    count = columns.shape[0]
    if count == 0 or columns.size == 0:
        return
    height = intensity_map.height
    xs = np.floor(np.arange(count) / count * intensity_map.width).astype(np.int64)
    ys = np.floor(
        (height - 1) - (columns.astype(np.float64) / 255) * (height - 1)
    ).astype(np.int64)
    xs = np.broadcast_to(xs[:, np.newaxis], ys.shape)
    intensity_map.plot_many(xs, ys)


def accumulate(
    data: ScopeData, settings: ScopeSettings, arena: ScratchArena
) -> IntensityMap:
    width, height = settings.waveform_size
    intensity_map = arena.acquire(SCOPE_ID, width, height)
    plot_columns(intensity_map, data.waveform.values)
    return intensity_map


def render(
    data: ScopeData,
    settings: ScopeSettings | None = None,
    arena: ScratchArena | None = None,
) -> np.ndarray:
    """Render the waveform. Returns an opaque (H, W, 3) uint8 raster."""
    settings = settings or ScopeSettings()
    if arena is None:
        arena = ScratchArena()
    width, height = settings.waveform_size

    raster = np.zeros((height, width, 3), dtype=np.uint8)
    draw_graticule(raster, "waveform")

    intensity_map = accumulate(data, settings, arena)
    rgb, lit = normalize_and_colorize(intensity_map, settings.waveform_gain, RAMP)
    composite(raster, rgb, lit)

    # Again on top so the reference lines survive dense signal
    draw_graticule(raster, "waveform")
    return raster
