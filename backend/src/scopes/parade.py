"""RGB parade — one waveform per channel, side by side."""

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
from scopes.waveform import plot_columns

SCOPE_ID = "parade"
SCOPE_NAME = "RGB Parade"
DEFAULT_SIZE = (512, 256)

RAMPS = (
    (255, 50, 50),
    (50, 255, 50),
    (80, 80, 255),
)


def accumulate(
    data: ScopeData, settings: ScopeSettings, arena: ScratchArena
) -> list[IntensityMap]:
    """One map per channel, each channel_width x canvas height."""
    width, height = settings.parade_size
    channel_width = width // 3
    maps = []
    for slot, columns in enumerate(data.parade.channels()):
        intensity_map = arena.acquire(SCOPE_ID, channel_width, height, slot=slot)
        plot_columns(intensity_map, columns)
        maps.append(intensity_map)
    return maps


def render(
    data: ScopeData,
    settings: ScopeSettings | None = None,
    arena: ScratchArena | None = None,
) -> np.ndarray:
    """Render the parade. Returns an opaque (H, W, 3) uint8 raster."""
    settings = settings or ScopeSettings()
    if arena is None:
        arena = ScratchArena()
    width, height = settings.parade_size
    channel_width = width // 3

    raster = np.zeros((height, width, 3), dtype=np.uint8)
    draw_graticule(raster, "parade")

    maps = accumulate(data, settings, arena)
    for ch, (intensity_map, ramp) in enumerate(zip(maps, RAMPS)):
        rgb, lit = normalize_and_colorize(intensity_map, settings.parade_gain, ramp)
        composite(raster, rgb, lit, x0=ch * channel_width)

    draw_graticule(raster, "parade")
    return raster
