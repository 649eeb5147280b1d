"""Vectorscope — chroma plotted in polar form (angle = hue, radius = saturation)."""

import numpy as np

from config import ScopeSettings
from scopes.analyzer import ColorPoints, ScopeData
from scopes.color_math import CHROMA_CENTER
from scopes.graticule import draw_graticule, vectorscope_geometry
from scopes.intensity import (
    IntensityMap,
    ScratchArena,
    composite,
    normalize_and_colorize,
)

SCOPE_ID = "vectorscope"
SCOPE_NAME = "Vectorscope"
DEFAULT_SIZE = (300, 300)

# Cyan/green phosphor
RAMP = (50, 255, 150)


def plot_positions(points: ColorPoints, size: int) -> tuple[np.ndarray, np.ndarray]:
    """Integer canvas positions of every sample. Higher cr plots upward."""
    center, radius = vectorscope_geometry(size)
    x = center + ((points.cb - CHROMA_CENTER) / 128) * radius
    y = center - ((points.cr - CHROMA_CENTER) / 128) * radius
    return np.floor(x).astype(np.int64), np.floor(y).astype(np.int64)


def accumulate(
    data: ScopeData, settings: ScopeSettings, arena: ScratchArena
) -> IntensityMap:
    size = settings.vectorscope_size
    intensity_map = arena.acquire(SCOPE_ID, size, size)
    if len(data.points):
        xs, ys = plot_positions(data.points, size)
        intensity_map.stamp(xs, ys, settings.vectorscope_stamp_radius)
    return intensity_map


def render(
    data: ScopeData,
    settings: ScopeSettings | None = None,
    arena: ScratchArena | None = None,
) -> np.ndarray:
    """Render the vectorscope. Returns an opaque (size, size, 3) uint8 raster."""
    settings = settings or ScopeSettings()
    if arena is None:
        arena = ScratchArena()
    size = settings.vectorscope_size

    raster = np.zeros((size, size, 3), dtype=np.uint8)
    draw_graticule(raster, "vectorscope")

    intensity_map = accumulate(data, settings, arena)
    rgb, lit = normalize_and_colorize(intensity_map, settings.vectorscope_gain, RAMP)
    composite(raster, rgb, lit)

    draw_graticule(raster, "vectorscope")
    return raster
