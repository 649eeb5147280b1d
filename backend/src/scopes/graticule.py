"""Graticule overlays — calibration lines, labels and targets per scope kind.

An overlay depends only on the canvas size and the scope kind, so it is
built once per (width, height, kind) and composited under and over the
data layer. Both passes write identical pixels.
"""

import functools
import math
from dataclasses import dataclass

import cv2
import numpy as np

from scopes.color_math import CHROMA_CENTER, chroma

KINDS = ("waveform", "parade", "vectorscope", "histogram")

GRID_COLOR = (51, 51, 51)
LABEL_COLOR = (85, 85, 85)
SEPARATOR_COLOR = (68, 68, 68)
HISTOGRAM_LABEL_COLOR = (102, 102, 102)
SKIN_COLOR = (255, 153, 51)

FONT = cv2.FONT_HERSHEY_SIMPLEX
FONT_SCALE = 0.35

# Percentage levels on the waveform and parade graticules
LEVELS = (0, 25, 50, 75, 100)

PARADE_LABELS = (
    ("R", (255, 102, 102)),
    ("G", (102, 255, 102)),
    ("B", (102, 102, 255)),
)

# Vectorscope
VECTORSCOPE_MARGIN = 20
TARGET_RADIUS_FRACTION = 0.9
TARGET_HALF_SIZE = 5
# (label, primary); each box sits on the hue angle of its primary
TARGET_PRIMARIES = (
    ("R", (255, 0, 0)),
    ("Mg", (255, 0, 255)),
    ("B", (0, 0, 255)),
    ("Cy", (0, 255, 255)),
    ("G", (0, 255, 0)),
    ("Yl", (255, 255, 0)),
)
SKIN_TONE_ANGLE = 123
INNER_RINGS = (0.25, 0.5, 0.75)

# Histogram
HISTOGRAM_MARKERS = (0, 64, 128, 192, 255)


@dataclass(frozen=True)
class Overlay:
    rgb: np.ndarray  # (H, W, 3) uint8, read-only
    mask: np.ndarray  # (H, W) bool, read-only


def hue_angle(rgb: tuple[int, int, int]) -> float:
    """Angle in degrees from +x at which a colour plots on the vectorscope."""
    cb, cr = chroma(*rgb)
    return math.degrees(math.atan2(cr - CHROMA_CENTER, cb - CHROMA_CENTER))


# (label, angle in degrees from +x, colour): R 108.6, Mg 51.6, B -9.2,
# Cy -71.4, G -128.4, Yl 170.8. These depart from the commonly quoted
# target angles (R -14, Mg -59, B -104, Cy 166, G 121, Yl 76), which do
# not match the cb -> x, cr -> y plot; each box sits where its primary lands.
COLOR_TARGETS = tuple(
    (label, hue_angle(primary), primary) for label, primary in TARGET_PRIMARIES
)


def vectorscope_geometry(size: int) -> tuple[float, float]:
    """(center, radius) of the unit circle on a size x size vectorscope."""
    center = size / 2
    radius = max(1.0, size / 2 - VECTORSCOPE_MARGIN)
    return center, radius


def _pt(x: float, y: float) -> tuple[int, int]:
    return int(round(x)), int(round(y))


def _paint(color: tuple[int, int, int]) -> tuple[int, int, int, int]:
    # The fourth channel marks coverage
    return (*color, 255)


def _text(layer: np.ndarray, label: str, x: float, y: float, color):
    cv2.putText(layer, label, _pt(x, y), FONT, FONT_SCALE, _paint(color), 1, cv2.LINE_8)


def _dashed_line(layer, p0, p1, color, dash: int, gap: int, thickness: int = 1):
    x0, y0 = p0
    x1, y1 = p1
    length = math.hypot(x1 - x0, y1 - y0)
    if length == 0:
        return
    ux = (x1 - x0) / length
    uy = (y1 - y0) / length
    pos = 0.0
    while pos < length:
        end = min(pos + dash, length)
        cv2.line(
            layer,
            _pt(x0 + ux * pos, y0 + uy * pos),
            _pt(x0 + ux * end, y0 + uy * end),
            _paint(color),
            thickness,
            cv2.LINE_8,
        )
        pos += dash + gap


def _draw_levels(layer: np.ndarray, width: int, height: int):
    for level in LEVELS:
        y = min(height - 1, int(height - (level / 100) * height))
        cv2.line(layer, (0, y), (width - 1, y), _paint(GRID_COLOR), 1, cv2.LINE_8)
        _text(layer, f"{level}%", 5, max(10, y - 3), LABEL_COLOR)


def _draw_parade_extras(layer: np.ndarray, width: int, height: int):
    channel_width = width / 3
    for i in (1, 2):
        x = channel_width * i
        _dashed_line(layer, (x, 0), (x, height - 1), SEPARATOR_COLOR, dash=5, gap=5)
    for i, (label, color) in enumerate(PARADE_LABELS):
        _text(layer, label, channel_width * (i + 0.5), 15, color)


def _draw_vectorscope(layer: np.ndarray, size: int):
    center, radius = vectorscope_geometry(size)
    c = _pt(center, center)

    cv2.circle(layer, c, int(round(radius)), _paint(GRID_COLOR), 1, cv2.LINE_8)
    for scale in INNER_RINGS:
        cv2.circle(layer, c, int(round(radius * scale)), _paint(GRID_COLOR), 1, cv2.LINE_8)

    cv2.line(layer, _pt(center - radius, center), _pt(center + radius, center), _paint(GRID_COLOR), 1, cv2.LINE_8)
    cv2.line(layer, _pt(center, center - radius), _pt(center, center + radius), _paint(GRID_COLOR), 1, cv2.LINE_8)

    for label, angle, color in COLOR_TARGETS:
        rad = math.radians(angle)
        x = center + math.cos(rad) * radius * TARGET_RADIUS_FRACTION
        y = center - math.sin(rad) * radius * TARGET_RADIUS_FRACTION
        cv2.rectangle(
            layer,
            _pt(x - TARGET_HALF_SIZE, y - TARGET_HALF_SIZE),
            _pt(x + TARGET_HALF_SIZE, y + TARGET_HALF_SIZE),
            _paint(color),
            2,
            cv2.LINE_8,
        )
        _text(layer, label, x + 8, y + 3, color)

    skin = math.radians(SKIN_TONE_ANGLE)
    end = (center + math.cos(skin) * radius, center - math.sin(skin) * radius)
    _dashed_line(layer, (center, center), end, SKIN_COLOR, dash=5, gap=3, thickness=2)
    label_x = center + math.cos(skin) * (radius + 5)
    label_y = center - math.sin(skin) * (radius + 5)
    _text(layer, "Skin", label_x - 15, label_y - 5, SKIN_COLOR)


def _draw_histogram(layer: np.ndarray, width: int, height: int):
    for marker in HISTOGRAM_MARKERS:
        x = min(width - 1, int((marker / 255) * width))
        cv2.line(layer, (x, 0), (x, height - 1), _paint(GRID_COLOR), 1, cv2.LINE_8)
        _text(layer, str(marker), x + 2, height - 5, HISTOGRAM_LABEL_COLOR)


@functools.lru_cache(maxsize=32)
def build_overlay(width: int, height: int, kind: str) -> Overlay:
    """Render the graticule for a canvas size and scope kind.

    Raises:
        ValueError: If kind is not one of KINDS.
    """
    if kind not in KINDS:
        raise ValueError(f"unknown graticule kind: {kind}")

    layer = np.zeros((max(0, height), max(0, width), 4), dtype=np.uint8)
    if width > 0 and height > 0:
        if kind == "vectorscope":
            _draw_vectorscope(layer, min(width, height))
        elif kind == "histogram":
            _draw_histogram(layer, width, height)
        else:
            _draw_levels(layer, width, height)
            if kind == "parade":
                _draw_parade_extras(layer, width, height)

    rgb = np.ascontiguousarray(layer[:, :, :3])
    mask = layer[:, :, 3] > 0
    rgb.flags.writeable = False
    mask.flags.writeable = False
    return Overlay(rgb=rgb, mask=mask)


def draw_graticule(raster: np.ndarray, kind: str) -> np.ndarray:
    """Composite the graticule for `kind` onto an (H, W, 3) raster in place."""
    height, width = raster.shape[:2]
    overlay = build_overlay(width, height, kind)
    raster[overlay.mask] = overlay.rgb[overlay.mask]
    return raster
