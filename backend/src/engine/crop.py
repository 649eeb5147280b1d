"""Region of interest and analysis downscale."""

import logging
import math
from dataclasses import dataclass

import cv2
import numpy as np

logger = logging.getLogger(__name__)

# Crop rectangles are never smaller than this in source pixels
MIN_CROP_PX = 10

# Drag selections thinner than this (normalized) are discarded
MIN_SELECTION_FRACTION = 0.02

DEFAULT_MAX_WIDTH = 320


def _unit(value: float) -> float:
    value = float(value)
    if math.isnan(value):
        return 0.0
    return max(0.0, min(1.0, value))


@dataclass(frozen=True)
class CropRegion:
    """Normalized rectangle over the source frame, every field in [0, 1]."""

    x: float
    y: float
    w: float
    h: float

    def __post_init__(self):
        for name in ("x", "y", "w", "h"):
            object.__setattr__(self, name, _unit(getattr(self, name)))

    @classmethod
    def from_drag(
        cls, start: tuple[float, float], end: tuple[float, float]
    ) -> "CropRegion | None":
        """Region spanned by two drag points, or None for a too-small selection."""
        x0, y0 = _unit(start[0]), _unit(start[1])
        x1, y1 = _unit(end[0]), _unit(end[1])
        w = abs(x1 - x0)
        h = abs(y1 - y0)
        if w < MIN_SELECTION_FRACTION or h < MIN_SELECTION_FRACTION:
            return None
        return cls(min(x0, x1), min(y0, y1), w, h)

    @classmethod
    def parse(cls, text: str) -> "CropRegion":
        """Parse "x,y,w,h". Raises ValueError on malformed input."""
        parts = [p.strip() for p in text.split(",")]
        if len(parts) != 4:
            raise ValueError(f"crop must be x,y,w,h, got {text!r}")
        return cls(*(float(p) for p in parts))

    def to_pixels(self, width: int, height: int) -> tuple[int, int, int, int]:
        """(x, y, w, h) in source pixels, at least MIN_CROP_PX a side where the source allows."""
        zone_w = max(int(self.w * width), MIN_CROP_PX)
        zone_h = max(int(self.h * height), MIN_CROP_PX)
        zone_w = min(zone_w, width)
        zone_h = min(zone_h, height)
        zone_x = min(int(self.x * width), width - zone_w)
        zone_y = min(int(self.y * height), height - zone_h)
        return zone_x, zone_y, zone_w, zone_h


def analysis_size(zone_w: int, zone_h: int, max_width: int) -> tuple[int, int]:
    """Aspect-preserving downscale so the width is at most max_width. Never upscales."""
    scale = min(1.0, max_width / zone_w)
    return max(1, int(zone_w * scale)), max(1, int(zone_h * scale))


def prepare_frame(
    frame: np.ndarray,
    crop: CropRegion | None = None,
    max_width: int = DEFAULT_MAX_WIDTH,
) -> np.ndarray | None:
    """Cut the crop region out of an (H, W, C) frame and downscale it for analysis.

    Returns None for frames that cannot be analyzed.
    """
    if not isinstance(frame, np.ndarray) or frame.ndim != 3 or frame.size == 0:
        logger.warning("Skipping frame: expected a non-empty (H, W, C) array")
        return None
    if frame.shape[2] not in (3, 4) or frame.dtype != np.uint8:
        logger.warning(
            "Skipping frame: unsupported layout %s %s", frame.shape, frame.dtype
        )
        return None

    height, width = frame.shape[:2]
    if crop is not None:
        zone_x, zone_y, zone_w, zone_h = crop.to_pixels(width, height)
        zone = frame[zone_y : zone_y + zone_h, zone_x : zone_x + zone_w]
    else:
        zone = frame
        zone_h, zone_w = height, width

    target_w, target_h = analysis_size(zone_w, zone_h, max_width)
    if (target_w, target_h) == (zone_w, zone_h):
        return np.ascontiguousarray(zone)
    return cv2.resize(np.ascontiguousarray(zone), (target_w, target_h), interpolation=cv2.INTER_AREA)
