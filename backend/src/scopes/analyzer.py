"""Frame analyzer — derives every scope's dataset from one pixel buffer.

One scan of the frame produces:
1. Waveform columns: luminance multiset per analysis column
2. Parade columns: raw R/G/B values, three source columns per bucket
3. Color points: stride-decimated (cb, cr, r, g, b) samples for the vectorscope
4. Histogram: 256-bucket counts for r, g, b and luminance

The scan is vectorized with numpy; every pixel is visited exactly once per
derived quantity and the output depends only on the buffer and its size.
"""

import logging
from dataclasses import dataclass

import numpy as np

from scopes.color_math import chroma_arrays, luminance_array

logger = logging.getLogger(__name__)

# Target number of vectorscope samples per frame
DEFAULT_SAMPLE_BUDGET = 50_000

# Source columns folded into one parade bucket
PARADE_FOLD = 3

SUPPORTED_CHANNELS = (3, 4)


@dataclass(frozen=True)
class WaveformColumns:
    """values[c] is the luminance multiset of analysis column c."""

    values: np.ndarray  # (width, height) uint8

    def __len__(self) -> int:
        return self.values.shape[0]


@dataclass(frozen=True)
class ParadeColumns:
    """Per-channel column multisets; pixel x lands in bucket x // 3."""

    r: np.ndarray  # (width // 3, 3 * height) uint8
    g: np.ndarray
    b: np.ndarray

    def __len__(self) -> int:
        return self.r.shape[0]

    def channels(self) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        return self.r, self.g, self.b


@dataclass(frozen=True)
class ColorPoints:
    """Parallel arrays of sampled chroma with the source RGB."""

    cb: np.ndarray  # float64
    cr: np.ndarray  # float64
    r: np.ndarray  # uint8
    g: np.ndarray
    b: np.ndarray
    stride: int

    def __len__(self) -> int:
        return self.cb.shape[0]


@dataclass(frozen=True)
class Histogram:
    r: np.ndarray  # (256,) int64
    g: np.ndarray
    b: np.ndarray
    lum: np.ndarray


@dataclass(frozen=True)
class ScopeData:
    """Everything the renderers need from one analyzed frame."""

    width: int
    height: int
    waveform: WaveformColumns
    parade: ParadeColumns
    points: ColorPoints
    histogram: Histogram


def sample_stride(width: int, height: int, budget: int = DEFAULT_SAMPLE_BUDGET) -> int:
    """Raster-index stride that keeps roughly `budget` vectorscope samples."""
    return max(1, (width * height) // max(1, budget))


def _buffer_size(pixels) -> int:
    if isinstance(pixels, np.ndarray):
        return int(pixels.size)
    return len(memoryview(pixels).cast("B"))


def validate_frame(pixels, width: int, height: int) -> list[str]:
    """Check a pixel buffer against its stated size. Returns list of errors (empty = valid)."""
    errors: list[str] = []

    if isinstance(width, bool) or not isinstance(width, (int, np.integer)):
        errors.append(f"width must be an int, got {type(width).__name__}")
    if isinstance(height, bool) or not isinstance(height, (int, np.integer)):
        errors.append(f"height must be an int, got {type(height).__name__}")
    if errors:
        return errors

    if width <= 0 or height <= 0:
        errors.append(f"dimensions must be positive, got {width}x{height}")
        return errors

    if pixels is None:
        errors.append("pixel buffer is missing")
        return errors

    if isinstance(pixels, np.ndarray):
        if pixels.dtype != np.uint8:
            errors.append(f"pixel dtype must be uint8, got {pixels.dtype}")
            return errors
        if pixels.ndim == 3 and pixels.shape[:2] != (height, width):
            errors.append(
                f"frame shape {pixels.shape[:2]} does not match {height}x{width}"
            )
            return errors
        if pixels.ndim not in (1, 3):
            errors.append(f"pixel array must be flat or (H, W, C), got {pixels.ndim}-D")
            return errors
    else:
        try:
            memoryview(pixels)
        except TypeError:
            errors.append(f"unsupported pixel buffer type {type(pixels).__name__}")
            return errors

    size = _buffer_size(pixels)
    if size == 0:
        errors.append("pixel buffer is empty")
        return errors

    pixel_count = width * height
    if size % pixel_count != 0 or size // pixel_count not in SUPPORTED_CHANNELS:
        errors.append(
            f"buffer of {size} bytes is not {width}x{height} RGB or RGBA"
        )

    return errors


def as_pixel_array(pixels, width: int, height: int) -> np.ndarray:
    """View a validated buffer as (H, W, C) uint8. No copy where possible."""
    if isinstance(pixels, np.ndarray):
        flat = pixels.reshape(-1)
    else:
        flat = np.frombuffer(pixels, dtype=np.uint8)
    channels = flat.size // (width * height)
    return flat.reshape(height, width, channels)


def _parade_columns(channel: np.ndarray, buckets: int) -> np.ndarray:
    """Fold (H, W) channel values into (buckets, 3 * H) column multisets."""
    height = channel.shape[0]
    used = channel[:, : buckets * PARADE_FOLD]
    folded = used.reshape(height, buckets, PARADE_FOLD).transpose(1, 0, 2)
    return np.ascontiguousarray(folded.reshape(buckets, height * PARADE_FOLD))


def _bincount256(values: np.ndarray) -> np.ndarray:
    return np.bincount(values.ravel(), minlength=256)[:256].astype(np.int64)


def analyze(
    pixels,
    width: int,
    height: int,
    sample_budget: int = DEFAULT_SAMPLE_BUDGET,
) -> ScopeData | None:
    """Analyze a row-major RGB/RGBA buffer for all four scopes.

    Args:
        pixels:        (H, W, C) or flat uint8 array, or a bytes-like buffer
                       of exactly width*height*C bytes, C in {3, 4}. Alpha is
                       ignored.
        width, height: Dimensions of the buffer in pixels.
        sample_budget: Approximate vectorscope sample count.

    Returns:
        ScopeData, or None when the buffer is rejected (skip this cycle).
    """
    errors = validate_frame(pixels, width, height)
    if errors:
        logger.warning("Skipping frame: %s", "; ".join(errors))
        return None

    width = int(width)
    height = int(height)
    frame = as_pixel_array(pixels, width, height)
    r = frame[:, :, 0]
    g = frame[:, :, 1]
    b = frame[:, :, 2]

    lum = luminance_array(r, g, b)

    waveform = WaveformColumns(values=np.ascontiguousarray(lum.T))

    buckets = width // PARADE_FOLD
    parade = ParadeColumns(
        r=_parade_columns(r, buckets),
        g=_parade_columns(g, buckets),
        b=_parade_columns(b, buckets),
    )

    stride = sample_stride(width, height, sample_budget)
    index = np.arange(0, width * height, stride)
    r_s = r.reshape(-1)[index]
    g_s = g.reshape(-1)[index]
    b_s = b.reshape(-1)[index]
    cb, cr = chroma_arrays(r_s, g_s, b_s)
    points = ColorPoints(cb=cb, cr=cr, r=r_s, g=g_s, b=b_s, stride=stride)

    histogram = Histogram(
        r=_bincount256(r),
        g=_bincount256(g),
        b=_bincount256(b),
        lum=_bincount256(lum),
    )

    return ScopeData(
        width=width,
        height=height,
        waveform=waveform,
        parade=parade,
        points=points,
        histogram=histogram,
    )
