"""Color math — Rec.709 luminance and YCbCr chroma for 8-bit RGB."""

import math

import numpy as np

# Rec.709 luma weights
LUMA_R = 0.2126
LUMA_G = 0.7152
LUMA_B = 0.0722

# Full-range YCbCr chroma coefficients, centred on 128
CB_R = -0.168736
CB_G = -0.331264
CB_B = 0.5
CR_R = 0.5
CR_G = -0.418688
CR_B = -0.081312

CHROMA_CENTER = 128.0


def luminance(r: int, g: int, b: int) -> int:
    """Rec.709 luminance of one pixel, rounded half up to an 8-bit value."""
    return int(math.floor(LUMA_R * r + LUMA_G * g + LUMA_B * b + 0.5))


def chroma(r: int, g: int, b: int) -> tuple[float, float]:
    """(cb, cr) of one pixel, centred on 128."""
    cb = CHROMA_CENTER + (CB_R * r + CB_G * g + CB_B * b)
    cr = CHROMA_CENTER + (CR_R * r + CR_G * g + CR_B * b)
    return cb, cr


def luminance_array(
    r: np.ndarray, g: np.ndarray, b: np.ndarray
) -> np.ndarray:
    """Vectorized luminance(). Returns uint8 with the same shape as the inputs."""
    lum = (
        LUMA_R * r.astype(np.float64)
        + LUMA_G * g.astype(np.float64)
        + LUMA_B * b.astype(np.float64)
    )
    # floor(x + 0.5) matches the scalar form; np.round would round half to even
    return np.clip(np.floor(lum + 0.5), 0, 255).astype(np.uint8)


def chroma_arrays(
    r: np.ndarray, g: np.ndarray, b: np.ndarray
) -> tuple[np.ndarray, np.ndarray]:
    """Vectorized chroma(). Returns float64 (cb, cr) arrays."""
    rf = r.astype(np.float64)
    gf = g.astype(np.float64)
    bf = b.astype(np.float64)
    cb = CHROMA_CENTER + (CB_R * rf + CB_G * gf + CB_B * bf)
    cr = CHROMA_CENTER + (CR_R * rf + CR_G * gf + CR_B * bf)
    return cb, cr
