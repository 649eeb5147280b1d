"""Intensity accumulation — phosphor-style count grids shared by the scopes."""

import numpy as np

# (r, g, b) peak colour reached at full intensity
ColorRamp = tuple[int, int, int]


class IntensityMap:
    """A width x height grid of plot counts.

    Coordinates outside the grid are dropped silently; plotted positions come
    from continuous math and may round just past an edge.
    """

    def __init__(self, width: int, height: int):
        self.width = max(0, int(width))
        self.height = max(0, int(height))
        self.counts = np.zeros((self.height, self.width), dtype=np.uint32)

    @property
    def shape(self) -> tuple[int, int]:
        return self.height, self.width

    def clear(self):
        self.counts.fill(0)

    def plot(self, x: int, y: int):
        """Increment one cell."""
        if 0 <= x < self.width and 0 <= y < self.height:
            self.counts[y, x] += 1

    def plot_many(self, xs: np.ndarray, ys: np.ndarray):
        """Increment one cell per (x, y) pair. Repeated pairs accumulate."""
        if self.counts.size == 0:
            return
        xs = np.asarray(xs, dtype=np.int64).ravel()
        ys = np.asarray(ys, dtype=np.int64).ravel()
        inside = (xs >= 0) & (xs < self.width) & (ys >= 0) & (ys < self.height)
        if not inside.any():
            return
        flat = ys[inside] * self.width + xs[inside]
        hits = np.bincount(flat, minlength=self.counts.size)
        self.counts += hits.reshape(self.counts.shape).astype(np.uint32)

    def stamp(self, xs: np.ndarray, ys: np.ndarray, radius: int = 1):
        """Plot every point as a (2r+1) x (2r+1) square. radius=0 plots single cells."""
        xs = np.asarray(xs, dtype=np.int64).ravel()
        ys = np.asarray(ys, dtype=np.int64).ravel()
        radius = max(0, int(radius))
        for dy in range(-radius, radius + 1):
            for dx in range(-radius, radius + 1):
                self.plot_many(xs + dx, ys + dy)

    @property
    def max_count(self) -> int:
        """Largest cell count, floored at 1 so normalization never divides by zero."""
        if self.counts.size == 0:
            return 1
        return max(1, int(self.counts.max()))


def normalize_and_colorize(
    intensity_map: IntensityMap, gain: float, ramp: ColorRamp
) -> tuple[np.ndarray, np.ndarray]:
    """Map counts to colour through a linear ramp.

    intensity = min(1, count / max_count * gain) for every non-zero cell,
    then each channel is floor(intensity * ramp[channel]). The same gain is
    used for the whole map.

    Returns:
        (rgb, lit) where rgb is (H, W, 3) uint8 (zero cells black) and lit
        is the (H, W) bool mask of non-zero cells.
    """
    counts = intensity_map.counts
    lit = counts > 0
    intensity = np.minimum(
        1.0, counts.astype(np.float64) / intensity_map.max_count * float(gain)
    )
    peak = np.asarray(ramp, dtype=np.float64)
    rgb = np.floor(intensity[:, :, np.newaxis] * peak).astype(np.uint8)
    rgb[~lit] = 0
    return rgb, lit


def composite(raster: np.ndarray, rgb: np.ndarray, lit: np.ndarray, x0: int = 0):
    """Write lit cells of a colorized map onto raster in place, offset by x0 columns."""
    h, w = lit.shape
    region = raster[:h, x0 : x0 + w]
    region[lit] = rgb[lit]


class ScratchArena:
    """Reusable intensity maps keyed by (scope id, slot).

    Holds buffers only; every acquire() hands back a cleared map, so nothing
    carries over between cycles.
    """

    def __init__(self):
        self._maps: dict[tuple[str, int], IntensityMap] = {}

    def acquire(self, scope_id: str, width: int, height: int, slot: int = 0) -> IntensityMap:
        key = (scope_id, slot)
        existing = self._maps.get(key)
        if existing is None or existing.shape != (max(0, height), max(0, width)):
            existing = IntensityMap(width, height)
            self._maps[key] = existing
        else:
            existing.clear()
        return existing

    def __len__(self) -> int:
        return len(self._maps)

    def release_all(self):
        """Drop every buffer; the next acquire() allocates afresh."""
        self._maps.clear()
