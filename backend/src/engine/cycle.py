"""Analysis cycle — one frame through the analyzer and every visible scope.

A cycle never raises: rejected frames are skipped, and a scope whose renderer
fails is reported and replaced with a blank canvas so the others still show.
Includes rolling per-scope timing stats.
"""

import logging
import time
from collections import defaultdict, deque
from dataclasses import dataclass, field

import numpy as np
import sentry_sdk

from config import ScopeSettings
from engine.crop import CropRegion, prepare_frame
from scopes import registry
from scopes.analyzer import ScopeData, analyze
from scopes.intensity import ScratchArena

logger = logging.getLogger(__name__)

# Cycles slower than this leave the cadence behind
CYCLE_WARN_MS = 66

# Rolling timing stats per scope
_scope_timing: dict[str, deque] = defaultdict(lambda: deque(maxlen=100))


@dataclass
class CycleResult:
    rasters: dict[str, np.ndarray] = field(default_factory=dict)
    data: ScopeData | None = None
    skipped: bool = False
    failed: list[str] = field(default_factory=list)
    elapsed_ms: float = 0.0


def canvas_size(settings: ScopeSettings, scope_id: str) -> tuple[int, int]:
    """(width, height) of a scope's output raster."""
    if scope_id == "vectorscope":
        return settings.vectorscope_size, settings.vectorscope_size
    return getattr(settings, f"{scope_id}_size")


def _visible(settings: ScopeSettings, visibility: dict[str, bool] | None) -> list[str]:
    flags = settings.visibility()
    if visibility:
        flags.update({k: bool(v) for k, v in visibility.items() if k in flags})
    return [sid for sid in registry.ids() if flags.get(sid, False)]


def blank_rasters(
    settings: ScopeSettings, visibility: dict[str, bool] | None = None
) -> dict[str, np.ndarray]:
    """Opaque black canvases for every visible scope."""
    rasters = {}
    for scope_id in _visible(settings, visibility):
        width, height = canvas_size(settings, scope_id)
        rasters[scope_id] = np.zeros((height, width, 3), dtype=np.uint8)
    return rasters


def record_timing(scope_id: str, elapsed_ms: float):
    """Record a timing sample for a scope."""
    _scope_timing[scope_id].append(elapsed_ms)


def get_scope_stats() -> dict[str, dict]:
    """Return p50/p95/max per scope."""
    result = {}
    for sid, samples in _scope_timing.items():
        s = sorted(samples)
        result[sid] = {
            "p50": s[len(s) // 2] if s else 0,
            "p95": s[int(len(s) * 0.95)] if len(s) >= 20 else None,
            "max": max(s) if s else 0,
            "samples": len(s),
        }
    return result


def flush_timing():
    """Clear all timing stats."""
    _scope_timing.clear()


def _capture_with_context(e: Exception, scope_id: str, extra: dict):
    """Capture exception to Sentry with scope-level context and fingerprint dedup."""
    with sentry_sdk.new_scope() as scope:
        scope.set_tag("scope_id", scope_id)
        scope.fingerprint = ["scope-render", scope_id, type(e).__name__]
        scope.set_context("scope", extra)
        sentry_sdk.capture_exception(e, scope=scope)


def _skip(result: CycleResult, t0: float, context: dict) -> CycleResult:
    result.skipped = True
    result.elapsed_ms = (time.monotonic() - t0) * 1000
    logger.warning(
        "Scope cycle skipped",
        extra={"elapsed_ms": round(result.elapsed_ms, 1), **context},
    )
    return result


def run_cycle(
    frame: np.ndarray,
    settings: ScopeSettings,
    arena: ScratchArena,
    crop: CropRegion | None = None,
    visibility: dict[str, bool] | None = None,
) -> CycleResult:
    """Analyze one frame and render every visible scope.

    Args:
        frame:      Source frame (H, W, 3|4) uint8.
        settings:   Resolved scope settings.
        arena:      Scratch intensity maps, reused across cycles.
        crop:       Optional normalized region of interest.
        visibility: Per-scope flags overriding the settings' show_* values.

    Returns:
        CycleResult with one raster per visible scope, or skipped=True.
    """
    t0 = time.monotonic()
    result = CycleResult()

    analysis_frame = prepare_frame(frame, crop, settings.analysis_max_width)
    if analysis_frame is None:
        return _skip(result, t0, {"frame_shape": list(getattr(frame, "shape", ()))})

    height, width = analysis_frame.shape[:2]
    data = analyze(analysis_frame, width, height, settings.vector_sample_budget)
    if data is None:
        return _skip(result, t0, {"analysis_size": [width, height]})
    result.data = data

    for scope_id in _visible(settings, visibility):
        info = registry.get(scope_id)
        t_scope = time.monotonic()
        try:
            raster = info["fn"](data, settings, arena)
        except Exception as e:
            result.failed.append(scope_id)
            _capture_with_context(
                e,
                scope_id,
                {
                    "analysis_size": [width, height],
                    "canvas_size": list(canvas_size(settings, scope_id)),
                },
            )
            logger.error(
                "Scope %s failed to render: %s",
                scope_id,
                type(e).__name__,
                extra={"scope_id": scope_id, "analysis_size": [width, height]},
            )
            logger.debug("Scope %s exception detail: %s", scope_id, e)
            c_w, c_h = canvas_size(settings, scope_id)
            raster = np.zeros((c_h, c_w, 3), dtype=np.uint8)
        record_timing(scope_id, (time.monotonic() - t_scope) * 1000)
        result.rasters[scope_id] = raster

    result.elapsed_ms = (time.monotonic() - t0) * 1000
    cadence_ms = max(CYCLE_WARN_MS, settings.interval_ms)
    if result.elapsed_ms > cadence_ms:
        logger.warning(
            "Scope cycle took %.0fms (>%dms cadence) for %dx%d analysis frame",
            result.elapsed_ms,
            cadence_ms,
            width,
            height,
            extra={
                "elapsed_ms": round(result.elapsed_ms, 1),
                "cadence_ms": cadence_ms,
                "analysis_size": [width, height],
            },
        )
    return result
