"""Performance gate — one full cycle on a 1080p frame.

Marked perf so it can be skipped with: pytest -m "not perf"
"""

import time

import numpy as np
import pytest

from config import ScopeSettings
from engine.cycle import run_cycle
from scopes.intensity import ScratchArena

pytestmark = pytest.mark.perf

CYCLE_BUDGET_MS = 100.0
WARMUP_CYCLES = 2
TIMED_CYCLES = 10


def _frame_1080p() -> np.ndarray:
    rng = np.random.default_rng(42)
    return rng.integers(0, 256, (1080, 1920, 4), dtype=np.uint8)


def test_1080p_cycle_within_budget():
    frame = _frame_1080p()
    settings = ScopeSettings()
    arena = ScratchArena()
    for _ in range(WARMUP_CYCLES):
        run_cycle(frame, settings, arena)

    timings = []
    for _ in range(TIMED_CYCLES):
        t0 = time.perf_counter()
        result = run_cycle(frame, settings, arena)
        timings.append((time.perf_counter() - t0) * 1000)
        assert len(result.rasters) == 4

    median = sorted(timings)[len(timings) // 2]
    assert median < CYCLE_BUDGET_MS, f"median cycle {median:.1f}ms"
