"""Tests for the single-slot frame handoff and the cadence scheduler."""

import threading
import time

import numpy as np
import pytest

from config import load_settings
from engine.crop import CropRegion
from engine.scheduler import LatestFrameSlot, ScopeScheduler

pytestmark = pytest.mark.smoke


def _frame(value=0):
    return np.full((40, 60, 4), value, dtype=np.uint8)


class RecordingSink:
    def __init__(self):
        self.calls = []
        self.event = threading.Event()

    def __call__(self, rasters):
        self.calls.append(rasters)
        self.event.set()


# --- LatestFrameSlot ---


def test_slot_empty_take_is_none():
    assert LatestFrameSlot().take() is None


def test_slot_newest_frame_wins():
    slot = LatestFrameSlot()
    a, b, c = _frame(1), _frame(2), _frame(3)
    slot.put(a)
    slot.put(b)
    slot.put(c)
    assert slot.take() is c
    assert slot.dropped == 2


def test_slot_frame_taken_once():
    slot = LatestFrameSlot()
    slot.put(_frame())
    assert slot.take() is not None
    assert slot.take() is None


def test_slot_clear():
    slot = LatestFrameSlot()
    slot.put(_frame())
    slot.clear()
    assert slot.take() is None


# --- ScopeScheduler ---


def test_run_once_renders_into_sink():
    slot = LatestFrameSlot()
    sink = RecordingSink()
    scheduler = ScopeScheduler(slot.take, sink)
    slot.put(_frame(128))
    result = scheduler.run_once()
    assert result is not None and not result.skipped
    assert len(sink.calls) == 1
    assert set(sink.calls[0]) == {"waveform", "parade", "vectorscope", "histogram"}
    assert scheduler.cycles_completed == 1


def test_run_once_without_frame_does_nothing():
    sink = RecordingSink()
    scheduler = ScopeScheduler(lambda: None, sink)
    assert scheduler.run_once() is None
    assert sink.calls == []


def test_run_once_skipped_frame_not_sent():
    sink = RecordingSink()
    scheduler = ScopeScheduler(lambda: np.zeros((0, 0, 4), dtype=np.uint8), sink)
    result = scheduler.run_once()
    assert result.skipped
    assert sink.calls == []
    assert scheduler.cycles_skipped == 1


def test_crop_and_visibility_read_per_cycle():
    slot = LatestFrameSlot()
    sink = RecordingSink()
    state = {"visibility": None, "crop": None}
    scheduler = ScopeScheduler(
        slot.take,
        sink,
        crop=lambda: state["crop"],
        visibility=lambda: state["visibility"],
    )
    slot.put(_frame())
    scheduler.run_once()
    assert len(sink.calls[-1]) == 4

    state["visibility"] = {"vectorscope": False}
    state["crop"] = CropRegion(0, 0, 0.5, 0.5)
    slot.put(_frame())
    result = scheduler.run_once()
    assert "vectorscope" not in sink.calls[-1]
    assert (result.data.width, result.data.height) == (30, 20)


def test_start_runs_cycles_and_stop_clears():
    slot = LatestFrameSlot()
    sink = RecordingSink()
    scheduler = ScopeScheduler(slot.take, sink, load_settings({"interval_ms": 10}))
    slot.put(_frame(200))
    scheduler.start()
    try:
        assert sink.event.wait(5.0)
        assert scheduler.is_running
    finally:
        scheduler.stop()
    assert not scheduler.is_running
    assert scheduler.cycles_completed == 1
    # last delivery is the blank clear
    assert len(sink.calls) == 2
    for raster in sink.calls[-1].values():
        assert not raster.any()


def test_stop_without_clear():
    sink = RecordingSink()
    scheduler = ScopeScheduler(
        lambda: None, sink, load_settings({"interval_ms": 10}), clear_on_stop=False
    )
    scheduler.start()
    time.sleep(0.05)
    scheduler.stop()
    assert sink.calls == []


def test_double_start_raises():
    scheduler = ScopeScheduler(lambda: None, RecordingSink(), load_settings({"interval_ms": 10}))
    scheduler.start()
    try:
        with pytest.raises(RuntimeError):
            scheduler.start()
    finally:
        scheduler.stop()


def test_sink_error_does_not_kill_loop():
    slot = LatestFrameSlot()
    calls = []
    done = threading.Event()

    def flaky_sink(rasters):
        calls.append(rasters)
        if len(calls) == 1:
            raise OSError("disk full")
        done.set()

    scheduler = ScopeScheduler(
        slot.take, flaky_sink, load_settings({"interval_ms": 5}), clear_on_stop=False
    )
    scheduler.start()
    try:
        slot.put(_frame(10))
        deadline = time.monotonic() + 5.0
        while not calls and time.monotonic() < deadline:
            time.sleep(0.005)
        slot.put(_frame(20))
        assert done.wait(5.0)
    finally:
        scheduler.stop()
    assert len(calls) == 2


def test_stop_when_never_started_is_safe():
    scheduler = ScopeScheduler(lambda: None, RecordingSink())
    scheduler.stop()
    assert not scheduler.is_running


def test_arena_released_after_stop():
    slot = LatestFrameSlot()
    sink = RecordingSink()
    scheduler = ScopeScheduler(slot.take, sink, load_settings({"interval_ms": 10}))
    slot.put(_frame(90))
    scheduler.start()
    try:
        assert sink.event.wait(5.0)
        assert len(scheduler.arena) == 5
    finally:
        assert scheduler.stop()
    assert len(scheduler.arena) == 0


def test_restart_refused_while_cycle_still_running():
    slot = LatestFrameSlot()
    entered = threading.Event()
    gate = threading.Event()

    def slow_sink(rasters):
        entered.set()
        gate.wait(5.0)

    scheduler = ScopeScheduler(
        slot.take, slow_sink, load_settings({"interval_ms": 10}), clear_on_stop=False
    )
    slot.put(_frame(50))
    scheduler.start()
    try:
        assert entered.wait(5.0)
        assert scheduler.stop(timeout=0.05) is False
        assert scheduler.is_running
        with pytest.raises(RuntimeError):
            scheduler.start()
    finally:
        gate.set()
    assert scheduler.stop() is True
    assert not scheduler.is_running

    # Once the old thread is gone a fresh start works
    scheduler.start()
    assert scheduler.stop() is True
