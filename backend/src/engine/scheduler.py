"""Cadence-driven scope scheduling.

Frames arrive through a single-slot handoff: a producer overwrites the slot
as fast as it likes and each cycle takes whatever is newest. Cycles run one
at a time on a background thread, started `interval_ms` apart.
"""

import logging
import threading
import time
from typing import Callable

import numpy as np
import sentry_sdk

from config import ScopeSettings
from engine.crop import CropRegion
from engine.cycle import CycleResult, blank_rasters, run_cycle
from scopes.intensity import ScratchArena

logger = logging.getLogger(__name__)

FrameSource = Callable[[], "np.ndarray | None"]
RasterSink = Callable[[dict[str, np.ndarray]], None]


class LatestFrameSlot:
    """Holds the newest frame; older unread frames are overwritten, never queued."""

    def __init__(self):
        self._lock = threading.Lock()
        self._frame: np.ndarray | None = None
        self._fresh = False
        self.dropped = 0

    def put(self, frame: np.ndarray):
        with self._lock:
            if self._fresh:
                self.dropped += 1
            self._frame = frame
            self._fresh = True

    def take(self) -> np.ndarray | None:
        """Newest frame not yet taken, or None."""
        with self._lock:
            if not self._fresh:
                return None
            self._fresh = False
            return self._frame

    def clear(self):
        with self._lock:
            self._frame = None
            self._fresh = False


class ScopeScheduler:
    """Runs analysis cycles at a fixed cadence until stopped.

    Crop and visibility are read once at the start of each cycle through
    the given callables; the scheduler never changes them.
    """

    def __init__(
        self,
        source: FrameSource,
        sink: RasterSink,
        settings: ScopeSettings | None = None,
        crop: Callable[[], CropRegion | None] | None = None,
        visibility: Callable[[], dict[str, bool] | None] | None = None,
        clear_on_stop: bool = True,
    ):
        self.settings = settings or ScopeSettings()
        self.arena = ScratchArena()
        self._source = source
        self._sink = sink
        self._crop = crop or (lambda: None)
        self._visibility = visibility or (lambda: None)
        self._clear_on_stop = clear_on_stop
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self.cycles_completed = 0
        self.cycles_skipped = 0
        self.last_result: CycleResult | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_once(self) -> CycleResult | None:
        """Run a single cycle now. Returns None when no new frame is available."""
        frame = self._source()
        if frame is None:
            return None

        crop = self._crop()
        visibility = self._visibility()
        result = run_cycle(frame, self.settings, self.arena, crop, visibility)
        self.last_result = result
        if result.skipped:
            self.cycles_skipped += 1
            return result

        self.cycles_completed += 1
        self._sink(result.rasters)
        return result

    def start(self):
        """Start the cycle thread.

        Raises:
            RuntimeError: If the scheduler is running, or a stopped cycle
                thread has not exited yet.
        """
        if self.is_running:
            raise RuntimeError("Scheduler already running")
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()
        logger.info("Scope scheduler started at %dms cadence", self.settings.interval_ms)

    def stop(self, timeout: float | None = 2.0) -> bool:
        """Stop scheduling. A cycle already in progress runs to completion.

        Returns True once the cycle thread has exited. If it is still finishing
        a cycle after `timeout`, the thread is kept and start() refuses to run
        until it is gone.
        """
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        if thread is not None and thread.is_alive():
            logger.warning("Scope scheduler still finishing a cycle after stop")
            return False
        self._thread = None
        return True

    def _run(self):
        interval_s = self.settings.interval_ms / 1000
        while not self._stop_event.is_set():
            started = time.monotonic()
            try:
                self.run_once()
            except Exception as e:
                sentry_sdk.capture_exception(e)
                logger.error("Scope cycle failed: %s", type(e).__name__)
                logger.debug("Scope cycle exception detail: %s", e)
            remaining = interval_s - (time.monotonic() - started)
            self._stop_event.wait(max(0.0, remaining))

        if self._clear_on_stop:
            self._clear()
        self.arena.release_all()
        logger.info(
            "Scope scheduler stopped after %d cycles (%d skipped)",
            self.cycles_completed,
            self.cycles_skipped,
        )

    def _clear(self):
        """Hand the sink blank canvases for every visible scope."""
        try:
            self._sink(blank_rasters(self.settings, self._visibility()))
        except Exception as e:
            logger.error("Clearing scopes failed: %s", type(e).__name__)
            logger.debug("Clearing scopes exception detail: %s", e)
