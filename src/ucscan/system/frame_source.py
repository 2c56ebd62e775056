from __future__ import annotations

import logging
import threading
import time
from typing import Callable

import numpy as np

from .analyzer import CoverageAnalyzer
from .results import AnalysisResult
from .state import FrameData

logger = logging.getLogger(__name__)


class LatestFrameSlot:
    """
    One-deep mailbox between the camera thread and the analysis thread.

    put() overwrites whatever frame is still waiting, so a slow consumer sees
    only the newest frame and memory stays bounded.
    """

    def __init__(self):
        self._cond = threading.Condition()
        self._frame: FrameData | None = None
        self._closed = False
        self.delivered = 0
        self.dropped = 0

    def put(self, frame: FrameData) -> None:
        with self._cond:
            if self._closed:
                return
            if self._frame is not None:
                self.dropped += 1
            self._frame = frame
            self._cond.notify()

    def take(self, timeout: float | None = None) -> FrameData | None:
        with self._cond:
            if self._frame is None and not self._closed:
                self._cond.wait(timeout)
            frame, self._frame = self._frame, None
            if frame is not None:
                self.delivered += 1
            return frame

    def clear(self) -> None:
        with self._cond:
            self._frame = None

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._frame = None
            self._cond.notify_all()

    @property
    def closed(self) -> bool:
        return self._closed


class AnalysisWorker(threading.Thread):
    """Runs the analyzer on its own thread, pulling the newest frame from a slot."""

    def __init__(
        self,
        analyzer: CoverageAnalyzer,
        slot: LatestFrameSlot,
        on_result: Callable[[AnalysisResult], None] | None = None,
        *,
        budget_ms: float = 100.0,
        poll_timeout_s: float = 0.1,
    ):
        super().__init__(name="coverage-analysis", daemon=True)
        self.analyzer = analyzer
        self.slot = slot
        self.on_result = on_result
        self.budget_ms = budget_ms
        self.poll_timeout_s = poll_timeout_s

        self._stop_event = threading.Event()
        self.processed = 0
        self.stale = 0
        self.overruns = 0
        self.last_elapsed_ms = 0.0

    @classmethod
    def from_config(cls, analyzer: CoverageAnalyzer, slot: LatestFrameSlot, on_result=None) -> "AnalysisWorker":
        w_cfg = analyzer.cfg.get("worker", {}) or {}
        return cls(
            analyzer,
            slot,
            on_result,
            budget_ms=float(w_cfg.get("budget_ms", 100.0)),
            poll_timeout_s=float(w_cfg.get("poll_timeout_s", 0.1)),
        )

    def run(self) -> None:
        logger.debug("Analysis worker started")
        while not self._stop_event.is_set():
            frame = self.slot.take(timeout=self.poll_timeout_s)
            if frame is None:
                if self.slot.closed:
                    break
                continue
            self._process(frame)
        logger.debug("Analysis worker stopped (processed=%d dropped=%d)", self.processed, self.slot.dropped)

    def _process(self, frame: FrameData) -> None:
        t0 = time.perf_counter()
        try:
            result = self.analyzer.analyze(frame)
        except RuntimeError:
            # analyzer shut down underneath us
            logger.info("Analyzer unavailable; stopping worker")
            self._stop_event.set()
            return
        self.last_elapsed_ms = (time.perf_counter() - t0) * 1000.0
        self.processed += 1

        if self.last_elapsed_ms > self.budget_ms:
            self.overruns += 1
            logger.warning(
                "Frame %d took %.1f ms (budget %.1f ms); newer frames replace it",
                frame.idx, self.last_elapsed_ms, self.budget_ms,
            )

        if not self.analyzer.is_current(result):
            self.stale += 1
            return
        if self.on_result is not None:
            try:
                self.on_result(result)
            except Exception:
                logger.exception("Result callback failed for frame %d", frame.idx)

    def stop(self, timeout: float | None = None) -> None:
        self._stop_event.set()
        self.slot.close()
        if self.is_alive() and threading.current_thread() is not self:
            self.join(timeout)


def frame_from_array(idx: int, img: np.ndarray, ts: float | None = None) -> FrameData:
    return FrameData.from_image(idx, time.time() if ts is None else ts, img)
