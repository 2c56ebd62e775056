from __future__ import annotations

import logging
import threading
import time
from typing import Callable

import numpy as np

from .coverage import SessionReleasedError, coverage_heatmap
from .decision import CapturePhase
from .results import AnalysisResult, CaptureSignal
from .runner import step
from .state import FrameData, SessionState
from .telemetry import Telemetry
from ..modules.orb_features import FeatureExtractor

logger = logging.getLogger(__name__)


class CoverageAnalyzer:
    """
    Owns one scanning session and runs the per-frame pipeline on it.

    Session state lives in a SessionState that reset() swaps out. A frame already
    being analysed when reset() lands finishes against the detached old state; its
    result keeps the old session_id, so is_current() tells the caller to drop it.
    """

    def __init__(
        self,
        cfg: dict | None = None,
        *,
        on_capture: Callable[[CaptureSignal], None] | None = None,
        telemetry: Telemetry | None = None,
        extractor: FeatureExtractor | None = None,
    ):
        self.cfg = cfg or {}
        self.on_capture = on_capture
        self.telemetry = telemetry
        self.extractor = extractor or FeatureExtractor.from_config(self.cfg)

        self._lock = threading.Lock()
        self._state: SessionState | None = SessionState()
        self._next_idx = 0

        logger.info("CoverageAnalyzer started session %d", self._state.session_id)

    # -------------------------------------------------
    # Session lifecycle
    # -------------------------------------------------
    @property
    def session_id(self) -> int:
        return self._require_state().session_id

    @property
    def is_shut_down(self) -> bool:
        return self._state is None

    def reset(self) -> int | None:
        """Start a fresh session; returns its id, or None once shut down."""
        fresh = SessionState()
        with self._lock:
            if self._state is None:
                logger.warning("reset() after shutdown ignored")
                return None
            old, self._state = self._state, fresh
            self._next_idx = 0
        old.release()
        logger.info("Session %d reset -> session %d", old.session_id, fresh.session_id)
        return fresh.session_id

    def shutdown(self) -> None:
        with self._lock:
            old, self._state = self._state, None
        if old is not None:
            old.release()
            logger.info("CoverageAnalyzer shut down (session %d)", old.session_id)

    def __enter__(self) -> "CoverageAnalyzer":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()

    def is_current(self, result: AnalysisResult) -> bool:
        state = self._state
        return state is not None and result.session_id == state.session_id

    # -------------------------------------------------
    # Per-frame analysis
    # -------------------------------------------------
    def analyze(self, frame: FrameData | np.ndarray, ts: float | None = None) -> AnalysisResult:
        with self._lock:
            state = self._require_state()
            if not isinstance(frame, FrameData):
                frame = FrameData.from_image(self._next_idx, time.time() if ts is None else ts, frame)
            self._next_idx = frame.idx + 1

        result = step(state, frame, self.cfg, extractor=self.extractor, telemetry=self.telemetry)

        if not self.is_current(result):
            logger.debug("Dropping result of stale session %d (frame %d)", result.session_id, result.frame_idx)
            return result

        if result.should_capture and self.on_capture is not None:
            signal = CaptureSignal(
                session_id=result.session_id,
                frame_idx=result.frame_idx,
                timestamp=time.time(),
                coverage_ratio=result.coverage_ratio,
            )
            try:
                self.on_capture(signal)
            except Exception:
                logger.exception("Capture callback failed for frame %d", result.frame_idx)
        return result

    # -------------------------------------------------
    # Pull-based queries
    # -------------------------------------------------
    @property
    def coverage_ratio(self) -> float:
        state = self._state
        return 0.0 if state is None else state.coverage_ratio

    @property
    def is_complete(self) -> bool:
        state = self._state
        return state is not None and state.phase is CapturePhase.COMPLETE

    @property
    def capture_count(self) -> int:
        state = self._state
        return 0 if state is None else state.capture_count

    def coverage_mask(self) -> np.ndarray | None:
        state = self._state
        if state is None or state.coverage is None:
            return None
        try:
            return state.coverage.mask.copy()
        except (AttributeError, SessionReleasedError):
            # released by a concurrent reset
            return None

    def heatmap(self) -> np.ndarray | None:
        mask = self.coverage_mask()
        if mask is None:
            return None
        return coverage_heatmap(mask)

    def _require_state(self) -> SessionState:
        state = self._state
        if state is None:
            raise RuntimeError("CoverageAnalyzer has been shut down.")
        return state
