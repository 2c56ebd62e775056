# src/ucscan/system/runner.py
from __future__ import annotations

import logging
import time

from .coverage import CoverageMap
from .decision import CapturePhase, transition
from .results import AnalysisResult, MotionEstimate
from .state import FrameData, SessionState
from .telemetry import Telemetry
from ..modules.gaps import find_gaps
from ..modules.motion import estimate_motion
from ..modules.orb_features import FeatureExtractor
from ..modules.stability import StabilityThresholds, is_stable

logger = logging.getLogger(__name__)


def step(
    state: SessionState,
    frame: FrameData,
    cfg: dict,
    *,
    extractor: FeatureExtractor,
    telemetry: Telemetry | None = None,
) -> AnalysisResult:
    """
    One coverage step for `frame` against the session held in `state`.

    Responsibilities:
      1) extract features from the frame
      2) estimate motion against the previous frame's features
      3) grow the coverage mask and extract gaps
      4) classify stability and run the capture state machine
      5) replace the stored previous features and log telemetry

    The first frame of a session only allocates the mask and stores features.
    A failure inside the frame yields a degraded neutral result; the session
    itself is left usable. A released state abandons the frame the same way.
    """
    t0 = time.perf_counter()
    if state.released:
        logger.debug("Session %d already released; abandoning frame %d", state.session_id, frame.idx)
        return _finish(_degraded(state, frame), None, t0)

    # --- 1) Features
    try:
        features = extractor.extract(frame.img_gray)
    except Exception:
        logger.exception("Feature extraction failed on frame %d", frame.idx)
        return _finish(_degraded(state, frame), telemetry, t0)

    if state.released:
        logger.debug("Session %d released during extraction; abandoning frame %d", state.session_id, frame.idx)
        return _finish(_degraded(state, frame), None, t0)

    if state.frame_shape is not None and frame.shape != state.frame_shape:
        logger.warning(
            "Frame %d has shape %s, session expects %s; skipping",
            frame.idx, frame.shape, state.frame_shape,
        )
        return _finish(_degraded(state, frame), telemetry, t0)

    # --- first frame: nothing to compare against yet
    if state.coverage is None:
        coverage = CoverageMap.zeros(frame.shape)
        state.coverage = coverage
        if state.released:
            # released between the check above and the allocation
            coverage.release()
            state.coverage = None
            logger.debug("Session %d released before its first frame %d landed", state.session_id, frame.idx)
            return _finish(_degraded(state, frame), None, t0)
        state.frame_shape = frame.shape
        state.prev_features = features
        state.frame_count += 1
        logger.debug("Session %d started at frame %d (%d features)", state.session_id, frame.idx, len(features))
        result = AnalysisResult(
            session_id=state.session_id,
            frame_idx=frame.idx,
            motion=MotionEstimate.zero(),
            coverage_ratio=0.0,
            is_stable=False,
            should_capture=False,
            phase=state.phase,
        )
        return _finish(result, telemetry, t0, num_features=len(features))

    # --- 2) Motion
    m_cfg = cfg.get("motion", {}) or {}
    motion = estimate_motion(
        state.prev_features,
        features,
        max_match_distance=float(m_cfg.get("max_match_distance", 50.0)),
        min_raw_matches=int(m_cfg.get("min_raw_matches", 10)),
        min_good_matches=int(m_cfg.get("min_good_matches", 5)),
        rotation_window=int(m_cfg.get("rotation_window", 10)),
    )

    # --- 3) Coverage + gaps
    coverage = state.coverage
    try:
        coverage.update(motion)
        ratio = coverage.ratio()
        gaps = find_gaps(coverage.mask, min_area=int((cfg.get("gaps", {}) or {}).get("min_area", 100)))
    except Exception:
        if state.released:
            logger.debug("Session %d released while frame %d was in flight", state.session_id, frame.idx)
        else:
            logger.exception("Coverage update failed on frame %d", frame.idx)
        return _finish(_degraded(state, frame), telemetry, t0)

    # --- 4) Stability + capture decision
    stable = is_stable(motion, StabilityThresholds.from_config(cfg))
    threshold = float((cfg.get("coverage", {}) or {}).get("completion_threshold", 0.85))
    decision = transition(state.phase, is_stable=stable, coverage_ratio=ratio, completion_threshold=threshold)

    if decision.fired is CapturePhase.COMPLETE:
        logger.info("Session %d complete at frame %d (coverage %.3f)", state.session_id, frame.idx, ratio)
    if decision.should_capture:
        state.capture_count += 1

    # --- 5) Commit
    state.phase = decision.phase
    state.prev_features = features
    state.frame_count += 1

    result = AnalysisResult(
        session_id=state.session_id,
        frame_idx=frame.idx,
        motion=motion,
        coverage_ratio=ratio,
        is_stable=stable,
        should_capture=decision.should_capture,
        gaps=tuple(gaps),
        phase=decision.phase,
    )
    return _finish(result, telemetry, t0, num_features=len(features))


def _degraded(state: SessionState, frame: FrameData) -> AnalysisResult:
    return AnalysisResult(
        session_id=state.session_id,
        frame_idx=frame.idx,
        motion=MotionEstimate.zero(),
        coverage_ratio=state.coverage_ratio,
        is_stable=False,
        should_capture=False,
        phase=state.phase,
        degraded=True,
    )


def _finish(result: AnalysisResult, telemetry: Telemetry | None, t0: float, **extra) -> AnalysisResult:
    if telemetry is not None:
        telemetry.log_result(result, elapsed_ms=(time.perf_counter() - t0) * 1000.0, **extra)
    return result
