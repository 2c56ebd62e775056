# src/ucscan/modules/motion.py
from __future__ import annotations

import logging
import math

import numpy as np

from ..geom.plane import segment_angle, wrap_angle_rad
from ..system.results import MotionEstimate
from ..system.state import FeatureSet
from . import orb_features

logger = logging.getLogger(__name__)


def estimate_motion(
    prev: FeatureSet | None,
    cur: FeatureSet | None,
    *,
    max_match_distance: float = 50.0,
    min_raw_matches: int = 10,
    min_good_matches: int = 5,
    rotation_window: int = 10,
) -> MotionEstimate:
    """
    Apparent 2D camera motion between two feature sets.

    Args:
        prev, cur: feature sets of the previous and current frame.
        max_match_distance: Hamming cutoff; matches at or above it are dropped.
        min_raw_matches: below this many raw matches no motion is asserted.
        min_good_matches: below this many filtered matches no motion is asserted.
        rotation_window: number of consecutive match pairs used for the rotation average.

    Returns:
        MotionEstimate. Insufficient evidence or a matcher failure gives
        MotionEstimate.zero(); this function does not raise.
    """
    if prev is None or cur is None or prev.is_empty or cur.is_empty:
        return MotionEstimate.zero()

    try:
        matches = orb_features.match_descriptors(prev.descriptors, cur.descriptors)

        if len(matches) < min_raw_matches:
            return MotionEstimate.zero()

        good = [m for m in matches if m.distance < max_match_distance]
        if len(good) < min_good_matches:
            return MotionEstimate.zero()

        n_prev = len(prev)
        n_cur = len(cur)
        valid = [m for m in good if m.queryIdx < n_prev and m.trainIdx < n_cur]
        if not valid:
            return MotionEstimate.zero()

        p0 = prev.pts[[m.queryIdx for m in valid]].astype(np.float64)
        p1 = cur.pts[[m.trainIdx for m in valid]].astype(np.float64)
        delta = (p1 - p0).mean(axis=0)

        confidence = min(max(len(valid) / float(len(matches)), 0.0), 1.0)
        rotation = _rotation_deg(good, prev.pts, cur.pts, window=rotation_window)

        return MotionEstimate(float(delta[0]), float(delta[1]), rotation, confidence)

    except Exception:
        logger.exception("Motion estimation failed; reporting zero motion")
        return MotionEstimate.zero()


def _rotation_deg(matches: list, pts_prev: np.ndarray, pts_cur: np.ndarray, *, window: int) -> float:
    # mean change in direction of the segment joining consecutive matched points
    if len(matches) < 2:
        return 0.0

    n_prev = pts_prev.shape[0]
    n_cur = pts_cur.shape[0]
    total = 0.0
    count = 0
    for m1, m2 in zip(matches[: window], matches[1 : window + 1]):
        if max(m1.queryIdx, m2.queryIdx) >= n_prev or max(m1.trainIdx, m2.trainIdx) >= n_cur:
            continue
        a_prev = segment_angle(pts_prev[m1.queryIdx], pts_prev[m2.queryIdx])
        a_cur = segment_angle(pts_cur[m1.trainIdx], pts_cur[m2.trainIdx])
        total += wrap_angle_rad(a_cur - a_prev)
        count += 1

    if count == 0:
        return 0.0
    return math.degrees(total / count)
