# src/ucscan/modules/stability.py
from __future__ import annotations

import math
from dataclasses import dataclass

from ..system.results import MotionEstimate


@dataclass(frozen=True)
class StabilityThresholds:
    translation_px: float = 0.5
    rotation_deg: float = 0.5
    # None keeps confidence out of the decision, so a failed match (0,0,0)
    # still reads as stable
    min_confidence: float | None = None

    @classmethod
    def from_config(cls, cfg: dict) -> "StabilityThresholds":
        st = cfg.get("stability", {}) or {}
        if st.get("threshold") is not None:
            # single shared threshold for pixels and degrees
            shared = float(st["threshold"])
            translation_px = rotation_deg = shared
        else:
            translation_px = float(st.get("translation_px", 0.5))
            rotation_deg = float(st.get("rotation_deg", 0.5))
        min_conf = st.get("min_confidence")
        return cls(
            translation_px=translation_px,
            rotation_deg=rotation_deg,
            min_confidence=None if min_conf is None else float(min_conf),
        )


def is_stable(motion: MotionEstimate, thresholds: StabilityThresholds | None = None) -> bool:
    th = thresholds or StabilityThresholds()
    magnitude = math.hypot(motion.dx, motion.dy)
    if not (magnitude < th.translation_px and abs(motion.rotation_deg) < th.rotation_deg):
        return False
    if th.min_confidence is not None and motion.confidence < th.min_confidence:
        return False
    return True
