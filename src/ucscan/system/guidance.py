from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .results import AnalysisResult


class GuidanceZone(Enum):
    STABLE = "stable"
    FAR = "far"
    MEDIUM = "medium"
    CLOSE = "close"


@dataclass(frozen=True)
class GuidanceCue:
    dx: float          # -1 left .. +1 right
    dy: float          # -1 up .. +1 down (image rows)
    distance: float    # 0 (done) .. 1 (nothing covered)
    is_stable: bool
    zone: GuidanceZone


@dataclass(frozen=True)
class ProgressReadout:
    coverage_percent: int
    dx: float
    dy: float
    rotation_deg: float
    is_stable: bool
    captured: int

    def as_text(self) -> str:
        return (
            f"{self.coverage_percent:3d}% "
            f"X: {self.dx:.1f} Y: {self.dy:.1f} Rot: {self.rotation_deg:.1f} "
            f"{'STABLE' if self.is_stable else 'moving'} captured={self.captured}"
        )


def _clamp(v: float, lo: float, hi: float) -> float:
    return min(max(v, lo), hi)


def guidance_from_result(
    result: AnalysisResult,
    *,
    motion_scale: float = 100.0,
    far_distance: float = 0.8,
    medium_distance: float = 0.3,
) -> GuidanceCue:
    if motion_scale <= 0:
        raise ValueError("motion_scale must be positive")

    distance = _clamp(1.0 - result.coverage_ratio, 0.0, 1.0)
    if result.is_stable:
        zone = GuidanceZone.STABLE
    elif distance > far_distance:
        zone = GuidanceZone.FAR
    elif distance > medium_distance:
        zone = GuidanceZone.MEDIUM
    else:
        zone = GuidanceZone.CLOSE

    return GuidanceCue(
        dx=_clamp(result.motion.dx / motion_scale, -1.0, 1.0),
        dy=_clamp(result.motion.dy / motion_scale, -1.0, 1.0),
        distance=distance,
        is_stable=result.is_stable,
        zone=zone,
    )


def progress_from_result(result: AnalysisResult, captured: int = 0) -> ProgressReadout:
    return ProgressReadout(
        coverage_percent=int(result.coverage_ratio * 100),
        dx=result.motion.dx,
        dy=result.motion.dy,
        rotation_deg=result.motion.rotation_deg,
        is_stable=result.is_stable,
        captured=captured,
    )
