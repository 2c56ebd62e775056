from __future__ import annotations

from dataclasses import dataclass, field

from .decision import CapturePhase


@dataclass(frozen=True)
class MotionEstimate:
    dx: float = 0.0
    dy: float = 0.0
    rotation_deg: float = 0.0
    confidence: float = 0.0

    @classmethod
    def zero(cls) -> "MotionEstimate":
        return cls(0.0, 0.0, 0.0, 0.0)

    def to_dict(self) -> dict:
        return {
            "dx": float(self.dx),
            "dy": float(self.dy),
            "rotation_deg": float(self.rotation_deg),
            "confidence": float(self.confidence),
        }


@dataclass(frozen=True)
class GapRegion:
    x: int
    y: int
    width: int
    height: int

    @property
    def area(self) -> int:
        return self.width * self.height

    def to_dict(self) -> dict:
        return {"x": int(self.x), "y": int(self.y), "width": int(self.width), "height": int(self.height)}


@dataclass(frozen=True)
class CaptureSignal:
    session_id: int
    frame_idx: int
    timestamp: float
    coverage_ratio: float


@dataclass(frozen=True)
class AnalysisResult:
    """Per-frame aggregate. Tagged with the session it was computed against."""
    session_id: int
    frame_idx: int
    motion: MotionEstimate
    coverage_ratio: float
    is_stable: bool
    should_capture: bool
    gaps: tuple[GapRegion, ...] = field(default_factory=tuple)
    phase: CapturePhase = CapturePhase.SEEKING
    degraded: bool = False

    @property
    def is_complete(self) -> bool:
        return self.phase is CapturePhase.COMPLETE

    def to_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "frame_idx": self.frame_idx,
            "motion": self.motion.to_dict(),
            "coverage_ratio": float(self.coverage_ratio),
            "is_stable": bool(self.is_stable),
            "should_capture": bool(self.should_capture),
            "is_complete": self.is_complete,
            "phase": self.phase.name,
            "degraded": bool(self.degraded),
            "gaps": [g.to_dict() for g in self.gaps],
        }
