from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class CapturePhase(Enum):
    SEEKING = "seeking"
    CAPTURE_TRIGGERED = "capture_triggered"
    COMPLETE = "complete"


@dataclass(frozen=True)
class Decision:
    phase: CapturePhase          # phase the session settles in after this frame
    fired: CapturePhase | None   # transition taken this frame, if any
    should_capture: bool = False

    @property
    def is_complete(self) -> bool:
        return self.phase is CapturePhase.COMPLETE


def transition(
    phase: CapturePhase,
    *,
    is_stable: bool,
    coverage_ratio: float,
    completion_threshold: float = 0.85,
) -> Decision:
    """
    Single transition function of the capture state machine.

    SEEKING -> COMPLETE when coverage reaches the threshold, whatever the stability.
    SEEKING -> CAPTURE_TRIGGERED -> SEEKING when stable and still below threshold;
    the capture is one-shot, the session keeps seeking afterwards.
    COMPLETE is terminal until the session is reset.
    """
    if phase is CapturePhase.COMPLETE:
        return Decision(CapturePhase.COMPLETE, None)

    if coverage_ratio >= completion_threshold:
        return Decision(CapturePhase.COMPLETE, CapturePhase.COMPLETE)

    if is_stable:
        return Decision(CapturePhase.SEEKING, CapturePhase.CAPTURE_TRIGGERED, should_capture=True)

    return Decision(CapturePhase.SEEKING, None)
