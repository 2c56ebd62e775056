from .results import AnalysisResult


class Telemetry:
    def __init__(self):
        self.frames = []

    def log_frame(self, idx: int, rec: dict):
        rec["frame_idx"] = idx
        self.frames.append(rec)

    def log_result(self, result: AnalysisResult, **extra):
        rec = {
            "session_id": result.session_id,
            "coverage_ratio": float(result.coverage_ratio),
            "motion": result.motion.to_dict(),
            "is_stable": bool(result.is_stable),
            "should_capture": bool(result.should_capture),
            "phase": result.phase.name,
            "num_gaps": len(result.gaps),
            "degraded": bool(result.degraded),
        }
        rec.update(extra)
        self.log_frame(result.frame_idx, rec)
