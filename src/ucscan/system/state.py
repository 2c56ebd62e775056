from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field

import cv2
import numpy as np

from .coverage import CoverageMap
from .decision import CapturePhase

logger = logging.getLogger(__name__)

_session_ids = itertools.count(1)


@dataclass(frozen=True)
class FrameData:
    idx: int
    ts: float
    img_gray: np.ndarray

    @classmethod
    def from_image(cls, idx: int, ts: float, img: np.ndarray) -> "FrameData":
        if img is None:
            raise ValueError("Input image is None")
        if img.ndim == 3 and img.shape[2] == 3:
            img = cv2.cvtColor(img, cv2.COLOR_BGR2GRAY)
        elif img.ndim != 2:
            raise ValueError(f"Expected a luminance (H,W) or BGR (H,W,3) image, got shape {img.shape}")
        if img.dtype != np.uint8:
            img = np.clip(img, 0, 255).astype(np.uint8)
        # own a private copy so the frame cannot change underneath the session
        img = np.array(img, dtype=np.uint8, order="C", copy=True)
        img.setflags(write=False)
        return cls(idx=idx, ts=ts, img_gray=img)

    @property
    def shape(self) -> tuple[int, int]:
        return self.img_gray.shape[:2]


@dataclass
class FeatureSet:
    pts: np.ndarray                  # (N,2) float32 keypoint positions
    angles: np.ndarray               # (N,) float32 keypoint orientations, degrees
    descriptors: np.ndarray | None   # (N,D) uint8 binary descriptors

    @classmethod
    def empty(cls) -> "FeatureSet":
        return cls(np.zeros((0, 2), np.float32), np.zeros((0,), np.float32), None)

    def __len__(self) -> int:
        return int(self.pts.shape[0])

    @property
    def is_empty(self) -> bool:
        return self.descriptors is None or len(self.descriptors) == 0


@dataclass
class SessionState:
    session_id: int = field(default_factory=lambda: next(_session_ids))
    frame_shape: tuple[int, int] | None = None
    prev_features: FeatureSet | None = None
    coverage: CoverageMap | None = None
    phase: CapturePhase = CapturePhase.SEEKING
    frame_count: int = 0
    capture_count: int = 0
    released: bool = False

    @property
    def coverage_ratio(self) -> float:
        coverage = self.coverage
        return 0.0 if coverage is None else coverage.ratio()

    def release(self) -> None:
        """
        Drop feature history and the coverage buffer.

        Release errors are logged and swallowed; every buffer is still attempted.
        Safe to call more than once.
        """
        # flag first so a concurrent step sees it before it could attach a buffer
        self.released = True
        coverage, self.coverage = self.coverage, None
        if coverage is not None:
            try:
                coverage.release()
            except Exception:
                logger.exception("Failed to release coverage mask for session %d", self.session_id)
        self.prev_features = None
        logger.debug("Session %d released", self.session_id)
