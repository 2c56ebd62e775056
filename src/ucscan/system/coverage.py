from __future__ import annotations

import logging

import cv2
import numpy as np

from ..geom.plane import translation_affine
from .results import MotionEstimate

logger = logging.getLogger(__name__)

OBSERVED = 255


class SessionReleasedError(RuntimeError):
    """Raised when a released session buffer is used again."""


class CoverageMap:
    """
    Session-long record of which image-plane pixels have been observed.

    The mask is uint8 with values {0, 255}, same size as the frames. Pixels are only
    ever set; the sole way back to zero is releasing the map and allocating a new one.

    Alignment is translation-only: each frame's footprint is shifted by the inverse of
    the estimated (dx, dy) and OR-ed in. Rotation is not applied to the warp, so coverage
    is approximate when the operator twists the camera.
    """

    def __init__(self, mask: np.ndarray):
        if mask.ndim != 2 or mask.dtype != np.uint8:
            raise ValueError("CoverageMap expects a uint8 (H,W) mask.")
        self._mask: np.ndarray | None = mask
        self._footprint: np.ndarray | None = np.full(mask.shape, OBSERVED, dtype=np.uint8)

    @classmethod
    def zeros(cls, shape: tuple[int, int]) -> "CoverageMap":
        h, w = int(shape[0]), int(shape[1])
        if h <= 0 or w <= 0:
            raise ValueError(f"Invalid coverage shape: {shape}")
        logger.debug("Allocating %dx%d coverage mask", w, h)
        return cls(np.zeros((h, w), dtype=np.uint8))

    @property
    def released(self) -> bool:
        return self._mask is None

    @property
    def shape(self) -> tuple[int, int]:
        if self._mask is None:
            raise SessionReleasedError("Coverage mask has been released.")
        return self._mask.shape

    @property
    def mask(self) -> np.ndarray:
        """Read-only view of the accumulated mask."""
        if self._mask is None:
            raise SessionReleasedError("Coverage mask has been released.")
        view = self._mask.view()
        view.setflags(write=False)
        return view

    def update(self, motion: MotionEstimate) -> None:
        if self._mask is None or self._footprint is None:
            raise SessionReleasedError("Coverage mask has been released.")

        h, w = self._mask.shape
        # shift the current footprint back into the session reference frame
        aligned = cv2.warpAffine(
            self._footprint,
            translation_affine(-motion.dx, -motion.dy),
            (w, h),
            flags=cv2.INTER_NEAREST,
            borderMode=cv2.BORDER_CONSTANT,
            borderValue=0,
        )
        cv2.bitwise_or(self._mask, aligned, dst=self._mask)

    def ratio(self) -> float:
        mask = self._mask
        if mask is None or mask.size == 0:
            return 0.0
        r = float(cv2.countNonZero(mask)) / float(mask.size)
        return min(max(r, 0.0), 1.0)

    def heatmap(self) -> np.ndarray:
        return coverage_heatmap(self.mask)

    def release(self) -> None:
        self._mask = None
        self._footprint = None

    def __enter__(self) -> "CoverageMap":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


def coverage_heatmap(mask: np.ndarray, colormap: int = cv2.COLORMAP_JET) -> np.ndarray:
    """Color-mapped BGR rendering of a coverage mask."""
    if mask is None:
        raise ValueError("Coverage mask is None")
    return cv2.applyColorMap(np.ascontiguousarray(mask), colormap)
