# src/ucscan/modules/orb_features.py
from __future__ import annotations

import cv2
import numpy as np

from ..system.state import FeatureSet


class FeatureExtractor:
    """ORB keypoints + binary descriptors for one luminance frame."""

    def __init__(
        self,
        *,
        nfeatures: int = 500,
        scaleFactor: float = 1.2,
        nlevels: int = 8,
        edgeThreshold: int = 31,
        fastThreshold: int = 20,
    ):
        self.nfeatures = nfeatures
        self._orb = cv2.ORB_create(
            nfeatures=nfeatures,
            scaleFactor=scaleFactor,
            nlevels=nlevels,
            edgeThreshold=edgeThreshold,
            fastThreshold=fastThreshold,
        )

    @classmethod
    def from_config(cls, cfg: dict) -> "FeatureExtractor":
        orb_cfg = cfg.get("orb", {}) or {}
        return cls(
            nfeatures=int(orb_cfg.get("nfeatures", 500)),
            scaleFactor=float(orb_cfg.get("scaleFactor", 1.2)),
            nlevels=int(orb_cfg.get("nlevels", 8)),
            edgeThreshold=int(orb_cfg.get("edgeThreshold", 31)),
            fastThreshold=int(orb_cfg.get("fastThreshold", 20)),
        )

    def extract(self, img_gray_u8: np.ndarray) -> FeatureSet:
        """
        Args:
            img_gray_u8: uint8 grayscale image, shape (H,W)

        Returns:
            FeatureSet in detector order; empty when nothing was found.
        """
        if img_gray_u8 is None:
            raise ValueError("Input image is None")
        if img_gray_u8.ndim != 2:
            raise ValueError("FeatureExtractor expects grayscale images (H,W).")

        kps, des = self._orb.detectAndCompute(img_gray_u8, None)
        if not kps or des is None:
            return FeatureSet.empty()

        pts = np.array([kp.pt for kp in kps], dtype=np.float32).reshape(-1, 2)
        angles = np.array([kp.angle for kp in kps], dtype=np.float32)
        return FeatureSet(pts=pts, angles=angles, descriptors=des)


def match_descriptors(des_prev: np.ndarray, des_cur: np.ndarray) -> list:
    """
    Brute-force nearest neighbour under Hamming distance, one best match per
    previous descriptor. Matcher order is kept (no sort by distance).
    """
    bf = cv2.BFMatcher(cv2.NORM_HAMMING, crossCheck=False)
    return list(bf.match(des_prev, des_cur))
