"""
Pytest fixtures for coverage tracking tests.
"""
import cv2
import numpy as np
import pytest

from ucscan.system.state import FeatureSet


def _textured(h, w, seed):
    rng = np.random.default_rng(seed)
    noise = rng.integers(0, 256, size=(h, w), dtype=np.uint8)
    blurred = cv2.GaussianBlur(noise, (0, 0), 1.5)
    return cv2.normalize(blurred, None, 0, 255, cv2.NORM_MINMAX)


@pytest.fixture
def canvas():
    """Large blurred-noise texture standing in for an undercarriage surface."""
    return _textured(400, 480, seed=7)


@pytest.fixture
def crop(canvas):
    """Cut a 240x320 view out of the canvas with its top-left corner at (x, y)."""
    def _crop(x, y, h=240, w=320):
        return np.ascontiguousarray(canvas[y:y + h, x:x + w])
    return _crop


@pytest.fixture
def make_features():
    """Synthetic FeatureSet with random 32-byte descriptors."""
    def _make(n, seed=0, pts=None, descriptors=None):
        rng = np.random.default_rng(seed)
        default_pts = rng.uniform(0, 300, size=(n, 2)).astype(np.float32)
        default_descriptors = rng.integers(0, 256, size=(n, 32), dtype=np.uint8)
        if pts is None:
            pts = default_pts
        if descriptors is None:
            descriptors = default_descriptors
        return FeatureSet(
            pts=np.asarray(pts, dtype=np.float32),
            angles=np.zeros((n,), np.float32),
            descriptors=np.asarray(descriptors, dtype=np.uint8),
        )
    return _make


@pytest.fixture
def base_cfg():
    return {
        "orb": {"nfeatures": 500},
        "coverage": {"completion_threshold": 0.85},
        "gaps": {"min_area": 100},
    }
