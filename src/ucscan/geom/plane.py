import math

import numpy as np


def translation_affine(dx: float, dy: float) -> np.ndarray:
    """2x3 affine matrix shifting a raster by (dx, dy) pixels, no rotation or scale."""
    A = np.zeros((2, 3), dtype=np.float32)
    A[0, 0] = 1.0
    A[1, 1] = 1.0
    A[0, 2] = dx
    A[1, 2] = dy
    return A


def wrap_angle_rad(a: float) -> float:
    # into (-pi, pi]
    if a > math.pi:
        a -= 2.0 * math.pi
    if a <= -math.pi:
        a += 2.0 * math.pi
    return a


def segment_angle(p0: np.ndarray, p1: np.ndarray) -> float:
    return math.atan2(float(p1[1] - p0[1]), float(p1[0] - p0[0]))
