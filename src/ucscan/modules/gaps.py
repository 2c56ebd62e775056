# src/ucscan/modules/gaps.py
from __future__ import annotations

import cv2
import numpy as np

from ..system.results import GapRegion


def find_gaps(mask: np.ndarray | None, *, min_area: int = 100) -> list[GapRegion]:
    """
    Rectangles over still-unseen parts of a coverage mask.

    The mask is inverted and external contours of the unseen area are taken in
    extractor order. A component whose bounding rectangle is entirely unseen is
    reported as that rectangle. Otherwise (L-shaped strips, covered islands) the
    component is cut into row bands and each unseen run becomes its own rectangle,
    so no returned rectangle contains an observed pixel.

    Keep or drop is decided per component: its bounding rectangle must have
    area > min_area, and then all of its rectangles are reported, however thin.
    No mask yet -> [].
    """
    if mask is None:
        return []
    if mask.ndim != 2:
        raise ValueError("find_gaps expects a single-channel (H,W) mask.")

    gap_map = cv2.bitwise_not(np.ascontiguousarray(mask, dtype=np.uint8))
    gap_map[gap_map != 255] = 0   # only fully unset pixels count as gaps

    contours, _ = cv2.findContours(gap_map, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)

    out: list[GapRegion] = []
    for contour in contours:
        x, y, w, h = cv2.boundingRect(contour)
        if w * h <= min_area:
            continue

        roi = gap_map[y:y + h, x:x + w]
        if cv2.countNonZero(roi) == w * h:
            out.append(GapRegion(int(x), int(y), int(w), int(h)))
            continue

        component = np.zeros((h, w), dtype=np.uint8)
        cv2.drawContours(component, [contour], -1, 255, thickness=cv2.FILLED, offset=(-x, -y))
        cv2.bitwise_and(component, roi, dst=component)
        out.extend(_band_rectangles(component, x, y))
    return out


def _band_rectangles(component: np.ndarray, x0: int, y0: int) -> list[GapRegion]:
    rects: list[GapRegion] = []
    h = component.shape[0]
    band_start = 0
    for row in range(1, h + 1):
        if row < h and np.array_equal(component[row], component[band_start]):
            continue
        for c0, c1 in _runs(component[band_start]):
            rects.append(GapRegion(x0 + c0, y0 + band_start, c1 - c0, row - band_start))
        band_start = row
    return rects


def _runs(row: np.ndarray) -> list[tuple[int, int]]:
    # [start, end) column ranges of nonzero pixels
    on = np.concatenate(([0], (row > 0).astype(np.int8), [0]))
    edges = np.flatnonzero(np.diff(on))
    return [(int(s), int(e)) for s, e in zip(edges[::2], edges[1::2])]
