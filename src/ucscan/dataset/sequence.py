from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Iterator, List, Tuple

import cv2
import numpy as np

IMAGE_EXTS = (".png", ".jpg", ".jpeg", ".bmp", ".tif", ".tiff")


@dataclass
class FrameEntry:
    ts: float
    path: str


def _read_list_txt(list_txt_path: str) -> List[FrameEntry]:
    entries: List[FrameEntry] = []
    base = os.path.dirname(list_txt_path)

    with open(list_txt_path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if (not line) or line.startswith("#"):
                continue
            parts = line.split()
            if len(parts) < 2:
                continue
            ts = float(parts[0])
            rel = parts[1]
            entries.append(FrameEntry(ts=ts, path=os.path.join(base, rel)))
    return entries


def _scan_image_dir(img_dir: str, fps: float) -> List[FrameEntry]:
    names = sorted(n for n in os.listdir(img_dir) if n.lower().endswith(IMAGE_EXTS))
    return [FrameEntry(ts=i / fps, path=os.path.join(img_dir, n)) for i, n in enumerate(names)]


class FrameSequence:
    """
    Recorded scan frames from disk.

    `path` may be a directory with an rgb.txt list ("timestamp relpath" per line),
    a plain directory of images (sorted by name, timestamps from `fps`), or a video file.
    """

    def __init__(self, path: str, *, fps: float = 30.0, list_name: str = "rgb.txt"):
        if fps <= 0:
            raise ValueError("fps must be positive")
        self.path = path
        self.fps = fps
        self.entries: List[FrameEntry] = []
        self.is_video = False

        if os.path.isdir(path):
            list_txt = os.path.join(path, list_name)
            if os.path.isfile(list_txt):
                self.entries = _read_list_txt(list_txt)
            else:
                self.entries = _scan_image_dir(path, fps)
        elif os.path.isfile(path):
            self.is_video = True
            cap = cv2.VideoCapture(path)
            try:
                if not cap.isOpened():
                    raise FileNotFoundError(f"Failed to open video: {path}")
                self._num_video_frames = int(cap.get(cv2.CAP_PROP_FRAME_COUNT))
                video_fps = cap.get(cv2.CAP_PROP_FPS)
                if video_fps and video_fps > 0:
                    self.fps = float(video_fps)
            finally:
                cap.release()
        else:
            raise FileNotFoundError(f"No such frame source: {path}")

    def __len__(self) -> int:
        return self._num_video_frames if self.is_video else len(self.entries)

    def iter_gray(
        self,
        *,
        start: int = 0,
        step: int = 1,
        max_frames: int | None = None,
    ) -> Iterator[Tuple[int, float, np.ndarray]]:
        if step < 1:
            raise ValueError("step must be >= 1")
        if self.is_video:
            yield from self._iter_video(start=start, step=step, max_frames=max_frames)
            return

        end = len(self.entries) if max_frames is None else min(len(self.entries), start + max_frames * step)
        idx = 0
        for i in range(start, end, step):
            e = self.entries[i]
            img = cv2.imread(e.path, cv2.IMREAD_GRAYSCALE)
            if img is None:
                raise FileNotFoundError(f"Failed to read image: {e.path}")
            yield idx, e.ts, img
            idx += 1

    def _iter_video(self, *, start: int, step: int, max_frames: int | None) -> Iterator[Tuple[int, float, np.ndarray]]:
        cap = cv2.VideoCapture(self.path)
        try:
            i = 0
            idx = 0
            while max_frames is None or idx < max_frames:
                ok, frame = cap.read()
                if not ok:
                    break
                if i >= start and (i - start) % step == 0:
                    yield idx, i / self.fps, cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)
                    idx += 1
                i += 1
        finally:
            cap.release()
