from __future__ import annotations

import argparse
import json
import logging
from dataclasses import asdict
from pathlib import Path

import cv2
import matplotlib.pyplot as plt

try:
    import yaml
except ImportError as ex:
    raise ImportError("PyYAML is required. Install with: pip install pyyaml") from ex

from ucscan.dataset.sequence import FrameSequence
from ucscan.system.analyzer import CoverageAnalyzer
from ucscan.system.frame_source import frame_from_array
from ucscan.system.guidance import guidance_from_result, progress_from_result
from ucscan.system.results import AnalysisResult, CaptureSignal
from ucscan.system.telemetry import Telemetry


class CoverageVisualizer:
    def __init__(self):
        plt.ion()
        self.fig = plt.figure(figsize=(12, 5))
        self.ax1 = self.fig.add_subplot(121)
        self.ax2 = self.fig.add_subplot(122)

        self.ax1.set_xlabel('Frame')
        self.ax1.set_ylabel('Coverage')
        self.ax1.set_title('Coverage ratio')

        self.ax2.set_title('Coverage mask')
        self.ax2.axis('off')

    def update(self, ratios: list[float], completion_threshold: float, mask=None):
        if len(ratios) < 2:
            return

        self.ax1.clear()
        self.ax1.set_xlabel('Frame')
        self.ax1.set_ylabel('Coverage')
        self.ax1.set_title(f'Coverage ratio ({len(ratios)} frames, now {ratios[-1]:.0%})')
        self.ax1.plot(range(len(ratios)), ratios, 'b-', linewidth=1.5, alpha=0.7)
        self.ax1.axhline(completion_threshold, color='g', linestyle='--', label='Completion')
        self.ax1.set_ylim(0.0, 1.05)
        self.ax1.grid(True)
        self.ax1.legend()

        if mask is not None:
            self.ax2.clear()
            self.ax2.set_title('Coverage mask')
            self.ax2.imshow(mask, cmap='jet', vmin=0, vmax=255)
            self.ax2.axis('off')

        plt.pause(0.001)

    def close(self):
        plt.ioff()
        plt.show()


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--config", type=str, default="configs/default.yaml")
    ap.add_argument("--input", type=str, required=True, help="Image directory (optionally with rgb.txt) or video file")
    ap.add_argument("--out_dir", type=str, default="outputs")
    ap.add_argument("--name", type=str, default=None, help="Output sub-directory name (defaults to input name)")
    ap.add_argument("--visualize", action="store_true", help="Enable live coverage plot")
    ap.add_argument("--viz_update_every", type=int, default=10, help="Update visualization every N frames")
    ap.add_argument("--log_every", type=int, default=50, help="Log progress every N frames")
    ap.add_argument("--reset_every", type=int, default=0, help="Start a new session every N frames (0 = never)")
    ap.add_argument("--verbose", action="store_true", help="Enable library debug logging")
    args = ap.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    print(f"[INFO] Loading config: {args.config}")
    with open(args.config, "r", encoding="utf-8") as f:
        cfg = yaml.safe_load(f) or {}

    run_name = args.name or Path(args.input).stem
    out_dir = Path(args.out_dir) / run_name
    out_dir.mkdir(parents=True, exist_ok=True)
    print(f"[INFO] Output dir: {out_dir}")

    ds_cfg = cfg.get("dataset", {}) or {}
    print(f"[INFO] Loading frames: {args.input}")
    seq = FrameSequence(args.input, fps=float(ds_cfg.get("fps", 30.0)))
    print(f"[INFO] Sequence frames: {len(seq)}")

    captures: list[CaptureSignal] = []
    telemetry = Telemetry()
    analyzer = CoverageAnalyzer(cfg, on_capture=captures.append, telemetry=telemetry)

    visualizer = CoverageVisualizer() if args.visualize else None
    threshold = float((cfg.get("coverage", {}) or {}).get("completion_threshold", 0.85))
    motion_scale = float((cfg.get("guidance", {}) or {}).get("motion_scale", 100.0))

    start = int(ds_cfg.get("start", 0))
    step_stride = int(ds_cfg.get("step", 1))
    max_frames = ds_cfg.get("max_frames", None)
    if max_frames is not None:
        max_frames = int(max_frames)

    ratios: list[float] = []
    frame_count = 0
    last: AnalysisResult | None = None

    print(f"[INFO] Starting loop: start={start} step={step_stride} max_frames={max_frames}")
    with analyzer:
        for idx, ts, img_gray in seq.iter_gray(start=start, step=step_stride, max_frames=max_frames):
            if args.reset_every > 0 and frame_count > 0 and frame_count % args.reset_every == 0:
                sid = analyzer.reset()
                print(f"[INFO] Reset -> session {sid}")

            last = analyzer.analyze(frame_from_array(idx, img_gray, ts))
            ratios.append(last.coverage_ratio)
            frame_count += 1

            if args.log_every > 0 and (frame_count % args.log_every == 0):
                cue = guidance_from_result(last, motion_scale=motion_scale)
                readout = progress_from_result(last, captured=analyzer.capture_count)
                print(f"[INFO] Frame {frame_count} / {max_frames if max_frames else '?'} {readout.as_text()} zone={cue.zone.value}")

            if visualizer is not None and frame_count % args.viz_update_every == 0:
                visualizer.update(ratios, threshold, analyzer.coverage_mask())

            if last.is_complete and not (cfg.get("dataset", {}) or {}).get("continue_after_complete", False):
                print(f"[INFO] Coverage target reached at frame {frame_count} ({last.coverage_ratio:.1%})")
                break

        heatmap = analyzer.heatmap()
        final_mask = analyzer.coverage_mask()

    # Save outputs
    metrics_path = out_dir / "metrics.json"
    captures_path = out_dir / "captures.json"
    cfg_path = out_dir / "config_used.yaml"
    heatmap_path = out_dir / "heatmap.png"
    summary_path = out_dir / "summary.json"

    with open(metrics_path, "w", encoding="utf-8") as f:
        json.dump(telemetry.frames, f, indent=2)

    with open(captures_path, "w", encoding="utf-8") as f:
        json.dump([asdict(c) for c in captures], f, indent=2)

    with open(cfg_path, "w", encoding="utf-8") as f:
        yaml.safe_dump(cfg, f, sort_keys=False)

    print(f"[OK] wrote: {metrics_path}")
    print(f"[OK] wrote: {captures_path}")
    if heatmap is not None:
        cv2.imwrite(str(heatmap_path), heatmap)
        print(f"[OK] wrote: {heatmap_path}")

    if last is not None:
        with open(summary_path, "w", encoding="utf-8") as f:
            json.dump(last.to_dict(), f, indent=2)
        print(f"[OK] wrote: {summary_path}")
        print(f"[INFO] Final coverage {last.coverage_ratio:.1%}, {len(captures)} captures, {len(last.gaps)} gaps")

    # Keep visualization window open if enabled
    if visualizer is not None:
        print("[INFO] Showing final coverage. Close the window to exit.")
        visualizer.update(ratios, threshold, final_mask)
        visualizer.close()


if __name__ == "__main__":
    main()
