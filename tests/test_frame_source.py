"""
Tests for the latest-frame producer/consumer harness.
"""
import threading

import numpy as np

from ucscan.system.analyzer import CoverageAnalyzer
from ucscan.system.frame_source import AnalysisWorker, LatestFrameSlot, frame_from_array


def _blank(idx):
    return frame_from_array(idx, np.zeros((8, 8), np.uint8), ts=float(idx))


class TestLatestFrameSlot:
    def test_keeps_only_newest(self):
        slot = LatestFrameSlot()
        for i in range(5):
            slot.put(_blank(i))
        frame = slot.take(timeout=0.1)
        assert frame.idx == 4
        assert slot.dropped == 4
        assert slot.delivered == 1

    def test_take_times_out_when_empty(self):
        slot = LatestFrameSlot()
        assert slot.take(timeout=0.01) is None

    def test_take_wakes_on_put(self):
        slot = LatestFrameSlot()
        got = []
        t = threading.Thread(target=lambda: got.append(slot.take(timeout=5.0)))
        t.start()
        slot.put(_blank(7))
        t.join(5.0)
        assert got and got[0].idx == 7

    def test_close_discards_and_rejects(self):
        slot = LatestFrameSlot()
        slot.put(_blank(0))
        slot.close()
        slot.put(_blank(1))
        assert slot.closed
        assert slot.take(timeout=0.01) is None

    def test_clear(self):
        slot = LatestFrameSlot()
        slot.put(_blank(0))
        slot.clear()
        assert slot.take(timeout=0.01) is None


class TestAnalysisWorker:
    def test_processes_frames_off_thread(self, crop, base_cfg):
        analyzer = CoverageAnalyzer(base_cfg)
        slot = LatestFrameSlot()
        results = []
        done = threading.Event()

        def on_result(r):
            results.append(r)
            if len(results) == 2:
                done.set()

        worker = AnalysisWorker.from_config(analyzer, slot, on_result)
        worker.start()
        try:
            slot.put(frame_from_array(0, crop(60, 60)))
            # wait for the first frame before sending the next so neither is dropped
            for _ in range(500):
                if results:
                    break
                done.wait(0.01)
            slot.put(frame_from_array(1, crop(60, 60)))
            assert done.wait(10.0)
        finally:
            worker.stop(timeout=5.0)
            analyzer.shutdown()

        assert not worker.is_alive()
        assert [r.frame_idx for r in results] == [0, 1]
        assert worker.processed == 2
        assert results[1].coverage_ratio > 0.0

    def test_budget_overrun_is_counted(self, crop, base_cfg):
        analyzer = CoverageAnalyzer(base_cfg)
        slot = LatestFrameSlot()
        done = threading.Event()
        worker = AnalysisWorker(analyzer, slot, lambda r: done.set(), budget_ms=0.0)
        worker.start()
        try:
            slot.put(frame_from_array(0, crop(60, 60)))
            assert done.wait(10.0)
        finally:
            worker.stop(timeout=5.0)
            analyzer.shutdown()
        assert worker.overruns == 1

    def test_stops_when_analyzer_shut_down(self, crop, base_cfg):
        analyzer = CoverageAnalyzer(base_cfg)
        analyzer.shutdown()
        slot = LatestFrameSlot()
        worker = AnalysisWorker(analyzer, slot)
        worker.start()
        slot.put(frame_from_array(0, crop(60, 60)))
        worker.join(5.0)
        assert not worker.is_alive()
        assert worker.processed == 0
