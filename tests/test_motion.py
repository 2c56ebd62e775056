"""
Tests for frame-to-frame motion estimation.
"""
import math

import numpy as np
import pytest

from ucscan.modules import orb_features
from ucscan.modules.motion import estimate_motion
from ucscan.modules.orb_features import FeatureExtractor
from ucscan.system.results import MotionEstimate
from ucscan.system.state import FeatureSet


def _rotate(pts, deg, center=(150.0, 150.0)):
    a = math.radians(deg)
    c, s = math.cos(a), math.sin(a)
    p = pts.astype(np.float64) - center
    out = np.stack([c * p[:, 0] - s * p[:, 1], s * p[:, 0] + c * p[:, 1]], axis=1) + center
    return out.astype(np.float32)


class TestInsufficientEvidence:
    """No motion is asserted without enough matches."""

    def test_empty_current_set(self, make_features):
        prev = make_features(50)
        assert estimate_motion(prev, FeatureSet.empty()) == MotionEstimate.zero()

    def test_missing_previous_set(self, make_features):
        assert estimate_motion(None, make_features(50)) == MotionEstimate.zero()

    def test_fewer_than_ten_raw_matches(self, make_features):
        prev = make_features(8, seed=1)
        cur = make_features(8, seed=1, pts=prev.pts + 3.0)
        m = estimate_motion(prev, cur)
        assert (m.dx, m.dy, m.rotation_deg) == (0.0, 0.0, 0.0)
        assert m.confidence == 0.0

    def test_fewer_than_five_filtered_matches(self, make_features):
        prev = make_features(30, seed=2)
        cur = make_features(30, seed=3)   # unrelated descriptors, distances ~128 bits
        m = estimate_motion(prev, cur)
        assert m == MotionEstimate.zero()


class TestTranslation:
    def test_identical_sets_give_zero_motion_full_confidence(self, make_features):
        prev = make_features(60, seed=4)
        cur = make_features(60, seed=4)
        m = estimate_motion(prev, cur)
        assert m.dx == pytest.approx(0.0)
        assert m.dy == pytest.approx(0.0)
        assert m.rotation_deg == pytest.approx(0.0)
        assert m.confidence == pytest.approx(1.0)

    def test_mean_delta(self, make_features):
        prev = make_features(60, seed=5)
        cur = make_features(60, seed=5, pts=prev.pts + np.array([4.0, -2.0], np.float32))
        m = estimate_motion(prev, cur)
        assert m.dx == pytest.approx(4.0, abs=1e-4)
        assert m.dy == pytest.approx(-2.0, abs=1e-4)
        assert m.rotation_deg == pytest.approx(0.0, abs=1e-3)

    def test_confidence_is_share_of_surviving_matches(self, make_features):
        rng = np.random.default_rng(6)
        shared = rng.integers(0, 256, size=(20, 32), dtype=np.uint8)
        unmatched = rng.integers(0, 256, size=(20, 32), dtype=np.uint8)
        prev = make_features(40, seed=6, descriptors=np.vstack([shared, unmatched]))
        cur_pts = prev.pts[:20] + np.array([1.5, 2.5], np.float32)
        cur = make_features(20, seed=6, pts=cur_pts, descriptors=shared)

        m = estimate_motion(prev, cur)
        assert m.confidence == pytest.approx(0.5)
        assert m.dx == pytest.approx(1.5, abs=1e-4)
        assert m.dy == pytest.approx(2.5, abs=1e-4)

    def test_distance_cutoff_is_configurable(self, make_features):
        prev = make_features(30, seed=2)
        cur = make_features(30, seed=3)
        m = estimate_motion(prev, cur, max_match_distance=257)
        assert m.confidence == pytest.approx(1.0)


class TestRotation:
    def test_rotation_about_center(self, make_features):
        prev = make_features(60, seed=8)
        cur = make_features(60, seed=8, pts=_rotate(prev.pts, 10.0))
        m = estimate_motion(prev, cur)
        assert m.rotation_deg == pytest.approx(10.0, abs=1e-2)

    def test_rotation_is_signed(self, make_features):
        prev = make_features(60, seed=9)
        cur = make_features(60, seed=9, pts=_rotate(prev.pts, -25.0))
        m = estimate_motion(prev, cur)
        assert m.rotation_deg == pytest.approx(-25.0, abs=1e-2)

    def test_large_rotation_stays_in_range(self, make_features):
        prev = make_features(60, seed=10)
        cur = make_features(60, seed=10, pts=_rotate(prev.pts, 179.0))
        m = estimate_motion(prev, cur)
        assert -180.0 <= m.rotation_deg <= 180.0
        assert abs(m.rotation_deg) == pytest.approx(179.0, abs=1e-2)


class TestFailures:
    def test_matcher_error_becomes_zero_motion(self, make_features, monkeypatch):
        def boom(*args, **kwargs):
            raise RuntimeError("matcher exploded")

        monkeypatch.setattr(orb_features, "match_descriptors", boom)
        m = estimate_motion(make_features(40, seed=1), make_features(40, seed=1))
        assert m == MotionEstimate.zero()

    def test_incompatible_descriptors_do_not_raise(self, make_features):
        prev = make_features(40, seed=1)
        cur = make_features(40, seed=1, descriptors=np.zeros((40, 16), np.uint8))
        assert estimate_motion(prev, cur) == MotionEstimate.zero()


class TestWithImages:
    """ORB on synthetic texture."""

    def test_identical_frames(self, crop):
        ex = FeatureExtractor(nfeatures=500)
        img = crop(60, 60)
        m = estimate_motion(ex.extract(img), ex.extract(img))
        assert abs(m.dx) < 0.5
        assert abs(m.dy) < 0.5
        assert abs(m.rotation_deg) < 0.5
        assert m.confidence > 0.9

    def test_shifted_view(self, crop):
        ex = FeatureExtractor(nfeatures=500)
        prev = ex.extract(crop(60, 60))
        # window moves up-left, so content moves right/down in the image
        cur = ex.extract(crop(55, 57))
        m = estimate_motion(prev, cur)
        assert m.dx == pytest.approx(5.0, abs=1.0)
        assert m.dy == pytest.approx(3.0, abs=1.0)
        assert 0.0 < m.confidence <= 1.0

    def test_flat_frame_has_no_features(self):
        ex = FeatureExtractor()
        fs = ex.extract(np.full((240, 320), 128, np.uint8))
        assert fs.is_empty
        assert len(fs) == 0

    def test_extractor_rejects_color_input(self):
        with pytest.raises(ValueError):
            FeatureExtractor().extract(np.zeros((10, 10, 3), np.uint8))
