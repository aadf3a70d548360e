"""Tests for the grid Harris corner detector."""

import numpy as np
import pytest

from smartnav.config import DetectorConfig
from smartnav.frontend.vo.feature_detector import FeatureDetector, as_gray_image


@pytest.fixture
def textured_image() -> np.ndarray:
    """Random texture with plenty of corners."""
    rng = np.random.default_rng(42)
    return rng.integers(0, 256, size=(64, 80), dtype=np.uint8)


class TestAsGrayImage:
    """Test suite for buffer-to-image conversion."""

    def test_bytes_buffer(self):
        """Test that a flat byte buffer is reshaped row-major."""
        image = as_gray_image(bytes(range(6)), width=3, height=2)

        assert image.shape == (2, 3)
        assert image[1, 0] == 3

    def test_short_buffer(self):
        """Test that a buffer smaller than width * height is rejected."""
        assert as_gray_image(bytes(5), width=3, height=2) is None

    def test_invalid_dimensions(self):
        """Test that non-positive dimensions are rejected."""
        assert as_gray_image(bytes(10), width=0, height=2) is None


class TestFeatureDetector:
    """Test suite for FeatureDetector."""

    def test_flat_image_has_no_features(self):
        """Test that a constant image yields no corners."""
        detector = FeatureDetector()

        features = detector.detect(np.full((48, 64), 128, dtype=np.uint8))

        assert features == []

    def test_short_buffer_returns_empty(self):
        """Test that a malformed frame yields an empty list."""
        detector = FeatureDetector()

        assert detector.detect(bytes(100), width=64, height=48) == []

    def test_detects_features(self, textured_image: np.ndarray):
        """Test that a textured image yields corners with descriptors."""
        detector = FeatureDetector()

        features = detector.detect(textured_image)

        assert 0 < len(features) <= detector.max_features
        for f in features:
            assert f.response > 30.0
            assert f.descriptor is not None
            assert f.descriptor.shape == (64,)
            assert f.descriptor.dtype == np.uint8

    def test_sorted_by_response(self, textured_image: np.ndarray):
        """Test that features come out strongest first."""
        features = FeatureDetector().detect(textured_image)

        responses = [f.response for f in features]
        assert responses == sorted(responses, reverse=True)

    def test_grid_and_border(self, textured_image: np.ndarray):
        """Test that only grid pixels away from the border are evaluated."""
        cfg = DetectorConfig()
        features = FeatureDetector(cfg).detect(textured_image)
        height, width = textured_image.shape

        for f in features:
            assert (f.x - cfg.window_size) % cfg.step_size == 0
            assert (f.y - cfg.window_size) % cfg.step_size == 0
            assert cfg.window_size <= f.x < width - cfg.window_size
            assert cfg.window_size <= f.y < height - cfg.window_size

    def test_max_features(self, textured_image: np.ndarray):
        """Test that the feature count is capped."""
        detector = FeatureDetector(DetectorConfig(max_features=5))

        features = detector.detect(textured_image)

        assert len(features) == 5

    def test_max_features_keeps_first_in_scan_order(self, textured_image: np.ndarray):
        """Test that the cap keeps the first corners in row-major order."""
        capped = FeatureDetector(DetectorConfig(max_features=5)).detect(textured_image)
        full = FeatureDetector(DetectorConfig(max_features=10_000)).detect(textured_image)

        scan_order = sorted(full, key=lambda f: (f.y, f.x))[:5]
        assert {f.pt for f in capped} == {f.pt for f in scan_order}

    def test_flat_buffer_matches_array(self, textured_image: np.ndarray):
        """Test that byte buffers and arrays give the same result."""
        height, width = textured_image.shape
        detector = FeatureDetector()

        from_array = detector.detect(textured_image)
        from_bytes = detector.detect(textured_image.tobytes(), width, height)

        assert [f.pt for f in from_array] == [f.pt for f in from_bytes]

    def test_single_corner_response(self):
        """Test the response of an isolated bright square corner."""
        image = np.zeros((32, 32), dtype=np.uint8)
        image[16:, 16:] = 200
        detector = FeatureDetector(DetectorConfig(step_size=1))

        features = detector.detect(image)

        assert len(features) > 0
        strongest = features[0]
        assert abs(strongest.x - 15) <= 3
        assert abs(strongest.y - 15) <= 3

    def test_descriptor_clamped_at_border(self):
        """Test that patch samples outside the image are clamped to the edge."""
        image = (np.arange(20)[:, None] * 10 + np.arange(20)[None, :]).astype(np.uint8)
        detector = FeatureDetector()

        descriptor = detector.extract_descriptor(image, 0, 0)

        idx = np.clip(np.arange(-4, 4), 0, 19)
        expected = image[np.ix_(idx, idx)].reshape(-1)
        np.testing.assert_array_equal(descriptor, expected)

    def test_descriptor_interior(self):
        """Test that interior patches cover offsets [-4, 4)."""
        image = (np.arange(20)[:, None] * 10 + np.arange(20)[None, :]).astype(np.uint8)

        descriptor = FeatureDetector().extract_descriptor(image, 10, 8)

        np.testing.assert_array_equal(descriptor, image[4:12, 6:14].reshape(-1))
