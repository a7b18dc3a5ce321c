"""Tests for shotgrade.scoring.exposure module."""

import numpy as np
import pytest

from shotgrade.pixels import PixelBuffer
from shotgrade.scoring.exposure import (
    analyze_clipping,
    analyze_dynamic_range,
    analyze_exposure,
    analyze_exposure_level,
    clipping_severity,
    compute_histograms,
    histogram_shape,
    quick_exposure_check,
)


def make_buffer(w: int = 100, h: int = 100, color: tuple = (128, 128, 128)) -> PixelBuffer:
    """Create a solid RGB buffer."""
    arr = np.zeros((h, w, 3), dtype=np.uint8)
    arr[:, :] = color
    return PixelBuffer.from_array(arr)


def make_split(w: int = 100, h: int = 100) -> PixelBuffer:
    """Left half black, right half white."""
    arr = np.zeros((h, w, 3), dtype=np.uint8)
    arr[:, w // 2 :] = 255
    return PixelBuffer.from_array(arr)


def spike(level: int, percent: float = 100.0) -> tuple[float, ...]:
    lum = [0.0] * 256
    lum[level] = percent
    return tuple(lum)


class TestHistograms:
    def test_buckets_sum_to_100(self):
        rng = np.random.default_rng(3)
        buf = PixelBuffer.from_array(rng.integers(0, 256, size=(40, 50, 3)))
        hist = compute_histograms(buf)
        for channel in (hist.red, hist.green, hist.blue, hist.luminance):
            assert len(channel) == 256
            assert sum(channel) == pytest.approx(100, abs=0.5)

    def test_luminance_weights(self):
        hist = compute_histograms(make_buffer(color=(255, 0, 0)))
        assert hist.red[255] == 100
        assert hist.green[0] == 100
        assert hist.luminance[76] == 100

    def test_gray_buffer(self):
        gray = PixelBuffer.from_array(np.full((10, 10), 42, dtype=np.uint8))
        hist = compute_histograms(gray)
        assert hist.red[42] == hist.luminance[42] == 100
        assert hist.total_pixels == 100


class TestExposureLevel:
    @pytest.mark.parametrize(
        "level, expected",
        [
            (40, "underexposed"),
            (90, "slightly-under"),
            (130, "well-exposed"),
            (170, "slightly-over"),
            (180, "overexposed"),
            (230, "overexposed"),
        ],
    )
    def test_bands(self, level, expected):
        assert analyze_exposure_level(spike(level)).assessment == expected

    def test_well_exposed_has_no_deviation(self):
        assert analyze_exposure_level(spike(130)).deviation == 0

    def test_deviation_clamped(self):
        assert analyze_exposure_level(spike(0)).deviation == 1.0

    def test_zones(self):
        zones = analyze_exposure_level(spike(10)).zones
        assert zones.shadows == 100
        assert zones.midtones == 0
        assert zones.highlights == 0

    def test_empty_histogram(self):
        level = analyze_exposure_level(tuple([0.0] * 256))
        assert level.mean_brightness == 0


class TestHistogramShape:
    def test_single_peak(self):
        assert histogram_shape(spike(128)) == "normal"
        assert histogram_shape(spike(40)) == "low-key"
        assert histogram_shape(spike(220)) == "high-key"

    def test_bimodal(self):
        lum = [0.0] * 256
        lum[30] = 50
        lum[220] = 50
        assert histogram_shape(tuple(lum)) == "bimodal-contrast"

    def test_flat(self):
        assert histogram_shape(tuple([100 / 256] * 256)) == "flat"


class TestClipping:
    @pytest.mark.parametrize(
        "percent, expected",
        [(0.5, "none"), (1, "minor"), (5, "moderate"), (15, "severe"), (30, "critical")],
    )
    def test_severity_bands(self, percent, expected):
        assert clipping_severity(percent) == expected

    def test_tails(self):
        lum = [0.0] * 256
        lum[3] = 10
        lum[252] = 2
        lum[10] = 4
        lum[240] = 1
        lum[128] = 83
        clipping = analyze_clipping(tuple(lum))
        assert clipping.shadows.clipped == 10
        assert clipping.shadows.severity == "moderate"
        assert clipping.shadows.near_clip == 4
        assert clipping.highlights.clipped == 2
        assert clipping.highlights.near_clip == 1
        assert clipping.total_clipped == 12
        assert not clipping.recoverable


class TestDynamicRange:
    def test_full_range(self):
        lum = [0.0] * 256
        lum[0] = 50
        lum[255] = 50
        dr = analyze_dynamic_range(tuple(lum))
        assert (dr.min, dr.max, dr.range) == (0, 255, 255)
        assert dr.percentage == 100
        assert dr.assessment == "excellent"
        assert dr.estimated_stops == 8.0

    def test_noise_floor_ignored(self):
        lum = [0.0] * 256
        lum[0] = 0.05
        lum[100] = 50
        lum[150] = 49.95
        dr = analyze_dynamic_range(tuple(lum))
        assert dr.min == 100
        assert dr.max == 150

    def test_empty_defaults(self):
        dr = analyze_dynamic_range(tuple([0.0] * 256))
        assert (dr.min, dr.max) == (0, 255)


class TestAnalyzeExposure:
    def test_neutral_for_none(self):
        result = analyze_exposure(None)
        assert not result.valid
        assert result.exposure.assessment == "unknown"

    def test_neutral_for_bad_histogram_buffer(self):
        bad = PixelBuffer(width=10, height=10, channels=3, data=b"")
        assert not analyze_exposure(make_buffer(), bad).valid

    def test_uniform_gray(self):
        result = analyze_exposure(make_buffer())
        assert result.valid
        assert result.exposure.assessment == "well-exposed"
        assert result.exposure.zones.midtones == 100
        assert result.dynamic_range.assessment == "very-limited"
        assert result.contrast.level == "very-low"
        assert result.score == 80

    def test_black_frame(self):
        result = analyze_exposure(make_buffer(color=(0, 0, 0)))
        assert result.exposure.assessment == "underexposed"
        assert result.clipping.shadows.severity == "critical"
        assert result.score == 40

    def test_white_frame(self):
        result = analyze_exposure(make_buffer(color=(255, 255, 255)))
        assert result.exposure.assessment == "overexposed"
        assert result.clipping.highlights.clipped == 100
        assert result.score == 35

    def test_split_frame(self):
        result = analyze_exposure(make_split())
        assert result.dynamic_range.percentage == 100
        assert result.clipping.shadows.clipped == 50
        assert result.clipping.highlights.clipped == 50
        assert result.score == 55

    def test_channel_stats_population_std(self):
        result = analyze_exposure(make_split())
        assert result.stats[0].mean == pytest.approx(127.5)
        assert result.stats[0].std == pytest.approx(127.5)

    def test_large_buffer_downsized_for_histograms(self):
        result = analyze_exposure(make_buffer(w=1000, h=500))
        assert result.histogram.total_pixels == 800 * 400

    def test_score_range(self):
        rng = np.random.default_rng(11)
        for _ in range(5):
            buf = PixelBuffer.from_array(rng.integers(0, 256, size=(30, 30, 3)))
            assert 0 <= analyze_exposure(buf).score <= 100

    def test_to_dict(self):
        data = analyze_exposure(make_buffer(w=10, h=10)).to_dict()
        assert data["valid"] is True
        assert len(data["histogram"]["luminance"]) == 256


class TestQuickExposureCheck:
    def test_no_image(self):
        assert quick_exposure_check(None).issue == "no-image"

    @pytest.mark.parametrize(
        "value, ok, issue",
        [
            (10, False, "severely-underexposed"),
            (50, True, "underexposed"),
            (128, True, None),
            (210, True, "overexposed"),
            (240, False, "severely-overexposed"),
        ],
    )
    def test_bands(self, value, ok, issue):
        check = quick_exposure_check(make_buffer(color=(value, value, value)))
        assert check.ok is ok
        assert check.issue == issue
        assert check.value == value
