"""Tests for shotgrade.scoring.sharpness module."""

import numpy as np
import pytest
from scipy import ndimage

from shotgrade.pixels import PixelBuffer
from shotgrade.scoring.sharpness import (
    analyze_edges,
    analyze_regions,
    analyze_sharpness,
    compute_laplacian_variance,
    determine_focus_plane,
    quick_sharpness_check,
    region_position,
    seeded_sampler,
    sharpness_assessment,
    sharpness_score,
    stride_sampler,
)
from shotgrade.scoring.types import BlurAnalysis, EdgeStats, FocusPlane


def make_uniform(w: int = 100, h: int = 100, value: int = 128) -> PixelBuffer:
    return PixelBuffer.from_array(np.full((h, w), value, dtype=np.uint8))


def make_checkerboard(
    size: int = 200, square: int = 4, low: int = 100, high: int = 140
) -> np.ndarray:
    """Create a checkerboard as a float array."""
    y, x = np.mgrid[0:size, 0:size]
    board = ((x // square) + (y // square)) % 2
    return np.where(board == 1, high, low).astype(np.float64)


def make_ramp(w: int = 80, h: int = 60, step: int = 3) -> PixelBuffer:
    """Horizontal ramp: gradient along x only."""
    row = np.arange(w) * step
    return PixelBuffer.from_array(np.tile(row, (h, 1)))


class TestLaplacianVariance:
    def test_uniform_is_zero(self):
        assert compute_laplacian_variance(np.full((50, 50), 90.0)) == 0.0

    def test_linear_ramp_is_zero(self):
        gray = np.tile(np.arange(50, dtype=np.float64) * 2, (50, 1))
        assert compute_laplacian_variance(gray) == 0.0

    def test_detail_is_positive(self):
        assert compute_laplacian_variance(make_checkerboard(50)) > 0

    def test_too_small(self):
        assert compute_laplacian_variance(np.zeros((2, 10))) == 0.0


class TestRegionPosition:
    @pytest.mark.parametrize(
        "x, y, expected",
        [
            (2, 2, "center"),
            (0, 0, "top-left"),
            (2, 0, "top"),
            (4, 2, "right"),
            (0, 4, "bottom-left"),
            (2, 4, "bottom"),
        ],
    )
    def test_names(self, x, y, expected):
        assert region_position(x, y, 5) == expected


class TestRegions:
    def test_grid_size(self):
        regions = analyze_regions(make_checkerboard(100), grid_size=5)
        assert len(regions.grid) == 25

    def test_normalized_range(self):
        gray = np.full((100, 100), 128.0)
        gray[40:60, 40:60] = make_checkerboard(20)
        regions = analyze_regions(gray)
        values = [r.normalized_sharpness for r in regions.grid]
        assert min(values) == 0
        assert max(values) == 100
        assert regions.spread == regions.max - regions.min

    def test_sharp_center_focus(self):
        gray = np.full((100, 100), 128.0)
        gray[40:60, 40:60] = make_checkerboard(20, low=0, high=255)
        focus = determine_focus_plane(analyze_regions(gray))
        assert focus.sharpest_regions[0] == "center"
        assert focus.position == "center"

    def test_uniform_focus_defaults_top_left(self):
        focus = determine_focus_plane(analyze_regions(np.full((100, 100), 128.0)))
        assert focus.center_x == 0
        assert focus.center_y == 0
        assert focus.position == "top-left"


class TestEdges:
    def test_uniform(self):
        edges = analyze_edges(np.full((50, 50), 200.0))
        assert edges.average_strength == 0
        assert edges.strong_edge_ratio == 0
        assert edges.assessment == "weak"

    def test_step_edge(self):
        gray = np.zeros((50, 50))
        gray[:, 25:] = 255
        edges = analyze_edges(gray)
        assert edges.strong_edge_ratio > 0
        assert edges.average_strength > 0


class TestSamplers:
    def test_seeded_is_deterministic(self):
        sampler = seeded_sampler(7)
        assert np.array_equal(sampler(100, 80, 20), sampler(100, 80, 20))

    @pytest.mark.parametrize("sampler", [seeded_sampler(), stride_sampler])
    def test_points_are_interior(self, sampler):
        points = sampler(30, 10, 20)
        assert points.shape == (20, 2)
        assert points[:, 0].min() >= 1 and points[:, 0].max() <= 28
        assert points[:, 1].min() >= 1 and points[:, 1].max() <= 8


class TestScoreBands:
    def test_strong_edges_score_high(self):
        edges = EdgeStats(average_strength=90, strong_edge_ratio=6, assessment="strong")
        score = sharpness_score(400, BlurAnalysis(type="none"), edges, FocusPlane())
        assert score >= 90

    def test_motion_penalty(self):
        edges = EdgeStats(average_strength=30, assessment="moderate")
        clean = sharpness_score(10, BlurAnalysis(type="soft", severity=0.2), edges, FocusPlane())
        blurred = sharpness_score(
            10, BlurAnalysis(type="motion", severity=1.0), edges, FocusPlane()
        )
        assert clean - blurred == 10

    def test_assessment_bands(self):
        assert sharpness_assessment(95) == "tack-sharp"
        assert sharpness_assessment(75) == "sharp"
        assert sharpness_assessment(60) == "acceptable"
        assert sharpness_assessment(40) == "soft"
        assert sharpness_assessment(20) == "very-soft"
        assert sharpness_assessment(5) == "unusable"


class TestAnalyzeSharpness:
    def test_neutral_for_none(self):
        result = analyze_sharpness(None)
        assert not result.valid
        assert result.assessment == "unknown"

    def test_neutral_for_empty(self):
        assert not analyze_sharpness(PixelBuffer(0, 0, 1, b"")).valid

    def test_neutral_for_tiny(self):
        assert not analyze_sharpness(make_uniform(2, 2)).valid

    def test_uniform_gray(self):
        result = analyze_sharpness(make_uniform())
        assert result.valid
        assert result.variance == 0
        assert result.edges.average_strength == 0

    def test_uniform_gray_reads_as_motion(self):
        # No gradients at all: ratio 0 against a floor of 1
        blur = analyze_sharpness(make_uniform()).blur
        assert blur.type == "motion"
        assert blur.severity == 1.0

    def test_horizontal_ramp_motion_blur(self):
        result = analyze_sharpness(make_ramp())
        assert result.blur.type == "motion"
        assert result.blur.direction == "horizontal"
        assert result.blur.severity == 1.0

    def test_sharp_checkerboard(self):
        result = analyze_sharpness(PixelBuffer.from_array(make_checkerboard()))
        assert result.blur.type == "none"
        assert result.score >= 75

    def test_blur_monotonic(self):
        board = make_checkerboard()
        results = []
        for sigma in (0, 1, 2):
            blurred = ndimage.gaussian_filter(board, sigma) if sigma else board
            results.append(analyze_sharpness(PixelBuffer.from_array(np.rint(blurred))))

        scores = [r.score for r in results]
        assert all(a > b for a, b in zip(scores, scores[1:]))
        assert results[0].blur.type == "none"
        assert results[-1].blur.type in ("soft", "defocus")

    def test_blur_type_progression(self):
        board = make_checkerboard()
        results = []
        for sigma in (0, 1, 2, 4, 6):
            blurred = ndimage.gaussian_filter(board, sigma) if sigma else board
            results.append(analyze_sharpness(PixelBuffer.from_array(np.rint(blurred))))

        scores = [r.score for r in results]
        assert all(a >= b for a, b in zip(scores, scores[1:]))
        types = [r.blur.type for r in results]
        assert types == ["none", "soft", "soft", "defocus", "defocus"]

    def test_deterministic(self):
        buf = PixelBuffer.from_array(make_checkerboard(60))
        assert analyze_sharpness(buf) == analyze_sharpness(buf)

    def test_custom_sampler(self):
        result = analyze_sharpness(make_ramp(), sampler=stride_sampler)
        assert result.valid

    def test_color_input(self):
        rgb = np.stack([make_checkerboard(60)] * 3, axis=2)
        result = analyze_sharpness(PixelBuffer.from_array(rgb))
        assert result.valid
        assert (result.width, result.height) == (60, 60)

    def test_to_dict(self):
        data = analyze_sharpness(make_uniform(30, 30)).to_dict()
        assert data["blur"]["type"] == "motion"
        assert len(data["regions"]["grid"]) == 25


class TestQuickSharpnessCheck:
    def test_no_image(self):
        assert quick_sharpness_check(None).issue == "no-image"

    def test_uniform_is_very_blurry(self):
        check = quick_sharpness_check(make_uniform())
        assert not check.ok
        assert check.issue == "very-blurry"

    def test_sharp_passes(self):
        board = make_checkerboard(100, low=0, high=255)
        check = quick_sharpness_check(PixelBuffer.from_array(board))
        assert check.ok
        assert check.issue is None
