"""Sharpness pass: Laplacian variance, region grid, blur type, edges, focus plane.

Edge strength (Sobel) is the primary signal for the final score. It holds up
better than raw Laplacian variance on compressed embedded previews.
"""

from __future__ import annotations

import logging
import math
from typing import Callable

import numpy as np
from numpy.typing import NDArray
from scipy import ndimage  # type: ignore[import-untyped]

from shotgrade.pixels import QUICK_MAX_DIM, PixelBuffer, prepare
from shotgrade.scoring.types import (
    BlurAnalysis,
    BlurMetrics,
    EdgeStats,
    FocusPlane,
    QuickCheck,
    Region,
    RegionSummary,
    SharpnessResult,
)
from shotgrade.scoring.utils import clamp, gray_array, round_half_up, round_int

logger = logging.getLogger(__name__)

LAPLACIAN_KERNEL = np.array([[0, 1, 0], [1, -4, 1], [0, 1, 0]], dtype=np.float64)
SOBEL_X = np.array([[-1, 0, 1], [-2, 0, 2], [-1, 0, 1]], dtype=np.float64)
SOBEL_Y = SOBEL_X.T.copy()

DEFAULT_GRID_SIZE = 5
CONSISTENCY_SAMPLES = 20
STRONG_EDGE = 100
WEAK_EDGE = 30

# (width, height, count) -> int array of shape (count, 2) holding interior (x, y)
Sampler = Callable[[int, int, int], NDArray[np.int64]]


def seeded_sampler(seed: int = 0) -> Sampler:
    """Uniform random interior points from a fixed-seed generator."""

    def sample(width: int, height: int, count: int) -> NDArray[np.int64]:
        rng = np.random.default_rng(seed)
        xs = rng.integers(1, width - 1, size=count)
        ys = rng.integers(1, height - 1, size=count)
        return np.column_stack([xs, ys]).astype(np.int64)

    return sample


def stride_sampler(width: int, height: int, count: int) -> NDArray[np.int64]:
    """Interior points on a fixed lattice, no randomness at all."""
    idx = np.arange(count, dtype=np.int64)
    xs = 1 + (idx * (width - 2)) // count
    ys = 1 + ((idx * 7) % count) * (height - 2) // count
    return np.column_stack([xs, ys])


def _interior(gray: NDArray[np.float64], kernel: NDArray[np.float64]) -> NDArray[np.float64]:
    """Correlate with a 3x3 kernel and keep only pixels with a full neighborhood."""
    return ndimage.correlate(gray, kernel, mode="nearest")[1:-1, 1:-1]


def compute_laplacian_variance(gray: NDArray[np.float64]) -> float:
    """Variance of |Laplacian| over interior pixels (higher = sharper).

    Computed as E[|L|^2] - E[|L|]^2. Arrays without interior pixels give 0.
    """
    if gray.shape[0] < 3 or gray.shape[1] < 3:
        return 0.0
    lap = np.abs(_interior(gray, LAPLACIAN_KERNEL))
    mean = float(lap.mean())
    return max(0.0, float((lap * lap).mean()) - mean * mean)


def region_position(x: int, y: int, grid_size: int) -> str:
    """Human-readable name of grid cell (x, y)."""
    mid = grid_size // 2

    if y < mid:
        vertical = "top"
    elif y > mid:
        vertical = "bottom"
    else:
        vertical = "middle"

    if x < mid:
        horizontal = "left"
    elif x > mid:
        horizontal = "right"
    else:
        horizontal = "center"

    if vertical == "middle" and horizontal == "center":
        return "center"
    if vertical == "middle":
        return horizontal
    if horizontal == "center":
        return vertical
    return f"{vertical}-{horizontal}"


def analyze_regions(gray: NDArray[np.float64], grid_size: int = DEFAULT_GRID_SIZE) -> RegionSummary:
    """Laplacian variance per grid cell, normalized against this image.

    Each cell is cut out as its own array so border handling stays local to
    the cell.
    """
    h, w = gray.shape
    region_w = w // grid_size
    region_h = h // grid_size

    raw: list[tuple[int, int, float]] = []
    for gy in range(grid_size):
        for gx in range(grid_size):
            block = gray[
                gy * region_h : (gy + 1) * region_h,
                gx * region_w : (gx + 1) * region_w,
            ].copy()
            raw.append((gx, gy, compute_laplacian_variance(block)))

    values = [v for _, _, v in raw]
    max_s = max(0.0, max(values))
    min_s = min(values)
    spread = (max_s - min_s) or 1.0

    grid = []
    for gx, gy, v in raw:
        rounded = round_half_up(v, 2)
        grid.append(
            Region(
                x=gx,
                y=gy,
                position=region_position(gx, gy, grid_size),
                sharpness=rounded,
                normalized_sharpness=round_int((rounded - min_s) / spread * 100),
            )
        )

    return RegionSummary(
        grid=tuple(grid),
        max=round_half_up(max_s, 2),
        min=round_half_up(min_s, 2),
        spread=round_half_up(max_s - min_s, 2),
    )


def directional_gradients(gray: NDArray[np.float64]) -> tuple[float, float]:
    """Mean |p[x+1]-p[x-1]| and |p[y+1]-p[y-1]| over interior pixels."""
    horizontal = np.abs(gray[1:-1, 2:] - gray[1:-1, :-2]).mean()
    vertical = np.abs(gray[2:, 1:-1] - gray[:-2, 1:-1]).mean()
    return float(horizontal), float(vertical)


def gradient_consistency(
    gray: NDArray[np.float64],
    sampler: Sampler,
    count: int = CONSISTENCY_SAMPLES,
) -> float:
    """Resultant length of sampled gradient directions.

    1 means every sample points the same way (motion blur signature),
    0 means directions are random (defocus signature).
    """
    h, w = gray.shape
    points = np.asarray(sampler(w, h, count), dtype=np.int64)
    xs, ys = points[:, 0], points[:, 1]

    gx = gray[ys, xs + 1] - gray[ys, xs - 1]
    gy = gray[ys + 1, xs] - gray[ys - 1, xs]
    angles = np.arctan2(gy, gx)

    return math.hypot(float(np.sin(angles).sum()), float(np.cos(angles).sum())) / count


def detect_blur_type(
    gray: NDArray[np.float64],
    overall_sharpness: float,
    sampler: Sampler,
) -> BlurAnalysis:
    """Classify blur as none, motion, defocus or soft.

    Deliberately conservative: most images end up as none or soft, and soft
    carries no score penalty.
    """
    horizontal, vertical = directional_gradients(gray)
    ratio = horizontal / (vertical or 1.0)
    consistency = gradient_consistency(gray, sampler)
    avg_gradient = (horizontal + vertical) / 2

    blur_type = "none"
    severity = 0.0
    direction = None

    if overall_sharpness > 100 or avg_gradient > 20:
        blur_type = "none"
    elif abs(ratio - 1) > 0.5 and overall_sharpness < 50 and avg_gradient < 15:
        blur_type = "motion"
        severity = clamp(1 - overall_sharpness / 50)
        direction = "horizontal" if ratio > 1 else "vertical"
    elif overall_sharpness < 40 and consistency > 0.9 and avg_gradient < 12:
        blur_type = "defocus"
        severity = clamp(1 - overall_sharpness / 40)
    elif overall_sharpness < 80:
        blur_type = "soft"
        severity = 0.2

    return BlurAnalysis(
        type=blur_type,
        severity=clamp(severity),
        direction=direction,
        metrics=BlurMetrics(
            horizontal_gradient=round_int(horizontal),
            vertical_gradient=round_int(vertical),
            gradient_ratio=round_half_up(ratio, 2),
            consistency=round_half_up(consistency, 2),
            avg_gradient=round_int(avg_gradient),
        ),
    )


def analyze_edges(gray: NDArray[np.float64]) -> EdgeStats:
    """Sobel magnitude statistics over interior pixels."""
    gx = _interior(gray, SOBEL_X)
    gy = _interior(gray, SOBEL_Y)
    magnitude = np.sqrt(gx * gx + gy * gy)

    count = magnitude.size
    average = float(magnitude.mean())
    strong = int((magnitude > STRONG_EDGE).sum())
    weak = int(((magnitude > WEAK_EDGE) & (magnitude <= STRONG_EDGE)).sum())

    if average > 50:
        assessment = "strong"
    elif average > 25:
        assessment = "moderate"
    else:
        assessment = "weak"

    return EdgeStats(
        average_strength=round_int(average),
        strong_edge_ratio=round_half_up(strong / count * 100, 2),
        weak_edge_ratio=round_half_up(weak / count * 100, 2),
        assessment=assessment,
    )


def determine_focus_plane(regions: RegionSummary, grid_size: int = DEFAULT_GRID_SIZE) -> FocusPlane:
    """Sharpness-weighted centroid of the five sharpest cells."""
    sharpest = sorted(regions.grid, key=lambda r: -r.sharpness)[:5]

    total = sum(r.sharpness for r in sharpest) or 1.0
    center_x = sum(r.x * r.sharpness for r in sharpest) / total
    center_y = sum(r.y * r.sharpness for r in sharpest) / total

    mid = (grid_size - 1) / 2

    if abs(center_x - mid) < 0.7 and abs(center_y - mid) < 0.7:
        position = "center"
    elif center_y < mid - 0.5:
        position = "top-left" if center_x < mid else "top-right" if center_x > mid else "top"
    elif center_y > mid + 0.5:
        position = (
            "bottom-left" if center_x < mid else "bottom-right" if center_x > mid else "bottom"
        )
    else:
        position = "left" if center_x < mid else "right"

    return FocusPlane(
        position=position,
        sharpest_regions=tuple(r.position for r in sharpest),
        center_x=round_half_up(center_x, 2),
        center_y=round_half_up(center_y, 2),
    )


def sharpness_score(
    overall_sharpness: float,
    blur: BlurAnalysis,
    edges: EdgeStats,
    focus: FocusPlane,
) -> int:
    """Final 0-100 sharpness score, driven mainly by edge strength."""
    edge = edges.average_strength
    ratio = edges.strong_edge_ratio

    if edge > 80:
        score = 90 + min(10, (edge - 80) / 4)
    elif edge > 60:
        score = 78 + (edge - 60) / 20 * 12
    elif edge > 40:
        score = 65 + (edge - 40) / 20 * 13
    elif edge > 25:
        score = 52 + (edge - 25) / 15 * 13
    elif edge > 15:
        score = 40 + (edge - 15) / 10 * 12
    else:
        score = 30 + edge / 15 * 10

    if ratio > 5:
        score += 5
    elif ratio > 2:
        score += 3

    if overall_sharpness > 500:
        score += 3
    elif overall_sharpness > 300:
        score += 2

    # Only obvious blur costs points; soft is informational
    if blur.type == "motion" and blur.severity > 0.6:
        score -= (blur.severity - 0.6) * 25
    elif blur.type == "defocus" and blur.severity > 0.6:
        score -= (blur.severity - 0.6) * 20

    if focus.position == "center":
        score += 2

    return int(clamp(round_int(score), 0, 100))


def sharpness_assessment(score: int) -> str:
    if score >= 90:
        return "tack-sharp"
    if score >= 75:
        return "sharp"
    if score >= 60:
        return "acceptable"
    if score >= 40:
        return "soft"
    if score >= 20:
        return "very-soft"
    return "unusable"


def analyze_sharpness(
    buffer: PixelBuffer | None,
    grid_size: int = DEFAULT_GRID_SIZE,
    sampler: Sampler | None = None,
) -> SharpnessResult:
    """Run the full sharpness pass on an analysis-sized buffer.

    Args:
        buffer: Grayscale buffer (color is converted to luma).
        grid_size: Cells per side of the region grid.
        sampler: Point sampler for the gradient-consistency check.
            Defaults to seeded_sampler(0).

    Returns:
        SharpnessResult; the neutral result for unusable input.
    """
    if buffer is None or not buffer.is_valid or grid_size < 1:
        return SharpnessResult.neutral()

    try:
        gray = gray_array(buffer)
        if gray.shape[0] < 3 or gray.shape[1] < 3:
            return SharpnessResult.neutral()

        overall = compute_laplacian_variance(gray)
        regions = analyze_regions(gray, grid_size)
        blur = detect_blur_type(gray, overall, sampler or seeded_sampler())
        edges = analyze_edges(gray)
        focus = determine_focus_plane(regions, grid_size)
        score = sharpness_score(overall, blur, edges, focus)

        return SharpnessResult(
            valid=True,
            variance=round_half_up(overall, 2),
            score=score,
            assessment=sharpness_assessment(score),
            regions=regions,
            blur=blur,
            edges=edges,
            focus_plane=focus,
            width=buffer.width,
            height=buffer.height,
        )
    except Exception as e:
        logger.warning("Sharpness analysis failed: %s", e)
        return SharpnessResult.neutral()


def quick_sharpness_check(buffer: PixelBuffer | None) -> QuickCheck:
    """Laplacian variance on a small grayscale copy."""
    if buffer is None or not buffer.is_valid:
        return QuickCheck(ok=False, issue="no-image")

    try:
        small = prepare(buffer, QUICK_MAX_DIM, grayscale=True)
        variance = compute_laplacian_variance(gray_array(small))
    except Exception as e:
        logger.warning("Quick sharpness check failed: %s", e)
        return QuickCheck(ok=False, issue="analysis-failed")

    if variance < 50:
        return QuickCheck(ok=False, issue="very-blurry", value=variance)
    if variance < 150:
        return QuickCheck(ok=True, issue="soft", value=variance)
    return QuickCheck(ok=True, value=variance)
