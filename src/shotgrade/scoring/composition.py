"""Composition pass: thirds, balance, horizon, leading lines, symmetry.

Scoring is generous on purpose: composition is subjective, so the base score
assumes an acceptable frame and only a clearly tilted horizon costs points.
"""

from __future__ import annotations

import logging
import math

import numpy as np
from numpy.typing import NDArray

from shotgrade.pixels import PixelBuffer
from shotgrade.scoring.types import (
    Balance,
    CompositionResult,
    Horizon,
    InterestPoint,
    LeadingLines,
    LineDistribution,
    Quadrants,
    RuleOfThirds,
    Symmetry,
    ThirdsLines,
    WeightDistribution,
)
from shotgrade.scoring.utils import clamp, gray_array, round_half_up, round_int

logger = logging.getLogger(__name__)

INTEREST_BLOCK = 30
INTEREST_THRESHOLD = 50
MAX_INTEREST_POINTS = 10
HORIZON_MIN_STRENGTH = 10
TILT_SAMPLES = 10
TILT_SEARCH = 20
LINE_STEP = 20
LINE_MARGIN = 10
LINE_MIN_MAGNITUDE = 20


def find_interest_points(
    gray: NDArray[np.float64],
    threshold: float = INTEREST_THRESHOLD,
    block_size: int = INTEREST_BLOCK,
) -> list[InterestPoint]:
    """Strongest local-contrast pixel per block, top 10 overall.

    Contrast is |c - right| + |c - below|, so the last row and column have
    no contrast value of their own.
    """
    h, w = gray.shape
    contrast = np.abs(gray[:-1, :-1] - gray[:-1, 1:]) + np.abs(gray[:-1, :-1] - gray[1:, :-1])

    points = []
    for by in range(0, h, block_size):
        for bx in range(0, w, block_size):
            block = contrast[by : by + block_size, bx : bx + block_size]
            if block.size == 0:
                continue
            idx = int(np.argmax(block))
            strength = block.flat[idx]
            if strength > threshold:
                dy, dx = divmod(idx, block.shape[1])
                points.append(InterestPoint(x=bx + dx, y=by + dy, strength=int(strength)))

    points.sort(key=lambda p: -p.strength)
    return points[:MAX_INTEREST_POINTS]


def analyze_thirds_lines(points: list[InterestPoint], width: int, height: int) -> ThirdsLines:
    vertical_lines = (width / 3, width * 2 / 3)
    horizontal_lines = (height / 3, height * 2 / 3)
    tolerance = min(width, height) * 0.05

    vertical = 0
    horizontal = 0
    for p in points:
        for line in vertical_lines:
            if abs(p.x - line) < tolerance:
                vertical += p.strength
        for line in horizontal_lines:
            if abs(p.y - line) < tolerance:
                horizontal += p.strength

    return ThirdsLines(vertical=vertical > 100, horizontal=horizontal > 100)


def analyze_rule_of_thirds(gray: NDArray[np.float64]) -> RuleOfThirds:
    """How close the strongest interest point sits to a power point."""
    h, w = gray.shape
    power_points = (
        (w / 3, h / 3, "top-left"),
        (w * 2 / 3, h / 3, "top-right"),
        (w / 3, h * 2 / 3, "bottom-left"),
        (w * 2 / 3, h * 2 / 3, "bottom-right"),
    )

    points = find_interest_points(gray)

    nearest = None
    min_distance = math.inf
    for p in points:
        for px, py, name in power_points:
            dist = math.hypot(p.x - px, p.y - py)
            if dist < min_distance:
                min_distance = dist
                nearest = name

    max_distance = math.hypot(w / 6, h / 6)
    alignment = max(0.0, 1 - min_distance / max_distance) if points else 0.0

    if alignment > 0.7:
        assessment = "strong"
    elif alignment > 0.4:
        assessment = "moderate"
    else:
        assessment = "weak"

    return RuleOfThirds(
        alignment=round_int(alignment * 100),
        nearest_power_point=nearest,
        interest_point_count=len(points),
        thirds_lines=analyze_thirds_lines(points, w, h),
        assessment=assessment,
    )


def _mean(block: NDArray[np.float64]) -> float:
    return float(block.mean()) if block.size else 0.0


def analyze_visual_balance(gray: NDArray[np.float64]) -> Balance:
    """Compare mean intensity of the four quadrants."""
    h, w = gray.shape
    mid_x = w // 2
    mid_y = h // 2

    quadrants = Quadrants(
        top_left=_mean(gray[:mid_y, :mid_x]),
        top_right=_mean(gray[:mid_y, mid_x:]),
        bottom_left=_mean(gray[mid_y:, :mid_x]),
        bottom_right=_mean(gray[mid_y:, mid_x:]),
    )

    left = quadrants.top_left + quadrants.bottom_left
    right = quadrants.top_right + quadrants.bottom_right
    top = quadrants.top_left + quadrants.top_right
    bottom = quadrants.bottom_left + quadrants.bottom_right

    horizontal = 1 - abs(left - right) / ((left + right) or 1)
    vertical = 1 - abs(top - bottom) / ((top + bottom) or 1)

    if horizontal > 0.8 and vertical > 0.8:
        balance_type = "symmetrical"
    elif horizontal > 0.6 and vertical > 0.6:
        balance_type = "balanced"
    elif horizontal < 0.4 or vertical < 0.4:
        balance_type = "dynamic"
    else:
        balance_type = "asymmetrical"

    return Balance(
        quadrants=quadrants,
        horizontal=round_int(horizontal * 100),
        vertical=round_int(vertical * 100),
        overall=round_int((horizontal + vertical) / 2 * 100),
        type=balance_type,
    )


def detect_horizon_tilt(gray: NDArray[np.float64], approximate_y: int) -> float:
    """Tilt in degrees of the edge near approximate_y.

    Finds the strongest vertical gradient within +/-20 rows at 10 columns
    and fits a least-squares line through those points.
    """
    h, w = gray.shape

    xs = []
    ys = []
    for i in range(TILT_SAMPLES):
        x = math.floor((i + 0.5) * (w / TILT_SAMPLES))
        max_gradient = 0.0
        best_y = approximate_y

        for dy in range(-TILT_SEARCH, TILT_SEARCH + 1):
            y = approximate_y + dy
            if y < 1 or y >= h - 1:
                continue
            gradient = abs(gray[y - 1, x] - gray[y + 1, x])
            if gradient > max_gradient:
                max_gradient = gradient
                best_y = y

        xs.append(x)
        ys.append(best_y)

    n = len(xs)
    sum_x = sum(xs)
    sum_y = sum(ys)
    sum_xy = sum(x * y for x, y in zip(xs, ys))
    sum_xx = sum(x * x for x in xs)

    denominator = n * sum_xx - sum_x * sum_x
    slope = (n * sum_xy - sum_x * sum_y) / denominator if denominator else 0.0
    return math.degrees(math.atan(slope))


def horizon_position_quality(ratio: float) -> str:
    if 0.3 < ratio < 0.4:
        return "upper-third"
    if 0.6 < ratio < 0.7:
        return "lower-third"
    if 0.45 < ratio < 0.55:
        return "centered"
    return "off-center"


def detect_horizon(gray: NDArray[np.float64]) -> Horizon:
    """Row with the strongest mean vertical gradient in the middle 60%."""
    h, w = gray.shape
    start = math.floor(h * 0.2)
    stop = math.floor(h * 0.8)

    # row_gradient[y - 1] is the summed |above - below| for row y, x < w - 1
    row_gradient = np.abs(gray[:-2, : w - 1] - gray[2:, : w - 1]).sum(axis=1)

    best_y = None
    best_strength = -1.0
    for y in range(start, stop):
        strength = float(row_gradient[y - 1]) / w if 0 < y < h - 1 else 0.0
        if strength > best_strength:
            best_strength = strength
            best_y = y

    if best_y is None or best_strength < HORIZON_MIN_STRENGTH:
        return Horizon(detected=False)

    ratio = best_y / h
    tilt = detect_horizon_tilt(gray, best_y)

    return Horizon(
        detected=True,
        position=round_int(ratio * 100),
        position_quality=horizon_position_quality(ratio),
        level=abs(tilt) < 1,
        tilt=round_half_up(tilt, 1),
        strength=round_int(best_strength),
    )


def detect_leading_lines(gray: NDArray[np.float64]) -> LeadingLines:
    """Gradient-direction histogram on a coarse grid."""
    h, w = gray.shape
    ys = np.arange(LINE_MARGIN, h - LINE_MARGIN, LINE_STEP)
    xs = np.arange(LINE_MARGIN, w - LINE_MARGIN, LINE_STEP)

    to_center = horizontal = vertical = diagonal = 0.0

    if ys.size and xs.size:
        Y, X = np.meshgrid(ys, xs, indexing="ij")
        gx = gray[Y, X + 1] - gray[Y, X - 1]
        gy = gray[Y + 1, X] - gray[Y - 1, X]
        magnitude = np.sqrt(gx * gx + gy * gy)

        mask = magnitude > LINE_MIN_MAGNITUDE
        angle = np.degrees(np.arctan2(gy, gx))[mask]
        toward = np.degrees(np.arctan2(h / 2 - Y, w / 2 - X))[mask]
        magnitude = magnitude[mask]

        diff = np.abs(angle - toward)
        to_center = float(magnitude[(diff < 30) | (diff > 150)].sum())

        is_horizontal = (np.abs(angle) < 20) | (np.abs(angle) > 160)
        is_vertical = ~is_horizontal & (
            (np.abs(angle - 90) < 20) | (np.abs(angle + 90) < 20)
        )
        horizontal = float(magnitude[is_horizontal].sum())
        vertical = float(magnitude[is_vertical].sum())
        diagonal = float(magnitude[~is_horizontal & ~is_vertical].sum())

    total = (to_center + horizontal + vertical + diagonal) or 1.0
    distribution = LineDistribution(
        to_center=round_int(to_center / total * 100),
        horizontal=round_int(horizontal / total * 100),
        vertical=round_int(vertical / total * 100),
        diagonal=round_int(diagonal / total * 100),
    )

    dominant, strength = "to_center", distribution.to_center
    for name in ("horizontal", "vertical", "diagonal"):
        value = getattr(distribution, name)
        if value > strength:
            dominant, strength = name, value

    return LeadingLines(
        detected=to_center > total * 0.3 or strength > 40,
        dominant=dominant,
        strength=strength,
        distribution=distribution,
        lead_to_subject=to_center > total * 0.3,
    )


def analyze_weight_distribution(gray: NDArray[np.float64]) -> WeightDistribution:
    """Intensity-weighted centroid, normalized to the frame."""
    h, w = gray.shape
    total = float(gray.sum()) or 1.0
    Y, X = np.mgrid[0:h, 0:w]
    cx = float((X * gray).sum()) / total / w
    cy = float((Y * gray).sum()) / total / h

    offset_x = abs(cx - 0.5)
    offset_y = abs(cy - 0.5)

    return WeightDistribution(
        center_x=round_int(cx * 100),
        center_y=round_int(cy * 100),
        offset_x=round_int(offset_x * 100),
        offset_y=round_int(offset_y * 100),
        centered=offset_x < 0.1 and offset_y < 0.1,
    )


def analyze_symmetry(gray: NDArray[np.float64]) -> Symmetry:
    """Mirror similarity left/right and top/bottom.

    For odd sizes the middle column (row) is compared with itself.
    """
    h, w = gray.shape
    half_w = math.ceil(w / 2)
    half_h = math.ceil(h / 2)

    h_diff = float(np.abs(gray[:, :half_w] - gray[:, ::-1][:, :half_w]).sum())
    v_diff = float(np.abs(gray[:half_h, :] - gray[::-1, :][:half_h, :]).sum())

    horizontal = 1 - h_diff / (h * half_w * 255)
    vertical = 1 - v_diff / (half_h * w * 255)

    if horizontal > 0.8:
        symmetry_type = "horizontally-symmetric"
    elif vertical > 0.8:
        symmetry_type = "vertically-symmetric"
    elif horizontal > 0.6 and vertical > 0.6:
        symmetry_type = "balanced"
    else:
        symmetry_type = "asymmetric"

    return Symmetry(
        horizontal=round_int(horizontal * 100),
        vertical=round_int(vertical * 100),
        overall=round_int((horizontal + vertical) / 2 * 100),
        type=symmetry_type,
    )


def composition_score(
    thirds: RuleOfThirds,
    balance: Balance,
    horizon: Horizon,
    symmetry: Symmetry,
) -> tuple[int, tuple[str, ...], str]:
    """Composite score, contributing factors and assessment."""
    score = 65
    factors = []

    if thirds.alignment > 60:
        score += 15
        factors.append("strong-thirds: +15")
    elif thirds.alignment > 30:
        score += 8
        factors.append("moderate-thirds: +8")

    if balance.type in ("balanced", "symmetrical"):
        score += 8
        factors.append("balanced: +8")
    elif balance.type == "dynamic":
        score += 5
        factors.append("dynamic-balance: +5")

    if horizon.detected:
        if not horizon.level and abs(horizon.tilt or 0.0) > 4:
            score -= 8
            factors.append("tilted-horizon: -8")
        if horizon.position_quality in ("upper-third", "lower-third"):
            score += 5
            factors.append("horizon-on-third: +5")

    if symmetry.type == "horizontally-symmetric":
        score += 5
        factors.append("symmetric: +5")

    if score >= 75:
        assessment = "excellent"
    elif score >= 60:
        assessment = "good"
    elif score >= 45:
        assessment = "average"
    else:
        assessment = "weak"

    return int(clamp(score, 0, 100)), tuple(factors), assessment


def analyze_composition(buffer: PixelBuffer | None) -> CompositionResult:
    """Run the full composition pass on a grayscale buffer (<= 600px).

    Color buffers are converted to luma. Returns the neutral result for
    unusable input.
    """
    if buffer is None or not buffer.is_valid:
        return CompositionResult.neutral()

    try:
        gray = gray_array(buffer)
        if gray.shape[0] < 3 or gray.shape[1] < 3:
            return CompositionResult.neutral()

        thirds = analyze_rule_of_thirds(gray)
        balance = analyze_visual_balance(gray)
        horizon = detect_horizon(gray)
        leading_lines = detect_leading_lines(gray)
        weight = analyze_weight_distribution(gray)
        symmetry = analyze_symmetry(gray)
        score, factors, assessment = composition_score(thirds, balance, horizon, symmetry)

        return CompositionResult(
            valid=True,
            rule_of_thirds=thirds,
            balance=balance,
            horizon=horizon,
            leading_lines=leading_lines,
            weight_distribution=weight,
            symmetry=symmetry,
            score=score,
            factors=factors,
            assessment=assessment,
            width=buffer.width,
            height=buffer.height,
        )
    except Exception as e:
        logger.warning("Composition analysis failed: %s", e)
        return CompositionResult.neutral()
