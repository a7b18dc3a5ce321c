"""Exposure pass: histograms, exposure level, clipping, dynamic range, contrast."""

from __future__ import annotations

import logging
import math

import numpy as np
from numpy.typing import NDArray

from shotgrade.pixels import STATS_MAX_DIM, PixelBuffer, prepare
from shotgrade.scoring.types import (
    ChannelStats,
    Clipping,
    ClipTail,
    Contrast,
    DynamicRange,
    ExposureLevel,
    ExposureResult,
    ExposureZones,
    Histograms,
    QuickCheck,
)
from shotgrade.scoring.utils import clamp, rgb_array, round_half_up, round_int

logger = logging.getLogger(__name__)

NOISE_FLOOR = 0.1  # % of pixels a bucket needs to count as "used"
PEAK_MIN = 0.5  # % of pixels a histogram peak needs
PEAK_WINDOW = 5


def compute_histograms(buffer: PixelBuffer) -> Histograms:
    """R, G, B and luminance histograms as percentages of the pixel count."""
    rgb = rgb_array(buffer).reshape(-1, 3)
    total = rgb.shape[0]

    r, g, b = rgb[:, 0], rgb[:, 1], rgb[:, 2]
    luminance = np.floor(0.299 * r + 0.587 * g + 0.114 * b + 0.5).astype(np.int64)

    def normalize(values: NDArray[np.int64]) -> tuple[float, ...]:
        counts = np.bincount(values, minlength=256)[:256]
        return tuple(float(v) for v in counts / total * 100)

    return Histograms(
        red=normalize(r),
        green=normalize(g),
        blue=normalize(b),
        luminance=normalize(luminance),
        total_pixels=int(total),
    )


def channel_stats(buffer: PixelBuffer) -> tuple[ChannelStats, ...]:
    """Mean and population standard deviation of the R, G, B channels."""
    rgb = rgb_array(buffer).reshape(-1, 3).astype(np.float64)
    return tuple(
        ChannelStats(mean=float(rgb[:, c].mean()), std=float(rgb[:, c].std()))
        for c in range(3)
    )


def histogram_variance(values: tuple[float, ...] | NDArray[np.float64]) -> float:
    arr = np.asarray(values, dtype=np.float64)
    return float(((arr - arr.mean()) ** 2).mean())


def histogram_shape(luminance: tuple[float, ...]) -> str:
    """Classify the luminance histogram by its local maxima."""
    lum = np.asarray(luminance, dtype=np.float64)

    peaks = []
    for i in range(PEAK_WINDOW, 256 - PEAK_WINDOW):
        center = lum[i]
        if center > PEAK_MIN and center == lum[i - PEAK_WINDOW : i + PEAK_WINDOW + 1].max():
            peaks.append(i)

    if len(peaks) == 1:
        if peaks[0] < 80:
            return "low-key"
        if peaks[0] > 180:
            return "high-key"
        return "normal"
    if len(peaks) == 2:
        return "bimodal-contrast" if abs(peaks[0] - peaks[1]) > 100 else "bimodal"
    if len(peaks) > 2:
        return "multi-modal"

    if histogram_variance(lum) < 0.1:
        return "flat"
    return "normal"


def analyze_exposure_level(luminance: tuple[float, ...]) -> ExposureLevel:
    """Mean brightness against fixed bands, plus tonal zones and shape."""
    lum = np.asarray(luminance, dtype=np.float64)

    total_weight = float(lum.sum()) or 1.0
    mean = float((np.arange(256) * lum).sum()) / total_weight

    if mean < 80:
        assessment = "underexposed"
        deviation = (80 - mean) / 80
    elif mean >= 180:
        assessment = "overexposed"
        deviation = (mean - 180) / 75
    elif 100 <= mean <= 160:
        assessment = "well-exposed"
        deviation = 0.0
    elif mean < 100:
        assessment = "slightly-under"
        deviation = (100 - mean) / 100
    else:
        assessment = "slightly-over"
        deviation = (mean - 160) / 60

    return ExposureLevel(
        mean_brightness=round_int(mean),
        assessment=assessment,
        deviation=clamp(deviation),
        zones=ExposureZones(
            shadows=round_half_up(float(lum[:64].sum()), 2),
            midtones=round_half_up(float(lum[64:192].sum()), 2),
            highlights=round_half_up(float(lum[192:].sum()), 2),
        ),
        shape=histogram_shape(luminance),
    )


def clipping_severity(percentage: float) -> str:
    if percentage < 1:
        return "none"
    if percentage < 5:
        return "minor"
    if percentage < 15:
        return "moderate"
    if percentage < 30:
        return "severe"
    return "critical"


def analyze_clipping(luminance: tuple[float, ...]) -> Clipping:
    """Pure black/white tails plus the informational near-clip bands."""
    lum = np.asarray(luminance, dtype=np.float64)

    shadow = float(lum[0:6].sum())
    highlight = float(lum[250:256].sum())
    near_shadow = float(lum[6:20].sum())
    near_highlight = float(lum[235:250].sum())

    return Clipping(
        shadows=ClipTail(
            clipped=round_half_up(shadow, 2),
            near_clip=round_half_up(near_shadow, 2),
            severity=clipping_severity(shadow),
        ),
        highlights=ClipTail(
            clipped=round_half_up(highlight, 2),
            near_clip=round_half_up(near_highlight, 2),
            severity=clipping_severity(highlight),
        ),
        total_clipped=round_half_up(shadow + highlight, 2),
        recoverable=shadow < 5 and highlight < 5,
    )


def analyze_dynamic_range(luminance: tuple[float, ...]) -> DynamicRange:
    """Span between the first and last bucket above the noise floor."""
    used = np.flatnonzero(np.asarray(luminance) > NOISE_FLOOR)
    min_used = int(used[0]) if used.size else 0
    max_used = int(used[-1]) if used.size else 255

    range_used = max_used - min_used
    percentage = range_used / 255 * 100

    if percentage > 80:
        assessment = "excellent"
    elif percentage > 60:
        assessment = "good"
    elif percentage > 40:
        assessment = "moderate"
    elif percentage > 20:
        assessment = "limited"
    else:
        assessment = "very-limited"

    return DynamicRange(
        min=min_used,
        max=max_used,
        range=range_used,
        percentage=round_int(percentage),
        assessment=assessment,
        estimated_stops=round_half_up(math.log2(range_used + 1), 1),
    )


def analyze_contrast(
    luminance: tuple[float, ...], stats: tuple[ChannelStats, ...]
) -> Contrast:
    avg_std = sum(s.std for s in stats) / len(stats)

    if avg_std > 70:
        level = "high"
    elif avg_std > 50:
        level = "medium-high"
    elif avg_std > 30:
        level = "medium"
    elif avg_std > 15:
        level = "low"
    else:
        level = "very-low"

    return Contrast(
        standard_deviation=round_int(avg_std),
        level=level,
        variance=round_half_up(histogram_variance(luminance), 3),
    )


def exposure_score(
    exposure: ExposureLevel, clipping: Clipping, dynamic_range: DynamicRange
) -> int:
    """Final 0-100 exposure score. Starts at 85 and is lenient."""
    score = 85.0

    score -= exposure.deviation * 20

    # First 2% of clipping is free
    if clipping.shadows.clipped > 2:
        score -= min(15, (clipping.shadows.clipped - 2) * 1.5)
    if clipping.highlights.clipped > 2:
        score -= min(20, (clipping.highlights.clipped - 2) * 2)

    if dynamic_range.assessment == "very-limited":
        score -= 10
    elif dynamic_range.assessment == "limited":
        score -= 5

    if exposure.zones.midtones > 50:
        score += 5

    if dynamic_range.assessment == "excellent":
        score += 5
    elif dynamic_range.assessment == "good":
        score += 3

    return int(clamp(round_int(score), 0, 100))


def analyze_exposure(
    buffer: PixelBuffer | None,
    histogram_buffer: PixelBuffer | None = None,
) -> ExposureResult:
    """Run the full exposure pass.

    Args:
        buffer: Full-size RGB buffer; channel mean/stdev come from it.
        histogram_buffer: Downsized copy used for histograms. Derived from
            buffer (800px long edge) when not given.

    Returns:
        ExposureResult; the neutral result for unusable input.
    """
    if buffer is None or not buffer.is_valid:
        return ExposureResult.neutral()
    if histogram_buffer is not None and not histogram_buffer.is_valid:
        return ExposureResult.neutral()

    try:
        if histogram_buffer is None:
            if max(buffer.width, buffer.height) > STATS_MAX_DIM:
                histogram_buffer = prepare(buffer, STATS_MAX_DIM)
            else:
                histogram_buffer = buffer

        stats = channel_stats(buffer)
        histogram = compute_histograms(histogram_buffer)

        exposure = analyze_exposure_level(histogram.luminance)
        clipping = analyze_clipping(histogram.luminance)
        dynamic_range = analyze_dynamic_range(histogram.luminance)
        contrast = analyze_contrast(histogram.luminance, stats)

        return ExposureResult(
            valid=True,
            histogram=histogram,
            stats=stats,
            exposure=exposure,
            clipping=clipping,
            dynamic_range=dynamic_range,
            contrast=contrast,
            score=exposure_score(exposure, clipping, dynamic_range),
        )
    except Exception as e:
        logger.warning("Exposure analysis failed: %s", e)
        return ExposureResult.neutral()


def quick_exposure_check(buffer: PixelBuffer | None) -> QuickCheck:
    """Screen for gross exposure problems from channel means alone."""
    if buffer is None or not buffer.is_valid:
        return QuickCheck(ok=False, issue="no-image")

    try:
        avg_mean = sum(s.mean for s in channel_stats(buffer)) / 3
    except Exception as e:
        logger.warning("Quick exposure check failed: %s", e)
        return QuickCheck(ok=False, issue="analysis-failed")

    if avg_mean < 30:
        return QuickCheck(ok=False, issue="severely-underexposed", value=avg_mean)
    if avg_mean > 230:
        return QuickCheck(ok=False, issue="severely-overexposed", value=avg_mean)
    if avg_mean < 60:
        return QuickCheck(ok=True, issue="underexposed", value=avg_mean)
    if avg_mean > 200:
        return QuickCheck(ok=True, issue="overexposed", value=avg_mean)
    return QuickCheck(ok=True, value=avg_mean)
