"""Scoring engine: combine the analysis passes into a final verdict.

Sub-scores (all 0-100):
    sharpness      - sharpness engine score (blur penalties already applied)
    exposure       - exposure engine score
    focusAccuracy  - where the sharpest regions sit, continuous AF penalty
    composition    - composition engine score
    noise          - ISO bands, extra penalty for high ISO with deep shadows
    dynamicRange   - share of the tonal range in use
    horizonLevel   - only when a horizon was found

The overall score is a weighted average over the sub-scores a weight profile
names; sub-scores that are absent drop out of both sides of the average.
"""

from __future__ import annotations

import logging
from typing import Mapping

from shotgrade.config import SUB_SCORES, ScoringConfig, Thresholds
from shotgrade.scoring.types import (
    Comparison,
    CompositionResult,
    ExposureResult,
    Issue,
    ScoreResult,
    ScoreSignals,
    SharpnessResult,
)
from shotgrade.scoring.utils import clamp, round_half_up, round_int

logger = logging.getLogger(__name__)

ISO_BANDS = (
    (200, 100),
    (400, 95),
    (800, 85),
    (1600, 75),
    (3200, 60),
    (6400, 45),
    (12800, 30),
)
ISO_FLOOR_SCORE = 15


def sharpness_subscore(sharpness: SharpnessResult | None) -> float:
    if sharpness is None:
        return 50
    return clamp(round_int(sharpness.score), 0, 100)


def exposure_subscore(exposure: ExposureResult | None) -> float:
    if exposure is None or not exposure.valid:
        return 50
    return exposure.score or 50


def focus_accuracy_subscore(
    sharpness: SharpnessResult | None, continuous_focus: bool = False
) -> float:
    """70 by default, more when the sharpest regions include the center."""
    if sharpness is None:
        return 50

    score = 70
    regions = sharpness.focus_plane.sharpest_regions
    if "center" in regions:
        score = 85
    elif regions:
        score = 75

    # Continuous AF is harder to nail
    if continuous_focus:
        score -= 5

    return clamp(score, 0, 100)


def composition_subscore(composition: CompositionResult | None) -> float:
    if composition is None or not composition.valid:
        return 60
    return composition.score or 60


def noise_subscore(iso: int | None, shadow_zone: float | None = None) -> float:
    """ISO-banded noise expectation; unknown ISO is assumed decent."""
    if not iso:
        return 80

    score = ISO_FLOOR_SCORE
    for limit, band_score in ISO_BANDS:
        if iso <= limit:
            score = band_score
            break

    # Pushed shadows at high ISO show noise first
    if shadow_zone is not None and shadow_zone > 30 and iso > 1600:
        score -= 10

    return clamp(score, 0, 100)


def dynamic_range_subscore(exposure: ExposureResult | None) -> float:
    if exposure is None or not exposure.valid:
        return 60
    return exposure.dynamic_range.percentage or 60


def horizon_level_subscore(composition: CompositionResult | None) -> float | None:
    if composition is None or not composition.horizon.detected:
        return None
    horizon = composition.horizon
    if horizon.level:
        return 100
    return max(50, 100 - abs(horizon.tilt or 0.0) * 5)


def weighted_overall(scores: Mapping[str, float | None], weights: Mapping[str, float]) -> float:
    """Weighted average over the weighted sub-scores that are present."""
    weighted_sum = 0.0
    weight_total = 0.0
    for key, weight in weights.items():
        value = scores.get(key)
        if value is not None:
            weighted_sum += value * weight
            weight_total += weight
    return weighted_sum / weight_total if weight_total > 0 else 0.0


def star_rating(overall: float, thresholds: Thresholds) -> int:
    if overall >= thresholds.select:
        return 5
    if overall >= thresholds.good:
        return 4
    if overall >= thresholds.review:
        return 3
    if overall >= thresholds.maybe:
        return 2
    return 1


def category_for(overall: float, thresholds: Thresholds) -> str:
    if overall >= thresholds.select:
        return "select"
    if overall >= thresholds.good:
        return "good"
    if overall >= thresholds.review:
        return "review"
    if overall >= thresholds.maybe:
        return "maybe"
    return "reject"


def auto_reject_reasons(
    sharpness: SharpnessResult | None,
    exposure: ExposureResult | None,
    config: ScoringConfig,
) -> tuple[str, ...]:
    """Conditions that make a frame unusable whatever its score."""
    limits = config.auto_reject
    reasons = []

    if sharpness is not None:
        blur = sharpness.blur
        if blur.type == "motion" and blur.severity >= limits.motion_blur_severity:
            reasons.append("severe-motion-blur")
        if blur.type == "defocus" and blur.severity >= limits.defocus_severity:
            reasons.append("severely-out-of-focus")

    if exposure is not None:
        if exposure.clipping.highlights.clipped >= limits.highlight_clip:
            reasons.append("blown-highlights")
        if exposure.clipping.shadows.clipped >= limits.shadow_clip:
            reasons.append("crushed-shadows")

    return tuple(reasons)


def _clipping_issue(clipped: float, severity: str, what: str) -> Issue | None:
    if severity not in ("moderate", "severe"):
        return None
    return Issue(
        type="clipping",
        severity="high" if severity == "severe" else "medium",
        message=f"{round_int(clipped)}% {what}",
        suggestion="May be recoverable" if clipped < 10 else "Likely unrecoverable",
    )


def generate_issues(
    scores: Mapping[str, float | None],
    sharpness: SharpnessResult | None,
    exposure: ExposureResult | None,
    composition: CompositionResult | None,
) -> tuple[Issue, ...]:
    """Problems worth telling the photographer about, with suggestions."""
    issues = []

    if (scores.get("sharpness") or 0) < 60:
        blur_type = sharpness.blur.type if sharpness is not None else None
        if blur_type == "motion":
            issues.append(
                Issue(
                    type="sharpness",
                    severity="high",
                    message="Motion blur detected",
                    suggestion="Use faster shutter speed",
                )
            )
        elif blur_type == "defocus":
            issues.append(
                Issue(
                    type="sharpness",
                    severity="high",
                    message="Subject out of focus",
                    suggestion="Check focus point or use smaller aperture",
                )
            )
        else:
            issues.append(
                Issue(
                    type="sharpness",
                    severity="medium",
                    message="Image is soft",
                    suggestion="Consider increasing sharpening in post",
                )
            )

    if exposure is not None and exposure.valid:
        assessment = exposure.exposure.assessment
        if assessment == "underexposed":
            issues.append(
                Issue(
                    type="exposure",
                    severity="medium",
                    message="Underexposed",
                    suggestion="Increase exposure or brighten shadows in post",
                )
            )
        elif assessment == "overexposed":
            issues.append(
                Issue(
                    type="exposure",
                    severity="medium",
                    message="Overexposed",
                    suggestion="Check for recoverable highlights",
                )
            )

        highlights = exposure.clipping.highlights
        shadows = exposure.clipping.shadows
        for issue in (
            _clipping_issue(highlights.clipped, highlights.severity, "highlights blown"),
            _clipping_issue(shadows.clipped, shadows.severity, "shadows crushed"),
        ):
            if issue is not None:
                issues.append(issue)

    if composition is not None and composition.horizon.detected and not composition.horizon.level:
        tilt = abs(composition.horizon.tilt or 0.0)
        if tilt > 2:
            issues.append(
                Issue(
                    type="composition",
                    severity="medium" if tilt > 5 else "low",
                    message=f"Horizon tilted {tilt:.1f}°",
                    suggestion="Straighten in post",
                )
            )

    noise = scores.get("noise")
    if noise is not None and noise < 50:
        issues.append(
            Issue(
                type="noise",
                severity="low",
                message="High ISO may result in visible noise",
                suggestion="Apply noise reduction in post",
            )
        )

    return tuple(issues)


def keeper_probability(overall: float, issues: tuple[Issue, ...]) -> float:
    """Chance the photographer keeps the frame, from score and issue load."""
    probability = overall / 100
    probability -= sum(1 for i in issues if i.severity == "high") * 0.15
    probability -= sum(1 for i in issues if i.severity == "medium") * 0.05
    return clamp(round_half_up(probability, 2))


def score(
    sharpness: SharpnessResult | None,
    exposure: ExposureResult | None,
    composition: CompositionResult | None = None,
    signals: ScoreSignals | None = None,
    profile: str | Mapping[str, float] | None = "general",
    config: ScoringConfig | None = None,
) -> ScoreResult:
    """Combine engine results and EXIF signals into a ScoreResult.

    Args:
        sharpness: Sharpness engine result (None if not run).
        exposure: Exposure engine result (None if not run).
        composition: Composition engine result (None if skipped).
        signals: ISO, continuous focus flag, optional shadow-zone override.
        profile: "general", "landscape" or an explicit weight map.
        config: Thresholds, auto-reject limits and weight profiles.

    Returns:
        ScoreResult. Never raises.
    """
    config = config or ScoringConfig()
    signals = signals or ScoreSignals()

    try:
        return _score(sharpness, exposure, composition, signals, profile, config)
    except Exception as e:
        logger.warning("Scoring failed, using neutral inputs: %s", e)
        return _score(
            SharpnessResult.neutral(),
            ExposureResult.neutral(),
            None,
            ScoreSignals(),
            "general",
            ScoringConfig(),
        )


def _score(
    sharpness: SharpnessResult | None,
    exposure: ExposureResult | None,
    composition: CompositionResult | None,
    signals: ScoreSignals,
    profile: str | Mapping[str, float] | None,
    config: ScoringConfig,
) -> ScoreResult:
    mode, weights = config.resolve_weights(profile)

    shadow_zone = signals.shadow_zone
    if shadow_zone is None and exposure is not None and exposure.valid:
        shadow_zone = exposure.exposure.zones.shadows

    scores: dict[str, float | None] = {
        "sharpness": sharpness_subscore(sharpness),
        "exposure": exposure_subscore(exposure),
        "focusAccuracy": focus_accuracy_subscore(sharpness, signals.continuous_focus),
        "composition": composition_subscore(composition),
        "noise": noise_subscore(signals.iso, shadow_zone),
        "dynamicRange": dynamic_range_subscore(exposure),
        "horizonLevel": horizon_level_subscore(composition),
    }

    overall = weighted_overall(scores, weights)

    present = sorted(
        ((k, v) for k, v in scores.items() if v is not None), key=lambda kv: -kv[1]
    )
    strongest = present[0][0] if present else None
    weakest = present[-1][0] if present else None

    reasons = auto_reject_reasons(sharpness, exposure, config)
    category = "reject" if reasons else category_for(overall, config.thresholds)

    issues = generate_issues(scores, sharpness, exposure, composition)

    return ScoreResult(
        scores=scores,
        overall=round_int(overall),
        overall_raw=overall,
        rating=star_rating(overall, config.thresholds),
        category=category,
        strongest=strongest,
        weakest=weakest,
        auto_reject=reasons,
        issues=issues,
        keeper_probability=keeper_probability(overall, issues),
        mode=mode,
        weights=weights,
    )


def unknown_score(config: ScoringConfig | None = None) -> ScoreResult:
    """Score for an image that could not be analyzed: category "unknown", 1 star."""
    mode, weights = (config or ScoringConfig()).resolve_weights("general")
    return ScoreResult.unknown(SUB_SCORES, mode, weights)


def compare_scores(a: ScoreResult, b: ScoreResult) -> Comparison:
    """Which of two scored images is better, and by how much per aspect."""
    diff = a.overall - b.overall
    return Comparison(
        winner="A" if diff > 0 else "B" if diff < 0 else "tie",
        score_diff=abs(diff),
        sharpness=(a.scores.get("sharpness") or 0) - (b.scores.get("sharpness") or 0),
        exposure=(a.scores.get("exposure") or 0) - (b.scores.get("exposure") or 0),
        composition=(a.scores.get("composition") or 0) - (b.scores.get("composition") or 0),
    )
