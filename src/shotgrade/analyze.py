"""Analyze module: run the three analysis passes and score one image."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from PIL import Image

from shotgrade.config import ScoringConfig
from shotgrade.pixels import (
    COMPOSITION_MAX_DIM,
    STATS_MAX_DIM,
    PixelBuffer,
    from_image,
    load_image,
    prepare,
)
from shotgrade.scoring.composition import analyze_composition
from shotgrade.scoring.engine import score, unknown_score
from shotgrade.scoring.exposure import analyze_exposure
from shotgrade.scoring.sharpness import analyze_sharpness
from shotgrade.scoring.types import (
    CompositionResult,
    ExposureResult,
    ScoreResult,
    ScoreSignals,
    SharpnessResult,
)

logger = logging.getLogger(__name__)


@dataclass
class ImageAnalysis:
    """Everything computed for a single image."""

    key: str
    success: bool
    score: ScoreResult
    sharpness: SharpnessResult = field(default_factory=SharpnessResult.neutral)
    exposure: ExposureResult = field(default_factory=ExposureResult.neutral)
    composition: CompositionResult | None = None
    width: int = 0
    height: int = 0
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "success": self.success,
            "error": self.error,
            "width": self.width,
            "height": self.height,
            "sharpness": self.sharpness.to_dict(),
            "exposure": self.exposure.to_dict(),
            "composition": self.composition.to_dict() if self.composition else None,
            "score": self.score.to_dict(),
        }


def failed_analysis(
    key: str, error: str, config: ScoringConfig | None = None
) -> ImageAnalysis:
    """Analysis for an image that could not be processed.

    Engine results are the neutral variants and the score is the "unknown"
    verdict, so failures sort below every analyzed image.
    """
    return ImageAnalysis(
        key=key,
        success=False,
        score=unknown_score(config),
        error=error,
    )


def analyze_pixels(
    buffer: PixelBuffer | Image.Image,
    signals: ScoreSignals | None = None,
    profile: str | Mapping[str, float] | None = "general",
    config: ScoringConfig | None = None,
    skip_composition: bool = False,
    key: str = "",
) -> ImageAnalysis:
    """Analyze decoded pixels and score them.

    Sharpness, exposure and composition run concurrently on their own
    downsized copies; scoring waits for all of them.

    Args:
        buffer: Decoded image, any size.
        signals: EXIF-derived inputs (ISO, continuous focus).
        profile: Weight profile name or explicit weight map.
        config: Scoring configuration (defaults when None).
        skip_composition: Leave out the composition pass.
        key: Identifier carried into the result (usually the file path).

    Returns:
        ImageAnalysis. Failures are reported in-band, never raised.
    """
    config = config or ScoringConfig()

    try:
        if isinstance(buffer, Image.Image):
            buffer = from_image(buffer)
        if buffer is None or not buffer.is_valid:
            return failed_analysis(key, "invalid pixel buffer", config)

        stats = prepare(buffer, STATS_MAX_DIM)
        gray = prepare(stats, STATS_MAX_DIM, grayscale=True)

        with ThreadPoolExecutor(max_workers=3) as executor:
            sharpness_future = executor.submit(analyze_sharpness, gray)
            exposure_future = executor.submit(analyze_exposure, buffer, stats)
            composition_future = None
            if not skip_composition:
                small = prepare(stats, COMPOSITION_MAX_DIM, grayscale=True)
                composition_future = executor.submit(analyze_composition, small)

            sharpness = sharpness_future.result()
            exposure = exposure_future.result()
            composition = composition_future.result() if composition_future else None

        return ImageAnalysis(
            key=key,
            success=True,
            score=score(sharpness, exposure, composition, signals, profile, config),
            sharpness=sharpness,
            exposure=exposure,
            composition=composition,
            width=buffer.width,
            height=buffer.height,
        )
    except Exception as e:
        logger.warning("Analysis of %s failed: %s", key or "<buffer>", e)
        return failed_analysis(key, str(e), config)


def analyze_path(
    path: Path | str,
    signals: ScoreSignals | None = None,
    profile: str | Mapping[str, float] | None = "general",
    config: ScoringConfig | None = None,
    skip_composition: bool = False,
) -> ImageAnalysis:
    """Open an image file (JPEG, PNG, extracted preview) and analyze it."""
    key = str(path)
    try:
        img = load_image(path)
    except (OSError, ValueError) as e:
        logger.warning("Cannot open %s: %s", key, e)
        return failed_analysis(key, str(e), config)

    return analyze_pixels(
        img,
        signals=signals,
        profile=profile,
        config=config,
        skip_composition=skip_composition,
        key=key,
    )
