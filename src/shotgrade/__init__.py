"""shotgrade: photo quality analysis and scoring."""

from __future__ import annotations

from shotgrade.analyze import ImageAnalysis, analyze_path, analyze_pixels
from shotgrade.config import (
    AutoRejectLimits,
    ConfigError,
    ScoringConfig,
    Thresholds,
)
from shotgrade.parallel import analyze_batch, process_images_parallel
from shotgrade.pixels import PixelBuffer, load_image, prepare
from shotgrade.scoring import (
    CompositionResult,
    ExposureResult,
    ScoreResult,
    ScoreSignals,
    SharpnessResult,
    analyze_composition,
    analyze_exposure,
    analyze_sharpness,
    compare_scores,
    score,
)

__version__ = "0.1.0"

__all__ = [
    "AutoRejectLimits",
    "CompositionResult",
    "ConfigError",
    "ExposureResult",
    "ImageAnalysis",
    "PixelBuffer",
    "ScoreResult",
    "ScoreSignals",
    "ScoringConfig",
    "SharpnessResult",
    "Thresholds",
    "analyze_batch",
    "analyze_composition",
    "analyze_exposure",
    "analyze_path",
    "analyze_pixels",
    "analyze_sharpness",
    "compare_scores",
    "load_image",
    "prepare",
    "process_images_parallel",
    "score",
]
