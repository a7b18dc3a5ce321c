"""Analysis passes and the scoring engine.

Passes:
    1. Sharpness - Laplacian variance, region grid, blur type, edges, focus plane
    2. Exposure - histograms, exposure level, clipping, dynamic range, contrast
    3. Composition - thirds, balance, horizon, leading lines, symmetry

The passes are independent; score() combines their results with EXIF-derived
signals into an overall score, star rating, category and issue list.
"""

from __future__ import annotations

# Re-export types for convenience
from shotgrade.scoring.types import (
    Comparison,
    CompositionResult,
    ExposureResult,
    Issue,
    QuickCheck,
    ScoreResult,
    ScoreSignals,
    SharpnessResult,
)

# Pass entry points
from shotgrade.scoring.composition import analyze_composition
from shotgrade.scoring.engine import compare_scores, score, unknown_score
from shotgrade.scoring.exposure import analyze_exposure, quick_exposure_check
from shotgrade.scoring.sharpness import (
    analyze_sharpness,
    quick_sharpness_check,
    seeded_sampler,
    stride_sampler,
)

__all__ = [
    # Types
    "SharpnessResult",
    "ExposureResult",
    "CompositionResult",
    "ScoreResult",
    "ScoreSignals",
    "Issue",
    "QuickCheck",
    "Comparison",
    # Passes
    "analyze_sharpness",
    "analyze_exposure",
    "analyze_composition",
    # Scoring
    "score",
    "compare_scores",
    "unknown_score",
    # Cheap screens
    "quick_sharpness_check",
    "quick_exposure_check",
    # Samplers for the gradient-consistency check
    "seeded_sampler",
    "stride_sampler",
]
