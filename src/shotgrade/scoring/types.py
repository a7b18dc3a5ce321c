"""Result dataclasses for the analysis engines and the scoring engine.

All results are frozen and built fresh per analysis call. Each engine result
has a ``valid`` flag; ``neutral()`` builds the variant returned for
unusable input so callers can branch on ``valid`` instead of probing fields.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from types import MappingProxyType
from typing import Any, Iterable, Mapping


class _AsDict:
    def to_dict(self) -> dict[str, Any]:
        """Plain, JSON-serializable representation."""
        return asdict(self)  # type: ignore[call-overload]


# --- Sharpness ---------------------------------------------------------------


@dataclass(frozen=True)
class Region(_AsDict):
    """One cell of the sharpness grid."""

    x: int
    y: int
    position: str  # center, top, left, top-left, ...
    sharpness: float  # Laplacian variance, 2 decimals
    normalized_sharpness: int  # 0-100 relative to this image's regions


@dataclass(frozen=True)
class RegionSummary(_AsDict):
    grid: tuple[Region, ...] = ()
    max: float = 0.0
    min: float = 0.0
    spread: float = 0.0  # max - min


@dataclass(frozen=True)
class BlurMetrics(_AsDict):
    horizontal_gradient: int
    vertical_gradient: int
    gradient_ratio: float
    consistency: float  # 0 = random directions, 1 = single direction
    avg_gradient: int


@dataclass(frozen=True)
class BlurAnalysis(_AsDict):
    """Blur classification: none, soft, motion, defocus (unknown if neutral)."""

    type: str = "unknown"
    severity: float = 0.0  # 0-1
    direction: str | None = None  # horizontal/vertical for motion blur
    metrics: BlurMetrics | None = None


@dataclass(frozen=True)
class EdgeStats(_AsDict):
    average_strength: int = 0  # mean Sobel magnitude
    strong_edge_ratio: float = 0.0  # % of pixels with magnitude > 100
    weak_edge_ratio: float = 0.0  # % of pixels with 30 < magnitude <= 100
    assessment: str = "unknown"


@dataclass(frozen=True)
class FocusPlane(_AsDict):
    position: str = "unknown"
    sharpest_regions: tuple[str, ...] = ()
    center_x: float = 0.0  # grid coordinates
    center_y: float = 0.0


@dataclass(frozen=True)
class SharpnessResult(_AsDict):
    """Output of the sharpness engine."""

    valid: bool
    variance: float  # global Laplacian variance
    score: int  # 0-100
    assessment: str
    regions: RegionSummary
    blur: BlurAnalysis
    edges: EdgeStats
    focus_plane: FocusPlane
    width: int = 0
    height: int = 0

    @classmethod
    def neutral(cls) -> SharpnessResult:
        return cls(
            valid=False,
            variance=0.0,
            score=0,
            assessment="unknown",
            regions=RegionSummary(),
            blur=BlurAnalysis(),
            edges=EdgeStats(),
            focus_plane=FocusPlane(),
        )


# --- Exposure ----------------------------------------------------------------


@dataclass(frozen=True)
class ChannelStats(_AsDict):
    mean: float
    std: float


@dataclass(frozen=True)
class Histograms(_AsDict):
    """256-bucket histograms, each bucket a percentage of all pixels."""

    red: tuple[float, ...]
    green: tuple[float, ...]
    blue: tuple[float, ...]
    luminance: tuple[float, ...]
    total_pixels: int


@dataclass(frozen=True)
class ExposureZones(_AsDict):
    shadows: float = 0.0  # % of pixels in luminance 0-63
    midtones: float = 0.0  # 64-191
    highlights: float = 0.0  # 192-255


@dataclass(frozen=True)
class ExposureLevel(_AsDict):
    mean_brightness: int = 0
    assessment: str = "unknown"
    deviation: float = 1.0  # 0 = inside the good band, 1 = far off
    zones: ExposureZones = field(default_factory=ExposureZones)
    shape: str = "unknown"


@dataclass(frozen=True)
class ClipTail(_AsDict):
    clipped: float = 0.0  # % of pixels at the extreme
    near_clip: float = 0.0  # % of pixels just inside the extreme
    severity: str = "none"


@dataclass(frozen=True)
class Clipping(_AsDict):
    shadows: ClipTail = field(default_factory=ClipTail)
    highlights: ClipTail = field(default_factory=ClipTail)
    total_clipped: float = 0.0
    recoverable: bool = True


@dataclass(frozen=True)
class DynamicRange(_AsDict):
    min: int = 0
    max: int = 0
    range: int = 0
    percentage: int = 0  # of the 0-255 scale
    assessment: str = "unknown"
    estimated_stops: float = 0.0


@dataclass(frozen=True)
class Contrast(_AsDict):
    standard_deviation: int = 0
    level: str = "unknown"
    variance: float = 0.0  # variance of luminance histogram buckets


@dataclass(frozen=True)
class ExposureResult(_AsDict):
    """Output of the exposure engine."""

    valid: bool
    histogram: Histograms | None
    stats: tuple[ChannelStats, ...]  # red, green, blue
    exposure: ExposureLevel
    clipping: Clipping
    dynamic_range: DynamicRange
    contrast: Contrast
    score: int

    @classmethod
    def neutral(cls) -> ExposureResult:
        return cls(
            valid=False,
            histogram=None,
            stats=(),
            exposure=ExposureLevel(),
            clipping=Clipping(),
            dynamic_range=DynamicRange(),
            contrast=Contrast(),
            score=0,
        )


# --- Composition -------------------------------------------------------------


@dataclass(frozen=True)
class InterestPoint(_AsDict):
    x: int
    y: int
    strength: int


@dataclass(frozen=True)
class ThirdsLines(_AsDict):
    vertical: bool = False
    horizontal: bool = False


@dataclass(frozen=True)
class RuleOfThirds(_AsDict):
    alignment: int = 0  # 0-100
    nearest_power_point: str | None = None
    interest_point_count: int = 0
    thirds_lines: ThirdsLines = field(default_factory=ThirdsLines)
    assessment: str = "unknown"


@dataclass(frozen=True)
class Quadrants(_AsDict):
    top_left: float = 0.0
    top_right: float = 0.0
    bottom_left: float = 0.0
    bottom_right: float = 0.0


@dataclass(frozen=True)
class Balance(_AsDict):
    quadrants: Quadrants = field(default_factory=Quadrants)
    horizontal: int = 0
    vertical: int = 0
    overall: int = 0
    type: str = "unknown"


@dataclass(frozen=True)
class Horizon(_AsDict):
    detected: bool = False
    position: int | None = None  # % from top
    position_quality: str | None = None
    level: bool | None = None
    tilt: float | None = None  # degrees, positive = falls to the right
    strength: int | None = None


@dataclass(frozen=True)
class LineDistribution(_AsDict):
    to_center: int = 0
    horizontal: int = 0
    vertical: int = 0
    diagonal: int = 0


@dataclass(frozen=True)
class LeadingLines(_AsDict):
    detected: bool = False
    dominant: str | None = None
    strength: int = 0
    distribution: LineDistribution = field(default_factory=LineDistribution)
    lead_to_subject: bool = False


@dataclass(frozen=True)
class WeightDistribution(_AsDict):
    center_x: int = 0  # % of width
    center_y: int = 0  # % of height
    offset_x: int = 0
    offset_y: int = 0
    centered: bool = False


@dataclass(frozen=True)
class Symmetry(_AsDict):
    horizontal: int = 0  # left/right mirror similarity, %
    vertical: int = 0  # top/bottom mirror similarity, %
    overall: int = 0
    type: str = "unknown"


@dataclass(frozen=True)
class CompositionResult(_AsDict):
    """Output of the composition engine."""

    valid: bool
    rule_of_thirds: RuleOfThirds
    balance: Balance
    horizon: Horizon
    leading_lines: LeadingLines
    weight_distribution: WeightDistribution
    symmetry: Symmetry
    score: int
    factors: tuple[str, ...] = ()
    assessment: str = "unknown"
    width: int = 0
    height: int = 0

    @classmethod
    def neutral(cls) -> CompositionResult:
        return cls(
            valid=False,
            rule_of_thirds=RuleOfThirds(),
            balance=Balance(),
            horizon=Horizon(),
            leading_lines=LeadingLines(),
            weight_distribution=WeightDistribution(),
            symmetry=Symmetry(),
            score=0,
        )


# --- Scoring -----------------------------------------------------------------


@dataclass(frozen=True)
class ScoreSignals(_AsDict):
    """Per-image signals that come from EXIF rather than pixels."""

    iso: int | None = None
    continuous_focus: bool = False
    shadow_zone: float | None = None  # overrides the exposure engine's value


@dataclass(frozen=True)
class Issue(_AsDict):
    type: str  # sharpness, exposure, clipping, composition, noise
    severity: str  # low, medium, high
    message: str
    suggestion: str


@dataclass(frozen=True)
class ScoreResult(_AsDict):
    """Final verdict for one image.

    ``scores`` and ``weights`` are read-only views; ``to_dict()`` returns
    plain dicts.
    """

    scores: Mapping[str, float | None]
    overall: int  # 0-100
    overall_raw: float  # unrounded weighted average
    rating: int  # 1-5 stars
    category: str  # select, good, review, maybe, reject, unknown
    strongest: str | None
    weakest: str | None
    auto_reject: tuple[str, ...]
    issues: tuple[Issue, ...]
    keeper_probability: float
    mode: str
    weights: Mapping[str, float]

    def __post_init__(self) -> None:
        object.__setattr__(self, "scores", MappingProxyType(dict(self.scores)))
        object.__setattr__(self, "weights", MappingProxyType(dict(self.weights)))

    def __reduce__(self):
        # mappingproxy cannot be pickled; rebuild from plain dicts
        args = tuple(
            dict(value) if isinstance(value, MappingProxyType) else value
            for value in (getattr(self, f.name) for f in fields(self))
        )
        return (self.__class__, args)

    def to_dict(self) -> dict[str, Any]:
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["scores"] = dict(self.scores)
        data["weights"] = dict(self.weights)
        data["issues"] = tuple(issue.to_dict() for issue in self.issues)
        return data

    @classmethod
    def unknown(
        cls,
        sub_scores: Iterable[str],
        mode: str = "general",
        weights: Mapping[str, float] | None = None,
    ) -> ScoreResult:
        """Verdict for an image that could not be analyzed.

        Every sub-score is None and nothing is ranked, flagged or kept.
        """
        return cls(
            scores={name: None for name in sub_scores},
            overall=0,
            overall_raw=0.0,
            rating=1,
            category="unknown",
            strongest=None,
            weakest=None,
            auto_reject=(),
            issues=(),
            keeper_probability=0.0,
            mode=mode,
            weights=weights or {},
        )

    @property
    def valid(self) -> bool:
        return self.category != "unknown"

    @property
    def rejected(self) -> bool:
        return bool(self.auto_reject)


@dataclass(frozen=True)
class QuickCheck(_AsDict):
    """Cheap pass/fail screen used before a full analysis."""

    ok: bool
    issue: str | None = None
    value: float | None = None


@dataclass(frozen=True)
class Comparison(_AsDict):
    """Side-by-side of two scored images."""

    winner: str  # "A", "B" or "tie"
    score_diff: int
    sharpness: float  # A minus B
    exposure: float
    composition: float
