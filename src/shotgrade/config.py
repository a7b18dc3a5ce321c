"""Scoring configuration: weight profiles, rating thresholds, auto-reject limits.

Configuration is an explicit value handed to the scoring engine; there is no
module-level mutable state. Defaults are tuned for photographers culling a
shoot, so rejection is reserved for clearly unusable frames.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, fields, replace
from types import MappingProxyType
from typing import Any, Mapping

SUB_SCORES = (
    "sharpness",
    "exposure",
    "focusAccuracy",
    "composition",
    "noise",
    "dynamicRange",
    "horizonLevel",
)

# Weights of each profile sum to 1.0
DEFAULT_PROFILES: Mapping[str, Mapping[str, float]] = MappingProxyType(
    {
        "landscape": MappingProxyType(
            {
                "sharpness": 0.20,
                "exposure": 0.25,
                "composition": 0.25,
                "dynamicRange": 0.15,
                "horizonLevel": 0.10,
                "noise": 0.05,
            }
        ),
        "general": MappingProxyType(
            {
                "sharpness": 0.25,
                "focusAccuracy": 0.15,
                "exposure": 0.25,
                "composition": 0.15,
                "noise": 0.10,
                "dynamicRange": 0.10,
            }
        ),
    }
)

DEFAULT_CONCURRENCY = 4

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    """Raised for configuration values that cannot be used."""


@dataclass(frozen=True)
class Thresholds:
    """Minimum overall score for each category (and star rating)."""

    select: float = 72  # 5 stars
    good: float = 58  # 4 stars
    review: float = 45  # 3 stars
    maybe: float = 30  # 2 stars, anything lower is a 1-star reject


@dataclass(frozen=True)
class AutoRejectLimits:
    """Ceilings that force the reject category regardless of score."""

    motion_blur_severity: float = 0.85  # 0-1
    defocus_severity: float = 0.85  # 0-1
    highlight_clip: float = 25  # % of pixels blown
    shadow_clip: float = 25  # % of pixels crushed


@dataclass(frozen=True)
class ScoringConfig:
    profiles: Mapping[str, Mapping[str, float]] = field(
        default_factory=lambda: DEFAULT_PROFILES
    )
    thresholds: Thresholds = field(default_factory=Thresholds)
    auto_reject: AutoRejectLimits = field(default_factory=AutoRejectLimits)
    concurrency: int = DEFAULT_CONCURRENCY

    def resolve_weights(
        self, profile: str | Mapping[str, float] | None = None
    ) -> tuple[str, dict[str, float]]:
        """Return (mode name, weight map) for a profile selector.

        Mappings are used as custom weights. "portrait" and unknown names fall
        back to "general".
        """
        if profile is None:
            profile = "general"
        if not isinstance(profile, str):
            return "custom", _usable_weights(profile)
        mode = profile if profile in self.profiles else "general"
        return mode, dict(self.profiles[mode])

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ScoringConfig:
        """Build a config from a partial mapping, e.g. parsed JSON.

        Recognized keys: ``weights`` (profile name -> weight map, merged over
        the defaults), ``thresholds``, ``autoReject`` and ``concurrency``.
        """
        unknown = set(data) - {"weights", "thresholds", "autoReject", "concurrency"}
        if unknown:
            raise ConfigError(f"Unknown config keys: {sorted(unknown)}")

        config = cls()

        if "weights" in data:
            profiles = {name: dict(w) for name, w in DEFAULT_PROFILES.items()}
            for name, weights in data["weights"].items():
                profiles[name] = _check_weights(weights)
            config = replace(
                config,
                profiles=MappingProxyType(
                    {k: MappingProxyType(v) for k, v in profiles.items()}
                ),
            )
        if "thresholds" in data:
            config = replace(
                config, thresholds=_merge(Thresholds(), data["thresholds"])
            )
        if "autoReject" in data:
            config = replace(
                config, auto_reject=_merge(AutoRejectLimits(), data["autoReject"])
            )
        if "concurrency" in data:
            concurrency = data["concurrency"]
            if not isinstance(concurrency, int) or concurrency < 1:
                raise ConfigError(f"concurrency must be a positive int, got {concurrency!r}")
            config = replace(config, concurrency=concurrency)

        return config


def _check_weights(weights: Mapping[str, Any]) -> dict[str, float]:
    result = {}
    for key, value in weights.items():
        if key not in SUB_SCORES:
            raise ConfigError(f"Unknown sub-score in weights: {key!r}")
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigError(f"Weight for {key!r} must be a number, got {value!r}")
        result[key] = float(value)
    return result


def _usable_weights(weights: Mapping[str, Any]) -> dict[str, float]:
    """Keep the recognized, numeric entries of a caller-supplied weight map."""
    result = {}
    for key, value in weights.items():
        if key in SUB_SCORES and isinstance(value, (int, float)) and not isinstance(value, bool):
            result[key] = float(value)
        else:
            logger.warning("Ignoring weight %r=%r", key, value)
    return result


def _snake(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def _merge(base: Any, overrides: Mapping[str, Any]) -> Any:
    overrides = {_snake(k): v for k, v in overrides.items()}
    names = {f.name for f in fields(base)}
    unknown = set(overrides) - names
    if unknown:
        raise ConfigError(
            f"Unknown {type(base).__name__} options: {sorted(unknown)}"
        )
    for key, value in overrides.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigError(f"{key!r} must be a number, got {value!r}")
    return replace(base, **overrides)
