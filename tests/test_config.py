"""Tests for shotgrade.config module."""

import pickle
from dataclasses import FrozenInstanceError

import pytest

from shotgrade.config import (
    DEFAULT_PROFILES,
    SUB_SCORES,
    AutoRejectLimits,
    ConfigError,
    ScoringConfig,
    Thresholds,
)


class TestDefaults:
    def test_thresholds(self):
        t = Thresholds()
        assert (t.select, t.good, t.review, t.maybe) == (72, 58, 45, 30)

    def test_auto_reject(self):
        limits = AutoRejectLimits()
        assert limits.motion_blur_severity == 0.85
        assert limits.defocus_severity == 0.85
        assert limits.highlight_clip == 25
        assert limits.shadow_clip == 25

    def test_profiles_sum_to_one(self):
        for weights in DEFAULT_PROFILES.values():
            assert sum(weights.values()) == pytest.approx(1.0)
            assert set(weights) <= set(SUB_SCORES)

    def test_landscape_has_no_focus_accuracy(self):
        assert "focusAccuracy" not in DEFAULT_PROFILES["landscape"]

    def test_frozen(self):
        with pytest.raises(FrozenInstanceError):
            ScoringConfig().concurrency = 8  # type: ignore[misc]

    def test_default_concurrency(self):
        assert ScoringConfig().concurrency == 4


class TestResolveWeights:
    def test_named_profile(self):
        mode, weights = ScoringConfig().resolve_weights("landscape")
        assert mode == "landscape"
        assert weights["horizonLevel"] == 0.10

    @pytest.mark.parametrize("name", ["portrait", "astro", None])
    def test_fallback_to_general(self, name):
        mode, weights = ScoringConfig().resolve_weights(name)
        assert mode == "general"
        assert weights == dict(DEFAULT_PROFILES["general"])

    def test_custom_map(self):
        mode, weights = ScoringConfig().resolve_weights({"sharpness": 1, "exposure": 0.5})
        assert mode == "custom"
        assert weights == {"sharpness": 1.0, "exposure": 0.5}

    def test_custom_map_drops_unusable_entries(self):
        _, weights = ScoringConfig().resolve_weights(
            {"sharpness": 1, "colour": 2, "exposure": "heavy", "noise": True}
        )
        assert weights == {"sharpness": 1.0}

    def test_returns_copy(self):
        config = ScoringConfig()
        _, weights = config.resolve_weights("general")
        weights["sharpness"] = 99
        assert config.resolve_weights("general")[1]["sharpness"] == 0.25


class TestFromDict:
    def test_empty(self):
        assert ScoringConfig.from_dict({}) == ScoringConfig()

    def test_thresholds_merge(self):
        config = ScoringConfig.from_dict({"thresholds": {"select": 80}})
        assert config.thresholds.select == 80
        assert config.thresholds.good == 58

    def test_auto_reject_camel_case(self):
        config = ScoringConfig.from_dict(
            {"autoReject": {"motionBlurSeverity": 0.7, "highlightClip": 40}}
        )
        assert config.auto_reject.motion_blur_severity == 0.7
        assert config.auto_reject.highlight_clip == 40
        assert config.auto_reject.shadow_clip == 25

    def test_weights_add_profile(self):
        config = ScoringConfig.from_dict({"weights": {"street": {"composition": 1}}})
        assert config.resolve_weights("street") == ("street", {"composition": 1.0})
        assert config.resolve_weights("landscape")[0] == "landscape"

    def test_weights_override_profile(self):
        config = ScoringConfig.from_dict({"weights": {"general": {"sharpness": 1}}})
        assert config.resolve_weights("general")[1] == {"sharpness": 1.0}

    def test_concurrency(self):
        assert ScoringConfig.from_dict({"concurrency": 8}).concurrency == 8

    @pytest.mark.parametrize(
        "data",
        [
            {"bogus": 1},
            {"thresholds": {"excellent": 90}},
            {"thresholds": {"select": "high"}},
            {"autoReject": {"motionBlurSeverity": True}},
            {"weights": {"general": {"colour": 1}}},
            {"weights": {"general": {"sharpness": "1"}}},
            {"concurrency": 0},
            {"concurrency": 2.5},
        ],
    )
    def test_invalid(self, data):
        with pytest.raises(ConfigError):
            ScoringConfig.from_dict(data)

    def test_config_error_is_value_error(self):
        assert issubclass(ConfigError, ValueError)


class TestPickling:
    def test_thresholds_pickle(self):
        t = Thresholds(select=90)
        assert pickle.loads(pickle.dumps(t)) == t
