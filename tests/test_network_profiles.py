"""Tests for callsim.network.profiles - resolving profiles into timelines."""

from __future__ import annotations

import pytest

from callsim.errors import ConfigurationError
from callsim.models.network import (
    CustomProfile,
    LimitedBandwidth,
    NetworkConfig,
    NetworkConfigWithOffset,
    NoImpairment,
    PresetProfile,
    SimpleLoss,
    parse_profile,
)
from callsim.network.profiles import (
    PRESETS,
    SPIKY_LOSS_PERIOD,
    profile_offsets,
    resolve_profile,
)


def _custom(label: str, *entries: tuple[float, dict]) -> CustomProfile:
    return CustomProfile(
        label=label,
        timeline=[
            NetworkConfigWithOffset(offset=offset, network_config=NetworkConfig(**config))
            for offset, config in entries
        ],
    )


def _assert_well_formed(timeline: list[NetworkConfigWithOffset], duration: float) -> None:
    offsets = profile_offsets(timeline)
    assert offsets[0] == 0
    assert all(a < b for a, b in zip(offsets, offsets[1:]))
    assert all(0 <= o < duration for o in offsets)


class TestLabels:
    """Canonical labels of every profile variant."""

    def test_none(self):
        assert NoImpairment().label == "none"

    def test_preset_uses_kind(self):
        assert PresetProfile(kind="moderate").label == "moderate"

    def test_limited_bandwidth(self):
        assert LimitedBandwidth(kbps=64).label == "limited_bandwidth_64"

    def test_simple_loss(self):
        assert SimpleLoss(percent=10).label == "simple_loss_10"

    def test_custom_uses_given_label(self):
        assert _custom("limit_default").label == "limit_default"

    def test_shorthand_strings_parse(self):
        assert isinstance(parse_profile("none"), NoImpairment)
        assert parse_profile("spiky_loss").label == "spiky_loss"

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValueError):
            parse_profile("satellite")


class TestResolveConstantProfiles:
    """Profiles that hold a single setting for the whole call."""

    def test_no_impairment_is_single_unimpaired_entry(self):
        timeline = resolve_profile(NoImpairment(), 30)
        assert len(timeline) == 1
        assert timeline[0].offset == 0
        assert timeline[0].network_config.is_unimpaired

    @pytest.mark.parametrize("kind", ["default", "moderate", "international"])
    def test_presets_come_from_table(self, kind):
        timeline = resolve_profile(PresetProfile(kind=kind), 30)
        assert [e.network_config for e in timeline] == [PRESETS[kind]]

    def test_limited_bandwidth(self):
        timeline = resolve_profile(LimitedBandwidth(kbps=64), 30)
        assert timeline[0].network_config == NetworkConfig(rate_kbps=64)

    def test_simple_loss(self):
        timeline = resolve_profile(SimpleLoss(percent=10), 30)
        assert timeline[0].network_config == NetworkConfig(loss_percent=10)

    def test_non_positive_duration_rejected(self):
        with pytest.raises(ConfigurationError):
            resolve_profile(NoImpairment(), 0)


class TestSpikyLoss:
    """The periodic preset expanded over the call."""

    def test_expands_over_duration(self):
        timeline = resolve_profile(PresetProfile(kind="spiky_loss"), 30)
        assert profile_offsets(timeline) == [0, 7, 10, 17, 20, 27]
        _assert_well_formed(timeline, 30)

    def test_entries_beyond_duration_dropped(self):
        timeline = resolve_profile(PresetProfile(kind="spiky_loss"), 15)
        assert profile_offsets(timeline) == [0, 7, 10]

    def test_short_call_keeps_first_entry_only(self):
        timeline = resolve_profile(PresetProfile(kind="spiky_loss"), 5)
        assert profile_offsets(timeline) == [0]

    def test_period_constant(self):
        assert SPIKY_LOSS_PERIOD == 10


class TestCustomProfiles:
    """Validation and pass-through of user-defined timelines."""

    def test_limit_default_240s(self):
        profile = _custom(
            "limit_default",
            (0, {}),
            (60, {"rate_kbps": 64}),
            (120, {"rate_kbps": 32, "loss_percent": 2}),
            (180, {}),
        )
        timeline = resolve_profile(profile, 240)
        assert profile_offsets(timeline) == [0, 60, 120, 180]
        assert timeline[1].network_config.rate_kbps == 64
        _assert_well_formed(timeline, 240)

    def test_empty_timeline_is_unimpaired(self):
        timeline = resolve_profile(_custom("empty"), 30)
        assert len(timeline) == 1
        assert timeline[0].network_config.is_unimpaired

    def test_unimpaired_entry_prepended_when_not_starting_at_zero(self):
        timeline = resolve_profile(_custom("late", (10, {"loss_percent": 5})), 30)
        assert profile_offsets(timeline) == [0, 10]
        assert timeline[0].network_config.is_unimpaired

    def test_offset_at_duration_rejected(self):
        with pytest.raises(ConfigurationError, match="within"):
            resolve_profile(_custom("long", (0, {}), (30, {})), 30)

    def test_offset_beyond_duration_rejected(self):
        with pytest.raises(ConfigurationError):
            resolve_profile(_custom("long", (0, {}), (45, {})), 30)

    def test_duplicate_offsets_rejected(self):
        with pytest.raises(ConfigurationError, match="strictly increasing"):
            resolve_profile(_custom("dup", (0, {}), (10, {}), (10, {})), 30)

    def test_decreasing_offsets_rejected(self):
        with pytest.raises(ConfigurationError):
            resolve_profile(_custom("back", (0, {}), (20, {}), (10, {})), 30)

    def test_negative_offset_rejected(self):
        with pytest.raises(ConfigurationError, match="negative"):
            resolve_profile(_custom("neg", (-1, {}), (10, {})), 30)
