"""Resolution of network profiles into timed sequences of settings.

resolve_profile is a pure function: presets and shorthand variants come
from lookup tables, spiky loss is a periodic pattern expanded over the
call duration, and custom timelines are validated and passed through.
Every resolved timeline starts at offset 0, is strictly increasing and
lies within [0, call_duration).
"""

from __future__ import annotations

from callsim.errors import ConfigurationError
from callsim.models.network import (
    CustomProfile,
    LimitedBandwidth,
    NetworkConfig,
    NetworkConfigWithOffset,
    NetworkProfile,
    NoImpairment,
    PresetProfile,
    SimpleLoss,
)

# Constant presets: a single setting held for the whole call.
PRESETS: dict[str, NetworkConfig] = {
    "default": NetworkConfig(delay_ms=50, jitter_ms=10, loss_percent=1),
    "moderate": NetworkConfig(delay_ms=150, jitter_ms=30, loss_percent=5, rate_kbps=1000),
    "international": NetworkConfig(delay_ms=250, jitter_ms=50, loss_percent=3, rate_kbps=500),
}

# spiky_loss repeats every SPIKY_LOSS_PERIOD seconds: mild conditions,
# then a burst of heavy loss for the last few seconds of each period.
SPIKY_LOSS_PERIOD = 10.0
SPIKY_LOSS_PATTERN: list[NetworkConfigWithOffset] = [
    NetworkConfigWithOffset(
        offset=0.0,
        network_config=NetworkConfig(delay_ms=50, jitter_ms=10, loss_percent=1),
    ),
    NetworkConfigWithOffset(
        offset=7.0,
        network_config=NetworkConfig(delay_ms=50, jitter_ms=10, loss_percent=40),
    ),
]


def _entry(offset: float, config: NetworkConfig) -> NetworkConfigWithOffset:
    return NetworkConfigWithOffset(offset=offset, network_config=config)


def _expand_periodic(
    pattern: list[NetworkConfigWithOffset],
    period: float,
    call_duration: float,
) -> list[NetworkConfigWithOffset]:
    timeline: list[NetworkConfigWithOffset] = []
    cycle_start = 0.0
    while cycle_start < call_duration:
        for item in pattern:
            offset = cycle_start + item.offset
            if offset >= call_duration:
                break
            timeline.append(_entry(offset, item.network_config))
        cycle_start += period
    return timeline


def _validate_custom(
    profile: CustomProfile,
    call_duration: float,
) -> list[NetworkConfigWithOffset]:
    """Check a custom timeline and return it with an initial entry at 0.

    Raises:
        ConfigurationError: On negative, non-increasing or duplicate
            offsets, or offsets at or beyond the call duration.
    """
    previous: float | None = None
    for index, item in enumerate(profile.timeline):
        if item.offset < 0:
            raise ConfigurationError(
                f"Profile '{profile.label}': entry {index} has negative offset {item.offset}s"
            )
        if previous is not None and item.offset <= previous:
            raise ConfigurationError(
                f"Profile '{profile.label}': offsets must be strictly increasing, "
                f"entry {index} at {item.offset}s follows {previous}s"
            )
        if item.offset >= call_duration:
            raise ConfigurationError(
                f"Profile '{profile.label}': entry {index} at {item.offset}s is not "
                f"within the {call_duration:g}s call duration"
            )
        previous = item.offset

    timeline = list(profile.timeline)
    if not timeline or timeline[0].offset > 0:
        timeline.insert(0, _entry(0.0, NetworkConfig()))
    return timeline


def resolve_profile(
    profile: NetworkProfile,
    call_duration: float,
) -> list[NetworkConfigWithOffset]:
    """Resolve a profile into its (offset, setting) timeline for one call.

    Args:
        profile: Any NetworkProfile variant.
        call_duration: Length of the call in seconds.

    Returns:
        Entries sorted by strictly increasing offset, starting at 0, with
        every offset in [0, call_duration).

    Raises:
        ConfigurationError: If the duration is not positive or a custom
            timeline is invalid for this duration.
    """
    if call_duration <= 0:
        raise ConfigurationError(f"Call duration must be positive, got {call_duration}")

    if isinstance(profile, NoImpairment):
        timeline = [_entry(0.0, NetworkConfig())]
    elif isinstance(profile, PresetProfile):
        if profile.kind == "spiky_loss":
            timeline = _expand_periodic(SPIKY_LOSS_PATTERN, SPIKY_LOSS_PERIOD, call_duration)
        else:
            timeline = [_entry(0.0, PRESETS[profile.kind])]
    elif isinstance(profile, LimitedBandwidth):
        timeline = [_entry(0.0, NetworkConfig(rate_kbps=profile.kbps))]
    elif isinstance(profile, SimpleLoss):
        timeline = [_entry(0.0, NetworkConfig(loss_percent=profile.percent))]
    elif isinstance(profile, CustomProfile):
        timeline = _validate_custom(profile, call_duration)
    else:
        raise ConfigurationError(f"Unknown network profile: {profile!r}")

    return [item for item in timeline if item.offset < call_duration]


def profile_offsets(timeline: list[NetworkConfigWithOffset]) -> list[float]:
    """Return the offsets of a resolved timeline."""
    return [item.offset for item in timeline]
