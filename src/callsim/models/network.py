"""Network profile models.

A network profile is a closed sum type discriminated on ``kind``. Each
variant carries a canonical label used for artifact paths and chart
x-axis entries. Resolution of a profile into a timed sequence of
settings lives in callsim.network.profiles, not here.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter

from callsim.models.names import PathName


class NetworkConfig(BaseModel):
    """A point-in-time impairment setting.

    Unset fields mean "unimpaired" for that dimension. Applying a config
    replaces the previous one entirely.
    """

    model_config = {"extra": "forbid", "frozen": True}

    rate_kbps: int | None = Field(default=None, gt=0)
    loss_percent: int | None = Field(default=None, ge=0, le=100)
    delay_ms: int | None = Field(default=None, ge=0)
    jitter_ms: int | None = Field(default=None, ge=0)

    @property
    def is_unimpaired(self) -> bool:
        return (
            self.rate_kbps is None
            and self.loss_percent is None
            and self.delay_ms is None
            and self.jitter_ms is None
        )


class NetworkConfigWithOffset(BaseModel):
    """A network setting that takes effect ``offset`` seconds after call start."""

    model_config = {"extra": "forbid", "frozen": True}

    offset: float
    network_config: NetworkConfig = Field(default_factory=NetworkConfig)


class NoImpairment(BaseModel):
    """No emulation at all; useful for baseline measurements."""

    model_config = {"extra": "forbid", "frozen": True}

    kind: Literal["none"] = "none"

    @property
    def label(self) -> str:
        return "none"


class PresetProfile(BaseModel):
    """One of the named presets (default, moderate, international, spiky_loss)."""

    model_config = {"extra": "forbid", "frozen": True}

    kind: Literal["default", "moderate", "international", "spiky_loss"]

    @property
    def label(self) -> str:
        return self.kind


class LimitedBandwidth(BaseModel):
    """A constant bandwidth cap for the whole call."""

    model_config = {"extra": "forbid", "frozen": True}

    kind: Literal["limited_bandwidth"] = "limited_bandwidth"
    kbps: int = Field(gt=0)

    @property
    def label(self) -> str:
        return f"limited_bandwidth_{self.kbps}"


class SimpleLoss(BaseModel):
    """A constant packet loss percentage for the whole call."""

    model_config = {"extra": "forbid", "frozen": True}

    kind: Literal["simple_loss"] = "simple_loss"
    percent: int = Field(ge=0, le=100)

    @property
    def label(self) -> str:
        return f"simple_loss_{self.percent}"


class CustomProfile(BaseModel):
    """A user-defined timeline of settings under a caller-chosen label.

    Offsets are validated by the scheduler when the profile is resolved,
    so an invalid timeline is reported as a configuration error before
    any run starts rather than at model construction.
    """

    model_config = {"extra": "forbid", "frozen": True}

    kind: Literal["custom"] = "custom"
    label: PathName
    timeline: list[NetworkConfigWithOffset] = Field(default_factory=list)


NetworkProfile = Annotated[
    Union[NoImpairment, PresetProfile, LimitedBandwidth, SimpleLoss, CustomProfile],
    Field(discriminator="kind"),
]

_PROFILE_ADAPTER: TypeAdapter[Any] = TypeAdapter(NetworkProfile)


def coerce_profile(value: Any) -> Any:
    """Expand the bare-string shorthand (``"none"``, ``"default"``, ...) to a mapping."""
    if isinstance(value, str):
        return {"kind": value}
    return value


def parse_profile(value: Any) -> NetworkProfile:
    """Validate a raw value (string shorthand or mapping) into a NetworkProfile."""
    return _PROFILE_ADAPTER.validate_python(coerce_profile(value))
