"""callsim data models - re-exports all public model classes."""

from callsim.models.config import HarnessConfig
from callsim.models.network import (
    CustomProfile,
    LimitedBandwidth,
    NetworkConfig,
    NetworkConfigWithOffset,
    NetworkProfile,
    NoImpairment,
    PresetProfile,
    SimpleLoss,
    parse_profile,
)
from callsim.models.report import ChartPoint, ChartSeries, FailureEntry, GroupReport, TimeSeries
from callsim.models.result import ArtifactSet, ErrorInfo, ImpairmentEvent, MetricPoint, RunResult
from callsim.models.test_case import (
    AudioAnalysisMode,
    AudioConfig,
    CallConfig,
    GroupConfig,
    MetricKind,
    TestCaseConfig,
    VideoConfig,
)
from callsim.models.test_set import GroupDefinition, TestSetDefinition

__all__ = [
    "ArtifactSet",
    "AudioAnalysisMode",
    "AudioConfig",
    "CallConfig",
    "ChartPoint",
    "ChartSeries",
    "CustomProfile",
    "ErrorInfo",
    "FailureEntry",
    "GroupConfig",
    "GroupDefinition",
    "GroupReport",
    "HarnessConfig",
    "ImpairmentEvent",
    "LimitedBandwidth",
    "MetricKind",
    "MetricPoint",
    "NetworkConfig",
    "NetworkConfigWithOffset",
    "NetworkProfile",
    "NoImpairment",
    "PresetProfile",
    "RunResult",
    "SimpleLoss",
    "TestCaseConfig",
    "TestSetDefinition",
    "TimeSeries",
    "VideoConfig",
    "parse_profile",
]
