"""Result data models for individual runs.

A RunResult is produced once per (test case, network profile) pair,
owned by the runner until the report is built, and immutable after.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, Field

from callsim.models.network import NetworkConfig
from callsim.models.test_case import MetricKind


class ErrorInfo(BaseModel):
    """Why a run failed."""

    model_config = {"frozen": True}

    type: str
    message: str
    stage: str = "run"

    @classmethod
    def from_exception(cls, exc: BaseException) -> ErrorInfo:
        return cls(
            type=type(exc).__name__,
            message=str(exc) or type(exc).__name__,
            stage=getattr(exc, "stage", "run"),
        )


class MetricPoint(BaseModel):
    """One value of a time series, indexed by segment start."""

    model_config = {"frozen": True}

    start_seconds: float
    value: float


class ImpairmentEvent(BaseModel):
    """A network setting that was actually applied during a call."""

    model_config = {"frozen": True}

    offset: float
    applied_at: float
    network_config: NetworkConfig


@dataclass
class ArtifactSet:
    """Files captured by one run.

    ``client_a_audio`` is what client A received (sent by B) and vice
    versa. Paths that were not produced are None.
    """

    run_dir: Path
    client_a_audio: Path | None = None
    client_b_audio: Path | None = None
    client_a_video: Path | None = None
    client_b_video: Path | None = None
    client_a_log: Path | None = None
    client_b_log: Path | None = None
    packet_capture: Path | None = None

    def as_paths(self) -> dict[str, str]:
        """Flatten to a name -> path mapping of the artifacts that exist."""
        paths = {
            "run_dir": self.run_dir,
            "client_a_audio": self.client_a_audio,
            "client_b_audio": self.client_b_audio,
            "client_a_video": self.client_a_video,
            "client_b_video": self.client_b_video,
            "client_a_log": self.client_a_log,
            "client_b_log": self.client_b_log,
            "packet_capture": self.packet_capture,
        }
        return {name: str(path) for name, path in paths.items() if path is not None}


class RunResult(BaseModel):
    """Outcome of one run of a test case against a network profile.

    Failed runs keep their identity and carry the error; they never
    carry metrics.
    """

    model_config = {"frozen": True}

    group: str
    test_case_name: str
    profile_label: str
    succeeded: bool
    metrics: dict[MetricKind, float] = Field(default_factory=dict)
    series: dict[MetricKind, list[MetricPoint]] = Field(default_factory=dict)
    metric_details: dict[str, float] = Field(default_factory=dict)
    artifact_paths: dict[str, str] = Field(default_factory=dict)
    impairment_events: list[ImpairmentEvent] = Field(default_factory=list)
    error: ErrorInfo | None = None
    started_at: datetime | None = None
    elapsed_seconds: float = 0.0

    @property
    def key(self) -> tuple[str, str]:
        return (self.test_case_name, self.profile_label)
