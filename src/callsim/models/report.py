"""Report data models produced by the aggregator."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from callsim.models.result import MetricPoint
from callsim.models.test_case import MetricKind


class ChartPoint(BaseModel):
    """One x-axis entry of a chart series. ``value`` is None for a gap."""

    x_label: str
    value: float | None = None


class ChartSeries(BaseModel):
    """One test case's values for one chart dimension across profiles."""

    dimension: MetricKind
    test_case_name: str
    points: list[ChartPoint] = Field(default_factory=list)

    @property
    def gaps(self) -> list[str]:
        return [p.x_label for p in self.points if p.value is None]


class TimeSeries(BaseModel):
    """Per-segment values of one chopped run."""

    dimension: MetricKind
    test_case_name: str
    profile_label: str
    points: list[MetricPoint] = Field(default_factory=list)


class FailureEntry(BaseModel):
    """A failed run as listed in the report's failure summary."""

    test_case_name: str
    profile_label: str
    error_type: str
    stage: str
    message: str


class GroupReport(BaseModel):
    """Aggregated, chart-ready results of one group."""

    test_set: str
    group: str
    chart_dimensions: list[MetricKind]
    x_labels: list[str]
    series: list[ChartSeries] = Field(default_factory=list)
    time_series: list[TimeSeries] = Field(default_factory=list)
    failures: list[FailureEntry] = Field(default_factory=list)
    runs_total: int = 0
    runs_failed: int = 0
    generated_at: datetime

    def series_for(self, dimension: MetricKind, test_case_name: str) -> ChartSeries | None:
        for s in self.series:
            if s.dimension == dimension and s.test_case_name == test_case_name:
                return s
        return None


class TestSetSummary(BaseModel):
    """Top-level index of the reports written for one test set."""

    __test__ = False

    test_set: str
    groups: list[str]
    runs_total: int
    runs_failed: int
    generated_at: datetime
