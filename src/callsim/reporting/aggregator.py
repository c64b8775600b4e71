"""Aggregation of run results into chart-ready group reports.

Each group is aggregated on its own. For every chart dimension there is
one series per test case, with one point per profile label on the x-axis.
A failed run, or a successful one that did not produce the metric, leaves
a gap (None) rather than a zero, and failures are listed separately with
their cause.
"""

from __future__ import annotations

from datetime import datetime, timezone

from callsim.models.report import (
    ChartPoint,
    ChartSeries,
    FailureEntry,
    GroupReport,
    TimeSeries,
)
from callsim.models.result import RunResult
from callsim.models.test_case import GroupConfig


def order_labels(seen: list[str], preferred: list[str]) -> list[str]:
    """Order x-axis labels: the preferred order first, then first-seen order.

    Preferred labels that never appeared in a run are dropped.
    """
    present = set(seen)
    ordered = [label for label in preferred if label in present]
    ordered.extend(label for label in seen if label not in ordered)
    return list(dict.fromkeys(ordered))


class ReportAggregator:
    """Collects results of one test set and builds a report per group."""

    def __init__(self, test_set: str) -> None:
        self.test_set = test_set
        self._results: dict[str, list[RunResult]] = {}

    def ingest(self, result: RunResult) -> None:
        self._results.setdefault(result.group, []).append(result)

    def groups(self) -> list[str]:
        return list(self._results)

    def finalize(self, group: GroupConfig) -> GroupReport:
        """Build the report of one group from a snapshot of its results."""
        results = list(self._results.get(group.name, []))

        cases = list(dict.fromkeys(r.test_case_name for r in results))
        labels = order_labels(
            list(dict.fromkeys(r.profile_label for r in results)),
            group.x_axis_labels,
        )
        by_key = {r.key: r for r in results}

        series: list[ChartSeries] = []
        for dimension in group.chart_dimensions:
            for case in cases:
                points = []
                for label in labels:
                    result = by_key.get((case, label))
                    value = None
                    if result is not None and result.succeeded:
                        value = result.metrics.get(dimension)
                    points.append(ChartPoint(x_label=label, value=value))
                series.append(
                    ChartSeries(dimension=dimension, test_case_name=case, points=points)
                )

        time_series = [
            TimeSeries(
                dimension=dimension,
                test_case_name=r.test_case_name,
                profile_label=r.profile_label,
                points=points,
            )
            for r in results
            if r.succeeded
            for dimension, points in r.series.items()
            if points
        ]

        failures = [
            FailureEntry(
                test_case_name=r.test_case_name,
                profile_label=r.profile_label,
                error_type=r.error.type if r.error else "UnknownError",
                stage=r.error.stage if r.error else "run",
                message=r.error.message if r.error else "",
            )
            for r in results
            if not r.succeeded
        ]

        return GroupReport(
            test_set=self.test_set,
            group=group.name,
            chart_dimensions=list(group.chart_dimensions),
            x_labels=labels,
            series=series,
            time_series=time_series,
            failures=failures,
            runs_total=len(results),
            runs_failed=len(failures),
            generated_at=datetime.now(timezone.utc),
        )
