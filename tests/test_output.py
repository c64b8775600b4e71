"""Tests for callsim.reporting.output - Rich report rendering layer."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from io import StringIO

from rich.console import Console

from callsim.models.report import (
    ChartPoint,
    ChartSeries,
    FailureEntry,
    GroupReport,
    TimeSeries,
)
from callsim.models.result import MetricPoint
from callsim.models.test_case import MetricKind
from callsim.reporting.output import (
    create_run_progress,
    output_json,
    render_group_report,
    render_summary,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_report(failures: list[FailureEntry] | None = None, with_time_series: bool = False) -> GroupReport:
    failures = failures or []
    return GroupReport(
        test_set="example",
        group="constant_conditions",
        chart_dimensions=[MetricKind.mos],
        x_labels=["none", "simple_loss_10"],
        series=[
            ChartSeries(
                dimension=MetricKind.mos,
                test_case_name="speech_call",
                points=[
                    ChartPoint(x_label="none", value=4.41),
                    ChartPoint(x_label="simple_loss_10", value=None if failures else 2.87),
                ],
            )
        ],
        time_series=[
            TimeSeries(
                dimension=MetricKind.mos,
                test_case_name="speech_call",
                profile_label="none",
                points=[MetricPoint(start_seconds=0, value=4.2), MetricPoint(start_seconds=12, value=4.0)],
            )
        ] if with_time_series else [],
        failures=failures,
        runs_total=2,
        runs_failed=len(failures),
        generated_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
    )


def _console() -> Console:
    return Console(file=StringIO(), width=120, record=True)


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestRenderGroupReport:
    def test_table_has_labels_and_values(self):
        console = _console()
        render_group_report(_make_report(), console)
        text = console.export_text()
        assert "constant_conditions" in text
        assert "2/2 runs succeeded" in text
        assert "simple_loss_10" in text
        assert "4.41" in text
        assert "2.87" in text

    def test_gap_and_failure_table(self):
        failure = FailureEntry(
            test_case_name="speech_call",
            profile_label="simple_loss_10",
            error_type="CallEndedEarlyError",
            stage="call",
            message="client_b exited",
        )
        console = _console()
        render_group_report(_make_report([failure]), console)
        text = console.export_text()
        assert "1/2 runs succeeded" in text
        assert "Failed runs" in text
        assert "CallEndedEarlyError: client_b exited" in text

    def test_time_series_lines(self):
        console = _console()
        render_group_report(_make_report(with_time_series=True), console)
        assert "0s=4.20, 12s=4.00" in console.export_text()


class TestRenderSummary:
    def test_totals(self):
        console = _console()
        render_summary([_make_report(), _make_report()], console, "test_results")
        text = console.export_text()
        assert "4/4 runs succeeded across 2 group(s)" in text
        assert "test_results" in text


class TestOutputJson:
    def test_writes_array(self, capsys):
        output_json([_make_report()])
        data = json.loads(capsys.readouterr().out)
        assert data[0]["group"] == "constant_conditions"
        assert data[0]["series"][0]["points"][1]["value"] == 2.87


class TestCreateRunProgress:
    def test_none_when_not_terminal(self):
        assert create_run_progress(Console(file=StringIO())) is None

    def test_progress_for_terminal(self):
        console = Console(file=StringIO(), force_terminal=True)
        assert create_run_progress(console) is not None
