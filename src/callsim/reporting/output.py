"""Rich terminal output for test-set runs.

Provides the run progress bar, one table per chart dimension of a group
report, the failure summary and JSON output for CI.
"""

from __future__ import annotations

import json
import sys

from rich import box
from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from callsim.models.report import GroupReport


def create_run_progress(console: Console) -> Progress | None:
    """Create a progress bar for matrix execution.

    Returns None when the console is not a terminal (CI/pipe mode).
    """
    if not console.is_terminal:
        return None

    return Progress(
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    )


def _format_value(value: float | None) -> str:
    if value is None:
        return "[dim]-[/dim]"
    if value >= 4.0:
        style = "green"
    elif value >= 3.0:
        style = "yellow"
    else:
        style = "red"
    return f"[{style}]{value:.2f}[/{style}]"


def render_group_report(report: GroupReport, console: Console) -> None:
    """Render one table per chart dimension, cases by profile labels."""
    console.print()
    console.print(
        f"[bold]{report.group}[/bold] "
        f"[dim]({report.runs_total - report.runs_failed}/{report.runs_total} runs succeeded)[/dim]"
    )

    for dimension in report.chart_dimensions:
        table = Table(box=box.SIMPLE_HEAD, title=dimension.value, title_justify="left")
        table.add_column("Test case", style="bold")
        for label in report.x_labels:
            table.add_column(label, justify="right")
        for series in report.series:
            if series.dimension != dimension:
                continue
            table.add_row(
                series.test_case_name,
                *(_format_value(point.value) for point in series.points),
            )
        console.print(table)

    if report.time_series:
        for ts in report.time_series:
            values = ", ".join(f"{p.start_seconds:g}s={p.value:.2f}" for p in ts.points)
            console.print(
                f"  [dim]{ts.dimension.value} over time[/dim] "
                f"{ts.test_case_name} / {ts.profile_label}: {values}"
            )

    if report.failures:
        render_failures(report, console)


def render_failures(report: GroupReport, console: Console) -> None:
    table = Table(box=box.SIMPLE, title="Failed runs", title_justify="left", title_style="bold red")
    table.add_column("Test case")
    table.add_column("Profile")
    table.add_column("Stage")
    table.add_column("Error")
    for failure in report.failures:
        table.add_row(
            failure.test_case_name,
            failure.profile_label,
            failure.stage,
            f"{failure.error_type}: {failure.message}",
        )
    console.print(table)


def render_summary(reports: list[GroupReport], console: Console, output_dir: str) -> None:
    total = sum(r.runs_total for r in reports)
    failed = sum(r.runs_failed for r in reports)
    style = "green" if failed == 0 else "yellow"
    console.print()
    console.print(
        f"[{style}]{total - failed}/{total} runs succeeded across "
        f"{len(reports)} group(s)[/{style}]"
    )
    console.print(f"[dim]Results saved under {output_dir}[/dim]")


def output_json(reports: list[GroupReport]) -> None:
    """Write the group reports as a JSON array to stdout."""
    data = [r.model_dump(mode="json") for r in reports]
    sys.stdout.write(json.dumps(data, indent=2))
    sys.stdout.write("\n")
    sys.stdout.flush()
