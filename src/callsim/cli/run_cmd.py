"""callsim run -- execute test sets and report call quality.

Loads the harness config and every named test-set YAML, runs each
group's matrix against live containerized calls, renders one table per
chart dimension as each test set finishes, persists results and exits
with 0 (completed, even with failed runs), 1 (configuration error) or
2 (infrastructure error).
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape

from callsim.cli.logs import configure_logging
from callsim.errors import ConfigurationError, InfrastructureError
from callsim.execution.runner import TestRunner, run_test_set
from callsim.infra.manager import ParticipantManager
from callsim.loader.validator import load_test_set
from callsim.models.config import HarnessConfig, find_project_root, load_harness_config
from callsim.models.report import GroupReport
from callsim.models.test_set import TestSetDefinition
from callsim.quality.pipeline import QualityPipeline
from callsim.reporting.output import (
    create_run_progress,
    output_json,
    render_group_report,
    render_summary,
)
from callsim.storage.json_store import ResultStore

logger = logging.getLogger(__name__)

console = Console(stderr=True)

EXIT_OK = 0
EXIT_CONFIGURATION = 1
EXIT_INFRASTRUCTURE = 2

DEFAULT_TEST_SET = "example"


def run(
    test_sets: Optional[list[str]] = typer.Argument(
        None, help="Test set names (in the test sets dir) or YAML paths [default: example]"
    ),
    root: Optional[Path] = typer.Option(None, "--root", help="Project root (default: search for callsim.yaml)"),
    output_dir: Optional[Path] = typer.Option(None, "--output-dir", help="Override the results directory"),
    media_dir: Optional[Path] = typer.Option(None, "--media-dir", help="Override the reference media directory"),
    test_sets_dir: Optional[Path] = typer.Option(None, "--test-sets-dir", help="Override the test sets directory"),
    build: bool = typer.Option(False, "-b", "--build", help="Build container images before running"),
    clean: bool = typer.Option(False, "-c", "--clean", help="Remove leftover containers and network first"),
    verbose: bool = typer.Option(False, "-V", "--verbose", help="Debug logging"),
    format_json: bool = typer.Option(False, "--json", help="Output group reports as JSON to stdout"),
) -> None:
    """Run test sets against live calls and report quality per group."""
    configure_logging(verbose)
    code = asyncio.run(
        _run_async(
            test_sets or [DEFAULT_TEST_SET],
            root=root,
            output_dir=output_dir,
            media_dir=media_dir,
            test_sets_dir=test_sets_dir,
            build=build,
            clean=clean,
            format_json=format_json,
        )
    )
    if code != EXIT_OK:
        raise typer.Exit(code=code)


def resolve_test_set_path(
    test_set: str,
    project_root: Path,
    config: HarnessConfig,
    test_sets_dir: Path | None = None,
) -> Path:
    """Accept either a path to a YAML file or a bare test-set name."""
    candidate = Path(test_set)
    if candidate.suffix in (".yaml", ".yml") or candidate.exists():
        return candidate
    directory = test_sets_dir or project_root / config.test_sets_dir
    for suffix in (".yaml", ".yml"):
        path = directory / f"{test_set}{suffix}"
        if path.exists():
            return path
    return directory / f"{test_set}.yaml"


def load_definitions(
    test_sets: list[str],
    project_root: Path,
    config: HarnessConfig,
    test_sets_dir: Path | None = None,
) -> list[TestSetDefinition]:
    """Load every named test set, in order.

    Raises:
        ConfigurationError: If any test set is invalid, or two share a name
            and would write to the same results directory.
    """
    definitions: list[TestSetDefinition] = []
    seen: set[str] = set()
    for test_set in test_sets:
        definition = load_test_set(
            resolve_test_set_path(test_set, project_root, config, test_sets_dir)
        )
        if definition.name in seen:
            raise ConfigurationError(f"Test set '{definition.name}' is named more than once")
        seen.add(definition.name)
        definitions.append(definition)
    return definitions


async def _run_async(
    test_sets: list[str],
    *,
    root: Path | None,
    output_dir: Path | None,
    media_dir: Path | None,
    test_sets_dir: Path | None,
    build: bool,
    clean: bool,
    format_json: bool,
) -> int:
    project_root = (root or find_project_root()).resolve()

    # 1. Configuration; nothing touches docker until every test set loads
    try:
        config = load_harness_config(project_root)
        definitions = load_definitions(test_sets, project_root, config, test_sets_dir)
    except ConfigurationError as exc:
        _report_configuration_error(exc)
        return EXIT_CONFIGURATION

    # 2. Wire the engine; one manager and pipeline serve every test set
    manager = ParticipantManager(
        config, project_root, output_dir=output_dir, media_dir=media_dir
    )
    store = ResultStore(manager.output_dir)
    pipeline = QualityPipeline(
        manager,
        manager.media_dir,
        store,
        scoring_timeout=config.timeouts.scoring,
        generate_spectrograms=config.generate_spectrograms,
    )

    # 3. Execute, reporting each test set as soon as it finishes
    all_reports: list[GroupReport] = []
    try:
        if clean:
            await manager.clean_all()
        if build:
            await manager.build_images()

        for definition in definitions:
            runner = TestRunner(
                definition.name,
                manager,
                pipeline,
                store,
                tick=config.scheduler_tick_ms / 1000,
            )
            reports = await _execute(definition, runner, show_progress=not format_json)
            all_reports.extend(reports)
            if not format_json:
                _render(reports, str(store.test_set_dir(definition.name)))
    except ConfigurationError as exc:
        _report_configuration_error(exc)
        return EXIT_CONFIGURATION
    except InfrastructureError as exc:
        console.print(f"[bold red]Infrastructure error:[/bold red] {escape(str(exc))}")
        return EXIT_INFRASTRUCTURE
    finally:
        await _shutdown(manager)

    # 4. Output
    if format_json:
        output_json(all_reports)
    return EXIT_OK


async def _execute(
    definition: TestSetDefinition, runner: TestRunner, show_progress: bool
) -> list[GroupReport]:
    progress = create_run_progress(console) if show_progress else None
    if progress is None:
        return await run_test_set(definition, runner)

    with progress:
        task = progress.add_task(f"Running {definition.name}", total=None)

        def on_progress(completed: int, total: int) -> None:
            progress.update(task, completed=completed, total=total)

        return await run_test_set(definition, runner, on_progress)


def _render(reports: list[GroupReport], results_dir: str) -> None:
    output_console = Console()
    for report in reports:
        render_group_report(report, output_console)
    render_summary(reports, output_console, results_dir)


async def _shutdown(manager: ParticipantManager) -> None:
    # Logged, never raised; the exit code of the run stands.
    try:
        await manager.shutdown()
    except (InfrastructureError, TimeoutError) as exc:
        logger.warning("Teardown skipped: %s", exc)


def _report_configuration_error(exc: ConfigurationError) -> None:
    console.print(f"[bold red]Configuration error:[/bold red] {escape(str(exc))}")
    for detail in getattr(exc, "details", None) or []:
        where = f" (line {detail.line})" if detail.line else ""
        console.print(f"  {escape(detail.field)}: {escape(detail.message)}{where}")
