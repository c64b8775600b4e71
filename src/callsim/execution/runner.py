"""TestRunner: sequential execution of a test matrix against live calls.

Each run acquires the manager's exclusive lock, starts both participants
inside a run scope, drives the network profile's impairment schedule for
the call duration, collects the captured media and scores it. A run that
fails for any reason of its own becomes a failed RunResult and the
matrix carries on; configuration and infrastructure errors abort the
whole invocation.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Iterable
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from callsim.errors import (
    CallEndedEarlyError,
    ConfigurationError,
    InfrastructureError,
)
from callsim.execution.matrix import PlannedRun, validate_matrix
from callsim.models.network import NetworkProfile
from callsim.models.report import GroupReport, TestSetSummary
from callsim.models.result import ErrorInfo, ImpairmentEvent, RunResult
from callsim.models.test_case import GroupConfig, TestCaseConfig
from callsim.models.test_set import TestSetDefinition
from callsim.network.scheduler import DEFAULT_TICK_SECONDS, ImpairmentSchedule
from callsim.reporting.aggregator import ReportAggregator

if TYPE_CHECKING:
    from callsim.infra.manager import ParticipantManager, RunHandle
    from callsim.models.result import ArtifactSet
    from callsim.quality.pipeline import QualityPipeline, QualityScores
    from callsim.storage.json_store import PreprocessedSound, ResultStore

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class TestRunner:
    """Runs groups of (test case x network profile) calls for one test set.

    Results accumulate across ``run`` calls until ``report`` aggregates,
    persists and clears them.
    """

    __test__ = False

    def __init__(
        self,
        test_set: str,
        manager: ParticipantManager,
        pipeline: QualityPipeline,
        store: ResultStore,
        *,
        tick: float = DEFAULT_TICK_SECONDS,
        clock: Callable[[], float] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.test_set = test_set
        self._manager = manager
        self._pipeline = pipeline
        self._store = store
        self._tick = tick
        self._clock = clock
        self._sleep = sleep
        self._groups: dict[str, GroupConfig] = {}
        self._results: dict[str, list[RunResult]] = {}

    @property
    def results(self) -> list[RunResult]:
        """Every result recorded since the last report, in run order."""
        return [r for results in self._results.values() for r in results]

    async def preprocess(self, sound_names: Iterable[str]) -> dict[str, PreprocessedSound]:
        """Preprocess distinct reference sounds concurrently.

        Raises:
            ConfigurationError: If a reference sound does not exist.
            InfrastructureError: If the scoring tool cannot produce a baseline.
        """
        names = list(dict.fromkeys(sound_names))
        if not names:
            return {}

        logger.info("Preprocessing %d reference sound(s)", len(names))
        try:
            async with asyncio.TaskGroup() as tg:
                tasks = {name: tg.create_task(self._pipeline.preprocess(name)) for name in names}
        except ExceptionGroup as eg:
            raise _fatal_from_group(eg)
        return {name: task.result() for name, task in tasks.items()}

    async def run(
        self,
        group: GroupConfig,
        cases: list[TestCaseConfig],
        profiles: list[NetworkProfile],
        progress_callback: ProgressCallback | None = None,
    ) -> list[RunResult]:
        """Run every (case, profile) pair of a group and record the results.

        Args:
            group: Name and reporting options of the group.
            cases: Test cases, in run order.
            profiles: Network profiles, in run order.
            progress_callback: Optional callback(completed, total) called
                after each run.

        Returns:
            One RunResult per pair, in expansion order, failed runs included.

        Raises:
            ConfigurationError: If the matrix is invalid; nothing is run.
            InfrastructureError: If shared infrastructure fails mid-matrix.
        """
        if group.name in self._groups:
            raise ConfigurationError(
                f"Group '{group.name}' was already run in test set '{self.test_set}'"
            )
        planned = validate_matrix(group.name, cases, profiles)
        self._groups[group.name] = group
        recorded = self._results.setdefault(group.name, [])

        total = len(planned)
        logger.info("Group %s: %d run(s)", group.name, total)
        results: list[RunResult] = []
        for index, run in enumerate(planned, start=1):
            logger.info(
                "Run %d/%d: %s under %s", index, total, run.case.name, run.profile.label
            )
            result = await self._execute_run(group, run)
            results.append(result)
            recorded.append(result)
            if progress_callback is not None:
                progress_callback(index, total)
        return results

    def report(self) -> list[GroupReport]:
        """Aggregate, persist and clear everything recorded so far."""
        aggregator = ReportAggregator(self.test_set)
        for result in self.results:
            aggregator.ingest(result)

        reports: list[GroupReport] = []
        for name, group in self._groups.items():
            self._store.save_results(self.test_set, name, self._results.get(name, []))
            report = aggregator.finalize(group)
            self._store.save_group_report(report)
            reports.append(report)

        if reports:
            self._store.save_summary(
                TestSetSummary(
                    test_set=self.test_set,
                    groups=[r.group for r in reports],
                    runs_total=sum(r.runs_total for r in reports),
                    runs_failed=sum(r.runs_failed for r in reports),
                    generated_at=datetime.now(timezone.utc),
                )
            )

        self._groups.clear()
        self._results.clear()
        return reports

    async def _execute_run(self, group: GroupConfig, run: PlannedRun) -> RunResult:
        """Execute one run; failures of the run itself become a failed result."""
        run_dir = self._store.run_dir(self.test_set, group.name, run.case.name, run.profile.label)
        started_at = datetime.now(timezone.utc)
        start_time = time.perf_counter()
        events: list[ImpairmentEvent] = []

        try:
            async with self._manager.exclusive():
                artifacts, scores = await self._drive_call(run, run_dir, events)
        except (ConfigurationError, InfrastructureError):
            raise
        except Exception as exc:
            logger.warning(
                "Run %s under %s failed: %s", run.case.name, run.profile.label, exc
            )
            return RunResult(
                group=group.name,
                test_case_name=run.case.name,
                profile_label=run.profile.label,
                succeeded=False,
                artifact_paths=self._manager.collect_artifacts(run_dir).as_paths(),
                impairment_events=events,
                error=ErrorInfo.from_exception(exc),
                started_at=started_at,
                elapsed_seconds=time.perf_counter() - start_time,
            )

        paths = artifacts.as_paths()
        paths.update({name: str(path) for name, path in scores.artifacts.items()})
        return RunResult(
            group=group.name,
            test_case_name=run.case.name,
            profile_label=run.profile.label,
            succeeded=True,
            metrics=scores.metrics,
            series=scores.series,
            metric_details=scores.details,
            artifact_paths=paths,
            impairment_events=events,
            started_at=started_at,
            elapsed_seconds=time.perf_counter() - start_time,
        )

    async def _drive_call(
        self, run: PlannedRun, run_dir: Path, events: list[ImpairmentEvent]
    ) -> tuple[ArtifactSet, QualityScores]:
        case = run.case
        async with self._manager.run_scope(case.client_a, case.client_b, run_dir) as handle:
            schedule = ImpairmentSchedule(
                run.timeline,
                handle.impairment_target,
                tick=self._tick,
                clock=self._clock,
                sleep=self._sleep,
            )
            schedule.start()
            try:
                await self._wait_for_call(handle, case.duration, schedule)
            finally:
                await schedule.cancel()
                events.extend(schedule.events)

            artifacts = await self._manager.stop_run(handle)
            # Scoring stays inside the scope so a failure resets the tool too.
            scores = await self._pipeline.score(artifacts, case, run.timeline)
        return artifacts, scores

    async def _wait_for_call(
        self,
        handle: RunHandle,
        duration: float,
        schedule: ImpairmentSchedule,
    ) -> None:
        """Wait out the call, racing the timer against early end and schedule failure.

        Raises:
            CallEndedEarlyError: If a participant ends the call first.
            ImpairmentError: If applying a network setting fails.
        """
        timer = asyncio.create_task(self._sleep(duration), name="call-duration")
        watcher = asyncio.create_task(
            self._manager.wait_for_call_end(handle), name="call-end-watch"
        )
        pending: set[asyncio.Task] = {timer, watcher}
        if schedule.task is not None:
            pending.add(schedule.task)

        try:
            while True:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                if schedule.task in done:
                    # Re-raises the schedule's failure; a finished schedule is fine.
                    schedule.task.result()
                if timer in done:
                    return
                if watcher in done:
                    reason = watcher.result()
                    raise CallEndedEarlyError(
                        f"Call ended before its {duration:g}s duration: {reason}"
                    )
        finally:
            for task in (timer, watcher):
                task.cancel()
            await asyncio.gather(timer, watcher, return_exceptions=True)


def _fatal_from_group(eg: ExceptionGroup) -> Exception:
    """Pick the exception to surface from a failed preprocessing TaskGroup."""
    for exc in eg.exceptions:
        if isinstance(exc, (ConfigurationError, InfrastructureError)):
            return exc
    first = eg.exceptions[0]
    error = InfrastructureError(f"Preprocessing failed: {first}")
    error.__cause__ = first
    return error


def referenced_sounds(cases: Iterable[TestCaseConfig]) -> list[str]:
    """Reference sounds sent by any participant of the given cases, in order."""
    names: list[str] = []
    for case in cases:
        for call in (case.client_a, case.client_b):
            if call.audio.input_name is not None:
                names.append(call.audio.input_name)
    return list(dict.fromkeys(names))


async def run_test_set(
    definition: TestSetDefinition,
    runner: TestRunner,
    progress_callback: ProgressCallback | None = None,
) -> list[GroupReport]:
    """Validate, preprocess, run and report a whole test set.

    Every group is validated before the first run. Progress is reported
    across the whole test set rather than per group.

    Raises:
        ConfigurationError: If any group is invalid; nothing is run.
        InfrastructureError: If shared infrastructure fails.
    """
    seen: set[str] = set()
    total = 0
    for group in definition.groups:
        if group.name in seen:
            raise ConfigurationError(
                f"Test set '{definition.name}' has duplicate group '{group.name}'"
            )
        seen.add(group.name)
        total += len(validate_matrix(group.name, group.test_cases, group.profiles))

    sounds = [*definition.preprocess]
    for group in definition.groups:
        sounds.extend(referenced_sounds(group.test_cases))
    await runner.preprocess(sounds)

    completed = 0

    def advance(_done: int, _group_total: int) -> None:
        nonlocal completed
        completed += 1
        if progress_callback is not None:
            progress_callback(completed, total)

    for group in definition.groups:
        await runner.run(group.group_config(), group.test_cases, group.profiles, advance)
    return runner.report()
