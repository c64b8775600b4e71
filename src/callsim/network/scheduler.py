"""ImpairmentSchedule: real-time application of a resolved timeline.

A single background task walks the timeline in order. For each entry it
sleeps until the entry's offset has elapsed since the anchor (call
start), then applies the entry's full setting to the target. Late
entries are applied immediately rather than skipped, so order is always
preserved. Cancelling the schedule stops it before any further entry is
applied.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from typing import Protocol

from callsim.errors import ImpairmentError
from callsim.models.network import NetworkConfig, NetworkConfigWithOffset
from callsim.models.result import ImpairmentEvent

logger = logging.getLogger(__name__)

DEFAULT_TICK_SECONDS = 0.1


class ImpairmentTarget(Protocol):
    """Something whose network conditions can be replaced as a whole."""

    async def apply(self, config: NetworkConfig) -> None:
        ...


class ImpairmentSchedule:
    """Drives one resolved timeline against one target for one call.

    Args:
        timeline: Resolved entries, strictly increasing from offset 0.
        target: Where settings are applied.
        tick: Longest single sleep, bounding how late an entry can fire.
        clock: Monotonic time source; defaults to the running loop's clock.
        sleep: Awaitable sleep; injectable for tests.
    """

    def __init__(
        self,
        timeline: list[NetworkConfigWithOffset],
        target: ImpairmentTarget,
        *,
        tick: float = DEFAULT_TICK_SECONDS,
        clock: Callable[[], float] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._timeline = list(timeline)
        self._target = target
        self._tick = tick
        self._clock = clock
        self._sleep = sleep
        self._anchor: float | None = None
        self._task: asyncio.Task[None] | None = None
        self._events: list[ImpairmentEvent] = []

    @property
    def events(self) -> list[ImpairmentEvent]:
        """Entries applied so far, in application order."""
        return list(self._events)

    @property
    def task(self) -> asyncio.Task[None] | None:
        return self._task

    def start(self, anchor: float | None = None) -> asyncio.Task[None]:
        """Start the background task, anchored at ``anchor`` (default: now)."""
        if self._task is not None:
            raise RuntimeError("Impairment schedule already started")
        if self._clock is None:
            self._clock = asyncio.get_running_loop().time
        self._anchor = self._clock() if anchor is None else anchor
        self._task = asyncio.create_task(self._drive(), name="impairment-schedule")
        return self._task

    async def wait(self) -> None:
        """Wait until every entry has been applied (or the task failed)."""
        if self._task is not None:
            await self._task

    async def cancel(self) -> None:
        """Stop the schedule; no entry is applied after this returns."""
        task = self._task
        if task is None:
            return
        if not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        elif not task.cancelled() and task.exception() is not None:
            # Already surfaced through the runner's wait loop.
            logger.debug("Impairment schedule had failed: %s", task.exception())

    async def _drive(self) -> None:
        assert self._clock is not None and self._anchor is not None
        for entry in self._timeline:
            await self._sleep_until(self._anchor + entry.offset)
            try:
                await self._target.apply(entry.network_config)
            except ImpairmentError:
                raise
            except Exception as exc:
                raise ImpairmentError(
                    f"Failed to apply network setting at {entry.offset:g}s: {exc}"
                ) from exc
            applied_at = self._clock() - self._anchor
            self._events.append(
                ImpairmentEvent(
                    offset=entry.offset,
                    applied_at=applied_at,
                    network_config=entry.network_config,
                )
            )
            logger.debug(
                "Applied network setting for offset %.1fs at %.3fs: %s",
                entry.offset,
                applied_at,
                entry.network_config.model_dump(exclude_none=True) or "unimpaired",
            )

    async def _sleep_until(self, deadline: float) -> None:
        assert self._clock is not None
        while True:
            remaining = deadline - self._clock()
            if remaining <= 0:
                return
            await self._sleep(min(remaining, self._tick))
