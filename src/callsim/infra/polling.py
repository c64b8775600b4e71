"""Bounded polling with exponential backoff and jitter.

Used for every readiness wait: a condition is re-checked with growing
delays until it holds or the deadline passes, so no wait can hang a
test set.
"""

from __future__ import annotations

import asyncio
import random
import time
from collections.abc import Awaitable, Callable


async def poll_until(
    check: Callable[[], Awaitable[bool]],
    timeout: float,
    *,
    description: str = "condition",
    base_delay: float = 0.1,
    max_delay: float = 2.0,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> int:
    """Await ``check()`` until it returns True.

    Exceptions raised by ``check`` propagate immediately: they mean the
    condition can never hold (e.g. a container exited).

    Args:
        check: Callable returning a new awaitable per attempt.
        timeout: Seconds before giving up.
        description: Used in the timeout message.
        base_delay: Delay after the first failed check.
        max_delay: Cap on the delay between checks.

    Returns:
        Number of failed checks before the condition held.

    Raises:
        TimeoutError: If the condition did not hold in time.
    """
    deadline = clock() + timeout
    attempt = 0
    while True:
        if await check():
            return attempt
        remaining = deadline - clock()
        if remaining <= 0:
            raise TimeoutError(f"Timed out after {timeout:g}s waiting for {description}")
        delay = min(base_delay * (2**attempt), max_delay)
        jitter = random.uniform(delay / 2, delay)  # noqa: S311
        await sleep(min(jitter, remaining))
        attempt += 1
