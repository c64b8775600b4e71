"""Thin async wrapper around the docker command line.

Every call is a subprocess with a timeout. A command that times out or
whose awaiting task is cancelled has its process killed, so no docker
invocation outlives the run that issued it.
"""

from __future__ import annotations

import asyncio
import logging
import shlex
from dataclasses import dataclass

from callsim.errors import InfrastructureError

logger = logging.getLogger(__name__)

# Fragments docker prints when the object to remove does not exist.
ABSENT_MARKERS: tuple[str, ...] = ("No such container", "No such network", "not found")


@dataclass
class CommandResult:
    """Exit status and captured output of one docker invocation."""

    args: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def absent(self) -> bool:
        """True if the command failed only because its target does not exist."""
        return not self.ok and any(marker in self.stderr for marker in ABSENT_MARKERS)


class DockerCommandError(Exception):
    """Raised by DockerCli.run(check=True) on a non-zero exit status."""

    def __init__(self, result: CommandResult) -> None:
        self.result = result
        detail = result.stderr.strip() or result.stdout.strip() or f"exit status {result.returncode}"
        super().__init__(f"`{shlex.join(result.args)}` failed: {detail}")


class DockerCli:
    """Runs docker subcommands as asyncio subprocesses.

    Args:
        executable: Name or path of the docker binary.
        default_timeout: Timeout in seconds applied when a call gives none.
    """

    def __init__(self, executable: str = "docker", default_timeout: float = 60.0) -> None:
        self.executable = executable
        self.default_timeout = default_timeout

    async def run(
        self,
        *args: str,
        timeout: float | None = None,
        check: bool = False,
    ) -> CommandResult:
        """Run ``docker <args>`` and return its result.

        Raises:
            TimeoutError: If the command does not finish within the timeout.
            DockerCommandError: If check is set and the command failed.
            InfrastructureError: If the docker executable is missing.
        """
        cmd = [self.executable, *args]
        limit = self.default_timeout if timeout is None else timeout
        logger.debug("$ %s", shlex.join(cmd))

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as exc:
            raise InfrastructureError(f"{self.executable} executable not found") from exc
        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=limit)
        except TimeoutError:
            await _kill(proc)
            raise TimeoutError(f"`{shlex.join(cmd)}` timed out after {limit:g}s") from None
        except asyncio.CancelledError:
            await _kill(proc)
            raise

        result = CommandResult(
            args=cmd,
            returncode=proc.returncode if proc.returncode is not None else -1,
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace"),
        )
        if not result.ok:
            logger.debug("docker exited %d: %s", result.returncode, result.stderr.strip())
        if check and not result.ok:
            raise DockerCommandError(result)
        return result


async def _kill(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            return
        await proc.wait()
