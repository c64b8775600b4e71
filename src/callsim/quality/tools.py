"""Invocation of the external scoring tool and sox.

Both run inside the scoring tool container. Paths are given on the host
and translated to container mounts by the tool runner.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Protocol

from callsim.errors import ScoringError

MOS_PATTERN = re.compile(r"MOS-LQO:\s*([-+]?\d+(?:\.\d+)?)")


class ToolRunner(Protocol):
    """Executes commands where the scoring tools live."""

    async def exec_tool(self, args: list[str], timeout: float) -> str:
        ...

    def container_path(self, host_path: Path) -> str:
        ...


def parse_mos(output: str) -> float:
    """Extract the MOS-LQO value from visqol output.

    Raises:
        ScoringError: If the output contains no score.
    """
    match = MOS_PATTERN.search(output)
    if match is None:
        snippet = output.strip()[-200:] or "<empty>"
        raise ScoringError(f"No MOS-LQO in scoring tool output: {snippet}")
    return float(match.group(1))


class VisqolScorer:
    """Scores a degraded recording against its reference with visqol."""

    def __init__(self, tools: ToolRunner, timeout: float = 120.0) -> None:
        self._tools = tools
        self._timeout = timeout

    async def score(self, reference: Path, degraded: Path) -> float:
        output = await self._tools.exec_tool(
            [
                "visqol",
                "--reference_file", self._tools.container_path(reference),
                "--degraded_file", self._tools.container_path(degraded),
                "--use_speech_mode",
            ],
            self._timeout,
        )
        return parse_mos(output)


class SoxTools:
    """Audio slicing, probing and spectrograms via sox."""

    def __init__(self, tools: ToolRunner, timeout: float = 60.0) -> None:
        self._tools = tools
        self._timeout = timeout

    async def trim(self, source: Path, destination: Path, start: float, length: float) -> Path:
        destination.parent.mkdir(parents=True, exist_ok=True)
        await self._tools.exec_tool(
            [
                "sox",
                self._tools.container_path(source),
                self._tools.container_path(destination),
                "trim", f"{start:.3f}", f"{length:.3f}",
            ],
            self._timeout,
        )
        return destination

    async def spectrogram(self, source: Path, destination: Path) -> Path:
        destination.parent.mkdir(parents=True, exist_ok=True)
        await self._tools.exec_tool(
            [
                "sox",
                self._tools.container_path(source),
                "-n", "spectrogram",
                "-t", source.stem,
                "-o", self._tools.container_path(destination),
            ],
            self._timeout,
        )
        return destination

    async def duration(self, source: Path) -> float:
        output = await self._tools.exec_tool(
            ["soxi", "-D", self._tools.container_path(source)], self._timeout
        )
        try:
            return float(output.strip())
        except ValueError:
            raise ScoringError(f"Could not read duration of {source.name}: {output.strip()!r}") from None
