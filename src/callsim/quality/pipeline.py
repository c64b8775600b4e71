"""QualityPipeline: reference preprocessing and post-run scoring.

Preprocessing computes, once per reference sound, a spectrogram and the
sound's score against itself. That baseline is the ceiling used to
normalize degraded-call scores.

Scoring covers each direction in which a participant sent a named
reference: the peer's recording is compared against it, either as one
unit (full) or segment by segment aligned to the network profile's
offsets (chopped). The perceptual computation itself is the external
tool's job; this module aligns inputs and collects results.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path

from callsim.errors import ConfigurationError, ScoringError
from callsim.models.network import NetworkConfigWithOffset
from callsim.models.result import ArtifactSet, MetricPoint
from callsim.models.test_case import AudioAnalysisMode, AudioConfig, MetricKind, TestCaseConfig
from callsim.network.profiles import profile_offsets
from callsim.quality.segments import Segment, plan_segments
from callsim.quality.tools import SoxTools, ToolRunner, VisqolScorer
from callsim.storage.json_store import PreprocessedSound, ResultStore

logger = logging.getLogger(__name__)


@dataclass
class QualityScores:
    """Metrics produced by scoring one run."""

    metrics: dict[MetricKind, float] = field(default_factory=dict)
    series: dict[MetricKind, list[MetricPoint]] = field(default_factory=dict)
    details: dict[str, float] = field(default_factory=dict)
    artifacts: dict[str, Path] = field(default_factory=dict)


@dataclass
class _Direction:
    name: str
    audio: AudioConfig
    recording: Path | None


class QualityPipeline:
    """Drives the scoring tool over reference media and captured calls.

    Args:
        tools: Where visqol and sox are executed.
        media_dir: Directory holding reference sounds as ``{name}.wav``.
        store: Persists preprocessing results so they survive restarts.
        scoring_timeout: Seconds allowed per scoring tool invocation.
        generate_spectrograms: Whether preprocessing renders spectrograms.
    """

    def __init__(
        self,
        tools: ToolRunner,
        media_dir: Path,
        store: ResultStore,
        *,
        scoring_timeout: float = 120.0,
        generate_spectrograms: bool = True,
    ) -> None:
        self._media_dir = media_dir
        self._store = store
        self._scorer = VisqolScorer(tools, timeout=scoring_timeout)
        self._sox = SoxTools(tools, timeout=scoring_timeout)
        self._generate_spectrograms = generate_spectrograms
        self._cache: dict[str, PreprocessedSound] = {}
        self._durations: dict[str, float] = {}
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def reference_path(self, sound_name: str) -> Path:
        return self._media_dir / f"{sound_name}.wav"

    def baseline(self, sound_name: str) -> float | None:
        """Baseline score of a preprocessed sound, or None."""
        sound = self._cache.get(sound_name)
        return sound.baseline_score if sound is not None else None

    async def preprocess(self, sound_name: str) -> PreprocessedSound:
        """Compute (or reuse) the spectrogram and baseline score of a sound.

        Raises:
            ConfigurationError: If the reference file does not exist.
            ScoringError: If the scoring tool fails.
        """
        async with self._locks[sound_name]:
            cached = self._cache.get(sound_name)
            if cached is not None:
                return cached

            stored = self._store.load_preprocessed(sound_name)
            if stored is not None:
                logger.debug("Reusing preprocessed %s", sound_name)
                self._remember(stored)
                return stored

            reference = self.reference_path(sound_name)
            if not reference.exists():
                raise ConfigurationError(f"Reference sound not found: {reference}")

            logger.info("Preprocessing %s", sound_name)
            spectrogram: Path | None = None
            if self._generate_spectrograms:
                spectrogram = await self._sox.spectrogram(
                    reference, self._store.spectrogram_path(sound_name)
                )
            baseline = await self._scorer.score(reference, reference)
            duration = await self._sox.duration(reference)

            sound = PreprocessedSound(
                name=sound_name,
                reference=str(reference),
                baseline_score=baseline,
                duration_seconds=duration,
                spectrogram=str(spectrogram) if spectrogram else None,
            )
            self._store.save_preprocessed(sound)
            self._remember(sound)
            return sound

    async def score(
        self,
        artifacts: ArtifactSet,
        case: TestCaseConfig,
        timeline: list[NetworkConfigWithOffset],
    ) -> QualityScores:
        """Score every direction of a finished run.

        Raises:
            ScoringError: If a recording is missing or the tool fails.
        """
        directions = [
            _Direction("a_to_b", case.client_a.audio, artifacts.client_b_audio),
            _Direction("b_to_a", case.client_b.audio, artifacts.client_a_audio),
        ]
        scores = QualityScores()
        moses: list[float] = []
        normalized: list[float] = []
        series_by_start: defaultdict[float, list[float]] = defaultdict(list)

        for direction in directions:
            sound_name = direction.audio.input_name
            if sound_name is None:
                continue
            if direction.recording is None or not direction.recording.exists():
                raise ScoringError(f"No recording captured for direction {direction.name}")

            reference = self.reference_path(sound_name)
            if direction.audio.generate_spectrogram:
                scores.artifacts[f"spectrogram_{direction.name}"] = await self._sox.spectrogram(
                    direction.recording,
                    artifacts.run_dir / f"{direction.name}_spectrogram.png",
                )

            if direction.audio.analysis_mode == AudioAnalysisMode.chopped:
                points = await self._score_chopped(
                    direction, reference, artifacts.run_dir, case.duration, timeline
                )
                if not points:
                    raise ScoringError(f"Call too short to chop for direction {direction.name}")
                for point in points:
                    series_by_start[point.start_seconds].append(point.value)
                    scores.details[f"mos.{direction.name}@{point.start_seconds:g}"] = point.value
                mos = sum(p.value for p in points) / len(points)
            else:
                mos = await self._scorer.score(reference, direction.recording)

            logger.debug("%s MOS %.3f", direction.name, mos)
            scores.details[f"mos.{direction.name}"] = mos
            moses.append(mos)
            baseline = self.baseline(sound_name)
            if baseline:
                normalized.append(min(mos / baseline, 1.0))

        if moses:
            scores.metrics[MetricKind.mos] = sum(moses) / len(moses)
        if normalized:
            scores.metrics[MetricKind.mos_normalized] = sum(normalized) / len(normalized)
        if series_by_start:
            scores.series[MetricKind.mos] = [
                MetricPoint(start_seconds=start, value=sum(values) / len(values))
                for start, values in sorted(series_by_start.items())
            ]
        return scores

    async def _score_chopped(
        self,
        direction: _Direction,
        reference: Path,
        run_dir: Path,
        call_duration: float,
        timeline: list[NetworkConfigWithOffset],
    ) -> list[MetricPoint]:
        assert direction.recording is not None and direction.audio.input_name is not None
        reference_length = await self._reference_duration(direction.audio.input_name)
        segment_length = direction.audio.segment_seconds or reference_length
        segments = plan_segments(call_duration, profile_offsets(timeline), segment_length)

        chop_dir = run_dir / "segments"
        points: list[MetricPoint] = []
        for index, segment in enumerate(segments):
            degraded, ref_slice = await self._slice(
                direction, reference, reference_length, segment, chop_dir, index
            )
            value = await self._scorer.score(ref_slice, degraded)
            points.append(MetricPoint(start_seconds=segment.start, value=value))
        return points

    async def _slice(
        self,
        direction: _Direction,
        reference: Path,
        reference_length: float,
        segment: Segment,
        chop_dir: Path,
        index: int,
    ) -> tuple[Path, Path]:
        assert direction.recording is not None
        # The sender loops its reference, so a segment starting at t lines
        # up with the reference at t modulo its length.
        ref_start = 0.0
        length = segment.length
        if reference_length > 0:
            ref_start = segment.start % reference_length
            length = min(length, reference_length - ref_start)
        degraded = await self._sox.trim(
            direction.recording,
            chop_dir / f"{direction.name}_{index:03d}_degraded.wav",
            segment.start,
            length,
        )
        ref_slice = await self._sox.trim(
            reference,
            chop_dir / f"{direction.name}_{index:03d}_reference.wav",
            ref_start,
            length,
        )
        return degraded, ref_slice

    async def _reference_duration(self, sound_name: str) -> float:
        if sound_name not in self._durations:
            self._durations[sound_name] = await self._sox.duration(self.reference_path(sound_name))
        return self._durations[sound_name]

    def _remember(self, sound: PreprocessedSound) -> None:
        self._cache[sound.name] = sound
        if sound.duration_seconds is not None:
            self._durations[sound.name] = sound.duration_seconds
