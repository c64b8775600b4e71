"""JSON file storage for run results, group reports and preprocessing.

File layout under the output directory:

    preprocess/
        {sound}.json             # Baseline score and spectrogram of a reference
        {sound}.png
    {test_set}/
        summary.json             # Groups written for this test set
        {group}/
            results.json         # Every RunResult of the group, in run order
            report.json          # Aggregated GroupReport
            {case}/{profile}/    # Per-run artifacts (written by the manager)

Writes are atomic (write to .tmp, then rename) to prevent partial files.
"""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import BaseModel, TypeAdapter

from callsim.models.report import GroupReport, TestSetSummary
from callsim.models.result import RunResult

_RESULTS_ADAPTER: TypeAdapter[list[RunResult]] = TypeAdapter(list[RunResult])


class PreprocessedSound(BaseModel):
    """Baseline data computed once per reference sound."""

    name: str
    reference: str
    baseline_score: float
    duration_seconds: float | None = None
    spectrogram: str | None = None


class ResultStore:
    """Persist and load harness output as JSON files."""

    def __init__(self, output_dir: Path) -> None:
        self.output_dir = output_dir
        self.preprocess_dir = output_dir / "preprocess"

    def test_set_dir(self, test_set: str) -> Path:
        return self.output_dir / test_set

    def group_dir(self, test_set: str, group: str) -> Path:
        return self.output_dir / test_set / group

    def run_dir(self, test_set: str, group: str, test_case: str, profile_label: str) -> Path:
        return self.group_dir(test_set, group) / test_case / profile_label

    def spectrogram_path(self, sound_name: str) -> Path:
        return self.preprocess_dir / f"{sound_name}.png"

    def save_results(self, test_set: str, group: str, results: list[RunResult]) -> Path:
        path = self.group_dir(test_set, group) / "results.json"
        data = [r.model_dump(mode="json") for r in results]
        _atomic_write(path, json.dumps(data, indent=2, ensure_ascii=False))
        return path

    def load_results(self, test_set: str, group: str) -> list[RunResult]:
        path = self.group_dir(test_set, group) / "results.json"
        return _RESULTS_ADAPTER.validate_json(path.read_text(encoding="utf-8"))

    def save_group_report(self, report: GroupReport) -> Path:
        path = self.group_dir(report.test_set, report.group) / "report.json"
        _atomic_write(path, report.model_dump_json(indent=2))
        return path

    def load_group_report(self, test_set: str, group: str) -> GroupReport:
        path = self.group_dir(test_set, group) / "report.json"
        return GroupReport.model_validate_json(path.read_text(encoding="utf-8"))

    def save_summary(self, summary: TestSetSummary) -> Path:
        path = self.test_set_dir(summary.test_set) / "summary.json"
        _atomic_write(path, summary.model_dump_json(indent=2))
        return path

    def save_preprocessed(self, sound: PreprocessedSound) -> Path:
        path = self.preprocess_dir / f"{sound.name}.json"
        _atomic_write(path, sound.model_dump_json(indent=2))
        return path

    def load_preprocessed(self, sound_name: str) -> PreprocessedSound | None:
        """Return the stored baseline for a sound, or None if absent."""
        path = self.preprocess_dir / f"{sound_name}.json"
        if not path.exists():
            return None
        return PreprocessedSound.model_validate_json(path.read_text(encoding="utf-8"))


def _atomic_write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    tmp.write_text(content, encoding="utf-8")
    tmp.replace(path)
