"""JSON persistence for run results, reports and preprocessing."""

from callsim.storage.json_store import PreprocessedSound, ResultStore

__all__ = ["PreprocessedSound", "ResultStore"]
