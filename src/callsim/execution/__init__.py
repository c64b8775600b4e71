"""Execution engine - matrix expansion and sequential run orchestration."""

from callsim.execution.matrix import PlannedRun, expand_matrix, validate_matrix
from callsim.execution.runner import TestRunner, referenced_sounds, run_test_set

__all__ = [
    "PlannedRun",
    "TestRunner",
    "expand_matrix",
    "referenced_sounds",
    "run_test_set",
    "validate_matrix",
]
