"""Error taxonomy for the call simulator.

ConfigurationError and InfrastructureError are fatal to a test-set
invocation. RunError is isolated to a single run: the runner records it
in that run's result and moves on to the next matrix cell.
CleanupWarning is a warning category, routed to logging by the CLI.
"""

from __future__ import annotations


class CallSimError(Exception):
    """Base class for all call simulator errors."""


class ConfigurationError(CallSimError):
    """Raised when a test set, group, case or profile is invalid.

    Always raised before any run starts.
    """


class InfrastructureError(CallSimError):
    """Raised when shared infrastructure cannot be provided.

    Covers image builds and creation of the emulated network. No run can
    proceed without them, so the whole invocation is aborted.
    """


class RunError(CallSimError):
    """Raised when a single run fails.

    Attributes:
        stage: Phase of the run that failed (start, call, impairment,
            capture, scoring).
    """

    stage: str = "run"

    def __init__(self, message: str, stage: str | None = None) -> None:
        super().__init__(message)
        if stage is not None:
            self.stage = stage


class ProcessStartError(RunError):
    """A participant or service container failed to start or become ready."""

    stage = "start"


class CallEndedEarlyError(RunError):
    """A participant reported the call ended before the configured duration."""

    stage = "call"


class ImpairmentError(RunError):
    """Applying a network setting to a participant interface failed."""

    stage = "impairment"


class ScoringError(RunError):
    """The external scoring tool failed, timed out or produced no score."""

    stage = "scoring"


class CleanupWarning(UserWarning):
    """Best-effort teardown found nothing to remove or could not remove it."""
