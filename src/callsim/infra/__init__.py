"""Participant & infrastructure management - docker CLI, polling, manager."""

from callsim.infra.docker import CommandResult, DockerCli, DockerCommandError
from callsim.infra.manager import (
    ALL_CONTAINERS,
    ContainerImpairmentTarget,
    ParticipantManager,
    RunHandle,
)
from callsim.infra.polling import poll_until

__all__ = [
    "ALL_CONTAINERS",
    "CommandResult",
    "ContainerImpairmentTarget",
    "DockerCli",
    "DockerCommandError",
    "ParticipantManager",
    "RunHandle",
    "poll_until",
]
