"""Test matrix expansion and up-front validation.

A group's runs are the Cartesian product of its test cases and network
profiles, in the given order. Everything that can be checked without
starting a container is checked here, so a bad matrix fails before the
first run.
"""

from __future__ import annotations

from dataclasses import dataclass

from callsim.errors import ConfigurationError
from callsim.models.network import NetworkConfigWithOffset, NetworkProfile
from callsim.models.test_case import TestCaseConfig
from callsim.network.profiles import resolve_profile


@dataclass(frozen=True)
class PlannedRun:
    """One (test case, network profile) pair with its resolved timeline."""

    case: TestCaseConfig
    profile: NetworkProfile
    timeline: list[NetworkConfigWithOffset]

    @property
    def key(self) -> tuple[str, str]:
        return (self.case.name, self.profile.label)


def expand_matrix(
    cases: list[TestCaseConfig],
    profiles: list[NetworkProfile],
) -> list[tuple[TestCaseConfig, NetworkProfile]]:
    """Return cases x profiles, case-major, preserving input order."""
    return [(case, profile) for case in cases for profile in profiles]


def validate_matrix(
    group: str,
    cases: list[TestCaseConfig],
    profiles: list[NetworkProfile],
) -> list[PlannedRun]:
    """Validate a group's matrix and resolve every run's timeline.

    Raises:
        ConfigurationError: On an empty matrix, duplicate case names or
            profile labels, or a profile that is invalid for some case.
    """
    if not cases:
        raise ConfigurationError(f"Group '{group}' has no test cases")
    if not profiles:
        raise ConfigurationError(f"Group '{group}' has no network profiles")

    _reject_duplicates(group, "test case", [c.name for c in cases])
    _reject_duplicates(group, "network profile", [p.label for p in profiles])

    planned: list[PlannedRun] = []
    for case, profile in expand_matrix(cases, profiles):
        try:
            timeline = resolve_profile(profile, case.duration)
        except ConfigurationError as exc:
            raise ConfigurationError(
                f"Group '{group}', test case '{case.name}': {exc}"
            ) from exc
        planned.append(PlannedRun(case=case, profile=profile, timeline=timeline))
    return planned


def _reject_duplicates(group: str, kind: str, names: list[str]) -> None:
    seen: set[str] = set()
    for name in names:
        if name in seen:
            raise ConfigurationError(f"Group '{group}' has duplicate {kind} '{name}'")
        seen.add(name)
