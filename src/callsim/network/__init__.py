"""Network emulation - profile resolution, netem rendering and scheduling."""

from callsim.network.netem import is_missing_qdisc, netem_command
from callsim.network.profiles import PRESETS, profile_offsets, resolve_profile
from callsim.network.scheduler import ImpairmentSchedule, ImpairmentTarget

__all__ = [
    "ImpairmentSchedule",
    "ImpairmentTarget",
    "PRESETS",
    "is_missing_qdisc",
    "netem_command",
    "profile_offsets",
    "resolve_profile",
]
