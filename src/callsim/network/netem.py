"""Rendering of NetworkConfig values into `tc` netem commands.

Every command replaces the interface's root qdisc as a whole, so a field
absent from the new config reverts that dimension to unimpaired. The
fully unimpaired state deletes the root qdisc instead.
"""

from __future__ import annotations

from callsim.models.network import NetworkConfig

# tc reports these when there is no root qdisc to delete.
_MISSING_QDISC_MARKERS: tuple[str, ...] = (
    "Cannot delete qdisc with handle of zero",
    "No such file or directory",
    "Invalid handle",
)


def netem_command(config: NetworkConfig, interface: str = "eth0") -> list[str]:
    """Build the `tc` argument list that puts an interface into this state."""
    if config.is_unimpaired:
        return ["tc", "qdisc", "del", "dev", interface, "root"]

    args = ["tc", "qdisc", "replace", "dev", interface, "root", "netem"]
    if config.delay_ms is not None or config.jitter_ms is not None:
        args += ["delay", f"{config.delay_ms or 0}ms"]
        if config.jitter_ms:
            args.append(f"{config.jitter_ms}ms")
    if config.loss_percent is not None:
        args += ["loss", f"{config.loss_percent}%"]
    if config.rate_kbps is not None:
        args += ["rate", f"{config.rate_kbps}kbit"]
    return args


def is_missing_qdisc(stderr: str) -> bool:
    """True if a failed `tc qdisc del` only means there was nothing to delete."""
    return any(marker in stderr for marker in _MISSING_QDISC_MARKERS)
