"""callsim clean -- remove leftover containers and the emulated network."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from callsim.cli.logs import configure_logging
from callsim.errors import ConfigurationError, InfrastructureError
from callsim.infra.manager import ParticipantManager
from callsim.models.config import find_project_root, load_harness_config

console = Console(stderr=True)


def clean(
    root: Optional[Path] = typer.Option(None, "--root", help="Project root (default: search for callsim.yaml)"),
    verbose: bool = typer.Option(False, "-V", "--verbose", help="Debug logging"),
) -> None:
    """Force-remove every harness container and the docker network."""
    configure_logging(verbose)
    project_root = (root or find_project_root()).resolve()
    try:
        config = load_harness_config(project_root)
    except ConfigurationError as exc:
        console.print(f"[bold red]Configuration error:[/bold red] {exc}")
        raise typer.Exit(code=1)

    manager = ParticipantManager(config, project_root)
    try:
        asyncio.run(manager.clean_all())
    except InfrastructureError as exc:
        console.print(f"[bold red]Infrastructure error:[/bold red] {exc}")
        raise typer.Exit(code=2)
    console.print("[green]Cleaned up containers and network[/green]")
