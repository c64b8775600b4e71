"""Harness configuration model.

Captures callsim.yaml fields with sensible defaults for directories,
container images, timeouts and scheduler granularity.
"""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError

from callsim.errors import ConfigurationError

CONFIG_FILENAME = "callsim.yaml"


class ImagesConfig(BaseModel):
    """Docker image used for each fixed role."""

    model_config = {"extra": "forbid"}

    client: str = "callsim-cli"
    signaling_server: str = "callsim-signaling-server"
    turn: str = "callsim-turn"
    tcpdump: str = "callsim-tcpdump"
    visqol: str = "callsim-visqol"


class ImageBuild(BaseModel):
    """One `docker build` invocation run by `callsim run --build`."""

    model_config = {"extra": "forbid"}

    image: str
    dockerfile: str
    context: str = "."


class TimeoutsConfig(BaseModel):
    """Upper bounds, in seconds, for every wait the harness performs."""

    model_config = {"extra": "forbid"}

    startup: float = Field(default=30.0, gt=0)
    stop: int = Field(default=10, ge=0)
    scoring: float = Field(default=120.0, gt=0)
    command: float = Field(default=60.0, gt=0)
    build: float = Field(default=1800.0, gt=0)


class MarkersConfig(BaseModel):
    """Log lines participants emit at call lifecycle transitions."""

    model_config = {"extra": "forbid"}

    connected: str = "call connected"
    ended: str = "call ended"


class HarnessConfig(BaseModel):
    """Project-level configuration loaded from callsim.yaml."""

    model_config = {"extra": "forbid"}

    output_dir: str = "test_results"
    media_dir: str = "media"
    test_sets_dir: str = "test_sets"
    network_name: str = "callsim"
    interface: str = "eth0"
    signaling_port: int = 8080
    generate_spectrograms: bool = True
    scheduler_tick_ms: int = Field(default=100, gt=0, le=1000)
    images: ImagesConfig = Field(default_factory=ImagesConfig)
    builds: list[ImageBuild] = Field(default_factory=list)
    timeouts: TimeoutsConfig = Field(default_factory=TimeoutsConfig)
    markers: MarkersConfig = Field(default_factory=MarkersConfig)


def find_project_root(start: Path | None = None) -> Path:
    """Walk up from start (default: cwd) looking for callsim.yaml.

    Returns the directory holding callsim.yaml, or cwd if none is found.
    """
    current = (start or Path.cwd()).resolve()
    if current.is_file():
        current = current.parent
    while current != current.parent:
        if (current / CONFIG_FILENAME).exists():
            return current
        current = current.parent
    return Path.cwd()


def load_harness_config(project_root: Path | None = None) -> HarnessConfig:
    """Load HarnessConfig from callsim.yaml. Returns defaults if not found.

    Raises:
        ConfigurationError: If the file is not valid YAML or not a valid config.
    """
    if project_root is None:
        project_root = find_project_root()
    config_path = project_root / CONFIG_FILENAME
    if not config_path.exists():
        return HarnessConfig()
    try:
        raw = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"{config_path}: {exc}") from exc
    if raw is None:
        return HarnessConfig()
    try:
        return HarnessConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigurationError(f"{config_path}: {exc}") from exc
