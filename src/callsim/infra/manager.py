"""ParticipantManager: lifecycle of the containers and network behind a run.

Owns the fixed-identity containers (two call clients, signaling server,
TURN relay, packet capture, scoring tool) and the docker network they
share. The network and service containers stay warm across runs; the
clients and packet capture exist only for the duration of one run.

One manager instance is created per invocation and handed to the
runner; what is currently running is private to that instance.
"""

from __future__ import annotations

import asyncio
import logging
import warnings
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path

from callsim.errors import (
    CleanupWarning,
    ImpairmentError,
    InfrastructureError,
    ProcessStartError,
    RunError,
    ScoringError,
)
from callsim.infra.docker import DockerCli, DockerCommandError
from callsim.infra.polling import poll_until
from callsim.models.config import HarnessConfig
from callsim.models.network import NetworkConfig
from callsim.models.result import ArtifactSet
from callsim.models.test_case import CallConfig
from callsim.network.netem import is_missing_qdisc, netem_command

logger = logging.getLogger(__name__)

CLIENT_A = "client_a"
CLIENT_B = "client_b"
SIGNALING_SERVER = "signaling_server"
TURN = "turn"
TCPDUMP = "tcpdump"
VISQOL = "visqol"

ALL_CONTAINERS: tuple[str, ...] = (CLIENT_A, CLIENT_B, SIGNALING_SERVER, TURN, TCPDUMP, VISQOL)
RUN_CONTAINERS: tuple[str, ...] = (CLIENT_A, CLIENT_B, TCPDUMP)
SERVICE_CONTAINERS: tuple[str, ...] = (SIGNALING_SERVER, TURN, VISQOL)

MEDIA_MOUNT = "/media"
REPORT_MOUNT = "/report"

# Reference sound sent by a participant without an audio input.
SILENCE_SOUND = "silence"


class ContainerImpairmentTarget:
    """Applies network settings to one interface in each of several containers."""

    def __init__(
        self,
        docker: DockerCli,
        containers: Iterable[str],
        interface: str,
        timeout: float,
    ) -> None:
        self._docker = docker
        self.containers = list(containers)
        self.interface = interface
        self._timeout = timeout

    async def apply(self, config: NetworkConfig) -> None:
        args = netem_command(config, self.interface)
        for name in self.containers:
            try:
                result = await self._docker.run("exec", name, *args, timeout=self._timeout)
            except TimeoutError as exc:
                raise ImpairmentError(str(exc)) from exc
            if result.ok:
                continue
            if config.is_unimpaired and is_missing_qdisc(result.stderr):
                continue
            raise ImpairmentError(
                f"Setting network conditions on {name} failed: {result.stderr.strip()}"
            )


@dataclass
class RunHandle:
    """Everything the runner needs to drive one started call."""

    run_dir: Path
    call_a: CallConfig
    call_b: CallConfig
    impairment_target: ContainerImpairmentTarget
    containers: list[str] = field(default_factory=lambda: list(RUN_CONTAINERS))
    stopped: bool = False


class ParticipantManager:
    """Starts, stops and cleans the containers used by runs.

    Args:
        config: Harness configuration (images, network, timeouts).
        project_root: Directory that relative config paths resolve against.
        docker: Docker CLI wrapper; injectable for tests.
        output_dir: Overrides config.output_dir.
        media_dir: Overrides config.media_dir.
        sleep: Awaitable sleep used by polling; injectable for tests.
    """

    def __init__(
        self,
        config: HarnessConfig,
        project_root: Path,
        docker: DockerCli | None = None,
        *,
        output_dir: Path | None = None,
        media_dir: Path | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.config = config
        self.docker = docker or DockerCli(default_timeout=config.timeouts.command)
        self.output_dir = (output_dir or project_root / config.output_dir).resolve()
        self.media_dir = (media_dir or project_root / config.media_dir).resolve()
        self._sleep = sleep
        self._run_lock = asyncio.Lock()
        self._service_lock = asyncio.Lock()
        self._network_ready = False
        self._services: set[str] = set()

    # -- paths ---------------------------------------------------------------

    def exclusive(self) -> asyncio.Lock:
        """Lock held by the runner for the whole of each run."""
        return self._run_lock

    def media_path(self, name: str, suffix: str = ".wav") -> Path:
        return self.media_dir / f"{name}{suffix}"

    def container_path(self, host_path: Path) -> str:
        """Translate a host path under the media or output dir to its mount."""
        resolved = host_path.resolve()
        for base, mount in ((self.output_dir, REPORT_MOUNT), (self.media_dir, MEDIA_MOUNT)):
            if resolved.is_relative_to(base):
                relative = resolved.relative_to(base).as_posix()
                return mount if relative == "." else f"{mount}/{relative}"
        raise ValueError(f"{host_path} is not under {self.output_dir} or {self.media_dir}")

    # -- coarse lifecycle hooks ----------------------------------------------

    async def build_images(self) -> None:
        """Build every configured image.

        Raises:
            InfrastructureError: If any build fails; nothing can run without it.
        """
        for build in self.config.builds:
            logger.info("Building image %s", build.image)
            try:
                result = await self.docker.run(
                    "build", "-t", build.image, "-f", build.dockerfile, build.context,
                    timeout=self.config.timeouts.build,
                )
            except TimeoutError as exc:
                raise InfrastructureError(f"Building {build.image} timed out") from exc
            if not result.ok:
                raise InfrastructureError(
                    f"Building {build.image} failed: {result.stderr.strip()[-2000:]}"
                )

    async def clean_up(self, container_names: Iterable[str]) -> None:
        """Force-remove the named containers. Absent containers are not errors."""
        for name in container_names:
            self._services.discard(name)
            result = await self.docker.run("rm", "-f", name)
            if result.absent:
                warnings.warn(f"Container {name} was already removed", CleanupWarning, stacklevel=2)
            elif not result.ok:
                warnings.warn(
                    f"Could not remove container {name}: {result.stderr.strip()}",
                    CleanupWarning,
                    stacklevel=2,
                )

    async def clean_network(self) -> None:
        """Remove the emulated network. An absent network is not an error."""
        self._network_ready = False
        result = await self.docker.run("network", "rm", self.config.network_name)
        if result.absent:
            warnings.warn(
                f"Network {self.config.network_name} was already removed",
                CleanupWarning,
                stacklevel=2,
            )
        elif not result.ok:
            warnings.warn(
                f"Could not remove network {self.config.network_name}: {result.stderr.strip()}",
                CleanupWarning,
                stacklevel=2,
            )

    async def ensure_network(self) -> None:
        """Create the docker network unless it already exists.

        Raises:
            InfrastructureError: If the network cannot be created.
        """
        if self._network_ready:
            return
        name = self.config.network_name
        inspect = await self.docker.run("network", "inspect", name)
        if not inspect.ok:
            logger.info("Creating network %s", name)
            created = await self.docker.run("network", "create", name)
            if not created.ok:
                raise InfrastructureError(
                    f"Could not create network {name}: {created.stderr.strip()}"
                )
        self._network_ready = True

    async def reset(self) -> None:
        """Force-remove every run and service container; the network stays."""
        logger.info("Resetting participants and services")
        await self._remove_quietly(RUN_CONTAINERS + SERVICE_CONTAINERS)
        self._services.clear()

    async def shutdown(self) -> None:
        """Remove the containers and network this instance created."""
        await self._remove_quietly(RUN_CONTAINERS)
        await self.clean_up(sorted(self._services))
        if self._network_ready:
            await self.clean_network()

    async def clean_all(self) -> None:
        """Remove every fixed-identity container and the network, whoever created them."""
        await self.clean_up(ALL_CONTAINERS)
        await self.clean_network()

    # -- per-run lifecycle ---------------------------------------------------

    async def start_run(self, call_a: CallConfig, call_b: CallConfig, run_dir: Path) -> RunHandle:
        """Start both participants and packet capture, and wait until connected.

        Raises:
            InfrastructureError: If the network cannot be created.
            ProcessStartError: If any container fails to start or connect.
        """
        await self.ensure_network()
        await self._ensure_services((SIGNALING_SERVER, TURN))
        await self._remove_quietly(RUN_CONTAINERS)
        run_dir.mkdir(parents=True, exist_ok=True)

        # The callee has to be registered before the caller dials it.
        await self._start_container(
            CLIENT_B,
            self.config.images.client,
            self._client_args(CLIENT_B, call_b, peer=CLIENT_A, run_dir=run_dir, initiator=False),
            extra_opts=("--cap-add", "NET_ADMIN"),
        )
        await self._start_container(
            CLIENT_A,
            self.config.images.client,
            self._client_args(CLIENT_A, call_a, peer=CLIENT_B, run_dir=run_dir, initiator=True),
            extra_opts=("--cap-add", "NET_ADMIN"),
        )
        await self._start_container(
            TCPDUMP,
            self.config.images.tcpdump,
            ["-i", self.config.interface, "-w", self.container_path(run_dir / "capture.pcap")],
            network=f"container:{CLIENT_A}",
        )
        await self._wait_connected((CLIENT_A, CLIENT_B))

        return RunHandle(
            run_dir=run_dir,
            call_a=call_a,
            call_b=call_b,
            impairment_target=ContainerImpairmentTarget(
                self.docker,
                (CLIENT_A, CLIENT_B),
                self.config.interface,
                self.config.timeouts.command,
            ),
        )

    async def wait_for_call_end(self, handle: RunHandle, poll_interval: float = 1.0) -> str:
        """Return once a participant exits or logs the call-ended marker."""
        marker = self.config.markers.ended
        while True:
            for name in (CLIENT_A, CLIENT_B):
                if not await self._is_running(name):
                    return f"{name} exited"
                if marker in await self._logs(name):
                    return f"{name} reported the call ended"
            await self._sleep(poll_interval)

    async def stop_run(self, handle: RunHandle) -> ArtifactSet:
        """Stop the call, flush recordings and capture, and collect artifacts.

        Raises:
            RunError: If the clients could not be stopped; their recordings
                may be incomplete.
        """
        timeouts = self.config.timeouts
        # Clients first so they finish writing their recordings.
        try:
            await self.docker.run(
                "stop", "-t", str(timeouts.stop), CLIENT_A, CLIENT_B,
                timeout=timeouts.command + timeouts.stop,
                check=True,
            )
        except DockerCommandError as exc:
            raise RunError(f"Could not stop the call clients: {exc}", stage="capture") from exc
        await self.docker.run("stop", "-t", "2", TCPDUMP, timeout=timeouts.command)
        for name in (CLIENT_A, CLIENT_B):
            logs = await self._logs(name)
            (handle.run_dir / f"{name}.log").write_text(logs, encoding="utf-8")
        await self._remove_quietly(RUN_CONTAINERS)
        handle.stopped = True
        return self.collect_artifacts(handle.run_dir)

    @asynccontextmanager
    async def run_scope(
        self,
        call_a: CallConfig,
        call_b: CallConfig,
        run_dir: Path,
    ) -> AsyncIterator[RunHandle]:
        """Start a run and guarantee teardown on every exit path.

        A run that fails or is cancelled resets participants and services,
        so no state crosses into the next run. A run whose body returns
        without calling stop_run is stopped here.
        """
        handle: RunHandle | None = None
        try:
            handle = await self.start_run(call_a, call_b, run_dir)
            yield handle
            if not handle.stopped:
                await self.stop_run(handle)
        except BaseException:
            await self.reset()
            raise

    def collect_artifacts(self, run_dir: Path) -> ArtifactSet:
        def existing(name: str) -> Path | None:
            path = run_dir / name
            return path if path.exists() else None

        return ArtifactSet(
            run_dir=run_dir,
            client_a_audio=existing(f"{CLIENT_A}_received.wav"),
            client_b_audio=existing(f"{CLIENT_B}_received.wav"),
            client_a_video=existing(f"{CLIENT_A}_received.yuv"),
            client_b_video=existing(f"{CLIENT_B}_received.yuv"),
            client_a_log=existing(f"{CLIENT_A}.log"),
            client_b_log=existing(f"{CLIENT_B}.log"),
            packet_capture=existing("capture.pcap"),
        )

    # -- scoring tool --------------------------------------------------------

    async def exec_tool(self, args: list[str], timeout: float) -> str:
        """Run a command in the scoring tool container and return its stdout.

        Raises:
            ScoringError: If the tool cannot start, fails or times out.
        """
        try:
            await self._ensure_services((VISQOL,))
        except ProcessStartError as exc:
            raise ScoringError(str(exc)) from exc
        try:
            result = await self.docker.run("exec", VISQOL, *args, timeout=timeout)
        except TimeoutError as exc:
            raise ScoringError(str(exc)) from exc
        if not result.ok:
            raise ScoringError(
                f"`{args[0]}` failed with status {result.returncode}: {result.stderr.strip()}"
            )
        return result.stdout

    # -- internals -----------------------------------------------------------

    def _client_args(
        self,
        name: str,
        call: CallConfig,
        *,
        peer: str,
        run_dir: Path,
        initiator: bool,
    ) -> list[str]:
        audio_input = self.media_path(call.audio.input_name or SILENCE_SOUND)
        args = [
            "--name", name,
            "--peer", peer,
            "--signaling-url", f"http://{SIGNALING_SERVER}:{self.config.signaling_port}",
            "--input-file", self.container_path(audio_input),
            "--output-file", self.container_path(run_dir / f"{name}_received.wav"),
            "--audio-packet-size-ms", str(call.audio.packet_size_ms),
        ]
        if not call.audio.enable_dtx:
            args.append("--no-dtx")
        for uri in call.relay_servers:
            args += ["--ice-server", uri]
        if call.force_relay:
            args.append("--force-relay")
        if call.video.input_name:
            args += [
                "--video-input-file",
                self.container_path(self.media_path(call.video.input_name, ".yuv")),
                "--video-output-file",
                self.container_path(run_dir / f"{name}_received.yuv"),
            ]
            if call.video.enable_vp9:
                args.append("--vp9")
        if initiator:
            args.append("--call")
        return args

    async def _ensure_services(self, names: Iterable[str]) -> None:
        async with self._service_lock:
            await self.ensure_network()
            for name in names:
                if name in self._services:
                    continue
                await self._remove_quietly((name,))
                if name == VISQOL:
                    # Idle container; scoring and sox run inside it via exec.
                    await self._start_container(
                        VISQOL, self.config.images.visqol, ["infinity"],
                        extra_opts=("--entrypoint", "sleep"),
                    )
                elif name == SIGNALING_SERVER:
                    await self._start_container(name, self.config.images.signaling_server, [])
                else:
                    await self._start_container(name, self.config.images.turn, [])
                self._services.add(name)

    async def _start_container(
        self,
        name: str,
        image: str,
        args: list[str],
        *,
        network: str | None = None,
        extra_opts: tuple[str, ...] = (),
    ) -> None:
        opts = [
            "run", "-d",
            "--name", name,
            "--network", network or self.config.network_name,
            "-v", f"{self.media_dir}:{MEDIA_MOUNT}:ro",
            "-v", f"{self.output_dir}:{REPORT_MOUNT}",
            *extra_opts,
            image,
            *args,
        ]
        try:
            result = await self.docker.run(*opts)
        except TimeoutError as exc:
            raise ProcessStartError(f"Starting {name} timed out: {exc}") from exc
        if not result.ok:
            raise ProcessStartError(f"Failed to start {name}: {result.stderr.strip()}")
        logger.debug("Started %s (%s)", name, result.stdout.strip()[:12])

    async def _wait_connected(self, names: Iterable[str]) -> None:
        marker = self.config.markers.connected
        names = list(names)

        async def connected() -> bool:
            for name in names:
                if not await self._is_running(name):
                    raise ProcessStartError(f"{name} exited before the call connected")
            for name in names:
                if marker not in await self._logs(name):
                    return False
            return True

        try:
            await poll_until(
                connected,
                self.config.timeouts.startup,
                description="participants to connect",
                sleep=self._sleep,
            )
        except TimeoutError as exc:
            raise ProcessStartError(str(exc)) from exc

    async def _is_running(self, name: str) -> bool:
        result = await self.docker.run("inspect", "-f", "{{.State.Running}}", name)
        return result.ok and result.stdout.strip() == "true"

    async def _logs(self, name: str) -> str:
        result = await self.docker.run("logs", name)
        return result.stdout + result.stderr

    async def _remove_quietly(self, names: Iterable[str]) -> None:
        names = list(names)
        if not names:
            return
        result = await self.docker.run("rm", "-f", *names)
        if not result.ok and not result.absent:
            logger.debug("Removing %s: %s", ", ".join(names), result.stderr.strip())
