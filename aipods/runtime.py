"""Pass-throughs to the container runtime (docker / docker compose).

Nothing here models container behaviour: every method builds an argv,
runs it in the project root and either returns the exit code (interactive
commands) or the captured output.
"""

from __future__ import annotations

import shutil
import subprocess
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

from loguru import logger

from aipods.constants import CONTAINER_PREFIX, IMAGE_NAMESPACE
from aipods.core.exceptions import RuntimeCommandError

log = logger.bind(component="runtime")

type Runner = Callable[..., subprocess.CompletedProcess[Any]]


def container_name(service: str) -> str:
    return f"{CONTAINER_PREFIX}{service}"


class ContainerRuntime:
    """Runs docker and compose commands for a project.

    Args:
        root: Project root, used as the working directory.
        binary: Docker-compatible CLI (``docker``, ``podman``, ...).
        compose: Compose command; detected on first use when omitted.
        runner: ``subprocess.run`` compatible callable (injectable for tests).
    """

    def __init__(
        self,
        root: Path,
        *,
        binary: str = "docker",
        compose: Sequence[str] | None = None,
        runner: Runner = subprocess.run,
    ) -> None:
        self.root = root
        self.binary = binary
        self._compose = list(compose) if compose else None
        self._run = runner

    # -------------------------------------------------------------------------
    # Plumbing
    # -------------------------------------------------------------------------

    def available(self, command: str | None = None) -> bool:
        return shutil.which(command or self.binary) is not None

    def output(self, *argv: str, check: bool = True) -> str:
        """Run ``argv`` and return its stripped stdout."""
        cmd = list(argv)
        log.debug("Running {command}", command=" ".join(cmd))
        try:
            proc = self._run(cmd, cwd=self.root, capture_output=True, text=True)
        except FileNotFoundError as e:
            raise RuntimeCommandError(cmd, 127, f"{cmd[0]}: command not found") from e
        if check and proc.returncode != 0:
            raise RuntimeCommandError(cmd, proc.returncode, proc.stderr or "")
        return (proc.stdout or "").strip()

    def call(self, *argv: str) -> int:
        """Run ``argv`` attached to the terminal and return its exit code."""
        cmd = list(argv)
        log.debug("Running {command}", command=" ".join(cmd))
        try:
            return self._run(cmd, cwd=self.root).returncode
        except FileNotFoundError as e:
            raise RuntimeCommandError(cmd, 127, f"{cmd[0]}: command not found") from e

    def _probe(self, *argv: str) -> bool:
        try:
            proc = self._run(list(argv), cwd=self.root, capture_output=True, text=True)
        except FileNotFoundError:
            return False
        return proc.returncode == 0

    @property
    def compose_cmd(self) -> list[str]:
        """``docker compose`` when the plugin is present, else ``docker-compose``."""
        if self._compose is None:
            if self._probe(self.binary, "compose", "version"):
                self._compose = [self.binary, "compose"]
            elif self._probe("docker-compose", "--version"):
                self._compose = ["docker-compose"]
            else:
                raise RuntimeCommandError(
                    [self.binary, "compose"], 127, "neither 'docker compose' nor 'docker-compose' found",
                )
            log.debug("Using compose command {cmd}", cmd=" ".join(self._compose))
        return self._compose

    def compose(self, *args: str) -> int:
        return self.call(*self.compose_cmd, *args)

    # -------------------------------------------------------------------------
    # Compose lifecycle
    # -------------------------------------------------------------------------

    def build(self, *services: str) -> int:
        return self.compose("build", *services)

    def up(self, *services: str) -> int:
        return self.compose("up", "-d", *services)

    def down(self, *, volumes: bool = False, images: bool = False) -> int:
        args = ["down"]
        if volumes:
            args.append("-v")
        if images:
            args += ["--rmi", "all"]
        return self.compose(*args)

    def stop(self) -> int:
        return self.compose("stop")

    def start(self) -> int:
        return self.compose("start")

    def restart(self) -> int:
        return self.compose("restart")

    def ps(self) -> int:
        return self.compose("ps")

    def logs(self, service: str | None = None, *, follow: bool = True, tail: int = 100) -> int:
        args = ["logs", f"--tail={tail}"]
        if follow:
            args.append("-f")
        if service:
            args.append(service)
        return self.compose(*args)

    def run_once(self, service: str, *command: str) -> int:
        return self.compose("run", "--rm", service, *command)

    # -------------------------------------------------------------------------
    # Containers
    # -------------------------------------------------------------------------

    def exec(self, service: str, *command: str, interactive: bool = False) -> int:
        flags = ["-it"] if interactive else []
        return self.call(self.binary, "exec", *flags, container_name(service), *command)

    def shell(self, service: str) -> int:
        return self.exec(service, "/bin/bash", interactive=True)

    def freeze(self, service: str) -> str:
        return self.output(self.binary, "exec", container_name(service), "pip", "freeze")

    def pip_install(self, service: str, *packages: str) -> int:
        return self.exec(service, "pip", "install", *packages)

    # -------------------------------------------------------------------------
    # Images & housekeeping
    # -------------------------------------------------------------------------

    def version(self) -> str | None:
        try:
            return self.output(self.binary, "version", "--format", "{{.Server.Version}}")
        except RuntimeCommandError:
            return None

    def image_exists(self, reference: str) -> bool:
        return self._probe(self.binary, "image", "inspect", reference)

    def project_images(self) -> int:
        return self.call(
            self.binary, "images",
            "--filter", f"reference={IMAGE_NAMESPACE}/*",
            "--format", "table {{.Repository}}\t{{.Tag}}\t{{.Size}}\t{{.CreatedSince}}",
        )

    def clean(self) -> int:
        code = self.compose("rm", "-f")
        if code != 0:
            return code
        return self.call(self.binary, "image", "prune", "-f")
