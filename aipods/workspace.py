"""Project-level operations: init, validation and host virtualenvs."""

from __future__ import annotations

import shutil
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from aipods.config import ProjectConfig
from aipods.constants import BASE_SERVICE, GITKEEP_DIRS, INIT_DIRS
from aipods.core.exceptions import RuntimeCommandError
from aipods.entrypoint import render_entrypoint_script
from aipods.internal.rethrow import io_failure, rethrow
from aipods.layout import ProjectLayout
from aipods.platform import PlatformProfile
from aipods.runtime import ContainerRuntime
from aipods.service import ServiceDescriptor
from aipods.templates import base_dockerfile, env_file

log = logger.bind(component="workspace")

EDITORS = ("cursor", "code")


@dataclass(frozen=True, slots=True)
class Check:
    label: str
    ok: bool
    detail: str = ""
    required: bool = True


class Workspace:
    def __init__(
        self,
        layout: ProjectLayout,
        config: ProjectConfig,
        platform: PlatformProfile,
        runtime: ContainerRuntime,
    ) -> None:
        self.layout = layout
        self.config = config
        self.platform = platform
        self.runtime = runtime

    # -------------------------------------------------------------------------
    # init
    # -------------------------------------------------------------------------

    @rethrow(OSError, io_failure)
    def init(self) -> list[Path]:
        """Create the project tree and shared files; existing files are kept.

        Returns:
            Files created by this call.
        """
        root = self.layout.root
        for rel in INIT_DIRS:
            (root / rel).mkdir(parents=True, exist_ok=True)
        for rel in GITKEEP_DIRS:
            (root / rel / ".gitkeep").touch(exist_ok=True)

        created: list[Path] = []

        def write_once(path: Path, content: str, *, mode: int | None = None) -> None:
            if path.exists():
                return
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content)
            if mode is not None:
                path.chmod(mode)
            created.append(path)

        if not self.layout.env_file.exists() and self.layout.env_example.is_file():
            shutil.copyfile(self.layout.env_example, self.layout.env_file)
            created.append(self.layout.env_file)
        write_once(self.layout.env_file, env_file(self.config))
        write_once(self.layout.entrypoint, render_entrypoint_script(), mode=0o755)
        write_once(self.layout.base_dockerfile, base_dockerfile(self.config))

        for path in created:
            log.info("Created {path}", path=self.layout.relative(path))
        return created

    # -------------------------------------------------------------------------
    # validate
    # -------------------------------------------------------------------------

    def validate(self) -> list[Check]:
        checks = [
            Check("docker", self.runtime.available(), self.runtime.binary),
            self._compose_check(),
            Check(
                "python",
                shutil.which(self.platform.python_cmd) is not None,
                self.platform.python_cmd,
            ),
        ]

        for path in (self.layout.services, self.layout.root / "shared",
                     self.layout.root / "docker", self.layout.root / "scripts", self.layout.venvs):
            checks.append(Check(f"{self.layout.relative(path)}/", path.is_dir(), "directory"))

        for path in (self.layout.config_file, self.layout.compose_file, self.layout.env_file,
                     self.layout.entrypoint):
            checks.append(Check(self.layout.relative(path), path.is_file(), "file", required=False))

        base = self.config.image.base
        built = self.runtime.available() and self.runtime.image_exists(base)
        checks.append(Check(
            "base image", built,
            base if built else f"{base} (run: aipods build --base)",
            required=False,
        ))
        return checks

    def _compose_check(self) -> Check:
        try:
            return Check("compose", True, " ".join(self.runtime.compose_cmd))
        except RuntimeCommandError as e:
            return Check("compose", False, str(e))

    # -------------------------------------------------------------------------
    # Host virtualenvs
    # -------------------------------------------------------------------------

    def venv_path(self, service: ServiceDescriptor) -> Path:
        return self.layout.venv_dir(service.name)

    def create_venv(self, service: ServiceDescriptor) -> Path:
        venv = self.venv_path(service)
        if venv.is_dir():
            return venv
        log.info("Creating virtual environment for {service}", service=service.name)
        code = self.runtime.call(self.platform.python_cmd, "-m", "venv", str(venv))
        if code != 0:
            raise RuntimeCommandError([self.platform.python_cmd, "-m", "venv", str(venv)], code)
        return venv

    def install_requirements(self, service: ServiceDescriptor, requirements: Path) -> int:
        pip = self.platform.venv_pip(self.venv_path(service))
        log.info("Installing {file} into {service} venv", file=requirements.name, service=service.name)
        return self.runtime.call(str(pip), "install", "-r", str(requirements))

    def work_on(self, service: ServiceDescriptor) -> Path:
        """Create the service's venv if needed and install its requirements."""
        venv = self.create_venv(service)
        requirements = self.layout.service_dir(service.name) / "requirements.txt"
        if requirements.is_file():
            code = self.install_requirements(service, requirements)
            if code != 0:
                raise RuntimeCommandError(
                    [str(self.platform.venv_pip(venv)), "install", "-r", str(requirements)], code,
                )
        return venv

    def find_opener(self) -> str | None:
        """Cursor or VS Code when installed, else the platform's file browser."""
        return next((c for c in (*EDITORS, self.platform.open_cmd) if shutil.which(c)), None)

    def open_service(self, service: ServiceDescriptor) -> str | None:
        opener = self.find_opener()
        if opener is not None:
            self.runtime.call(opener, self.layout.relative(self.layout.service_dir(service.name)))
        return opener

    # -------------------------------------------------------------------------
    # Container <-> host package sync
    # -------------------------------------------------------------------------

    @rethrow(OSError, io_failure)
    def pip_install(self, service: ServiceDescriptor, *packages: str) -> int:
        """Install into the running container, then record its freeze."""
        code = self.runtime.pip_install(service.name, *packages)
        if code != 0:
            return code
        requirements = self.layout.service_dir(service.name) / "requirements.txt"
        requirements.write_text(self.runtime.freeze(service.name) + "\n")
        log.info("Updated {path}", path=self.layout.relative(requirements))
        return 0

    @rethrow(OSError, io_failure)
    def sync_env(self, service: ServiceDescriptor) -> int:
        """Mirror the container's installed packages into the host venv."""
        venv = self.create_venv(service)
        frozen = venv / "requirements.txt"
        frozen.write_text(self.runtime.freeze(service.name) + "\n")
        return self.install_requirements(service, frozen)

    def build_base(self) -> int:
        return self.runtime.build(BASE_SERVICE)
