"""Resolved filesystem layout of an AI-Pods project."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from aipods.config import ProjectConfig
from aipods.constants import (
    BASE_BUILD_DIR,
    COMPOSE_FILE,
    ENTRYPOINT_SCRIPT,
    ENV_EXAMPLE_FILE,
    ENV_FILE,
    PROJECT_CONFIG_NAME,
    REGISTRY_FILE,
    STATE_DIR,
)


@dataclass(frozen=True, slots=True)
class ProjectLayout:
    root: Path
    services: Path
    build: Path
    notebooks: Path
    outputs: Path
    venvs: Path

    @classmethod
    def from_config(cls, root: Path, config: ProjectConfig) -> ProjectLayout:
        layout = config.layout
        return cls(
            root=root,
            services=root / layout.services,
            build=root / layout.build,
            notebooks=root / layout.notebooks,
            outputs=root / layout.outputs,
            venvs=root / layout.venvs,
        )

    @property
    def registry_file(self) -> Path:
        return self.root / STATE_DIR / REGISTRY_FILE

    @property
    def entrypoint(self) -> Path:
        return self.root / ENTRYPOINT_SCRIPT

    @property
    def base_dockerfile(self) -> Path:
        return self.root / BASE_BUILD_DIR / "Dockerfile"

    @property
    def compose_file(self) -> Path:
        return self.root / COMPOSE_FILE

    @property
    def env_file(self) -> Path:
        return self.root / ENV_FILE

    @property
    def env_example(self) -> Path:
        return self.root / ENV_EXAMPLE_FILE

    @property
    def config_file(self) -> Path:
        return self.root / PROJECT_CONFIG_NAME

    def service_dir(self, name: str) -> Path:
        return self.services / name

    def build_dir(self, name: str) -> Path:
        return self.build / name

    def notebooks_dir(self, name: str) -> Path:
        return self.notebooks / name

    def outputs_dir(self, name: str) -> Path:
        return self.outputs / name

    def venv_dir(self, name: str) -> Path:
        return self.venvs / name

    def service_paths(self, name: str) -> tuple[Path, ...]:
        """Every directory owned by a service, in creation order."""
        return (
            self.service_dir(name),
            self.build_dir(name),
            self.notebooks_dir(name),
            self.outputs_dir(name),
        )

    def relative(self, path: Path) -> str:
        try:
            return path.relative_to(self.root).as_posix()
        except ValueError:
            return path.as_posix()
