"""TOML-based project configuration.

Loads ~/.aipods/defaults.toml (global) and aipods.toml (project), merges
them, and validates the result into a ProjectConfig.

Example aipods.toml:

    [ports]
    base = 9000

    [allocation]
    strategy = "scan"

    [jupyter]
    token = "secret"
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError, field_validator

from aipods.constants import (
    BASE_IMAGE,
    BASE_PORT,
    BUILD_DIR,
    DEFAULT_JUPYTER_TOKEN,
    DEFAULT_PYTHON,
    MAX_PORT,
    NOTEBOOKS_DIR,
    OUTPUTS_DIR,
    PORT_STRIDE,
    PROJECT_CONFIG_NAME,
    PROJECT_NAME,
    SERVICES_DIR,
    VENVS_DIR,
)
from aipods.core.exceptions import ConfigurationError

type RawConfig = dict[str, Any]
type AllocationStrategy = Literal["ledger", "scan"]

GLOBAL_CONFIG_ENV = "AIPODS_GLOBAL_CONFIG"
GLOBAL_CONFIG_PATH = Path.home() / ".aipods" / "defaults.toml"


class ProjectSection(BaseModel):
    name: str = PROJECT_NAME

    model_config = {"extra": "forbid"}


class LayoutSection(BaseModel):
    """Directories, relative to the project root."""

    services: str = SERVICES_DIR
    build: str = BUILD_DIR
    notebooks: str = NOTEBOOKS_DIR
    outputs: str = OUTPUTS_DIR
    venvs: str = VENVS_DIR

    model_config = {"extra": "forbid"}


class PortsSection(BaseModel):
    base: int = Field(default=BASE_PORT, ge=1, le=MAX_PORT)
    stride: int = Field(default=PORT_STRIDE, ge=3)

    model_config = {"extra": "forbid"}


class AllocationSection(BaseModel):
    strategy: AllocationStrategy = "ledger"

    model_config = {"extra": "forbid"}


class ImageSection(BaseModel):
    base: str = BASE_IMAGE
    python: str = DEFAULT_PYTHON

    model_config = {"extra": "forbid"}


class JupyterSection(BaseModel):
    token: str = DEFAULT_JUPYTER_TOKEN

    model_config = {"extra": "forbid"}


class ProjectConfig(BaseModel):
    """Validated, merged project configuration."""

    project: ProjectSection = Field(default_factory=ProjectSection)
    layout: LayoutSection = Field(default_factory=LayoutSection)
    ports: PortsSection = Field(default_factory=PortsSection)
    allocation: AllocationSection = Field(default_factory=AllocationSection)
    image: ImageSection = Field(default_factory=ImageSection)
    jupyter: JupyterSection = Field(default_factory=JupyterSection)

    model_config = {"extra": "forbid"}

    @field_validator("layout")
    @classmethod
    def relative_layout(cls, layout: LayoutSection) -> LayoutSection:
        for key, value in layout.model_dump().items():
            if Path(value).is_absolute():
                raise ValueError(f"layout.{key} must be relative to the project root, got {value!r}")
        return layout


def _deep_merge(base: RawConfig, override: RawConfig) -> RawConfig:
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _read_toml(path: Path) -> RawConfig:
    if not path.is_file():
        return {}
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid TOML in {path}: {e}") from e


def global_config_path() -> Path:
    override = os.environ.get(GLOBAL_CONFIG_ENV)
    return Path(override) if override else GLOBAL_CONFIG_PATH


def load_raw_config(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
) -> RawConfig:
    global_cfg = _read_toml(global_path or global_config_path())
    project_path = (project_dir or Path.cwd()) / PROJECT_CONFIG_NAME
    project_cfg = _read_toml(project_path)
    return _deep_merge(global_cfg, project_cfg)


def load_config(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
) -> ProjectConfig:
    raw = load_raw_config(project_dir=project_dir, global_path=global_path)
    try:
        return ProjectConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration:\n{e}") from e
