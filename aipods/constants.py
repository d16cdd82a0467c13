"""Centralized constants and enums for AI-Pods.

Naming, port and layout conventions shared by the registry, the artifact
templates and the runtime pass-throughs.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Final

# =============================================================================
# Naming
# =============================================================================

PROJECT_NAME: Final = "ai-pods"
CONTAINER_PREFIX: Final = f"{PROJECT_NAME}-"
IMAGE_NAMESPACE: Final = PROJECT_NAME
BASE_IMAGE: Final = f"{IMAGE_NAMESPACE}/python-base:latest"
BASE_SERVICE: Final = "python-base"

SERVICE_NAME_PATTERN: Final = r"^[a-z0-9][a-z0-9._-]*$"
SERVICE_NAME_MAX_LENGTH: Final = 63


# =============================================================================
# Ports
# =============================================================================

BASE_PORT: Final = 8000
PORT_STRIDE: Final = 10
MAX_PORT: Final = 65535


class PortRole(StrEnum):
    """Named ports inside a service's block, in offset order."""

    API = "api"
    JUPYTER = "jupyter"
    DEBUG = "debug"

    @property
    def label(self) -> str:
        return "API" if self is PortRole.API else self.value.capitalize()

    @property
    def env_var(self) -> str:
        """Container variable holding this port (the API port is SERVICE_PORT)."""
        return "SERVICE_PORT" if self is PortRole.API else f"{self.name}_PORT"


# =============================================================================
# Filesystem Layout
# =============================================================================

PROJECT_CONFIG_NAME: Final = "aipods.toml"
STATE_DIR: Final = ".aipods"
REGISTRY_FILE: Final = "registry.json"
REGISTRY_VERSION: Final = 1

SERVICES_DIR: Final = "src"
BUILD_DIR: Final = "docker/services"
NOTEBOOKS_DIR: Final = "shared/notebooks"
OUTPUTS_DIR: Final = "shared/outputs"
VENVS_DIR: Final = "venvs"
SCRIPTS_DIR: Final = "scripts"
BASE_BUILD_DIR: Final = "docker/base"

ENTRYPOINT_SCRIPT: Final = f"{SCRIPTS_DIR}/entrypoint.sh"
COMPOSE_FILE: Final = "docker-compose.yml"
ENV_FILE: Final = ".env"
ENV_EXAMPLE_FILE: Final = ".env.example"

INIT_DIRS: Final = (
    "src",
    "shared/data",
    "shared/models",
    "shared/notebooks",
    "shared/outputs",
    "shared/configs",
    "docker/base",
    "docker/services",
    "docker/compose",
    "scripts",
    "venvs",
    "docs/conventions",
    "docs/services",
    ".vscode",
)

GITKEEP_DIRS: Final = (
    "src",
    "docker/services",
    "shared/data",
    "shared/models",
    "shared/notebooks",
    "shared/outputs",
    "shared/configs",
    "venvs",
    "docs/services",
)


# =============================================================================
# Container
# =============================================================================

WORKSPACE_ROOT: Final = "/workspace"
DEFAULT_PYTHON: Final = "3.12"
DEFAULT_JUPYTER_TOKEN: Final = "ai-pods"
DEFAULT_JUPYTER_PORT: Final = 8888
DEFAULT_DEBUG_PORT: Final = 5678
DEFAULT_SERVICE_PORT: Final = 8000
