"""AI-Pods - conventions and tooling for a Docker-based multi-service dev environment.

Example:

    from pathlib import Path

    from aipods import ProjectLayout, ServiceRegistry, load_config

    root = Path.cwd()
    config = load_config(project_dir=root)
    registry = ServiceRegistry(ProjectLayout.from_config(root, config), config)

    service = registry.register("rag-test")
    print(service.ports.api, service.ports.jupyter, service.ports.debug)
"""

from aipods.config import ProjectConfig, load_config
from aipods.core.exceptions import (
    AiPodsError,
    AlreadyExistsError,
    ConfigurationError,
    InvalidNameError,
    IOFailureError,
    PortRangeExhaustedError,
    RuntimeCommandError,
    ServiceNotFoundError,
)
from aipods.entrypoint import Mode, render_entrypoint_script, resolve_launch
from aipods.layout import ProjectLayout
from aipods.platform import PlatformProfile, detect_platform
from aipods.registry import ServiceRegistry
from aipods.runtime import ContainerRuntime
from aipods.service import PortBlock, ServiceDescriptor, validate_name
from aipods.templates import ServiceArtifacts
from aipods.workspace import Workspace

__all__ = [
    # Registry
    "ServiceRegistry",
    "ServiceDescriptor",
    "PortBlock",
    "validate_name",
    # Project
    "ProjectConfig",
    "ProjectLayout",
    "load_config",
    "Workspace",
    "ServiceArtifacts",
    # Runtime
    "ContainerRuntime",
    "Mode",
    "resolve_launch",
    "render_entrypoint_script",
    "PlatformProfile",
    "detect_platform",
    # Errors
    "AiPodsError",
    "AlreadyExistsError",
    "ConfigurationError",
    "InvalidNameError",
    "IOFailureError",
    "PortRangeExhaustedError",
    "RuntimeCommandError",
    "ServiceNotFoundError",
]
