"""Artifact builders for service skeletons and shared project files.

Each builder takes typed inputs and returns file content; nothing here
touches the filesystem (see :mod:`aipods.skeleton`).
"""

from __future__ import annotations

from dataclasses import dataclass

from aipods.config import ProjectConfig
from aipods.constants import (
    BASE_IMAGE,
    BUILD_DIR,
    DEFAULT_JUPYTER_TOKEN,
    ENTRYPOINT_SCRIPT,
    NOTEBOOKS_DIR,
    OUTPUTS_DIR,
    PROJECT_NAME,
    SERVICES_DIR,
    WORKSPACE_ROOT,
    PortRole,
)
from aipods.entrypoint import DEFAULT_MODE
from aipods.service import ServiceDescriptor


@dataclass(frozen=True, slots=True)
class ServiceArtifacts:
    """Skeleton content for one service.

    Example:
        >>> artifacts = ServiceArtifacts(descriptor)
        >>> print(artifacts.dockerfile())
    """

    service: ServiceDescriptor
    base_image: str = BASE_IMAGE
    services_dir: str = SERVICES_DIR
    notebooks_dir: str = NOTEBOOKS_DIR
    outputs_dir: str = OUTPUTS_DIR
    build_dir: str = BUILD_DIR
    jupyter_token: str = DEFAULT_JUPYTER_TOKEN

    @classmethod
    def from_config(cls, service: ServiceDescriptor, config: ProjectConfig) -> ServiceArtifacts:
        return cls(
            service=service,
            base_image=config.image.base,
            services_dir=config.layout.services,
            notebooks_dir=config.layout.notebooks,
            outputs_dir=config.layout.outputs,
            build_dir=config.layout.build,
            jupyter_token=config.jupyter.token,
        )

    @property
    def _ports(self) -> str:
        return str(self.service.ports)

    def requirements(self) -> str:
        return (
            f"# {self.service.name} dependencies\n"
            "# Add your service-specific packages here\n"
        )

    def readme(self) -> str:
        name = self.service.name
        ports = self.service.ports
        return "\n".join([
            f"# {name}",
            "",
            "## Purpose",
            "[Describe what this service is testing/implementing]",
            "",
            "## Setup",
            "```bash",
            f"aipods work-on {name}",
            "```",
            "",
            "## Ports",
            *(f"- {role.label}: {ports.port(role)}" for role in PortRole),
            "",
            "## Dependencies",
            "See requirements.txt",
            "",
            "## Usage",
            "[Add usage instructions here]",
            "",
        ])

    def dockerfile(self) -> str:
        name = self.service.name
        ports = self.service.ports
        labels = [f'port.{role}="{ports.port(role)}"' for role in PortRole]
        env = [f"{role.env_var}={ports.port(role)}" for role in PortRole]
        lines = [
            "# ===========================================",
            f"# Service: {name}",
            "# Purpose: [Add description]",
            f"# Base: {self.base_image}",
            f"# Port Range: {self._ports}",
            "# ===========================================",
            "",
            f"ARG BASE_IMAGE={self.base_image}",
            "FROM ${BASE_IMAGE}",
            "",
            "# --- SERVICE INFORMATION ---",
            f'LABEL service="{name}" \\',
            f'      description="{name} service" \\',
            *(f"      {label} \\" for label in labels[:-1]),
            f"      {labels[-1]}",
            "",
            "# --- SERVICE DEPENDENCIES ---",
            f"COPY {self.services_dir}/{name}/requirements.txt /tmp/requirements.txt",
            "RUN if [ -f /tmp/requirements.txt ] && [ -s /tmp/requirements.txt ]; then \\",
            "        pip install --no-cache-dir -r /tmp/requirements.txt; \\",
            "    fi",
            "",
            "# --- SERVICE CONFIGURATION ---",
            f"ENV SERVICE_NAME={name} \\",
            *(f"    {var} \\" for var in env[:-1]),
            f"    {env[-1]}",
            "",
            "# --- PORTS ---",
            "EXPOSE " + " ".join(f"${{{role.env_var}}}" for role in PortRole),
            "",
            "# --- ENTRYPOINT ---",
            f"COPY {ENTRYPOINT_SCRIPT} /entrypoint.sh",
            "RUN chmod +x /entrypoint.sh",
            "",
            'ENTRYPOINT ["/entrypoint.sh"]',
            f'CMD ["{DEFAULT_MODE.value}"]',
            "",
        ]
        return "\n".join(lines)

    def compose_snippet(self) -> str:
        """docker-compose service entry to paste under ``services:``."""
        name = self.service.name
        ports = self.service.ports
        return "\n".join([
            f"  {name}:",
            "    build:",
            "      context: .",
            f"      dockerfile: {self.build_dir}/{name}/Dockerfile",
            f"    image: {self.service.image}",
            f"    container_name: {self.service.container_name}",
            "    ports:",
            *(f'      - "{port}:{port}"' for port in ports.triple),
            "    volumes:",
            f"      - ./{self.services_dir}/{name}:{WORKSPACE_ROOT}/src",
            f"      - ./{self.notebooks_dir}/{name}:{WORKSPACE_ROOT}/notebooks",
            f"      - ./{self.outputs_dir}/{name}:{WORKSPACE_ROOT}/outputs",
            "    environment:",
            f"      - JUPYTER_TOKEN=${{JUPYTER_TOKEN:-{self.jupyter_token}}}",
            "",
        ])


def base_dockerfile(config: ProjectConfig) -> str:
    """Shared base image every service builds ``FROM``."""
    return "\n".join([
        "# ===========================================",
        f"# {PROJECT_NAME} shared base image",
        f"# Tag: {config.image.base}",
        "# ===========================================",
        "",
        f"FROM python:{config.image.python}-slim-bookworm",
        "",
        "RUN apt-get update && \\",
        "    apt-get install -y --no-install-recommends build-essential git curl && \\",
        "    rm -rf /var/lib/apt/lists/*",
        "",
        "RUN pip install --no-cache-dir jupyterlab debugpy ipykernel",
        "",
        f"ENV WORKSPACE_ROOT={WORKSPACE_ROOT} \\",
        f"    JUPYTER_TOKEN={config.jupyter.token} \\",
        "    PYTHONUNBUFFERED=1",
        "",
        f"WORKDIR {WORKSPACE_ROOT}",
        "",
    ])


def env_file(config: ProjectConfig) -> str:
    return "\n".join([
        "# AI-Pods Environment",
        f"PROJECT_NAME={config.project.name}",
        f"COMPOSE_PROJECT_NAME={config.project.name}",
        "DOCKER_BUILDKIT=1",
        f"JUPYTER_TOKEN={config.jupyter.token}",
        "",
    ])
