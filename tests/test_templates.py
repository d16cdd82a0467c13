from __future__ import annotations

import pytest

from aipods.config import ProjectConfig
from aipods.service import PortBlock, ServiceDescriptor
from aipods.templates import ServiceArtifacts, base_dockerfile, env_file

pytestmark = [pytest.mark.unit]


@pytest.fixture
def service() -> ServiceDescriptor:
    return ServiceDescriptor(name="rag-test", slot=2, ports=PortBlock.for_slot(2))


@pytest.fixture
def artifacts(service: ServiceDescriptor) -> ServiceArtifacts:
    return ServiceArtifacts.from_config(service, ProjectConfig())


class TestRequirements:
    def test_header(self, artifacts: ServiceArtifacts) -> None:
        assert artifacts.requirements().splitlines()[0] == "# rag-test dependencies"


class TestReadme:
    def test_ports_section(self, artifacts: ServiceArtifacts) -> None:
        readme = artifacts.readme()
        assert readme.startswith("# rag-test\n")
        assert "## Ports\n- API: 8020\n- Jupyter: 8021\n- Debug: 8022\n" in readme

    def test_setup_command(self, artifacts: ServiceArtifacts) -> None:
        assert "aipods work-on rag-test" in artifacts.readme()


class TestDockerfile:
    def test_base_image(self, artifacts: ServiceArtifacts) -> None:
        dockerfile = artifacts.dockerfile()
        assert "ARG BASE_IMAGE=ai-pods/python-base:latest" in dockerfile
        assert "FROM ${BASE_IMAGE}" in dockerfile

    def test_port_labels_and_env(self, artifacts: ServiceArtifacts) -> None:
        dockerfile = artifacts.dockerfile()
        assert 'port.api="8020"' in dockerfile
        assert 'port.jupyter="8021"' in dockerfile
        assert 'port.debug="8022"' in dockerfile
        assert "SERVICE_PORT=8020" in dockerfile
        assert "JUPYTER_PORT=8021" in dockerfile
        assert "DEBUG_PORT=8022" in dockerfile
        assert "# Port Range: 8020-8029" in dockerfile

    def test_one_line_per_port_role(self, artifacts: ServiceArtifacts) -> None:
        dockerfile = artifacts.dockerfile()
        assert (
            '      port.api="8020" \\\n'
            '      port.jupyter="8021" \\\n'
            '      port.debug="8022"\n'
        ) in dockerfile
        assert (
            "ENV SERVICE_NAME=rag-test \\\n"
            "    SERVICE_PORT=8020 \\\n"
            "    JUPYTER_PORT=8021 \\\n"
            "    DEBUG_PORT=8022\n"
        ) in dockerfile

    def test_exposes_named_ports(self, artifacts: ServiceArtifacts) -> None:
        assert "EXPOSE ${SERVICE_PORT} ${JUPYTER_PORT} ${DEBUG_PORT}" in artifacts.dockerfile()

    def test_entrypoint_contract(self, artifacts: ServiceArtifacts) -> None:
        dockerfile = artifacts.dockerfile()
        assert "COPY scripts/entrypoint.sh /entrypoint.sh" in dockerfile
        assert 'ENTRYPOINT ["/entrypoint.sh"]' in dockerfile
        assert dockerfile.rstrip().endswith('CMD ["jupyter"]')

    def test_requirements_copied_from_service_dir(self, artifacts: ServiceArtifacts) -> None:
        assert "COPY src/rag-test/requirements.txt /tmp/requirements.txt" in artifacts.dockerfile()

    def test_follows_configured_layout(self, service: ServiceDescriptor) -> None:
        config = ProjectConfig.model_validate({
            "layout": {"services": "services"},
            "image": {"base": "registry.local/base:1"},
        })
        dockerfile = ServiceArtifacts.from_config(service, config).dockerfile()
        assert "COPY services/rag-test/requirements.txt" in dockerfile
        assert "ARG BASE_IMAGE=registry.local/base:1" in dockerfile


class TestComposeSnippet:
    def test_ports_and_names(self, artifacts: ServiceArtifacts) -> None:
        snippet = artifacts.compose_snippet()
        assert snippet.startswith("  rag-test:\n")
        assert "container_name: ai-pods-rag-test" in snippet
        assert "image: ai-pods/rag-test:latest" in snippet
        for port in (8020, 8021, 8022):
            assert f'"{port}:{port}"' in snippet
        assert "dockerfile: docker/services/rag-test/Dockerfile" in snippet

    def test_mounts(self, artifacts: ServiceArtifacts) -> None:
        snippet = artifacts.compose_snippet()
        assert "./src/rag-test:/workspace/src" in snippet
        assert "./shared/notebooks/rag-test:/workspace/notebooks" in snippet
        assert "JUPYTER_TOKEN=${JUPYTER_TOKEN:-ai-pods}" in snippet

    def test_configured_token_is_the_fallback(self, service: ServiceDescriptor) -> None:
        config = ProjectConfig.model_validate({"jupyter": {"token": "secret"}})
        snippet = ServiceArtifacts.from_config(service, config).compose_snippet()
        assert "JUPYTER_TOKEN=${JUPYTER_TOKEN:-secret}" in snippet
        assert "ai-pods}" not in snippet


class TestSharedFiles:
    def test_base_dockerfile(self) -> None:
        dockerfile = base_dockerfile(ProjectConfig.model_validate({"image": {"python": "3.11"}}))
        assert "FROM python:3.11-slim-bookworm" in dockerfile
        assert "jupyterlab" in dockerfile and "debugpy" in dockerfile
        assert "WORKDIR /workspace" in dockerfile

    def test_env_file(self) -> None:
        content = env_file(ProjectConfig.model_validate({"jupyter": {"token": "s3cret"}}))
        assert "COMPOSE_PROJECT_NAME=ai-pods" in content
        assert "JUPYTER_TOKEN=s3cret" in content
