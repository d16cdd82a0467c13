from __future__ import annotations

from pathlib import Path

import pytest

from aipods.config import ProjectConfig, load_config
from aipods.layout import ProjectLayout
from aipods.registry import ServiceRegistry


@pytest.fixture(autouse=True)
def isolated_global_config(tmp_path_factory, monkeypatch):
    missing = tmp_path_factory.mktemp("home") / "defaults.toml"
    monkeypatch.setenv("AIPODS_GLOBAL_CONFIG", str(missing))


@pytest.fixture
def project(tmp_path: Path) -> Path:
    root = tmp_path / "project"
    root.mkdir()
    return root


def make_registry(root: Path, strategy: str = "ledger", **ports: int) -> ServiceRegistry:
    config = ProjectConfig.model_validate({"allocation": {"strategy": strategy}, "ports": ports})
    return ServiceRegistry(ProjectLayout.from_config(root, config), config)


@pytest.fixture
def config(project: Path) -> ProjectConfig:
    return load_config(project_dir=project)


@pytest.fixture
def layout(project: Path, config: ProjectConfig) -> ProjectLayout:
    return ProjectLayout.from_config(project, config)


@pytest.fixture
def registry(project: Path) -> ServiceRegistry:
    return make_registry(project, "ledger")


@pytest.fixture
def scan_registry(project: Path) -> ServiceRegistry:
    return make_registry(project, "scan")
