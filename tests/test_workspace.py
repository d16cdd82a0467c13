from __future__ import annotations

import shutil
import stat
import subprocess
from pathlib import Path
from typing import Any

import pytest

from aipods.config import ProjectConfig
from aipods.core.exceptions import RuntimeCommandError
from aipods.layout import ProjectLayout
from aipods.platform import detect_platform
from aipods.runtime import ContainerRuntime
from aipods.workspace import Workspace

pytestmark = [pytest.mark.unit]


class FakeRunner:
    def __init__(self, *, stdout: str = "", returncode: int = 0) -> None:
        self.calls: list[list[str]] = []
        self.stdout = stdout
        self.returncode = returncode

    def __call__(self, cmd: list[str], **kwargs: Any) -> subprocess.CompletedProcess[str]:
        self.calls.append(cmd)
        if cmd[1:3] == ["-m", "venv"] and self.returncode == 0:
            Path(cmd[3]).mkdir(parents=True)
        return subprocess.CompletedProcess(cmd, self.returncode, stdout=self.stdout, stderr="")


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner(stdout="numpy==2.0.0\npandas==2.2.0\n")


@pytest.fixture
def workspace(project: Path, config: ProjectConfig, layout: ProjectLayout, runner: FakeRunner) -> Workspace:
    platform = detect_platform(system="Linux", machine="x86_64", proc_version=project / "missing")
    runtime = ContainerRuntime(project, compose=["docker", "compose"], runner=runner)
    return Workspace(layout, config, platform, runtime)


class TestInit:
    def test_creates_tree(self, workspace: Workspace, project: Path) -> None:
        workspace.init()
        for rel in ("src", "shared/notebooks", "shared/outputs", "docker/services", "venvs", "scripts"):
            assert (project / rel).is_dir(), rel
        assert (project / "shared" / "data" / ".gitkeep").is_file()

    def test_writes_shared_files(self, workspace: Workspace, project: Path) -> None:
        created = workspace.init()
        assert set(created) == {
            project / ".env",
            project / "scripts" / "entrypoint.sh",
            project / "docker" / "base" / "Dockerfile",
        }
        assert "JUPYTER_TOKEN=ai-pods" in (project / ".env").read_text()
        assert "FROM python:3.12-slim-bookworm" in (project / "docker" / "base" / "Dockerfile").read_text()

    def test_entrypoint_is_executable(self, workspace: Workspace, project: Path) -> None:
        workspace.init()
        mode = (project / "scripts" / "entrypoint.sh").stat().st_mode
        assert mode & stat.S_IXUSR

    def test_idempotent(self, workspace: Workspace, project: Path) -> None:
        workspace.init()
        (project / ".env").write_text("JUPYTER_TOKEN=mine\n")
        assert workspace.init() == []
        assert (project / ".env").read_text() == "JUPYTER_TOKEN=mine\n"

    def test_copies_env_example(self, workspace: Workspace, project: Path) -> None:
        (project / ".env.example").write_text("JUPYTER_TOKEN=example\n")
        created = workspace.init()
        assert project / ".env" in created
        assert (project / ".env").read_text() == "JUPYTER_TOKEN=example\n"


class TestValidate:
    def test_fresh_project(self, workspace: Workspace, monkeypatch) -> None:
        monkeypatch.setattr(shutil, "which", lambda cmd: f"/usr/bin/{cmd}")
        checks = {c.label: c for c in workspace.validate()}
        assert checks["docker"].ok
        assert checks["compose"].ok
        assert not checks["src/"].ok
        assert not checks["aipods.toml"].ok
        assert not checks["aipods.toml"].required

    def test_initialized_project(self, workspace: Workspace, monkeypatch) -> None:
        monkeypatch.setattr(shutil, "which", lambda cmd: f"/usr/bin/{cmd}")
        workspace.init()
        checks = workspace.validate()
        assert all(c.ok for c in checks if c.required)
        assert {c.label: c.ok for c in checks}["scripts/entrypoint.sh"]

    def test_docker_missing(self, workspace: Workspace, monkeypatch) -> None:
        monkeypatch.setattr(shutil, "which", lambda cmd: None)
        checks = {c.label: c for c in workspace.validate()}
        assert not checks["docker"].ok
        assert not checks["base image"].ok


class TestHostEnvironment:
    def test_create_venv(self, registry, workspace: Workspace, runner: FakeRunner, project: Path) -> None:
        service = registry.register("a")
        venv = workspace.create_venv(service)
        assert venv == project / "venvs" / "a"
        assert runner.calls == [["python3", "-m", "venv", str(venv)]]

    def test_existing_venv_is_reused(self, registry, workspace: Workspace, runner: FakeRunner, project: Path) -> None:
        service = registry.register("a")
        (project / "venvs" / "a").mkdir(parents=True)
        workspace.create_venv(service)
        assert runner.calls == []

    def test_work_on_installs_requirements(self, registry, workspace: Workspace, runner: FakeRunner, project: Path) -> None:
        service = registry.register("a")
        workspace.work_on(service)
        pip = str(project / "venvs" / "a" / "bin" / "pip")
        requirements = str(project / "src" / "a" / "requirements.txt")
        assert runner.calls[-1] == [pip, "install", "-r", requirements]

    def test_open_prefers_editor(self, registry, workspace: Workspace, runner: FakeRunner, monkeypatch) -> None:
        service = registry.register("a")
        monkeypatch.setattr(shutil, "which", lambda cmd: f"/usr/bin/{cmd}")
        assert workspace.open_service(service) == "cursor"
        assert runner.calls == [["cursor", "src/a"]]

    def test_open_falls_back_to_file_browser(
        self, registry, workspace: Workspace, runner: FakeRunner, monkeypatch,
    ) -> None:
        service = registry.register("a")
        monkeypatch.setattr(shutil, "which", lambda cmd: "/usr/bin/xdg-open" if cmd == "xdg-open" else None)
        assert workspace.open_service(service) == "xdg-open"
        assert runner.calls == [["xdg-open", "src/a"]]

    def test_open_with_nothing_installed(self, registry, workspace: Workspace, runner: FakeRunner, monkeypatch) -> None:
        service = registry.register("a")
        monkeypatch.setattr(shutil, "which", lambda cmd: None)
        assert workspace.open_service(service) is None
        assert runner.calls == []

    def test_venv_failure(self, registry, project: Path, config, layout) -> None:
        service = registry.register("a")
        platform = detect_platform(system="Linux", machine="x86_64", proc_version=project / "missing")
        runtime = ContainerRuntime(project, runner=FakeRunner(returncode=1))
        with pytest.raises(RuntimeCommandError):
            Workspace(layout, config, platform, runtime).create_venv(service)


class TestContainerSync:
    def test_pip_install_records_freeze(self, registry, workspace: Workspace, runner: FakeRunner, project: Path) -> None:
        service = registry.register("a")
        assert workspace.pip_install(service, "numpy") == 0
        assert runner.calls[0] == ["docker", "exec", "ai-pods-a", "pip", "install", "numpy"]
        assert (project / "src" / "a" / "requirements.txt").read_text() == "numpy==2.0.0\npandas==2.2.0\n"

    def test_failed_install_leaves_requirements(self, registry, project: Path, config, layout) -> None:
        service = registry.register("a")
        before = (project / "src" / "a" / "requirements.txt").read_text()
        platform = detect_platform(system="Linux", machine="x86_64", proc_version=project / "missing")
        runtime = ContainerRuntime(project, runner=FakeRunner(returncode=1))
        assert Workspace(layout, config, platform, runtime).pip_install(service, "nope") == 1
        assert (project / "src" / "a" / "requirements.txt").read_text() == before

    def test_sync_env_installs_container_freeze(
        self, registry, workspace: Workspace, runner: FakeRunner, project: Path,
    ) -> None:
        service = registry.register("a")
        assert workspace.sync_env(service) == 0
        frozen = project / "venvs" / "a" / "requirements.txt"
        assert frozen.read_text() == "numpy==2.0.0\npandas==2.2.0\n"
        assert runner.calls[-1] == [str(project / "venvs" / "a" / "bin" / "pip"), "install", "-r", str(frozen)]

    def test_build_base(self, workspace: Workspace, runner: FakeRunner) -> None:
        workspace.build_base()
        assert runner.calls == [["docker", "compose", "build", "python-base"]]
