from __future__ import annotations

from pathlib import Path

import pytest

from aipods.platform import PlatformName, detect_platform

pytestmark = [pytest.mark.unit]


@pytest.fixture
def proc_version(tmp_path: Path) -> Path:
    path = tmp_path / "version"
    path.write_text("Linux version 6.1.0 (gcc) #1 SMP\n")
    return path


class TestDetectPlatform:
    def test_macos(self, proc_version: Path) -> None:
        p = detect_platform(system="Darwin", machine="arm64", proc_version=proc_version)
        assert p.name is PlatformName.MACOS
        assert p.arch == "arm64"
        assert p.open_cmd == "open"
        assert p.docker_desktop

    def test_native_linux(self, proc_version: Path) -> None:
        p = detect_platform(system="Linux", machine="x86_64", proc_version=proc_version)
        assert p.name is PlatformName.LINUX
        assert p.python_cmd == "python3"
        assert p.open_cmd == "xdg-open"
        assert not p.docker_desktop

    def test_wsl(self, tmp_path: Path) -> None:
        version = tmp_path / "version"
        version.write_text("Linux version 5.15.90.1-microsoft-standard-WSL2\n")
        p = detect_platform(system="Linux", machine="x86_64", proc_version=version)
        assert p.name is PlatformName.WSL
        assert p.open_cmd == "explorer.exe"
        assert p.docker_desktop

    def test_linux_without_proc_version(self, tmp_path: Path) -> None:
        p = detect_platform(system="Linux", machine="x86_64", proc_version=tmp_path / "missing")
        assert p.name is PlatformName.LINUX

    @pytest.mark.parametrize("system", ["Windows", "MINGW64_NT-10.0", "CYGWIN_NT-10.0"])
    def test_windows_family(self, system: str, proc_version: Path) -> None:
        p = detect_platform(system=system, machine="AMD64", proc_version=proc_version)
        assert p.name is PlatformName.WINDOWS
        assert p.python_cmd == "python"
        assert p.venv_bin == "Scripts"
        assert p.open_cmd == "explorer"


class TestVenvPaths:
    def test_posix(self, proc_version: Path) -> None:
        p = detect_platform(system="Linux", machine="x86_64", proc_version=proc_version)
        venv = Path("venvs/a")
        assert p.venv_pip(venv) == Path("venvs/a/bin/pip")
        assert p.venv_python(venv) == Path("venvs/a/bin/python")
        assert p.activate_hint(venv) == "source venvs/a/bin/activate"

    def test_windows(self, proc_version: Path) -> None:
        p = detect_platform(system="Windows", machine="AMD64", proc_version=proc_version)
        venv = Path("venvs/a")
        assert p.venv_pip(venv) == Path("venvs/a/Scripts/pip.exe")
