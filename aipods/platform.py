"""Host platform profile.

Resolved once when the CLI starts and passed to everything that needs a
python command, a venv layout or an opener, so no call site branches on
the OS itself.
"""

from __future__ import annotations

import platform as _platform
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path


class PlatformName(StrEnum):
    MACOS = "macos"
    WSL = "wsl"
    LINUX = "linux"
    WINDOWS = "windows"


@dataclass(frozen=True, slots=True)
class PlatformProfile:
    name: PlatformName
    arch: str
    python_cmd: str
    pip_cmd: str
    venv_bin: str
    open_cmd: str
    docker_desktop: bool

    def venv_python(self, venv: Path) -> Path:
        exe = "python.exe" if self.name is PlatformName.WINDOWS else "python"
        return venv / self.venv_bin / exe

    def venv_pip(self, venv: Path) -> Path:
        exe = "pip.exe" if self.name is PlatformName.WINDOWS else "pip"
        return venv / self.venv_bin / exe

    def activate_hint(self, venv: Path) -> str:
        return f"source {venv / self.venv_bin / 'activate'}"


def _is_wsl(proc_version: Path) -> bool:
    try:
        return "microsoft" in proc_version.read_text().lower()
    except OSError:
        return False


def detect_platform(
    *,
    system: str | None = None,
    machine: str | None = None,
    proc_version: Path = Path("/proc/version"),
) -> PlatformProfile:
    """Build the profile for the current host.

    ``system`` and ``machine`` default to :func:`platform.system` and
    :func:`platform.machine`; both can be injected for tests.
    """
    system = system if system is not None else _platform.system()
    machine = machine if machine is not None else (_platform.machine() or "unknown")

    match system:
        case "Darwin":
            return PlatformProfile(
                name=PlatformName.MACOS,
                arch=machine,
                python_cmd="python3",
                pip_cmd="pip3",
                venv_bin="bin",
                open_cmd="open",
                docker_desktop=True,
            )
        case "Linux":
            wsl = _is_wsl(proc_version)
            return PlatformProfile(
                name=PlatformName.WSL if wsl else PlatformName.LINUX,
                arch=machine,
                python_cmd="python3",
                pip_cmd="pip3",
                venv_bin="bin",
                open_cmd="explorer.exe" if wsl else "xdg-open",
                docker_desktop=wsl,
            )
        case _:
            return PlatformProfile(
                name=PlatformName.WINDOWS,
                arch="amd64",
                python_cmd="python",
                pip_cmd="pip",
                venv_bin="Scripts",
                open_cmd="explorer",
                docker_desktop=True,
            )
