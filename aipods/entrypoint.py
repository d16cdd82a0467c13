"""Container entrypoint contract.

Every service image runs the shared ``scripts/entrypoint.sh`` with a mode
selector (``MODE`` env var or the first argument). Recognized modes map to
a fixed launch command; anything else is executed literally.

The shell script and :func:`resolve_launch` are both generated from
``LAUNCHES`` so the two never drift apart.

Example:
    >>> resolve_launch("jupyter", env={"JUPYTER_PORT": "8011"})[:3]
    ['jupyter', 'lab', '--ip=0.0.0.0']
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Final

from aipods.constants import (
    DEFAULT_DEBUG_PORT,
    DEFAULT_JUPYTER_PORT,
    DEFAULT_JUPYTER_TOKEN,
    DEFAULT_SERVICE_PORT,
    WORKSPACE_ROOT,
)


class Mode(StrEnum):
    JUPYTER = "jupyter"
    API = "api"
    DEBUG = "debug"
    SHELL = "shell"


DEFAULT_MODE: Final = Mode.JUPYTER
SHELL: Final = "/bin/bash"
SOURCE_DIR: Final = f"{WORKSPACE_ROOT}/src"
MAIN_SCRIPT: Final = "main.py"

ENV_DEFAULTS: Final[dict[str, str]] = {
    "SERVICE_PORT": str(DEFAULT_SERVICE_PORT),
    "JUPYTER_PORT": str(DEFAULT_JUPYTER_PORT),
    "DEBUG_PORT": str(DEFAULT_DEBUG_PORT),
    "JUPYTER_TOKEN": DEFAULT_JUPYTER_TOKEN,
}


@dataclass(frozen=True, slots=True)
class Launch:
    """A mode's launch command.

    ``argv`` items may reference ``{VAR}`` placeholders from ENV_DEFAULTS.
    ``needs_main`` launches fall back to a shell when main.py is missing.
    """

    banner: str
    argv: tuple[str, ...]
    cwd: str | None = None
    needs_main: bool = False


LAUNCHES: Final[dict[Mode, Launch]] = {
    Mode.JUPYTER: Launch(
        banner="Starting Jupyter Lab on port {JUPYTER_PORT}",
        argv=(
            "jupyter", "lab",
            "--ip=0.0.0.0",
            "--port={JUPYTER_PORT}",
            "--no-browser",
            "--allow-root",
            "--NotebookApp.token={JUPYTER_TOKEN}",
            f"--NotebookApp.notebook_dir={WORKSPACE_ROOT}",
        ),
    ),
    Mode.API: Launch(
        banner="Starting API server on port {SERVICE_PORT}",
        argv=("python", MAIN_SCRIPT),
        cwd=SOURCE_DIR,
        needs_main=True,
    ),
    Mode.DEBUG: Launch(
        banner="Starting debug server on port {DEBUG_PORT}",
        argv=(
            "python", "-m", "debugpy",
            "--listen", "0.0.0.0:{DEBUG_PORT}",
            "--wait-for-client", MAIN_SCRIPT,
        ),
        cwd=SOURCE_DIR,
    ),
    Mode.SHELL: Launch(
        banner="Starting interactive shell",
        argv=(SHELL,),
    ),
}


def parse_mode(value: str | None) -> Mode | None:
    """Return the recognized mode for ``value``, or None for a custom command."""
    if not value:
        return DEFAULT_MODE
    try:
        return Mode(value)
    except ValueError:
        return None


def _expand(template: str, env: Mapping[str, str]) -> str:
    values = {**ENV_DEFAULTS, **{k: v for k, v in env.items() if v}}
    return template.format(**values)


def resolve_launch(
    mode: str | None,
    *,
    env: Mapping[str, str] | None = None,
    args: Sequence[str] = (),
    main_exists: bool = True,
) -> list[str]:
    """Resolve the argv the entrypoint would exec for ``mode``.

    Args:
        mode: Mode selector; empty means ``jupyter``.
        env: Container environment used to fill in ports and token.
        args: Arguments following the selector; the command for custom modes.
        main_exists: Whether ``/workspace/src/main.py`` is present.
    """
    env = env or {}
    parsed = parse_mode(mode)
    if parsed is None:
        return [str(mode), *args]

    launch = LAUNCHES[parsed]
    if launch.needs_main and not main_exists:
        return [SHELL]
    return [_expand(part, env) for part in launch.argv]


def _shell_arg(template: str) -> str:
    """Turn ``{VAR}`` placeholders into ``${VAR:-default}`` shell expansions."""
    result = template
    for key, default in ENV_DEFAULTS.items():
        result = result.replace(f"{{{key}}}", f"${{{key}:-{default}}}")
    return result


def _case_branch(mode: Mode, launch: Launch) -> list[str]:
    lines = [f"    {mode.value})", f'        echo "{_shell_arg(launch.banner)}"']
    command = " \\\n            ".join(_shell_arg(part) for part in launch.argv)

    if launch.needs_main:
        lines += [
            f'        if [ -f "{launch.cwd}/{MAIN_SCRIPT}" ]; then',
            f"            cd {launch.cwd}",
            f"            exec {command}",
            "        else",
            f'            echo "No {MAIN_SCRIPT} found, starting interactive shell"',
            f"            exec {SHELL}",
            "        fi",
        ]
    else:
        if launch.cwd:
            lines.append(f"        cd {launch.cwd}")
        lines.append(f"        exec {command}")
    lines.append("        ;;")
    return lines


def render_entrypoint_script() -> str:
    """Render the shared entrypoint.sh from the launch table."""
    lines = [
        "#!/bin/bash",
        "# Universal entrypoint for all services",
        "",
        "set -e",
        "",
        'echo "Starting ${SERVICE_NAME:-unknown} service..."',
        f'echo "Workspace: ${{WORKSPACE_ROOT:-{WORKSPACE_ROOT}}}"',
        "",
        f"MODE=${{MODE:-${{1:-{DEFAULT_MODE.value}}}}}",
        'if [ "$#" -gt 0 ] && [ "$1" = "$MODE" ]; then',
        "    shift",
        "fi",
        'echo "Mode: $MODE"',
        "",
        'case "$MODE" in',
    ]
    for mode, launch in LAUNCHES.items():
        lines += _case_branch(mode, launch)
        lines.append("")
    lines += [
        "    *)",
        '        echo "Executing custom command: $MODE $*"',
        '        exec "$MODE" "$@"',
        "        ;;",
        "esac",
        "",
    ]
    return "\n".join(lines)
