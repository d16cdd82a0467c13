"""Command-line interface.

    aipods init
    aipods register rag-test
    aipods list
    aipods work-on rag-test
    aipods jupyter rag-test

Every command exits 0 on success and 1 on an AiPodsError (invalid name,
duplicate service, I/O failure, ...). Commands that forward to docker or
compose exit with that command's exit code.
"""

from __future__ import annotations

import argparse
import sys
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

from loguru import logger
from rich.console import Console
from rich.markup import escape
from rich.prompt import Confirm
from rich.table import Table

from aipods.config import ProjectConfig, load_config
from aipods.constants import PortRole
from aipods.core.exceptions import AiPodsError
from aipods.layout import ProjectLayout
from aipods.observability.logging import LogConfig, setup_logging, teardown_logging
from aipods.platform import PlatformProfile, detect_platform
from aipods.registry import ServiceRegistry
from aipods.runtime import ContainerRuntime, container_name
from aipods.service import ServiceDescriptor
from aipods.templates import ServiceArtifacts
from aipods.workspace import Workspace

log = logger.bind(component="cli")

console = Console(highlight=False)
err_console = Console(stderr=True, highlight=False)


@dataclass(frozen=True, slots=True)
class Context:
    layout: ProjectLayout
    config: ProjectConfig
    platform: PlatformProfile
    registry: ServiceRegistry
    runtime: ContainerRuntime
    workspace: Workspace

    @classmethod
    def load(cls, root: Path, *, binary: str = "docker") -> Context:
        config = load_config(project_dir=root)
        layout = ProjectLayout.from_config(root, config)
        platform = detect_platform()
        runtime = ContainerRuntime(root, binary=binary)
        return cls(
            layout=layout,
            config=config,
            platform=platform,
            registry=ServiceRegistry(layout, config),
            runtime=runtime,
            workspace=Workspace(layout, config, platform, runtime),
        )


type Handler = Callable[[Context, argparse.Namespace], int]


# =============================================================================
# Service registry
# =============================================================================


def cmd_register(ctx: Context, args: argparse.Namespace) -> int:
    service = ctx.registry.register(args.name)
    ports = service.ports
    rel = ctx.layout.relative

    console.print(f"[cyan]Creating new service: {service.name}[/cyan]")
    console.print(f"  Port allocation: {ports}")
    for role in PortRole:
        console.print(f"    {role.label}: {ports.port(role)}")
    console.print(f"[green]✓ Service {service.name} created![/green]")
    console.print()
    console.print("[cyan]Next steps:[/cyan]")
    console.print(f"  1. Add dependencies to {rel(ctx.layout.service_dir(service.name))}/requirements.txt")
    console.print(f"  2. Add the service to {rel(ctx.layout.compose_file)} (aipods compose {service.name})")
    console.print(f"  3. Run: aipods work-on {service.name}")
    return 0


def _print_services(ctx: Context, services: list[ServiceDescriptor]) -> None:
    table = Table(title="Services", title_justify="left")
    table.add_column("Service", style="green")
    for role in PortRole:
        table.add_column(role.label, justify="right")
    table.add_column("Block")
    table.add_column("Status")
    for service in services:
        present = ctx.layout.service_dir(service.name).is_dir()
        table.add_row(
            service.name,
            *(str(service.ports.port(role)) for role in PortRole),
            str(service.ports),
            "ok" if present else "[yellow]missing[/yellow]",
        )
    console.print(table)


def cmd_list(ctx: Context, args: argparse.Namespace) -> int:
    services = ctx.registry.list()
    if args.json:
        console.print_json(data=[s.to_dict() for s in services])
        return 0
    if not services:
        console.print("[yellow]No services created yet[/yellow]")
        console.print("  Create one with: aipods register <name>")
        return 0
    _print_services(ctx, services)
    return 0


def cmd_remove(ctx: Context, args: argparse.Namespace) -> int:
    service = ctx.registry.require(args.name)
    destructive = args.purge or ctx.registry.strategy == "scan"
    if destructive and not args.yes:
        if not Confirm.ask(f"Delete all directories of {service.name}?", default=False):
            console.print("[yellow]Cancelled[/yellow]")
            return 0
    ctx.registry.remove(service.name, purge=args.purge)
    console.print(f"[green]✓ Service {service.name} removed (ports {service.ports} released)[/green]")
    return 0


def cmd_refresh(ctx: Context, args: argparse.Namespace) -> int:
    path = ctx.registry.refresh(args.name)
    service = ctx.registry.get(args.name)
    console.print(f"[green]✓ Rewrote {ctx.layout.relative(path)} for ports {service.ports}[/green]")
    return 0


def cmd_compose(ctx: Context, args: argparse.Namespace) -> int:
    service = ctx.registry.require(args.name)
    console.print(
        ServiceArtifacts.from_config(service, ctx.config).compose_snippet(),
        markup=False,
    )
    return 0


# =============================================================================
# Project
# =============================================================================


def cmd_init(ctx: Context, args: argparse.Namespace) -> int:
    console.print(f"[cyan]Initializing AI-Pods project in {ctx.layout.root}...[/cyan]")
    console.print(f"  Platform: [green]{ctx.platform.name}[/green]")
    for path in ctx.workspace.init():
        console.print(f"  [green]✓[/green] Created {ctx.layout.relative(path)}")
    console.print("[green]✓ Project structure initialized![/green]")
    console.print()
    console.print("[cyan]Next steps:[/cyan]")
    console.print("  1. Run: aipods build --base")
    console.print("  2. Create a service: aipods register <name>")
    return 0


def cmd_info(ctx: Context, args: argparse.Namespace) -> int:
    p = ctx.platform
    table = Table(show_header=False, box=None)
    table.add_column(style="yellow")
    table.add_column(style="green")
    table.add_row("Platform", f"{p.name} ({p.arch})")
    table.add_row("Working Dir", str(ctx.layout.root))
    table.add_row("Python Command", p.python_cmd)
    table.add_row("Pip Command", p.pip_cmd)
    table.add_row("Docker Desktop", str(p.docker_desktop).lower())
    table.add_row("Allocation", ctx.registry.strategy)
    server = ctx.runtime.version() if ctx.runtime.available() else None
    table.add_row("Docker Server", server or "[red]not running[/red]")
    console.print(table)
    return 0


def cmd_validate(ctx: Context, args: argparse.Namespace) -> int:
    console.print("[cyan]Validating AI-Pods setup...[/cyan]")
    failed = False
    for check in ctx.workspace.validate():
        if check.ok:
            mark = "[green]✓[/green]"
        elif check.required:
            mark = "[red]✗[/red]"
            failed = True
        else:
            mark = "[yellow]⚠[/yellow]"
        console.print(f"{mark} {check.label}: {escape(check.detail)}")
    return 1 if failed else 0


def cmd_conventions(ctx: Context, args: argparse.Namespace) -> int:
    ports = ctx.config.ports
    layout = ctx.config.layout
    first = [ports.base + i * ports.stride for i in range(3)]
    console.print("[yellow]Port Allocation:[/yellow]")
    console.print(f"  • Each service gets {ports.stride} ports ({', '.join(map(str, first))}...)")
    console.print("  • +0: API/Main service")
    console.print("  • +1: Jupyter Lab")
    console.print("  • +2: Debug port")
    console.print()
    console.print("[yellow]Directory Structure:[/yellow]")
    console.print(f"  • {layout.services}/<service>/        Service code")
    console.print("  • shared/               Shared resources")
    console.print(f"  • {layout.build}/<service>/  Dockerfiles")
    console.print(f"  • {layout.venvs}/<service>/      Python environments")
    console.print()
    console.print("[yellow]Naming Conventions:[/yellow]")
    console.print("  • Services:     lowercase-with-hyphens")
    console.print(f"  • Containers:   {container_name('<service>')}")
    console.print(f"  • Images:       {ctx.config.project.name}/<service>:latest")
    return 0


# =============================================================================
# Host environment
# =============================================================================


def cmd_venv(ctx: Context, args: argparse.Namespace) -> int:
    service = ctx.registry.require(args.service)
    venv = ctx.workspace.create_venv(service)
    console.print(f"[green]✓ Virtual environment ready: {ctx.layout.relative(venv)}[/green]")
    return 0


def cmd_work_on(ctx: Context, args: argparse.Namespace) -> int:
    service = ctx.registry.require(args.service)
    name = service.name
    rel = ctx.layout.relative
    console.print(f"[cyan]Switching to {name} development environment...[/cyan]")
    venv = ctx.workspace.work_on(service)
    console.print(f"[green]✓ Environment ready for {name} development![/green]")

    if args.open:
        opener = ctx.workspace.open_service(service)
        if opener is None:
            console.print(f"[yellow]⚠ No editor or file browser found. Open manually: {rel(ctx.layout.service_dir(name))}/[/yellow]")
        else:
            console.print(f"  Opened {rel(ctx.layout.service_dir(name))}/ with {opener}")

    console.print()
    console.print(f"Ready to work on {name}!")
    console.print(f"   - Source code: {rel(ctx.layout.service_dir(name))}/")
    console.print(f"   - Notebooks: {rel(ctx.layout.notebooks_dir(name))}/")
    console.print(f"   - Outputs: {rel(ctx.layout.outputs_dir(name))}/")
    console.print(f"   - Virtual env: {rel(venv)}/")
    console.print(f"   - Interpreter: {rel(ctx.platform.venv_python(venv))}")
    console.print()
    console.print(f"Activate with: {ctx.platform.activate_hint(venv)}")
    return 0


def cmd_sync_env(ctx: Context, args: argparse.Namespace) -> int:
    service = ctx.registry.require(args.service)
    return ctx.workspace.sync_env(service)


def cmd_pip_install(ctx: Context, args: argparse.Namespace) -> int:
    service = ctx.registry.require(args.service)
    return ctx.workspace.pip_install(service, *args.packages)


# =============================================================================
# Container runtime
# =============================================================================


def cmd_build(ctx: Context, args: argparse.Namespace) -> int:
    if args.base:
        return ctx.workspace.build_base()
    for name in args.services:
        ctx.registry.require(name)
    return ctx.runtime.build(*args.services)


def cmd_up(ctx: Context, args: argparse.Namespace) -> int:
    for name in args.services:
        ctx.registry.require(name)
    return ctx.runtime.up(*args.services)


def cmd_down(ctx: Context, args: argparse.Namespace) -> int:
    if args.all and not args.yes:
        if not Confirm.ask("Remove ALL containers, images and volumes of this project?", default=False):
            console.print("[yellow]Cancelled[/yellow]")
            return 0
    return ctx.runtime.down(volumes=args.all, images=args.all)


def cmd_logs(ctx: Context, args: argparse.Namespace) -> int:
    if args.service:
        ctx.registry.require(args.service)
    return ctx.runtime.logs(args.service, follow=not args.no_follow, tail=args.tail)


def cmd_shell(ctx: Context, args: argparse.Namespace) -> int:
    service = ctx.registry.require(args.service)
    return ctx.runtime.shell(service.name)


def cmd_exec(ctx: Context, args: argparse.Namespace) -> int:
    service = ctx.registry.require(args.service)
    if not args.argv:
        raise AiPodsError("Please specify a command to execute")
    return ctx.runtime.exec(service.name, *args.argv)


def cmd_jupyter(ctx: Context, args: argparse.Namespace) -> int:
    service = ctx.registry.require(args.service)
    code = ctx.runtime.up(service.name)
    if code != 0:
        return code
    console.print("[green]✓ Jupyter Lab is starting![/green]")
    console.print()
    console.print(f"  URL: [cyan]http://localhost:{service.ports.jupyter}[/cyan]")
    console.print(f"  Token: [yellow]{ctx.config.jupyter.token}[/yellow]")
    console.print("  [yellow]Set JUPYTER_TOKEN to change it[/yellow]")
    return 0


def cmd_test(ctx: Context, args: argparse.Namespace) -> int:
    service = ctx.registry.require(args.service)
    return ctx.runtime.run_once(service.name, "python", "-m", "pytest", *args.pytest_args)


def _simple(method: str) -> Handler:
    def handler(ctx: Context, args: argparse.Namespace) -> int:
        return getattr(ctx.runtime, method)()

    return handler


# =============================================================================
# Parser
# =============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="aipods", description="AI-Pods Docker development environment")
    parser.add_argument("--root", type=Path, default=Path.cwd(), help="Project root (default: cwd)")
    parser.add_argument("--docker", default="docker", help="Docker-compatible CLI binary")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--log-file", default=None, help="Also write debug logs to this file")
    sub = parser.add_subparsers(dest="command", required=True, metavar="<command>")

    def add(name: str, handler: Handler, help: str, *, aliases: Sequence[str] = ()) -> argparse.ArgumentParser:
        p = sub.add_parser(name, help=help, aliases=list(aliases))
        p.set_defaults(handler=handler)
        return p

    p = add("register", cmd_register, "Create a new service and allocate its ports", aliases=["new-service"])
    p.add_argument("name")
    p = add("list", cmd_list, "List services and their ports", aliases=["list-services"])
    p.add_argument("--json", action="store_true", help="Print services as JSON")
    p = add("remove", cmd_remove, "Unregister a service")
    p.add_argument("name")
    p.add_argument("--purge", action="store_true", help="Also delete the service's directories")
    p.add_argument("-y", "--yes", action="store_true", help="Do not ask for confirmation")
    p = add("refresh", cmd_refresh, "Rewrite a service's Dockerfile with its registered ports")
    p.add_argument("name")
    p = add("compose", cmd_compose, "Print a docker-compose entry for a service")
    p.add_argument("name")

    add("init", cmd_init, "Initialize project structure")
    add("info", cmd_info, "Show system information")
    add("validate", cmd_validate, "Validate project setup")
    add("conventions", cmd_conventions, "Show project conventions")

    p = add("venv", cmd_venv, "Create a host virtual environment for a service")
    p.add_argument("service")
    p = add("work-on", cmd_work_on, "Prepare the host environment for a service")
    p.add_argument("service")
    p.add_argument("--open", action="store_true", help="Open the service in Cursor/VS Code, or the file browser")
    p = add("sync-env", cmd_sync_env, "Sync packages from the container to the host venv")
    p.add_argument("service")
    p = add("pip-install", cmd_pip_install, "Install packages in a service container")
    p.add_argument("service")
    p.add_argument("packages", nargs="+")

    p = add("build", cmd_build, "Build service images")
    p.add_argument("services", nargs="*")
    p.add_argument("--base", action="store_true", help="Build only the shared base image")
    p = add("up", cmd_up, "Start services")
    p.add_argument("services", nargs="*")
    p = add("down", cmd_down, "Stop and remove containers")
    p.add_argument("--all", action="store_true", help="Also remove volumes and images")
    p.add_argument("-y", "--yes", action="store_true", help="Do not ask for confirmation")
    add("stop", _simple("stop"), "Stop services (keep containers)")
    add("start", _simple("start"), "Start stopped services")
    add("restart", _simple("restart"), "Restart services")
    add("ps", _simple("ps"), "Show running containers")
    add("images", _simple("project_images"), "List project images")
    add("clean", _simple("clean"), "Remove stopped containers and dangling images")
    p = add("logs", cmd_logs, "View logs")
    p.add_argument("service", nargs="?")
    p.add_argument("--tail", type=int, default=100)
    p.add_argument("--no-follow", action="store_true")

    p = add("shell", cmd_shell, "Open a shell in a service container")
    p.add_argument("service")
    p = add("exec", cmd_exec, "Execute a command in a service container")
    p.add_argument("service")
    p.add_argument("argv", nargs=argparse.REMAINDER, metavar="command")
    p = add("jupyter", cmd_jupyter, "Start Jupyter Lab for a service", aliases=["notebook"])
    p.add_argument("service")
    p = add("test", cmd_test, "Run a service's tests in a throwaway container")
    p.add_argument("service")
    p.add_argument("pytest_args", nargs=argparse.REMAINDER)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    handler_ids = setup_logging(LogConfig(
        level="DEBUG" if args.verbose else "WARNING",
        file=args.log_file,
    ))
    try:
        ctx = Context.load(args.root.resolve(), binary=args.docker)
        return args.handler(ctx, args)
    except AiPodsError as e:
        log.debug("Command failed: {error!r}", error=e)
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        return 1
    except KeyboardInterrupt:
        return 130
    finally:
        teardown_logging(handler_ids)


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
