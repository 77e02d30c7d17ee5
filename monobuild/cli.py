"""Thin CLI wrapper for monobuild.

This module provides the command-line interface using Typer.
All business logic is delegated to core modules.
"""

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer
from rich.console import Console

from monobuild import __version__
from monobuild.config import Settings, get_settings, print_settings_json
from monobuild.types import Env

if TYPE_CHECKING:
    from monobuild.workspace import Package

app = typer.Typer(
    name="monobuild",
    help="monobuild - build and watch workspace packages with an external bundler",
    no_args_is_help=True,
)
console = Console()

RootOption = Annotated[
    Path,
    typer.Option("--root", "-r", help="Workspace root directory"),
]
NamesArgument = Annotated[
    list[str] | None,
    typer.Argument(help="Package names (default: all packages)"),
]
EnvOption = Annotated[
    Env | None,
    typer.Option("--env", "-e", help="Build environment (default from settings)"),
]
DebugOption = Annotated[
    bool,
    typer.Option("--debug", help="Verbose reporting and tracebacks"),
]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"monobuild version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """monobuild - build and watch workspace packages with an external bundler."""


@app.command()
def config(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show effective configuration."""
    settings = get_settings()
    if json_output:
        console.print(print_settings_json(settings))
    else:
        console.print("[bold]Effective Configuration:[/bold]")
        console.print()
        console.print("[bold]Workspace:[/bold]")
        console.print(f"  Workspace file:      {settings.workspace_file}")
        console.print(f"  Manifest name:       {settings.manifest_name}")
        console.print(f"  Build config name:   {settings.build_config_name}")
        console.print()
        console.print("[bold]Build:[/bold]")
        console.print(f"  Environment:         {settings.env.value}")
        console.print(f"  Debug:               {settings.debug}")
        console.print(f"  Log level:           {settings.log_level}")
        console.print(f"  Bundler command:     {' '.join(settings.bundler_command)}")
        console.print(f"  Bundle timeout:      {settings.bundle_timeout}s")
        console.print()
        console.print("[bold]Concurrency:[/bold]")
        console.print(f"  Max builds:          {settings.max_concurrent_builds}")
        console.print(f"  Watch debounce:      {settings.watch_debounce_ms}ms")


def _load_packages(root: Path, names: list[str] | None, settings: Settings) -> "list[Package]":
    from monobuild.workspace import WorkspaceError, load_workspace, select_packages

    try:
        packages = load_workspace(
            root,
            workspace_file=settings.workspace_file,
            manifest_name=settings.manifest_name,
            build_config_name=settings.build_config_name,
        )
        return select_packages(packages, names)
    except WorkspaceError as e:
        console.print(f"[red]Workspace error: {e}[/red]")
        raise typer.Exit(code=1) from None


def _apply_overrides(settings: Settings, env: Env | None, debug: bool) -> Settings:
    updates: dict[str, object] = {}
    if env is not None:
        updates["env"] = env
    if debug:
        updates["debug"] = True
        updates["log_level"] = "DEBUG"
    return settings.model_copy(update=updates) if updates else settings


@app.command("list")
def list_packages(
    root: RootOption = Path("."),
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """List workspace packages."""
    settings = get_settings()
    packages = _load_packages(root, None, settings)

    if json_output:
        output = [
            {
                "name": p.name,
                "version": p.declaration.version,
                "directory": str(p.directory),
                "build_config": str(p.build_config_path) if p.build_config_path else None,
            }
            for p in packages
        ]
        console.print_json(data=output)
        return

    if not packages:
        console.print("[yellow]No packages found[/yellow]")
        return

    console.print(f"[bold]Found {len(packages)} package(s):[/bold]")
    console.print()
    for p in packages:
        console.print(f"  [green]{p.name}[/green]")
        console.print(f"    Directory: {p.directory}")
        if p.build_config_path:
            console.print(f"    Build config: {p.build_config_path.name}")
        else:
            console.print("    Build config: [yellow](none)[/yellow]")


@app.command()
def build(
    names: NamesArgument = None,
    root: RootOption = Path("."),
    env: EnvOption = None,
    debug: DebugOption = False,
) -> None:
    """Build workspace packages once."""
    from monobuild.build.session import BuildSession
    from monobuild.bundler import CommandBundler
    from monobuild.factory.common import BuildCall
    from monobuild.filesystem import LocalFileSystem
    from monobuild.logging import setup_logging
    from monobuild.reporter import ConsoleReporter

    settings = _apply_overrides(get_settings(), env, debug)
    setup_logging(settings.log_level)
    packages = _load_packages(root, names, settings)

    fs = LocalFileSystem()
    bundler = CommandBundler(settings.bundler_command, timeout=settings.bundle_timeout, fs=fs)
    reporter = ConsoleReporter(console, verbose=settings.debug)
    session = BuildSession(packages, fs, bundler, settings)
    call = BuildCall(reporter=reporter, env=settings.env, is_debug=settings.debug)

    try:
        results = asyncio.run(session.build_all(call))
    finally:
        fs.close()

    failed = [name for name, ok in results.items() if not ok]
    if failed:
        console.print(f"[red]{len(failed)} of {len(results)} package(s) failed[/red]")
        raise typer.Exit(code=1)
    console.print(f"[green]Built {len(results)} package(s)[/green]")


@app.command()
def watch(
    names: NamesArgument = None,
    root: RootOption = Path("."),
    env: EnvOption = None,
    debug: DebugOption = False,
) -> None:
    """Build workspace packages and rebuild them when their files change."""
    from monobuild.build.session import BuildSession
    from monobuild.bundler import CommandBundler
    from monobuild.factory.common import BuildCall
    from monobuild.filesystem import LocalFileSystem
    from monobuild.logging import setup_logging
    from monobuild.reporter import ConsoleReporter

    settings = _apply_overrides(get_settings(), env, debug)
    setup_logging(settings.log_level)
    packages = _load_packages(root, names, settings)

    fs = LocalFileSystem()
    bundler = CommandBundler(settings.bundler_command, timeout=settings.bundle_timeout, fs=fs)
    reporter = ConsoleReporter(console, verbose=settings.debug)
    session = BuildSession(packages, fs, bundler, settings)
    call = BuildCall(
        reporter=reporter,
        env=settings.env,
        is_watch=True,
        is_debug=settings.debug,
    )

    console.print("[bold]Watching for changes (Ctrl+C to stop)[/bold]")
    try:
        asyncio.run(session.watch(call))
    except KeyboardInterrupt:
        console.print("[yellow]Stopped watching[/yellow]")
    finally:
        fs.close()


if __name__ == "__main__":
    app()
