"""Thin CLI wrapper for bonnibel.

This module provides the command-line interface using Typer.
All business logic is delegated to core modules.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    TaskID,
    TextColumn,
    TransferSpeedColumn,
)

from bonnibel import __version__
from bonnibel.config import Settings, get_settings, print_settings_json
from bonnibel.errors import BonnibelError, format_error_chain
from bonnibel.generate.generator import generate, initialize_build_dir, load_vars
from bonnibel.generate.version import GitVersionOracle, VersionOracle
from bonnibel.overlays.cache import Overlay
from bonnibel.project.io import load_project
from bonnibel.project.models import Project

app = typer.Typer(
    name="bonnibel",
    help="Bonnibel - generate Ninja build files from a module graph",
    no_args_is_help=True,
)
console = Console()
err_console = Console(stderr=True)

LOG_LEVELS = ["WARNING", "INFO", "DEBUG"]


@dataclass
class CLIState:
    """Global options shared by every command."""

    settings: Settings
    config_file: Path
    build_dir: Path | None


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"bonnibel version {__version__}")
        raise typer.Exit()


def setup_logging(level: str, verbose: int) -> None:
    """Configure the root logger with a rich handler."""
    if verbose:
        base = LOG_LEVELS.index(level) if level in LOG_LEVELS else 0
        level = LOG_LEVELS[min(base + verbose, len(LOG_LEVELS) - 1)]
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _version_oracle() -> VersionOracle:
    return GitVersionOracle()


def _fail(error: BaseException) -> typer.Exit:
    err_console.print(f"[red]Error: {escape(format_error_chain(error))}[/red]")
    return typer.Exit(code=1)


def _state(ctx: typer.Context) -> CLIState:
    return ctx.find_root().obj


def _load(ctx: typer.Context) -> tuple[Project, Path]:
    """Load the project and pick its build directory."""
    state = _state(ctx)
    project = load_project(state.config_file)
    build_dir = state.build_dir or project.default_build_dir
    return project, build_dir.resolve()


@app.callback()
def main(
    ctx: typer.Context,
    config_file: Annotated[
        Path | None,
        typer.Option(
            "--file", "-f", help="The modules file to read from (default modules.yaml)"
        ),
    ] = None,
    build_dir: Annotated[
        Path | None,
        typer.Option("--dir", "-d", help="The build directory (default <root>/build)"),
    ] = None,
    verbose: Annotated[
        int,
        typer.Option("--verbose", "-v", count=True, help="Increase log verbosity"),
    ] = 0,
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
    """Bonnibel - generate Ninja build files from a module graph."""
    settings = get_settings()
    setup_logging(settings.log_level, verbose)
    ctx.obj = CLIState(
        settings=settings,
        config_file=config_file or settings.config_file,
        build_dir=build_dir or settings.build_dir,
    )


@app.command()
def init(
    ctx: typer.Context,
    variables: Annotated[
        list[str] | None,
        typer.Argument(help="A series of name=value pairs", metavar="NAME=VALUE..."),
    ] = None,
) -> None:
    """Initialize the build directory and options."""
    try:
        project, build_dir = _load(ctx)
        initialize_build_dir(project, build_dir, variables or [])
        result = generate(project, build_dir, version_oracle=_version_oracle())
    except BonnibelError as e:
        raise _fail(e) from None

    console.print(
        f"[green]✓ Initialized {escape(str(build_dir))} "
        f"({len(result.build_files)} build file(s), version {result.version})[/green]"
    )


@app.command("generate")
def generate_cmd(ctx: typer.Context) -> None:
    """Regenerate the build files."""
    try:
        project, build_dir = _load(ctx)
        load_vars(project, build_dir)
        result = generate(project, build_dir, version_oracle=_version_oracle())
    except BonnibelError as e:
        raise _fail(e) from None

    console.print(
        f"[green]✓ Generated {len(result.build_files)} build file(s) "
        f"in {escape(str(build_dir))}[/green]"
    )


app.command("regenerate", help="Regenerate the build files.")(generate_cmd)


class RichDownloadObserver:
    """Reports download progress to a rich progress bar."""

    def __init__(self, progress: Progress, task: TaskID) -> None:
        self.progress = progress
        self.task = task

    def on_length(self, total: int) -> None:
        self.progress.update(self.task, total=total or None)

    def on_chunk(self, size: int) -> None:
        self.progress.advance(self.task, size)


@app.command()
def sync(
    ctx: typer.Context,
    cache: Annotated[
        Path | None,
        typer.Option("--cache", "-c", help="Overlay cache directory"),
    ] = None,
    force: Annotated[
        bool,
        typer.Option("--force", help="Download overlays even if cached"),
    ] = False,
) -> None:
    """Synchronize external overlays into the source tree."""
    from bonnibel.overlays.service import sync_overlays

    state = _state(ctx)
    settings = state.settings
    cache_root = (cache or settings.cache_dir).expanduser()

    progress = Progress(
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        DownloadColumn(),
        TransferSpeedColumn(),
        console=console,
    )

    def observer_for(overlay: Overlay) -> RichDownloadObserver:
        task = progress.add_task(overlay.filename or overlay.url, total=None)
        return RichDownloadObserver(progress, task)

    try:
        project, _ = _load(ctx)
        if not project.overlays:
            console.print("[yellow]No overlays to sync[/yellow]")
            return
        with progress:
            result = sync_overlays(
                project,
                cache_root,
                observer_factory=observer_for,
                force=force,
                retries=settings.download_retries,
                max_concurrent_downloads=settings.max_concurrent_downloads,
                timeout=settings.download_timeout,
                tar=settings.tar_path,
            )
    except BonnibelError as e:
        raise _fail(e) from None

    for r in result.results:
        status = "downloaded" if r.downloaded else "cached"
        console.print(f"  [green]{escape(r.url)}[/green] ({status})")
        console.print(f"    -> {escape(str(r.destination))}")
    console.print(
        f"[bold]Synced {len(result.results)} overlay(s): "
        f"{result.downloaded} downloaded, {result.skipped} cached[/bold]"
    )


@app.command()
def build(
    ctx: typer.Context,
    release: Annotated[
        bool,
        typer.Option("--release", "-r", help="Build in release mode"),
    ] = False,
) -> None:
    """Run the build via Ninja.

    This command is mainly a shortcut for invoking Ninja to run the build.
    """
    from bonnibel.ninja import run_ninja

    state = _state(ctx)
    try:
        _, build_dir = _load(ctx)
        exit_code = run_ninja(build_dir, release=release, ninja=state.settings.ninja_path)
    except BonnibelError as e:
        raise _fail(e) from None

    if exit_code != 0:
        raise typer.Exit(code=exit_code)


@app.command()
def config(
    ctx: typer.Context,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show effective configuration."""
    state = _state(ctx)
    settings = state.settings
    if json_output:
        console.print(print_settings_json(settings))
        return

    build_dir_display = str(state.build_dir) if state.build_dir else "(<root>/build)"
    console.print("[bold]Effective Configuration:[/bold]")
    console.print()
    console.print("[bold]Paths:[/bold]")
    console.print(f"  Modules file:        {state.config_file}")
    console.print(f"  Build directory:     {build_dir_display}")
    console.print(f"  Cache directory:     {settings.cache_dir}")
    console.print()
    console.print("[bold]Operational:[/bold]")
    console.print(f"  Log level:           {settings.log_level}")
    console.print(f"  Max downloads:       {settings.max_concurrent_downloads}")
    console.print(f"  Download retries:    {settings.download_retries}")
    console.print(f"  Download timeout:    {settings.download_timeout}")
    console.print()
    console.print("[bold]Tools:[/bold]")
    console.print(f"  Ninja:               {settings.ninja_path}")
    console.print(f"  Tar:                 {settings.tar_path}")


if __name__ == "__main__":
    app()
