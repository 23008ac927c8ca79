"""
git-tide: keep a fleet of local Git working copies in sync with their remotes.

`discover` scans the configured directories and caches the repositories it
finds; `sync` updates every cached repository in parallel.
"""

from __future__ import annotations

import json
import logging
import signal
import threading
from datetime import timedelta
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn

from ._version import __version__
from .aggregator import ResultAggregator
from .cache import cache_age, load_repositories, save_repositories
from .config import (
    STALE_CACHE_DAYS,
    Settings,
    default_cache_file,
    default_concurrency,
    load_roots_file,
    resolve_roots_file,
)
from .diffstat import terminal_width
from .discovery import find_repositories
from .errors import CacheError
from .formatters import OutputFormatter
from .models import RepositoryDescriptor, UpdateOutcome
from .scheduler import WorkerPool
from .schema import get_tool_schema

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="git-tide",
    help="Keep a fleet of local Git repositories in sync with their remotes.",
    no_args_is_help=True,
)


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        print(f"git-tide {__version__}")
        raise typer.Exit()


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    schema: bool = typer.Option(
        False,
        "--schema",
        help="Output MCP-compatible tool schema for AI agents",
    ),
):
    """git-tide: keep a fleet of local Git repositories in sync with their remotes."""
    if schema:
        print(json.dumps(get_tool_schema(), indent=2))
        raise typer.Exit()


def configure_logging(verbose: bool) -> None:
    """Route package logs through rich on stderr."""
    package_logger = logging.getLogger("git_tide")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
    handler = RichHandler(console=Console(stderr=True), show_path=False, markup=False)
    handler.setFormatter(logging.Formatter("%(message)s"))
    package_logger.addHandler(handler)
    package_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    package_logger.propagate = False


def get_console_and_formatter(json_output: bool) -> tuple[Console, OutputFormatter]:
    """Create console and formatter."""
    console = Console(force_terminal=not json_output)
    formatter = OutputFormatter(console, use_json=json_output)
    return console, formatter


def resolve_cache_file(repos_file: Path | None) -> Path:
    return repos_file.expanduser() if repos_file else default_cache_file()


def run_discovery(
    console: Console,
    roots: Path | None,
    cache_file: Path,
    show_progress: bool,
) -> list[RepositoryDescriptor]:
    """Scan the configured roots and write the cache."""
    resolved_roots = roots or resolve_roots_file()
    if resolved_roots is None:
        console.print(
            "[red]Error: No roots file found. Create ~/.config/git-tide/roots "
            "or pass --roots[/]"
        )
        raise typer.Exit(1)

    directories = load_roots_file(resolved_roots)
    if not directories:
        console.print(f"[red]Error: No directories configured in {escape(str(resolved_roots))}[/]")
        raise typer.Exit(1)

    if show_progress:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            task = progress.add_task("Found 0 repositories...", total=None)
            repositories = find_repositories(
                directories,
                on_found=lambda count: progress.update(
                    task, description=f"Found {count} repositories..."
                ),
            )
    else:
        repositories = find_repositories(directories)

    try:
        save_repositories(repositories, cache_file)
    except CacheError as e:
        console.print(f"[red]Error: {escape(str(e))}[/]")
        raise typer.Exit(1)
    return repositories


@app.command()
def discover(
    roots: Path = typer.Option(
        None,
        "--roots",
        "-r",
        help="File containing directories to scan (one per line)",
    ),
    repos_file: Path = typer.Option(
        None,
        "--repos-file",
        help="Repository cache file path",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Show verbose output",
    ),
):
    """Scan directories for Git repositories and cache the list."""
    configure_logging(verbose)
    console, formatter = get_console_and_formatter(json_output)
    cache_file = resolve_cache_file(repos_file)

    repositories = run_discovery(console, roots, cache_file, show_progress=not json_output)
    formatter.print_discovery(repositories, cache_file, verbose=verbose)


def _narrate(console: Console, outcome: UpdateOutcome) -> None:
    path = escape(outcome.path)
    if outcome.is_error:
        console.print(f"[red]Error updating {path}: {escape(outcome.message)}[/]")
    elif outcome.is_warning:
        console.print(f"[yellow]Warning: Skipping {path} - {escape(outcome.message)}[/]")
    else:
        console.print(f"[green]Updated {path}[/]")


@app.command()
def sync(
    threads: int = typer.Option(
        None,
        "--threads",
        "-t",
        min=1,
        help="Number of concurrent repository updates [default: CPU count]",
    ),
    stat: bool = typer.Option(
        False,
        "--stat",
        "-s",
        help="Show diff statistics for updated repositories",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON",
    ),
    repos_file: Path = typer.Option(
        None,
        "--repos-file",
        help="Repository cache file path",
    ),
    roots: Path = typer.Option(
        None,
        "--roots",
        "-r",
        help="Roots file used when the cache needs refreshing",
    ),
    timeout: float = typer.Option(
        None,
        "--timeout",
        min=0.1,
        help="Seconds allowed for each git network command",
    ),
    deadline: float = typer.Option(
        None,
        "--deadline",
        min=0.1,
        help="Cancel repositories not yet started after this many seconds",
    ),
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Rediscover without asking when the cache is stale",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Show verbose output",
    ),
):
    """Update all cached repositories.

    Plain repositories are fetched and fast-forwarded from origin. Forks with
    an upstream remote are reset onto the upstream default branch and
    force-pushed to origin. Repositories with uncommitted changes to tracked
    files are skipped.
    """
    configure_logging(verbose)
    console, formatter = get_console_and_formatter(json_output)
    cache_file = resolve_cache_file(repos_file)

    age = cache_age(cache_file)
    if age is not None and age > timedelta(days=STALE_CACHE_DAYS):
        rediscover = yes or (
            not json_output
            and typer.confirm(
                f"Repository list is older than {STALE_CACHE_DAYS} days. Run discover first?",
                default=True,
            )
        )
        if rediscover:
            run_discovery(console, roots, cache_file, show_progress=not json_output)

    try:
        repositories = load_repositories(cache_file)
    except CacheError as e:
        console.print(f"[red]Error: {escape(str(e))}[/]")
        raise typer.Exit(1)

    if not repositories:
        console.print("[red]Error: No repositories found. Run 'discover' first[/]")
        raise typer.Exit(1)

    settings = Settings(
        concurrency=threads or default_concurrency(),
        show_stats=stat,
        verbose=verbose,
        command_timeout=timeout,
        deadline=deadline,
        display_width=terminal_width(console),
    )
    pool = WorkerPool(settings)
    aggregator = ResultAggregator(settings)
    cancel = threading.Event()

    def interrupt(signum, frame):
        console.print("[yellow]Interrupted: finishing repositories already in progress...[/]")
        cancel.set()

    previous_handler = signal.signal(signal.SIGINT, interrupt)
    total = len(repositories)
    try:
        if json_output:
            aggregator.extend(pool.run(repositories, cancel))
        else:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                console=console,
                transient=True,
            ) as progress:
                task = progress.add_task(f"Updated 0/{total} repositories...", total=None)
                for count, outcome in enumerate(pool.run(repositories, cancel), 1):
                    aggregator.add(outcome)
                    progress.update(task, description=f"Updated {count}/{total} repositories...")
                    if verbose:
                        _narrate(progress.console, outcome)
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    report = aggregator.report()
    formatter.print_report(report)

    if report.has_errors:
        if not json_output:
            console.print("\n[red]Error: failed to update some repositories[/]")
        raise typer.Exit(1)
