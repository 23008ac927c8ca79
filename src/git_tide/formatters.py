"""Output formatters for console and JSON display."""

from __future__ import annotations

import json
from collections import defaultdict
from pathlib import Path
from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .diffstat import plain

if TYPE_CHECKING:
    from .aggregator import UpdateReport
    from .models import RepositoryDescriptor


def compute_unique_display_names(paths: list[str]) -> dict[str, str]:
    """Compute unique display names for repository paths.

    When several repositories share a directory name, parent directory
    components are added until each name becomes unique.

    Args:
        paths: Repository paths

    Returns:
        Dictionary mapping path to display name
    """
    name_groups: dict[str, list[str]] = defaultdict(list)
    for path in paths:
        name_groups[Path(path).name].append(path)

    result: dict[str, str] = {}
    for name, group in name_groups.items():
        if len(group) == 1:
            result[group[0]] = name
        else:
            for path, unique_name in zip(group, _make_paths_unique(group)):
                result[path] = unique_name
    return result


def _make_paths_unique(paths: list[str]) -> list[str]:
    """Generate shortest unique display names for a list of paths.

    For each path, adds parent directory components until the name
    is unique among all paths.
    """
    path_parts_list = [list(reversed(Path(p).parts)) for p in paths]

    result = []
    for i, parts in enumerate(path_parts_list):
        depth = 1
        while depth <= len(parts):
            candidate = "/".join(reversed(parts[:depth]))

            is_unique = True
            for j, other_parts in enumerate(path_parts_list):
                if i != j:
                    other_depth = min(depth, len(other_parts))
                    other_candidate = "/".join(reversed(other_parts[:other_depth]))
                    if candidate == other_candidate:
                        is_unique = False
                        break

            if is_unique:
                result.append(candidate)
                break
            depth += 1
        else:
            # Identical paths; fall back to the full path
            result.append("/".join(reversed(parts)))

    return result


class OutputFormatter:
    """Format output for console or JSON."""

    def __init__(self, console: Console, use_json: bool = False):
        self.console = console
        self.use_json = use_json

    def print_discovery(
        self,
        repositories: list[RepositoryDescriptor],
        cache_file: Path,
        verbose: bool = False,
    ):
        """Print the result of a discovery scan."""
        if self.use_json:
            output = {
                "cache_file": str(cache_file),
                "count": len(repositories),
                "repositories": [r.to_dict() for r in repositories],
            }
            self._print_json(output)
            return

        self.console.print(f"Found [bold]{len(repositories)}[/] repositories")
        if verbose and repositories:
            self.console.print("\n[bold]Repository list:[/]")
            for repo in repositories:
                upstream = " [dim](has upstream)[/]" if repo.has_upstream else ""
                self.console.print(f"- [cyan]{escape(repo.path)}[/]{upstream}")
        self.console.print(f"\nResults saved to: {escape(str(cache_file))}")

    def print_report(self, report: UpdateReport):
        """Print the outcome of an update pass."""
        if self.use_json:
            self._print_report_json(report)
        else:
            self._print_report_rich(report)

    def _print_report_rich(self, report: UpdateReport):
        if report.warnings or report.errors:
            self._print_problem_table(report)

        if report.diff_stats:
            self.console.print()
            self.console.print(report.diff_stats, highlight=False)

        self.console.print()
        self._print_summary(report)

    def _print_problem_table(self, report: UpdateReport):
        paths = list(report.warnings) + [e.path for e in report.errors]
        display_names = compute_unique_display_names(paths)

        table = Table(title="Repositories needing attention")
        table.add_column("Repository", style="cyan", no_wrap=True)
        table.add_column("Status", justify="center")
        table.add_column("Message")

        for path, kind in report.warnings.items():
            table.add_row(
                escape(display_names.get(path, path)),
                "[yellow]⚠ skipped[/]",
                f"[yellow]{escape(kind.description)}[/]",
            )
        for error in report.errors:
            table.add_row(
                escape(display_names.get(error.path, error.path)),
                "[red]✗ failed[/]",
                f"[red]{escape(error.detail or error.kind.value)}[/]",
            )

        self.console.print(table)

    def _print_summary(self, report: UpdateReport):
        parts = [f"[bold]Total:[/] {report.total}"]
        parts.append(f"[green]✓ Updated:[/] {report.successes}")
        if report.updated:
            parts.append(f"[blue]⬇ Changed:[/] {len(report.updated)}")
        if report.warnings:
            parts.append(f"[yellow]⚠ Warnings:[/] {len(report.warnings)}")
        if report.errors:
            parts.append(f"[red]✗ Errors:[/] {len(report.errors)}")
        self.console.print(" | ".join(parts))

    def _print_report_json(self, report: UpdateReport):
        output = report.to_dict()
        output["diff_stats"] = plain(report.diff_stats)
        self._print_json(output)

    def _print_json(self, output: dict):
        self.console.print(
            json.dumps(output, indent=2), markup=False, highlight=False, soft_wrap=True
        )
