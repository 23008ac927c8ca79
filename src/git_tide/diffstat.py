"""Per-file change statistics between two commits and their width-aware rendering."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.text import Text

DEFAULT_TERMINAL_WIDTH = 80
MIN_GRAPH_WIDTH = 10
# " path | NNN graph": leading space, " | " and the space before the graph.
SEPARATOR_WIDTH = 5

PLUS_SYMBOL = "+"
MINUS_SYMBOL = "-"


@dataclass(frozen=True)
class FileStat:
    """Added and removed line counts for one file."""

    added: int = 0
    removed: int = 0

    def __post_init__(self):
        if self.added < 0 or self.removed < 0:
            raise ValueError("line counts must be non-negative")

    @property
    def total(self) -> int:
        return self.added + self.removed


@dataclass
class DiffStatTable:
    """Mapping of file path to line counts, accumulated across hunks."""

    entries: dict[str, FileStat] = field(default_factory=dict)

    def add(self, path: str, added: int = 0, removed: int = 0) -> None:
        if not path:
            raise ValueError("diff-stat path must not be empty")
        current = self.entries.get(path, FileStat())
        self.entries[path] = FileStat(current.added + added, current.removed + removed)

    def __len__(self) -> int:
        return len(self.entries)

    def __bool__(self) -> bool:
        return bool(self.entries)

    def __contains__(self, path: object) -> bool:
        return path in self.entries

    def __getitem__(self, path: str) -> FileStat:
        return self.entries[path]

    def items(self) -> Iterator[tuple[str, FileStat]]:
        """Entries in lexicographic path order."""
        for path in sorted(self.entries):
            yield path, self.entries[path]

    @property
    def total_added(self) -> int:
        return sum(stat.added for stat in self.entries.values())

    @property
    def total_removed(self) -> int:
        return sum(stat.removed for stat in self.entries.values())

    def to_dict(self) -> dict:
        return {
            path: {"added": stat.added, "removed": stat.removed}
            for path, stat in self.items()
        }


# =============================================================================
# Table construction
# =============================================================================


def parse_numstat(output: str) -> DiffStatTable:
    """Build a table from ``git diff --numstat -z`` output.

    Records are NUL-terminated and paths are not quoted. A rename leaves the
    path field empty and is followed by the source and destination paths; it
    is keyed by the destination. Binary files report ``-`` for both counts and
    are recorded as 0/0.
    """
    table = DiffStatTable()
    fields = iter(output.split("\0"))
    for record in fields:
        parts = record.split("\t", 2)
        if len(parts) != 3:
            continue
        added, removed, path = parts
        if not path:
            next(fields, "")
            path = next(fields, "")
        if not path:
            continue
        table.add(
            path,
            int(added) if added.isdigit() else 0,
            int(removed) if removed.isdigit() else 0,
        )
    return table


def count_patch_lines(patch: bytes | str) -> tuple[int, int]:
    """Count added and removed lines in the hunks of a unified diff."""
    if isinstance(patch, bytes):
        patch = patch.decode("utf-8", errors="replace")
    added = removed = 0
    in_hunk = False
    for line in patch.splitlines():
        if line.startswith("@@"):
            in_hunk = True
        elif not in_hunk:
            continue
        elif line.startswith(PLUS_SYMBOL):
            added += 1
        elif line.startswith(MINUS_SYMBOL):
            removed += 1
    return added, removed


def table_from_diffs(diffs: Iterable[Any]) -> DiffStatTable:
    """Build a table from GitPython ``Diff`` objects created with ``create_patch=True``."""
    table = DiffStatTable()
    for diff in diffs:
        path = diff.b_path or diff.a_path
        if not path:
            continue
        added, removed = count_patch_lines(diff.diff or b"")
        table.add(path, added, removed)
    return table


# =============================================================================
# Rendering
# =============================================================================


def terminal_width(console: Console | None = None) -> int:
    """Width of the attached terminal, or the default when output is not a TTY."""
    console = console or Console()
    if not console.is_terminal:
        return DEFAULT_TERMINAL_WIDTH
    return console.width if console.width > 0 else DEFAULT_TERMINAL_WIDTH


def graph_width(display_width: int, max_path_len: int, max_num_len: int) -> int:
    return max(MIN_GRAPH_WIDTH, display_width - max_path_len - max_num_len - SEPARATOR_WIDTH)


def allocate(added: int, removed: int, width: int) -> tuple[int, int]:
    """Split at most ``width`` symbols between additions and removals.

    The remainder of the proportional split goes to the removals.
    """
    total = added + removed
    if total <= 0:
        return 0, 0
    symbols = min(total, width)
    plus = added * symbols // total
    return plus, symbols - plus


def render(
    table: DiffStatTable,
    display_width: int = DEFAULT_TERMINAL_WIDTH,
    *,
    styled: bool = True,
    plus_style: str = "green",
    minus_style: str = "red",
) -> str:
    """Render a table the way ``git diff --stat`` does, sorted by path.

    With ``styled`` the graph symbols are wrapped in rich console markup and
    paths are escaped; otherwise the result is plain text.
    """
    if not table:
        return ""

    max_path_len = max(len(path) for path in table.entries)
    max_total = max(stat.total for stat in table.entries.values())
    max_num_len = len(str(max_total))
    width = graph_width(display_width, max_path_len, max_num_len)

    lines = []
    for path, stat in table.items():
        plus, minus = allocate(stat.added, stat.removed, width)
        graph = _graph(plus, minus, styled, plus_style, minus_style)
        padded = f"{path:<{max_path_len}}"
        if styled:
            padded = escape(padded)
        lines.append(f" {padded} | {stat.total:>{max_num_len}} {graph}")

    lines.append(
        f" {len(table)} files changed, {table.total_added} insertions(+), "
        f"{table.total_removed} deletions(-)"
    )
    return "\n".join(lines)


def _graph(plus: int, minus: int, styled: bool, plus_style: str, minus_style: str) -> str:
    plus_text = PLUS_SYMBOL * plus
    minus_text = MINUS_SYMBOL * minus
    if not styled:
        return plus_text + minus_text
    parts = []
    if plus_text:
        parts.append(f"[{plus_style}]{plus_text}[/{plus_style}]")
    if minus_text:
        parts.append(f"[{minus_style}]{minus_text}[/{minus_style}]")
    return "".join(parts)


def plain(rendered: str) -> str:
    """Strip console markup from rendered output."""
    return Text.from_markup(rendered).plain
