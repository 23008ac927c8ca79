"""Collect update outcomes into the final report."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import cast

from rich.markup import escape

from .config import Settings
from .models import ErrorKind, UpdateOutcome, WarningKind


@dataclass(frozen=True)
class RepositoryError:
    path: str
    kind: ErrorKind
    detail: str

    def __str__(self) -> str:
        return f"failed to update {self.path}: {self.detail or self.kind.value}"

    def to_dict(self) -> dict:
        return {"path": self.path, "kind": self.kind.value, "detail": self.detail}


@dataclass
class UpdateReport:
    """Tallies of one update pass."""

    successes: int = 0
    warnings: dict[str, WarningKind] = field(default_factory=dict)
    errors: list[RepositoryError] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    diff_stats: str = ""

    @property
    def total(self) -> int:
        return self.successes + len(self.warnings) + len(self.errors)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "successes": self.successes,
            "updated": self.updated,
            "warnings": {path: kind.value for path, kind in self.warnings.items()},
            "errors": [e.to_dict() for e in self.errors],
            "diff_stats": self.diff_stats,
        }


class ResultAggregator:
    """Keep the latest outcome per repository path."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or Settings()
        self._outcomes: dict[str, UpdateOutcome] = {}

    def add(self, outcome: UpdateOutcome) -> None:
        self._outcomes[outcome.path] = outcome

    def extend(self, outcomes: Iterable[UpdateOutcome]) -> None:
        for outcome in outcomes:
            self.add(outcome)

    def __len__(self) -> int:
        return len(self._outcomes)

    def report(self) -> UpdateReport:
        report = UpdateReport()
        blocks = []
        for path in sorted(self._outcomes):
            outcome = self._outcomes[path]
            if outcome.is_success:
                report.successes += 1
                if outcome.diff_stat:
                    report.updated.append(path)
                    if self.settings.show_stats:
                        blocks.append(f"Changes in {escape(path)}:\n{outcome.diff_stat}\n")
            elif outcome.is_warning:
                report.warnings[path] = cast(WarningKind, outcome.warning_kind)
            else:
                kind = cast(ErrorKind, outcome.error_kind)
                report.errors.append(RepositoryError(path, kind, outcome.detail))
        report.diff_stats = "\n".join(blocks)
        return report
