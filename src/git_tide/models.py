"""Domain models shared by the update engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Any, cast

if TYPE_CHECKING:
    from .diffstat import DiffStatTable

DEFAULT_UPSTREAM_NAME = "upstream"


class OutcomeStatus(StrEnum):
    """Which case of an update outcome applies."""

    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class WarningKind(StrEnum):
    """Conditions that skip a repository without counting as a failure."""

    UNCOMMITTED_CHANGES = "uncommitted_changes"

    @property
    def description(self) -> str:
        match self:
            case WarningKind.UNCOMMITTED_CHANGES:
                return "worktree contains uncommitted changes"
            case _:
                return self.value


class ErrorKind(StrEnum):
    """Failure classes surfaced per repository."""

    AUTHENTICATION_REQUIRED = "authentication_required"
    NETWORK_FAILURE = "network_failure"
    REFERENCE_RESOLUTION_FAILURE = "reference_resolution_failure"
    DIFF_COMPUTATION_FAILURE = "diff_computation_failure"
    MERGE_FAILURE = "merge_failure"
    CANCELLED = "cancelled"
    UNEXPECTED = "unexpected"


@dataclass
class RepositoryDescriptor:
    """One local working copy known to the cache."""

    path: str
    has_upstream: bool = False
    upstream_name: str = DEFAULT_UPSTREAM_NAME
    last_scanned: datetime | None = None
    # Attached after an update that moved HEAD; never persisted.
    diff_stat: str = field(default="", compare=False, repr=False)

    def __post_init__(self):
        if not self.path:
            raise ValueError("repository path must not be empty")
        if not self.upstream_name:
            self.upstream_name = DEFAULT_UPSTREAM_NAME

    @property
    def name(self) -> str:
        return self.path.rstrip("/").rsplit("/", 1)[-1]

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "has_upstream": self.has_upstream,
            "upstream_name": self.upstream_name,
            "last_scanned": self.last_scanned.isoformat() if self.last_scanned else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RepositoryDescriptor:
        last_scanned = data.get("last_scanned")
        return cls(
            path=data["path"],
            has_upstream=bool(data.get("has_upstream", False)),
            upstream_name=data.get("upstream_name") or DEFAULT_UPSTREAM_NAME,
            last_scanned=datetime.fromisoformat(last_scanned) if last_scanned else None,
        )


@dataclass(frozen=True)
class UpdateOutcome:
    """Result of updating one repository.

    Exactly one of the three cases applies; build instances through
    :meth:`success`, :meth:`warning` or :meth:`error`.
    """

    path: str
    status: OutcomeStatus
    warning_kind: WarningKind | None = None
    error_kind: ErrorKind | None = None
    detail: str = ""
    diff_stat: str = ""
    diff_table: DiffStatTable | None = field(default=None, compare=False, repr=False)

    def __post_init__(self):
        if (self.status == OutcomeStatus.WARNING) != (self.warning_kind is not None):
            raise ValueError("warning_kind is set exactly for warning outcomes")
        if (self.status == OutcomeStatus.ERROR) != (self.error_kind is not None):
            raise ValueError("error_kind is set exactly for error outcomes")

    @classmethod
    def success(
        cls,
        path: str,
        diff_stat: str = "",
        diff_table: DiffStatTable | None = None,
    ) -> UpdateOutcome:
        return cls(
            path=path,
            status=OutcomeStatus.SUCCESS,
            diff_stat=diff_stat,
            diff_table=diff_table,
        )

    @classmethod
    def warning(cls, path: str, kind: WarningKind) -> UpdateOutcome:
        return cls(path=path, status=OutcomeStatus.WARNING, warning_kind=kind)

    @classmethod
    def error(cls, path: str, kind: ErrorKind, detail: str = "") -> UpdateOutcome:
        return cls(path=path, status=OutcomeStatus.ERROR, error_kind=kind, detail=detail)

    @property
    def is_success(self) -> bool:
        return self.status == OutcomeStatus.SUCCESS

    @property
    def is_warning(self) -> bool:
        return self.status == OutcomeStatus.WARNING

    @property
    def is_error(self) -> bool:
        return self.status == OutcomeStatus.ERROR

    @property
    def message(self) -> str:
        """Human readable one-liner for progress narration."""
        match self.status:
            case OutcomeStatus.SUCCESS:
                return "updated"
            case OutcomeStatus.WARNING:
                return cast(WarningKind, self.warning_kind).description
            case _:
                return self.detail or str(self.error_kind)

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "status": self.status.value,
            "warning": self.warning_kind.value if self.warning_kind else None,
            "error": self.error_kind.value if self.error_kind else None,
            "detail": self.detail,
            "diff_stat": self.diff_stat,
        }
