"""JSON cache of discovered repositories."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path

import git

from .errors import CacheError
from .models import RepositoryDescriptor

logger = logging.getLogger(__name__)


def save_repositories(repositories: list[RepositoryDescriptor], cache_file: Path) -> None:
    """Stamp every descriptor with the scan time and write them as a JSON array."""
    now = datetime.now(timezone.utc)
    for repository in repositories:
        repository.last_scanned = now

    try:
        cache_file.parent.mkdir(parents=True, exist_ok=True)
        cache_file.write_text(
            json.dumps([r.to_dict() for r in repositories], indent=2) + "\n"
        )
    except OSError as exc:
        raise CacheError(f"failed to write repos file {cache_file}: {exc}") from exc


def load_repositories(cache_file: Path) -> list[RepositoryDescriptor]:
    """Read the cache, dropping entries that no longer open as repositories.

    A missing file is an empty list; an unreadable or malformed one raises
    :class:`CacheError`.
    """
    try:
        raw = cache_file.read_text()
    except FileNotFoundError:
        return []
    except OSError as exc:
        raise CacheError(f"failed to read repos file {cache_file}: {exc}") from exc

    try:
        records = json.loads(raw)
        if not isinstance(records, list):
            raise ValueError("expected a JSON array")
        repositories = [RepositoryDescriptor.from_dict(record) for record in records]
    except (ValueError, KeyError, TypeError) as exc:
        raise CacheError(f"failed to parse repos file {cache_file}: {exc}") from exc

    return [r for r in repositories if _is_openable(r.path)]


def _is_openable(path: str) -> bool:
    try:
        git.Repo(path).close()
    except (git.InvalidGitRepositoryError, OSError):
        logger.debug("Dropping cached path that is no longer a repository: %s", path)
        return False
    return True


def cache_age(cache_file: Path) -> timedelta | None:
    """Time since the cache file was last written, or None if it does not exist."""
    try:
        modified = cache_file.stat().st_mtime
    except FileNotFoundError:
        return None
    return datetime.now(timezone.utc) - datetime.fromtimestamp(modified, timezone.utc)
