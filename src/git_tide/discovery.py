"""Locate git working copies beneath configured directories."""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Iterable
from pathlib import Path

import git

from .models import DEFAULT_UPSTREAM_NAME, RepositoryDescriptor

logger = logging.getLogger(__name__)


def expand_directory(directory: str | Path) -> Path:
    """Expand environment variables and a leading ~ in a configured directory."""
    return Path(os.path.expandvars(str(directory))).expanduser()


def find_repositories(
    directories: Iterable[str | Path],
    on_found: Callable[[int], None] | None = None,
) -> list[RepositoryDescriptor]:
    """Walk each directory and return one descriptor per repository found.

    Missing directories and unreadable subdirectories are skipped. The walk
    does not descend into a repository once found.
    """
    repositories: list[RepositoryDescriptor] = []

    def on_error(exc: OSError) -> None:
        logger.debug("Skipping unreadable path: %s", exc)

    for directory in directories:
        root = expand_directory(directory)
        if not root.is_dir():
            logger.debug("Skipping missing directory: %s", root)
            continue

        for dirpath, dirnames, _ in os.walk(root, onerror=on_error):
            if ".git" not in dirnames:
                continue
            # Never walk into the repository itself, valid or not.
            dirnames.clear()
            descriptor = _describe(dirpath)
            if descriptor is None:
                continue
            repositories.append(descriptor)
            if on_found is not None:
                on_found(len(repositories))

    return repositories


def _describe(path: str) -> RepositoryDescriptor | None:
    try:
        repo = git.Repo(path)
    except (git.InvalidGitRepositoryError, git.NoSuchPathError) as exc:
        logger.debug("Skipping invalid repository %s: %r", path, exc)
        return None
    try:
        remote_names = {remote.name for remote in repo.remotes}
    except (git.GitError, ValueError) as exc:
        logger.debug("Skipping %s, cannot read remotes: %r", path, exc)
        return None
    finally:
        repo.close()

    return RepositoryDescriptor(
        path=str(Path(path).resolve()),
        has_upstream=DEFAULT_UPSTREAM_NAME in remote_names,
    )
