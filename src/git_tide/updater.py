"""Per-repository update state machine."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from .backends import SyncBackend, select_backend
from .config import Settings
from .diffstat import render, terminal_width
from .errors import SyncError
from .models import ErrorKind, RepositoryDescriptor, UpdateOutcome, WarningKind

logger = logging.getLogger(__name__)

ORIGIN = "origin"

BackendFactory = Callable[[RepositoryDescriptor, Settings], SyncBackend]


class RepositoryUpdater:
    """Bring one working copy up to date with its remote.

    The sequence is the same for every backend:

    1. select the backend (native git for LFS repositories, GitPython otherwise)
    2. refuse to touch a worktree with tracked changes
    3. remember HEAD
    4. fetch and fast-forward from origin, or for forks reset onto the
       upstream default branch and force-push the result to origin
    5. compare HEAD and render a diff-stat when it moved

    Step 4 of the fork workflow is not atomic: when the push fails the local
    branch has already been reset.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        backend_factory: BackendFactory = select_backend,
    ):
        self.settings = settings or Settings()
        self.backend_factory = backend_factory
        self._display_width = self.settings.display_width

    @property
    def display_width(self) -> int:
        if self._display_width is None:
            self._display_width = terminal_width()
        return self._display_width

    def update(
        self,
        descriptor: RepositoryDescriptor,
        cancel: threading.Event | None = None,
    ) -> UpdateOutcome:
        """Update a repository and classify the result. Never raises."""
        path = descriptor.path
        try:
            outcome = self._update(descriptor, cancel)
        except SyncError as exc:
            outcome = UpdateOutcome.error(path, exc.kind, exc.message)
        except Exception as exc:
            logger.exception("%s: unexpected failure", path)
            outcome = UpdateOutcome.error(path, ErrorKind.UNEXPECTED, str(exc))

        if outcome.is_error:
            logger.debug("%s: %s: %s", path, outcome.error_kind, outcome.detail)
        else:
            logger.debug("%s: %s", path, outcome.message)
        return outcome

    def _update(
        self,
        descriptor: RepositoryDescriptor,
        cancel: threading.Event | None,
    ) -> UpdateOutcome:
        path = descriptor.path
        if cancel is not None and cancel.is_set():
            return UpdateOutcome.error(path, ErrorKind.CANCELLED, "cancelled before start")

        backend = self.backend_factory(descriptor, self.settings)
        logger.debug("%s: using %s backend", path, backend.name)

        if backend.has_tracked_changes():
            return UpdateOutcome.warning(path, WarningKind.UNCOMMITTED_CHANGES)

        # Past this point the update runs to completion even if cancelled.
        old_head = backend.head_commit()
        branch = backend.current_branch()

        if descriptor.has_upstream:
            self._sync_fork(backend, descriptor, branch)
        else:
            backend.fetch(ORIGIN)
            backend.fast_forward(ORIGIN, branch)

        new_head = backend.head_commit()
        if new_head == old_head:
            descriptor.diff_stat = ""
            return UpdateOutcome.success(path)

        table = backend.diff_table(old_head, new_head)
        text = render(table, self.display_width)
        descriptor.diff_stat = text
        logger.debug("%s: %s -> %s, %d files changed", path, old_head[:8], new_head[:8], len(table))
        return UpdateOutcome.success(path, diff_stat=text, diff_table=table)

    def _sync_fork(
        self, backend: SyncBackend, descriptor: RepositoryDescriptor, branch: str
    ) -> None:
        upstream = descriptor.upstream_name
        backend.fetch(upstream)
        default_branch = backend.remote_default_branch(upstream, branch)
        backend.hard_reset(upstream, default_branch)
        try:
            backend.push(ORIGIN, branch, force=True)
        except SyncError:
            logger.warning(
                "%s: %s was reset to %s/%s but the push to %s failed",
                descriptor.path,
                branch,
                upstream,
                default_branch,
                ORIGIN,
            )
            raise
