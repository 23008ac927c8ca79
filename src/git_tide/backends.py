"""Git backends that carry out the remote operations of an update.

Two implementations share the :class:`SyncBackend` interface:

- :class:`LibraryBackend` works through GitPython's object model.
- :class:`NativeBackend` drives the ``git`` executable directly. It is used for
  repositories tracked by Git LFS so that the configured filter hooks run.
"""

from __future__ import annotations

import base64
import logging
import os
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

import git

from .config import DEFAULT_CREDENTIAL_HOSTS, DEFAULT_CREDENTIAL_USERNAME, Settings
from .diffstat import DiffStatTable, parse_numstat, table_from_diffs
from .errors import (
    DiffComputationFailure,
    MergeFailure,
    NetworkFailure,
    ReferenceResolutionFailure,
    transport_error,
)
from .models import RepositoryDescriptor

logger = logging.getLogger(__name__)

LFS_FILTER_MARKER = "filter=lfs"
FALLBACK_DEFAULT_BRANCHES = ("main", "master")

_PUSH_FAILURE_FLAGS = (
    git.PushInfo.ERROR
    | git.PushInfo.REJECTED
    | git.PushInfo.REMOTE_REJECTED
    | git.PushInfo.REMOTE_FAILURE
)


# =============================================================================
# Credentials
# =============================================================================


@dataclass(frozen=True)
class Credential:
    """Basic-auth credential for HTTPS remotes."""

    username: str
    token: str

    def __repr__(self) -> str:
        return f"Credential(username={self.username!r}, token='***')"

    def env(self) -> dict[str, str]:
        """Environment overlay that makes git send the credential as a header."""
        raw = f"{self.username}:{self.token}".encode()
        header = "Authorization: Basic " + base64.b64encode(raw).decode("ascii")
        return {
            "GIT_CONFIG_COUNT": "1",
            "GIT_CONFIG_KEY_0": "http.extraHeader",
            "GIT_CONFIG_VALUE_0": header,
        }


class CredentialProvider:
    """Look up a token for repositories whose path names a known host."""

    def __init__(
        self,
        hosts: dict[str, str] | None = None,
        username: str = DEFAULT_CREDENTIAL_USERNAME,
    ):
        self.hosts = dict(DEFAULT_CREDENTIAL_HOSTS if hosts is None else hosts)
        self.username = username

    @classmethod
    def from_settings(cls, settings: Settings) -> CredentialProvider:
        return cls(settings.credential_hosts, settings.credential_username)

    def credential_for(self, path: str) -> Credential | None:
        for host, env_var in self.hosts.items():
            if host in path:
                token = os.environ.get(env_var)
                if token:
                    return Credential(self.username, token)
        return None


def is_lfs_repository(path: str | Path) -> bool:
    """Check whether .gitattributes routes any files through the LFS filter."""
    try:
        attributes = (Path(path) / ".gitattributes").read_text(errors="replace")
    except OSError:
        return False
    return LFS_FILTER_MARKER in attributes


# =============================================================================
# Backend interface
# =============================================================================


class SyncBackend(ABC):
    """Operations the update state machine needs from a repository."""

    name = "abstract"

    def __init__(
        self,
        path: str,
        credential: Credential | None = None,
        timeout: float | None = None,
    ):
        self.path = path
        self.credential = credential
        self.timeout = timeout

    def remote_env(self) -> dict[str, str]:
        """Environment overlay for commands that talk to a remote."""
        env = {"GIT_TERMINAL_PROMPT": "0"}
        if self.credential is not None:
            env.update(self.credential.env())
        return env

    @abstractmethod
    def has_tracked_changes(self) -> bool:
        """True when tracked files are modified, deleted or staged."""

    @abstractmethod
    def head_commit(self) -> str: ...

    @abstractmethod
    def current_branch(self) -> str: ...

    @abstractmethod
    def fetch(self, remote: str) -> None: ...

    @abstractmethod
    def fast_forward(self, remote: str, branch: str) -> None:
        """Advance the checked out branch to ``remote/branch`` if possible."""

    @abstractmethod
    def remote_default_branch(self, remote: str, current: str) -> str: ...

    @abstractmethod
    def hard_reset(self, remote: str, branch: str) -> None: ...

    @abstractmethod
    def push(self, remote: str, branch: str, force: bool = False) -> None: ...

    @abstractmethod
    def diff_table(self, old: str, new: str) -> DiffStatTable: ...


def select_backend(descriptor: RepositoryDescriptor, settings: Settings) -> SyncBackend:
    """Pick the backend for a repository, once per update."""
    credential = CredentialProvider.from_settings(settings).credential_for(descriptor.path)
    if is_lfs_repository(descriptor.path):
        logger.debug("%s: LFS filter found, using native git", descriptor.path)
        return NativeBackend(descriptor.path, credential, settings.command_timeout)
    return LibraryBackend(descriptor.path, credential, settings.command_timeout)


# =============================================================================
# Native git executable
# =============================================================================


class NativeBackend(SyncBackend):
    """Backend that shells out to the git executable."""

    name = "native"

    def _run(
        self, *args: str, remote: bool = False, check: bool = False
    ) -> subprocess.CompletedProcess:
        """Run a git command in the repository."""
        env = os.environ.copy()
        if remote:
            env.update(self.remote_env())
        logger.debug("%s: git %s", self.path, " ".join(args))
        try:
            return subprocess.run(
                ["git", *args],
                cwd=self.path,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                check=check,
                env=env,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as exc:
            raise NetworkFailure(
                f"git {args[0]} timed out after {exc.timeout:g}s"
            ) from exc
        except OSError as exc:
            raise ReferenceResolutionFailure(f"cannot run git in {self.path}: {exc}") from exc

    @staticmethod
    def _output(result: subprocess.CompletedProcess) -> str:
        return result.stderr.strip() or result.stdout.strip()

    def _ref_exists(self, ref: str) -> bool:
        result = self._run("rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}")
        return result.returncode == 0

    def _require_remote(self, remote: str) -> None:
        result = self._run("remote", "get-url", remote)
        if result.returncode != 0:
            raise ReferenceResolutionFailure(f"remote {remote!r} is not configured")

    def has_tracked_changes(self) -> bool:
        """Parse 'git status --porcelain=v2'; untracked ('?') entries are ignored."""
        result = self._run("status", "--porcelain=v2")
        if result.returncode != 0:
            raise ReferenceResolutionFailure(
                f"failed to read worktree status: {self._output(result)}"
            )
        for line in result.stdout.splitlines():
            # 1/2: changed or renamed entry, u: unmerged entry
            if line.startswith(("1 ", "2 ", "u ")):
                return True
        return False

    def head_commit(self) -> str:
        result = self._run("rev-parse", "--verify", "HEAD")
        if result.returncode != 0:
            raise ReferenceResolutionFailure(f"failed to get HEAD: {self._output(result)}")
        return result.stdout.strip()

    def current_branch(self) -> str:
        result = self._run("symbolic-ref", "--quiet", "--short", "HEAD")
        if result.returncode != 0:
            raise ReferenceResolutionFailure("HEAD is detached")
        return result.stdout.strip()

    def fetch(self, remote: str) -> None:
        self._require_remote(remote)
        result = self._run("fetch", remote, remote=True)
        if result.returncode != 0:
            raise transport_error("fetch from", remote, self._output(result))

    def fast_forward(self, remote: str, branch: str) -> None:
        target = f"refs/remotes/{remote}/{branch}"
        if not self._ref_exists(target):
            raise ReferenceResolutionFailure(f"{remote}/{branch} does not exist")
        result = self._run("merge", "--ff-only", target)
        if result.returncode != 0:
            raise MergeFailure(
                f"failed to merge {remote}/{branch}: {self._output(result)}"
            )

    def remote_default_branch(self, remote: str, current: str) -> str:
        result = self._run("symbolic-ref", "--quiet", f"refs/remotes/{remote}/HEAD")
        prefix = f"refs/remotes/{remote}/"
        if result.returncode == 0 and result.stdout.strip().startswith(prefix):
            return result.stdout.strip()[len(prefix) :]
        for candidate in (current, *FALLBACK_DEFAULT_BRANCHES):
            if self._ref_exists(prefix + candidate):
                return candidate
        raise ReferenceResolutionFailure(f"cannot determine default branch of {remote}")

    def hard_reset(self, remote: str, branch: str) -> None:
        target = f"refs/remotes/{remote}/{branch}"
        if not self._ref_exists(target):
            raise ReferenceResolutionFailure(f"{remote}/{branch} does not exist")
        result = self._run("reset", "--hard", target)
        if result.returncode != 0:
            raise MergeFailure(
                f"failed to reset to {remote}/{branch}: {self._output(result)}"
            )

    def push(self, remote: str, branch: str, force: bool = False) -> None:
        self._require_remote(remote)
        args = ["push"]
        if force:
            args.append("--force")
        args += [remote, f"refs/heads/{branch}:refs/heads/{branch}"]
        result = self._run(*args, remote=True)
        if result.returncode != 0:
            raise transport_error("push to", remote, self._output(result))

    def diff_table(self, old: str, new: str) -> DiffStatTable:
        result = self._run(
            "-c", "core.quotePath=false", "diff", "--numstat", "-z", old, new
        )
        if result.returncode != 0:
            raise DiffComputationFailure(
                f"failed to get diff stats: {self._output(result)}"
            )
        return parse_numstat(result.stdout)


# =============================================================================
# GitPython
# =============================================================================


class LibraryBackend(SyncBackend):
    """Backend built on GitPython's repository objects."""

    name = "library"

    def __init__(
        self,
        path: str,
        credential: Credential | None = None,
        timeout: float | None = None,
    ):
        super().__init__(path, credential, timeout)
        try:
            self.repo = git.Repo(path)
        except (git.InvalidGitRepositoryError, git.NoSuchPathError) as exc:
            raise ReferenceResolutionFailure(f"not a git repository: {path}") from exc

    def _remote(self, remote: str) -> git.Remote:
        try:
            return self.repo.remote(remote)
        except ValueError as exc:
            raise ReferenceResolutionFailure(f"remote {remote!r} is not configured") from exc

    def _resolve(self, rev: str) -> git.Commit:
        try:
            return self.repo.commit(rev)
        except (ValueError, git.BadName, git.GitCommandError) as exc:
            raise ReferenceResolutionFailure(f"cannot resolve {rev}") from exc

    def has_tracked_changes(self) -> bool:
        try:
            return self.repo.is_dirty(index=True, working_tree=True, untracked_files=False)
        except git.GitCommandError as exc:
            raise ReferenceResolutionFailure(
                f"failed to read worktree status: {exc.stderr.strip()}"
            ) from exc

    def head_commit(self) -> str:
        try:
            return self.repo.head.commit.hexsha
        except ValueError as exc:
            raise ReferenceResolutionFailure(f"failed to get HEAD: {exc}") from exc

    def current_branch(self) -> str:
        if self.repo.head.is_detached:
            raise ReferenceResolutionFailure("HEAD is detached")
        return self.repo.active_branch.name

    def fetch(self, remote: str) -> None:
        origin = self._remote(remote)
        logger.debug("%s: fetching %s", self.path, remote)
        try:
            with self.repo.git.custom_environment(**self.remote_env()):
                fetchinfolist = origin.fetch(kill_after_timeout=self.timeout)
        except git.GitCommandError as exc:
            raise transport_error("fetch from", remote, str(exc.stderr)) from exc
        for info in fetchinfolist:
            if info.flags & git.FetchInfo.ERROR:
                raise NetworkFailure(f"failed to fetch {info.ref} from {remote}: {info.note}")

    def fast_forward(self, remote: str, branch: str) -> None:
        tracking = self._resolve(f"refs/remotes/{remote}/{branch}")
        head = self.repo.head.commit
        if self.repo.is_ancestor(tracking, head):
            logger.debug("%s: already up to date with %s/%s", self.path, remote, branch)
            return
        if not self.repo.is_ancestor(head, tracking):
            raise MergeFailure(f"cannot fast-forward {branch} to {remote}/{branch}")
        # merge --ff-only aborts instead of overwriting untracked files
        try:
            self.repo.git.merge("--ff-only", tracking.hexsha)
        except git.GitCommandError as exc:
            raise MergeFailure(
                f"failed to merge {remote}/{branch}: {str(exc.stderr).strip()}"
            ) from exc

    def remote_default_branch(self, remote: str, current: str) -> str:
        prefix = f"refs/remotes/{remote}/"
        head_ref = git.SymbolicReference(self.repo, prefix + "HEAD")
        try:
            target = head_ref.reference.path
        except (TypeError, ValueError):
            target = ""
        if target.startswith(prefix):
            return target[len(prefix) :]
        for candidate in (current, *FALLBACK_DEFAULT_BRANCHES):
            if git.Reference(self.repo, prefix + candidate).is_valid():
                return candidate
        raise ReferenceResolutionFailure(f"cannot determine default branch of {remote}")

    def hard_reset(self, remote: str, branch: str) -> None:
        target = self._resolve(f"refs/remotes/{remote}/{branch}")
        try:
            self.repo.head.reset(target, index=True, working_tree=True)
        except git.GitCommandError as exc:
            raise MergeFailure(
                f"failed to reset to {remote}/{branch}: {exc.stderr.strip()}"
            ) from exc

    def push(self, remote: str, branch: str, force: bool = False) -> None:
        origin = self._remote(remote)
        refspec = f"refs/heads/{branch}:refs/heads/{branch}"
        logger.debug("%s: pushing %s to %s (force=%s)", self.path, branch, remote, force)
        try:
            with self.repo.git.custom_environment(**self.remote_env()):
                infos = origin.push(
                    refspec=refspec, force=force, kill_after_timeout=self.timeout
                )
                infos.raise_if_error()
        except git.GitCommandError as exc:
            raise transport_error("push to", remote, str(exc.stderr)) from exc
        for info in infos:
            if info.flags & _PUSH_FAILURE_FLAGS:
                raise transport_error("push to", remote, info.summary)

    def diff_table(self, old: str, new: str) -> DiffStatTable:
        try:
            diffs = self._resolve(old).diff(self._resolve(new), create_patch=True)
        except git.GitCommandError as exc:
            raise DiffComputationFailure(
                f"failed to get diff stats: {exc.stderr.strip()}"
            ) from exc
        except ReferenceResolutionFailure as exc:
            raise DiffComputationFailure(f"failed to get diff stats: {exc}") from exc
        return table_from_diffs(diffs)
