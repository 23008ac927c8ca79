from __future__ import annotations

import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path

import pytest

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git executable not found")


@pytest.fixture(autouse=True)
def isolated_git_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep the user's git configuration and tokens out of the tests."""
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(tmp_path / "gitconfig"))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Test User")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "test@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Test User")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "test@example.com")
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    monkeypatch.delenv("GIT_TIDE_ROOTS", raising=False)
    monkeypatch.delenv("GIT_TIDE_REPOS_FILE", raising=False)


def git(cwd: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", *args], cwd=cwd, capture_output=True, text=True, check=True
    )
    return result.stdout.strip()


def commit_file(repo: Path, name: str, content: str, message: str | None = None) -> str:
    target = repo / name
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content)
    git(repo, "add", name)
    git(repo, "commit", "-q", "-m", message or f"update {name}")
    return git(repo, "rev-parse", "HEAD")


def head(repo: Path) -> str:
    return git(repo, "rev-parse", "HEAD")


def init_seeded_bare(tmp_path: Path, name: str) -> tuple[Path, Path]:
    """Create a bare repository with one commit on main, plus the working copy that seeded it."""
    bare = tmp_path / f"{name}.git"
    git(tmp_path, "init", "-q", "--bare", "-b", "main", str(bare))
    seed = tmp_path / f"{name}-seed"
    git(tmp_path, "init", "-q", "-b", "main", str(seed))
    commit_file(seed, "README.md", "hello\n", "initial commit")
    git(seed, "remote", "add", "origin", str(bare))
    git(seed, "push", "-q", "origin", "main")
    return bare, seed


@dataclass
class Clone:
    origin: Path
    seed: Path
    local: Path


@dataclass
class Fork:
    upstream: Path
    upstream_seed: Path
    origin: Path
    local: Path


@pytest.fixture
def clone(tmp_path: Path) -> Clone:
    """A working copy cloned from a bare origin, with a second writer on origin."""
    origin, seed = init_seeded_bare(tmp_path, "origin")
    local = tmp_path / "local"
    git(tmp_path, "clone", "-q", str(origin), str(local))
    return Clone(origin=origin, seed=seed, local=local)


@pytest.fixture
def fork(tmp_path: Path) -> Fork:
    """A working copy of a fork: origin is a copy of upstream, both remotes configured."""
    upstream, upstream_seed = init_seeded_bare(tmp_path, "upstream")
    origin = tmp_path / "origin.git"
    git(tmp_path, "clone", "-q", "--bare", str(upstream), str(origin))
    local = tmp_path / "local"
    git(tmp_path, "clone", "-q", str(origin), str(local))
    git(local, "remote", "add", "upstream", str(upstream))
    return Fork(upstream=upstream, upstream_seed=upstream_seed, origin=origin, local=local)
