from __future__ import annotations

import json
import os
import time
from datetime import timedelta
from pathlib import Path

import git as git_module
import pytest

from git_tide.cache import cache_age, load_repositories, save_repositories
from git_tide.errors import CacheError
from git_tide.models import RepositoryDescriptor

from .conftest import git, requires_git


@pytest.fixture
def repo_dirs(tmp_path: Path) -> list[Path]:
    paths = []
    for name in ("one", "two"):
        path = tmp_path / "src" / name
        git(tmp_path, "init", "-q", str(path))
        paths.append(path)
    return paths


@requires_git
def test_save_and_load(tmp_path: Path, repo_dirs: list[Path]) -> None:
    cache_file = tmp_path / "cache" / "nested" / "repositories.json"
    repos = [
        RepositoryDescriptor(str(repo_dirs[0])),
        RepositoryDescriptor(str(repo_dirs[1]), has_upstream=True),
    ]

    save_repositories(repos, cache_file)
    loaded = load_repositories(cache_file)

    assert [r.path for r in loaded] == [str(p) for p in repo_dirs]
    assert [r.has_upstream for r in loaded] == [False, True]
    assert all(r.last_scanned is not None for r in loaded)
    assert loaded[0].last_scanned == repos[0].last_scanned


@requires_git
def test_diff_stat_is_never_persisted(tmp_path: Path, repo_dirs: list[Path]) -> None:
    cache_file = tmp_path / "repositories.json"
    repo = RepositoryDescriptor(str(repo_dirs[0]))
    repo.diff_stat = " a | 1 +"

    save_repositories([repo], cache_file)

    records = json.loads(cache_file.read_text())
    assert records == [
        {
            "path": str(repo_dirs[0]),
            "has_upstream": False,
            "upstream_name": "upstream",
            "last_scanned": repo.last_scanned.isoformat(),
        }
    ]
    assert load_repositories(cache_file)[0].diff_stat == ""


@requires_git
def test_load_drops_paths_that_are_no_longer_repositories(
    tmp_path: Path, repo_dirs: list[Path]
) -> None:
    cache_file = tmp_path / "repositories.json"
    plain_dir = tmp_path / "plain"
    plain_dir.mkdir()
    save_repositories(
        [
            RepositoryDescriptor(str(repo_dirs[0])),
            RepositoryDescriptor(str(tmp_path / "deleted")),
            RepositoryDescriptor(str(plain_dir)),
        ],
        cache_file,
    )

    assert [r.path for r in load_repositories(cache_file)] == [str(repo_dirs[0])]


def test_missing_cache_is_empty(tmp_path: Path) -> None:
    assert load_repositories(tmp_path / "absent.json") == []


@pytest.mark.parametrize(
    "content",
    ["{not json", '{"path": "/x"}', '[{"has_upstream": true}]', '[{"path": ""}]'],
)
def test_malformed_cache_raises(tmp_path: Path, content: str) -> None:
    cache_file = tmp_path / "repositories.json"
    cache_file.write_text(content)

    with pytest.raises(CacheError):
        load_repositories(cache_file)


def test_save_reports_unwritable_location(tmp_path: Path) -> None:
    blocker = tmp_path / "file"
    blocker.write_text("")

    with pytest.raises(CacheError):
        save_repositories([RepositoryDescriptor("/src/x")], blocker / "repositories.json")


def test_cache_age(tmp_path: Path) -> None:
    cache_file = tmp_path / "repositories.json"
    assert cache_age(cache_file) is None

    cache_file.write_text("[]")
    assert cache_age(cache_file) < timedelta(minutes=1)

    old = time.time() - timedelta(days=20).total_seconds()
    os.utime(cache_file, (old, old))
    assert cache_age(cache_file) > timedelta(days=14)


@requires_git
def test_load_drops_paths_that_cannot_be_opened(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, repo_dirs: list[Path]
) -> None:
    cache_file = tmp_path / "repositories.json"
    save_repositories([RepositoryDescriptor(str(p)) for p in repo_dirs], cache_file)
    real_repo = git_module.Repo

    def guarded_repo(path, *args, **kwargs):
        if path == str(repo_dirs[1]):
            raise PermissionError(13, "Permission denied", path)
        return real_repo(path, *args, **kwargs)

    monkeypatch.setattr(git_module, "Repo", guarded_repo)

    assert [r.path for r in load_repositories(cache_file)] == [str(repo_dirs[0])]
