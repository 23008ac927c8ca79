"""Runtime settings and file locations."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

APP_NAME = "git-tide"

DEFAULT_CREDENTIAL_HOSTS = {"github.com": "GITHUB_TOKEN"}
DEFAULT_CREDENTIAL_USERNAME = "git"

# Cached repository lists older than this trigger a rediscovery prompt.
STALE_CACHE_DAYS = 14


def default_concurrency() -> int:
    return os.cpu_count() or 1


@dataclass(frozen=True)
class Settings:
    """Explicit configuration handed to the pool, updater and aggregator."""

    concurrency: int = field(default_factory=default_concurrency)
    show_stats: bool = False
    verbose: bool = False
    command_timeout: float | None = None
    deadline: float | None = None
    credential_hosts: dict[str, str] = field(
        default_factory=lambda: dict(DEFAULT_CREDENTIAL_HOSTS)
    )
    credential_username: str = DEFAULT_CREDENTIAL_USERNAME
    display_width: int | None = None

    def __post_init__(self):
        if self.command_timeout is not None and self.command_timeout <= 0:
            raise ValueError("command_timeout must be positive")
        if self.deadline is not None and self.deadline <= 0:
            raise ValueError("deadline must be positive")
        if not self.credential_username:
            raise ValueError("credential_username must not be empty")


def load_roots_file(roots_file: Path) -> list[Path]:
    """Load directories to scan from a file (one path per line).

    Supports:
    - Comments starting with #
    - Environment variables: $HOME, ${HOME}, $DEV_ROOT, etc.
    - Tilde expansion: ~/path
    """
    roots = []
    try:
        with open(roots_file.expanduser()) as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith("#"):
                    expanded = os.path.expandvars(line)
                    roots.append(Path(expanded).expanduser())
    except FileNotFoundError:
        pass
    return roots


def resolve_roots_file() -> Path | None:
    """Auto-resolve roots file from environment and standard locations.

    Priority order:
    1. $GIT_TIDE_ROOTS environment variable
    2. ~/.config/git-tide/roots (XDG-compliant)
    3. ~/.git-tide-roots (legacy fallback)
    """
    env_roots = os.environ.get("GIT_TIDE_ROOTS")
    if env_roots:
        env_path = Path(env_roots).expanduser()
        if env_path.exists() and env_path.is_file():
            return env_path

    config_home = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    xdg_path = Path(config_home) / APP_NAME / "roots"
    if xdg_path.exists() and xdg_path.is_file():
        return xdg_path

    legacy_path = Path.home() / ".git-tide-roots"
    if legacy_path.exists() and legacy_path.is_file():
        return legacy_path

    return None


def default_cache_file() -> Path:
    """Location of the repository cache.

    $GIT_TIDE_REPOS_FILE wins, then $XDG_CACHE_HOME/git-tide/repositories.json,
    then ~/.cache/git-tide/repositories.json.
    """
    env_file = os.environ.get("GIT_TIDE_REPOS_FILE")
    if env_file:
        return Path(env_file).expanduser()

    cache_home = os.environ.get("XDG_CACHE_HOME") or str(Path.home() / ".cache")
    return Path(cache_home) / APP_NAME / "repositories.json"
