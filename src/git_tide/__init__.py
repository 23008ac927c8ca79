"""git-tide: keep a fleet of local Git repositories in sync with their remotes."""

# Guard against deleted CWD (e.g. directory removed by another process).
# rich crashes on import if os.getcwd() fails, so recover before any imports.
import os

try:
    os.getcwd()
except (OSError, PermissionError):
    os.chdir(os.path.expanduser("~"))

from ._version import __version__
from .aggregator import RepositoryError, ResultAggregator, UpdateReport
from .backends import (
    Credential,
    CredentialProvider,
    LibraryBackend,
    NativeBackend,
    SyncBackend,
    is_lfs_repository,
    select_backend,
)
from .cache import load_repositories, save_repositories
from .cli import app
from .config import Settings, default_cache_file, load_roots_file, resolve_roots_file
from .diffstat import DiffStatTable, FileStat, allocate, render
from .discovery import find_repositories
from .errors import (
    AuthenticationRequired,
    CacheError,
    DiffComputationFailure,
    MergeFailure,
    NetworkFailure,
    ReferenceResolutionFailure,
    SyncError,
)
from .formatters import OutputFormatter
from .models import (
    ErrorKind,
    OutcomeStatus,
    RepositoryDescriptor,
    UpdateOutcome,
    WarningKind,
)
from .scheduler import WorkerPool
from .schema import get_tool_schema
from .updater import RepositoryUpdater

__all__ = [
    # Version
    "__version__",
    # CLI
    "app",
    # Models
    "ErrorKind",
    "OutcomeStatus",
    "RepositoryDescriptor",
    "UpdateOutcome",
    "WarningKind",
    "DiffStatTable",
    "FileStat",
    "RepositoryError",
    "UpdateReport",
    "Settings",
    # Errors
    "AuthenticationRequired",
    "CacheError",
    "DiffComputationFailure",
    "MergeFailure",
    "NetworkFailure",
    "ReferenceResolutionFailure",
    "SyncError",
    # Engine
    "Credential",
    "CredentialProvider",
    "LibraryBackend",
    "NativeBackend",
    "RepositoryUpdater",
    "ResultAggregator",
    "SyncBackend",
    "WorkerPool",
    # Functions
    "allocate",
    "default_cache_file",
    "find_repositories",
    "get_tool_schema",
    "is_lfs_repository",
    "load_repositories",
    "load_roots_file",
    "render",
    "resolve_roots_file",
    "save_repositories",
    "select_backend",
    # Formatters
    "OutputFormatter",
]
