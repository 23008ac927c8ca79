"""Exceptions raised by sync backends and supporting stores."""

from __future__ import annotations

from .models import ErrorKind

# Phrases git prints when a remote refuses anonymous access.
AUTH_FAILURE_MARKERS = (
    "authentication failed",
    "authentication required",
    "could not read username",
    "could not read password",
    "terminal prompts disabled",
    "invalid username or password",
    "permission denied",
    "http basic: access denied",
    "the requested url returned error: 401",
    "the requested url returned error: 403",
)


class SyncError(Exception):
    """Base class for failures that end one repository's update."""

    kind: ErrorKind = ErrorKind.UNEXPECTED

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AuthenticationRequired(SyncError):
    kind = ErrorKind.AUTHENTICATION_REQUIRED


class NetworkFailure(SyncError):
    kind = ErrorKind.NETWORK_FAILURE


class ReferenceResolutionFailure(SyncError):
    kind = ErrorKind.REFERENCE_RESOLUTION_FAILURE


class DiffComputationFailure(SyncError):
    kind = ErrorKind.DIFF_COMPUTATION_FAILURE


class MergeFailure(SyncError):
    kind = ErrorKind.MERGE_FAILURE


class CacheError(Exception):
    """The repository cache file exists but cannot be used."""


def is_auth_failure(stderr: str) -> bool:
    """Check whether git's stderr reports a rejected or missing credential."""
    lowered = stderr.lower()
    return any(marker in lowered for marker in AUTH_FAILURE_MARKERS)


def transport_error(action: str, remote: str, stderr: str) -> SyncError:
    """Classify a failed fetch/push into the matching error."""
    stderr = stderr.strip()
    if is_auth_failure(stderr):
        return AuthenticationRequired(
            f"authentication required to {action} {remote}: {stderr or 'access denied'}"
        )
    return NetworkFailure(f"failed to {action} {remote}: {stderr or 'unknown error'}")
