"""Error taxonomy for repository operations.

Every error carries an ``ErrorKind`` so hosts can branch on the kind of
failure rather than on the exception class.
"""

from enum import Enum
from typing import List, Optional


class ErrorKind(Enum):
    OK = "ok"
    INITIALIZATION = "initialization"
    CREDENTIAL = "credential"
    TRANSPORT = "transport"
    SYNC = "sync"
    CONFLICT = "conflict"
    CANCELLED = "cancelled"


class SettingsRepositoryError(Exception):
    """Base class for all settings repository errors."""

    kind = ErrorKind.SYNC


class InitializationError(SettingsRepositoryError):
    """The repository could not be created or opened."""

    kind = ErrorKind.INITIALIZATION


class CredentialError(SettingsRepositoryError):
    """Credentials for a remote could not be resolved or were rejected."""

    kind = ErrorKind.CREDENTIAL

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.url = url


class TransportError(SettingsRepositoryError):
    """Network or protocol failure talking to a remote."""

    kind = ErrorKind.TRANSPORT

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        operation: Optional[str] = None,
    ):
        super().__init__(message)
        self.url = url
        self.operation = operation


class SyncError(SettingsRepositoryError):
    """A transport failure the host can present and offer to retry."""

    kind = ErrorKind.SYNC

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        operation: Optional[str] = None,
    ):
        super().__init__(message)
        self.url = url
        self.operation = operation

    def __str__(self) -> str:
        base = super().__str__()
        if self.url and self.operation:
            return f"Cannot {self.operation} {self.url}: {base}"
        return base


class ConflictError(SettingsRepositoryError):
    """Local and remote state cannot be integrated by fast-forward."""

    kind = ErrorKind.CONFLICT

    def __init__(self, message: str, paths: Optional[List[str]] = None):
        super().__init__(message)
        self.paths = list(paths or [])


class CancelledError(SettingsRepositoryError):
    """The host requested cancellation through the progress sink."""

    kind = ErrorKind.CANCELLED


AUTH_MARKERS = (
    "authentication",
    "auth fail",
    "auth cancel",
    "not authorized",
    "unauthorized",
    "401",
    "403",
    "credentials",
    "reject hostkey",
)

RETRYABLE_MARKERS = (
    "could not resolve",
    "failed to resolve",
    "connection refused",
    "connection reset",
    "connection timed out",
    "timed out",
    "failed to connect",
    "network is unreachable",
    "repository not found",
    "not found",
    "unexpected http status",
)


def classify_transport_error(error: TransportError) -> SettingsRepositoryError:
    """Map a transport failure to the error the host should see.

    Returns a ``CredentialError`` for authentication failures, a
    ``SyncError`` carrying the remote URL and operation for retryable
    network conditions, and the original error otherwise.
    """
    message = str(error)
    lowered = message.lower()

    if any(marker in lowered for marker in AUTH_MARKERS):
        return CredentialError(message, url=error.url)
    if any(marker in lowered for marker in RETRYABLE_MARKERS):
        return SyncError(message, url=error.url, operation=error.operation)
    return error
