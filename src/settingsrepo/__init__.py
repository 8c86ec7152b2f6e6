"""settingsrepo - keep application settings in sync through git."""

from .config import Config
from .credentials import (
    CredentialResolver,
    Credentials,
    CredentialStore,
    FileCredentialStore,
    MemoryCredentialStore,
)
from .errors import (
    CancelledError,
    ConflictError,
    CredentialError,
    ErrorKind,
    InitializationError,
    SettingsRepositoryError,
    SyncError,
    TransportError,
)
from .manager import RepositoryManager, SyncOutcome
from .progress import LoggingProgressSink, NullProgressSink, ProgressSink
from .repository import RepositoryHandle, is_valid_repository

__all__ = [
    "CancelledError",
    "Config",
    "ConflictError",
    "CredentialError",
    "CredentialResolver",
    "CredentialStore",
    "Credentials",
    "ErrorKind",
    "FileCredentialStore",
    "InitializationError",
    "LoggingProgressSink",
    "MemoryCredentialStore",
    "NullProgressSink",
    "ProgressSink",
    "RepositoryHandle",
    "RepositoryManager",
    "SettingsRepositoryError",
    "SyncError",
    "SyncOutcome",
    "TransportError",
    "is_valid_repository",
]
