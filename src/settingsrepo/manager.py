"""Repository lifecycle manager used by the host application."""

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

import pygit2

from .commit import CommitOrchestrator, CommitRequest, CommitResult
from .credentials import CredentialResolver, CredentialsProvider, CredentialStore
from .errors import ErrorKind, SettingsRepositoryError
from .progress import NullProgressSink, ProgressSink
from .pull import PullCoordinator, PullResult
from .push import PushCoordinator, PushResult
from .repository import (
    PathLike,
    RepositoryHandle,
    init_bare_repository,
    is_valid_repository,
)
from .system import Environment

logger = logging.getLogger(__name__)

DEFAULT_APP_NAME = "settingsrepo"


@dataclass
class SyncOutcome:
    """Tagged result of a full sync.

    ``kind`` is ``ErrorKind.OK`` on success, otherwise the kind of the
    error that stopped the sync.
    """

    kind: ErrorKind = ErrorKind.OK
    error: Optional[SettingsRepositoryError] = None
    commit: Optional[CommitResult] = None
    pull: Optional[PullResult] = None
    push: Optional[PushResult] = None

    @property
    def ok(self) -> bool:
        return self.kind is ErrorKind.OK


class RepositoryManager:
    """Owns the settings repository bound to a working directory.

    Constructing a manager opens (or creates) the repository; an
    InitializationError leaves no usable manager behind. Afterwards commit,
    push and pull can be called repeatedly, each failing independently.

    Commits are serialized by a single lock. Push and pull do not take it:
    a host that needs "commit, then push" must sequence the calls itself.
    """

    def __init__(
        self,
        work_tree: PathLike,
        credential_store: CredentialStore,
        app_name: str = DEFAULT_APP_NAME,
        env: Optional[Environment] = None,
    ):
        self.work_tree = Path(work_tree)
        self.app_name = app_name
        self.lock = threading.Lock()

        self.handle = RepositoryHandle()
        self.handle.open(self.work_tree)

        self.credential_store = credential_store
        self.resolver = CredentialResolver(
            credential_store, self.handle.repository
        )
        self.committer = CommitOrchestrator(
            self.handle, self.lock, app_name, env
        )
        self.pusher = PushCoordinator(self.handle, self.resolver)
        self.puller = PullCoordinator(self.handle, self.resolver)

    @property
    def repository(self) -> pygit2.Repository:
        return self.handle.repository

    @staticmethod
    def init_repository(directory: PathLike) -> pygit2.Repository:
        return init_bare_repository(directory)

    @staticmethod
    def is_valid_repository(directory: PathLike) -> bool:
        return is_valid_repository(directory)

    def credentials_provider(self) -> CredentialsProvider:
        return self.resolver.resolve(self.remote_url())

    def remote_url(self) -> Optional[str]:
        return self.handle.remote_url()

    def has_upstream(self) -> bool:
        return self.handle.has_upstream()

    def set_upstream(self, url: Optional[str], branch: Optional[str] = None):
        self.handle.set_upstream(url, branch)

    def stage(self, path: PathLike):
        self.handle.stage(path)

    def unstage(self, path: PathLike, is_file: bool = True):
        self.handle.unstage(path, is_file)

    def build_commit_request(self) -> CommitRequest:
        return self.committer.build_commit_request()

    def commit(
        self,
        progress: Optional[ProgressSink] = None,
        paths: Optional[Iterable[str]] = None,
    ) -> Optional[CommitResult]:
        return self.committer.commit(progress, paths)

    def push(self, progress: Optional[ProgressSink] = None) -> PushResult:
        return self.pusher.push(progress)

    def pull(self, progress: Optional[ProgressSink] = None) -> PullResult:
        return self.puller.pull(progress)

    def sync(self, progress: Optional[ProgressSink] = None) -> SyncOutcome:
        """Commit, pull and push, reporting the first failure by kind."""
        progress = progress or NullProgressSink()
        outcome = SyncOutcome()
        try:
            outcome.commit = self.commit(progress)
            if self.has_upstream():
                outcome.pull = self.pull(progress)
                outcome.push = self.push(progress)
        except SettingsRepositoryError as e:
            logger.warning(f"Sync stopped ({e.kind.value}): {e}")
            outcome.kind = e.kind
            outcome.error = e
        return outcome
