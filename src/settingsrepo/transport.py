"""Transports to a remote and the pygit2 callbacks driving them."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional, Set

import pygit2

from .credentials import CredentialsProvider
from .errors import CredentialError, TransportError
from .progress import NullProgressSink, ProgressSink, check_cancelled

logger = logging.getLogger(__name__)


class Operation(Enum):
    FETCH = "fetch"
    PUSH = "push"


class RefUpdateStatus(Enum):
    OK = "ok"
    REJECTED = "rejected"
    UP_TO_DATE = "up-to-date"
    ERROR = "error"


@dataclass
class RefUpdate:
    remote_name: str
    status: RefUpdateStatus
    message: Optional[str] = None

    def __str__(self) -> str:
        text = f"RefUpdate[{self.remote_name}, {self.status.value}"
        if self.message:
            text += f", {self.message}"
        return text + "]"


@dataclass
class OperationResult:
    """Outcome of one push or fetch against one URL."""

    url: str
    messages: List[str] = field(default_factory=list)
    ref_updates: List[RefUpdate] = field(default_factory=list)


class SyncCallbacks(pygit2.RemoteCallbacks):
    """Bridges libgit2 callbacks to the progress sink and credentials.

    Cancellation is checked on every progress callback; raising from a
    callback aborts the running transfer.
    """

    def __init__(
        self,
        progress: Optional[ProgressSink] = None,
        provider: Optional[CredentialsProvider] = None,
    ):
        super().__init__()
        self.progress = progress or NullProgressSink()
        self.provider = provider
        self.messages: List[str] = []
        self.pushed_refs: Dict[str, Optional[str]] = {}
        self._credential_requests: Set[int] = set()
        self._last_percent = -1

    def credentials(self, url, username_from_url, allowed_types):
        if self.provider is None:
            raise CredentialError(f"Authentication required for {url}", url=url)

        # libgit2 asks again with the same types after a refusal.
        request = int(allowed_types)
        if request in self._credential_requests:
            self.provider.reject(url)
            raise CredentialError(f"Authentication failed for {url}", url=url)
        self._credential_requests.add(request)

        return self.provider.credentials_for(url, username_from_url, allowed_types)

    def _report_percent(self, label: str, done: int, total: int):
        if total <= 0:
            return
        percent = done * 100 // total
        if percent != self._last_percent:
            self._last_percent = percent
            self.progress.report(f"{label}: {percent}% ({done}/{total})")

    def transfer_progress(self, stats):
        check_cancelled(self.progress)
        self._report_percent(
            "Receiving objects", stats.received_objects, stats.total_objects
        )

    def push_transfer_progress(self, objects_pushed, total_objects, bytes_pushed):
        check_cancelled(self.progress)
        self._report_percent("Writing objects", objects_pushed, total_objects)

    def sideband_progress(self, string):
        check_cancelled(self.progress)
        message = string.strip()
        if message:
            self.messages.append(message)

    def push_update_reference(self, refname, message):
        self.pushed_refs[refname] = message


def _multivar(config: pygit2.Config, key: str) -> List[str]:
    try:
        values = list(config.get_multivar(key))
    except (KeyError, pygit2.GitError):
        return []
    return [v for v in values if v and v.strip()]


def remote_urls(
    config: pygit2.Config, remote: str, operation: Operation
) -> List[str]:
    """URLs a remote maps to for an operation, in config order."""
    urls: List[str] = []
    if operation is Operation.PUSH:
        urls = _multivar(config, f"remote.{remote}.pushurl")
    if not urls:
        urls = _multivar(config, f"remote.{remote}.url")
    return list(dict.fromkeys(urls))


class Transport:
    """One connection target for a remote.

    Callers must close() the transport on every path once they are done.
    """

    def __init__(self, remote: pygit2.Remote, url: str, operation: Operation):
        self.url = url
        self.operation = operation
        self.credentials_provider: Optional[CredentialsProvider] = None
        self._remote: Optional[pygit2.Remote] = remote

    @property
    def closed(self) -> bool:
        return self._remote is None

    def set_credentials(self, provider: CredentialsProvider):
        self.credentials_provider = provider

    def callbacks(self, progress: Optional[ProgressSink] = None) -> SyncCallbacks:
        return SyncCallbacks(progress, self.credentials_provider)

    def _require_open(self) -> pygit2.Remote:
        if self._remote is None:
            raise TransportError(
                "Transport is closed", url=self.url, operation=self.operation.value
            )
        return self._remote

    def push(self, refspecs: List[str], callbacks: SyncCallbacks):
        remote = self._require_open()
        try:
            remote.push(refspecs, callbacks=callbacks)
        except (pygit2.GitError, OSError) as e:
            raise TransportError(str(e), url=self.url, operation="push") from e

    def fetch(self, callbacks: SyncCallbacks, refspecs: Optional[List[str]] = None):
        remote = self._require_open()
        try:
            return remote.fetch(refspecs, callbacks=callbacks)
        except (pygit2.GitError, OSError) as e:
            raise TransportError(str(e), url=self.url, operation="fetch") from e

    def close(self):
        if self._remote is not None:
            logger.debug(f"Closing transport to {self.url}")
        self._remote = None


def open_transports(
    repository: pygit2.Repository, remote: str, operation: Operation
) -> Iterator[Transport]:
    """Yield a transport per URL of remote, opened one at a time.

    Fetching goes through the configured remote so its fetch refspecs
    update the remote-tracking refs. Pushing uses an in-memory remote per
    URL so every push URL is reached.
    """
    if operation is Operation.FETCH:
        try:
            configured = repository.remotes[remote]
        except KeyError:
            return
        yield Transport(configured, configured.url, operation)
        return

    for url in remote_urls(repository.config, remote, operation):
        try:
            anonymous = repository.remotes.create_anonymous(url)
        except (pygit2.GitError, ValueError) as e:
            raise TransportError(str(e), url=url, operation=operation.value) from e
        yield Transport(anonymous, url, operation)
