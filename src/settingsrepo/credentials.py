"""Credential lookup and caching for remote operations."""

import logging
import os
import threading
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Dict, Optional

import pygit2
import yaml
from pygit2.enums import CredentialType

from .errors import CredentialError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Credentials:
    username: Optional[str] = None
    password: Optional[str] = None
    public_key: Optional[str] = None
    private_key: Optional[str] = None
    passphrase: str = ""

    @property
    def has_key_pair(self) -> bool:
        return bool(self.private_key)


class CredentialStore(ABC):
    """Persistent credential storage keyed by remote URL.

    Implementations may prompt the user; callers treat them as a black box
    that either returns credentials or returns None.
    """

    @abstractmethod
    def lookup(self, url: str) -> Optional[Credentials]:
        pass

    @abstractmethod
    def save(self, url: str, credentials: Credentials) -> None:
        pass

    def delete(self, url: str) -> None:
        pass


class MemoryCredentialStore(CredentialStore):
    def __init__(self, entries: Optional[Dict[str, Credentials]] = None):
        self.entries: Dict[str, Credentials] = dict(entries or {})

    def lookup(self, url: str) -> Optional[Credentials]:
        return self.entries.get(url)

    def save(self, url: str, credentials: Credentials) -> None:
        self.entries[url] = credentials

    def delete(self, url: str) -> None:
        self.entries.pop(url, None)


class FileCredentialStore(CredentialStore):
    """Stores credentials in a YAML file readable only by the owner."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def _load(self) -> Dict[str, Dict[str, str]]:
        if not self.path.exists():
            return {}
        with open(self.path, "r") as f:
            data = yaml.safe_load(f)
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, Dict[str, str]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            yaml.safe_dump(data, f, default_flow_style=False)
        os.chmod(self.path, 0o600)

    def lookup(self, url: str) -> Optional[Credentials]:
        entry = self._load().get(url)
        if not isinstance(entry, dict):
            return None
        fields = Credentials.__dataclass_fields__
        return Credentials(**{k: v for k, v in entry.items() if k in fields})

    def save(self, url: str, credentials: Credentials) -> None:
        data = self._load()
        data[url] = {k: v for k, v in asdict(credentials).items() if v}
        self._write(data)
        logger.debug(f"Saved credentials for {url}")

    def delete(self, url: str) -> None:
        data = self._load()
        if data.pop(url, None) is not None:
            self._write(data)


class CredentialsProvider:
    """Turns stored credentials into pygit2 credential objects.

    Credentials are looked up once per URL and reused for every operation
    against that URL until the provider is discarded or the entry is
    rejected after an authentication failure.
    """

    def __init__(self, store: CredentialStore, repository: pygit2.Repository):
        self.store = store
        self.repository = repository
        self._cache: Dict[str, Credentials] = {}
        self._lock = threading.Lock()

    def get(self, url: str) -> Optional[Credentials]:
        with self._lock:
            if url not in self._cache:
                found = self.store.lookup(url)
                if found is None:
                    return None
                self._cache[url] = found
            return self._cache[url]

    def reject(self, url: str) -> None:
        """Forget cached credentials for url after they were refused."""
        with self._lock:
            self._cache.pop(url, None)

    def credentials_for(
        self, url: str, username_from_url: Optional[str], allowed_types
    ):
        stored = self.get(url)

        if allowed_types & CredentialType.SSH_KEY:
            if stored and stored.has_key_pair:
                return pygit2.Keypair(
                    stored.username or username_from_url or "git",
                    stored.public_key,
                    stored.private_key,
                    stored.passphrase,
                )
            if stored is None:
                logger.debug(f"Using SSH agent for {url}")
                return pygit2.KeypairFromAgent(username_from_url or "git")

        if allowed_types & CredentialType.USERPASS_PLAINTEXT:
            if stored and stored.password is not None:
                username = stored.username or username_from_url or ""
                return pygit2.UserPass(username, stored.password)

        if allowed_types & CredentialType.USERNAME:
            username = (stored and stored.username) or username_from_url
            if username:
                return pygit2.Username(username)

        raise CredentialError(f"No credentials available for {url}", url=url)


class CredentialResolver:
    """Hands out the single credentials provider of a manager."""

    def __init__(self, store: CredentialStore, repository: pygit2.Repository):
        self.store = store
        self.repository = repository
        self._provider: Optional[CredentialsProvider] = None
        self._lock = threading.Lock()

    def resolve(self, url: Optional[str] = None) -> CredentialsProvider:
        with self._lock:
            if self._provider is None:
                logger.debug("Creating credentials provider")
                self._provider = CredentialsProvider(
                    self.store, self.repository
                )
            return self._provider
