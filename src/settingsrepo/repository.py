"""Binding between a pygit2 repository and its working tree."""

import logging
from pathlib import Path
from typing import List, Optional, Union

import pygit2
from pygit2.enums import ReferenceType, RepositoryOpenFlag

from .errors import InitializationError

logger = logging.getLogger(__name__)

DOT_GIT = ".git"
HEAD = "HEAD"
R_HEADS = "refs/heads/"
R_REMOTES = "refs/remotes/"
DEFAULT_REMOTE_NAME = "origin"
DEFAULT_BRANCH = "master"

# Raised by pygit2 when a path is not a repository or cannot be read.
OPEN_ERRORS = (pygit2.GitError, KeyError, OSError, ValueError)

PathLike = Union[str, Path]


def is_valid_repository(directory: PathLike) -> bool:
    """Check whether directory is a working copy or a bare repository.

    Never mutates the directory. Failures to open are reported as False.
    """
    directory = Path(directory)
    if (directory / DOT_GIT).exists():
        return True

    # existing bare repository
    try:
        pygit2.Repository(str(directory), flags=RepositoryOpenFlag.NO_SEARCH)
    except OPEN_ERRORS:
        return False
    return True


def init_bare_repository(directory: PathLike) -> pygit2.Repository:
    """Create a bare repository (no working tree) at directory."""
    directory = Path(directory)
    logger.info(f"Creating bare repository at {directory}")
    try:
        return pygit2.init_repository(str(directory), bare=True)
    except OPEN_ERRORS as e:
        raise InitializationError(
            f"Cannot create bare repository at {directory}: {e}"
        ) from e


class RepositoryHandle:
    """Owns the repository object bound to one working tree.

    A handle is opened once. Asking it to open a different working tree
    afterwards is an error.
    """

    def __init__(self):
        self.work_tree: Optional[Path] = None
        self._repo: Optional[pygit2.Repository] = None

    @property
    def is_open(self) -> bool:
        return self._repo is not None

    @property
    def repository(self) -> pygit2.Repository:
        if self._repo is None:
            raise InitializationError("Repository is not open")
        return self._repo

    def open(self, work_tree: PathLike) -> pygit2.Repository:
        """Open the repository in work_tree, creating it on first use."""
        work_tree = Path(work_tree)

        if self._repo is not None:
            if work_tree.resolve() == self.work_tree.resolve():
                return self._repo
            raise InitializationError(
                f"Repository already bound to {self.work_tree}, "
                f"cannot rebind to {work_tree}"
            )

        try:
            if (work_tree / DOT_GIT).exists():
                repo = pygit2.Repository(
                    str(work_tree), flags=RepositoryOpenFlag.NO_SEARCH
                )
            else:
                logger.info(f"Creating repository at {work_tree}")
                repo = pygit2.init_repository(str(work_tree))
                # Settings files are stored byte for byte.
                repo.config["core.autocrlf"] = False
        except OPEN_ERRORS as e:
            raise InitializationError(
                f"Cannot open repository at {work_tree}: {e}"
            ) from e

        self.work_tree = work_tree
        self._repo = repo
        return repo

    def relative_path(self, path: PathLike) -> str:
        path = Path(path)
        if path.is_absolute():
            path = path.relative_to(self.work_tree)
        return path.as_posix()

    def stage(self, path: PathLike):
        """Record the working tree state of path in the index."""
        rel = self.relative_path(path)
        index = self.repository.index
        index.read()
        if (self.work_tree / rel).is_file():
            index.add(rel)
        elif rel in index:
            index.remove(rel)
        index.write()

    def stage_all(self) -> List[str]:
        """Stage every file in the working tree plus deletions."""
        index = self.repository.index
        index.read()
        paths = {e.path for e in index}
        for local_path in self.work_tree.rglob("*"):
            rel = local_path.relative_to(self.work_tree)
            if rel.parts[0] != DOT_GIT and local_path.is_file():
                paths.add(rel.as_posix())
        for rel in sorted(paths):
            self.stage(rel)
        return sorted(paths)

    def unstage(self, path: PathLike, is_file: bool = True):
        """Drop path (or every entry below it) from the index.

        The working tree is left untouched.
        """
        rel = self.relative_path(path)
        index = self.repository.index
        index.read()
        if is_file:
            if rel in index:
                index.remove(rel)
        else:
            prefix = rel.rstrip("/") + "/"
            for entry_path in [e.path for e in index]:
                if entry_path.startswith(prefix):
                    index.remove(entry_path)
        index.write()

    def config_string(self, key: str) -> Optional[str]:
        try:
            value = self.repository.config[key]
        except KeyError:
            return None
        if value is None or not str(value).strip():
            return None
        return str(value)

    def remote_url(self, remote: str = DEFAULT_REMOTE_NAME) -> Optional[str]:
        return self.config_string(f"remote.{remote}.url")

    def has_upstream(self) -> bool:
        return self.remote_url() is not None

    def head_ref_name(self) -> Optional[str]:
        """Return the leaf ref a symbolic HEAD points to, or None.

        The leaf may not exist yet when the branch is unborn.
        """
        repo = self.repository
        ref = repo.references.get(HEAD)
        if ref is None or ref.type != ReferenceType.SYMBOLIC:
            return None

        target = ref.target
        seen = {HEAD}
        while target not in seen:
            seen.add(target)
            ref = repo.references.get(target)
            if ref is None or ref.type != ReferenceType.SYMBOLIC:
                return target
            target = ref.target
        return None

    def head_branch(self) -> Optional[str]:
        """Short name of the current branch, if HEAD is on one."""
        name = self.head_ref_name()
        if name and name.startswith(R_HEADS):
            return name[len(R_HEADS):]
        return None

    def set_upstream(
        self,
        url: Optional[str],
        branch: Optional[str] = None,
        remote: str = DEFAULT_REMOTE_NAME,
    ):
        """Point the current branch at url, or remove the remote."""
        repo = self.repository
        config = repo.config
        local_branch = self.head_branch() or DEFAULT_BRANCH
        remote_names = list(repo.remotes.names())

        if url is None or not url.strip():
            logger.debug("Unset remote")
            if remote in remote_names:
                repo.remotes.delete(remote)
            self._unset(
                f"branch.{local_branch}.remote",
                f"branch.{local_branch}.merge",
            )
            return

        branch = branch or local_branch
        fetch_refspec = f"+{R_HEADS}{branch}:{R_REMOTES}{remote}/{branch}"

        logger.debug(f"Set remote {url}")
        if remote in remote_names:
            repo.remotes.set_url(remote, url)
            if fetch_refspec not in list(repo.remotes[remote].fetch_refspecs):
                repo.remotes.add_fetch(remote, fetch_refspec)
        else:
            repo.remotes.create(remote, url, fetch_refspec)

        config[f"branch.{local_branch}.remote"] = remote
        config[f"branch.{local_branch}.merge"] = f"{R_HEADS}{branch}"

    def _unset(self, *keys: str):
        config = self.repository.config
        for key in keys:
            if key in config:
                del config[key]
