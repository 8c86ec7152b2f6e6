"""Commit construction for the settings repository."""

import logging
import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

import pygit2
from pygit2.enums import FileMode

from .identity import author_signature, committer_signature
from .progress import NullProgressSink, ProgressSink
from .repository import HEAD, RepositoryHandle
from .system import Environment

logger = logging.getLogger(__name__)


@dataclass
class CommitRequest:
    author: pygit2.Signature
    committer: pygit2.Signature
    message: Optional[str] = None


@dataclass
class CommitResult:
    commit_id: str
    message: str
    added: List[str] = field(default_factory=list)
    modified: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)

    @property
    def paths(self) -> List[str]:
        return sorted(self.added + self.modified + self.deleted)


def collect_tree_files(
    repo: pygit2.Repository, tree: Optional[pygit2.Tree], prefix: str = ""
) -> Dict[str, Tuple[pygit2.Oid, int]]:
    """Map every file path in tree to its (blob id, file mode)."""
    files: Dict[str, Tuple[pygit2.Oid, int]] = {}
    if tree is None:
        return files
    for entry in tree:
        path = f"{prefix}{entry.name}"
        if entry.type_str == "tree":
            files.update(collect_tree_files(repo, repo[entry.id], f"{path}/"))
        else:
            files[path] = (entry.id, entry.filemode)
    return files


def build_commit_message(
    added: List[str], modified: List[str], deleted: List[str]
) -> str:
    count = len(added) + len(modified) + len(deleted)
    lines = [f"Update settings ({count} file{'s' if count != 1 else ''})"]
    details = [
        ("added", added),
        ("modified", modified),
        ("deleted", deleted),
    ]
    body = [f"{label}: {', '.join(paths)}" for label, paths in details if paths]
    if body:
        lines.append("")
        lines.extend(body)
    return "\n".join(lines)


def _file_mode(path: Path) -> int:
    if os.access(path, os.X_OK):
        return FileMode.BLOB_EXECUTABLE
    return FileMode.BLOB


class CommitOrchestrator:
    """Builds commits while holding the manager's commit lock.

    Only commit construction is serialized. Push and pull read whatever
    history exists when they start and do not take the lock.
    """

    def __init__(
        self,
        handle: RepositoryHandle,
        lock: threading.Lock,
        app_name: str,
        env: Optional[Environment] = None,
    ):
        self.handle = handle
        self.lock = lock
        self.app_name = app_name
        self.env = env

    def build_commit_request(self) -> CommitRequest:
        author = author_signature(self.handle.repository, self.env)
        committer = committer_signature(self.app_name, author)
        return CommitRequest(author=author, committer=committer)

    def commit(
        self,
        progress: Optional[ProgressSink] = None,
        paths: Optional[Iterable[str]] = None,
    ) -> Optional[CommitResult]:
        """Commit the index, or only the given paths.

        Returns None when there is nothing to commit.
        """
        progress = progress or NullProgressSink()
        with self.lock:
            if paths is None:
                return self._commit_index(progress)
            return self._commit_paths(list(paths), progress)

    def _head_commit(self) -> Optional[pygit2.Commit]:
        repo = self.handle.repository
        if repo.head_is_unborn:
            return None
        return repo.head.peel(pygit2.Commit)

    def _commit_index(self, progress: ProgressSink) -> Optional[CommitResult]:
        index = self.handle.repository.index
        index.read()
        tree_id = index.write_tree()
        return self._finish(tree_id, self._head_commit(), progress)

    def _commit_paths(
        self, paths: List[str], progress: ProgressSink
    ) -> Optional[CommitResult]:
        repo = self.handle.repository
        work_tree = self.handle.work_tree
        parent = self._head_commit()

        index = pygit2.Index()
        if parent is not None:
            index.read_tree(parent.tree)

        selected = self._expand_paths(paths, index)
        for rel in selected:
            local_path = work_tree / rel
            if local_path.is_file():
                blob_id = repo.create_blob(local_path.read_bytes())
                index.add(pygit2.IndexEntry(rel, blob_id, _file_mode(local_path)))
            elif rel in index:
                index.remove(rel)

        tree_id = index.write_tree(repo)
        result = self._finish(tree_id, parent, progress)

        for rel in selected:
            self.handle.stage(rel)
        return result

    def _expand_paths(self, paths: List[str], index: pygit2.Index) -> List[str]:
        """Resolve directories, including deleted ones, to their files."""
        work_tree = self.handle.work_tree
        selected: List[str] = []
        for path in paths:
            rel = self.handle.relative_path(path)
            local_path = work_tree / rel
            if local_path.is_file():
                selected.append(rel)
                continue

            prefix = rel.rstrip("/") + "/"
            found = {e.path for e in index if e.path.startswith(prefix)}
            if local_path.is_dir():
                found.update(
                    p.relative_to(work_tree).as_posix()
                    for p in local_path.rglob("*")
                    if p.is_file() and ".git" not in p.relative_to(work_tree).parts
                )
            if found:
                selected.extend(sorted(found))
            else:
                selected.append(rel)
        return list(dict.fromkeys(selected))

    def _finish(
        self,
        tree_id: pygit2.Oid,
        parent: Optional[pygit2.Commit],
        progress: ProgressSink,
    ) -> Optional[CommitResult]:
        repo = self.handle.repository
        old = collect_tree_files(repo, parent.tree if parent else None)
        new = collect_tree_files(repo, repo[tree_id])

        added = sorted(set(new) - set(old))
        deleted = sorted(set(old) - set(new))
        modified = sorted(p for p in set(new) & set(old) if new[p] != old[p])

        if not (added or modified or deleted):
            logger.debug("Nothing to commit")
            return None

        request = self.build_commit_request()
        message = request.message or build_commit_message(
            added, modified, deleted
        )

        progress.report("Committing settings")
        parents = [parent.id] if parent is not None else []
        commit_id = repo.create_commit(
            HEAD, request.author, request.committer, message, tree_id, parents
        )
        logger.info(f"Created commit {str(commit_id)[:7]}")

        return CommitResult(
            commit_id=str(commit_id),
            message=message,
            added=added,
            modified=modified,
            deleted=deleted,
        )
