"""Fetching from the remote and integrating it into the working tree."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

import pygit2
from pygit2.enums import CheckoutNotify, CheckoutStrategy, MergeAnalysis

from .commit import collect_tree_files
from .credentials import CredentialResolver
from .errors import ConflictError, TransportError
from .progress import NullProgressSink, ProgressSink, check_cancelled
from .push import classified_transports, raise_classified
from .repository import DEFAULT_REMOTE_NAME, R_HEADS, R_REMOTES, RepositoryHandle
from .transport import Operation, OperationResult, open_transports

logger = logging.getLogger(__name__)


class MergeStatus(Enum):
    NO_REMOTE = "no-remote"
    NO_REMOTE_BRANCH = "no-remote-branch"
    UP_TO_DATE = "up-to-date"
    FAST_FORWARD = "fast-forward"


@dataclass
class PullResult:
    status: MergeStatus
    fetched: List[OperationResult] = field(default_factory=list)
    commit_id: Optional[str] = None
    updated_paths: List[str] = field(default_factory=list)


class CheckoutConflictCollector(pygit2.CheckoutCallbacks):
    """Collects paths whose local changes block a checkout."""

    def __init__(self):
        super().__init__()
        self.conflicts: List[str] = []

    def checkout_notify_flags(self) -> int:
        return CheckoutNotify.CONFLICT

    def checkout_notify(self, why, path, baseline, target, workdir):
        if why == CheckoutNotify.CONFLICT:
            self.conflicts.append(path)


def upstream_refs(
    handle: RepositoryHandle, remote: str = DEFAULT_REMOTE_NAME
) -> Optional[Tuple[str, str]]:
    """(local branch ref, remote-tracking ref) for the current branch."""
    local_ref = handle.head_ref_name()
    if local_ref is None or not local_ref.startswith(R_HEADS):
        return None

    branch = local_ref[len(R_HEADS):]
    merge_ref = handle.config_string(f"branch.{branch}.merge") or local_ref
    if merge_ref.startswith(R_HEADS):
        merge_ref = merge_ref[len(R_HEADS):]
    return local_ref, f"{R_REMOTES}{remote}/{merge_ref}"


class PullCoordinator:
    def __init__(
        self,
        handle: RepositoryHandle,
        resolver: CredentialResolver,
        remote: str = DEFAULT_REMOTE_NAME,
    ):
        self.handle = handle
        self.resolver = resolver
        self.remote = remote

    def pull(self, progress: Optional[ProgressSink] = None) -> PullResult:
        """Fetch and fast-forward the current branch.

        Raises ConflictError when histories diverged or local changes
        would be overwritten; the working tree is not touched in that case.
        """
        logger.debug("Pull")
        progress = progress or NullProgressSink()

        if not self.handle.has_upstream():
            logger.debug("No upstream configured, nothing to pull")
            return PullResult(MergeStatus.NO_REMOTE)

        fetched = self.fetch(progress)
        result = self.merge(progress)
        result.fetched = fetched
        return result

    def fetch(self, progress: ProgressSink) -> List[OperationResult]:
        repo = self.handle.repository
        results = []
        transports = open_transports(repo, self.remote, Operation.FETCH)
        for transport in classified_transports(transports, self.resolver):
            try:
                check_cancelled(progress)
                transport.set_credentials(self.resolver.resolve(transport.url))
                callbacks = transport.callbacks(progress)

                progress.report(f"Fetching from {transport.url}")
                transport.fetch(callbacks)
                results.append(
                    OperationResult(url=transport.url, messages=list(callbacks.messages))
                )
            except TransportError as e:
                raise_classified(e, self.resolver)
            finally:
                transport.close()
        return results

    def merge(self, progress: ProgressSink) -> PullResult:
        repo = self.handle.repository
        refs = upstream_refs(self.handle, self.remote)
        if refs is None:
            raise ConflictError("HEAD is not on a branch, cannot pull")
        local_ref, tracking_ref = refs

        remote_ref = repo.references.get(tracking_ref)
        if remote_ref is None:
            logger.info(f"Remote branch {tracking_ref} not found")
            return PullResult(MergeStatus.NO_REMOTE_BRANCH)
        target = remote_ref.peel(pygit2.Commit)

        if repo.head_is_unborn:
            return self._fast_forward(local_ref, None, target, progress)

        head = repo.head.peel(pygit2.Commit)
        if head.id == target.id:
            return PullResult(MergeStatus.UP_TO_DATE, commit_id=str(head.id))

        analysis, _ = repo.merge_analysis(target.id)
        if analysis & MergeAnalysis.UP_TO_DATE:
            return PullResult(MergeStatus.UP_TO_DATE, commit_id=str(head.id))
        if analysis & MergeAnalysis.FASTFORWARD:
            return self._fast_forward(local_ref, head, target, progress)

        raise ConflictError(
            f"Local and remote histories have diverged ({tracking_ref})",
            paths=self._diverged_paths(head, target),
        )

    def _fast_forward(
        self,
        local_ref: str,
        head: Optional[pygit2.Commit],
        target: pygit2.Commit,
        progress: ProgressSink,
    ) -> PullResult:
        repo = self.handle.repository
        before = collect_tree_files(repo, head.tree if head else None)
        after = collect_tree_files(repo, target.tree)
        updated = sorted(
            p for p in set(before) | set(after) if before.get(p) != after.get(p)
        )

        progress.report(f"Updating to {str(target.id)[:7]}")
        collector = CheckoutConflictCollector()
        try:
            repo.checkout_tree(
                target, strategy=CheckoutStrategy.SAFE, callbacks=collector
            )
        except pygit2.GitError as e:
            raise ConflictError(
                f"Local changes would be overwritten by pull: {e}",
                paths=collector.conflicts,
            ) from e

        repo.references.create(local_ref, target.id, force=True)
        logger.info(f"Fast-forwarded {local_ref} to {str(target.id)[:7]}")
        return PullResult(
            MergeStatus.FAST_FORWARD,
            commit_id=str(target.id),
            updated_paths=updated,
        )

    def _diverged_paths(
        self, head: pygit2.Commit, target: pygit2.Commit
    ) -> List[str]:
        """Paths changed on both sides since the common ancestor."""
        repo = self.handle.repository
        base_id = repo.merge_base(head.id, target.id)
        base = collect_tree_files(repo, repo[base_id].tree if base_id else None)
        ours = collect_tree_files(repo, head.tree)
        theirs = collect_tree_files(repo, target.tree)

        def changed(side):
            return {p for p in set(base) | set(side) if base.get(p) != side.get(p)}

        return sorted(changed(ours) & changed(theirs))
