"""Pushing local history to the configured remote."""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Optional

import pygit2
from pygit2.enums import ReferenceType

from .credentials import CredentialResolver
from .errors import CredentialError, TransportError, classify_transport_error
from .progress import NullProgressSink, ProgressSink, check_cancelled
from .repository import DEFAULT_REMOTE_NAME, RepositoryHandle
from .transport import (
    Operation,
    OperationResult,
    RefUpdate,
    RefUpdateStatus,
    SyncCallbacks,
    Transport,
    open_transports,
)

logger = logging.getLogger(__name__)

REJECTION_MARKERS = (
    "reject",
    "non-fast-forward",
    "non-fastforwardable",
    "not present locally",
    "fetch first",
    "stale info",
)


def is_rejection(message: Optional[str]) -> bool:
    return bool(message) and any(m in message.lower() for m in REJECTION_MARKERS)


@dataclass
class PushResult:
    refspecs: List[str] = field(default_factory=list)
    results: List[OperationResult] = field(default_factory=list)

    @property
    def ref_updates(self) -> List[RefUpdate]:
        return [u for r in self.results for u in r.ref_updates]

    @property
    def rejected(self) -> List[RefUpdate]:
        return [
            u
            for u in self.ref_updates
            if u.status in (RefUpdateStatus.REJECTED, RefUpdateStatus.ERROR)
        ]


def resolve_push_refspecs(
    handle: RepositoryHandle, remote: str = DEFAULT_REMOTE_NAME
) -> List[str]:
    """Configured push refspecs, or the branch a symbolic HEAD points to.

    Returns an empty list when nothing is configured and HEAD is detached,
    missing or unborn.
    """
    repo = handle.repository
    try:
        refspecs = list(repo.remotes[remote].push_refspecs)
    except KeyError:
        refspecs = []

    if not refspecs:
        leaf = handle.head_ref_name()
        if leaf is not None and repo.references.get(leaf) is not None:
            refspecs.append(leaf)
        return refspecs

    expanded: List[str] = []
    for refspec in refspecs:
        expanded.extend(expand_refspec(repo, refspec))
    return list(dict.fromkeys(expanded))


def expand_refspec(repo: pygit2.Repository, refspec: str) -> List[str]:
    """Turn a wildcard refspec into one concrete refspec per matching ref.

    Refspecs without a wildcard are returned unchanged. Symbolic refs are
    skipped.
    """
    force = "+" if refspec.startswith("+") else ""
    source, _, target = refspec.lstrip("+").partition(":")
    if "*" not in source:
        return [refspec]

    target = target or source
    src_prefix, _, src_suffix = source.partition("*")
    dst_prefix, _, dst_suffix = target.partition("*")

    expanded = []
    for name in sorted(repo.references):
        if not (name.startswith(src_prefix) and name.endswith(src_suffix)):
            continue
        if len(name) < len(src_prefix) + len(src_suffix):
            continue
        if repo.references[name].type != ReferenceType.DIRECT:
            continue
        match = name[len(src_prefix):len(name) - len(src_suffix)]
        expanded.append(f"{force}{name}:{dst_prefix}{match}{dst_suffix}")
    return expanded


def destination_ref(refspec: str) -> str:
    spec = refspec.lstrip("+")
    source, _, target = spec.partition(":")
    return target or source


def collect_ref_updates(
    refspecs: List[str], callbacks: SyncCallbacks
) -> List[RefUpdate]:
    """One RefUpdate per attempted refspec.

    Refs the server did not report were already up to date.
    """
    updates = []
    for refspec in refspecs:
        target = destination_ref(refspec)
        if target not in callbacks.pushed_refs:
            updates.append(RefUpdate(target, RefUpdateStatus.UP_TO_DATE))
            continue

        message = callbacks.pushed_refs[target]
        if message is None:
            status = RefUpdateStatus.OK
        elif is_rejection(message):
            status = RefUpdateStatus.REJECTED
        else:
            status = RefUpdateStatus.ERROR
        updates.append(RefUpdate(target, status, message))
    return updates


def raise_classified(error: TransportError, resolver: CredentialResolver):
    """Re-raise a transport failure, wrapped when the host needs context."""
    wrapped = classify_transport_error(error)
    if isinstance(wrapped, CredentialError) and error.url:
        resolver.resolve(error.url).reject(error.url)
    if wrapped is error:
        raise error
    raise wrapped from error


def classified_transports(
    transports: Iterable[Transport], resolver: CredentialResolver
) -> Iterator[Transport]:
    """Iterate transports, classifying failures to open the next one."""
    iterator = iter(transports)
    while True:
        try:
            transport = next(iterator)
        except StopIteration:
            return
        except TransportError as e:
            raise_classified(e, resolver)
        yield transport


def log_push_result(result: OperationResult, log: logging.Logger):
    """Emit server messages and ref updates when debugging."""
    if not log.isEnabledFor(logging.DEBUG):
        return

    messages = "\n".join(result.messages)
    if messages.strip():
        log.debug(messages)
    for update in result.ref_updates:
        log.debug(str(update))


class PushCoordinator:
    def __init__(
        self,
        handle: RepositoryHandle,
        resolver: CredentialResolver,
        remote: str = DEFAULT_REMOTE_NAME,
    ):
        self.handle = handle
        self.resolver = resolver
        self.remote = remote

    def push(self, progress: Optional[ProgressSink] = None) -> PushResult:
        """Push to every URL of the remote.

        Rejected ref updates do not fail the push; they are returned and
        logged. Transport failures are classified and raised after the
        transport is closed.
        """
        logger.debug("Push")
        progress = progress or NullProgressSink()

        refspecs = resolve_push_refspecs(self.handle, self.remote)
        result = PushResult(refspecs=refspecs)
        if not refspecs:
            logger.debug("Nothing to push")
            return result

        repo = self.handle.repository
        transports = open_transports(repo, self.remote, Operation.PUSH)
        for transport in classified_transports(transports, self.resolver):
            try:
                check_cancelled(progress)
                provider = self.resolver.resolve(transport.url)
                transport.set_credentials(provider)
                callbacks = transport.callbacks(progress)

                progress.report(f"Pushing to {transport.url}")
                transport.push(refspecs, callbacks)

                outcome = OperationResult(
                    url=transport.url,
                    messages=list(callbacks.messages),
                    ref_updates=collect_ref_updates(refspecs, callbacks),
                )
                result.results.append(outcome)
                log_push_result(outcome, logger)
            except TransportError as e:
                if classify_transport_error(e) is not e or not is_rejection(str(e)):
                    raise_classified(e, self.resolver)
                # refused before sending: the remote has commits we lack
                result.results.append(
                    OperationResult(
                        url=transport.url,
                        ref_updates=[
                            RefUpdate(
                                destination_ref(r), RefUpdateStatus.REJECTED, str(e)
                            )
                            for r in refspecs
                        ],
                    )
                )
            finally:
                transport.close()

        for update in result.rejected:
            logger.warning(
                f"Push of {update.remote_name} was not accepted: {update.message}"
            )
        return result
