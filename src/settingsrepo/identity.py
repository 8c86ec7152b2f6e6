"""Author and committer identities for settings commits."""

import logging
from typing import Optional

import pygit2

from .system import Environment

logger = logging.getLogger(__name__)


def author_signature(
    repository: pygit2.Repository, env: Optional[Environment] = None
) -> pygit2.Signature:
    """Author from user.name/user.email, else the login user."""
    try:
        return repository.default_signature
    except (KeyError, pygit2.GitError):
        env = env or Environment()
        logger.debug(
            f"No user identity configured, using {env.user} <{env.email}>"
        )
        return pygit2.Signature(env.user, env.email)


def committer_signature(
    app_name: str, author: pygit2.Signature
) -> pygit2.Signature:
    return pygit2.Signature(app_name, author.email)
