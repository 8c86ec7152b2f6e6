"""Tests for RepositoryManager."""

from unittest.mock import patch

import pytest

from settingsrepo.credentials import MemoryCredentialStore
from settingsrepo.errors import (
    CancelledError,
    ConflictError,
    ErrorKind,
    InitializationError,
)
from settingsrepo.manager import RepositoryManager
from settingsrepo.pull import MergeStatus, PullResult
from settingsrepo.push import PushResult


def _manager(tmp_path):
    manager = RepositoryManager(
        tmp_path / "settings", MemoryCredentialStore(), app_name="Test IDE"
    )
    config = manager.repository.config
    config["user.name"] = "Jamie Doe"
    config["user.email"] = "jamie@example.com"
    return manager


class TestLifecycle:
    """Tests for opening and creating repositories."""

    def test_opens_new_repository(self, tmp_path):
        """Constructing a manager creates the repository."""
        manager = _manager(tmp_path)

        assert RepositoryManager.is_valid_repository(manager.work_tree)
        assert not manager.has_upstream()

    def test_initialization_failure(self, tmp_path):
        """An unusable directory raises InitializationError."""
        blocker = tmp_path / "blocker"
        blocker.write_text("file")

        with pytest.raises(InitializationError):
            RepositoryManager(blocker / "settings", MemoryCredentialStore())

    def test_init_bare_repository(self, tmp_path):
        """init_repository creates a bare repository."""
        repo = RepositoryManager.init_repository(tmp_path / "remote.git")

        assert repo.is_bare
        assert RepositoryManager.is_valid_repository(tmp_path / "remote.git")

    def test_single_credentials_provider(self, tmp_path):
        """The manager hands out one provider."""
        manager = _manager(tmp_path)

        assert manager.credentials_provider() is manager.credentials_provider()

    def test_upstream(self, tmp_path):
        """set_upstream configures and removes the remote."""
        manager = _manager(tmp_path)

        manager.set_upstream("/srv/settings.git")
        assert manager.remote_url() == "/srv/settings.git"

        manager.set_upstream(None)
        assert manager.remote_url() is None


class TestCommit:
    def test_stage_and_commit(self, tmp_path):
        """Staged files are committed with the application as committer."""
        manager = _manager(tmp_path)
        (manager.work_tree / "ui.xml").write_text("<ui/>")
        manager.stage("ui.xml")

        result = manager.commit()

        assert result.added == ["ui.xml"]
        commit = manager.repository[result.commit_id]
        assert commit.committer.name == "Test IDE"
        assert commit.author.name == "Jamie Doe"

    def test_build_commit_request(self, tmp_path):
        """The request pairs author and application committer."""
        request = _manager(tmp_path).build_commit_request()

        assert request.author.email == request.committer.email
        assert request.committer.name == "Test IDE"

    def test_unstage(self, tmp_path):
        """Unstaged files are left out of the next commit."""
        manager = _manager(tmp_path)
        (manager.work_tree / "ui.xml").write_text("<ui/>")
        manager.stage("ui.xml")
        manager.unstage("ui.xml")

        assert manager.commit() is None


class TestSync:
    """Tests for sync outcomes."""

    def test_without_upstream_only_commits(self, tmp_path):
        """Without a remote sync only commits."""
        manager = _manager(tmp_path)
        (manager.work_tree / "ui.xml").write_text("<ui/>")
        manager.stage("ui.xml")

        outcome = manager.sync()

        assert outcome.ok
        assert outcome.commit.added == ["ui.xml"]
        assert outcome.pull is None
        assert outcome.push is None

    def test_runs_pull_then_push(self, tmp_path):
        """With a remote sync pulls before pushing."""
        manager = _manager(tmp_path)
        manager.set_upstream("/srv/settings.git")
        calls = []

        with patch.object(
            manager.puller,
            "pull",
            side_effect=lambda progress: calls.append("pull")
            or PullResult(MergeStatus.UP_TO_DATE),
        ), patch.object(
            manager.pusher,
            "push",
            side_effect=lambda progress: calls.append("push") or PushResult(),
        ):
            outcome = manager.sync()

        assert outcome.ok
        assert calls == ["pull", "push"]

    def test_conflict_outcome(self, tmp_path):
        """A conflict stops the sync before pushing."""
        manager = _manager(tmp_path)
        manager.set_upstream("/srv/settings.git")
        error = ConflictError("diverged", paths=["ui.xml"])

        with patch.object(manager.puller, "pull", side_effect=error), patch.object(
            manager.pusher, "push"
        ) as push:
            outcome = manager.sync()

        assert outcome.kind is ErrorKind.CONFLICT
        assert outcome.error is error
        assert not outcome.ok
        push.assert_not_called()

    def test_cancelled_outcome(self, tmp_path):
        """Cancellation is reported as its own kind."""
        manager = _manager(tmp_path)

        with patch.object(
            manager.committer, "commit", side_effect=CancelledError("stop")
        ):
            outcome = manager.sync()

        assert outcome.kind is ErrorKind.CANCELLED

    def test_unexpected_errors_propagate(self, tmp_path):
        """Errors outside the taxonomy are not swallowed."""
        manager = _manager(tmp_path)

        with patch.object(
            manager.committer, "commit", side_effect=RuntimeError("bug")
        ):
            with pytest.raises(RuntimeError):
                manager.sync()
