"""Tests for RepositoryHandle and repository validity checks."""

import pygit2
import pytest

from settingsrepo.errors import InitializationError
from settingsrepo.repository import (
    RepositoryHandle,
    init_bare_repository,
    is_valid_repository,
)


def _open(tmp_path, name="settings"):
    handle = RepositoryHandle()
    handle.open(tmp_path / name)
    return handle


class TestOpen:
    """Tests for opening and creating repositories."""

    def test_creates_missing_work_tree(self, tmp_path):
        """Creates the repository when the directory does not exist."""
        handle = _open(tmp_path)

        assert handle.is_open
        assert (tmp_path / "settings" / ".git").is_dir()
        assert handle.work_tree == tmp_path / "settings"

    def test_fresh_repository_disables_autocrlf(self, tmp_path):
        """A newly created repository stores files byte for byte."""
        handle = _open(tmp_path)

        assert handle.repository.config.get_bool("core.autocrlf") is False

    def test_opens_existing_repository(self, tmp_path):
        """Reopening finds the same repository."""
        first = _open(tmp_path)
        (tmp_path / "settings" / "a.xml").write_text("<a/>")
        first.stage("a.xml")

        second = _open(tmp_path)

        assert "a.xml" in second.repository.index

    def test_reopen_same_directory_returns_repository(self, tmp_path):
        """Opening the bound directory again is allowed."""
        handle = _open(tmp_path)
        repo = handle.repository

        assert handle.open(tmp_path / "settings") is repo

    def test_rebind_raises(self, tmp_path):
        """A handle cannot be bound to a second working tree."""
        handle = _open(tmp_path)

        with pytest.raises(InitializationError):
            handle.open(tmp_path / "other")

    def test_unusable_location_raises(self, tmp_path):
        """Failure to create the repository is an InitializationError."""
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")

        with pytest.raises(InitializationError):
            RepositoryHandle().open(blocker / "settings")

    def test_repository_before_open_raises(self):
        """Accessing the repository of an unopened handle fails."""
        with pytest.raises(InitializationError):
            RepositoryHandle().repository


class TestInitBareRepository:
    """Tests for init_bare_repository."""

    def test_creates_bare_repository(self, tmp_path):
        """Creates a repository without a working tree."""
        repo = init_bare_repository(tmp_path / "remote.git")

        assert repo.is_bare
        assert (tmp_path / "remote.git" / "HEAD").exists()

    def test_failure_raises(self, tmp_path):
        """I/O failures are reported as InitializationError."""
        blocker = tmp_path / "blocker"
        blocker.write_text("file")

        with pytest.raises(InitializationError):
            init_bare_repository(blocker / "remote.git")


class TestIsValidRepository:
    """Tests for is_valid_repository."""

    def test_working_copy_is_valid(self, tmp_path):
        """A freshly initialized working copy is valid."""
        _open(tmp_path)

        assert is_valid_repository(tmp_path / "settings") is True

    def test_bare_repository_is_valid(self, tmp_path):
        """A freshly created bare repository is valid."""
        init_bare_repository(tmp_path / "remote.git")

        assert is_valid_repository(tmp_path / "remote.git") is True

    def test_empty_directory_is_not_valid(self, tmp_path):
        """An empty unrelated directory is not a repository."""
        empty = tmp_path / "empty"
        empty.mkdir()

        assert is_valid_repository(empty) is False

    def test_unrelated_files_are_not_valid(self, tmp_path):
        """A directory with unrelated files only is not a repository."""
        folder = tmp_path / "folder"
        folder.mkdir()
        (folder / "notes.txt").write_text("hello")
        (folder / "sub").mkdir()

        assert is_valid_repository(folder) is False

    def test_missing_directory_is_not_valid(self, tmp_path):
        """A missing path is not a repository."""
        assert is_valid_repository(tmp_path / "missing") is False

    def test_check_does_not_create_anything(self, tmp_path):
        """Checking validity leaves the directory untouched."""
        folder = tmp_path / "folder"
        folder.mkdir()

        is_valid_repository(folder)

        assert list(folder.iterdir()) == []


class TestIndex:
    """Tests for stage and unstage."""

    def test_stage_adds_file(self, tmp_path):
        """Staging records the file in the index."""
        handle = _open(tmp_path)
        (tmp_path / "settings" / "a.xml").write_text("<a/>")

        handle.stage("a.xml")

        assert "a.xml" in handle.repository.index

    def test_restaging_has_no_duplicate_effect(self, tmp_path):
        """Staging the same path twice leaves one index entry."""
        handle = _open(tmp_path)
        (tmp_path / "settings" / "a.xml").write_text("<a/>")

        handle.stage("a.xml")
        handle.stage("a.xml")

        paths = [e.path for e in handle.repository.index]
        assert paths == ["a.xml"]

    def test_stage_absolute_path(self, tmp_path):
        """Absolute paths inside the working tree are accepted."""
        handle = _open(tmp_path)
        target = tmp_path / "settings" / "options" / "editor.xml"
        target.parent.mkdir()
        target.write_text("<editor/>")

        handle.stage(target)

        assert "options/editor.xml" in handle.repository.index

    def test_stage_deleted_file_removes_entry(self, tmp_path):
        """Staging a path that no longer exists removes it."""
        handle = _open(tmp_path)
        target = tmp_path / "settings" / "a.xml"
        target.write_text("<a/>")
        handle.stage("a.xml")
        target.unlink()

        handle.stage("a.xml")

        assert "a.xml" not in handle.repository.index

    def test_unstage_file_keeps_working_tree(self, tmp_path):
        """Unstaging removes the entry but not the file."""
        handle = _open(tmp_path)
        target = tmp_path / "settings" / "a.xml"
        target.write_text("<a/>")
        handle.stage("a.xml")

        handle.unstage("a.xml", is_file=True)

        assert "a.xml" not in handle.repository.index
        assert target.exists()

    def test_unstage_directory(self, tmp_path):
        """Unstaging a directory drops every entry below it."""
        handle = _open(tmp_path)
        options = tmp_path / "settings" / "options"
        options.mkdir()
        for name in ("a.xml", "b.xml"):
            (options / name).write_text(name)
            handle.stage(f"options/{name}")
        (tmp_path / "settings" / "keep.xml").write_text("keep")
        handle.stage("keep.xml")

        handle.unstage("options", is_file=False)

        paths = [e.path for e in handle.repository.index]
        assert paths == ["keep.xml"]

    def test_unstage_unknown_path_is_noop(self, tmp_path):
        """Unstaging a path that is not staged does nothing."""
        handle = _open(tmp_path)

        handle.unstage("missing.xml")

        assert len(handle.repository.index) == 0

    def test_stage_all(self, tmp_path):
        """stage_all picks up new files and deletions."""
        handle = _open(tmp_path)
        gone = tmp_path / "settings" / "gone.xml"
        gone.write_text("gone")
        handle.stage("gone.xml")
        gone.unlink()
        (tmp_path / "settings" / "new.xml").write_text("new")

        handle.stage_all()

        paths = [e.path for e in handle.repository.index]
        assert paths == ["new.xml"]


class TestHead:
    """Tests for HEAD inspection."""

    def test_unborn_head_is_symbolic(self, tmp_path):
        """A fresh repository's HEAD points at an unborn branch."""
        handle = _open(tmp_path)

        name = handle.head_ref_name()

        assert name.startswith("refs/heads/")
        assert handle.head_branch() == name[len("refs/heads/"):]

    def test_detached_head(self, tmp_path):
        """A detached HEAD has no leaf ref."""
        handle = _open(tmp_path)
        repo = handle.repository
        sig = pygit2.Signature("Test", "test@example.com")
        tree = repo.index.write_tree()
        commit_id = repo.create_commit("HEAD", sig, sig, "init", tree, [])

        repo.set_head(commit_id)

        assert handle.head_ref_name() is None
        assert handle.head_branch() is None


class TestUpstream:
    """Tests for remote configuration."""

    def test_no_upstream_by_default(self, tmp_path):
        """A fresh repository has no remote."""
        handle = _open(tmp_path)

        assert handle.remote_url() is None
        assert handle.has_upstream() is False

    def test_set_upstream(self, tmp_path):
        """Setting the upstream configures remote and tracking branch."""
        handle = _open(tmp_path)
        branch = handle.head_branch()

        handle.set_upstream("https://example.com/settings.git", "main")

        config = handle.repository.config
        assert handle.remote_url() == "https://example.com/settings.git"
        assert handle.has_upstream() is True
        assert config[f"branch.{branch}.remote"] == "origin"
        assert config[f"branch.{branch}.merge"] == "refs/heads/main"
        remote = handle.repository.remotes["origin"]
        assert "+refs/heads/main:refs/remotes/origin/main" in list(
            remote.fetch_refspecs
        )

    def test_set_upstream_twice_updates_url(self, tmp_path):
        """Setting a new URL replaces the old one."""
        handle = _open(tmp_path)
        handle.set_upstream("https://example.com/one.git")

        handle.set_upstream("https://example.com/two.git")

        assert handle.remote_url() == "https://example.com/two.git"

    def test_unset_upstream(self, tmp_path):
        """An empty URL removes the remote and tracking config."""
        handle = _open(tmp_path)
        branch = handle.head_branch()
        handle.set_upstream("https://example.com/settings.git")

        handle.set_upstream("  ")

        assert handle.has_upstream() is False
        assert f"branch.{branch}.merge" not in handle.repository.config

    def test_blank_url_counts_as_unset(self, tmp_path):
        """A blank url value is treated as no remote."""
        handle = _open(tmp_path)
        handle.repository.config["remote.origin.url"] = " "

        assert handle.remote_url() is None
