"""Tests for low-level git operations."""

import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from conftest import commit_file, git
from gitxn.errors import GitError
from gitxn.scm import git as gitops
from gitxn.scm.protocol import CommitAction, TagAction


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    """Create a temporary Git repository with one commit."""
    repo_dir = tmp_path / "repo"
    repo_dir.mkdir()

    subprocess.run(["git", "init"], cwd=repo_dir, check=True, capture_output=True)
    gitops.configure_identity(repo_dir, "Test User", "test@example.com")
    commit_file(repo_dir, "README.md", "# Test\n", message="Initial")
    return repo_dir


class TestIdentity:
    def test_configure_identity(self, git_repo: Path) -> None:
        gitops.configure_identity(git_repo, "Someone", "someone@example.com")

        assert git(git_repo, "config", "user.name") == "Someone"
        assert git(git_repo, "config", "user.email") == "someone@example.com"


class TestNotesRef:
    def test_resolve_short_name(self, git_repo: Path) -> None:
        assert gitops.resolve_notes_ref(git_repo, "gitxn") == "refs/notes/gitxn"

    def test_resolve_full_name(self, git_repo: Path) -> None:
        assert gitops.resolve_notes_ref(git_repo, "refs/notes/other") == "refs/notes/other"


class TestHasChanges:
    """Tests for has_changes."""

    def test_clean(self, git_repo: Path) -> None:
        assert gitops.has_changes(git_repo, [], full_repo=False) is False

    def test_modified(self, git_repo: Path) -> None:
        (git_repo / "README.md").write_text("# Modified\n")
        assert gitops.has_changes(git_repo, [], full_repo=False) is True

    def test_untracked_not_counted(self, git_repo: Path) -> None:
        (git_repo / "new.txt").write_text("content")
        assert gitops.has_changes(git_repo, [], full_repo=False) is False

    def test_staged(self, git_repo: Path) -> None:
        (git_repo / "new.txt").write_text("content")
        gitops.add(git_repo, "new.txt")
        assert gitops.has_changes(git_repo, [], full_repo=False) is True

    def test_scoped_to_paths(self, git_repo: Path) -> None:
        commit_file(git_repo, "manifests/app.yaml", "a: 1\n")
        (git_repo / "README.md").write_text("# Modified\n")

        assert gitops.has_changes(git_repo, ["manifests/"], full_repo=False) is False
        assert gitops.has_changes(git_repo, ["manifests/"], full_repo=True) is True

    def test_error(self, git_repo: Path) -> None:
        """Test an exit code other than 0 or 1 is an error, not "changes"."""
        with patch("gitxn.scm.git.run_command") as mock_run:
            mock_run.return_value = subprocess.CompletedProcess(
                ["git"], 128, "", "fatal: bad revision 'HEAD'"
            )
            with pytest.raises(GitError, match="Failed to check for changes"):
                gitops.has_changes(git_repo, [], full_repo=True)


class TestCommit:
    def test_commit(self, git_repo: Path) -> None:
        (git_repo / "README.md").write_text("# Modified\n")

        gitops.commit(git_repo, CommitAction(message="Change", author="A U <a@example.com>"))

        assert git(git_repo, "log", "-1", "--format=%s|%an") == "Change|A U"

    def test_commit_nothing(self, git_repo: Path) -> None:
        with pytest.raises(GitError):
            gitops.commit(git_repo, CommitAction(message="Empty"))

    def test_commit_flags(self, git_repo: Path) -> None:
        with patch("gitxn.scm.git.run_command") as mock_run:
            gitops.commit(git_repo, CommitAction(message="Signed", signing_key="ABCD"))

        cmd = mock_run.call_args[0][0]
        assert cmd[:4] == ["git", "commit", "--no-verify", "-a"]
        assert "--gpg-sign=ABCD" in cmd
        assert not any(arg.startswith("--author") for arg in cmd)


class TestRefs:
    def test_ref_revision(self, git_repo: Path) -> None:
        assert gitops.ref_revision(git_repo, "HEAD") == git(git_repo, "rev-parse", "HEAD")

    def test_ref_exists(self, git_repo: Path) -> None:
        assert gitops.ref_exists(git_repo, "HEAD") is True
        assert gitops.ref_exists(git_repo, "refs/notes/gitxn") is False

    def test_ref_exists_error(self, tmp_path: Path) -> None:
        with pytest.raises(GitError):
            gitops.ref_exists(tmp_path, "HEAD")

    def test_checkout(self, git_repo: Path) -> None:
        first = git(git_repo, "rev-parse", "HEAD")
        commit_file(git_repo, "README.md", "# Second\n")

        gitops.checkout(git_repo, first)

        assert (git_repo / "README.md").read_text() == "# Test\n"


class TestNotes:
    """Tests for note operations."""

    def test_add_and_get(self, git_repo: Path) -> None:
        rev = git(git_repo, "rev-parse", "HEAD")

        gitops.add_note(git_repo, rev, "refs/notes/gitxn", {"jobs": [1, 2]})

        assert gitops.get_note(git_repo, "refs/notes/gitxn", rev) == (True, {"jobs": [1, 2]})

    def test_get_missing(self, git_repo: Path) -> None:
        rev = git(git_repo, "rev-parse", "HEAD")
        other = commit_file(git_repo, "README.md", "# Second\n")
        gitops.add_note(git_repo, rev, "refs/notes/gitxn", "x")

        assert gitops.get_note(git_repo, "refs/notes/gitxn", other) == (False, None)

    def test_get_not_json(self, git_repo: Path) -> None:
        """Test a note written by another tool surfaces as GitError."""
        rev = git(git_repo, "rev-parse", "HEAD")
        git(git_repo, "notes", "--ref", "gitxn", "add", "-m", "deployed by hand", rev)

        with pytest.raises(GitError, match="not valid JSON"):
            gitops.get_note(git_repo, "refs/notes/gitxn", rev)

    def test_get_bad_revision(self, git_repo: Path) -> None:
        with pytest.raises(GitError, match="Failed to read note"):
            gitops.get_note(git_repo, "refs/notes/gitxn", "not-a-revision")

    def test_add_twice_fails(self, git_repo: Path) -> None:
        rev = git(git_repo, "rev-parse", "HEAD")
        gitops.add_note(git_repo, rev, "refs/notes/gitxn", 1)

        with pytest.raises(GitError):
            gitops.add_note(git_repo, rev, "refs/notes/gitxn", 2)

    def test_note_rev_list(self, git_repo: Path) -> None:
        first = git(git_repo, "rev-parse", "HEAD")
        second = commit_file(git_repo, "README.md", "# Second\n")
        commit_file(git_repo, "README.md", "# Third\n")
        gitops.add_note(git_repo, first, "refs/notes/gitxn", 1)
        gitops.add_note(git_repo, second, "refs/notes/gitxn", 2)

        assert gitops.note_rev_list(git_repo, "refs/notes/gitxn") == {first, second}

    def test_note_rev_list_no_ref(self, git_repo: Path) -> None:
        assert gitops.note_rev_list(git_repo, "refs/notes/gitxn") == set()


class TestFetch:
    """Tests for fetch."""

    def test_fetch_tags(self, git_repo: Path, tmp_path: Path) -> None:
        git(git_repo, "tag", "v1")
        target = tmp_path / "target"
        subprocess.run(
            ["git", "clone", str(git_repo), str(target)], check=True, capture_output=True
        )
        commit_file(git_repo, "README.md", "# Second\n")
        git(git_repo, "tag", "--force", "v1")

        gitops.fetch(target, str(git_repo), "+refs/tags/*:refs/tags/*")

        assert git(target, "rev-parse", "v1") == git(git_repo, "rev-parse", "HEAD")

    def test_fetch_missing_ref_ignored(self, git_repo: Path, tmp_path: Path) -> None:
        target = tmp_path / "target"
        subprocess.run(
            ["git", "clone", str(git_repo), str(target)], check=True, capture_output=True
        )

        gitops.fetch(target, str(git_repo), "+refs/notes/gitxn:refs/notes/gitxn")

        assert gitops.ref_exists(target, "refs/notes/gitxn") is False

    def test_fetch_missing_ref_capitalized(self, git_repo: Path) -> None:
        """Test older git's capitalized message is recognized too."""
        stderr = "fatal: Couldn't find remote ref refs/notes/gitxn\n"
        with patch("gitxn.scm.git.run_command") as mock_run:
            mock_run.return_value = subprocess.CompletedProcess(["git"], 128, "", stderr)

            gitops.fetch(git_repo, "/mirror", "+refs/notes/gitxn:refs/notes/gitxn")

    def test_fetch_bad_source(self, git_repo: Path, tmp_path: Path) -> None:
        with pytest.raises(GitError, match="Failed to fetch"):
            gitops.fetch(git_repo, str(tmp_path / "nowhere"), "+refs/tags/*:refs/tags/*")


class TestTags:
    def test_move_tag(self, git_repo: Path) -> None:
        first = git(git_repo, "rev-parse", "HEAD")
        second = commit_file(git_repo, "README.md", "# Second\n")

        gitops.move_tag(git_repo, TagAction(tag="v1", revision=first, message="One"))
        gitops.move_tag(git_repo, TagAction(tag="v1", revision=second, message="Two"))

        assert git(git_repo, "rev-parse", "v1^{commit}") == second
        assert git(git_repo, "cat-file", "-t", "v1") == "tag"

    def test_move_tag_signing_flag(self, git_repo: Path) -> None:
        with patch("gitxn.scm.git.run_command") as mock_run:
            gitops.move_tag(
                git_repo, TagAction(tag="v1", revision="HEAD", message="m", signing_key="ABCD")
            )

        cmd = mock_run.call_args[0][0]
        assert "--local-user=ABCD" in cmd
        assert cmd[-2:] == ["v1", "HEAD"]

    def test_push_tag_force(self, git_repo: Path, tmp_path: Path) -> None:
        remote = tmp_path / "remote.git"
        subprocess.run(["git", "init", "--bare", str(remote)], check=True, capture_output=True)
        first = git(git_repo, "rev-parse", "HEAD")
        git(git_repo, "tag", "v1", first)
        git(git_repo, "push", str(remote), "v1")
        second = commit_file(git_repo, "README.md", "# Second\n")
        git(git_repo, "tag", "--force", "v1", second)

        gitops.push_tag_force(git_repo, str(remote), "v1")

        assert git(remote, "rev-parse", "v1") == second


class TestDiffAndLog:
    def test_changed(self, git_repo: Path) -> None:
        base = git(git_repo, "rev-parse", "HEAD")
        commit_file(git_repo, "manifests/app.yaml", "a: 1\n")
        commit_file(git_repo, "docs/guide.md", "# Guide\n")

        assert gitops.changed(git_repo, base, ["manifests/"]) == ["manifests/app.yaml"]
        assert sorted(gitops.changed(git_repo, base, [])) == [
            "docs/guide.md",
            "manifests/app.yaml",
        ]

    def test_changed_none(self, git_repo: Path) -> None:
        assert gitops.changed(git_repo, "HEAD", []) == []

    def test_log(self, git_repo: Path) -> None:
        rev = commit_file(git_repo, "README.md", "# Second\n", message="Second | with pipe")

        commits = gitops.log(git_repo, "HEAD")

        assert [c.message for c in commits] == ["Second | with pipe", "Initial"]
        assert commits[0].revision == rev
        assert commits[0].signature.key == ""

    def test_log_range(self, git_repo: Path) -> None:
        base = git(git_repo, "rev-parse", "HEAD")
        commit_file(git_repo, "README.md", "# Second\n", message="Second")

        assert [c.message for c in gitops.log(git_repo, f"{base}..HEAD")] == ["Second"]
