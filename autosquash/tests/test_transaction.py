"""Tests for transaction.py — checkpoint, run, rollback."""

from unittest.mock import MagicMock

import pytest

from app.config import AutosquashConfig
from app.errors import MultiFileCommitError, ReplayConflictError, RollbackFailureError
from app.git_history import FileChange, GitHistory
from app.git_utils import GitError
from app.transaction import AutosquashResult, run_autosquash
from tests._helpers import ALICE, BOB, cask, formula


class FailingHistory(GitHistory):
    """GitHistory whose cherry-pick of one commit always fails."""

    def __init__(self, repo_path, fail_on):
        super().__init__(repo_path)
        self.fail_on = fail_on

    def replay_commit(self, *commits, **kwargs):
        if self.fail_on in commits:
            return False, "injected failure"
        return super().replay_commit(*commits, **kwargs)


class TestRunAutosquash:
    def test_revision_bump_series_squashes_to_one_commit(self, git_repo):
        base = git_repo.head()
        git_repo.write("Formula/qux.rb", formula("qux", "1.0") + "# tweak\n")
        git_repo.commit("qux: tweak", author=ALICE)
        git_repo.write("Formula/qux.rb", formula("qux", "1.0", revision=1) + "# tweak\n")
        git_repo.commit("qux: revision bump", author=BOB)

        result = run_autosquash(GitHistory(str(git_repo.path)), base, AutosquashConfig())

        assert result.ok, result.summary()
        assert result.subjects == ["qux: revision"]
        assert git_repo.subjects(base) == ["qux: revision"]
        assert git_repo.message() == (
            "qux: revision\n\n"
            "* qux: tweak\n"
            "* qux: revision bump\n\n"
            "Co-authored-by: Bob <bob@example.com>"
        )
        assert result.commits == [git_repo.head()]

    def test_mixed_series(self, git_repo):
        base = git_repo.head()
        git_repo.write("Formula/bar.rb", formula("bar", "1.0"))
        git_repo.commit("bar 1.0", author=ALICE)
        git_repo.write("Casks/widget.rb", cask("widget", "2.1"))
        git_repo.commit("Update widget", author=BOB)
        git_repo.write("Formula/bar.rb", formula("bar", "1.0") + "# fixup\n")
        git_repo.commit("fixup", author=BOB)
        git_repo.write("Formula/bar.rb", formula("bar", "1.0.1"))
        git_repo.commit("bar 1.0.1", author=ALICE)

        result = run_autosquash(GitHistory(str(git_repo.path)), base, AutosquashConfig())

        assert result.ok, result.summary()
        assert git_repo.subjects(base) == ["bar 1.0.1 (new formula)", "widget 2.1"]
        squashed = git_repo.message("HEAD^")
        assert squashed.count("\n* ") == 3
        assert squashed.count("Co-authored-by: Bob <bob@example.com>") == 1
        assert git_repo.author("HEAD^") == ALICE
        assert git_repo.author("HEAD") == BOB

    def test_multi_file_commit_aborts_before_mutation(self, git_repo):
        base = git_repo.head()
        git_repo.write("Formula/qux.rb", formula("qux", "1.1"))
        git_repo.commit("qux 1.1")
        git_repo.write("Formula/qux.rb", formula("qux", "1.2"))
        git_repo.write("Casks/widget.rb", cask("widget", "2.1"))
        offending = git_repo.commit("Update everything")
        checkpoint = git_repo.head()
        tree = git_repo.tree()

        result = run_autosquash(GitHistory(str(git_repo.path)), base, AutosquashConfig())

        assert isinstance(result.error, MultiFileCommitError)
        assert result.error.commit == offending
        assert sorted(result.error.files) == ["Casks/widget.rb", "Formula/qux.rb"]
        assert not result.rolled_back
        assert git_repo.head() == checkpoint
        assert git_repo.tree() == tree
        assert checkpoint in result.summary()

    def test_empty_commit_passes_through(self, git_repo):
        base = git_repo.head()
        git_repo.write("Formula/qux.rb", formula("qux", "1.1"))
        git_repo.commit("Update qux")
        git_repo.commit("empty marker", author=BOB)

        result = run_autosquash(GitHistory(str(git_repo.path)), base, AutosquashConfig())

        assert result.ok, result.summary()
        assert result.subjects == ["qux 1.1", "empty marker"]
        assert git_repo.subjects(base) == ["qux 1.1", "empty marker"]
        assert git_repo.tree() == git_repo.tree("HEAD^")
        assert git_repo.author() == BOB

    def test_non_utf8_manifest_is_reworded(self, git_repo):
        base = git_repo.head()
        (git_repo.path / "Formula" / "qux.rb").write_bytes(formula("qux", "1.1").encode() + b"# caf\xe9\n")
        git_repo.commit("Update qux")

        result = run_autosquash(GitHistory(str(git_repo.path)), base, AutosquashConfig())

        assert result.ok, result.summary()
        assert result.subjects == ["qux 1.1"]
        assert git_repo.status() == ""

    def test_replay_failure_rolls_back(self, git_repo):
        base = git_repo.head()
        git_repo.write("Formula/qux.rb", formula("qux", "1.1"))
        git_repo.commit("qux 1.1")
        git_repo.write("Formula/bar.rb", formula("bar", "1.0"))
        second = git_repo.commit("bar 1.0")
        git_repo.write("Casks/widget.rb", cask("widget", "2.1"))
        git_repo.commit("widget 2.1")
        checkpoint = git_repo.head()
        tree = git_repo.tree()

        result = run_autosquash(FailingHistory(str(git_repo.path), second), base, AutosquashConfig())

        assert isinstance(result.error, ReplayConflictError)
        assert result.error.commits == [second]
        assert result.rolled_back
        assert result.rollback_error is None
        assert git_repo.head() == checkpoint
        assert git_repo.tree() == tree
        assert git_repo.status() == ""
        assert f"reset to original state at {checkpoint}" in result.summary()

    def test_real_conflict_rolls_back(self, git_repo):
        """Squashing pulls the last qux commit ahead of the README change it depends on."""
        base = git_repo.head()
        git_repo.write("Formula/qux.rb", formula("qux", "1.1"))
        git_repo.commit("qux 1.1")
        git_repo.write("Formula/bar.rb", formula("bar", "1.0"))
        git_repo.write("README.md", "# Test tap\nline two\n")
        git_repo.commit("bar 1.0")
        git_repo.write("Formula/qux.rb", formula("qux", "1.2"))
        git_repo.write("README.md", "# Test tap\nline two, changed\n")
        git_repo.commit("qux 1.2")
        checkpoint = git_repo.head()
        tree = git_repo.tree()

        result = run_autosquash(GitHistory(str(git_repo.path)), base, AutosquashConfig())

        assert isinstance(result.error, ReplayConflictError)
        assert result.rolled_back
        assert git_repo.head() == checkpoint
        assert git_repo.tree() == tree
        assert git_repo.status() == ""
        assert not (git_repo.path / ".git" / "CHERRY_PICK_HEAD").exists()

    def test_unexpected_error_rolls_back(self, git_repo):
        base = git_repo.head()
        git_repo.write("Formula/qux.rb", formula("qux", "1.1"))
        git_repo.commit("Update qux")
        checkpoint = git_repo.head()
        history = GitHistory(str(git_repo.path))
        history.amend_message = MagicMock(side_effect=GitError(["commit", "--amend"], "hook rejected"))

        result = run_autosquash(history, base, AutosquashConfig())

        assert isinstance(result.error, GitError)
        assert result.rolled_back
        assert git_repo.head() == checkpoint

    def test_resolve_leaves_conflict_in_progress(self, git_repo):
        base = git_repo.head()
        git_repo.write("Formula/qux.rb", formula("qux", "1.1"))
        git_repo.commit("qux 1.1")
        git_repo.write("Formula/bar.rb", formula("bar", "1.0"))
        second = git_repo.commit("bar 1.0")
        history = FailingHistory(str(git_repo.path), second)
        history.reset_to = MagicMock(wraps=history.reset_to)

        result = run_autosquash(history, base, AutosquashConfig(resolve=True))

        assert result.error.left_in_progress
        assert not result.rolled_back
        history.reset_to.assert_called_once_with(base)
        assert git_repo.subjects(base) == ["qux 1.1"]
        assert "manual resolution" in result.summary()

    def test_rollback_failure_is_reported_separately(self):
        history = MagicMock(spec=GitHistory)
        history.current_tip.return_value = "checkpoint-sha"
        history.resolve_range.return_value = ["a"]
        history.diff_files.return_value = [FileChange("Formula/foo.rb", "modified")]
        history.replay_commit.return_value = (False, "CONFLICT")
        history.abort_replay.return_value = True
        history.reset_to.side_effect = [None, GitError(["reset", "--hard"], "index.lock exists")]

        result = run_autosquash(history, "base-sha", AutosquashConfig())

        assert isinstance(result.error, ReplayConflictError)
        assert isinstance(result.rollback_error, RollbackFailureError)
        assert result.rollback_error.checkpoint == "checkpoint-sha"
        assert not result.rolled_back
        assert "checkpoint-sha" in result.summary()
        history.abort_replay.assert_called_once()
        with pytest.raises(RollbackFailureError) as excinfo:
            result.raise_for_error()
        assert excinfo.value.__cause__ is result.error

    def test_indexing_git_failure_is_not_rolled_back(self):
        history = MagicMock(spec=GitHistory)
        history.current_tip.return_value = "checkpoint-sha"
        history.resolve_range.side_effect = GitError(["rev-list"], "bad revision")

        result = run_autosquash(history, "nope", AutosquashConfig())

        assert isinstance(result.error, GitError)
        history.reset_to.assert_not_called()


class TestAutosquashResult:
    def test_ok(self):
        result = AutosquashResult(checkpoint="abc", commits=["def"], subjects=["foo 1.0"])
        assert result.ok
        result.raise_for_error()
        assert "abc" in result.summary()

    def test_raise_for_error(self):
        error = MultiFileCommitError("c1", ["Formula/a.rb", "Formula/b.rb"])
        with pytest.raises(MultiFileCommitError):
            AutosquashResult(checkpoint="abc", error=error).raise_for_error()
