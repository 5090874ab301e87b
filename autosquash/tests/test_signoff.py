"""Tests for signoff.py — final sign-off of the pulled commit."""

from app.git_history import GitHistory
from app.signoff import close_message, signoff
from tests._helpers import formula


class TestSignoff:
    def test_without_pull_request(self, git_repo):
        signoff(GitHistory(str(git_repo.path)))
        assert git_repo.message() == "Initial commit\n\nSigned-off-by: Committer <committer@example.com>"

    def test_pull_request_adds_reviewers_and_close_message(self, git_repo):
        git_repo.write("Formula/qux.rb", formula("qux", "1.1"))
        git_repo.commit("qux 1.1\n\nSigned-off-by: Alice <alice@example.com>")

        signoff(
            GitHistory(str(git_repo.path)),
            pull_request="42",
            review_trailers=["Signed-off-by: Alice <alice@example.com>", "Signed-off-by: Rev <rev@example.com>"],
        )

        message = git_repo.message()
        assert message.startswith(
            "qux 1.1\n\n"
            "Closes #42.\n\n"
            "Signed-off-by: Alice <alice@example.com>\n"
            "Signed-off-by: Rev <rev@example.com>"
        )
        assert message.count("Signed-off-by: Alice") == 1
        assert message.rstrip().endswith("Signed-off-by: Committer <committer@example.com>")

    def test_close_message_not_repeated(self, git_repo):
        git_repo.write("Formula/qux.rb", formula("qux", "1.1"))
        git_repo.commit("qux 1.1\n\nCloses #42.")

        signoff(GitHistory(str(git_repo.path)), pull_request="42")

        assert git_repo.message().count(close_message("42")) == 1

    def test_dry_run_prints_command(self, git_repo, capsys):
        head = git_repo.head()

        result = signoff(GitHistory(str(git_repo.path)), pull_request="7", dry_run=True)

        assert result is None
        assert git_repo.head() == head
        out = capsys.readouterr().out
        assert "commit --amend --signoff" in out
        assert "'Closes #7.'" in out
