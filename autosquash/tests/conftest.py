"""Shared fixtures for autosquash tests."""

import pytest

from tests._helpers import GitRepo, cask, formula


@pytest.fixture(autouse=True)
def isolate_git(monkeypatch, tmp_path_factory):
    """Keep the user's git config and identity out of the tests."""
    global_config = tmp_path_factory.mktemp("gitconfig") / "config"
    global_config.write_text("")
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(global_config))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    for var in ("GIT_AUTHOR_NAME", "GIT_AUTHOR_EMAIL", "GIT_COMMITTER_NAME",
                "GIT_COMMITTER_EMAIL", "GIT_DIR", "GIT_WORK_TREE", "AUTOSQUASH_CONFIG"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def git_repo(tmp_path):
    """A repository with one formula, one cask and a README committed."""
    repo = GitRepo(tmp_path / "tap")
    repo.path.mkdir()
    repo.git("init", "--quiet")
    repo.git("config", "user.email", "committer@example.com")
    repo.git("config", "user.name", "Committer")
    repo.git("config", "commit.gpgsign", "false")
    repo.write("README.md", "# Test tap\n")
    repo.write("Formula/qux.rb", formula("qux", "1.0"))
    repo.write("Casks/widget.rb", cask("widget", "2.0"))
    repo.commit("Initial commit")
    return repo
