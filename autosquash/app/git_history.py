"""
Autosquash -- Git history adapter.

GitHistory is the only place that knows git's command-line syntax and
output formats. Everything above it works with commit ids, paths and
FileChange records.

Mutating commands (cherry-pick, commit, reset) receive the configured
committer identity through ``env`` rather than the process environment.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from app.commit_message import build_message_args
from app.git_utils import GitError, run_git, run_git_strict

logger = logging.getLogger(__name__)

_CHANGE_KINDS = {"A": "added", "M": "modified", "D": "deleted"}


@dataclass(frozen=True)
class FileChange:
    path: str
    kind: str  # "added", "modified" or "deleted"


class GitHistory:
    """Runs git operations against one working tree."""

    def __init__(self, repo_path: str, env: Optional[Dict[str, str]] = None, timeout: int = 60):
        self.repo_path = str(repo_path)
        self.env = dict(env or {})
        self.timeout = timeout

    def _git(self, *args: str, strip: bool = True) -> str:
        return run_git_strict(
            *args, cwd=self.repo_path, timeout=self.timeout, env=self.env,
            strip=strip, errors="replace",
        )

    # -- queries ------------------------------------------------------------

    def current_tip(self) -> str:
        """Return the full commit id HEAD points at."""
        return self._git("rev-parse", "HEAD")

    def tree_hash(self, ref: str = "HEAD") -> str:
        """Return the tree id of ref (identifies its content)."""
        return self._git("rev-parse", f"{ref}^{{tree}}")

    def resolve_range(self, start: str, end: str = "HEAD") -> List[str]:
        """List commits in (start, end], oldest first."""
        output = self._git("rev-list", "--reverse", f"{start}..{end}")
        return [line.strip() for line in output.splitlines() if line.strip()]

    def diff_files(self, commit: str) -> List[FileChange]:
        """Return the files a commit added, modified or deleted."""
        # -z: paths are NUL-terminated and never quoted, even when non-ASCII.
        output = self._git(
            "diff-tree", "--no-commit-id", "--root", "-r", "--name-status", "-z",
            "--diff-filter=AMD", commit,
            strip=False,
        )
        fields = output.split("\0")
        changes = []
        for status, path in zip(fields[0::2], fields[1::2]):
            status = status.strip()
            if not status or not path:
                continue
            changes.append(FileChange(path=path, kind=_CHANGE_KINDS.get(status[:1], "modified")))
        return changes

    def file_contents(self, path: str, ref: Optional[str] = None) -> Optional[str]:
        """Return path's contents at ref, or in the working tree if ref is None.

        Returns None when the file does not exist there.
        """
        if ref is None:
            working_file = Path(self.repo_path) / path
            if not working_file.is_file():
                return None
            return working_file.read_text(encoding="utf-8", errors="replace")
        try:
            return self._git("show", f"{ref}:{path}", strip=False)
        except GitError:
            return None

    def branch_name(self) -> str:
        """Return the checked-out branch ("HEAD" when detached)."""
        return self._git("rev-parse", "--abbrev-ref", "HEAD")

    def origin_branch_name(self, remote: str = "origin") -> Optional[str]:
        """Return the remote's default branch, or None if it is unknown."""
        try:
            ref = self._git("symbolic-ref", "--short", f"refs/remotes/{remote}/HEAD")
        except GitError:
            return None
        return ref[len(remote) + 1:] if ref.startswith(f"{remote}/") else ref

    def merge_base(self, first: str, second: str = "HEAD") -> str:
        return self._git("merge-base", first, second)

    def commit_message(self, commit: str = "HEAD") -> str:
        return self._git("log", "-1", "--format=%B", commit)

    def commit_author(self, commit: str = "HEAD") -> str:
        """Return the author as "Name <email>"."""
        return self._git("show", "--no-patch", "--format=%an <%ae>", commit)

    def commit_date(self, commit: str = "HEAD") -> str:
        """Return the author date in strict ISO 8601 format."""
        return self._git("show", "--no-patch", "--format=%aI", commit)

    # -- mutations ----------------------------------------------------------

    def replay_commit(self, *commits: str, finalize: bool = True, extra_args: Sequence[str] = ()) -> Tuple[bool, str]:
        """Cherry-pick commits onto HEAD.

        With finalize=False the changes are applied to the index and working
        tree but no commit is created.

        Returns:
            (success, stderr). A conflicted cherry-pick is left in progress;
            the caller decides whether to abort it.
        """
        args = ["cherry-pick"]
        if not finalize:
            args.append("--no-commit")
        args.extend(extra_args)
        args.extend(commits)
        logger.debug("Running git %s", " ".join(args))
        exit_code, _, stderr = run_git(*args, cwd=self.repo_path, timeout=self.timeout, env=self.env)
        return exit_code == 0, stderr

    def abort_replay(self) -> bool:
        """Abort an in-progress cherry-pick. Returns False if there was none."""
        exit_code, _, _ = run_git("cherry-pick", "--abort", cwd=self.repo_path, env=self.env)
        return exit_code == 0

    def finalize_commit(
        self,
        subject: str,
        body: str = "",
        trailers: Sequence[str] = (),
        author: str = "",
        date: str = "",
        paths: Sequence[str] = (),
    ) -> str:
        """Commit the staged changes and return the new commit id."""
        args = ["commit", "--quiet"]
        args += build_message_args(subject, body, "\n".join(trailers))
        if author:
            args += ["--author", author]
        if date:
            args += ["--date", date]
        if paths:
            args += ["--", *paths]
        self._git(*args)
        return self.current_tip()

    def amend_message(self, *paragraphs: str, signoff: bool = False) -> str:
        """Replace HEAD's message with the given paragraphs and return the new id."""
        args = ["commit", "--amend", "--quiet", "--allow-empty"]
        if signoff:
            args.append("--signoff")
        args += build_message_args(*paragraphs)
        self._git(*args)
        return self.current_tip()

    def reset_to(self, ref: str) -> None:
        """Hard-reset the working tree and HEAD to ref."""
        self._git("reset", "--hard", "--quiet", ref)

    def fetch(self, remote: str, *refs: str) -> None:
        self._git("fetch", "--quiet", "--force", remote, *refs)
