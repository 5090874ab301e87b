"""
Autosquash -- Commit <=> manifest file index.

Walks the commits of a pull request and records which formula or cask
file each one touches. A commit may touch at most one such file; anything
else cannot be reworded or squashed and stops the run before history is
touched.
"""

import logging
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Dict, List

from app.config import AutosquashConfig
from app.errors import MultiFileCommitError, NonManifestFileError, Outcome
from app.git_history import GitHistory

logger = logging.getLogger(__name__)


def is_manifest_file(path: str, config: AutosquashConfig) -> bool:
    """Check if path is a formula or cask file (right directory and extension)."""
    if PurePosixPath(path).suffix not in config.extensions:
        return False
    for directory in (config.formula_dir, config.cask_dir):
        directory = directory.rstrip("/")
        if directory and path.startswith(f"{directory}/"):
            return True
    return False


@dataclass
class CommitFileIndex:
    """Bidirectional commit <=> file mapping for one commit range.

    ``commits`` holds every commit of the range, oldest first. Commits
    touching no manifest file appear there but not in ``commit_to_files``.
    """

    commits: List[str] = field(default_factory=list)
    commit_to_files: Dict[str, List[str]] = field(default_factory=dict)
    file_to_commits: Dict[str, List[str]] = field(default_factory=dict)

    def add(self, commit: str, file: str) -> None:
        self.commit_to_files.setdefault(commit, []).append(file)
        self.file_to_commits.setdefault(file, []).append(commit)

    def is_indexed(self, commit: str) -> bool:
        return commit in self.commit_to_files

    def file_for(self, commit: str) -> str:
        return self.commit_to_files[commit][0]

    def commits_for(self, file: str) -> List[str]:
        return list(self.file_to_commits.get(file, []))


def build_commit_index(history: GitHistory, start: str, config: AutosquashConfig, end: str = "HEAD") -> Outcome:
    """Index the commits in (start, end].

    Returns:
        Outcome holding a CommitFileIndex, or a MultiFileCommitError /
        NonManifestFileError naming the offending commit.
    """
    index = CommitFileIndex(commits=history.resolve_range(start, end))

    for commit in index.commits:
        manifest_files = []
        for change in history.diff_files(commit):
            if is_manifest_file(change.path, config):
                manifest_files.append(change.path)
            elif config.strict_files:
                return Outcome.failure(NonManifestFileError(commit, change.path))

        if len(manifest_files) > 1:
            return Outcome.failure(MultiFileCommitError(commit, manifest_files))
        if not manifest_files:
            logger.debug("Commit %s touches no formula or cask file; replaying as is", commit)
            continue
        index.add(commit, manifest_files[0])

    return Outcome.success(index)
