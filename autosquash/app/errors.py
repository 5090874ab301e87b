"""Autosquash error kinds and the stage result type.

Each stage of a run (indexing, executing the squash plan) returns an
``Outcome`` instead of raising, so the transactional runner decides
explicitly when a rollback is needed.
"""

from dataclasses import dataclass
from typing import Any, List, Optional


class AutosquashError(Exception):
    """Base class for every failure the engine reports."""


class MultiFileCommitError(AutosquashError):
    """A commit touches more than one manifest file.

    Raised before anything is mutated; commits cannot be split (yet).
    """

    def __init__(self, commit: str, files: List[str]):
        self.commit = commit
        self.files = list(files)
        super().__init__(
            "Autosquash can't split commits that modify multiple files.\n"
            f"  Commit: {commit}\n"
            f"  Files:  {' '.join(self.files)}"
        )


class NonManifestFileError(AutosquashError):
    """A commit touches a file outside the formula/cask directories."""

    def __init__(self, commit: str, file: str):
        self.commit = commit
        self.file = file
        super().__init__(
            "Autosquash can only squash commits that modify formula or cask files.\n"
            f"  File:   {file}\n"
            f"  Commit: {commit}"
        )


class ReplayConflictError(AutosquashError):
    """Cherry-picking one or more commits failed."""

    def __init__(self, commits: List[str], stderr: str = "", left_in_progress: bool = False):
        self.commits = list(commits)
        self.stderr = stderr
        self.left_in_progress = left_in_progress
        message = f"Failed to replay {' '.join(self.commits)}"
        if stderr:
            message += f": {stderr[:300]}"
        if left_in_progress:
            message += "\nCherry-pick left in progress for manual resolution."
        super().__init__(message)


class RollbackFailureError(AutosquashError):
    """Resetting to the checkpoint failed; the working tree is in an unknown state."""

    def __init__(self, checkpoint: str, cause: Exception):
        self.checkpoint = checkpoint
        self.cause = cause
        super().__init__(
            f"Rollback to {checkpoint} FAILED: {cause}\n"
            "The working tree may be inconsistent; inspect it manually."
        )


@dataclass
class Outcome:
    """Result of one engine stage: either a value or an error, never both."""

    value: Any = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Any = None) -> "Outcome":
        return cls(value=value)

    @classmethod
    def failure(cls, error: Exception) -> "Outcome":
        return cls(error=error)
