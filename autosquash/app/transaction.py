"""
Autosquash -- All-or-nothing runner.

run_autosquash() records the current HEAD as a checkpoint, indexes the
commit range, replays it as rewritten commits and, if anything fails after
history started changing, puts the working tree back at the checkpoint.
It is the only code allowed to reset the repository.

Outcomes:
- success: HEAD is the last rewritten commit
- indexing failure: nothing was touched
- replay failure with ``resolve`` set: the cherry-pick is left in progress
- any other failure: reset to the checkpoint (and say so, or say loudly
  that the reset itself failed)
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from app.autosquash import execute_plan
from app.commit_index import build_commit_index
from app.config import AutosquashConfig
from app.errors import Outcome, ReplayConflictError, RollbackFailureError
from app.git_history import GitHistory
from app.squash_plan import plan_autosquash

logger = logging.getLogger(__name__)


@dataclass
class AutosquashResult:
    checkpoint: str
    commits: List[str] = field(default_factory=list)
    subjects: List[str] = field(default_factory=list)
    error: Optional[Exception] = None
    rollback_error: Optional[RollbackFailureError] = None
    rolled_back: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None

    def summary(self) -> str:
        if self.ok:
            return f"Autosquashed into {len(self.commits)} commit(s) on top of checkpoint {self.checkpoint}"
        if self.rollback_error:
            return f"Autosquash failed and rollback to {self.checkpoint} failed: {self.rollback_error.cause}"
        if self.rolled_back:
            return f"Autosquash failed; reset to original state at {self.checkpoint}: {self.error}"
        if isinstance(self.error, ReplayConflictError) and self.error.left_in_progress:
            return f"Autosquash stopped for manual resolution (checkpoint {self.checkpoint}): {self.error}"
        return f"Autosquash failed before changing anything (checkpoint {self.checkpoint}): {self.error}"

    def raise_for_error(self) -> None:
        """Re-raise the failure, chained from the rollback failure if any."""
        if self.rollback_error is not None:
            raise self.rollback_error from self.error
        if self.error is not None:
            raise self.error


def _rollback(history: GitHistory, checkpoint: str) -> Optional[RollbackFailureError]:
    """Abort any cherry-pick and hard-reset to checkpoint.

    Returns None on success, or the RollbackFailureError to report.
    """
    # Abort first: aborting after the reset would move HEAD back to where
    # the cherry-pick sequence started.
    if history.abort_replay():
        logger.debug("Aborted in-progress cherry-pick")
    try:
        history.reset_to(checkpoint)
    except Exception as e:
        logger.error("Rollback to %s failed: %s", checkpoint, e)
        return RollbackFailureError(checkpoint, e)
    return None


def run_autosquash(history: GitHistory, original_commit: str, config: AutosquashConfig) -> AutosquashResult:
    """Reword/squash every commit in (original_commit, HEAD] into one commit per file."""
    checkpoint = history.current_tip()
    logger.debug("Autosquash checkpoint: %s (range start %s)", checkpoint, original_commit)

    try:
        indexed = build_commit_index(history, original_commit, config)
    except Exception as e:
        indexed = Outcome.failure(e)
    if not indexed.ok:
        return AutosquashResult(checkpoint=checkpoint, error=indexed.error)

    steps = plan_autosquash(indexed.value)

    try:
        history.reset_to(original_commit)
        executed = execute_plan(history, steps, config)
    except Exception as e:
        executed = Outcome.failure(e)

    if executed.ok:
        return AutosquashResult(
            checkpoint=checkpoint,
            commits=[commit for commit, _ in executed.value],
            subjects=[subject for _, subject in executed.value],
        )

    error = executed.error
    if isinstance(error, ReplayConflictError) and error.left_in_progress:
        logger.warning("Cherry-pick left in progress for manual resolution; original state was %s", checkpoint)
        return AutosquashResult(checkpoint=checkpoint, error=error)

    logger.warning("Autosquash encountered an error; resetting to original state at %s", checkpoint)
    rollback_error = _rollback(history, checkpoint)
    return AutosquashResult(
        checkpoint=checkpoint,
        error=error,
        rollback_error=rollback_error,
        rolled_back=rollback_error is None,
    )
