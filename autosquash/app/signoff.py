"""Sign off the pulled commit.

Amends HEAD with ``--signoff``. For a pull request, approving reviewers
also sign off and the body gains a "Closes #N." line.
"""

import logging
import shlex
from typing import Optional, Sequence

from app.commit_message import build_message_args, dedupe_trailers, split_commit_message
from app.git_history import GitHistory

logger = logging.getLogger(__name__)


def close_message(pull_request: str) -> str:
    return f"Closes #{pull_request}."


def signoff(
    history: GitHistory,
    pull_request: Optional[str] = None,
    review_trailers: Sequence[str] = (),
    dry_run: bool = False,
) -> Optional[str]:
    """Amend HEAD with a sign-off.

    Returns:
        The new HEAD commit id, or None in dry-run mode (the git command is
        printed instead).
    """
    message = split_commit_message(history.commit_message("HEAD"))
    body = message.body
    trailers = message.trailers

    if pull_request:
        trailers = dedupe_trailers(trailers, review_trailers)
        closes = close_message(pull_request)
        if closes not in body:
            body = f"{body}\n\n{closes}" if body else closes

    trailer_text = "\n".join(trailers)
    if dry_run:
        args = ["git", "-C", history.repo_path, "commit", "--amend", "--signoff", "--allow-empty", "--quiet"]
        args += build_message_args(message.subject, body, trailer_text)
        print(" ".join(shlex.quote(arg) for arg in args))
        return None

    logger.debug("Signing off %s", message.subject)
    return history.amend_message(message.subject, body, trailer_text, signoff=True)
