"""
Autosquash -- Reword and squash formula/cask commits.

Replays the steps of a squash plan on top of the checkpoint:

- reword: cherry-pick a lone commit, then give it a bump subject unless
  its author already wrote one ("foo: ..." subjects are kept)
- squash: cherry-pick a file's commits without committing, then commit
  them once with a bump subject and every original message as a bullet
- passthrough: cherry-pick a commit that touches no manifest file as is

Each function returns an Outcome; nothing here resets or aborts. Undoing
a failed run is the transactional runner's job.
"""

import logging
from typing import List, Sequence, Tuple

from app.bump_subject import determine_bump_subject, package_name_for
from app.commit_message import dedupe_trailers, format_bullet, split_commit_message
from app.config import AutosquashConfig
from app.errors import Outcome, ReplayConflictError
from app.git_history import GitHistory
from app.squash_plan import PASSTHROUGH, REWORD, SquashGroup

logger = logging.getLogger(__name__)


def _replay(
    history: GitHistory,
    commits: List[str],
    config: AutosquashConfig,
    finalize: bool = True,
    extra_args: Sequence[str] = (),
) -> Outcome:
    success, stderr = history.replay_commit(*commits, finalize=finalize, extra_args=extra_args)
    if success:
        return Outcome.success()
    return Outcome.failure(ReplayConflictError(commits, stderr, left_in_progress=config.resolve))


def reword_package_commit(history: GitHistory, commit: str, file: str, config: AutosquashConfig) -> Outcome:
    """Cherry-pick a single commit that modifies a single file and maybe reword it.

    Returns:
        Outcome holding (new_commit, subject).
    """
    logger.debug("Cherry-picking %s: %s", file, commit)
    replayed = _replay(history, [commit], config)
    if not replayed.ok:
        return replayed

    old_contents = history.file_contents(file, "HEAD^")
    new_contents = history.file_contents(file, "HEAD")
    bump_subject = determine_bump_subject(
        old_contents, new_contents, file, reason=config.reason, cask_dir=config.cask_dir,
    )
    message = split_commit_message(history.commit_message("HEAD"))
    trailers = dedupe_trailers(message.trailers, config.extra_trailers)

    package_name = package_name_for(file)
    if message.subject != bump_subject and not message.subject.startswith(f"{package_name}:"):
        new_commit = history.amend_message(bump_subject, message.subject, message.body, "\n".join(trailers))
        subject = bump_subject
    else:
        # Hand-written subject: keep it, only fold in the extra trailers.
        subject = message.subject
        if trailers != message.trailers:
            new_commit = history.amend_message(subject, message.body, "\n".join(trailers))
        else:
            new_commit = history.current_tip()

    logger.info("%s", subject)
    return Outcome.success((new_commit, subject))


def squash_package_commits(history: GitHistory, commits: List[str], file: str, config: AutosquashConfig) -> Outcome:
    """Squash several commits that each modify file into one commit.

    The body lists every original message, similar to ``git fmt-merge-msg``::

        * subject 1
        * subject 2
          optional body
        * subject 3

    The first commit's author and date are kept; every other author becomes
    a Co-authored-by trailer.

    Returns:
        Outcome holding (new_commit, subject).
    """
    logger.debug("Squashing %s: %s", file, " ".join(commits))

    bullets = []
    commit_trailers = []
    for commit in commits:
        message = split_commit_message(history.commit_message(commit))
        bullets.append(format_bullet(message))
        commit_trailers.append(message.trailers)

    authors = dedupe_trailers(history.commit_author(commit) for commit in commits)
    original_author = authors.pop(0)
    original_date = history.commit_date(commits[0])
    co_author_trailers = [f"Co-authored-by: {author}" for author in authors]
    trailers = dedupe_trailers(*commit_trailers, co_author_trailers, config.extra_trailers)

    replayed = _replay(history, commits, config, finalize=False)
    if not replayed.ok:
        return replayed

    # Compare the tree before the first commit with the result of the whole series.
    old_contents = history.file_contents(file, f"{commits[0]}^")
    new_contents = history.file_contents(file)
    bump_subject = determine_bump_subject(
        old_contents, new_contents, file, reason=config.reason, cask_dir=config.cask_dir,
    )

    new_commit = history.finalize_commit(
        bump_subject,
        body="\n".join(bullets),
        trailers=trailers,
        author=original_author,
        date=original_date,
    )
    logger.info("%s", bump_subject)
    return Outcome.success((new_commit, bump_subject))


def replay_unchanged(history: GitHistory, commit: str, config: AutosquashConfig) -> Outcome:
    """Cherry-pick a commit that touches no manifest file, message untouched.

    Empty commits are kept as they are.
    """
    logger.debug("Replaying %s unchanged", commit)
    replayed = _replay(history, [commit], config, extra_args=["--allow-empty", "--keep-redundant-commits"])
    if not replayed.ok:
        return replayed
    message = split_commit_message(history.commit_message("HEAD"))
    return Outcome.success((history.current_tip(), message.subject))


def execute_plan(history: GitHistory, steps: List[SquashGroup], config: AutosquashConfig) -> Outcome:
    """Run every step in order, stopping at the first failure.

    Returns:
        Outcome holding a list of (new_commit, subject) tuples, one per step.
    """
    results: List[Tuple[str, str]] = []
    for step in steps:
        if step.kind == PASSTHROUGH:
            outcome = replay_unchanged(history, step.commits[0], config)
        elif step.kind == REWORD:
            outcome = reword_package_commit(history, step.commits[0], step.file, config)
        else:
            outcome = squash_package_commits(history, step.commits, step.file, config)
        if not outcome.ok:
            return outcome
        results.append(outcome.value)
    return Outcome.success(results)
