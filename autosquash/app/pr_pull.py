"""
Autosquash -- Pull a pull request into a formula/cask repository.

Pipeline:
0. Refuse PRs touching files claimed by open long-running build PRs
1. Fetch the PR's commits and cherry-pick them onto the current HEAD
2. Optionally autosquash them into one commit per formula/cask file
3. Sign off the result (approving reviewers sign off too, "Closes #N.")

Usage:
    python3 -m app.pr_pull 12345 --repo Homebrew/homebrew-core --autosquash
    python3 -m app.pr_pull https://github.com/owner/repo/pull/12345 --repo-path /path/to/tap
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from app.config import AutosquashConfig, load_config
from app.git_history import GitHistory
from app.github import (
    approved_review_trailers,
    long_build_conflicts,
    parse_pull_request,
    pull_request_commits,
    pull_request_labels,
)
from app.signoff import signoff
from app.transaction import run_autosquash


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Apply the commits of a pull request, reworded and squashed "
                    "into one commit per formula or cask file.",
    )
    parser.add_argument("pull_request", help="Pull request number or GitHub URL")
    parser.add_argument("--repo", default="", help="GitHub repository (owner/name) for bare PR numbers")
    parser.add_argument("--repo-path", default=".", help="Local path to the tap repository")
    parser.add_argument("--config", default=None, help="Path to autosquash.yaml")
    parser.add_argument("--autosquash", action="store_true",
                        help="Reformat and reword the PR's commits to one commit per file")
    parser.add_argument("--resolve", action="store_true",
                        help="When a patch fails to apply, leave it in progress instead of aborting")
    parser.add_argument("--message", default=None,
                        help="Reason to include when autosquashing revision bumps, deletions and rebuilds")
    parser.add_argument("--committer", default=None, help="Committer in git's 'Name <email>' format")
    parser.add_argument("--clean", action="store_true", help="Do not amend the commits from the PR")
    parser.add_argument("--no-cherry-pick", action="store_true",
                        help="Do not cherry-pick commits from the PR branch")
    parser.add_argument("--branch-okay", action="store_true",
                        help="Do not warn if pulling to a branch besides the repository default")
    parser.add_argument("-n", "--dry-run", action="store_true", help="Print what would be done")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def _cherry_pick_pr(history: GitHistory, repo: str, pr_number: str, config: AutosquashConfig) -> bool:
    if config.dry_run:
        print(f"git fetch --force origin +refs/pull/{pr_number}/head")
        print("git merge-base HEAD FETCH_HEAD")
        print("git cherry-pick --ff --allow-empty $merge_base..FETCH_HEAD")
        return True

    commits = pull_request_commits(repo, pr_number)
    if not commits:
        print(f"[pr_pull] Pull request #{pr_number} has no commits", file=sys.stderr)
        return False
    history.fetch("origin", commits[-1])
    print(f"[pr_pull] Using {len(commits)} commit{'s' if len(commits) != 1 else ''} from #{pr_number}")

    success, stderr = history.replay_commit(*commits, extra_args=["--ff", "--allow-empty"])
    if success:
        return True
    if config.resolve:
        print(f"[pr_pull] Cherry-pick stopped; resolve it manually: {stderr}", file=sys.stderr)
    else:
        history.abort_replay()
        print(f"[pr_pull] Cherry-pick failed: {stderr}", file=sys.stderr)
    return False


def pull(args: argparse.Namespace, config: AutosquashConfig) -> int:
    repo, pr_number = parse_pull_request(args.pull_request, args.repo)
    history = GitHistory(args.repo_path, env=config.committer_env(), timeout=config.git_timeout)

    if not args.branch_okay and not args.no_cherry_pick:
        branch = history.branch_name()
        origin_branch = history.origin_branch_name()
        if branch != origin_branch:
            print(f"[pr_pull] Warning: current branch is {branch}: "
                  f"do you need to pull inside {origin_branch or 'the default branch'}?")

    labels = pull_request_labels(repo, pr_number)
    if "autosquash" in labels and not args.autosquash:
        print("[pr_pull] Warning: pull request is labelled `autosquash`: do you need to pass `--autosquash`?")

    conflicts = long_build_conflicts(repo, pr_number)
    if conflicts:
        print("[pr_pull] You are trying to merge a pull request that conflicts with a long running build in:\n"
              f"{json.dumps(conflicts, indent=2)}", file=sys.stderr)
        return 1

    print(f"[pr_pull] Fetching {repo} pull request #{pr_number}")
    if args.no_cherry_pick:
        original_commit = history.merge_base("origin/HEAD", "HEAD")
    else:
        original_commit = history.current_tip()
    logging.getLogger(__name__).debug("Pull request merge-base: %s", original_commit)

    if not args.no_cherry_pick and not _cherry_pick_pr(history, repo, pr_number, config):
        return 1

    if args.autosquash and not config.dry_run:
        result = run_autosquash(history, original_commit, config)
        print(f"[pr_pull] {result.summary()}", file=sys.stdout if result.ok else sys.stderr)
        if not result.ok:
            return 1
        for subject in result.subjects:
            print(f"==> {subject}")

    if not args.clean:
        review_trailers = [] if config.dry_run else approved_review_trailers(repo, pr_number)
        signoff(history, pull_request=pr_number, review_trailers=review_trailers, dry_run=config.dry_run)

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.clean and args.autosquash:
        parser.error("--clean and --autosquash are mutually exclusive")
    if args.message is not None and not args.autosquash:
        parser.error("--message requires --autosquash")

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_config(args.config).with_overrides(
            reason=args.message,
            committer=args.committer,
            resolve=args.resolve or None,
            verbose=args.verbose or None,
            dry_run=args.dry_run or None,
        )
        return pull(args, config)
    except (ValueError, RuntimeError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
