"""GitHub CLI (gh) wrapper for pull request metadata.

Supplies what a pull happens to need from GitHub: the PR's commits, its
labels, its changed files (to spot clashes with long-running builds) and
the approving reviewers (as Signed-off-by trailers). Auth is handled by
``gh`` itself (``GH_TOKEN`` or ``gh auth login``).
"""

import json
import logging
import re
import subprocess
from typing import Dict, List, Tuple
from urllib.parse import quote

logger = logging.getLogger(__name__)

PR_URL_PATTERN = r'https?://github\.com/([^/]+)/([^/]+)/pull/(\d+)'
LONG_BUILD_LABEL = "no long build conflict"


def run_gh(*args, timeout=30):
    """Run a ``gh`` CLI command and return stripped stdout.

    Args:
        *args: Arguments passed after ``gh`` (e.g. ``"pr", "view", "1"``).
        timeout: Seconds before the command is killed.

    Returns:
        Stripped stdout string.

    Raises:
        RuntimeError: If the ``gh`` command exits with a non-zero code.
    """
    cmd = ["gh", *args]
    result = subprocess.run(
        cmd, stdin=subprocess.DEVNULL,
        capture_output=True, text=True, timeout=timeout,
    )
    if result.returncode != 0:
        raise RuntimeError(
            f"gh failed: {' '.join(cmd[:4])}... — {result.stderr[:300]}"
        )
    return result.stdout.strip()


def api(endpoint, jq=None, paginate=False):
    """Call ``gh api`` for lower-level GitHub API access.

    Args:
        endpoint: API path (e.g. ``repos/owner/repo/pulls/1/commits``).
        jq: Optional jq filter applied to the response.
        paginate: Follow pagination links.

    Returns:
        Stripped stdout string.
    """
    args = ["api", endpoint]
    if paginate:
        args.append("--paginate")
    if jq:
        args.extend(["--jq", jq])
    return run_gh(*args)


def parse_pull_request(arg: str, default_repo: str = "") -> Tuple[str, str]:
    """Resolve a PR argument into (owner/repo, number).

    Accepts a bare number (needs default_repo) or a GitHub PR URL.

    Raises:
        ValueError: If arg is neither.
    """
    arg = arg.split("#")[0].strip()
    if arg.isdigit() and int(arg) > 0:
        if not default_repo:
            raise ValueError(f"Pull request {arg} given without a repository (use --repo)")
        return default_repo, arg
    match = re.match(PR_URL_PATTERN, arg)
    if not match:
        raise ValueError(f"Not a GitHub pull request: {arg}")
    return f"{match.group(1)}/{match.group(2)}", match.group(3)


def pull_request_commits(repo: str, pr_number: str) -> List[str]:
    """Return the PR's commit ids, oldest first."""
    output = api(f"repos/{repo}/pulls/{pr_number}/commits", jq=".[].sha", paginate=True)
    return [line.strip() for line in output.splitlines() if line.strip()]


def pull_request_labels(repo: str, pr_number: str) -> List[str]:
    output = run_gh("pr", "view", pr_number, "--repo", repo, "--json", "labels", "--jq", ".labels[].name")
    return [line.strip() for line in output.splitlines() if line.strip()]


def approved_review_trailers(repo: str, pr_number: str) -> List[str]:
    """Return a Signed-off-by trailer for every approving reviewer.

    Reviewers without a public name and email are skipped.
    """
    output = api(
        f"repos/{repo}/pulls/{pr_number}/reviews",
        jq='.[] | select(.state == "APPROVED") | .user.login',
        paginate=True,
    )
    trailers = []
    for login in dict.fromkeys(line.strip() for line in output.splitlines() if line.strip()):
        try:
            user = json.loads(api(f"users/{login}"))
        except (RuntimeError, json.JSONDecodeError) as e:
            logger.warning("Could not look up reviewer %s: %s", login, e)
            continue
        name = user.get("name") or login
        email = user.get("email")
        if not email:
            logger.debug("Reviewer %s has no public email; skipping sign-off", login)
            continue
        trailers.append(f"Signed-off-by: {name} <{email}>")
    return trailers


def pull_request_files(repo: str, pr_number: str) -> List[str]:
    """Return the paths a PR changes."""
    output = api(f"repos/{repo}/pulls/{pr_number}/files", jq=".[].filename", paginate=True)
    return [line.strip() for line in output.splitlines() if line.strip()]


def labelled_pull_requests(repo: str, label: str) -> List[str]:
    """Return the numbers of open PRs carrying label (issues are skipped)."""
    output = api(
        f"repos/{repo}/issues?state=open&labels={quote(label)}",
        jq=".[] | select(.pull_request) | .number",
        paginate=True,
    )
    return [line.strip() for line in output.splitlines() if line.strip()]


def long_build_conflicts(repo: str, pr_number: str, label: str = LONG_BUILD_LABEL) -> Dict[str, List[str]]:
    """Find files this PR shares with open long-running build PRs.

    Returns:
        {"owner/repo/pull/N": [conflicting paths]} for every labelled PR
        (other than pr_number) touching a file this PR also changes.
        Empty when there is no conflict.
    """
    claimed: Dict[str, List[str]] = {}
    for number in labelled_pull_requests(repo, label):
        if number == str(pr_number):
            continue
        for path in pull_request_files(repo, number):
            claimed.setdefault(path, []).append(number)

    if not claimed:
        return {}

    conflicts: Dict[str, List[str]] = {}
    for path in pull_request_files(repo, pr_number):
        for number in claimed.get(path, []):
            conflicts.setdefault(f"{repo}/pull/{number}", []).append(path)
    return conflicts
