"""
Autosquash -- Shared git command helpers.

Every git invocation in the project goes through one of two functions:

- run_git(): Returns (returncode, stdout, stderr) tuple. Never raises.
- run_git_strict(): Returns stdout string. Raises GitError on failure.
"""

import os
import subprocess
from typing import Dict, Optional, Tuple


class GitError(RuntimeError):
    """Raised when a git command exits with a non-zero status."""

    def __init__(self, args, stderr: str = ""):
        self.command = " ".join(["git"] + list(args))
        self.stderr = stderr
        super().__init__(f"git failed: {self.command} — {stderr[:200]}")


def _merged_env(env: Optional[Dict[str, str]]) -> Optional[Dict[str, str]]:
    if not env:
        return None
    return {**os.environ, **env}


def run_git(
    *args: str,
    cwd: str = None,
    timeout: int = 30,
    env: Optional[Dict[str, str]] = None,
) -> Tuple[int, str, str]:
    """Run a git command and return (returncode, stdout, stderr).

    Args:
        *args: Git subcommand and arguments (e.g. "status", "--porcelain").
        cwd: Working directory for the git command.
        timeout: Command timeout in seconds (default: 30).
        env: Optional extra environment variables, merged on top of os.environ.

    Returns:
        (returncode, stdout, stderr) tuple. Never raises on git failures.
    """
    try:
        result = subprocess.run(
            ["git"] + list(args),
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=timeout,
            env=_merged_env(env),
        )
        return result.returncode, result.stdout.strip(), result.stderr.strip()
    except subprocess.TimeoutExpired:
        return 1, "", "Git command timed out"
    except Exception as e:
        return 1, "", str(e)


def run_git_strict(
    *args: str,
    cwd: str = None,
    timeout: int = 60,
    env: Optional[Dict[str, str]] = None,
    strip: bool = True,
    errors: str = "strict",
) -> str:
    """Run a git command, raise GitError on failure.

    Args:
        *args: Git subcommand and arguments (e.g. "fetch", "origin", "main").
        cwd: Working directory for the git command.
        timeout: Command timeout in seconds (default: 60).
        env: Optional extra environment variables, merged on top of os.environ.
        strip: Strip surrounding whitespace from stdout (default: True).
            File contents are read with strip=False so they round-trip.
        errors: How undecodable bytes in the output are handled, as for
            bytes.decode() (default: "strict").

    Returns:
        stdout on success.

    Raises:
        GitError: If git exits with non-zero status or times out.
    """
    try:
        result = subprocess.run(
            ["git"] + list(args),
            capture_output=True,
            text=True,
            errors=errors,
            timeout=timeout,
            cwd=cwd,
            env=_merged_env(env),
        )
    except subprocess.TimeoutExpired:
        raise GitError(args, f"timed out after {timeout}s")
    if result.returncode != 0:
        raise GitError(args, result.stderr.strip())
    return result.stdout.strip() if strip else result.stdout
