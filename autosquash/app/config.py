"""Configuration loading — reads autosquash.yaml.

Provides:
- AutosquashConfig: every setting a run needs, passed explicitly to the engine
- load_config(path) -> AutosquashConfig: Load and validate autosquash.yaml
- parse_author(text) -> (name, email): Validate a "Name <email>" string

File location: --config on the command line, else $AUTOSQUASH_CONFIG.
A missing file yields the defaults.

Example::

    formula_dir: Formula
    cask_dir: Casks
    committer: "BrewTestBot <bot@example.com>"
    resolve: false
    extra_trailers:
      - "Signed-off-by: Reviewer <reviewer@example.com>"
"""

import os
import re
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import yaml

CONFIG_ENV_VAR = "AUTOSQUASH_CONFIG"

_AUTHOR_RE = re.compile(r"^\s*([^<>]+?)\s*<([^<>\s]+@[^<>\s]+)>\s*$")


@dataclass
class AutosquashConfig:
    formula_dir: str = "Formula"
    cask_dir: str = "Casks"
    extensions: List[str] = field(default_factory=lambda: [".rb"])
    reason: str = ""
    resolve: bool = False
    committer: str = ""
    extra_trailers: List[str] = field(default_factory=list)
    strict_files: bool = False
    verbose: bool = False
    dry_run: bool = False
    git_timeout: int = 60

    def committer_env(self) -> Dict[str, str]:
        """Return GIT_COMMITTER_* variables for the configured committer.

        Empty when no committer is configured, so git falls back to its
        own user.name / user.email.
        """
        if not self.committer:
            return {}
        name, email = parse_author(self.committer)
        return {"GIT_COMMITTER_NAME": name, "GIT_COMMITTER_EMAIL": email}

    def with_overrides(self, **overrides) -> "AutosquashConfig":
        """Return a copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


def parse_author(text: str) -> Tuple[str, str]:
    """Split "Name <email>" into (name, email).

    Raises ValueError if text is not in git's standard author format.
    """
    match = _AUTHOR_RE.match(text or "")
    if not match:
        raise ValueError(f"Invalid author: {text!r} (expected 'Name <email>')")
    return match.group(1), match.group(2)


def _validate_config(data: dict) -> None:
    """Validate value types. Raises ValueError on the first violation."""
    for key in ("extensions", "extra_trailers"):
        value = data.get(key)
        if value is not None and not (isinstance(value, list) and all(isinstance(v, str) for v in value)):
            raise ValueError(f"'{key}' must be a list of strings")
    for key in ("resolve", "strict_files", "verbose", "dry_run"):
        value = data.get(key)
        if value is not None and not isinstance(value, bool):
            raise ValueError(f"'{key}' must be true or false")
    timeout = data.get("git_timeout")
    if timeout is not None and (isinstance(timeout, bool) or not isinstance(timeout, int) or timeout <= 0):
        raise ValueError("'git_timeout' must be a positive integer")
    committer = data.get("committer")
    if committer:
        parse_author(committer)


def load_config(path: Optional[str] = None) -> AutosquashConfig:
    """Load autosquash.yaml from path (or $AUTOSQUASH_CONFIG).

    Returns the defaults if no file is configured or it doesn't exist.
    Raises ValueError on invalid YAML or schema violations.
    """
    path = path or os.environ.get(CONFIG_ENV_VAR, "")
    if not path or not Path(path).exists():
        return AutosquashConfig()

    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}")

    if data is None:
        return AutosquashConfig()
    if not isinstance(data, dict):
        raise ValueError(f"{path} must be a YAML mapping (dict)")

    _validate_config(data)
    known = {f.name for f in fields(AutosquashConfig)}
    return AutosquashConfig(**{k: v for k, v in data.items() if k in known and v is not None})
