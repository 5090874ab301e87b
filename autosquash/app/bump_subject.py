"""Bump subject generation -- describe what changed in a package file.

Compares the package resolved from a file before and after a change and
produces the one-line commit subject used for the final commit, e.g.:

    foo 1.2 (new formula)
    foo 1.3
    foo: revision for openssl
    foo: checksum update
    foo: delete
    foo: rebuild
"""

from pathlib import PurePosixPath
from typing import Callable, Optional

from app.package_metadata import PackageInfo, resolve_package

Resolver = Callable[[str, Optional[str], bool], Optional[PackageInfo]]


def package_name_for(path: str) -> str:
    """Return the package name for a formula/cask path (its file stem)."""
    return PurePosixPath(path).stem


def is_cask_path(path: str, cask_dir: str = "Casks") -> bool:
    """Check if path lives under the cask directory (relative or absolute)."""
    path = str(path)
    cask_dir = str(cask_dir).rstrip("/")
    return path.startswith(f"{cask_dir}/") or f"/{cask_dir}/" in path


def determine_bump_subject(
    old_contents: Optional[str],
    new_contents: Optional[str],
    path: str,
    reason: str = "",
    cask_dir: str = "Casks",
    resolver: Resolver = resolve_package,
) -> str:
    """Build the commit subject for a change from old_contents to new_contents.

    Either side may be None (file absent at that point in history). Contents
    the resolver cannot read count as absent.
    """
    name = package_name_for(path)
    is_cask = is_cask_path(path, cask_dir)
    kind = "cask" if is_cask else "formula"
    reason = reason or ""

    new_package = resolver(path, new_contents, is_cask)
    if new_package is None:
        return f"{name}: delete {reason}".strip()

    old_package = resolver(path, old_contents, is_cask)
    if old_package is None:
        return f"{name} {new_package.version} (new {kind})"
    if old_package.version != new_package.version:
        return f"{name} {new_package.version}"
    if not is_cask and old_package.revision != new_package.revision:
        return f"{name}: revision {reason}".strip()
    if is_cask and old_package.checksum != new_package.checksum:
        return f"{name}: checksum update {reason}".strip()
    return f"{name}: {reason or 'rebuild'}".strip()
