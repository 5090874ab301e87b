"""Package metadata resolver for formula and cask files.

Reads just enough of a Ruby package definition to compare two snapshots:
the version, the formula revision and the cask checksum. This is not a
Ruby parser; anything it cannot make sense of resolves to ``None``, the
same answer given for a deleted file.

Formula example::

    class Foo < Formula
      url "https://example.com/foo-1.2.tar.gz"
      sha256 "abc..."
      revision 1
    end

Cask example::

    cask "foo" do
      version "1.2.3"
      sha256 "abc..."
    end
"""

import logging
import re
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Optional

logger = logging.getLogger(__name__)

_FORMULA_CLASS_RE = re.compile(r"^\s*class\s+\w+\s*<\s*Formula\b", re.MULTILINE)
_CASK_BLOCK_RE = re.compile(r"""^\s*cask\s+["']([^"']+)["']\s+do\b""", re.MULTILINE)
_VERSION_RE = re.compile(r"""^\s*version\s+["']([^"']+)["']""", re.MULTILINE)
_URL_RE = re.compile(r"""^\s*url\s+["']([^"']+)["']""", re.MULTILINE)
_REVISION_RE = re.compile(r"^\s*revision\s+(\d+)", re.MULTILINE)
_SHA256_RE = re.compile(r"""^\s*sha256\s+(?:["']([0-9a-fA-F]+)["']|:(\w+))""", re.MULTILINE)

# Blocks whose url/version lines describe something other than the stable download.
_NESTED_BLOCK_RE = re.compile(
    r"^([ \t]*)(?:head|resource|patch|bottle|livecheck|test)\b[^\n]*\bdo\b.*?^\1end\b",
    re.MULTILINE | re.DOTALL,
)
# OS/architecture variants: on_macos, on_linux, on_arm, on_intel, on_system, on_sonoma...
_VARIANT_BLOCK_RE = re.compile(
    r"^([ \t]*)on_\w+\b[^\n]*\bdo\b.*?^\1end\b",
    re.MULTILINE | re.DOTALL,
)

_ARCHIVE_SUFFIXES = (
    ".tar.gz", ".tar.bz2", ".tar.xz", ".tar.zst", ".tgz", ".tbz", ".txz",
    ".zip", ".gem", ".jar", ".dmg", ".pkg", ".crate", ".tar",
)
_URL_VERSION_RE = re.compile(r"(?:^|[-_/vV])(\d+(?:\.\d+)*(?:[-_.]?[a-z]+\d*)?)$")


@dataclass(frozen=True)
class PackageInfo:
    name: str
    version: str
    revision: int = 0
    checksum: str = ""


def version_from_url(url: str) -> str:
    """Guess a version from a download URL's file name.

    Returns an empty string when nothing version-like is found.
    """
    filename = url.rstrip("/").rsplit("/", 1)[-1]
    filename = filename.split("?", 1)[0]
    for suffix in _ARCHIVE_SUFFIXES:
        if filename.lower().endswith(suffix):
            filename = filename[: -len(suffix)]
            break
    match = _URL_VERSION_RE.search(filename)
    return match.group(1) if match else ""


def _strip_nested_blocks(contents: str) -> str:
    return _NESTED_BLOCK_RE.sub("", contents)


def _search(regex, *texts):
    """Return the first match of regex, trying texts in order."""
    for text in texts:
        match = regex.search(text)
        if match:
            return match
    return None


def _stanza_texts(contents: str):
    """Return (common, stable): stable download text with and without OS/arch blocks.

    Values outside on_macos/on_linux/on_arm/... blocks win; a package that
    only declares them per platform falls back to the first such block.
    """
    stable = _strip_nested_blocks(contents)
    return _VARIANT_BLOCK_RE.sub("", stable), stable


def _checksum(*texts: str) -> str:
    match = _search(_SHA256_RE, *texts)
    if not match:
        return ""
    return match.group(1) or f":{match.group(2)}"


def _formula_version(text: str) -> str:
    match = _VERSION_RE.search(text)
    if match:
        return match.group(1)
    url = _URL_RE.search(text)
    return version_from_url(url.group(1)) if url else ""


def _resolve_formula(name: str, contents: str) -> Optional[PackageInfo]:
    texts = _stanza_texts(contents)
    version = next((v for v in map(_formula_version, texts) if v), "")
    if not version:
        return None
    revision = _search(_REVISION_RE, *texts)
    return PackageInfo(
        name=name,
        version=version,
        revision=int(revision.group(1)) if revision else 0,
        checksum=_checksum(*texts),
    )


def _resolve_cask(name: str, contents: str) -> Optional[PackageInfo]:
    texts = _stanza_texts(contents)
    match = _search(_VERSION_RE, *texts)
    if not match:
        return None
    return PackageInfo(name=name, version=match.group(1), checksum=_checksum(*texts))


def resolve_package(path: str, contents: Optional[str], is_cask: bool = False) -> Optional[PackageInfo]:
    """Resolve a package file's metadata, or None if absent or unreadable.

    Never raises: malformed content is reported the same way as a missing file.
    """
    if not contents:
        return None
    name = PurePosixPath(path).stem
    try:
        if is_cask:
            if not _CASK_BLOCK_RE.search(contents):
                return None
            return _resolve_cask(name, contents)
        if not _FORMULA_CLASS_RE.search(contents):
            return None
        return _resolve_formula(name, contents)
    except Exception as e:
        logger.debug("Could not resolve %s: %s", path, e)
        return None
