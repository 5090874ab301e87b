"""
Autosquash -- Commit message splitting and formatting.

A commit message is treated as three parts:

    subject       first line, stripped
    body          every later line that is not a trailer, with runs of
                  blank lines collapsed to a single blank line
    trailers      "<token>-by: value" lines (Signed-off-by, Co-authored-by...),
                  deduplicated in first-seen order
"""

import re
from dataclasses import dataclass, field
from typing import Iterable, List

_TRAILER_RE = re.compile(r"^[a-z-]+-by:", re.IGNORECASE)
_BLANK_RUN_RE = re.compile(r"\n{3,}")
_LEADING_BLANK_LINES_RE = re.compile(r"^\s*\n")


@dataclass
class CommitMessage:
    subject: str = ""
    body: str = ""
    trailers: List[str] = field(default_factory=list)

    @property
    def trailer_text(self) -> str:
        return "\n".join(self.trailers)


def is_trailer(line: str) -> bool:
    """Check if a line looks like a trailer (e.g. "Co-authored-by: ...")."""
    return bool(_TRAILER_RE.match(line))


def dedupe_trailers(*groups: Iterable[str]) -> List[str]:
    """Merge trailer lists, dropping blanks and duplicates, keeping first-seen order."""
    seen = []
    for group in groups:
        for trailer in group:
            trailer = trailer.strip()
            if trailer and trailer not in seen:
                seen.append(trailer)
    return seen


def split_commit_message(message: str) -> CommitMessage:
    """Separate a commit message into subject, body and trailers."""
    lines = message.splitlines()
    if not lines:
        return CommitMessage()

    subject = lines[0].strip()
    trailers = []
    body_lines = []
    for line in lines[1:]:
        if is_trailer(line):
            trailers.append(line)
        else:
            body_lines.append(line)

    body = _LEADING_BLANK_LINES_RE.sub("", "\n".join(body_lines)).rstrip()
    body = _BLANK_RUN_RE.sub("\n\n", body)
    return CommitMessage(subject=subject, body=body, trailers=dedupe_trailers(trailers))


def join_commit_message(message: CommitMessage) -> str:
    """Rebuild message text as git does from "-m subject -m body -m trailers"."""
    paragraphs = [message.subject]
    paragraphs += [p for p in (message.body, message.trailer_text) if p]
    return "\n\n".join(paragraphs)


def format_bullet(message: CommitMessage) -> str:
    """Format one commit of a squashed series, like ``git fmt-merge-msg``.

    * subject
      optional body, indented
    """
    body = "\n".join(f"  {line.strip()}" for line in message.body.splitlines())
    return f"* {message.subject}\n{body}".strip()


def build_message_args(*paragraphs: str) -> List[str]:
    """Turn message paragraphs into repeated ``-m`` arguments for git commit.

    Empty paragraphs are skipped; git would drop them anyway.
    """
    args = []
    for paragraph in paragraphs:
        if paragraph:
            args.extend(["-m", paragraph])
    return args
