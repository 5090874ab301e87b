"""Partition an indexed commit range into the steps of an autosquash run.

Each commit lands in exactly one step. A file's commits are grouped at
the position of the file's first commit, so the executor never sees a
commit twice.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from app.commit_index import CommitFileIndex

REWORD = "reword"
SQUASH = "squash"
PASSTHROUGH = "passthrough"


@dataclass
class SquashGroup:
    kind: str
    commits: List[str] = field(default_factory=list)
    file: Optional[str] = None


def plan_autosquash(index: CommitFileIndex) -> List[SquashGroup]:
    """Return the ordered steps for index.

    - one commit for a file: reword it
    - several commits for a file: squash them into one
    - a commit touching no manifest file: replay it unchanged
    """
    steps = []
    planned = set()
    for commit in index.commits:
        if commit in planned:
            continue
        if not index.is_indexed(commit):
            steps.append(SquashGroup(kind=PASSTHROUGH, commits=[commit]))
            planned.add(commit)
            continue

        file = index.file_for(commit)
        commits = index.commits_for(file)
        kind = REWORD if len(commits) == 1 else SQUASH
        steps.append(SquashGroup(kind=kind, commits=commits, file=file))
        planned.update(commits)
    return steps
