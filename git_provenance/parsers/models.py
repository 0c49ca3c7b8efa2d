"""Data models produced by the git output parsers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


@dataclass(frozen=True)
class Commit:
    """One commit as reported by ``git log``. Never mutated after parsing."""

    sha: str
    short_sha: str
    message: str
    subject: str
    body: str | None
    author_name: str | None
    author_email: str | None
    author_date: datetime | None
    committer_name: str | None
    committer_email: str | None
    commit_date: datetime | None
    parents: tuple[str, ...] = ()
    tree_sha: str | None = None

    @property
    def is_merge(self) -> bool:
        return len(self.parents) > 1

    @property
    def is_root(self) -> bool:
        return not self.parents


@dataclass
class BlameLine:
    """Attribution of a single line of a file."""

    line_number: int
    content: str
    commit_sha: str
    original_line: int
    author_name: str | None = None
    author_email: str | None = None
    author_time: datetime | None = None
    committer_name: str | None = None
    committer_email: str | None = None
    committer_time: datetime | None = None
    summary: str | None = None
    filename: str | None = None
    previous: str | None = None  # sha of the commit before this line's change
    is_uncommitted: bool = False
    line_age: int | None = None  # seconds since author_time

    @property
    def short_sha(self) -> str:
        return self.commit_sha[:7]


@dataclass
class FileBlame:
    """Blame for a whole file plus aggregate statistics."""

    path: str
    lines: list[BlameLine] = field(default_factory=list)
    line_count: int = 0
    commit_count: int = 0
    author_count: int = 0
    oldest_line: BlameLine | None = None
    newest_line: BlameLine | None = None
    has_uncommitted: bool = False


class DiffStatus(Enum):
    ADDED = "added"
    DELETED = "deleted"
    MODIFIED = "modified"
    RENAMED = "renamed"


@dataclass
class DiffHunk:
    """All changes to one file in a commit.

    ``additions`` carry post-change line numbers, ``deletions`` carry the
    running counter at the point of deletion.
    """

    file: str
    status: DiffStatus
    old_file: str | None = None
    similarity: int | None = None
    additions: list[tuple[int, str]] = field(default_factory=list)
    deletions: list[tuple[int, str]] = field(default_factory=list)

    @property
    def added_text(self) -> str:
        return "\n".join(text for _, text in self.additions)

    @property
    def deleted_text(self) -> str:
        return "\n".join(text for _, text in self.deletions)


@dataclass
class FileStat:
    """One ``--numstat`` row. Binary files report 0/0."""

    path: str
    lines_added: int
    lines_deleted: int
