"""Data models for file history and entity version chains."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


@dataclass(frozen=True)
class Rename:
    from_path: str
    to_path: str
    commit_sha: str
    similarity: int | None = None


@dataclass
class FileHistory:
    """A file's commits (newest first) and renames (oldest first)."""

    path: str
    commits: list[str]
    renames: list[Rename] = field(default_factory=list)
    original_path: str | None = None  # from_path of the earliest rename
    first_commit: str | None = None
    last_commit: str | None = None
    commit_count: int = 0

    @property
    def is_renamed(self) -> bool:
        return bool(self.renames)

    @property
    def rename_count(self) -> int:
        return len(self.renames)


class DerivationType(Enum):
    REVISION = "revision"
    QUOTATION = "quotation"
    PRIMARY_SOURCE = "primary_source"


@dataclass
class ModuleVersion:
    module_name: str
    version_id: str  # "{module}@{short_sha}"
    commit_sha: str
    short_sha: str
    file_path: str
    content_hash: str
    functions: list[str] = field(default_factory=list)
    line_count: int = 0
    timestamp: datetime | None = None
    previous_version: str | None = None


@dataclass
class FunctionVersion:
    module_name: str
    function_name: str
    arity: int
    version_id: str  # "{module}.{name}/{arity}@{short_sha}"
    commit_sha: str
    short_sha: str
    file_path: str
    content_hash: str
    line_range: tuple[int, int] | None = None
    clause_count: int = 1
    timestamp: datetime | None = None
    previous_version: str | None = None


@dataclass(frozen=True)
class Derivation:
    """``derived_entity`` was derived from ``source_entity`` (newer from older)."""

    derived_entity: str
    source_entity: str
    derivation_type: DerivationType
    activity: str | None = None
    timestamp: datetime | None = None


@dataclass(frozen=True)
class SnapshotStats:
    module_count: int = 0
    function_count: int = 0
    macro_count: int = 0
    protocol_count: int = 0
    behaviour_count: int = 0
    line_count: int = 0
    file_count: int = 0


@dataclass
class CodebaseSnapshot:
    """Modules and size of the library tree at one commit."""

    snapshot_id: str  # "snapshot:{short_sha}"
    commit_sha: str
    short_sha: str
    timestamp: datetime | None = None
    project_name: str | None = None  # mix.exs app
    project_version: str | None = None
    modules: list[str] = field(default_factory=list)  # sorted
    files: list[str] = field(default_factory=list)  # sorted
    stats: SnapshotStats = field(default_factory=SnapshotStats)
