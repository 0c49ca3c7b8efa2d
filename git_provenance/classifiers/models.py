"""Data models for activity and refactoring classification."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from git_provenance.parsers.models import Commit


class ActivityType(Enum):
    FEATURE = "feature"
    BUGFIX = "bugfix"
    REFACTOR = "refactor"
    DOCS = "docs"
    TEST = "test"
    CHORE = "chore"
    STYLE = "style"
    PERF = "perf"
    CI = "ci"
    REVERT = "revert"
    DEPS = "deps"
    RELEASE = "release"
    WIP = "wip"
    UNKNOWN = "unknown"


class ClassificationMethod(Enum):
    CONVENTIONAL_COMMIT = "conventional_commit"
    KEYWORD = "keyword"
    FILE_BASED = "file_based"


class Confidence(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """0 for high, 2 for low; sorts strongest detections first."""
        return _CONFIDENCE_RANK[self]


_CONFIDENCE_RANK = {Confidence.HIGH: 0, Confidence.MEDIUM: 1, Confidence.LOW: 2}


@dataclass(frozen=True)
class ConventionalCommit:
    """Parsed ``type(scope)!: description`` header."""

    type: str
    description: str
    scope: str | None = None
    breaking: bool = False

    def compose(self) -> str:
        scope = f"({self.scope})" if self.scope else ""
        bang = "!" if self.breaking else ""
        return f"{self.type}{scope}{bang}: {self.description}"


@dataclass
class Classification:
    """How an activity type was determined."""

    method: ClassificationMethod
    confidence: Confidence
    raw_type: str | None = None  # conventional-commit type as written
    breaking: bool = False
    scope_hint: str | None = None


@dataclass
class Scope:
    """Files and modules touched by a commit."""

    files_changed: list[str] = field(default_factory=list)
    modules_affected: list[str] = field(default_factory=list)
    lines_added: int = 0
    lines_deleted: int = 0


@dataclass
class Activity:
    """A classified development activity (one per commit)."""

    activity_id: str
    type: ActivityType
    commit: Commit
    classification: Classification
    scope: Scope = field(default_factory=Scope)

    @property
    def is_breaking(self) -> bool:
        return self.classification.breaking


class RefactoringType(Enum):
    EXTRACT_FUNCTION = "extract_function"
    EXTRACT_MODULE = "extract_module"
    RENAME_FUNCTION = "rename_function"
    RENAME_MODULE = "rename_module"
    RENAME_VARIABLE = "rename_variable"
    INLINE_FUNCTION = "inline_function"
    MOVE_FUNCTION = "move_function"


@dataclass
class CodeLocation:
    """Either side of a refactoring: where code came from or went to."""

    file: str
    module: str | None = None
    function: tuple[str, int] | None = None  # (name, arity)
    line_range: tuple[int, int] | None = None
    code: str | None = None


@dataclass
class RefactoringRecord:
    type: RefactoringType
    source: CodeLocation
    target: CodeLocation
    confidence: Confidence
    commit_sha: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class IssueTracker(Enum):
    GITHUB = "github"
    GITLAB = "gitlab"
    JIRA = "jira"
    GENERIC = "generic"  # bare "#N"


class IssueAction(Enum):
    MENTIONS = "mentions"
    FIXES = "fixes"
    CLOSES = "closes"
    RESOLVES = "resolves"
    RELATES = "relates"

    @property
    def is_closing(self) -> bool:
        return self in (IssueAction.FIXES, IssueAction.CLOSES, IssueAction.RESOLVES)


@dataclass(frozen=True)
class IssueReference:
    """An issue named in a commit message, e.g. ``closes #12`` or ``PROJ-7``."""

    tracker: IssueTracker
    number: int
    project: str | None = None  # Jira-style key prefix
    action: IssueAction = IssueAction.MENTIONS
    url: str | None = None

    @property
    def key(self) -> tuple[IssueTracker, int, str | None]:
        return (self.tracker, self.number, self.project)


@dataclass
class FeatureAddition:
    name: str
    commit: Commit
    description: str | None = None  # commit body
    modules: list[str] = field(default_factory=list)
    issue_refs: list[IssueReference] = field(default_factory=list)
    scope: Scope | None = None
    classification: Classification | None = None


@dataclass
class BugFix:
    description: str
    commit: Commit
    affected_modules: list[str] = field(default_factory=list)
    issue_refs: list[IssueReference] = field(default_factory=list)
    scope: Scope | None = None
    classification: Classification | None = None


@dataclass
class FeatureReport:
    """Features and bug fixes found across a batch of commits, in commit order."""

    features: list[FeatureAddition] = field(default_factory=list)
    bugfixes: list[BugFix] = field(default_factory=list)
