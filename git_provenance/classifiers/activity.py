"""Activity classification: conventional commit, then keywords, then files."""

from __future__ import annotations

import re

import structlog

from git_provenance.classifiers.models import (
    Activity,
    ActivityType,
    Classification,
    ClassificationMethod,
    Confidence,
    ConventionalCommit,
    Scope,
)
from git_provenance.core.config import Settings
from git_provenance.exceptions import NotConventionalError, ProvenanceError
from git_provenance.parsers.diff import commit_numstat
from git_provenance.parsers.models import Commit, FileStat
from git_provenance.segmenter import get_segmenter

log = structlog.get_logger("git_provenance.classifiers.activity")

# type, optional "!" , optional (scope), optional "!", colon, description
_CONVENTIONAL_RE = re.compile(
    r"^(\w+(?:-\w+)*)(!)?(?:\(([^)]*)\))?(!)?\s*:\s*(.+)$", re.DOTALL
)

_TYPE_MAP: dict[str, ActivityType] = {
    "feat": ActivityType.FEATURE,
    "feature": ActivityType.FEATURE,
    "fix": ActivityType.BUGFIX,
    "bugfix": ActivityType.BUGFIX,
    "refactor": ActivityType.REFACTOR,
    "docs": ActivityType.DOCS,
    "doc": ActivityType.DOCS,
    "test": ActivityType.TEST,
    "tests": ActivityType.TEST,
    "chore": ActivityType.CHORE,
    "build": ActivityType.CHORE,
    "style": ActivityType.STYLE,
    "perf": ActivityType.PERF,
    "performance": ActivityType.PERF,
    "ci": ActivityType.CI,
    "revert": ActivityType.REVERT,
    "deps": ActivityType.DEPS,
    "dependency": ActivityType.DEPS,
    "dependencies": ActivityType.DEPS,
    "release": ActivityType.RELEASE,
    "version": ActivityType.RELEASE,
    "wip": ActivityType.WIP,
}

# First match wins. "feature" is last: its words ("add", "new") also appear in
# messages that belong to the more specific categories above it.
_KEYWORD_RULES: list[tuple[ActivityType, re.Pattern[str]]] = [
    (ActivityType.REVERT, re.compile(r"^revert\b", re.IGNORECASE)),
    (
        ActivityType.DOCS,
        re.compile(
            r"\b(doc|docs|documentation|readme|comment|comments|javadoc|typedoc|moduledoc)\b",
            re.IGNORECASE,
        ),
    ),
    (ActivityType.TEST, re.compile(r"\b(test|tests|testing|spec|specs|coverage)\b", re.IGNORECASE)),
    (
        ActivityType.PERF,
        re.compile(
            r"\b(perf|performance|optimize|optimized|optimization|speed|faster|cache|caching)\b",
            re.IGNORECASE,
        ),
    ),
    (
        ActivityType.BUGFIX,
        re.compile(
            r"\b(fix|fixed|fixing|bug|bugfix|repair|resolve|resolved|resolves|closes?|closed)\b",
            re.IGNORECASE,
        ),
    ),
    (
        ActivityType.REFACTOR,
        re.compile(
            r"\b(refactor|refactored|refactoring|restructure|reorganize"
            r"|cleanup|clean up|simplify)\b",
            re.IGNORECASE,
        ),
    ),
    (
        ActivityType.CHORE,
        re.compile(r"\b(chore|build|tooling|config|configure|setup|maintenance)\b", re.IGNORECASE),
    ),
    (
        ActivityType.STYLE,
        re.compile(r"\b(style|format|formatting|lint|linting|prettier|credo)\b", re.IGNORECASE),
    ),
    (
        ActivityType.CI,
        re.compile(
            r"\b(ci|cd|pipeline|github actions|travis|circle|jenkins|workflow)\b", re.IGNORECASE
        ),
    ),
    (
        ActivityType.DEPS,
        re.compile(
            r"\b(deps|dependency|dependencies|upgrade|update|bump|version)\s+"
            r"(mix\.exs|package\.json|gemfile)",
            re.IGNORECASE,
        ),
    ),
    (
        ActivityType.RELEASE,
        re.compile(
            r"\b(release|version|v?\d+\.\d+\.\d+|bump version|prepare release)\b", re.IGNORECASE
        ),
    ),
    (ActivityType.WIP, re.compile(r"\b(wip|work in progress|todo|fixme|hack)\b", re.IGNORECASE)),
    (
        ActivityType.FEATURE,
        re.compile(
            r"\b(add|added|adding|implement|implemented|implementing|new|create|created|"
            r"introduce|introduced)\b",
            re.IGNORECASE,
        ),
    ),
]

_BREAKING_WORD_RE = re.compile(r"\bbreaking\b", re.IGNORECASE)

_TEST_SUFFIXES = ("_test.exs", "_test.ex", ".test.js", ".spec.js")
_DOC_SUFFIXES = (".md", ".txt", ".rst")
_CI_PREFIXES = (".github/", ".circleci/", ".travis")
_DEPS_FILESETS = (["mix.exs"], ["mix.exs", "mix.lock"])


def parse_conventional_commit(message: str | None) -> ConventionalCommit:
    """Parse the first line of *message* as ``type(scope)!: description``.

    Raises ``NotConventionalError`` if it does not match.
    """
    if message is None:
        raise NotConventionalError("empty commit message")
    subject = message.split("\n", 1)[0].strip()
    match = _CONVENTIONAL_RE.match(subject)
    if not match:
        raise NotConventionalError(f"not a conventional commit: {subject[:80]!r}")
    type_, bang_before, scope, bang_after, description = match.groups()
    return ConventionalCommit(
        type=type_.lower(),
        description=description.strip(),
        scope=scope or None,
        breaking=bool(bang_before or bang_after),
    )


def is_conventional_commit(message: str | None) -> bool:
    try:
        parse_conventional_commit(message)
    except NotConventionalError:
        return False
    return True


def type_from_string(raw: str) -> ActivityType:
    return _TYPE_MAP.get(raw.lower(), ActivityType.UNKNOWN)


def has_breaking_marker(text: str | None) -> bool:
    if not text:
        return False
    return (
        "BREAKING CHANGE" in text
        or "BREAKING:" in text
        or _BREAKING_WORD_RE.search(text) is not None
    )


def classify_by_keywords(
    subject: str | None, body: str | None = None
) -> tuple[ActivityType, Classification]:
    if subject:
        for activity_type, pattern in _KEYWORD_RULES:
            if pattern.search(subject):
                return activity_type, Classification(
                    method=ClassificationMethod.KEYWORD,
                    confidence=Confidence.MEDIUM,
                    breaking=has_breaking_marker(subject) or has_breaking_marker(body),
                )
    return ActivityType.UNKNOWN, Classification(
        method=ClassificationMethod.KEYWORD, confidence=Confidence.LOW
    )


def _is_test_file(path: str) -> bool:
    return "/test/" in path or path.startswith("test/") or path.endswith(_TEST_SUFFIXES)


def _is_doc_file(path: str) -> bool:
    return (
        path.endswith(_DOC_SUFFIXES)
        or path.startswith("docs/")
        or path in ("README", "CHANGELOG")
    )


def _is_ci_file(path: str) -> bool:
    return path.startswith(_CI_PREFIXES) or path in (".gitlab-ci.yml", "Jenkinsfile")


def classify_by_files(files: list[str]) -> tuple[ActivityType, Classification]:
    """Low-confidence guess from the set of changed paths alone."""
    result = ActivityType.UNKNOWN
    if files:
        if all(_is_test_file(f) for f in files):
            result = ActivityType.TEST
        elif all(_is_doc_file(f) for f in files):
            result = ActivityType.DOCS
        elif sorted(files) in _DEPS_FILESETS:
            result = ActivityType.DEPS
        elif all(_is_ci_file(f) for f in files):
            result = ActivityType.CI
    return result, Classification(method=ClassificationMethod.FILE_BASED, confidence=Confidence.LOW)


def classify(
    subject: str | None,
    body: str | None = None,
    files: list[str] | None = None,
) -> tuple[ActivityType, Classification]:
    """Classify a commit from its subject, body and (optionally) changed files.

    Pure: the same inputs always give the same result.
    """
    try:
        parsed = parse_conventional_commit(subject)
    except NotConventionalError:
        parsed = None

    if parsed is not None:
        activity_type = type_from_string(parsed.type)
        classification = Classification(
            method=ClassificationMethod.CONVENTIONAL_COMMIT,
            confidence=Confidence.HIGH,
            raw_type=parsed.type,
            breaking=parsed.breaking or has_breaking_marker(body),
            scope_hint=parsed.scope,
        )
    else:
        activity_type, classification = classify_by_keywords(subject, body)

    # Whichever stage came up empty, the changed paths get the last word.
    if activity_type is ActivityType.UNKNOWN and files:
        file_type, file_classification = classify_by_files(files)
        if file_type is not ActivityType.UNKNOWN:
            return file_type, file_classification
    return activity_type, classification


def scope_from_stats(stats: list[FileStat]) -> Scope:
    segmenter = get_segmenter()
    files = [s.path for s in stats]
    modules = [
        segmenter.module_from_path(f)
        for f in files
        if f.startswith("lib/") and segmenter.is_source_file(f)
    ]
    return Scope(
        files_changed=files,
        modules_affected=list(dict.fromkeys(m for m in modules if m)),
        lines_added=sum(s.lines_added for s in stats),
        lines_deleted=sum(s.lines_deleted for s in stats),
    )


def activity_scope(repo_path: str, sha: str, *, settings: Settings | None = None) -> Scope:
    return scope_from_stats(commit_numstat(repo_path, sha, settings=settings))


def activity_id(commit: Commit) -> str:
    return f"activity:{commit.short_sha}"


def classify_commit(
    repo_path: str,
    commit: Commit,
    *,
    include_scope: bool = True,
    settings: Settings | None = None,
) -> Activity:
    """Classify *commit*, gathering its file scope from git when requested."""
    scope = Scope()
    if include_scope:
        try:
            scope = activity_scope(repo_path, commit.sha, settings=settings)
        except ProvenanceError as exc:
            log.warning("activity.scope_failed", sha=commit.short_sha, error=str(exc))

    activity_type, classification = classify(
        commit.subject, commit.body, scope.files_changed or None
    )
    return Activity(
        activity_id=activity_id(commit),
        type=activity_type,
        commit=commit,
        classification=classification,
        scope=scope,
    )


def classify_commits(
    repo_path: str,
    commits: list[Commit],
    *,
    include_scope: bool = True,
    settings: Settings | None = None,
) -> list[Activity]:
    return [
        classify_commit(repo_path, c, include_scope=include_scope, settings=settings)
        for c in commits
    ]
