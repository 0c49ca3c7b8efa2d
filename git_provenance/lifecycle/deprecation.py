"""Deprecation tracking: ``@deprecated`` attributes added to and removed from source.

A deprecation is an ``@deprecated`` attribute on an added line, bound to the
definition that follows it.  A removal is the same pairing found in deleted
lines, which means a previously deprecated element went away.
"""

from __future__ import annotations

import re

import structlog

from git_provenance.core.config import Settings, load_settings
from git_provenance.exceptions import CommandFailedError, ProvenanceError
from git_provenance.git.repo import detect_repo
from git_provenance.git.runner import run_git
from git_provenance.git.validation import is_valid_sha, normalize_file_path
from git_provenance.lifecycle.models import (
    Deprecation,
    DeprecationEvent,
    ElementType,
    RemovalEvent,
    Replacement,
)
from git_provenance.parsers.commit import extract_commit
from git_provenance.parsers.diff import commit_diff
from git_provenance.parsers.models import Commit, DiffHunk
from git_provenance.segmenter import count_arity, get_segmenter
from git_provenance.segmenter.base import balanced_args

log = structlog.get_logger("git_provenance.lifecycle.deprecation")

DEFAULT_MESSAGE = "Deprecated"

# Quoting forms accepted after @deprecated; `true` carries no message.
_ATTRIBUTE_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r'@deprecated\s+"([^"]+)"'),
    re.compile(r"@deprecated\s+'([^']+)'"),
    re.compile(r"@deprecated\s+~[sS]\[([^\]]+)\]"),
    re.compile(r"@deprecated\s+~[sS]/([^/]+)/"),
    re.compile(r"@deprecated\s+~[sS]\(([^)]+)\)"),
    re.compile(r"@deprecated\s+~[sS]\{([^}]+)\}"),
    re.compile(r"@deprecated\s+true\b"),
]

_NAME = r"([a-z_][a-z0-9_]*[!?]?)"
_ELEMENT_PATTERNS: list[tuple[ElementType, re.Pattern[str]]] = [
    (ElementType.MACRO, re.compile(rf"\bdefmacrop?\s+{_NAME}")),
    (ElementType.FUNCTION, re.compile(rf"\bdefp?\s+{_NAME}")),
    (ElementType.CALLBACK, re.compile(rf"@(?:macro)?callback\s+{_NAME}\s*\(")),
    (ElementType.TYPE, re.compile(r"@(?:type|typep|opaque)\s+([a-z_][a-z0-9_]*)")),
    (ElementType.MODULE, re.compile(r"\bdefmodule\s+([A-Z][\w.]*)")),
]

# First match wins: the most specific reference form comes first.
_REPLACEMENT_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"([A-Z][\w.]*)\.([a-z_][a-z0-9_]*[!?]?)/(\d+)"),
    re.compile(r"([A-Z][\w.]*)\.([a-z_][a-z0-9_]*[!?]?)\b(?!/)"),
    re.compile(r"\b([a-z_][a-z0-9_]*[!?]?)/(\d+)"),
    re.compile(r"(?<![\w:]):([a-z_][a-z0-9_]*)\b"),
]

PICKAXE_TERM = "@deprecated"


def parse_deprecated_attribute(line: str) -> str | None:
    """The deprecation message on *line*, or ``None`` when there is none."""
    for pattern in _ATTRIBUTE_PATTERNS:
        match = pattern.search(line)
        if match:
            return match.group(1) if match.groups() else DEFAULT_MESSAGE
    return None


def _camelize(segment: str) -> str:
    return "".join(part[:1].upper() + part[1:] for part in segment.split("_") if part)


def parse_replacement(message: str | None) -> Replacement | None:
    """Pull a ``Module.fun/arity``, ``fun/arity`` or ``:atom`` reference out of *message*."""
    if not message:
        return None
    for index, pattern in enumerate(_REPLACEMENT_PATTERNS):
        match = pattern.search(message)
        if not match:
            continue
        if index == 0:
            module, name, arity = match.groups()
            return Replacement(message, module=module, function=(name, int(arity)))
        if index == 1:
            module, name = match.groups()
            return Replacement(message, module=module, function=(name, 0))
        if index == 2:
            name, arity = match.groups()
            return Replacement(message, function=(name, int(arity)))
        return Replacement(message, module=_camelize(match.group(1)))
    return Replacement(message)


def has_replacement(deprecation: Deprecation) -> bool:
    return deprecation.replacement is not None and deprecation.replacement.is_known


def _is_skippable(line: str) -> bool:
    trimmed = line.strip()
    return not trimmed or trimmed.startswith(("#", "@"))


def _definition_arity(line: str, name_end: int) -> int:
    open_index = line.find("(", name_end)
    if open_index == -1 or line[name_end:open_index].strip():
        return 0
    args = balanced_args(line, open_index)
    if args is None:
        args = line[open_index + 1 :]
    return count_arity(args)


def find_following_element(
    lines: list[str],
) -> tuple[ElementType, str, int | None] | None:
    """The definition an attribute sits on.

    Scans past blanks, comments and other attributes; the first remaining
    line decides.  ``None`` if that line is not a definition.
    """
    for line in lines:
        trimmed = line.strip()
        for element_type, pattern in _ELEMENT_PATTERNS:
            match = pattern.search(trimmed)
            if match is None:
                continue
            if element_type in (ElementType.FUNCTION, ElementType.MACRO):
                return element_type, match.group(1), _definition_arity(trimmed, match.end(1))
            return element_type, match.group(1), None
        if _is_skippable(line):
            continue
        return None
    return None


def _build(
    element: tuple[ElementType, str, int | None] | None,
    message: str,
    file: str,
) -> Deprecation:
    element_type, name, arity = element or (ElementType.UNKNOWN, "unknown", None)
    return Deprecation(
        element_type=element_type,
        element_name=name,
        message=message,
        module=get_segmenter().module_from_path(file),
        function=(name, arity) if arity is not None else None,
        replacement=parse_replacement(message),
    )


def deprecations_in_hunk(hunk: DiffHunk, commit: Commit | None = None) -> list[Deprecation]:
    """``@deprecated`` attributes among *hunk*'s added lines."""
    lines = [text for _, text in hunk.additions]
    found: list[Deprecation] = []
    for idx, (line_number, text) in enumerate(hunk.additions):
        message = parse_deprecated_attribute(text)
        if message is None:
            continue
        deprecation = _build(find_following_element(lines[idx + 1 :]), message, hunk.file)
        deprecation.deprecated_in = DeprecationEvent(
            file=hunk.file, commit=commit, line=line_number
        )
        found.append(deprecation)
    return found


def removals_in_hunk(hunk: DiffHunk, commit: Commit | None = None) -> list[Deprecation]:
    """Deprecated definitions among *hunk*'s deleted lines."""
    lines = [text for _, text in hunk.deletions]
    found: list[Deprecation] = []
    for idx, text in enumerate(lines):
        message = parse_deprecated_attribute(text)
        if message is None:
            continue
        element = find_following_element(lines[idx + 1 :])
        if element is None:
            continue
        removal = _build(element, message, hunk.file)
        removal.removed_in = RemovalEvent(file=hunk.file, commit=commit)
        removal.metadata["previously_deprecated"] = True
        found.append(removal)
    return found


def _source_hunks(hunks: list[DiffHunk]) -> list[DiffHunk]:
    segmenter = get_segmenter()
    return [h for h in hunks if segmenter.is_source_file(h.file)]


def _resolve_commit(repo_root: str, commit: Commit | str, settings: Settings | None) -> Commit:
    if isinstance(commit, Commit):
        return commit
    return extract_commit(repo_root, commit, settings=settings)


def deprecations_in_commit(
    repo_path: str, commit: Commit | str, *, settings: Settings | None = None
) -> list[Deprecation]:
    repo_root = detect_repo(repo_path)
    resolved = _resolve_commit(repo_root, commit, settings)
    hunks = _source_hunks(commit_diff(repo_root, resolved.sha, settings=settings))
    return [d for hunk in hunks for d in deprecations_in_hunk(hunk, resolved)]


def removals_in_commit(
    repo_path: str, commit: Commit | str, *, settings: Settings | None = None
) -> list[Deprecation]:
    repo_root = detect_repo(repo_path)
    resolved = _resolve_commit(repo_root, commit, settings)
    hunks = _source_hunks(commit_diff(repo_root, resolved.sha, settings=settings))
    return [r for hunk in hunks for r in removals_in_hunk(hunk, resolved)]


def deprecation_commits(
    repo_path: str, *, limit: int | None = None, settings: Settings | None = None
) -> list[str]:
    """Shas of commits (any branch) whose diff adds or removes ``@deprecated``."""
    cfg = settings or load_settings()
    count = cfg.default_limit if limit is None else min(limit, cfg.max_commits)
    output = run_git(
        detect_repo(repo_path),
        ["log", "--all", "-S", PICKAXE_TERM, "--pretty=format:%H", "-n", str(count)],
        settings=settings,
    )
    return [line.strip() for line in output.splitlines() if is_valid_sha(line.strip())]


def _file_commits(
    repo_root: str, rel_path: str, limit: int, settings: Settings | None
) -> list[str]:
    try:
        output = run_git(
            repo_root,
            ["log", "--follow", "--pretty=format:%H", "-n", str(limit), "--", rel_path],
            paths=[rel_path],
            settings=settings,
        )
    except CommandFailedError:
        return []
    return [line.strip() for line in output.splitlines() if is_valid_sha(line.strip())]


def track_deprecations(
    repo_path: str,
    *,
    file_path: str | None = None,
    limit: int | None = None,
    settings: Settings | None = None,
) -> list[Deprecation]:
    """Deprecations across history, newest commit first.

    Without *file_path* the candidate commits come from a pickaxe search for
    ``@deprecated``; with it, from the file's own log, and only deprecations
    in that file are kept.  Commits that fail to load are logged and skipped.
    """
    cfg = settings or load_settings()
    repo_root = detect_repo(repo_path)
    rel_path = normalize_file_path(file_path, repo_root) if file_path else None
    if rel_path is None:
        shas = deprecation_commits(repo_root, limit=limit, settings=settings)
    else:
        count = cfg.default_limit if limit is None else min(limit, cfg.max_commits)
        shas = _file_commits(repo_root, rel_path, count, settings)

    result: list[Deprecation] = []
    for sha in shas:
        try:
            found = deprecations_in_commit(repo_root, sha, settings=settings)
        except ProvenanceError as exc:
            log.debug("deprecation.commit_skipped", sha=sha[:7], reason=exc.reason)
            continue
        if rel_path is not None:
            found = [d for d in found if d.deprecated_in and d.deprecated_in.file == rel_path]
        result.extend(found)
    log.info("deprecation.tracked", commits=len(shas), deprecations=len(result))
    return result
