"""Entity version tracking: module and function snapshots chained by content hash.

For a named module (or one of its functions) we walk the commits touching its
file, slice the entity's source out of each snapshot with the source segmenter,
and hash the whitespace-normalised text.  Consecutive snapshots with the same
hash collapse into one version (the newest of the run survives) and every
survivor points at the next older survivor through ``previous_version``.
"""

from __future__ import annotations

import re
from datetime import datetime

import structlog

from git_provenance.core.config import Settings, load_settings
from git_provenance.exceptions import (
    CommandFailedError,
    FunctionNotFoundError,
    ModuleNotFoundInSourceError,
    ParseError,
    ProvenanceError,
)
from git_provenance.git.repo import detect_repo, show_file
from git_provenance.git.runner import run_git
from git_provenance.git.validation import is_valid_sha, parse_iso8601, validate_ref
from git_provenance.history.models import (
    Derivation,
    DerivationType,
    FunctionVersion,
    ModuleVersion,
)
from git_provenance.ids import content_id
from git_provenance.segmenter import SourceSegmenter, get_segmenter

log = structlog.get_logger("git_provenance.history.entity_version")

_WHITESPACE_RE = re.compile(r"\s+")

SHORT_SHA_LENGTH = 7


def content_hash(source: str) -> str:
    """16-char hash of *source* with all whitespace runs collapsed."""
    return content_id(_WHITESPACE_RE.sub(" ", source).strip())


def module_version_id(module: str, sha: str) -> str:
    return f"{module}@{sha[:SHORT_SHA_LENGTH]}"


def function_version_id(module: str, name: str, arity: int, sha: str) -> str:
    return f"{module}.{name}/{arity}@{sha[:SHORT_SHA_LENGTH]}"


# ── git helpers ──────────────────────────────────────────────────────


def commit_info(
    repo_root: str, ref: str, *, settings: Settings | None = None
) -> tuple[str, datetime | None]:
    """Resolve *ref* to ``(sha, author_date)``."""
    output = run_git(
        repo_root, ["show", "-s", "--format=%H%n%aI", ref], refs=[ref], settings=settings
    )
    lines = output.strip().split("\n")
    if len(lines) < 2 or not is_valid_sha(lines[0].strip()):
        raise ParseError(f"unexpected commit info for {ref!r}")
    return lines[0].strip(), parse_iso8601(lines[1].strip())


def commits_for_entity_file(
    repo_root: str,
    file_path: str,
    limit: int,
    *,
    settings: Settings | None = None,
) -> list[str]:
    cfg = settings or load_settings()
    safe_limit = min(limit, cfg.max_commits)
    output = run_git(
        repo_root,
        ["log", "--format=%H", "-n", str(safe_limit), "--follow", "--", file_path],
        paths=[file_path],
        settings=settings,
    )
    return [line.strip() for line in output.splitlines() if line.strip()]


def find_module_file(
    repo_root: str,
    module: str,
    ref: str = "HEAD",
    *,
    segmenter: SourceSegmenter | None = None,
    settings: Settings | None = None,
) -> str:
    """First conventional location of *module* whose content at *ref* declares it."""
    seg = segmenter or get_segmenter()
    for candidate in seg.module_file_candidates(module):
        try:
            content = show_file(repo_root, ref, candidate, settings=settings)
        except CommandFailedError:
            continue
        if seg.declares_module(content, module):
            return candidate
    raise ModuleNotFoundInSourceError(module, ref)


# ── single snapshots ─────────────────────────────────────────────────


def module_at_commit(
    repo_path: str,
    module: str,
    ref: str = "HEAD",
    *,
    include_functions: bool = False,
    segmenter: SourceSegmenter | None = None,
    settings: Settings | None = None,
) -> ModuleVersion:
    validate_ref(ref)
    seg = segmenter or get_segmenter()
    repo_root = detect_repo(repo_path)
    file_path = find_module_file(repo_root, module, ref, segmenter=seg, settings=settings)
    content = show_file(repo_root, ref, file_path, settings=settings)
    source = seg.extract_module(content, module)
    sha, timestamp = commit_info(repo_root, ref, settings=settings)

    return ModuleVersion(
        module_name=module,
        version_id=module_version_id(module, sha),
        commit_sha=sha,
        short_sha=sha[:SHORT_SHA_LENGTH],
        file_path=file_path,
        content_hash=content_hash(source),
        functions=seg.function_names(source) if include_functions else [],
        line_count=len(source.split("\n")),
        timestamp=timestamp,
    )


def function_at_commit(
    repo_path: str,
    module: str,
    name: str,
    arity: int,
    ref: str = "HEAD",
    *,
    segmenter: SourceSegmenter | None = None,
    settings: Settings | None = None,
) -> FunctionVersion:
    validate_ref(ref)
    seg = segmenter or get_segmenter()
    repo_root = detect_repo(repo_path)
    file_path = find_module_file(repo_root, module, ref, segmenter=seg, settings=settings)
    content = show_file(repo_root, ref, file_path, settings=settings)
    try:
        fn = seg.extract_function(content, name, arity)
    except FunctionNotFoundError as exc:
        raise FunctionNotFoundError(module, name, arity) from exc
    sha, timestamp = commit_info(repo_root, ref, settings=settings)

    return FunctionVersion(
        module_name=module,
        function_name=name,
        arity=arity,
        version_id=function_version_id(module, name, arity, sha),
        commit_sha=sha,
        short_sha=sha[:SHORT_SHA_LENGTH],
        file_path=file_path,
        content_hash=content_hash(fn.source),
        line_range=fn.line_range,
        clause_count=fn.clause_count,
        timestamp=timestamp,
    )


# ── chains ───────────────────────────────────────────────────────────


def deduplicate_versions(versions: list) -> list:
    """Collapse runs of equal ``content_hash``, keeping the first (newest) of each."""
    result: list = []
    for version in versions:
        if result and result[-1].content_hash == version.content_hash:
            continue
        result.append(version)
    return result


def link_previous_versions(versions: list) -> list:
    """Point each version at the next older one; the oldest gets ``None``."""
    for newer, older in zip(versions, versions[1:]):
        newer.previous_version = older.version_id
    if versions:
        versions[-1].previous_version = None
    return versions


def _history_limit(limit: int | None, settings: Settings | None) -> int:
    if limit is not None:
        return limit
    return (settings or load_settings()).default_limit


def track_module_versions(
    repo_path: str,
    module: str,
    *,
    limit: int | None = None,
    include_functions: bool = False,
    segmenter: SourceSegmenter | None = None,
    settings: Settings | None = None,
) -> list[ModuleVersion]:
    """Deduplicated module versions, newest first, with ``previous_version`` links."""
    seg = segmenter or get_segmenter()
    repo_root = detect_repo(repo_path)
    file_path = find_module_file(repo_root, module, "HEAD", segmenter=seg, settings=settings)
    commits = commits_for_entity_file(
        repo_root, file_path, _history_limit(limit, settings), settings=settings
    )

    versions: list[ModuleVersion] = []
    for sha in commits:
        try:
            versions.append(
                module_at_commit(
                    repo_root,
                    module,
                    sha,
                    include_functions=include_functions,
                    segmenter=seg,
                    settings=settings,
                )
            )
        except ProvenanceError as exc:
            log.debug(
                "entity_version.snapshot_skipped", module=module, sha=sha[:7], reason=exc.reason
            )

    survivors = link_previous_versions(deduplicate_versions(versions))
    log.info(
        "entity_version.module_tracked",
        module=module,
        snapshots=len(versions),
        versions=len(survivors),
    )
    return survivors


def track_function_versions(
    repo_path: str,
    module: str,
    name: str,
    arity: int,
    *,
    limit: int | None = None,
    segmenter: SourceSegmenter | None = None,
    settings: Settings | None = None,
) -> list[FunctionVersion]:
    seg = segmenter or get_segmenter()
    repo_root = detect_repo(repo_path)
    file_path = find_module_file(repo_root, module, "HEAD", segmenter=seg, settings=settings)
    commits = commits_for_entity_file(
        repo_root, file_path, _history_limit(limit, settings), settings=settings
    )

    versions: list[FunctionVersion] = []
    for sha in commits:
        try:
            versions.append(
                function_at_commit(
                    repo_root, module, name, arity, sha, segmenter=seg, settings=settings
                )
            )
        except ProvenanceError as exc:
            log.debug(
                "entity_version.snapshot_skipped",
                function=f"{module}.{name}/{arity}",
                sha=sha[:7],
                reason=exc.reason,
            )

    survivors = link_previous_versions(deduplicate_versions(versions))
    log.info(
        "entity_version.function_tracked",
        function=f"{module}.{name}/{arity}",
        snapshots=len(versions),
        versions=len(survivors),
    )
    return survivors


def build_derivation(
    derived_entity: str,
    source_entity: str,
    *,
    derivation_type: DerivationType = DerivationType.REVISION,
    activity: str | None = None,
    timestamp: datetime | None = None,
) -> Derivation:
    return Derivation(
        derived_entity=derived_entity,
        source_entity=source_entity,
        derivation_type=derivation_type,
        activity=activity,
        timestamp=timestamp,
    )


def build_derivation_chain(versions: list) -> list[Derivation]:
    """One ``revision`` derivation per adjacent (newer, older) pair."""
    return [
        build_derivation(
            newer.version_id,
            older.version_id,
            activity=newer.commit_sha,
            timestamp=getattr(newer, "timestamp", None),
        )
        for newer, older in zip(versions, versions[1:])
    ]


def same_content(a, b) -> bool:
    return a.content_hash == b.content_hash


def version_chain(versions: list) -> list[str]:
    return [v.version_id for v in versions]


def find_change_introducing_version(versions: list):
    """The newest version whose content differs from the one before it.

    Falls back to the newest version when nothing changed.
    """
    if not versions:
        return None
    for newer, older in zip(versions, versions[1:]):
        if newer.content_hash != older.content_hash:
            return newer
    return versions[0]
