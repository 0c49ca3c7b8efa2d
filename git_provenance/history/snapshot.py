"""Codebase snapshots: the library tree of a project as of one commit.

Files are listed with ``git ls-tree`` and read with ``git show``, so the
working tree is never consulted. Each file is read once; its module
declarations and definition counts feed the snapshot statistics.
"""

from __future__ import annotations

import structlog

from git_provenance.core.config import Settings
from git_provenance.exceptions import CommandFailedError, InvalidPathError
from git_provenance.git.repo import detect_repo, show_file
from git_provenance.git.runner import run_git
from git_provenance.history.models import CodebaseSnapshot, SnapshotStats
from git_provenance.lifecycle.release import project_app, project_version
from git_provenance.parsers.commit import extract_commit
from git_provenance.segmenter import DefinitionCounts, SourceSegmenter, get_segmenter

log = structlog.get_logger("git_provenance.history.snapshot")


def snapshot_id(short_sha: str) -> str:
    return f"snapshot:{short_sha}"


def count_lines(content: str) -> int:
    """Text lines in *content*; a trailing newline does not open another line."""
    if not content:
        return 0
    return content.count("\n") + (0 if content.endswith("\n") else 1)


def library_files_at(
    repo_root: str,
    sha: str,
    *,
    segmenter: SourceSegmenter | None = None,
    settings: Settings | None = None,
) -> list[str]:
    """Library source files in *sha*'s tree, in ``ls-tree`` order."""
    seg = segmenter or get_segmenter()
    out = run_git(
        repo_root, ["ls-tree", "-r", "--name-only", sha], refs=[sha], settings=settings
    )
    return [path for path in out.splitlines() if seg.is_library_file(path)]


def build_stats(
    modules: list[str], files: list[str], counts: DefinitionCounts, line_count: int
) -> SnapshotStats:
    return SnapshotStats(
        module_count=len(modules),
        function_count=counts.functions,
        macro_count=counts.macros,
        protocol_count=counts.protocols,
        behaviour_count=counts.behaviours,
        line_count=line_count,
        file_count=len(files),
    )


def extract_snapshot(
    repo_path: str,
    ref: str = "HEAD",
    *,
    segmenter: SourceSegmenter | None = None,
    settings: Settings | None = None,
) -> CodebaseSnapshot:
    """Snapshot the library tree at *ref*.

    Raises ``InvalidPathError`` / ``NotARepositoryError`` for a bad *repo_path*
    and ``InvalidRefError`` when *ref* does not resolve. A missing ``mix.exs``
    leaves the project name and version unset; files that cannot be read are
    skipped.
    """
    seg = segmenter or get_segmenter()
    repo_root = detect_repo(repo_path)
    commit = extract_commit(repo_root, ref, settings=settings)
    files = library_files_at(repo_root, commit.sha, segmenter=seg, settings=settings)

    modules: list[str] = []
    counts = DefinitionCounts()
    line_count = 0
    for path in files:
        try:
            content = show_file(repo_root, commit.sha, path, settings=settings)
        except (CommandFailedError, InvalidPathError) as exc:
            log.debug("snapshot.file_skipped", path=path, sha=commit.short_sha, error=str(exc))
            continue
        modules.extend(seg.module_declarations(content))
        counts += seg.definition_counts(content)
        line_count += count_lines(content)

    modules = sorted(set(modules))
    snapshot = CodebaseSnapshot(
        snapshot_id=snapshot_id(commit.short_sha),
        commit_sha=commit.sha,
        short_sha=commit.short_sha,
        timestamp=commit.commit_date,
        project_name=project_app(repo_root, commit.sha, settings=settings),
        project_version=project_version(repo_root, commit.sha, settings=settings),
        modules=modules,
        files=sorted(files),
        stats=build_stats(modules, files, counts, line_count),
    )
    log.debug(
        "snapshot.extracted",
        sha=commit.short_sha,
        files=len(files),
        modules=len(modules),
    )
    return snapshot
