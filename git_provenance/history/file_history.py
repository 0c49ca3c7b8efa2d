"""File history: commits touching a path and the renames along the way."""

from __future__ import annotations

import re

import structlog

from git_provenance.core.config import Settings
from git_provenance.exceptions import CommandFailedError, FileNotTrackedError
from git_provenance.git.repo import detect_repo
from git_provenance.git.runner import run_git
from git_provenance.git.validation import is_valid_sha, normalize_file_path
from git_provenance.history.models import FileHistory, Rename

log = structlog.get_logger("git_provenance.history.file_history")

_RENAME_STATUS_RE = re.compile(r"^R(\d+)?$")


def parse_commit_list(output: str) -> list[str]:
    return [line.strip() for line in output.splitlines() if is_valid_sha(line.strip())]


def parse_renames(output: str) -> list[Rename]:
    """Parse ``log --format=%H --name-status`` output into renames, oldest first.

    Rows look like ``R<similarity>\\t<from>\\t<to>`` under the sha line of
    the commit that made them.
    """
    renames: list[Rename] = []
    current_sha: str | None = None
    for raw in output.splitlines():
        line = raw.strip("\r")
        if is_valid_sha(line.strip()):
            current_sha = line.strip()
            continue
        if current_sha is None or not line.startswith("R"):
            continue
        parts = line.split("\t")
        if len(parts) != 3:
            continue
        status, from_path, to_path = parts
        match = _RENAME_STATUS_RE.match(status)
        if not match:
            continue
        renames.append(
            Rename(
                from_path=from_path,
                to_path=to_path,
                commit_sha=current_sha,
                similarity=int(match.group(1)) if match.group(1) else None,
            )
        )
    # git log lists newest first.
    renames.reverse()
    return renames


def commits_for_file(
    repo_root: str,
    rel_path: str,
    *,
    follow: bool = True,
    limit: int | None = None,
    settings: Settings | None = None,
) -> list[str]:
    args = ["log", "--format=%H"]
    if follow:
        args.append("--follow")
    if limit is not None:
        args += ["-n", str(limit)]
    args += ["--", rel_path]
    try:
        output = run_git(repo_root, args, paths=[rel_path], settings=settings)
    except CommandFailedError:
        log.debug("file_history.log_failed", path=rel_path)
        return []
    return parse_commit_list(output)


def renames_for_file(
    repo_root: str, rel_path: str, *, settings: Settings | None = None
) -> list[Rename]:
    args = ["log", "--format=%H", "--name-status", "--follow", "--diff-filter=R", "--", rel_path]
    try:
        output = run_git(repo_root, args, paths=[rel_path], settings=settings)
    except CommandFailedError:
        log.debug("file_history.renames_failed", path=rel_path)
        return []
    return parse_renames(output)


def build_file_history(path: str, commits: list[str], renames: list[Rename]) -> FileHistory:
    if not commits:
        raise FileNotTrackedError(path)
    return FileHistory(
        path=path,
        commits=commits,
        renames=renames,
        original_path=renames[0].from_path if renames else None,
        first_commit=commits[-1],
        last_commit=commits[0],
        commit_count=len(commits),
    )


def file_history(
    repo_path: str,
    file_path: str,
    *,
    follow: bool = True,
    limit: int | None = None,
    settings: Settings | None = None,
) -> FileHistory:
    """Commits and renames for *file_path*; ``FileNotTrackedError`` if it has none."""
    repo_root = detect_repo(repo_path)
    rel_path = normalize_file_path(file_path, repo_root)
    commits = commits_for_file(
        repo_root, rel_path, follow=follow, limit=limit, settings=settings
    )
    renames = renames_for_file(repo_root, rel_path, settings=settings) if commits else []
    return build_file_history(rel_path, commits, renames)


def file_exists_in_history(
    repo_path: str, file_path: str, *, settings: Settings | None = None
) -> bool:
    try:
        file_history(repo_path, file_path, limit=1, settings=settings)
    except FileNotTrackedError:
        return False
    return True


def path_at_commit(history: FileHistory, commit_sha: str) -> str:
    """The path the file had at *commit_sha*.

    Walks the renames newest first: a target at or newer than a rename keeps
    that rename's ``to`` path, an older target steps back to its ``from``.
    Unknown commits resolve to the current path.
    """
    if not history.renames:
        return history.path
    try:
        target = history.commits.index(commit_sha)
    except ValueError:
        return history.path

    positions = {sha: i for i, sha in enumerate(history.commits)}
    path = history.path
    for rename in reversed(history.renames):
        rename_index = positions.get(rename.commit_sha)
        if rename_index is None or target <= rename_index:
            # Newest-first list: a smaller index is a newer commit.
            continue
        if path == rename.to_path:
            path = rename.from_path
    return path
