"""Unified diff and numstat parsing."""

from __future__ import annotations

import re

import structlog

from git_provenance.core.config import Settings
from git_provenance.exceptions import CommandFailedError, InvalidRefError
from git_provenance.git.runner import run_git
from git_provenance.git.validation import validate_ref
from git_provenance.parsers.models import DiffHunk, DiffStatus, FileStat

log = structlog.get_logger("git_provenance.parsers.diff")

_SECTION_SPLIT_RE = re.compile(r"^diff --git ", re.MULTILINE)
_FILE_HEADER_RE = re.compile(r"a/(.+?) b/(.+?)$")
_SIMILARITY_RE = re.compile(r"^similarity index (\d+)%", re.MULTILINE)
_HUNK_HEADER_RE = re.compile(r"^@@ -\d+(?:,\d+)? \+(\d+)(?:,\d+)? @@")


def _parse_section(section: str) -> DiffHunk | None:
    lines = section.split("\n")
    header = _FILE_HEADER_RE.search(lines[0])
    if not header:
        return None
    old_path, new_path = header.group(1), header.group(2)

    # Metadata lines sit between the header and the first hunk.
    meta: list[str] = []
    for line in lines[1:]:
        if line.startswith("@@"):
            break
        meta.append(line)
        if line.startswith("rename from "):
            old_path = line[len("rename from "):]
        elif line.startswith("rename to "):
            new_path = line[len("rename to "):]

    similarity = None
    if any(m.startswith("new file") for m in meta):
        status = DiffStatus.ADDED
    elif any(m.startswith("deleted file") for m in meta):
        status = DiffStatus.DELETED
    elif old_path != new_path:
        status = DiffStatus.RENAMED
        match = _SIMILARITY_RE.search("\n".join(meta))
        if match:
            similarity = int(match.group(1))
    else:
        status = DiffStatus.MODIFIED

    hunk = DiffHunk(
        file=new_path,
        status=status,
        old_file=old_path if status is DiffStatus.RENAMED else None,
        similarity=similarity,
    )

    current: int | None = None
    for line in lines[1:]:
        match = _HUNK_HEADER_RE.match(line)
        if match:
            current = int(match.group(1))
            continue
        if current is None or line.startswith("\\"):
            continue
        if line.startswith("+") and not line.startswith("+++"):
            hunk.additions.append((current, line[1:]))
            current += 1
        elif line.startswith("-") and not line.startswith("---"):
            # Deleted lines do not exist after the change; the counter holds.
            hunk.deletions.append((current, line[1:]))
        else:
            current += 1
    return hunk


def parse_diff(text: str) -> list[DiffHunk]:
    """Split ``diff --git`` output into one :class:`DiffHunk` per file."""
    hunks: list[DiffHunk] = []
    for section in _SECTION_SPLIT_RE.split(text):
        if not section.strip():
            continue
        hunk = _parse_section(section)
        if hunk is None:
            log.debug("diff.section_skipped", head=section[:80])
            continue
        hunks.append(hunk)
    return hunks


def parse_numstat(text: str) -> list[FileStat]:
    """Parse ``--numstat`` rows; binary files (``-``) count as 0."""
    stats: list[FileStat] = []
    for line in text.splitlines():
        parts = line.split("\t")
        if len(parts) < 3:
            continue
        added, deleted, path = parts[0], parts[1], "\t".join(parts[2:])
        try:
            stats.append(
                FileStat(
                    path=path,
                    lines_added=0 if added == "-" else int(added),
                    lines_deleted=0 if deleted == "-" else int(deleted),
                )
            )
        except ValueError:
            continue
    return stats


def _diff_tree(repo_path: str, sha: str, flags: list[str], settings: Settings | None) -> str:
    validate_ref(sha)
    try:
        return run_git(
            repo_path,
            ["diff-tree", *flags, "--root", "--no-commit-id", "-r", sha],
            refs=[sha],
            settings=settings,
        )
    except CommandFailedError as exc:
        raise InvalidRefError(sha) from exc


def commit_diff(repo_path: str, sha: str, *, settings: Settings | None = None) -> list[DiffHunk]:
    """Per-file hunks for *sha* with rename detection."""
    return parse_diff(_diff_tree(repo_path, sha, ["-p", "-M"], settings))


def commit_numstat(repo_path: str, sha: str, *, settings: Settings | None = None) -> list[FileStat]:
    return parse_numstat(_diff_tree(repo_path, sha, ["--numstat"], settings))


def changed_files(repo_path: str, sha: str, *, settings: Settings | None = None) -> list[str]:
    output = _diff_tree(repo_path, sha, ["--name-only"], settings)
    return [line for line in output.splitlines() if line.strip()]
