"""Porcelain blame parsing and per-file attribution."""

from __future__ import annotations

import re
import time
from collections import defaultdict

import structlog

from git_provenance.core.config import Settings
from git_provenance.exceptions import (
    CommandFailedError,
    FileNotFoundInRepoError,
    InvalidRefError,
)
from git_provenance.git.repo import detect_repo, file_exists_at
from git_provenance.git.runner import run_git
from git_provenance.git.validation import (
    is_uncommitted_sha,
    normalize_file_path,
    parse_unix_timestamp,
    validate_ref,
)
from git_provenance.parsers.models import BlameLine, FileBlame

log = structlog.get_logger("git_provenance.parsers.blame")

_HEADER_RE = re.compile(r"^([0-9a-f]{40}) (\d+) (\d+)(?: (\d+))?$")

# Literal prefixes of the per-commit metadata lines, longest first so that
# "author-mail " is not swallowed by "author ".
_META_PREFIXES: list[tuple[str, str]] = [
    ("author-mail ", "author_email"),
    ("author-time ", "author_time"),
    ("author ", "author_name"),
    ("committer-mail ", "committer_email"),
    ("committer-time ", "committer_time"),
    ("committer ", "committer_name"),
    ("summary ", "summary"),
    ("filename ", "filename"),
    ("previous ", "previous"),
]


def _meta_value(key: str, raw: str) -> str | int | None:
    if key in ("author_email", "committer_email"):
        return raw.strip().lstrip("<").rstrip(">")
    if key in ("author_time", "committer_time"):
        try:
            return int(raw.strip())
        except ValueError:
            return None
    if key == "previous":
        return raw.split(" ", 1)[0]
    return raw


def _build_line(
    sha: str,
    original_line: int,
    final_line: int,
    content: str,
    meta: dict,
    now: int,
) -> BlameLine:
    uncommitted = is_uncommitted_sha(sha)
    author_time = meta.get("author_time")
    line_age = None
    if not uncommitted and isinstance(author_time, int):
        line_age = now - author_time
    return BlameLine(
        line_number=final_line,
        content=content,
        commit_sha=sha,
        original_line=original_line,
        author_name=meta.get("author_name"),
        author_email=meta.get("author_email"),
        author_time=parse_unix_timestamp(author_time),
        committer_name=meta.get("committer_name"),
        committer_email=meta.get("committer_email"),
        committer_time=parse_unix_timestamp(meta.get("committer_time")),
        summary=meta.get("summary"),
        filename=meta.get("filename"),
        previous=meta.get("previous"),
        is_uncommitted=uncommitted,
        line_age=line_age,
    )


def parse_porcelain(output: str, now: int | None = None) -> list[BlameLine]:
    """Parse ``git blame --porcelain`` output into :class:`BlameLine` records.

    Porcelain only describes a commit the first time it appears, so metadata
    is cached by sha for the duration of this call.
    """
    now = int(time.time()) if now is None else now
    cache: dict[str, dict] = {}
    results: list[BlameLine] = []

    current_sha: str | None = None
    current_meta: dict = {}
    original_line = final_line = 0

    for line in output.split("\n"):
        header = _HEADER_RE.match(line)
        if header:
            current_sha = header.group(1)
            original_line = int(header.group(2))
            final_line = int(header.group(3))
            current_meta = dict(cache.get(current_sha, {}))
            continue
        if current_sha is None:
            continue
        if line.startswith("\t"):
            results.append(
                _build_line(
                    current_sha, original_line, final_line, line[1:], current_meta, now
                )
            )
            cache[current_sha] = current_meta
            current_sha = None
            current_meta = {}
            continue
        for prefix, key in _META_PREFIXES:
            if line.startswith(prefix):
                current_meta[key] = _meta_value(key, line[len(prefix):])
                break

    return results


def build_file_blame(path: str, lines: list[BlameLine]) -> FileBlame:
    # Oldest/newest consider only committed lines that have an author time.
    dated = [bl for bl in lines if not bl.is_uncommitted and bl.author_time is not None]
    emails = {bl.author_email for bl in lines if bl.author_email is not None}
    return FileBlame(
        path=path,
        lines=lines,
        line_count=len(lines),
        commit_count=len({bl.commit_sha for bl in lines}),
        author_count=len(emails),
        oldest_line=min(dated, key=lambda bl: bl.author_time) if dated else None,
        newest_line=max(dated, key=lambda bl: bl.author_time) if dated else None,
        has_uncommitted=any(bl.is_uncommitted for bl in lines),
    )


def blame_file(
    repo_path: str,
    file_path: str,
    *,
    ref: str | None = None,
    line_range: tuple[int, int] | None = None,
    now: int | None = None,
    settings: Settings | None = None,
) -> FileBlame:
    """Blame *file_path* (optionally at *ref*, optionally only *line_range*)."""
    repo_root = detect_repo(repo_path)
    rel_path = normalize_file_path(file_path, repo_root)
    if ref is not None:
        validate_ref(ref)
    if not file_exists_at(repo_root, rel_path, ref, settings=settings):
        raise FileNotFoundInRepoError(rel_path, ref)

    args = ["blame", "--porcelain"]
    if line_range is not None:
        start, end = line_range
        args += ["-L", f"{int(start)},{int(end)}"]
    if ref is not None:
        args.append(ref)
    args += ["--", rel_path]

    try:
        output = run_git(
            repo_root,
            args,
            refs=[ref] if ref else [],
            paths=[rel_path],
            settings=settings,
        )
    except CommandFailedError as exc:
        if ref is not None:
            raise InvalidRefError(ref) from exc
        raise

    lines = parse_porcelain(output, now=now)
    log.debug("blame.parsed", path=rel_path, lines=len(lines))
    return build_file_blame(rel_path, lines)


def commits_in_blame(blame: FileBlame) -> list[str]:
    """Distinct commit shas, in order of first appearance."""
    return list(dict.fromkeys(bl.commit_sha for bl in blame.lines))


def authors_in_blame(blame: FileBlame) -> list[str]:
    return list(dict.fromkeys(bl.author_email for bl in blame.lines if bl.author_email))


def lines_by_commit(blame: FileBlame) -> dict[str, list[BlameLine]]:
    grouped: dict[str, list[BlameLine]] = defaultdict(list)
    for line in blame.lines:
        grouped[line.commit_sha].append(line)
    return dict(grouped)


def lines_by_author(blame: FileBlame) -> dict[str | None, list[BlameLine]]:
    grouped: dict[str | None, list[BlameLine]] = defaultdict(list)
    for line in blame.lines:
        grouped[line.author_email].append(line)
    return dict(grouped)


def line_count_for_commit(blame: FileBlame, sha: str) -> int:
    return sum(1 for bl in blame.lines if bl.commit_sha == sha)


def line_count_for_author(blame: FileBlame, email: str) -> int:
    return sum(1 for bl in blame.lines if bl.author_email == email)
