"""Commit extraction: one ``git log`` record per commit."""

from __future__ import annotations

import re

import structlog

from git_provenance.core.config import Settings, load_settings
from git_provenance.exceptions import CommandFailedError, InvalidRefError, ParseError
from git_provenance.git.runner import run_git
from git_provenance.git.validation import (
    empty_to_none,
    is_valid_sha,
    parse_iso8601,
    validate_ref,
)
from git_provenance.parsers.models import Commit

log = structlog.get_logger("git_provenance.parsers.commit")

FIELD_DELIMITER = "\x1f"
RECORD_DELIMITER = "\x1e"

# Message (%B) must stay last: it is the only field that may contain newlines
# or anything resembling the delimiter.
_FIELDS = ["%H", "%h", "%an", "%ae", "%aI", "%cn", "%ce", "%cI", "%P", "%T", "%B"]
GIT_FORMAT = FIELD_DELIMITER.join(_FIELDS)
FIELD_COUNT = len(_FIELDS)

_BLANK_LINE_RE = re.compile(r"\n\s*\n")


def extract_subject(message: str | None) -> str | None:
    if message is None:
        return None
    return message.split("\n", 1)[0].strip()


def extract_body(message: str | None) -> str | None:
    """Everything after the first blank line, or ``None``."""
    if message is None:
        return None
    parts = _BLANK_LINE_RE.split(message, maxsplit=1)
    if len(parts) < 2:
        return None
    body = parts[1].strip()
    return body or None


def parse_parents(raw: str) -> tuple[str, ...]:
    return tuple(p for p in raw.split(" ") if is_valid_sha(p.strip()))


def parse_commit_record(record: str) -> Commit:
    """Parse one :data:`GIT_FORMAT` record into a :class:`Commit`.

    Raises ``ParseError`` if the record does not split into exactly
    :data:`FIELD_COUNT` fields or the sha is malformed.
    """
    # Newlines only: str.strip() treats \x1c-\x1f as whitespace too.
    fields = record.strip("\r\n").split(FIELD_DELIMITER, FIELD_COUNT - 1)
    if len(fields) != FIELD_COUNT:
        raise ParseError(
            f"expected {FIELD_COUNT} fields in commit record, got {len(fields)}"
        )
    (
        sha,
        short_sha,
        author_name,
        author_email,
        author_date,
        committer_name,
        committer_email,
        commit_date,
        parents,
        tree_sha,
        message,
    ) = fields
    sha = sha.strip()
    if not is_valid_sha(sha):
        raise ParseError(f"malformed commit sha: {sha[:50]!r}")

    message = message.strip()
    return Commit(
        sha=sha,
        short_sha=short_sha.strip() or sha[:7],
        message=message,
        subject=extract_subject(message) or "",
        body=extract_body(message),
        author_name=empty_to_none(author_name),
        author_email=empty_to_none(author_email),
        author_date=parse_iso8601(author_date),
        committer_name=empty_to_none(committer_name),
        committer_email=empty_to_none(committer_email),
        commit_date=parse_iso8601(commit_date),
        parents=parse_parents(parents),
        tree_sha=empty_to_none(tree_sha.strip()),
    )


def parse_commit_records(output: str) -> list[Commit]:
    """Parse multi-record output, dropping chunks that fail to parse."""
    commits: list[Commit] = []
    for chunk in output.split(RECORD_DELIMITER):
        if not chunk.strip():
            continue
        try:
            commits.append(parse_commit_record(chunk))
        except ParseError as exc:
            log.debug("commit.chunk_dropped", error=str(exc))
    return commits


def extract_commit(
    repo_path: str,
    ref: str = "HEAD",
    *,
    settings: Settings | None = None,
) -> Commit:
    """Extract a single commit. An unknown ref raises ``InvalidRefError``."""
    validate_ref(ref)
    try:
        output = run_git(
            repo_path,
            ["log", "-1", f"--format={GIT_FORMAT}", ref],
            refs=[ref],
            settings=settings,
        )
    except CommandFailedError as exc:
        raise InvalidRefError(ref) from exc
    return parse_commit_record(output)


def extract_commits(
    repo_path: str,
    *,
    ref: str = "HEAD",
    limit: int | None = None,
    offset: int = 0,
    settings: Settings | None = None,
) -> list[Commit]:
    """Extract up to *limit* commits reachable from *ref*, newest first.

    *limit* is capped at ``settings.max_commits``.
    """
    settings = settings or load_settings()
    validate_ref(ref)
    count = settings.max_commits if limit is None else min(limit, settings.max_commits)
    args = ["log", f"--format={GIT_FORMAT}{RECORD_DELIMITER}", "-n", str(max(count, 0))]
    if offset > 0:
        args.append(f"--skip={offset}")
    args.append(ref)
    try:
        output = run_git(repo_path, args, refs=[ref], settings=settings)
    except CommandFailedError as exc:
        raise InvalidRefError(ref) from exc
    commits = parse_commit_records(output)
    log.debug("commit.extracted", ref=ref, count=len(commits))
    return commits


def commit_message(
    repo_path: str,
    ref: str = "HEAD",
    *,
    settings: Settings | None = None,
) -> str:
    validate_ref(ref)
    try:
        output = run_git(
            repo_path, ["log", "-1", "--format=%B", ref], refs=[ref], settings=settings
        )
    except CommandFailedError as exc:
        raise InvalidRefError(ref) from exc
    return output.strip()
