"""Input validation for anything handed to git on the command line."""

from __future__ import annotations

import os
import re
from datetime import datetime, timezone

from git_provenance.exceptions import InvalidPathError, InvalidRefError, OutsideRepoError

UNCOMMITTED_SHA = "0" * 40

_SHA_RE = re.compile(r"^[0-9a-f]{40}$", re.IGNORECASE)
_SHORT_SHA_RE = re.compile(r"^[0-9a-f]{7,40}$", re.IGNORECASE)

# Anything outside this list is rejected before a subprocess is spawned.
_SAFE_REF_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"^HEAD$"),
    re.compile(r"^HEAD~\d+$"),
    re.compile(r"^HEAD\^\d*$"),
    re.compile(r"^[0-9a-f]{7,40}$", re.IGNORECASE),
    re.compile(r"^refs/(heads|tags|remotes)/[a-zA-Z0-9_\-./]+$"),
    re.compile(r"^[a-zA-Z][a-zA-Z0-9_\-.]*$"),
]


def is_valid_sha(sha: object) -> bool:
    return isinstance(sha, str) and bool(_SHA_RE.match(sha))


def is_valid_short_sha(sha: object) -> bool:
    return isinstance(sha, str) and bool(_SHORT_SHA_RE.match(sha))


def is_uncommitted_sha(sha: str | None) -> bool:
    return sha == UNCOMMITTED_SHA


def is_valid_ref(ref: object) -> bool:
    if not isinstance(ref, str) or not ref:
        return False
    return any(pattern.match(ref) for pattern in _SAFE_REF_PATTERNS)


def validate_ref(ref: str) -> str:
    """Return *ref* unchanged or raise :class:`InvalidRefError`."""
    if not is_valid_ref(ref):
        raise InvalidRefError(str(ref))
    return ref


def is_safe_path(path: object) -> bool:
    if not isinstance(path, str) or not path:
        return False
    if ".." in path or "\x00" in path:
        return False
    if path.startswith("/") or "//" in path:
        return False
    return True


def validate_path(path: str) -> str:
    """Return *path* unchanged or raise :class:`InvalidPathError`."""
    if not is_safe_path(path):
        raise InvalidPathError(str(path))
    return path


def normalize_file_path(file_path: str, repo_root: str) -> str:
    """Turn *file_path* into a validated repository-relative path.

    Absolute paths must live under *repo_root*; relative paths are taken as
    already relative to it.
    """
    if os.path.isabs(file_path):
        root = os.path.abspath(repo_root)
        absolute = os.path.abspath(file_path)
        if absolute != root and not absolute.startswith(root.rstrip(os.sep) + os.sep):
            raise OutsideRepoError(file_path, repo_root)
        relative = os.path.relpath(absolute, root)
        if relative == ".":
            raise InvalidPathError(file_path)
        return validate_path(relative.replace(os.sep, "/"))
    return validate_path(file_path)


def parse_iso8601(value: str | None) -> datetime | None:
    """Parse a git ``%aI``/``%cI`` timestamp; ``None`` for empty or bad input."""
    if not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def parse_unix_timestamp(value: int | str | None) -> datetime | None:
    if value is None or value == "":
        return None
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    except (ValueError, OverflowError, OSError):
        return None


def empty_to_none(value: str | None) -> str | None:
    if value == "":
        return None
    return value
