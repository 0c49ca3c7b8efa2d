"""Validated access to the git binary."""

from git_provenance.git.repo import detect_repo, file_exists_at, is_git_repo, show_file
from git_provenance.git.runner import run_git, run_git_async
from git_provenance.git.validation import (
    UNCOMMITTED_SHA,
    empty_to_none,
    is_safe_path,
    is_uncommitted_sha,
    is_valid_ref,
    is_valid_sha,
    is_valid_short_sha,
    normalize_file_path,
    parse_iso8601,
    parse_unix_timestamp,
    validate_path,
    validate_ref,
)

__all__ = [
    "UNCOMMITTED_SHA",
    "detect_repo",
    "empty_to_none",
    "file_exists_at",
    "is_git_repo",
    "is_safe_path",
    "is_uncommitted_sha",
    "is_valid_ref",
    "is_valid_sha",
    "is_valid_short_sha",
    "normalize_file_path",
    "parse_iso8601",
    "parse_unix_timestamp",
    "run_git",
    "run_git_async",
    "show_file",
    "validate_path",
    "validate_ref",
]
