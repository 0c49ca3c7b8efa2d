"""Parsers turning git's text output into typed records."""

from git_provenance.parsers.blame import blame_file, build_file_blame, parse_porcelain
from git_provenance.parsers.commit import (
    extract_commit,
    extract_commits,
    parse_commit_record,
    parse_commit_records,
)
from git_provenance.parsers.diff import commit_diff, commit_numstat, parse_diff, parse_numstat
from git_provenance.parsers.models import (
    BlameLine,
    Commit,
    DiffHunk,
    DiffStatus,
    FileBlame,
    FileStat,
)

__all__ = [
    "BlameLine",
    "Commit",
    "DiffHunk",
    "DiffStatus",
    "FileBlame",
    "FileStat",
    "blame_file",
    "build_file_blame",
    "commit_diff",
    "commit_numstat",
    "extract_commit",
    "extract_commits",
    "parse_commit_record",
    "parse_commit_records",
    "parse_diff",
    "parse_numstat",
    "parse_porcelain",
]
