"""File history, entity version tracking and codebase snapshots."""

from git_provenance.history.entity_version import (
    build_derivation,
    build_derivation_chain,
    content_hash,
    find_change_introducing_version,
    find_module_file,
    function_at_commit,
    module_at_commit,
    same_content,
    track_function_versions,
    track_module_versions,
    version_chain,
)
from git_provenance.history.file_history import file_history, path_at_commit
from git_provenance.history.models import (
    CodebaseSnapshot,
    Derivation,
    DerivationType,
    FileHistory,
    FunctionVersion,
    ModuleVersion,
    Rename,
    SnapshotStats,
)
from git_provenance.history.snapshot import extract_snapshot, library_files_at

__all__ = [
    "CodebaseSnapshot",
    "Derivation",
    "DerivationType",
    "FileHistory",
    "FunctionVersion",
    "ModuleVersion",
    "Rename",
    "SnapshotStats",
    "build_derivation",
    "build_derivation_chain",
    "content_hash",
    "extract_snapshot",
    "file_history",
    "find_change_introducing_version",
    "find_module_file",
    "function_at_commit",
    "library_files_at",
    "module_at_commit",
    "path_at_commit",
    "same_content",
    "track_function_versions",
    "track_module_versions",
    "version_chain",
]
