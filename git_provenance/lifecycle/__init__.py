"""Release and deprecation life-cycle extraction."""

from git_provenance.lifecycle.deprecation import (
    deprecations_in_commit,
    has_replacement,
    parse_replacement,
    removals_in_commit,
    track_deprecations,
)
from git_provenance.lifecycle.models import (
    Deprecation,
    DeprecationEvent,
    ElementType,
    Release,
    RemovalEvent,
    Replacement,
    SemVer,
)
from git_provenance.lifecycle.release import (
    extract_release,
    extract_releases,
    list_version_tags,
    project_app,
    project_version,
    release_progression,
)
from git_provenance.lifecycle.semver import compare_versions, parse_semver

__all__ = [
    "Deprecation",
    "DeprecationEvent",
    "ElementType",
    "Release",
    "RemovalEvent",
    "Replacement",
    "SemVer",
    "compare_versions",
    "deprecations_in_commit",
    "extract_release",
    "extract_releases",
    "has_replacement",
    "list_version_tags",
    "parse_replacement",
    "parse_semver",
    "project_app",
    "project_version",
    "release_progression",
    "removals_in_commit",
    "track_deprecations",
]
