"""Release extraction from version-like tags."""

from __future__ import annotations

import re

import structlog

from git_provenance.core.config import Settings
from git_provenance.exceptions import CommandFailedError, InvalidRefError, ProvenanceError
from git_provenance.git.repo import detect_repo, show_file
from git_provenance.git.runner import run_git
from git_provenance.git.validation import is_valid_sha
from git_provenance.lifecycle.models import Release
from git_provenance.lifecycle.semver import try_parse_semver, version_sort_key
from git_provenance.parsers.commit import extract_commit

log = structlog.get_logger("git_provenance.lifecycle.release")

_VERSION_TAG_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"^v?\d+\.\d+"),
    re.compile(r"^release[_-]?\d+", re.IGNORECASE),
]
_TAG_PREFIXES = ("v", "release-", "release_")

# mix.exs: `version: "1.2.3"` inside project/0, or a `@version "1.2.3"` attribute.
_MIX_VERSION_RE = re.compile(r"""\bversion:\s*"([^"]+)\"""")
_MIX_VERSION_ATTR_RE = re.compile(r"""@version\s+"([^"]+)\"""")
_MIX_APP_RE = re.compile(r"\bapp:\s*:([a-z_][a-zA-Z0-9_]*)")

PROJECT_FILE = "mix.exs"


def is_version_tag(tag: str) -> bool:
    return any(p.match(tag) for p in _VERSION_TAG_PATTERNS)


def version_from_tag(tag: str) -> str:
    """``v1.2.3`` / ``release-1.2.3`` / ``release_1.2.3`` -> ``1.2.3``."""
    version = tag
    for prefix in _TAG_PREFIXES:
        while version.startswith(prefix):
            version = version[len(prefix):]
    return version


def release_id(tag: str) -> str:
    return f"release:{tag}"


def list_tags(repo_path: str, *, settings: Settings | None = None) -> list[str]:
    repo_root = detect_repo(repo_path)
    output = run_git(repo_root, ["tag", "--list"], settings=settings)
    return [line.strip() for line in output.splitlines() if line.strip()]


def list_version_tags(repo_path: str, *, settings: Settings | None = None) -> list[str]:
    return [t for t in list_tags(repo_path, settings=settings) if is_version_tag(t)]


def tag_commit(repo_root: str, tag: str, *, settings: Settings | None = None) -> str:
    """Resolve *tag* (annotated or lightweight) to the commit it points at."""
    ref = f"refs/tags/{tag}"
    try:
        output = run_git(
            repo_root, ["rev-parse", f"{ref}^{{commit}}"], refs=[ref], settings=settings
        )
    except CommandFailedError as exc:
        raise InvalidRefError(tag) from exc
    sha = output.strip()
    if not is_valid_sha(sha):
        raise InvalidRefError(tag)
    return sha


def parse_project_version(content: str) -> str | None:
    match = _MIX_VERSION_RE.search(content) or _MIX_VERSION_ATTR_RE.search(content)
    return match.group(1) if match else None


def parse_project_app(content: str) -> str | None:
    match = _MIX_APP_RE.search(content)
    return match.group(1) if match else None


def _project_file(repo_root: str, ref: str, settings: Settings | None) -> str | None:
    try:
        return show_file(repo_root, ref, PROJECT_FILE, settings=settings)
    except CommandFailedError:
        return None


def project_version(
    repo_path: str, ref: str = "HEAD", *, settings: Settings | None = None
) -> str | None:
    """Version declared in ``mix.exs`` at *ref*, if any."""
    content = _project_file(detect_repo(repo_path), ref, settings)
    return parse_project_version(content) if content else None


def project_app(
    repo_path: str, ref: str = "HEAD", *, settings: Settings | None = None
) -> str | None:
    content = _project_file(detect_repo(repo_path), ref, settings)
    return parse_project_app(content) if content else None


def extract_release(
    repo_path: str, tag: str, *, settings: Settings | None = None
) -> Release:
    repo_root = detect_repo(repo_path)
    sha = tag_commit(repo_root, tag, settings=settings)
    commit = extract_commit(repo_root, sha, settings=settings)
    version = version_from_tag(tag)
    return Release(
        release_id=release_id(tag),
        version=version,
        tag=tag,
        commit_sha=commit.sha,
        short_sha=commit.short_sha,
        timestamp=commit.commit_date,
        semver=try_parse_semver(version),
        project_name=project_app(repo_root, commit.sha, settings=settings),
    )


def sort_releases(releases: list[Release]) -> list[Release]:
    """Newest version first."""
    return sorted(releases, key=lambda r: version_sort_key(r.version), reverse=True)


def link_previous_versions(releases: list[Release]) -> list[Release]:
    """Set each release's ``previous_version`` to the next lower version.

    *releases* must already be sorted newest first.
    """
    for newer, older in zip(releases, releases[1:]):
        newer.previous_version = older.version
    if releases:
        releases[-1].previous_version = None
    return releases


def extract_releases(
    repo_path: str,
    *,
    include_all_tags: bool = False,
    settings: Settings | None = None,
) -> list[Release]:
    """Releases for every version tag, newest first.

    Tags that cannot be resolved are logged and skipped.
    """
    repo_root = detect_repo(repo_path)
    tags = (
        list_tags(repo_root, settings=settings)
        if include_all_tags
        else list_version_tags(repo_root, settings=settings)
    )
    releases: list[Release] = []
    for tag in tags:
        try:
            releases.append(extract_release(repo_root, tag, settings=settings))
        except ProvenanceError as exc:
            log.warning("release.tag_skipped", tag=tag, reason=exc.reason)
    result = link_previous_versions(sort_releases(releases))
    log.info("release.extracted", count=len(result))
    return result


def release_progression(repo_path: str, *, settings: Settings | None = None) -> list[Release]:
    """Releases oldest first."""
    return list(reversed(extract_releases(repo_path, settings=settings)))
