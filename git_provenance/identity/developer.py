"""Developer aggregation keyed by email address."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

import structlog

from git_provenance.core.config import Settings, load_settings
from git_provenance.exceptions import DeveloperNotFoundError
from git_provenance.git.repo import detect_repo
from git_provenance.identity.models import Developer
from git_provenance.ids import maybe_anonymize_email
from git_provenance.parsers.commit import extract_commits
from git_provenance.parsers.models import Commit

log = structlog.get_logger("git_provenance.identity.developer")


def unknown_email(sha: str | None) -> str:
    return f"unknown-{(sha or 'unknown')[:7]}@unknown"


def _earliest(a: datetime | None, b: datetime | None) -> datetime | None:
    if a is None or b is None:
        return a or b
    return min(a, b)


def _latest(a: datetime | None, b: datetime | None) -> datetime | None:
    if a is None or b is None:
        return a or b
    return max(a, b)


def author_from_commit(commit: Commit) -> Developer:
    return Developer(
        email=commit.author_email or unknown_email(commit.sha),
        name=commit.author_name,
        names={commit.author_name} if commit.author_name else set(),
        authored_commits=[commit.sha],
        first_authored=commit.author_date,
        last_authored=commit.author_date,
        commit_count=1,
    )


def committer_from_commit(commit: Commit) -> Developer:
    return Developer(
        email=commit.committer_email or unknown_email(commit.sha),
        name=commit.committer_name,
        names={commit.committer_name} if commit.committer_name else set(),
        committed_commits=[commit.sha],
        first_committed=commit.commit_date,
        last_committed=commit.commit_date,
        commit_count=1,
    )


def _most_recent_name(a: Developer, b: Developer) -> str | None:
    a_date = a.last_authored or a.last_committed
    b_date = b.last_authored or b.last_committed
    if a_date is None and b_date is None:
        return a.name or b.name
    if a_date is None:
        return b.name
    if b_date is None:
        return a.name
    return a.name if a_date > b_date else b.name


def merge_developers(a: Developer, b: Developer) -> Developer:
    """Combine two records for the same email."""
    authored = list(dict.fromkeys(a.authored_commits + b.authored_commits))
    committed = list(dict.fromkeys(a.committed_commits + b.committed_commits))
    return Developer(
        email=a.email,
        name=_most_recent_name(a, b),
        names=a.names | b.names,
        authored_commits=authored,
        committed_commits=committed,
        first_authored=_earliest(a.first_authored, b.first_authored),
        last_authored=_latest(a.last_authored, b.last_authored),
        first_committed=_earliest(a.first_committed, b.first_committed),
        last_committed=_latest(a.last_committed, b.last_committed),
        commit_count=len(set(authored) | set(committed)),
    )


def from_commit(commit: Commit) -> list[Developer]:
    """Author and committer; a single merged record when they share an email."""
    author = author_from_commit(commit)
    committer = committer_from_commit(commit)
    if author.email == committer.email:
        return [merge_developers(author, committer)]
    return [author, committer]


def from_commits(commits: Iterable[Commit], *, anonymize: bool = False) -> list[Developer]:
    """Developers across *commits*, grouped by email, most active first."""
    by_email: dict[str, Developer] = {}
    for commit in commits:
        for dev in from_commit(commit):
            existing = by_email.get(dev.email)
            by_email[dev.email] = dev if existing is None else merge_developers(existing, dev)

    developers = sorted(by_email.values(), key=lambda d: d.commit_count, reverse=True)
    if anonymize:
        for dev in developers:
            dev.email = maybe_anonymize_email(dev.email, True)
    return developers


def extract_developers(
    repo_path: str,
    *,
    ref: str = "HEAD",
    limit: int | None = None,
    settings: Settings | None = None,
) -> list[Developer]:
    cfg = settings or load_settings()
    repo_root = detect_repo(repo_path)
    count = cfg.default_limit if limit is None else limit
    commits = extract_commits(repo_root, ref=ref, limit=count, settings=cfg)
    developers = from_commits(commits, anonymize=cfg.anonymize_emails)
    log.debug("developer.extracted", commits=len(commits), developers=len(developers))
    return developers


def extract_developer(
    repo_path: str,
    email: str,
    *,
    ref: str = "HEAD",
    limit: int | None = None,
    settings: Settings | None = None,
) -> Developer:
    """The developer with *email* in the scanned history; ``DeveloperNotFoundError`` if absent."""
    cfg = settings or load_settings()
    target = maybe_anonymize_email(email, cfg.anonymize_emails)
    for dev in extract_developers(repo_path, ref=ref, limit=limit, settings=cfg):
        if dev.email == target:
            return dev
    raise DeveloperNotFoundError(email)
