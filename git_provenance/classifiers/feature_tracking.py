"""Feature and bug-fix tracking: classified commits plus their issue references.

A commit classified as ``feature`` yields one :class:`FeatureAddition`, one
classified as ``bugfix`` yields one :class:`BugFix`; both carry the issue
references found in the subject and body.  Closing keywords
(``fixes``/``closes``/``resolves``) take precedence over a plain mention of
the same issue.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace

import structlog

from git_provenance.classifiers.activity import classify_commit
from git_provenance.classifiers.models import (
    Activity,
    ActivityType,
    BugFix,
    FeatureAddition,
    FeatureReport,
    IssueAction,
    IssueReference,
    IssueTracker,
)
from git_provenance.core.config import Settings
from git_provenance.parsers.models import Commit

log = structlog.get_logger("git_provenance.classifiers.feature_tracking")

_CLOSING_RE = re.compile(
    r"\b(fix(?:es)?|close[sd]?|resolve[sd]?)\s+"
    r"(?:#(\d+)|GH-(\d+)|GL-(\d+)|([A-Z][A-Z0-9]+)-(\d+))",
    re.IGNORECASE,
)
_GENERIC_RE = re.compile(r"(?<![a-z])#(\d+)", re.IGNORECASE)
_GITHUB_RE = re.compile(r"\bGH-(\d+)", re.IGNORECASE)
_GITLAB_RE = re.compile(r"\bGL-(\d+)", re.IGNORECASE)
_JIRA_RE = re.compile(r"\b([A-Z][A-Z0-9]+)-(\d+)")  # case-sensitive project key

_FEATURE_HEADER_RE = re.compile(r"^(?:feature|feat)\b(?:\([^)]+\))?!?:?\s*(.+)$", re.IGNORECASE)
_BUGFIX_HEADER_RE = re.compile(r"^(?:bugfix|fix)\b(?:\([^)]+\))?!?:?\s*(.+)$", re.IGNORECASE)

_FEATURE_VERBS = [
    re.compile(r"^add(?:ed|s|ing)?\s+(.+)", re.IGNORECASE),
    re.compile(r"^implement(?:ed|s|ing)?\s+(.+)", re.IGNORECASE),
    re.compile(r"^create(?:d|s|ing)?\s+(.+)", re.IGNORECASE),
    re.compile(r"^introduce(?:d|s|ing)?\s+(.+)", re.IGNORECASE),
]
_BUGFIX_VERBS = [
    re.compile(r"^fix(?:ed|es|ing)?\s+(.+)", re.IGNORECASE),
    re.compile(r"^resolve(?:d|s|ing)?\s+(.+)", re.IGNORECASE),
    re.compile(r"^repair(?:ed|s|ing)?\s+(.+)", re.IGNORECASE),
    re.compile(r"^correct(?:ed|s|ing)?\s+(.+)", re.IGNORECASE),
]

# GH-/GL- keys look like Jira keys but belong to their own trackers.
_NOT_JIRA_PROJECTS = frozenset({"GH", "GL"})


@dataclass(frozen=True)
class TrackerConfig:
    """Where issue links point. Without a repository, no URL is built."""

    github_repo: str | None = None  # "owner/repo"
    gitlab_repo: str | None = None
    gitlab_url: str = "https://gitlab.com"
    jira_url: str | None = None


def _action(keyword: str) -> IssueAction:
    keyword = keyword.lower()
    if keyword.startswith("fix"):
        return IssueAction.FIXES
    if keyword.startswith("close"):
        return IssueAction.CLOSES
    if keyword.startswith("resolve"):
        return IssueAction.RESOLVES
    return IssueAction.MENTIONS


def _closing_references(message: str) -> list[IssueReference]:
    refs: list[IssueReference] = []
    for match in _CLOSING_RE.finditer(message):
        keyword, generic, github, gitlab, project, jira = match.groups()
        action = _action(keyword)
        if generic:
            refs.append(IssueReference(IssueTracker.GENERIC, int(generic), action=action))
        elif github:
            refs.append(IssueReference(IssueTracker.GITHUB, int(github), action=action))
        elif gitlab:
            refs.append(IssueReference(IssueTracker.GITLAB, int(gitlab), action=action))
        else:
            refs.append(
                IssueReference(IssueTracker.JIRA, int(jira), project=project, action=action)
            )
    return refs


def _plain_references(message: str) -> list[IssueReference]:
    refs = [IssueReference(IssueTracker.GENERIC, int(n)) for n in _GENERIC_RE.findall(message)]
    refs += [IssueReference(IssueTracker.GITHUB, int(n)) for n in _GITHUB_RE.findall(message)]
    refs += [IssueReference(IssueTracker.GITLAB, int(n)) for n in _GITLAB_RE.findall(message)]
    refs += [
        IssueReference(IssueTracker.JIRA, int(n), project=project)
        for project, n in _JIRA_RE.findall(message)
        if project not in _NOT_JIRA_PROJECTS
    ]
    return refs


def parse_issue_references(message: str | None) -> list[IssueReference]:
    """Issue references in *message*: closing ones first, then plain mentions.

    Each (tracker, number, project) appears once; a closing reference wins over
    a mention of the same issue.
    """
    if not message:
        return []
    seen: set[tuple] = set()
    refs: list[IssueReference] = []
    for ref in _closing_references(message) + _plain_references(message):
        if ref.key in seen:
            continue
        seen.add(ref.key)
        refs.append(ref)
    return refs


def build_issue_url(ref: IssueReference, trackers: TrackerConfig | None = None) -> str | None:
    trackers = trackers or TrackerConfig()
    if ref.tracker in (IssueTracker.GITHUB, IssueTracker.GENERIC):
        if trackers.github_repo:
            return f"https://github.com/{trackers.github_repo}/issues/{ref.number}"
    elif ref.tracker is IssueTracker.GITLAB:
        if trackers.gitlab_repo:
            base = trackers.gitlab_url.rstrip("/")
            return f"{base}/{trackers.gitlab_repo}/-/issues/{ref.number}"
    elif ref.tracker is IssueTracker.JIRA:
        if trackers.jira_url:
            return f"{trackers.jira_url.rstrip('/')}/browse/{ref.project}-{ref.number}"
    return None


def _first_capture(patterns: list[re.Pattern[str]], text: str) -> str | None:
    for pattern in patterns:
        match = pattern.match(text)
        if match:
            return match.group(1).strip()
    return None


def feature_name(subject: str) -> str:
    """``feat(api): add pagination`` -> ``add pagination``; ``Add X`` -> ``X``."""
    match = _FEATURE_HEADER_RE.match(subject)
    if match:
        return match.group(1).strip()
    return _first_capture(_FEATURE_VERBS, subject) or subject


def bugfix_description(subject: str) -> str:
    match = _BUGFIX_HEADER_RE.match(subject)
    if match:
        return match.group(1).strip()
    return _first_capture(_BUGFIX_VERBS, subject) or subject


def _linked_references(commit: Commit, trackers: TrackerConfig | None) -> list[IssueReference]:
    message = f"{commit.subject or commit.message or ''} {commit.body or ''}"
    return [
        replace(ref, url=build_issue_url(ref, trackers))
        for ref in parse_issue_references(message)
    ]


def feature_from_activity(
    activity: Activity, trackers: TrackerConfig | None = None
) -> FeatureAddition | None:
    if activity.type is not ActivityType.FEATURE:
        return None
    commit = activity.commit
    return FeatureAddition(
        name=feature_name(commit.subject or commit.message or ""),
        commit=commit,
        description=commit.body,
        modules=list(activity.scope.modules_affected),
        issue_refs=_linked_references(commit, trackers),
        scope=activity.scope,
        classification=activity.classification,
    )


def bugfix_from_activity(
    activity: Activity, trackers: TrackerConfig | None = None
) -> BugFix | None:
    if activity.type is not ActivityType.BUGFIX:
        return None
    commit = activity.commit
    return BugFix(
        description=bugfix_description(commit.subject or commit.message or ""),
        commit=commit,
        affected_modules=list(activity.scope.modules_affected),
        issue_refs=_linked_references(commit, trackers),
        scope=activity.scope,
        classification=activity.classification,
    )


def detect_features(
    repo_path: str,
    commit: Commit,
    *,
    include_scope: bool = True,
    trackers: TrackerConfig | None = None,
    settings: Settings | None = None,
) -> list[FeatureAddition]:
    """The feature added by *commit*, as a list of zero or one."""
    activity = classify_commit(repo_path, commit, include_scope=include_scope, settings=settings)
    feature = feature_from_activity(activity, trackers)
    return [feature] if feature else []


def detect_bugfixes(
    repo_path: str,
    commit: Commit,
    *,
    include_scope: bool = True,
    trackers: TrackerConfig | None = None,
    settings: Settings | None = None,
) -> list[BugFix]:
    activity = classify_commit(repo_path, commit, include_scope=include_scope, settings=settings)
    bugfix = bugfix_from_activity(activity, trackers)
    return [bugfix] if bugfix else []


def detect_all(
    repo_path: str,
    commits: list[Commit],
    *,
    include_scope: bool = True,
    trackers: TrackerConfig | None = None,
    settings: Settings | None = None,
) -> FeatureReport:
    """Classify each commit once and sort the results into features and fixes."""
    report = FeatureReport()
    for commit in commits:
        activity = classify_commit(
            repo_path, commit, include_scope=include_scope, settings=settings
        )
        feature = feature_from_activity(activity, trackers)
        if feature:
            report.features.append(feature)
        bugfix = bugfix_from_activity(activity, trackers)
        if bugfix:
            report.bugfixes.append(bugfix)
    log.debug(
        "feature_tracking.scanned",
        commits=len(commits),
        features=len(report.features),
        bugfixes=len(report.bugfixes),
    )
    return report


def has_issues(item: FeatureAddition | BugFix) -> bool:
    return bool(item.issue_refs)


def closing_issues(item: FeatureAddition | BugFix) -> list[IssueReference]:
    return [ref for ref in item.issue_refs if ref.action.is_closing]
