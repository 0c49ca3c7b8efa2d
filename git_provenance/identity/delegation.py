"""Delegation (prov:actedOnBehalfOf) chains.

A commit author acts on behalf of the code owners of the files they touch,
of the reviewers who approved the change, and (for bots) of the organisation
that configured them.  Team files add member -> lead delegations.
"""

from __future__ import annotations

import re
from datetime import datetime

import structlog

from git_provenance.classifiers.activity import activity_id
from git_provenance.core.config import Settings
from git_provenance.exceptions import ParseError, ProvenanceError
from git_provenance.git.repo import detect_repo
from git_provenance.identity.agent import agent_id, detect_agent_type
from git_provenance.identity.codeowners import (
    load_codeowners,
    owner_to_email,
    owners_for_files,
    pattern_matches,
)
from git_provenance.identity.developer import unknown_email
from git_provenance.identity.models import (
    Agent,
    AgentType,
    CodeOwnerRule,
    Delegation,
    DelegationReason,
    ReviewApproval,
    Team,
)
from git_provenance.ids import delegation_hash, generate_id
from git_provenance.parsers.diff import changed_files
from git_provenance.parsers.models import Commit

log = structlog.get_logger("git_provenance.identity.delegation")

_REVIEW_TRAILER_RE = re.compile(
    r"^\s*(Reviewed-by|Approved-by|Acked-by):[ \t]*(.+?)[ \t]*(?:<([^>]+)>)?[ \t]*$",
    re.IGNORECASE | re.MULTILINE,
)
_SLUG_RE = re.compile(r"[^a-z0-9]+")

# Hosting providers whose bots act for the organisation that enabled them.
_BOT_ORG_DOMAINS: list[tuple[str, str]] = [
    ("github.com", "org@github.com"),
    ("gitlab.com", "org@gitlab.com"),
]


def delegation_id(delegate: str, delegator: str, activity: str | None = None) -> str:
    return f"delegation:{delegation_hash(delegate, delegator, activity)}"


def _delegate_id(commit: Commit) -> str:
    return agent_id(commit.author_email or unknown_email(commit.sha))


# ── code ownership ───────────────────────────────────────────────────


def code_owner_delegations(
    repo_path: str,
    commit: Commit,
    rules: list[CodeOwnerRule] | None = None,
    *,
    settings: Settings | None = None,
) -> list[Delegation]:
    """Author -> owner delegations for every owned file the commit touched.

    One delegation per (author, owner) pair; the owner never delegates to
    themselves.
    """
    repo_root = detect_repo(repo_path)
    if rules is None:
        rules = load_codeowners(repo_root)
    if not rules:
        return []

    files = changed_files(repo_root, commit.sha, settings=settings)
    delegate = _delegate_id(commit)
    activity = activity_id(commit)
    seen: dict[tuple[str, str], Delegation] = {}
    for path, rule in owners_for_files(rules, files).items():
        for owner in rule.owners:
            delegator = agent_id(owner_to_email(owner))
            if delegator == delegate:
                continue
            key = (delegate, delegator)
            if key in seen:
                seen[key].scope.append(path)
                continue
            seen[key] = Delegation(
                delegation_id=delegation_id(delegate, delegator, activity),
                delegate=delegate,
                delegator=delegator,
                reason=DelegationReason.CODE_OWNERSHIP,
                activity=activity,
                scope=[path],
                metadata={"pattern": rule.pattern, "owner": owner},
            )
    return list(seen.values())


# ── bots ─────────────────────────────────────────────────────────────


def bot_org_email(bot_email: str | None) -> str:
    if not bot_email:
        return "org@unknown"
    for domain, org_email in _BOT_ORG_DOMAINS:
        if domain in bot_email:
            return org_email
    _, sep, domain = bot_email.rpartition("@")
    return f"org@{domain}" if sep and domain else "org@unknown"


def bot_delegation(agent: Agent, activity: str | None = None) -> Delegation | None:
    """Bot -> organisation delegation; ``None`` for any non-bot agent."""
    if agent.agent_type is not AgentType.BOT:
        return None
    delegator = agent_id(bot_org_email(agent.email))
    return Delegation(
        delegation_id=delegation_id(agent.agent_id, delegator, activity),
        delegate=agent.agent_id,
        delegator=delegator,
        reason=DelegationReason.BOT_CONFIG,
        activity=activity,
        metadata={"bot_email": agent.email},
    )


def bot_delegations(commit: Commit) -> list[Delegation]:
    email = commit.author_email or unknown_email(commit.sha)
    if detect_agent_type(email, commit.author_name) is not AgentType.BOT:
        return []
    agent = Agent(agent_id=agent_id(email), agent_type=AgentType.BOT, email=email)
    delegation = bot_delegation(agent, activity_id(commit))
    return [delegation] if delegation else []


# ── reviews ──────────────────────────────────────────────────────────


def _reviewer_email(name: str, email: str | None) -> str:
    if email:
        return email.strip()
    return f"{name.strip().lower().replace(' ', '.')}@reviewer"


def parse_review_trailers(
    message: str | None,
    activity: str,
    timestamp: datetime | None = None,
) -> list[ReviewApproval]:
    """``Reviewed-by:`` / ``Approved-by:`` / ``Acked-by:`` trailers in *message*."""
    approvals: list[ReviewApproval] = []
    for match in _REVIEW_TRAILER_RE.finditer(message or ""):
        name, email = match.group(2).strip(), match.group(3)
        if not name and not email:
            continue
        reviewer = agent_id(_reviewer_email(name, email))
        approvals.append(
            ReviewApproval(
                approval_id=f"approval:{generate_id([reviewer, activity])}",
                reviewer=reviewer,
                activity=activity,
                reviewer_name=name or None,
                reviewer_email=email.strip() if email else None,
                approved_at=timestamp,
            )
        )
    return approvals


def review_delegations(commit: Commit) -> list[Delegation]:
    activity = activity_id(commit)
    delegate = _delegate_id(commit)
    return [
        Delegation(
            delegation_id=delegation_id(delegate, approval.reviewer, activity),
            delegate=delegate,
            delegator=approval.reviewer,
            reason=DelegationReason.REVIEW_APPROVAL,
            activity=activity,
            metadata={"approval_id": approval.approval_id},
        )
        for approval in parse_review_trailers(commit.message, activity, commit.commit_date)
        if approval.reviewer != delegate
    ]


# ── teams ────────────────────────────────────────────────────────────


def team_id(name: str) -> str:
    return f"team:{_SLUG_RE.sub('-', name.lower()).strip('-')}"


def _field(lines: list[str], name: str) -> str | None:
    prefix = f"{name}:"
    for raw in lines:
        line = raw.strip()
        if line.lower().startswith(prefix):
            return line[len(prefix) :].strip()
    return None


def parse_team_file(text: str) -> Team:
    """Parse ``team:`` / ``leads:`` / ``members:`` lines; ``ParseError`` without a team name."""
    lines = text.splitlines()
    name = _field(lines, "team")
    if not name:
        raise ParseError("team file has no 'team:' line")
    leads = _field(lines, "leads")
    members = _field(lines, "members")
    return Team(
        team_id=team_id(name),
        name=name,
        leads=leads.split() if leads else [],
        members=members.split() if members else [],
    )


def team_delegations(team: Team) -> list[Delegation]:
    """Every member acts on behalf of every lead other than themselves."""
    return [
        Delegation(
            delegation_id=delegation_id(member, lead),
            delegate=member,
            delegator=lead,
            reason=DelegationReason.TEAM_MEMBERSHIP,
            metadata={"team_id": team.team_id, "team_name": team.name},
        )
        for member in team.members
        for lead in team.leads
        if member != lead
    ]


# ── queries ──────────────────────────────────────────────────────────


def applies_to_file(delegation: Delegation, path: str) -> bool:
    if not delegation.scope:
        return True
    return any(
        pattern == path or pattern_matches(pattern, path) for pattern in delegation.scope
    )


def delegates_to(delegation: Delegation, agent: str) -> bool:
    return delegation.delegator == agent


def delegations_for_commit(
    repo_path: str,
    commit: Commit,
    *,
    include_code_owners: bool = True,
    include_bots: bool = True,
    include_reviews: bool = True,
    rules: list[CodeOwnerRule] | None = None,
    settings: Settings | None = None,
) -> list[Delegation]:
    """All delegations for *commit*.

    A failure gathering code-ownership data is logged and leaves the other
    kinds intact.
    """
    delegations: list[Delegation] = []
    if include_code_owners:
        try:
            delegations += code_owner_delegations(repo_path, commit, rules, settings=settings)
        except ProvenanceError as exc:
            log.warning("delegation.code_owners_failed", sha=commit.short_sha, reason=exc.reason)
    if include_bots:
        delegations += bot_delegations(commit)
    if include_reviews:
        delegations += review_delegations(commit)
    return delegations
