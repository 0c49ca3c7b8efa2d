"""Agent detection: who (or what) authored and committed each change.

Agent types come from an ordered cascade over the email address: bot
patterns, then CI patterns, then LLM tool patterns, else a human developer.
Co-author style trailers in the message may upgrade a developer to ``llm``;
they never override a bot or CI match.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

import structlog

from git_provenance.classifiers.activity import activity_id
from git_provenance.core.config import Settings
from git_provenance.exceptions import ParseError, ProvenanceError
from git_provenance.identity.developer import unknown_email
from git_provenance.identity.models import (
    Agent,
    AgentRole,
    AgentType,
    Association,
    Attribution,
    Developer,
)
from git_provenance.ids import agent_hash
from git_provenance.parsers.diff import changed_files
from git_provenance.parsers.models import Commit

log = structlog.get_logger("git_provenance.identity.agent")

AGENT_PREFIX = "agent:"

_BOT_PATTERNS: list[re.Pattern[str]] = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\[bot\]@",
        r"dependabot",
        r"renovate",
        r"greenkeeper",
        r"snyk-bot",
        r"semantic-release-bot",
        r"release-bot",
        r"mergify",
        r"codecov",
        r"coveralls",
        r"allcontributors",
    )
]

_CI_PATTERNS: list[re.Pattern[str]] = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"action@github\.com",
        r"noreply@github\.com",
        r"-ci@",
        r"gitlab-ci@",
        r"jenkins@",
        r"travis@",
        r"circleci@",
        r"azure-pipelines",
        r"bitbucket-pipelines",
    )
]

_LLM_PATTERNS: list[re.Pattern[str]] = [
    re.compile(p, re.IGNORECASE)
    for p in (r"copilot", r"cursor", r"codeium", r"tabnine")
]

_LLM_MESSAGE_PATTERNS: list[re.Pattern[str]] = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"Co-authored-by:.*copilot",
        r"Co-authored-by:.*cursor",
        r"Co-authored-by:.*claude",
        r"Co-authored-by:.*anthropic",
        r"Generated by.*AI",
        r"AI-assisted",
    )
]

# First match wins.
_TYPE_CASCADE: list[tuple[AgentType, list[re.Pattern[str]]]] = [
    (AgentType.BOT, _BOT_PATTERNS),
    (AgentType.CI, _CI_PATTERNS),
    (AgentType.LLM, _LLM_PATTERNS),
]


def _matches_any(text: str, patterns: list[re.Pattern[str]]) -> bool:
    return any(p.search(text) for p in patterns)


def agent_id(email: str) -> str:
    return f"{AGENT_PREFIX}{agent_hash(email)}"


def parse_agent_id(value: str) -> str:
    """Return the hash part of an agent id; raises ``ParseError`` otherwise."""
    if not value.startswith(AGENT_PREFIX) or len(value) == len(AGENT_PREFIX):
        raise ParseError(f"not an agent id: {value!r}")
    return value[len(AGENT_PREFIX) :]


def detect_agent_type(
    email: str | None,
    name: str | None = None,
    message: str | None = None,
) -> AgentType:
    identity = " ".join(part for part in (email, name) if part)
    for agent_type, patterns in _TYPE_CASCADE:
        if _matches_any(identity, patterns):
            return agent_type
    if message and _matches_any(message, _LLM_MESSAGE_PATTERNS):
        return AgentType.LLM
    return AgentType.DEVELOPER


def _agent_for_role(commit: Commit, role: AgentRole, detect_llm: bool) -> Agent:
    if role is AgentRole.AUTHOR:
        email, name, when = commit.author_email, commit.author_name, commit.author_date
    else:
        email, name, when = commit.committer_email, commit.committer_name, commit.commit_date
    email = email or unknown_email(commit.sha)
    return Agent(
        agent_id=agent_id(email),
        agent_type=detect_agent_type(email, name, commit.message if detect_llm else None),
        email=email,
        name=name,
        associated_activities=[activity_id(commit)],
        first_seen=when,
        last_seen=when,
        roles={role},
    )


def _most_recent_name(a: Agent, b: Agent) -> str | None:
    if a.last_seen is None and b.last_seen is None:
        return a.name or b.name
    if a.last_seen is None:
        return b.name
    if b.last_seen is None:
        return a.name
    return a.name if a.last_seen > b.last_seen else b.name


def merge_agents(a: Agent, b: Agent) -> Agent:
    firsts = [d for d in (a.first_seen, b.first_seen) if d is not None]
    lasts = [d for d in (a.last_seen, b.last_seen) if d is not None]
    # An LLM signal on any commit sticks to the human identity behind it.
    agent_type = a.agent_type
    if agent_type is AgentType.DEVELOPER and b.agent_type is AgentType.LLM:
        agent_type = AgentType.LLM
    return Agent(
        agent_id=a.agent_id,
        agent_type=agent_type,
        email=a.email,
        name=_most_recent_name(a, b),
        associated_activities=list(
            dict.fromkeys(a.associated_activities + b.associated_activities)
        ),
        attributed_entities=list(dict.fromkeys(a.attributed_entities + b.attributed_entities)),
        first_seen=min(firsts) if firsts else None,
        last_seen=max(lasts) if lasts else None,
        roles=a.roles | b.roles,
    )


def agents_from_commit(commit: Commit, *, detect_llm: bool = True) -> list[Agent]:
    author = _agent_for_role(commit, AgentRole.AUTHOR, detect_llm)
    committer = _agent_for_role(commit, AgentRole.COMMITTER, detect_llm)
    if author.agent_id == committer.agent_id:
        return [merge_agents(author, committer)]
    return [author, committer]


def agents_from_commits(commits: Iterable[Commit], *, detect_llm: bool = True) -> list[Agent]:
    """Agents across *commits*, merged by id, most active first."""
    by_id: dict[str, Agent] = {}
    for commit in commits:
        for agent in agents_from_commit(commit, detect_llm=detect_llm):
            existing = by_id.get(agent.agent_id)
            by_id[agent.agent_id] = agent if existing is None else merge_agents(existing, agent)
    return sorted(by_id.values(), key=lambda a: a.activity_count, reverse=True)


def agent_from_developer(dev: Developer) -> Agent:
    shas = list(dict.fromkeys(dev.authored_commits + dev.committed_commits))
    return Agent(
        agent_id=agent_id(dev.email),
        agent_type=detect_agent_type(dev.email, dev.name),
        email=dev.email,
        name=dev.name,
        associated_activities=[f"activity:{sha[:7]}" for sha in shas],
        first_seen=dev.first_authored or dev.first_committed,
        last_seen=dev.last_authored or dev.last_committed,
    )


def associations_for_commit(commit: Commit) -> list[Association]:
    """One association per present identity, author first."""
    activity = activity_id(commit)
    associations: list[Association] = []
    if commit.author_email:
        associations.append(
            Association(
                activity, agent_id(commit.author_email), AgentRole.AUTHOR, commit.author_date
            )
        )
    if commit.committer_email:
        associations.append(
            Association(
                activity, agent_id(commit.committer_email), AgentRole.COMMITTER, commit.commit_date
            )
        )
    return associations


def generated_entities(
    repo_path: str, commit: Commit, *, settings: Settings | None = None
) -> list[str]:
    """``{file}@{short_sha}`` for every file the commit touched."""
    return [
        f"{path}@{commit.sha[:7]}"
        for path in changed_files(repo_path, commit.sha, settings=settings)
    ]


def attributions_for_entities(
    entity_ids: Iterable[str], commit: Commit, *, include_committer: bool = False
) -> list[Attribution]:
    attributions: list[Attribution] = []
    for entity in entity_ids:
        if commit.author_email:
            attributions.append(
                Attribution(
                    entity, agent_id(commit.author_email), AgentRole.AUTHOR, commit.author_date
                )
            )
        if (
            include_committer
            and commit.committer_email
            and commit.committer_email != commit.author_email
        ):
            attributions.append(
                Attribution(
                    entity,
                    agent_id(commit.committer_email),
                    AgentRole.COMMITTER,
                    commit.commit_date,
                )
            )
    return attributions


def attributions_for_commit(
    repo_path: str,
    commit: Commit,
    *,
    include_committer: bool = False,
    settings: Settings | None = None,
) -> list[Attribution]:
    """Attribute each file version the commit generated to its author.

    When the changed files cannot be listed the commit yields no attributions.
    """
    try:
        entities = generated_entities(repo_path, commit, settings=settings)
    except ProvenanceError as exc:
        log.warning("agent.entities_failed", sha=commit.short_sha, reason=exc.reason)
        return []
    return attributions_for_entities(entities, commit, include_committer=include_committer)
