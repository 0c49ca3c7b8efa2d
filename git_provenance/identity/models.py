"""Data models for developers, agents and delegations (PROV-O agents side)."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


@dataclass
class Developer:
    """Everything one email address did, merged across commits."""

    email: str
    name: str | None = None  # most recently used name
    names: set[str] = field(default_factory=set)
    authored_commits: list[str] = field(default_factory=list)
    committed_commits: list[str] = field(default_factory=list)
    first_authored: datetime | None = None
    last_authored: datetime | None = None
    first_committed: datetime | None = None
    last_committed: datetime | None = None
    commit_count: int = 0  # unique shas as author or committer

    @property
    def is_author(self) -> bool:
        return bool(self.authored_commits)

    @property
    def is_committer(self) -> bool:
        return bool(self.committed_commits)

    @property
    def authored_count(self) -> int:
        return len(self.authored_commits)

    @property
    def committed_count(self) -> int:
        return len(self.committed_commits)

    @property
    def has_name_variations(self) -> bool:
        return len(self.names) > 1


class AgentType(Enum):
    DEVELOPER = "developer"
    BOT = "bot"
    CI = "ci"
    LLM = "llm"

    @property
    def is_automated(self) -> bool:
        return self is not AgentType.DEVELOPER


class AgentRole(Enum):
    AUTHOR = "author"
    COMMITTER = "committer"


@dataclass
class Agent:
    agent_id: str  # "agent:" + sha256(lower(email))[:12]
    agent_type: AgentType
    email: str
    name: str | None = None
    associated_activities: list[str] = field(default_factory=list)
    attributed_entities: list[str] = field(default_factory=list)
    first_seen: datetime | None = None
    last_seen: datetime | None = None
    roles: set[AgentRole] = field(default_factory=set)

    @property
    def activity_count(self) -> int:
        return len(self.associated_activities)

    def associated_with(self, activity_id: str) -> bool:
        return activity_id in self.associated_activities


@dataclass(frozen=True)
class Association:
    """prov:wasAssociatedWith: an activity and the agent who carried it out."""

    activity_id: str
    agent_id: str
    role: AgentRole | None = None
    timestamp: datetime | None = None


@dataclass(frozen=True)
class Attribution:
    """prov:wasAttributedTo: an entity and the agent it is credited to."""

    entity_id: str
    agent_id: str
    role: AgentRole | None = None
    timestamp: datetime | None = None


class DelegationReason(Enum):
    CODE_OWNERSHIP = "code_ownership"
    TEAM_MEMBERSHIP = "team_membership"
    REVIEW_APPROVAL = "review_approval"
    BOT_CONFIG = "bot_config"


@dataclass
class Delegation:
    """prov:actedOnBehalfOf: *delegate* worked on behalf of *delegator*."""

    delegation_id: str
    delegate: str
    delegator: str
    reason: DelegationReason
    activity: str | None = None
    scope: list[str] = field(default_factory=list)  # path patterns; empty = everywhere
    metadata: dict = field(default_factory=dict)


@dataclass(frozen=True)
class CodeOwnerRule:
    pattern: str
    owners: tuple[str, ...]
    source: str = "CODEOWNERS"
    line_number: int = 0


@dataclass
class Team:
    team_id: str  # "team:{slug}"
    name: str
    leads: list[str] = field(default_factory=list)
    members: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ReviewApproval:
    approval_id: str
    reviewer: str  # agent id
    activity: str
    reviewer_name: str | None = None
    reviewer_email: str | None = None
    approved_at: datetime | None = None
