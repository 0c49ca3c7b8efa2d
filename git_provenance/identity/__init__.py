"""Developers, agents, attribution and delegation."""

from git_provenance.identity.agent import (
    agent_id,
    agents_from_commit,
    agents_from_commits,
    associations_for_commit,
    attributions_for_commit,
    detect_agent_type,
)
from git_provenance.identity.codeowners import (
    find_owners,
    load_codeowners,
    owners_for,
    parse_codeowners,
    pattern_matches,
)
from git_provenance.identity.delegation import (
    applies_to_file,
    bot_delegation,
    code_owner_delegations,
    delegations_for_commit,
    parse_review_trailers,
    parse_team_file,
    review_delegations,
    team_delegations,
)
from git_provenance.identity.developer import extract_developer, extract_developers, from_commits
from git_provenance.identity.models import (
    Agent,
    AgentRole,
    AgentType,
    Association,
    Attribution,
    CodeOwnerRule,
    Delegation,
    DelegationReason,
    Developer,
    ReviewApproval,
    Team,
)

__all__ = [
    "Agent",
    "AgentRole",
    "AgentType",
    "Association",
    "Attribution",
    "CodeOwnerRule",
    "Delegation",
    "DelegationReason",
    "Developer",
    "ReviewApproval",
    "Team",
    "agent_id",
    "agents_from_commit",
    "agents_from_commits",
    "applies_to_file",
    "associations_for_commit",
    "attributions_for_commit",
    "bot_delegation",
    "code_owner_delegations",
    "delegations_for_commit",
    "detect_agent_type",
    "extract_developer",
    "extract_developers",
    "find_owners",
    "from_commits",
    "load_codeowners",
    "owners_for",
    "parse_codeowners",
    "parse_review_trailers",
    "parse_team_file",
    "pattern_matches",
    "review_delegations",
    "team_delegations",
]
