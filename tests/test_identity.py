"""Tests for developers, agents, CODEOWNERS and delegations."""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from git_provenance.exceptions import (
    CommandFailedError,
    DeveloperNotFoundError,
    NoMatchError,
    ParseError,
)
from git_provenance.identity.agent import (
    agent_from_developer,
    agent_id,
    agents_from_commit,
    agents_from_commits,
    associations_for_commit,
    attributions_for_commit,
    attributions_for_entities,
    detect_agent_type,
    merge_agents,
    parse_agent_id,
)
from git_provenance.identity.codeowners import (
    find_owners,
    load_codeowners,
    owner_to_email,
    owners_for,
    owners_for_files,
    parse_codeowners,
    pattern_matches,
)
from git_provenance.identity.delegation import (
    applies_to_file,
    bot_delegation,
    bot_delegations,
    bot_org_email,
    code_owner_delegations,
    delegates_to,
    delegation_id,
    delegations_for_commit,
    parse_review_trailers,
    parse_team_file,
    review_delegations,
    team_delegations,
    team_id,
)
from git_provenance.identity.developer import (
    extract_developer,
    extract_developers,
    from_commit,
    from_commits,
    unknown_email,
)
from git_provenance.identity.models import (
    Agent,
    AgentRole,
    AgentType,
    CodeOwnerRule,
    Delegation,
    DelegationReason,
)
from git_provenance.parsers.commit import extract_commit

SHA_A = "a" * 40
SHA_B = "b" * 40
SHA_C = "c" * 40

JAN = datetime(2026, 1, 15, tzinfo=timezone.utc)
FEB = datetime(2026, 2, 1, tzinfo=timezone.utc)

CODEOWNERS = """\
# Owners for the demo project

*.ex @team
lib/** @alice
docs/
/build/ @ops alice@example.com
"""

DEPENDABOT = "49699333+dependabot[bot]@users.noreply.github.com"


# ── Helpers ──────────────────────────────────────────────────────────


def _rules(*pairs: tuple[str, tuple[str, ...]]) -> list[CodeOwnerRule]:
    return [CodeOwnerRule(pattern, owners) for pattern, owners in pairs]


def _bob_commit(make_commit, sha=SHA_C):
    return make_commit(
        sha=sha,
        author_name="Bob",
        author_email="bob@example.com",
        committer_name="Bob",
        committer_email="bob@example.com",
    )


# ── Developers ───────────────────────────────────────────────────────


class TestDevelopers:
    def test_author_and_committer_merged(self, make_commit):
        [dev] = from_commit(make_commit())
        assert dev.email == "alice@example.com"
        assert dev.authored_commits == [SHA_A]
        assert dev.committed_commits == [SHA_A]
        assert dev.commit_count == 1
        assert dev.is_author and dev.is_committer

    def test_distinct_committer(self, make_commit):
        author, committer = from_commit(
            make_commit(committer_name="CI", committer_email="ci@example.com")
        )
        assert author.email == "alice@example.com"
        assert committer.email == "ci@example.com"
        assert not author.is_committer
        assert not committer.is_author

    def test_missing_email(self, make_commit):
        [author, _] = from_commit(make_commit(author_email=None))
        assert author.email == "unknown-aaaaaaa@unknown"

    def test_unknown_email(self):
        assert unknown_email("abcdef1234") == "unknown-abcdef1@unknown"
        assert unknown_email(None) == "unknown-unknown@unknown"

    def test_grouped_by_email(self, make_commit):
        commits = [
            make_commit(sha=SHA_A),
            make_commit(
                sha=SHA_B,
                author_name="Alice Smith",
                committer_name="Alice Smith",
                author_date=FEB,
                commit_date=FEB,
            ),
            _bob_commit(make_commit),
        ]

        alice, bob = from_commits(commits)

        assert alice.email == "alice@example.com"
        assert alice.commit_count == 2
        assert alice.name == "Alice Smith"
        assert alice.names == {"Alice", "Alice Smith"}
        assert alice.has_name_variations
        assert alice.first_authored == JAN
        assert alice.last_authored == FEB
        assert bob.commit_count == 1
        assert not bob.has_name_variations

    def test_anonymized(self, make_commit):
        [dev] = from_commits([make_commit()], anonymize=True)
        assert len(dev.email) == 64
        assert "@" not in dev.email

    def test_extract_developer_not_found(self, make_commit, settings):
        with (
            patch("git_provenance.identity.developer.detect_repo", return_value="/repo"),
            patch(
                "git_provenance.identity.developer.extract_commits",
                return_value=[make_commit()],
            ),
        ):
            with pytest.raises(DeveloperNotFoundError) as excinfo:
                extract_developer("/repo", "nobody@example.com", settings=settings)

        assert excinfo.value.reason == "not_found"
        assert excinfo.value.email == "nobody@example.com"

    def test_extract_developers_uses_default_limit(self, make_commit, settings):
        with (
            patch("git_provenance.identity.developer.detect_repo", return_value="/repo"),
            patch(
                "git_provenance.identity.developer.extract_commits",
                return_value=[make_commit()],
            ) as mock_extract,
        ):
            devs = extract_developers("/repo", settings=settings)

        assert [d.email for d in devs] == ["alice@example.com"]
        mock_extract.assert_called_once_with("/repo", ref="HEAD", limit=50, settings=settings)

    def test_extract_developer_real_git(self, git_repo, settings):
        git_repo.write("a.txt", "1")
        git_repo.commit("feat: one")
        git_repo.write("a.txt", "2")
        git_repo.commit("feat: two", author="Bob", email="bob@example.com")

        dev = extract_developer(git_repo.path, "bob@example.com", settings=settings)

        assert dev.name == "Bob"
        assert dev.authored_count == 1
        assert dev.committed_count == 0


# ── Agents ───────────────────────────────────────────────────────────


class TestAgentType:
    @pytest.mark.parametrize(
        "email, name, expected",
        [
            (DEPENDABOT, "dependabot[bot]", AgentType.BOT),
            ("bot@renovateapp.com", None, AgentType.BOT),
            ("someone@example.com", "renovate", AgentType.BOT),
            ("action@github.com", "GitHub Action", AgentType.CI),
            ("builder@jenkins.example.com", None, AgentType.DEVELOPER),
            ("jenkins@example.com", None, AgentType.CI),
            ("copilot@example.com", None, AgentType.LLM),
            ("alice@example.com", "Alice", AgentType.DEVELOPER),
            (None, None, AgentType.DEVELOPER),
        ],
    )
    def test_cascade(self, email, name, expected):
        assert detect_agent_type(email, name) is expected

    def test_co_author_trailer_upgrades_developer(self):
        message = "feat: add cache\n\nCo-authored-by: Claude <noreply@anthropic.com>"
        assert detect_agent_type("alice@example.com", "Alice", message) is AgentType.LLM

    def test_trailer_never_overrides_bot(self):
        message = "chore: bump\n\nCo-authored-by: Copilot <copilot@github.com>"
        assert detect_agent_type(DEPENDABOT, None, message) is AgentType.BOT

    def test_is_automated(self):
        assert AgentType.BOT.is_automated
        assert not AgentType.DEVELOPER.is_automated


class TestAgentIds:
    def test_format(self):
        value = agent_id("alice@example.com")
        assert value.startswith("agent:")
        assert len(value) == len("agent:") + 12

    def test_case_insensitive(self):
        assert agent_id("Alice@Example.COM") == agent_id("alice@example.com")

    def test_parse(self):
        value = agent_id("alice@example.com")
        assert parse_agent_id(value) == value[len("agent:") :]

    @pytest.mark.parametrize("bad", ["agent:", "team:core", ""])
    def test_parse_invalid(self, bad):
        with pytest.raises(ParseError):
            parse_agent_id(bad)


class TestAgents:
    def test_single_agent_for_same_identity(self, make_commit):
        [agent] = agents_from_commit(make_commit())
        assert agent.roles == {AgentRole.AUTHOR, AgentRole.COMMITTER}
        assert agent.associated_activities == ["activity:aaaaaaa"]
        assert agent.associated_with("activity:aaaaaaa")

    def test_author_and_committer(self, make_commit):
        author, committer = agents_from_commit(
            make_commit(committer_name="GitHub", committer_email="noreply@github.com")
        )
        assert author.roles == {AgentRole.AUTHOR}
        assert committer.roles == {AgentRole.COMMITTER}
        assert committer.agent_type is AgentType.CI

    def test_llm_signal_sticks_after_merge(self, make_commit):
        commits = [
            make_commit(sha=SHA_A),
            make_commit(
                sha=SHA_B,
                message="feat: x\n\nCo-authored-by: Copilot <copilot@example.com>",
                author_date=FEB,
                commit_date=FEB,
            ),
            make_commit(sha=SHA_C, author_date=FEB, commit_date=FEB),
        ]

        [agent] = agents_from_commits(commits)

        assert agent.agent_type is AgentType.LLM
        assert agent.activity_count == 3
        assert agent.first_seen == JAN
        assert agent.last_seen == FEB

    def test_detect_llm_disabled(self, make_commit):
        commit = make_commit(message="feat: x\n\nAI-assisted")
        [agent] = agents_from_commits([commit], detect_llm=False)
        assert agent.agent_type is AgentType.DEVELOPER

    def test_most_active_first(self, make_commit):
        commits = [
            _bob_commit(make_commit, SHA_A),
            make_commit(sha=SHA_B),
            make_commit(sha=SHA_C),
        ]
        agents = agents_from_commits(commits)
        assert [a.email for a in agents] == ["alice@example.com", "bob@example.com"]

    def test_merge_prefers_recent_name(self):
        old = Agent(agent_id("a@x.com"), AgentType.DEVELOPER, "a@x.com", name="A", last_seen=JAN)
        new = Agent(agent_id("a@x.com"), AgentType.DEVELOPER, "a@x.com", name="Ann", last_seen=FEB)
        assert merge_agents(old, new).name == "Ann"
        assert merge_agents(new, old).name == "Ann"

    def test_from_developer(self, make_commit):
        [dev] = from_commit(make_commit())
        agent = agent_from_developer(dev)
        assert agent.agent_id == agent_id("alice@example.com")
        assert agent.associated_activities == ["activity:aaaaaaa"]
        assert agent.first_seen == JAN


class TestAssociations:
    def test_author_then_committer(self, make_commit):
        author, committer = associations_for_commit(make_commit())
        assert author.activity_id == "activity:aaaaaaa"
        assert author.role is AgentRole.AUTHOR
        assert committer.role is AgentRole.COMMITTER
        assert author.agent_id == committer.agent_id

    def test_missing_identities(self, make_commit):
        commit = make_commit(author_email=None, committer_email=None)
        assert associations_for_commit(commit) == []


class TestAttributions:
    def test_author_only_by_default(self, make_commit):
        commit = make_commit(committer_email="ci@example.com")
        [attr] = attributions_for_entities(["lib/a.ex@aaaaaaa"], commit)
        assert attr.entity_id == "lib/a.ex@aaaaaaa"
        assert attr.agent_id == agent_id("alice@example.com")
        assert attr.role is AgentRole.AUTHOR

    def test_include_committer(self, make_commit):
        commit = make_commit(committer_email="ci@example.com")
        attrs = attributions_for_entities(["e1"], commit, include_committer=True)
        assert [a.role for a in attrs] == [AgentRole.AUTHOR, AgentRole.COMMITTER]

    def test_committer_same_as_author(self, make_commit):
        attrs = attributions_for_entities(["e1"], make_commit(), include_committer=True)
        assert len(attrs) == 1

    def test_for_commit(self, make_commit):
        with patch(
            "git_provenance.identity.agent.changed_files",
            return_value=["lib/a.ex", "README.md"],
        ):
            attrs = attributions_for_commit("/repo", make_commit())
        assert [a.entity_id for a in attrs] == ["lib/a.ex@aaaaaaa", "README.md@aaaaaaa"]

    def test_for_commit_failure_yields_nothing(self, make_commit):
        with patch(
            "git_provenance.identity.agent.changed_files",
            side_effect=CommandFailedError(["diff-tree"], 128, "fatal: bad object"),
        ):
            assert attributions_for_commit("/repo", make_commit()) == []


# ── CODEOWNERS ───────────────────────────────────────────────────────


class TestParseCodeowners:
    def test_rules(self):
        rules = parse_codeowners(CODEOWNERS)
        assert [r.pattern for r in rules] == ["*.ex", "lib/**", "/build/"]
        assert rules[0].owners == ("@team",)
        assert rules[0].line_number == 3
        assert rules[2].owners == ("@ops", "alice@example.com")

    def test_load_from_github_dir(self, tmp_path):
        (tmp_path / ".github").mkdir()
        (tmp_path / ".github" / "CODEOWNERS").write_text(CODEOWNERS)
        rules = load_codeowners(str(tmp_path))
        assert len(rules) == 3
        assert rules[0].source == ".github/CODEOWNERS"

    def test_load_missing(self, tmp_path):
        assert load_codeowners(str(tmp_path)) == []

    def test_load_rejects_unsafe_path(self, tmp_path):
        assert load_codeowners(str(tmp_path), "../CODEOWNERS") == []


class TestPatternMatching:
    @pytest.mark.parametrize(
        "pattern, path, expected",
        [
            ("*.ex", "lib/foo.ex", True),
            ("*.ex", "lib/foo.exs", False),
            ("lib/**", "lib/a/b/c.ex", True),
            ("lib/**", "test/lib.ex", False),
            ("/build/", "build/out.txt", True),
            ("/build/", "src/build/out.txt", False),
            ("build/", "src/build/out.txt", True),
            ("docs/*.md", "docs/a.md", True),
            ("docs/*.md", "docs/sub/a.md", False),
            ("**/test/*", "apps/web/test/x.exs", True),
            ("lib/?.ex", "lib/a.ex", True),
            ("lib/?.ex", "lib/ab.ex", False),
            ("mix.exs", "mix.exs", True),
            ("mix.exs", "apps/core/mix.exs", True),
        ],
    )
    def test_patterns(self, pattern, path, expected):
        assert pattern_matches(pattern, path) is expected

    def test_last_matching_rule_wins(self):
        rules = _rules(("*.ex", ("@team",)), ("lib/**", ("@alice",)))
        assert owners_for(rules, "lib/foo.ex") == ["@alice"]
        assert owners_for(rules, "test/foo.ex") == ["@team"]

    def test_no_match(self):
        rules = _rules(("*.ex", ("@team",)))
        assert owners_for(rules, "README.md") == []
        with pytest.raises(NoMatchError) as excinfo:
            find_owners(rules, "README.md")
        assert excinfo.value.reason == "no_match"

    def test_owners_for_files(self):
        rules = _rules(("*.ex", ("@team",)))
        matched = owners_for_files(rules, ["lib/a.ex", "README.md"])
        assert list(matched) == ["lib/a.ex"]

    @pytest.mark.parametrize(
        "owner, email",
        [
            ("@acme/core", "core@acme"),
            ("@alice", "alice@github"),
            ("bob@example.com", "bob@example.com"),
        ],
    )
    def test_owner_to_email(self, owner, email):
        assert owner_to_email(owner) == email


# ── Delegations ──────────────────────────────────────────────────────


class TestCodeOwnerDelegations:
    def test_one_delegation_per_owner(self, make_commit):
        rules = _rules(
            ("*.ex", ("@acme/core",)),
            ("lib/**", ("@bob", "alice@example.com")),
            ("*.exs", ("@acme/core",)),
        )
        files = ["lib/a.ex", "lib/b.ex", "test/a_test.exs", "README.md"]

        with (
            patch("git_provenance.identity.delegation.detect_repo", return_value="/repo"),
            patch("git_provenance.identity.delegation.changed_files", return_value=files),
        ):
            bob, core = code_owner_delegations("/repo", make_commit(), rules)

        alice = agent_id("alice@example.com")
        assert bob.delegate == alice
        assert bob.delegator == agent_id("bob@github")
        assert bob.scope == ["lib/a.ex", "lib/b.ex"]
        assert bob.reason is DelegationReason.CODE_OWNERSHIP
        assert bob.activity == "activity:aaaaaaa"
        assert bob.metadata == {"pattern": "lib/**", "owner": "@bob"}
        assert bob.delegation_id == delegation_id(alice, bob.delegator, "activity:aaaaaaa")
        assert core.delegator == agent_id("core@acme")
        assert core.scope == ["test/a_test.exs"]

    def test_no_codeowners_file(self, make_commit, tmp_path):
        with (
            patch("git_provenance.identity.delegation.detect_repo", return_value=str(tmp_path)),
            patch("git_provenance.identity.delegation.changed_files") as mock_files,
        ):
            assert code_owner_delegations(str(tmp_path), make_commit()) == []
        mock_files.assert_not_called()

    def test_real_git(self, git_repo, settings):
        git_repo.write("CODEOWNERS", "lib/** @carol\n")
        git_repo.write("lib/a.ex", "defmodule A do\nend\n")
        git_repo.commit("feat: a")
        git_repo.write("lib/a.ex", "defmodule A do\n  def x, do: 1\nend\n")
        git_repo.write("README.md", "hi\n")
        sha = git_repo.commit("feat: x")

        commit = extract_commit(git_repo.path, sha, settings=settings)
        [delegation] = code_owner_delegations(git_repo.path, commit, settings=settings)

        assert delegation.delegator == agent_id("carol@github")
        assert delegation.scope == ["lib/a.ex"]


class TestBotDelegations:
    @pytest.mark.parametrize(
        "email, org",
        [
            (DEPENDABOT, "org@github.com"),
            ("renovate-bot@gitlab.com", "org@gitlab.com"),
            ("release-bot@acme.io", "org@acme.io"),
            ("weird", "org@unknown"),
            (None, "org@unknown"),
        ],
    )
    def test_org_email(self, email, org):
        assert bot_org_email(email) == org

    def test_non_bot(self):
        agent = Agent(agent_id("a@x.com"), AgentType.DEVELOPER, "a@x.com")
        assert bot_delegation(agent) is None

    def test_bot_commit(self, make_commit):
        commit = make_commit(author_name="dependabot[bot]", author_email=DEPENDABOT)
        [delegation] = bot_delegations(commit)
        assert delegation.delegate == agent_id(DEPENDABOT)
        assert delegation.delegator == agent_id("org@github.com")
        assert delegation.reason is DelegationReason.BOT_CONFIG
        assert delegation.metadata == {"bot_email": DEPENDABOT}

    def test_human_commit(self, make_commit):
        assert bot_delegations(make_commit()) == []


class TestReviewTrailers:
    MESSAGE = (
        "fix: guard against empty input\n"
        "\n"
        "Reviewed-by: Bob Jones <bob@example.com>\n"
        "Acked-by: Carol Diaz\n"
        "Signed-off-by: Alice <alice@example.com>\n"
    )

    def test_parse(self):
        bob, carol = parse_review_trailers(self.MESSAGE, "activity:aaaaaaa", JAN)
        assert bob.reviewer == agent_id("bob@example.com")
        assert bob.reviewer_name == "Bob Jones"
        assert bob.reviewer_email == "bob@example.com"
        assert bob.approved_at == JAN
        assert bob.approval_id.startswith("approval:")
        assert carol.reviewer == agent_id("carol.diaz@reviewer")
        assert carol.reviewer_email is None

    def test_case_insensitive(self):
        [approval] = parse_review_trailers("x\n\nreviewed-by: Dan <dan@x.com>", "activity:1")
        assert approval.reviewer_email == "dan@x.com"

    def test_no_trailers(self):
        assert parse_review_trailers("fix: x", "activity:1") == []
        assert parse_review_trailers(None, "activity:1") == []

    def test_delegations_skip_self_review(self, make_commit):
        message = (
            "fix: x\n\nReviewed-by: Alice <alice@example.com>\nApproved-by: Bob <bob@example.com>"
        )
        [delegation] = review_delegations(make_commit(message=message))
        assert delegation.delegator == agent_id("bob@example.com")
        assert delegation.reason is DelegationReason.REVIEW_APPROVAL
        assert delegation.metadata["approval_id"].startswith("approval:")


class TestTeams:
    def test_parse_team_file(self):
        team = parse_team_file(
            "team: Core Platform\nleads: lead@x.com\nmembers: a@x.com lead@x.com b@x.com\n"
        )
        assert team.team_id == "team:core-platform"
        assert team.name == "Core Platform"
        assert team.leads == ["lead@x.com"]
        assert team.members == ["a@x.com", "lead@x.com", "b@x.com"]

    def test_missing_team_line(self):
        with pytest.raises(ParseError):
            parse_team_file("leads: lead@x.com\n")

    def test_team_id_slug(self):
        assert team_id("  Web & Mobile ") == "team:web-mobile"

    def test_members_delegate_to_leads(self):
        team = parse_team_file("team: core\nleads: lead@x.com\nmembers: a@x.com lead@x.com b@x.com")
        delegations = team_delegations(team)
        assert [(d.delegate, d.delegator) for d in delegations] == [
            ("a@x.com", "lead@x.com"),
            ("b@x.com", "lead@x.com"),
        ]
        assert all(d.reason is DelegationReason.TEAM_MEMBERSHIP for d in delegations)
        assert delegations[0].metadata["team_id"] == "team:core"


class TestDelegationQueries:
    def _delegation(self, scope=None) -> Delegation:
        return Delegation(
            delegation_id="delegation:1",
            delegate="agent:a",
            delegator="agent:b",
            reason=DelegationReason.CODE_OWNERSHIP,
            scope=scope or [],
        )

    def test_empty_scope_applies_everywhere(self):
        assert applies_to_file(self._delegation(), "anything/at/all.ex")

    def test_scoped(self):
        delegation = self._delegation(["lib/a.ex", "docs/"])
        assert applies_to_file(delegation, "lib/a.ex")
        assert applies_to_file(delegation, "docs/guide/intro.md")
        assert not applies_to_file(delegation, "lib/b.ex")

    def test_delegates_to(self):
        assert delegates_to(self._delegation(), "agent:b")
        assert not delegates_to(self._delegation(), "agent:a")


class TestDelegationsForCommit:
    def test_code_owner_failure_keeps_other_kinds(self, make_commit):
        commit = make_commit(message="fix: x\n\nReviewed-by: Bob <bob@example.com>")
        rules = _rules(("*", ("@carol",)))

        with (
            patch("git_provenance.identity.delegation.detect_repo", return_value="/repo"),
            patch(
                "git_provenance.identity.delegation.changed_files",
                side_effect=CommandFailedError(["diff-tree"], 128),
            ),
        ):
            delegations = delegations_for_commit("/repo", commit, rules=rules)

        assert [d.reason for d in delegations] == [DelegationReason.REVIEW_APPROVAL]

    def test_all_kinds(self, make_commit):
        commit = make_commit(
            author_name="dependabot[bot]",
            author_email=DEPENDABOT,
            message="chore: bump\n\nReviewed-by: Bob <bob@example.com>",
        )
        rules = _rules(("mix.lock", ("@carol",)))

        with (
            patch("git_provenance.identity.delegation.detect_repo", return_value="/repo"),
            patch(
                "git_provenance.identity.delegation.changed_files",
                return_value=["mix.lock"],
            ),
        ):
            delegations = delegations_for_commit("/repo", commit, rules=rules)
            only_reviews = delegations_for_commit(
                "/repo", commit, rules=rules, include_code_owners=False, include_bots=False
            )

        assert [d.reason for d in delegations] == [
            DelegationReason.CODE_OWNERSHIP,
            DelegationReason.BOT_CONFIG,
            DelegationReason.REVIEW_APPROVAL,
        ]
        assert [d.reason for d in only_reviews] == [DelegationReason.REVIEW_APPROVAL]
