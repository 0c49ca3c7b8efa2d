"""Tests for feature / bug-fix tracking and issue reference parsing."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from git_provenance.classifiers.activity import classify_commit
from git_provenance.classifiers.feature_tracking import (
    TrackerConfig,
    bugfix_description,
    bugfix_from_activity,
    build_issue_url,
    closing_issues,
    detect_all,
    detect_bugfixes,
    detect_features,
    feature_from_activity,
    feature_name,
    has_issues,
    parse_issue_references,
)
from git_provenance.classifiers.models import (
    ActivityType,
    IssueAction,
    IssueReference,
    IssueTracker,
)
from git_provenance.parsers.commit import extract_commit
from git_provenance.parsers.models import FileStat

GENERIC = IssueTracker.GENERIC
GITHUB = IssueTracker.GITHUB
GITLAB = IssueTracker.GITLAB
JIRA = IssueTracker.JIRA


# ── Helpers ──────────────────────────────────────────────────────────────────


def _refs(message):
    return [(r.tracker, r.number, r.project, r.action) for r in parse_issue_references(message)]


def _activity(make_commit, message, **kw):
    return classify_commit("/unused", make_commit(message=message, **kw), include_scope=False)


# ── Issue references ─────────────────────────────────────────────────────────


class TestParseIssueReferences:
    def test_plain_mention(self):
        assert _refs("Fix bug #123") == [(GENERIC, 123, None, IssueAction.MENTIONS)]

    def test_closing_keywords(self):
        assert _refs("closes #456, fixes GH-789") == [
            (GENERIC, 456, None, IssueAction.CLOSES),
            (GITHUB, 789, None, IssueAction.FIXES),
        ]

    @pytest.mark.parametrize(
        "message,action",
        [
            ("fix #1", IssueAction.FIXES),
            ("Fixes #1", IssueAction.FIXES),
            ("closed #1", IssueAction.CLOSES),
            ("Resolved #1", IssueAction.RESOLVES),
            ("resolve #1", IssueAction.RESOLVES),
        ],
    )
    def test_keyword_forms(self, message, action):
        assert _refs(message) == [(GENERIC, 1, None, action)]

    def test_gitlab_and_jira_closing(self):
        assert _refs("resolves GL-12") == [(GITLAB, 12, None, IssueAction.RESOLVES)]
        assert _refs("Fixes JIRA-123") == [(JIRA, 123, "JIRA", IssueAction.FIXES)]

    def test_plain_trackers_in_pattern_order(self):
        assert _refs("See PROJ-9 and GH-3") == [
            (GITHUB, 3, None, IssueAction.MENTIONS),
            (JIRA, 9, "PROJ", IssueAction.MENTIONS),
        ]

    def test_closing_reference_wins_over_mention(self):
        assert _refs("fix #1, follow-up to #1 and #2") == [
            (GENERIC, 1, None, IssueAction.FIXES),
            (GENERIC, 2, None, IssueAction.MENTIONS),
        ]

    def test_hash_glued_to_a_word_is_not_a_reference(self):
        assert _refs("see abc#12") == []

    @pytest.mark.parametrize("message", [None, "", "Refactor the parser"])
    def test_none(self, message):
        assert parse_issue_references(message) == []


class TestBuildIssueUrl:
    def test_github_and_generic(self):
        trackers = TrackerConfig(github_repo="owner/repo")
        for tracker in (GITHUB, GENERIC):
            ref = IssueReference(tracker, 123)
            assert build_issue_url(ref, trackers) == "https://github.com/owner/repo/issues/123"

    def test_gitlab(self):
        ref = IssueReference(GITLAB, 5)
        assert (
            build_issue_url(ref, TrackerConfig(gitlab_repo="grp/proj"))
            == "https://gitlab.com/grp/proj/-/issues/5"
        )
        custom = TrackerConfig(gitlab_repo="grp/proj", gitlab_url="https://git.example.com/")
        assert build_issue_url(ref, custom) == "https://git.example.com/grp/proj/-/issues/5"

    def test_jira(self):
        ref = IssueReference(JIRA, 9, project="PROJ")
        trackers = TrackerConfig(jira_url="https://jira.example.com")
        assert build_issue_url(ref, trackers) == "https://jira.example.com/browse/PROJ-9"

    def test_unconfigured(self):
        for tracker in IssueTracker:
            assert build_issue_url(IssueReference(tracker, 1, project="X")) is None


# ── Names and descriptions ───────────────────────────────────────────────────


class TestNames:
    @pytest.mark.parametrize(
        "subject,expected",
        [
            ("feat(api): add pagination", "add pagination"),
            ("feature: dark mode", "dark mode"),
            ("feat!: drop v1 endpoints", "drop v1 endpoints"),
            ("Add pagination to list endpoint", "pagination to list endpoint"),
            ("Implemented retries", "retries"),
            ("Introduce a blame cache", "a blame cache"),
            ("Pagination for lists", "Pagination for lists"),
        ],
    )
    def test_feature_name(self, subject, expected):
        assert feature_name(subject) == expected

    @pytest.mark.parametrize(
        "subject,expected",
        [
            ("fix(blame): zero sha", "zero sha"),
            ("bugfix: off by one", "off by one"),
            ("Fixed crash on empty input", "crash on empty input"),
            ("Repair broken rename walk", "broken rename walk"),
            ("Crash on empty input", "Crash on empty input"),
        ],
    )
    def test_bugfix_description(self, subject, expected):
        assert bugfix_description(subject) == expected


# ── Activities ───────────────────────────────────────────────────────────────


class TestFromActivity:
    def test_feature(self, make_commit):
        activity = _activity(
            make_commit, "feat(api): add pagination\n\nRefs PROJ-42\n\nCloses #7"
        )
        feature = feature_from_activity(activity, TrackerConfig(github_repo="o/r"))
        assert feature.name == "add pagination"
        assert feature.description == "Refs PROJ-42\n\nCloses #7"
        assert feature.classification is activity.classification
        assert [(r.tracker, r.number, r.action) for r in feature.issue_refs] == [
            (GENERIC, 7, IssueAction.CLOSES),
            (JIRA, 42, IssueAction.MENTIONS),
        ]
        assert feature.issue_refs[0].url == "https://github.com/o/r/issues/7"
        assert feature.issue_refs[1].url is None
        assert has_issues(feature)
        assert [r.number for r in closing_issues(feature)] == [7]

    def test_bugfix(self, make_commit):
        activity = _activity(make_commit, "Fixed crash on empty input")
        assert activity.type is ActivityType.BUGFIX
        bugfix = bugfix_from_activity(activity)
        assert bugfix.description == "crash on empty input"
        assert bugfix.issue_refs == []
        assert not has_issues(bugfix)
        assert closing_issues(bugfix) == []

    def test_other_types_yield_nothing(self, make_commit):
        docs = _activity(make_commit, "docs: explain blame")
        assert feature_from_activity(docs) is None
        assert bugfix_from_activity(docs) is None
        fix = _activity(make_commit, "fix: thing")
        assert feature_from_activity(fix) is None


class TestDetect:
    def test_features_use_scope_modules(self, tmp_path, make_commit):
        commit = make_commit(message="feat: add pager")
        stats = [FileStat("lib/my_app/pager.ex", 30, 0), FileStat("README.md", 2, 0)]
        with patch("git_provenance.classifiers.activity.commit_numstat", return_value=stats):
            (feature,) = detect_features(str(tmp_path), commit)
        assert feature.modules == ["MyApp.Pager"]
        assert feature.scope.files_changed == ["lib/my_app/pager.ex", "README.md"]

    def test_bugfixes(self, tmp_path, make_commit):
        commit = make_commit(message="fix(parser): empty message\n\nfixes GH-12")
        (bugfix,) = detect_bugfixes(str(tmp_path), commit, include_scope=False)
        assert bugfix.description == "empty message"
        assert [(r.tracker, r.number) for r in bugfix.issue_refs] == [(GITHUB, 12)]
        assert detect_features(str(tmp_path), commit, include_scope=False) == []

    def test_all_classifies_each_commit_once(self, tmp_path, make_commit):
        commits = [
            make_commit(sha="a" * 40, message="feat: a"),
            make_commit(sha="b" * 40, message="fix: b"),
            make_commit(sha="c" * 40, message="docs: c"),
            make_commit(sha="d" * 40, message="feat: d"),
        ]
        with patch(
            "git_provenance.classifiers.feature_tracking.classify_commit",
            wraps=classify_commit,
        ) as classify_spy:
            report = detect_all(str(tmp_path), commits, include_scope=False)
        assert classify_spy.call_count == 4
        assert [f.name for f in report.features] == ["a", "d"]
        assert [b.description for b in report.bugfixes] == ["b"]

    def test_real_repo(self, git_repo, settings):
        git_repo.write("lib/my_app/pager.ex", "defmodule MyApp.Pager do\nend\n")
        sha = git_repo.commit("feat: add pager\n\nCloses #3")
        commit = extract_commit(git_repo.path, sha, settings=settings)

        (feature,) = detect_features(git_repo.path, commit, settings=settings)

        assert feature.name == "add pager"
        assert feature.modules == ["MyApp.Pager"]
        assert [(r.number, r.action) for r in feature.issue_refs] == [(3, IssueAction.CLOSES)]
