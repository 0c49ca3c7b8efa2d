"""Heuristic classification of commits and the changes inside them."""

from git_provenance.classifiers.activity import (
    classify,
    classify_commit,
    classify_commits,
    parse_conventional_commit,
)
from git_provenance.classifiers.feature_tracking import (
    TrackerConfig,
    closing_issues,
    detect_all,
    detect_bugfixes,
    detect_features,
    parse_issue_references,
)
from git_provenance.classifiers.models import (
    Activity,
    ActivityType,
    BugFix,
    Classification,
    ClassificationMethod,
    CodeLocation,
    Confidence,
    ConventionalCommit,
    FeatureAddition,
    FeatureReport,
    IssueAction,
    IssueReference,
    IssueTracker,
    RefactoringRecord,
    RefactoringType,
    Scope,
)
from git_provenance.classifiers.refactoring import (
    RefactoringDetector,
    detect_in_hunks,
    detect_refactorings,
)

__all__ = [
    "Activity",
    "ActivityType",
    "BugFix",
    "Classification",
    "ClassificationMethod",
    "CodeLocation",
    "Confidence",
    "ConventionalCommit",
    "FeatureAddition",
    "FeatureReport",
    "IssueAction",
    "IssueReference",
    "IssueTracker",
    "RefactoringDetector",
    "RefactoringRecord",
    "RefactoringType",
    "Scope",
    "TrackerConfig",
    "classify",
    "classify_commit",
    "classify_commits",
    "closing_issues",
    "detect_all",
    "detect_bugfixes",
    "detect_features",
    "detect_in_hunks",
    "detect_refactorings",
    "parse_conventional_commit",
    "parse_issue_references",
]
