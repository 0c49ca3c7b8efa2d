"""CODEOWNERS parsing and path matching.

Rules are ``<pattern> <owner>...`` lines; ``#`` starts a comment.  Among all
rules matching a path the last one wins.
"""

from __future__ import annotations

import re
from functools import lru_cache
from pathlib import Path

import structlog

from git_provenance.exceptions import NoMatchError
from git_provenance.git.validation import is_safe_path
from git_provenance.identity.models import CodeOwnerRule

log = structlog.get_logger("git_provenance.identity.codeowners")

CODEOWNERS_LOCATIONS = (".github/CODEOWNERS", "CODEOWNERS", "docs/CODEOWNERS")


def parse_codeowners(text: str, source: str = "CODEOWNERS") -> list[CodeOwnerRule]:
    rules: list[CodeOwnerRule] = []
    for number, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        pattern, *owners = line.split()
        if not owners:
            # A bare pattern clears ownership; nothing to delegate to.
            continue
        rules.append(CodeOwnerRule(pattern, tuple(owners), source, number))
    return rules


def load_codeowners(repo_root: str, path: str | None = None) -> list[CodeOwnerRule]:
    """Rules from the first CODEOWNERS file found in the working tree (empty if none)."""
    for candidate in (path,) if path else CODEOWNERS_LOCATIONS:
        if not is_safe_path(candidate):
            continue
        full = Path(repo_root) / candidate
        if full.is_file():
            rules = parse_codeowners(full.read_text(encoding="utf-8", errors="replace"), candidate)
            log.debug("codeowners.loaded", source=candidate, rules=len(rules))
            return rules
    return []


def _translate(body: str) -> str:
    out: list[str] = []
    i = 0
    while i < len(body):
        if body.startswith("**/", i):
            out.append("(?:.*/)?")
            i += 3
        elif body.startswith("**", i):
            out.append(".*")
            i += 2
        elif body[i] == "*":
            out.append("[^/]*")
            i += 1
        elif body[i] == "?":
            out.append("[^/]")
            i += 1
        else:
            out.append(re.escape(body[i]))
            i += 1
    return "".join(out)


@lru_cache(maxsize=512)
def pattern_to_regex(pattern: str) -> re.Pattern[str]:
    """Compile a CODEOWNERS glob.

    ``**`` spans directories and ``*`` stays within one segment.  A leading
    ``/`` anchors at the repository root, otherwise the pattern may start at
    any path boundary.  A trailing ``/`` matches everything below a directory.
    """
    anchored = pattern.startswith("/")
    body = pattern[1:] if anchored else pattern
    prefix = "^" if anchored else "(?:^|/)"
    suffix = ".*" if pattern.endswith("/") else "(?:$|/)"
    return re.compile(prefix + _translate(body) + suffix)


def pattern_matches(pattern: str, path: str) -> bool:
    return pattern_to_regex(pattern).search(path) is not None


def find_owners(rules: list[CodeOwnerRule], path: str) -> CodeOwnerRule:
    """The last rule matching *path*; ``NoMatchError`` when none does."""
    for rule in reversed(rules):
        if pattern_matches(rule.pattern, path):
            return rule
    raise NoMatchError(path)


def owners_for(rules: list[CodeOwnerRule], path: str) -> list[str]:
    try:
        return list(find_owners(rules, path).owners)
    except NoMatchError:
        return []


def owners_for_files(
    rules: list[CodeOwnerRule], paths: list[str]
) -> dict[str, CodeOwnerRule]:
    matched: dict[str, CodeOwnerRule] = {}
    for path in paths:
        try:
            matched[path] = find_owners(rules, path)
        except NoMatchError:
            continue
    return matched


def owner_to_email(owner: str) -> str:
    """``@org/team`` -> ``team@org``, ``@user`` -> ``user@github``; emails pass through."""
    if not owner.startswith("@"):
        return owner
    ref = owner[1:]
    if "/" in ref:
        org, team = ref.split("/", 1)
        return f"{team}@{org}"
    return f"{ref}@github"
