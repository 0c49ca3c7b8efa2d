"""Semantic version parsing and precedence (semver.org 2.0)."""

from __future__ import annotations

import re
from functools import cmp_to_key

from git_provenance.exceptions import ParseError
from git_provenance.lifecycle.models import SemVer

_IDENT = r"(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*)"
_SEMVER_RE = re.compile(
    r"^(?P<major>0|[1-9]\d*)\.(?P<minor>0|[1-9]\d*)\.(?P<patch>0|[1-9]\d*)"
    rf"(?:-(?P<pre>{_IDENT}(?:\.{_IDENT})*))?"
    r"(?:\+(?P<build>[0-9a-zA-Z-]+(?:\.[0-9a-zA-Z-]+)*))?$"
)

LT = "lt"
EQ = "eq"
GT = "gt"


def parse_semver(version: str) -> SemVer:
    """Parse ``[v]MAJOR.MINOR.PATCH[-pre][+build]``; raises ``ParseError``."""
    if not isinstance(version, str):
        raise ParseError(f"not a version string: {version!r}")
    match = _SEMVER_RE.match(version.lstrip("v"))
    if not match:
        raise ParseError(f"invalid semantic version: {version!r}")
    return SemVer(
        major=int(match.group("major")),
        minor=int(match.group("minor")),
        patch=int(match.group("patch")),
        pre_release=match.group("pre") or None,
        build=match.group("build") or None,
    )


def try_parse_semver(version: str | None) -> SemVer | None:
    if version is None:
        return None
    try:
        return parse_semver(version)
    except ParseError:
        return None


def _cmp(a, b) -> str:
    if a < b:
        return LT
    if a > b:
        return GT
    return EQ


def _compare_identifiers(a: str, b: str) -> str:
    # Numeric identifiers compare numerically and sort below alphanumeric ones.
    a_num, b_num = a.isdigit(), b.isdigit()
    if a_num and b_num:
        return _cmp(int(a), int(b))
    if a_num:
        return LT
    if b_num:
        return GT
    return _cmp(a, b)


def compare_pre_release(a: str | None, b: str | None) -> str:
    if a is None and b is None:
        return EQ
    if a is None:
        return GT
    if b is None:
        return LT
    a_parts, b_parts = a.split("."), b.split(".")
    for x, y in zip(a_parts, b_parts):
        result = _compare_identifiers(x, y)
        if result != EQ:
            return result
    return _cmp(len(a_parts), len(b_parts))


def compare_semver(a: SemVer, b: SemVer) -> str:
    result = _cmp((a.major, a.minor, a.patch), (b.major, b.minor, b.patch))
    if result != EQ:
        return result
    return compare_pre_release(a.pre_release, b.pre_release)


def compare_versions(v1: str, v2: str) -> str:
    """Return ``"lt"``, ``"eq"`` or ``"gt"``.

    Falls back to plain string comparison when either side is not semver.
    """
    s1, s2 = try_parse_semver(v1), try_parse_semver(v2)
    if s1 is None or s2 is None:
        return _cmp(v1, v2)
    return compare_semver(s1, s2)


def version_sort_key(version: str):
    """Sort key consistent with :func:`compare_versions` for semver strings."""
    return cmp_to_key(_version_cmp)(version)


def _version_cmp(v1: str, v2: str) -> int:
    return {LT: -1, EQ: 0, GT: 1}[compare_versions(v1, v2)]
