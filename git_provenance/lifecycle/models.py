"""Data models for releases and deprecations."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from git_provenance.parsers.models import Commit


@dataclass(frozen=True)
class SemVer:
    major: int
    minor: int
    patch: int
    pre_release: str | None = None
    build: str | None = None  # never takes part in ordering

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.pre_release:
            text += f"-{self.pre_release}"
        if self.build:
            text += f"+{self.build}"
        return text

    @property
    def is_pre_release(self) -> bool:
        return self.pre_release is not None


@dataclass
class Release:
    release_id: str  # "release:{tag}"
    version: str
    commit_sha: str
    short_sha: str
    tag: str | None = None
    timestamp: datetime | None = None
    semver: SemVer | None = None
    previous_version: str | None = None
    project_name: str | None = None


class ElementType(Enum):
    FUNCTION = "function"
    MACRO = "macro"
    CALLBACK = "callback"
    TYPE = "type"
    MODULE = "module"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class DeprecationEvent:
    file: str
    commit: Commit | None = None
    line: int | None = None


@dataclass(frozen=True)
class RemovalEvent:
    file: str
    commit: Commit | None = None


@dataclass(frozen=True)
class Replacement:
    """Replacement suggested by a deprecation message."""

    text: str
    module: str | None = None
    function: tuple[str, int] | None = None

    @property
    def is_known(self) -> bool:
        return self.module is not None or self.function is not None


@dataclass
class Deprecation:
    element_type: ElementType
    element_name: str
    message: str
    module: str | None = None
    function: tuple[str, int] | None = None
    deprecated_in: DeprecationEvent | None = None
    removed_in: RemovalEvent | None = None
    replacement: Replacement | None = None
    metadata: dict = field(default_factory=dict)

    @property
    def is_removed(self) -> bool:
        return self.removed_in is not None
