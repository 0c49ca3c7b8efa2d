"""Runtime settings read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_TIMEOUT = 30.0
MAX_COMMITS = 10_000
DEFAULT_LIMIT = 100


def _env_float(key: str, default: float) -> float:
    return float(os.environ.get(key, default))


def _env_int(key: str, default: int) -> int:
    return int(os.environ.get(key, default))


def _env_bool(key: str, default: bool) -> bool:
    raw = os.environ.get(key)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    git_binary: str = "git"
    timeout: float = DEFAULT_TIMEOUT  # seconds per git invocation
    max_commits: int = MAX_COMMITS  # hard cap on any history walk
    default_limit: int = DEFAULT_LIMIT
    anonymize_emails: bool = False
    log_level: str = "INFO"
    log_format: str = "console"  # console | json


def load_settings() -> Settings:
    """Build :class:`Settings` from ``GIT_PROVENANCE_*`` environment variables."""
    return Settings(
        git_binary=os.environ.get("GIT_PROVENANCE_GIT_BINARY", "git"),
        timeout=_env_float("GIT_PROVENANCE_TIMEOUT", DEFAULT_TIMEOUT),
        max_commits=_env_int("GIT_PROVENANCE_MAX_COMMITS", MAX_COMMITS),
        default_limit=_env_int("GIT_PROVENANCE_DEFAULT_LIMIT", DEFAULT_LIMIT),
        anonymize_emails=_env_bool("GIT_PROVENANCE_ANONYMIZE_EMAILS", False),
        log_level=os.environ.get("GIT_PROVENANCE_LOG_LEVEL", "INFO").upper(),
        log_format=os.environ.get("GIT_PROVENANCE_LOG_FORMAT", "console").lower(),
    )
