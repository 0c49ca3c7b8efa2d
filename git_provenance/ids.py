"""Deterministic identifiers.

All identifiers are truncated lowercase SHA-256 hex digests of stable inputs,
so re-running extraction over the same history yields the same IDs.
"""

from __future__ import annotations

import hashlib
from collections.abc import Iterable

DEFAULT_LENGTH = 12
SHORT_LENGTH = 8
CONTENT_LENGTH = 16
FULL_LENGTH = 64


def generate_id(
    parts: str | Iterable[str],
    length: int = DEFAULT_LENGTH,
    *,
    normalize: bool = False,
) -> str:
    """Hash *parts* (joined with ``:`` when a sequence) and truncate to *length*."""
    if isinstance(parts, str):
        text = parts
    else:
        text = ":".join(parts)
    if normalize:
        text = text.strip().lower()
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:length]


def short_id(parts: str | Iterable[str]) -> str:
    return generate_id(parts, SHORT_LENGTH)


def agent_hash(email: str) -> str:
    """12-char hash of the lowercased email."""
    return generate_id(email.lower(), DEFAULT_LENGTH)


def content_id(content: str) -> str:
    return generate_id(content, CONTENT_LENGTH)


def full_hash(content: str) -> str:
    return generate_id(content, FULL_LENGTH)


def delegation_hash(delegate: str, delegator: str, activity: str | None = None) -> str:
    parts = [delegate, delegator] if activity is None else [delegate, delegator, activity]
    return generate_id(parts, DEFAULT_LENGTH)


def anonymize_email(email: str) -> str:
    """Full SHA-256 of the lowercased email, for privacy-preserving exports."""
    return hashlib.sha256(email.lower().encode("utf-8")).hexdigest()


def maybe_anonymize_email(email: str | None, enabled: bool) -> str | None:
    if email is None or not enabled:
        return email
    return anonymize_email(email)
