"""Canonical identifiers derived from raw onboarding strings."""

from __future__ import annotations

import re
from typing import Iterable, List, Optional

KEY_REF_PATTERN = re.compile(r"^[a-z_]+:[a-z0-9_]+$")

_NON_ALNUM = re.compile(r"[^a-z0-9]")
_NON_KEY_REF = re.compile(r"[^a-z0-9:]")
_UNDERSCORE_RUNS = re.compile(r"_+")
_WHITESPACE_RUNS = re.compile(r"\s+")


def derive_user_id(identifier: str) -> str:
    """Lowercase the identifier and drop every non-alphanumeric character.

    An empty return value means the identifier had nothing usable in it.
    """
    return _NON_ALNUM.sub("", identifier.lower())


def normalize_key_ref(raw: str) -> Optional[str]:
    if KEY_REF_PATTERN.fullmatch(raw):
        return raw
    candidate = _NON_KEY_REF.sub("_", raw.lower())
    candidate = _UNDERSCORE_RUNS.sub("_", candidate).strip("_")
    if KEY_REF_PATTERN.fullmatch(candidate):
        return candidate
    return None


def normalize_key_refs(raw_refs: Iterable[object]) -> List[str]:
    """Normalize a batch of key references, dropping anything unusable."""
    normalized: List[str] = []
    for ref in raw_refs:
        if not isinstance(ref, str):
            continue
        value = normalize_key_ref(ref)
        if value is not None:
            normalized.append(value)
    return normalized


def derive_org_id(org_name: str) -> str:
    # Punctuation survives here, unlike key refs.
    return _WHITESPACE_RUNS.sub("_", org_name.lower())


__all__ = [
    "KEY_REF_PATTERN",
    "derive_org_id",
    "derive_user_id",
    "normalize_key_ref",
    "normalize_key_refs",
]
