# src/core/names.py — v1
"""Name normalization helpers used by matching and deduplication."""

from __future__ import annotations

import re
import unicodedata

# Well-formed knowledge-graph identifier (e.g. "Q937")
DEFAULT_IDENTIFIER_PATTERN = r"^Q\d+$"

_WHITESPACE = re.compile(r"\s+")


def normalize_name(name: str) -> str:
    """Trim, collapse whitespace, NFKC-normalize and case-fold a name."""
    text = unicodedata.normalize("NFKC", name)
    return _WHITESPACE.sub(" ", text).strip().casefold()


def name_tokens(name: str) -> list[str]:
    """Whitespace-delimited tokens of the normalized name."""
    normalized = normalize_name(name)
    return normalized.split(" ") if normalized else []


def tokens_overlap(a: str, b: str) -> bool:
    """Surname-anchored partial match.

    Both names need at least two tokens, an identical trailing token and at
    least one other token in common. A shared given name alone never matches.
    """
    ta, tb = name_tokens(a), name_tokens(b)
    if len(ta) < 2 or len(tb) < 2:
        return False
    if ta[-1] != tb[-1]:
        return False
    return bool(set(ta[:-1]) & set(tb[:-1]))


def is_well_formed_identifier(
    identifier: str | None, pattern: str = DEFAULT_IDENTIFIER_PATTERN
) -> bool:
    """True for canonical external ids, False for placeholders like 'baike-1024'."""
    if not identifier:
        return False
    return re.match(pattern, identifier.strip()) is not None
