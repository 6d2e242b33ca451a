"""Fuzzy filtering and ranking of picker items."""

from __future__ import annotations

from typing import Sequence, TypeVar

from rapidfuzz import fuzz, utils

T = TypeVar("T")

# searchText first; the rest break ties between items matching equally well
SEARCH_KEYS = ("search_text", "branch", "path", "title", "identifier_label", "url")


def is_subsequence(needle: str, haystack: str) -> bool:
    """Check that needle's characters appear in haystack in order (case-insensitive)."""
    remaining = iter(haystack.casefold())
    return all(char in remaining for char in needle.casefold())


def _fields(item: object, keys: Sequence[str]) -> list[str]:
    return [value for value in (getattr(item, key, "") for key in keys) if value]


def score_item(terms: list[str], item: object, keys: Sequence[str] = SEARCH_KEYS) -> float | None:
    """Score an item against query terms.

    Every term must be a subsequence of at least one of the item's keys.

    Returns:
        Sum over terms of the best WRatio across matching keys,
        or None if some term doesn't match
    """
    fields = _fields(item, keys)
    total = 0.0
    for term in terms:
        candidates = [value for value in fields if is_subsequence(term, value)]
        if not candidates:
            return None
        total += max(fuzz.WRatio(term, value, processor=utils.default_process) for value in candidates)
    return total


def match(query: str, items: Sequence[T], keys: Sequence[str] = SEARCH_KEYS) -> list[T]:
    """Filter and rank items against a query.

    An empty or whitespace-only query returns the items in their original
    order without scoring. Otherwise only matching items are returned,
    best first; equal scores keep their original order.

    Args:
        query: Text typed by the user, split on whitespace into terms
        items: Items exposing the attributes named in keys
        keys: Attribute names to search

    Returns:
        Matching items, possibly empty
    """
    terms = query.split()
    if not terms:
        return list(items)

    scored = []
    for index, item in enumerate(items):
        score = score_item(terms, item, keys)
        if score is not None:
            scored.append((score, index, item))

    scored.sort(key=lambda entry: (-entry[0], entry[1]))
    return [item for _, _, item in scored]
