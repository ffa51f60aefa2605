"""Fuzzy name search scored by Levenshtein distance."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import TypeVar


def levenshtein(source: str, target: str) -> int:
    """Edit distance between *source* and *target* (single-row DP)."""
    distances = list(range(len(target) + 1))
    for row, source_char in enumerate(source, start=1):
        previous, distances[0] = distances[0], row
        for column, target_char in enumerate(target, start=1):
            current = distances[column]
            distances[column] = min(
                current + 1,
                distances[column - 1] + 1,
                previous + (source_char != target_char),
            )
            previous = current
    return distances[len(target)]


def score(candidate: str, query: str) -> float:
    """``1 - distance / longest length``; 1.0 is an exact match."""
    longest = max(len(candidate), len(query))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein(candidate, query) / longest


T = TypeVar("T")


def search(
    candidates: Iterable[T],
    query: str,
    *,
    key: Callable[[T], str] = str,
    threshold: float = 0.0,
) -> list[tuple[T, float]]:
    """Candidates scoring above *threshold*, best first.

    An empty query matches nothing.  Ties keep candidate order.
    """
    if not query:
        return []
    scored = [(candidate, score(key(candidate), query)) for candidate in candidates]
    matches = [(candidate, s) for candidate, s in scored if s > threshold]
    matches.sort(key=lambda pair: pair[1], reverse=True)
    return matches
