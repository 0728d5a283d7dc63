"""Levenshtein utilities for GeoMapAgent.

Edit-distance helpers used for boundary-code suggestions. No I/O or
external calls.
"""

from __future__ import annotations

from typing import Iterable, List, Tuple

from Levenshtein import distance as _lev_distance


def distance(s1: str, s2: str) -> int:
    """Compute the case-insensitive Levenshtein edit distance between two strings."""
    return int(_lev_distance(s1.lower(), s2.lower()))


def nearest(
    query: str,
    candidates: Iterable[str],
    max_distance: int = 2,
    limit: int = 3,
) -> List[str]:
    """Return the candidates within ``max_distance`` edits of ``query``, nearest first.

    Ties are broken alphabetically so suggestions are stable across runs.

    Args:
        query: String to match.
        candidates: Pool of strings to compare against.
        max_distance: Largest accepted edit distance (inclusive).
        limit: Maximum number of results.

    Returns:
        Up to ``limit`` candidates ordered by (distance, value).
    """
    scored: List[Tuple[int, str]] = []
    for candidate in candidates:
        d = distance(query, candidate)
        if d <= max_distance:
            scored.append((d, candidate))
    scored.sort()
    return [candidate for _, candidate in scored[:limit]]
