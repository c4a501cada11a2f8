"""String similarity primitives used by the item matcher.

All comparisons work on normalized text: lowercase, trimmed, and with
whitespace runs collapsed to a single space.
"""

from __future__ import annotations

import re

_WHITESPACE = re.compile(r"\s+")


def normalize(text: str) -> str:
    return _WHITESPACE.sub(" ", text.strip().lower())


def edit_distance(a: str, b: str) -> int:
    """Levenshtein distance between *a* and *b* (raw, not normalized)."""
    if not a:
        return len(b)
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            if ca == cb:
                current.append(previous[j - 1])
            else:
                current.append(
                    1 + min(previous[j - 1], previous[j], current[j - 1])
                )
        previous = current
    return previous[-1]


def edit_similarity(a: str, b: str) -> float:
    """Similarity in [0, 1] derived from the edit distance.

    Identical strings (after normalization) score 1.0.
    """
    na, nb = normalize(a), normalize(b)
    if na == nb:
        return 1.0
    return 1.0 - edit_distance(na, nb) / max(len(na), len(nb), 1)


def token_set(text: str) -> set[str]:
    normalized = normalize(text)
    return set(normalized.split(" ")) if normalized else set()


def token_overlap(a: str, b: str) -> float:
    """Jaccard overlap of the word sets of *a* and *b*.

    Returns 0.0 when both sets are empty.
    """
    ta, tb = token_set(a), token_set(b)
    union = ta | tb
    if not union:
        return 0.0
    return len(ta & tb) / len(union)
