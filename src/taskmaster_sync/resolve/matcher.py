"""Fuzzy resolution of free-text queries to tracked items.

A query is either a number reference (``"12"``, ``"#12"``), which matches
only the item with that exact number, or free text scored against every
item title. Scoring applies the first rule that fires:

====================================  =============================
Rule                                  Score
====================================  =============================
normalized title equals query         1.0
title starts with query               0.95
title contains query                  0.7 + 0.2 * len(q) / len(t)
any shared words (Jaccard ``j``)      0.3 + 0.3 * j
otherwise                             0.5 * edit similarity
====================================  =============================

``resolve_item`` turns the ranked list into exactly one of ``Resolved``,
``NotFound`` or ``Ambiguous``. ``require_item`` raises instead.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Sequence, Union

from pydantic import BaseModel, Field

from taskmaster_sync.core.models import TrackedItem
from taskmaster_sync.errors import AmbiguousMatchError, ItemNotFoundError
from taskmaster_sync.resolve.similarity import (
    edit_similarity,
    normalize,
    token_overlap,
)

DEFAULT_MIN_SCORE = 0.3
SUGGESTION_MIN_SCORE = 0.1
MAX_SUGGESTIONS = 3
MAX_AMBIGUOUS_CANDIDATES = 3

_NUMBER_QUERY = re.compile(r"^#?(\d+)$")


class MatcherConfig(BaseModel):
    """Thresholds controlling match acceptance and ambiguity.

    Attributes:
        min_score: Candidates scoring below this are discarded.
        ambiguity_threshold: A top-two score gap below this is ambiguous...
        near_certainty: ...unless the top score reaches this value.
    """

    min_score: float = Field(default=DEFAULT_MIN_SCORE, ge=0.0, le=1.0)
    ambiguity_threshold: float = Field(default=0.1, ge=0.0, le=1.0)
    near_certainty: float = Field(default=0.9, ge=0.0, le=1.0)

    model_config = {"frozen": True}


@dataclass(frozen=True)
class MatchCandidate:
    """A scored item."""

    number: int
    title: str
    score: float
    item: TrackedItem

    def as_dict(self) -> dict:
        return {"number": self.number, "title": self.title, "score": self.score}


# ---------------------------------------------------------------------------
# Tagged resolution results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Resolved:
    candidate: MatchCandidate


@dataclass(frozen=True)
class NotFound:
    query: str
    suggestions: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class Ambiguous:
    query: str
    candidates: list[MatchCandidate] = field(default_factory=list)


Resolution = Union[Resolved, NotFound, Ambiguous]


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------


def score_match(title: str, query: str) -> float:
    """Score how well *query* describes *title*, in [0, 1]."""
    t, q = normalize(title), normalize(query)

    if t == q:
        return 1.0
    if t.startswith(q):
        return 0.95
    if q in t:
        return 0.7 + 0.2 * len(q) / len(t)

    overlap = token_overlap(t, q)
    if overlap > 0:
        return 0.3 + 0.3 * overlap

    return edit_similarity(t, q) * 0.5


def parse_number_query(query: str) -> int | None:
    """Return the number for ``"12"`` or ``"#12"``, else ``None``."""
    match = _NUMBER_QUERY.match(query.strip())
    return int(match.group(1)) if match else None


def find_matches(
    items: Sequence[TrackedItem],
    query: str,
    min_score: float = DEFAULT_MIN_SCORE,
) -> list[MatchCandidate]:
    """Score *items* against *query*, best first.

    Number queries return at most the single item with that number.
    Ties keep collection order.
    """
    number = parse_number_query(query)
    if number is not None:
        for item in items:
            if item.number == number:
                return [MatchCandidate(item.number, item.title, 1.0, item)]
        return []

    if not normalize(query):
        return []

    candidates = []
    for item in items:
        score = score_match(item.title, query)
        if score >= min_score:
            candidates.append(
                MatchCandidate(item.number, item.title, score, item)
            )
    # sorted() is stable, so equal scores keep collection order
    return sorted(candidates, key=lambda c: c.score, reverse=True)


def find_best_match(
    items: Sequence[TrackedItem],
    query: str,
    min_score: float = DEFAULT_MIN_SCORE,
) -> MatchCandidate | None:
    matches = find_matches(items, query, min_score)
    return matches[0] if matches else None


def get_suggestions(
    items: Sequence[TrackedItem],
    query: str,
    limit: int = MAX_SUGGESTIONS,
) -> list[str]:
    """Return up to *limit* ``"#N: title"`` hints for a failed lookup."""
    matches = find_matches(items, query, SUGGESTION_MIN_SCORE)
    return [f"#{m.number}: {m.title}" for m in matches[:limit]]


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


def resolve_item(
    items: Sequence[TrackedItem],
    query: str,
    config: MatcherConfig | None = None,
) -> Resolution:
    """Resolve *query* to exactly one item, or explain why not.

    Returns:
        ``Resolved`` for a clear winner, ``NotFound`` (with suggestions)
        when nothing clears ``min_score``, or ``Ambiguous`` (top
        candidates) when the two best scores are too close and the best
        is below ``near_certainty``.
    """
    config = config or MatcherConfig()
    matches = find_matches(items, query, config.min_score)

    if not matches:
        return NotFound(query, get_suggestions(items, query))

    if len(matches) > 1:
        top, second = matches[0].score, matches[1].score
        if top - second < config.ambiguity_threshold and top < config.near_certainty:
            return Ambiguous(query, matches[:MAX_AMBIGUOUS_CANDIDATES])

    return Resolved(matches[0])


def require_item(
    items: Sequence[TrackedItem],
    query: str,
    config: MatcherConfig | None = None,
) -> MatchCandidate:
    """Like ``resolve_item`` but raise on failure.

    Raises:
        ItemNotFoundError: Nothing matched.
        AmbiguousMatchError: Several items matched about equally well.
    """
    match resolve_item(items, query, config):
        case Resolved(candidate=candidate):
            return candidate
        case NotFound(query=q, suggestions=suggestions):
            raise ItemNotFoundError(q, suggestions)
        case Ambiguous(query=q, candidates=candidates):
            raise AmbiguousMatchError(q, [c.as_dict() for c in candidates])
