"""Fuzzy resolution of item references and status names."""

from taskmaster_sync.resolve.links import (
    LinkRequest,
    LinkResult,
    LinkService,
    LinkSuggestion,
    parse_link_request,
)
from taskmaster_sync.resolve.matcher import (
    DEFAULT_MIN_SCORE,
    Ambiguous,
    MatchCandidate,
    MatcherConfig,
    NotFound,
    Resolved,
    find_best_match,
    find_matches,
    get_suggestions,
    parse_number_query,
    require_item,
    resolve_item,
    score_match,
)
from taskmaster_sync.resolve.notes import NoteResult, NoteService, parse_note_request
from taskmaster_sync.resolve.status import (
    DEFAULT_STATUS_ALIASES,
    StatusAliasTable,
    resolve_status,
)
from taskmaster_sync.resolve.updater import (
    StatusUpdater,
    StatusUpdateRequest,
    StatusUpdateResult,
    parse_update_request,
)

__all__ = [
    "DEFAULT_MIN_SCORE",
    "DEFAULT_STATUS_ALIASES",
    "Ambiguous",
    "LinkRequest",
    "LinkResult",
    "LinkService",
    "LinkSuggestion",
    "MatchCandidate",
    "MatcherConfig",
    "NoteResult",
    "NoteService",
    "NotFound",
    "Resolved",
    "StatusAliasTable",
    "StatusUpdateRequest",
    "StatusUpdateResult",
    "StatusUpdater",
    "find_best_match",
    "find_matches",
    "get_suggestions",
    "parse_link_request",
    "parse_note_request",
    "parse_number_query",
    "parse_update_request",
    "require_item",
    "resolve_item",
    "resolve_status",
    "score_match",
]
