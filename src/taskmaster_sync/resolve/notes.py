"""Add notes (issue comments) by fuzzy issue reference."""

from __future__ import annotations

import logging
import re

from pydantic import BaseModel

from taskmaster_sync.core.models import CommentRef, TrackedItem
from taskmaster_sync.core.tracker import TrackerClient
from taskmaster_sync.resolve.matcher import MatcherConfig, require_item

logger = logging.getLogger(__name__)

_NOTE_PATTERNS = [
    re.compile(r"^(?:add\s+)?note\s+(?:to|on)\s+(.+?):\s*(.+)$", re.I | re.S),
    re.compile(r"^comment\s+(?:to|on)\s+(.+?):\s*(.+)$", re.I | re.S),
    re.compile(r"^reply\s+(?:to|on)\s+(.+?):\s*(.+)$", re.I | re.S),
    re.compile(r"^(.+?):\s*(.+)$", re.S),
]


class NoteResult(BaseModel):
    """A note posted on an issue."""

    issue_number: int
    issue_title: str
    match_score: float
    comment: CommentRef
    message: str

    model_config = {"frozen": True}


def parse_note_request(text: str) -> tuple[str, str] | None:
    """Split ``"note on <query>: <note>"`` style input.

    Returns:
        ``(query, note)``, or ``None`` if *text* has no ``query: note`` shape.
    """
    stripped = text.strip()
    for pattern in _NOTE_PATTERNS:
        match = pattern.match(stripped)
        if match:
            query, note = match.group(1).strip(), match.group(2).strip()
            if query and note:
                return query, note
    return None


class NoteService:
    """Resolve an issue by reference and comment on it."""

    def __init__(
        self,
        client: TrackerClient,
        matcher_config: MatcherConfig | None = None,
    ) -> None:
        self.client = client
        self.matcher_config = matcher_config or MatcherConfig()

    def add_note(
        self, owner: str, repo: str, query: str, note: str
    ) -> NoteResult:
        """Post *note* on the open issue of ``owner/repo`` matching *query*.

        Raises:
            ValueError: If *note* is blank.
            ItemNotFoundError: No issue matched.
            AmbiguousMatchError: Several issues matched about equally.
            TrackerError: The GitHub call failed.
        """
        if not note.strip():
            raise ValueError("Note cannot be empty")

        issues = self.client.list_repo_issues(owner, repo)
        return self._comment(owner, repo, issues, query, note)

    def add_note_to_project_item(
        self, project_id: str, owner: str, repo: str, query: str, note: str
    ) -> NoteResult:
        """Post *note* on the project item matching *query*.

        Unlike ``add_note`` the candidates are the project's items, so
        closed issues on the board can be annotated too.
        """
        if not note.strip():
            raise ValueError("Note cannot be empty")

        items = self.client.list_project_items(project_id)
        return self._comment(owner, repo, items, query, note)

    def _comment(
        self,
        owner: str,
        repo: str,
        items: list[TrackedItem],
        query: str,
        note: str,
    ) -> NoteResult:
        candidate = require_item(items, query, self.matcher_config)
        comment = self.client.add_comment(owner, repo, candidate.number, note)
        logger.info("Added note to #%d in %s/%s", candidate.number, owner, repo)

        return NoteResult(
            issue_number=candidate.number,
            issue_title=candidate.title,
            match_score=candidate.score,
            comment=comment,
            message=f"Added note to #{candidate.number}: {candidate.title}",
        )
