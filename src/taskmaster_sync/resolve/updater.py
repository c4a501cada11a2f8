"""Natural-language status updates for project items.

Supports requests such as::

    move API docs to done
    set PDF extraction as blocked - waiting on design review
    mark #12 as in progress
    login page done
"""

from __future__ import annotations

import logging
import re

from pydantic import BaseModel

from taskmaster_sync.core.tracker import TrackerClient
from taskmaster_sync.errors import RequestParseError
from taskmaster_sync.resolve.matcher import MatcherConfig, require_item
from taskmaster_sync.resolve.status import (
    StatusAliasTable,
    is_blocked_status,
    resolve_status,
)

logger = logging.getLogger(__name__)

_VERB = r"(?:(?:move|set|mark|change)\s+)?"

_BLOCKED_WITH_REASON = re.compile(
    rf"^{_VERB}(.+?)\s+(?:(?:to|as|is)\s+)?blocked\s*[-:]\s*(.+)$",
    re.IGNORECASE,
)
_STANDARD = re.compile(
    rf"^{_VERB}(.+?)\s+(?:to|as|is)\s+(.+)$",
    re.IGNORECASE,
)
_SIMPLE = re.compile(
    r"^(.+?)\s+(done|todo|in\s*progress|completed?|blocked|backlog)$",
    re.IGNORECASE,
)


class StatusUpdateRequest(BaseModel):
    """A parsed update request.

    Attributes:
        query: Item reference (title fragment or ``#number``).
        target_status: Requested status, lowercase.
        blocked_reason: Free-text reason given after ``blocked -``.
        is_blocked: Whether the target is a blocked-like status.
    """

    query: str
    target_status: str
    blocked_reason: str | None = None
    is_blocked: bool = False

    model_config = {"frozen": True}


class StatusUpdateResult(BaseModel):
    """Outcome of a successful status update."""

    item_id: str
    number: int
    title: str
    previous_status: str | None = None
    new_status: str
    match_score: float
    message: str | None = None

    model_config = {"frozen": True}


def parse_update_request(text: str) -> StatusUpdateRequest:
    """Parse a natural-language update request.

    Raises:
        RequestParseError: If *text* matches none of the supported forms.
    """
    stripped = text.strip()

    match = _BLOCKED_WITH_REASON.match(stripped)
    if match:
        return StatusUpdateRequest(
            query=match.group(1).strip(),
            target_status="blocked",
            blocked_reason=match.group(2).strip(),
            is_blocked=True,
        )

    match = _STANDARD.match(stripped) or _SIMPLE.match(stripped)
    if match:
        target = " ".join(match.group(2).lower().split())
        return StatusUpdateRequest(
            query=match.group(1).strip(),
            target_status=target,
            is_blocked=is_blocked_status(target),
        )

    raise RequestParseError(text)


class StatusUpdater:
    """Move project items between statuses by fuzzy item reference.

    Args:
        client: Tracker used to read the project and update the item.
        aliases: Status alias table; a fresh default table when omitted.
        matcher_config: Item matching thresholds.
    """

    def __init__(
        self,
        client: TrackerClient,
        aliases: StatusAliasTable | None = None,
        matcher_config: MatcherConfig | None = None,
    ) -> None:
        self.client = client
        self.aliases = aliases if aliases is not None else StatusAliasTable()
        self.matcher_config = matcher_config or MatcherConfig()

    def update_status(
        self, request: StatusUpdateRequest, project_id: str
    ) -> StatusUpdateResult:
        """Apply *request* to the matching item of *project_id*.

        The item is resolved before the status, so an unknown item is
        reported even when the status is also invalid.

        Raises:
            ItemNotFoundError: No item matched the query.
            AmbiguousMatchError: Several items matched about equally.
            InvalidStatusError: The status is not a project option.
            TrackerError: The GitHub call failed.
        """
        project = self.client.get_project(project_id)
        items = [
            i
            for i in self.client.list_project_items(project.project_id)
            if i.item_id
        ]

        candidate = require_item(items, request.query, self.matcher_config)
        status, option_id = resolve_status(
            request.target_status, project.status_options, self.aliases
        )

        self.client.set_item_field(
            project.project_id,
            candidate.item.item_id,
            project.status_field_id,
            option_id,
        )
        logger.info(
            "Moved #%d %r from %s to %s",
            candidate.number,
            candidate.title,
            candidate.item.status or "(none)",
            status,
        )

        message = None
        if request.is_blocked and request.blocked_reason:
            message = f"Blocked: {request.blocked_reason}"

        return StatusUpdateResult(
            item_id=candidate.item.item_id,
            number=candidate.number,
            title=candidate.title,
            previous_status=candidate.item.status,
            new_status=status,
            match_score=candidate.score,
            message=message,
        )

    def process_update(self, text: str, project_id: str) -> StatusUpdateResult:
        """Parse *text* and apply it."""
        return self.update_status(parse_update_request(text), project_id)
