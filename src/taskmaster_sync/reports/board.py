"""Status, blocked, standup and open-count views over project items.

Every function here is pure: callers fetch ``TrackedItem`` lists from the
tracker and pass the ``StatusFieldMapping`` naming the project's workflow
columns. Status names compare case-insensitively.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Sequence

from pydantic import BaseModel

from taskmaster_sync.config_schema import StatusFieldMapping
from taskmaster_sync.core.models import TrackedItem

DEFAULT_MAX_ITEMS = 5
DONE_WINDOW_DAYS = 7
DONE_THIS_WEEK = "Done this week"

# display order of the workflow stages
STAGE_ORDER = ("in_progress", "blocked", "ready", "backlog", "done")

_BLOCKED_PREFIX = re.compile(r"^blocked:?\s*", re.I)


class ReportItem(BaseModel):
    """One item line of a report."""

    number: int
    title: str
    url: str | None = None
    note: str | None = None

    model_config = {"frozen": True}


class StatusCategory(BaseModel):
    """Items of one status, truncated to the report's item limit."""

    name: str
    count: int
    items: list[ReportItem]
    has_more: bool = False

    model_config = {"frozen": True}


class StatusReport(BaseModel):
    project_title: str
    total_items: int
    categories: list[StatusCategory]

    model_config = {"frozen": True}


class StandupSummary(BaseModel):
    in_progress: int
    blocked: int
    done_this_week: int

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Item predicates
# ---------------------------------------------------------------------------


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO 8601 timestamp from GitHub into an aware datetime."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def has_status(item: TrackedItem, name: str) -> bool:
    return item.status is not None and item.status.lower() == name.lower()


def blocked_label(item: TrackedItem) -> str | None:
    """Return the first label starting with "blocked", if any."""
    return next(
        (label for label in item.labels if label.lower().startswith("blocked")),
        None,
    )


def block_reason(item: TrackedItem) -> str | None:
    """The reason carried by a ``blocked: <reason>`` label, if any."""
    label = blocked_label(item)
    if label is None:
        return None
    return _BLOCKED_PREFIX.sub("", label).strip() or None


def is_blocked(item: TrackedItem, mapping: StatusFieldMapping) -> bool:
    """Blocked by status or by a "blocked" label."""
    return has_status(item, mapping.blocked) or blocked_label(item) is not None


def closed_within(
    item: TrackedItem, days: int, now: datetime | None = None
) -> bool:
    closed = parse_timestamp(item.closed_at)
    if closed is None:
        return False
    now = now or datetime.now(timezone.utc)
    return closed >= now - timedelta(days=days)


def _report_item(item: TrackedItem) -> ReportItem:
    note = None
    if blocked_label(item) is not None:
        reason = block_reason(item)
        note = f"waiting on {reason}" if reason else "blocked"
    return ReportItem(number=item.number, title=item.title, url=item.url, note=note)


def _category(
    name: str, items: list[TrackedItem], max_items: int
) -> StatusCategory:
    return StatusCategory(
        name=name,
        count=len(items),
        items=[_report_item(i) for i in items[:max_items]],
        has_more=len(items) > max_items,
    )


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


def build_status_report(
    items: Sequence[TrackedItem],
    mapping: StatusFieldMapping,
    project_title: str = "",
    max_items: int = DEFAULT_MAX_ITEMS,
    stages: Sequence[str] | None = None,
    include_done_this_week: bool = True,
    now: datetime | None = None,
) -> StatusReport:
    """Group *items* by workflow stage in ``STAGE_ORDER``.

    Args:
        stages: Restrict the report to these stage keys (``"blocked"``,
            ``"done"``...). All stages by default.
        include_done_this_week: Append a "Done this week" category of done
            items closed in the last seven days, when there are any.
    """
    categories: list[StatusCategory] = []
    for stage in STAGE_ORDER:
        if stages is not None and stage not in stages:
            continue
        name = getattr(mapping, stage)
        in_stage = [i for i in items if has_status(i, name)]
        categories.append(_category(name, in_stage, max_items))

    if include_done_this_week:
        recent = [
            i
            for i in items
            if has_status(i, mapping.done) and closed_within(i, DONE_WINDOW_DAYS, now)
        ]
        if recent:
            categories.append(_category(DONE_THIS_WEEK, recent, max_items))

    return StatusReport(
        project_title=project_title,
        total_items=len(items),
        categories=categories,
    )


def format_status_report(report: StatusReport) -> str:
    """Render one line per non-empty category."""
    lines = [f"{report.project_title or 'Project'} Status:"]
    for category in report.categories:
        if category.count == 0:
            continue
        entries = []
        for item in category.items:
            entry = f"{item.title} (#{item.number})"
            if item.note:
                entry += f" - {item.note}"
            entries.append(entry)
        more = " ..." if category.has_more else ""
        lines.append(
            f"- {category.name} ({category.count}): {', '.join(entries)}{more}"
        )
    if len(lines) == 1:
        lines.append("- No items found in any status category")
    return "\n".join(lines)


def find_blocked_items(
    items: Sequence[TrackedItem], mapping: StatusFieldMapping
) -> list[ReportItem]:
    """Items blocked by status or label, with the label's reason as note."""
    return [
        ReportItem(number=i.number, title=i.title, url=i.url, note=block_reason(i))
        for i in items
        if is_blocked(i, mapping)
    ]


def format_blocked_items(blocked: Sequence[ReportItem]) -> str:
    if not blocked:
        return "Blocked Items:\nNo blocked items."
    lines = ["Blocked Items:"]
    for item in blocked:
        reason = f" - {item.note}" if item.note else ""
        lines.append(f"- {item.title} (#{item.number}){reason}")
    return "\n".join(lines)


def standup_summary(
    items: Sequence[TrackedItem],
    mapping: StatusFieldMapping,
    now: datetime | None = None,
) -> StandupSummary:
    """Count in-progress, blocked and recently done items.

    A done item without a close time counts as done this week: some
    workflows move items to Done before closing the issue.
    """
    done_this_week = 0
    for item in items:
        if not has_status(item, mapping.done):
            continue
        if item.closed_at is None or closed_within(item, DONE_WINDOW_DAYS, now):
            done_this_week += 1

    return StandupSummary(
        in_progress=sum(1 for i in items if has_status(i, mapping.in_progress)),
        blocked=sum(1 for i in items if is_blocked(i, mapping)),
        done_this_week=done_this_week,
    )


def format_standup(summary: StandupSummary, project_title: str = "") -> str:
    return (
        f"Daily Standup Summary ({project_title or 'project'}):\n"
        f"{summary.in_progress} in progress, {summary.blocked} blocked, "
        f"{summary.done_this_week} done this week"
    )


def count_open(items: Sequence[TrackedItem], mapping: StatusFieldMapping) -> int:
    """Items not in the done stage. Items without a status are open."""
    return sum(1 for i in items if not has_status(i, mapping.done))
