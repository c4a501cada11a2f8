"""What was shipped in a time range.

An item is shipped when it sits in the done stage and its close time
falls in the range. Ranges come from named presets or from free-text
questions such as "what did I ship this week?".
"""

from __future__ import annotations

import re
from datetime import datetime, time, timedelta, timezone
from typing import Sequence

from pydantic import BaseModel

from taskmaster_sync.config_schema import StatusFieldMapping
from taskmaster_sync.core.models import TrackedItem
from taskmaster_sync.reports.board import has_status, parse_timestamp

TIME_PRESETS: tuple[str, ...] = (
    "today",
    "this_week",
    "last_7_days",
    "last_30_days",
    "this_month",
    "last_month",
)

DAY_NAMES = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")

_VERB = r"(?:ship|complete|finish|close|do)"
_DONE = r"(?:shipped|completed|done|closed)"
_NOUN = r"(?:completions?|shipped|done|completed)"


def _period_patterns(period: str) -> list[re.Pattern[str]]:
    return [
        re.compile(rf"what did i {_VERB} {period}", re.I),
        re.compile(rf"{period}'?s? {_NOUN}", re.I),
        re.compile(rf"show (?:me )?(?:what was )?{_DONE} {period}", re.I),
        re.compile(rf"completions? (?:from )?{period}", re.I),
    ]


# (preset, confidence, patterns), checked in order
_QUERY_TABLE: list[tuple[str, float, list[re.Pattern[str]]]] = [
    ("today", 0.95, _period_patterns("today")),
    (
        "this_week",
        0.95,
        _period_patterns("this week")
        + [re.compile(r"what have i (?:shipped|completed|done) this week", re.I)],
    ),
    (
        "last_7_days",
        0.9,
        [
            re.compile(r"(?:last|past) (?:7|seven) days?", re.I),
            re.compile(r"last week", re.I),
            re.compile(r"recent (?:completions?|shipped|done)", re.I),
            re.compile(r"recently (?:completed|shipped|done|closed)", re.I),
        ],
    ),
    ("this_month", 0.95, _period_patterns("this month")),
    ("last_month", 0.95, _period_patterns("last month")),
    (
        "last_30_days",
        0.9,
        [
            re.compile(r"(?:last|past) (?:30|thirty) days?", re.I),
            re.compile(r"(?:last|past) month(?!'s)", re.I),
        ],
    ),
    (
        "this_week",
        0.7,
        [
            re.compile(rf"what did i {_VERB}\??$", re.I),
            re.compile(r"what have i (?:shipped|completed|done)\??$", re.I),
            re.compile(r"show (?:me )?(?:my )?(?:completions?|shipped)", re.I),
        ],
    ),
]


class TimeRange(BaseModel):
    """An inclusive time range with a human description."""

    start: datetime
    end: datetime
    description: str

    model_config = {"frozen": True}

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end


class ParsedTimeQuery(BaseModel):
    preset: str | None
    confidence: float

    model_config = {"frozen": True}


class ShippedItem(BaseModel):
    number: int
    title: str
    url: str | None = None
    closed_at: datetime
    closed_day: str

    model_config = {"frozen": True}


class ShippedReport(BaseModel):
    time_range: TimeRange
    items: list[ShippedItem]

    model_config = {"frozen": True}


def time_range_for(preset: str, now: datetime | None = None) -> TimeRange:
    """Resolve a preset against *now* (UTC by default).

    Ranges start at midnight and end at the last instant of today, except
    ``last_month`` which covers the whole previous calendar month.

    Raises:
        ValueError: Unknown preset.
    """
    now = now or datetime.now(timezone.utc)
    tz = now.tzinfo or timezone.utc
    today = datetime.combine(now.date(), time.min, tzinfo=tz)
    end_of_today = datetime.combine(now.date(), time.max, tzinfo=tz)

    match preset:
        case "today":
            return TimeRange(start=today, end=end_of_today, description="today")
        case "this_week":
            start = today - timedelta(days=today.weekday())
            return TimeRange(start=start, end=end_of_today, description="this week")
        case "last_7_days":
            return TimeRange(
                start=today - timedelta(days=6),
                end=end_of_today,
                description="last 7 days",
            )
        case "last_30_days":
            return TimeRange(
                start=today - timedelta(days=29),
                end=end_of_today,
                description="last 30 days",
            )
        case "this_month":
            return TimeRange(
                start=today.replace(day=1), end=end_of_today, description="this month"
            )
        case "last_month":
            first_of_month = today.replace(day=1)
            start = (first_of_month - timedelta(days=1)).replace(day=1)
            return TimeRange(
                start=start,
                end=first_of_month - timedelta(microseconds=1),
                description="last month",
            )
    raise ValueError(
        f'Unknown time range "{preset}". Expected one of: {", ".join(TIME_PRESETS)}'
    )


def parse_time_query(text: str) -> ParsedTimeQuery:
    """Pick a preset for a question like "what did I ship last month?".

    Returns a ``None`` preset with confidence 0 when nothing matched.
    """
    for preset, confidence, patterns in _QUERY_TABLE:
        if any(p.search(text) for p in patterns):
            return ParsedTimeQuery(preset=preset, confidence=confidence)
    return ParsedTimeQuery(preset=None, confidence=0.0)


def shipped_items(
    items: Sequence[TrackedItem],
    time_range: TimeRange,
    mapping: StatusFieldMapping,
) -> ShippedReport:
    """Done items closed inside *time_range*, most recently closed first."""
    shipped: list[ShippedItem] = []
    for item in items:
        if not has_status(item, mapping.done):
            continue
        closed = parse_timestamp(item.closed_at)
        if closed is None or not time_range.contains(closed):
            continue
        local = closed.astimezone(time_range.start.tzinfo)
        shipped.append(
            ShippedItem(
                number=item.number,
                title=item.title,
                url=item.url,
                closed_at=closed,
                closed_day=DAY_NAMES[local.weekday()],
            )
        )
    shipped.sort(key=lambda s: s.closed_at, reverse=True)
    return ShippedReport(time_range=time_range, items=shipped)


def format_shipped_report(report: ShippedReport) -> str:
    header = f"What you shipped {report.time_range.description}:"
    if not report.items:
        return f"{header}\nNo items shipped."
    lines = [header]
    for item in report.items:
        lines.append(f"- {item.title} (#{item.number}) - closed {item.closed_day}")
    count = len(report.items)
    lines.append(f"Total: {count} item{'' if count == 1 else 's'} shipped")
    return "\n".join(lines)
