"""Read-only reports over a project's items.

Modules:

- ``board``   -- status report, blocked items, standup summary, open count.
- ``shipped`` -- time range presets and items shipped within a range.
"""

from .board import (
    ReportItem,
    StandupSummary,
    StatusCategory,
    StatusReport,
    build_status_report,
    count_open,
    find_blocked_items,
    format_blocked_items,
    format_standup,
    format_status_report,
    standup_summary,
)
from .shipped import (
    TIME_PRESETS,
    ShippedItem,
    ShippedReport,
    TimeRange,
    format_shipped_report,
    parse_time_query,
    shipped_items,
    time_range_for,
)

__all__ = [
    "TIME_PRESETS",
    "ReportItem",
    "ShippedItem",
    "ShippedReport",
    "StandupSummary",
    "StatusCategory",
    "StatusReport",
    "TimeRange",
    "build_status_report",
    "count_open",
    "find_blocked_items",
    "format_blocked_items",
    "format_shipped_report",
    "format_standup",
    "format_status_report",
    "parse_time_query",
    "shipped_items",
    "standup_summary",
    "time_range_for",
]
