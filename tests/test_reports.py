"""Tests for the reports package -- board views and shipped items.

All dates are computed against a fixed "now": Wednesday 2025-03-12
15:00 UTC.
"""

from datetime import datetime, timezone

import pytest

from conftest import make_item
from taskmaster_sync.config_schema import StatusFieldMapping
from taskmaster_sync.reports.board import (
    block_reason,
    build_status_report,
    count_open,
    find_blocked_items,
    format_blocked_items,
    format_standup,
    format_status_report,
    is_blocked,
    standup_summary,
)
from taskmaster_sync.reports.shipped import (
    format_shipped_report,
    parse_time_query,
    shipped_items,
    time_range_for,
)

NOW = datetime(2025, 3, 12, 15, 0, tzinfo=timezone.utc)
MAPPING = StatusFieldMapping()


@pytest.fixture
def board():
    return [
        make_item(1, "API docs", status="In Progress"),
        make_item(2, "Login page", status="in progress"),
        make_item(3, "Billing", status="Blocked", labels=["blocked: vendor"]),
        make_item(4, "Search", status="Ready", labels=["blocked"]),
        make_item(5, "Onboarding", status="Backlog"),
        make_item(6, "CI", status="Done", closed_at="2025-03-10T09:00:00Z"),
        make_item(7, "Old release", status="Done", closed_at="2025-01-02T09:00:00Z"),
        make_item(8, "Moved but open", status="Done"),
        make_item(9, "Untriaged"),
    ]


# ---------------------------------------------------------------------------
# Board views
# ---------------------------------------------------------------------------


class TestBlocked:
    def test_reason_from_label(self):
        assert block_reason(make_item(1, "x", labels=["Blocked: design review"])) == "design review"

    def test_bare_label_has_no_reason(self):
        assert block_reason(make_item(1, "x", labels=["blocked"])) is None

    def test_blocked_by_status_or_label(self, board):
        assert [i.number for i in board if is_blocked(i, MAPPING)] == [3, 4]

    def test_find_and_format(self, board):
        blocked = find_blocked_items(board, MAPPING)
        assert format_blocked_items(blocked) == (
            "Blocked Items:\n"
            "- Billing (#3) - vendor\n"
            "- Search (#4)"
        )

    def test_nothing_blocked(self):
        assert format_blocked_items([]) == "Blocked Items:\nNo blocked items."


class TestStatusReport:
    def test_stage_order_and_counts(self, board):
        report = build_status_report(board, MAPPING, "Roadmap", now=NOW)

        assert [(c.name, c.count) for c in report.categories] == [
            ("In Progress", 2),
            ("Blocked", 1),
            ("Ready", 1),
            ("Backlog", 1),
            ("Done", 3),
            ("Done this week", 1),
        ]
        assert report.total_items == 9

    def test_notes_for_blocked_labels(self, board):
        report = build_status_report(board, MAPPING, now=NOW)
        blocked, ready = report.categories[1], report.categories[2]
        assert blocked.items[0].note == "waiting on vendor"
        assert ready.items[0].note == "blocked"

    def test_truncates_and_flags_more(self, board):
        report = build_status_report(board, MAPPING, max_items=1, now=NOW)
        in_progress = report.categories[0]
        assert [i.number for i in in_progress.items] == [1]
        assert in_progress.has_more is True

    def test_stage_filter(self, board):
        report = build_status_report(
            board, MAPPING, stages=["blocked"], include_done_this_week=False
        )
        assert [c.name for c in report.categories] == ["Blocked"]

    def test_format(self, board):
        report = build_status_report(
            board, MAPPING, "Roadmap", stages=["in_progress", "blocked"], now=NOW
        )
        assert format_status_report(report) == (
            "Roadmap Status:\n"
            "- In Progress (2): API docs (#1), Login page (#2)\n"
            "- Blocked (1): Billing (#3) - waiting on vendor\n"
            "- Done this week (1): CI (#6)"
        )

    def test_format_more_indicator(self, board):
        report = build_status_report(
            board, MAPPING, "Roadmap", max_items=1, stages=["in_progress"],
            include_done_this_week=False,
        )
        assert format_status_report(report).endswith("API docs (#1) ...")

    def test_empty_board(self):
        report = build_status_report([], MAPPING, "Roadmap", now=NOW)
        assert format_status_report(report) == (
            "Roadmap Status:\n- No items found in any status category"
        )


class TestStandupAndOpen:
    def test_standup_counts(self, board):
        summary = standup_summary(board, MAPPING, now=NOW)
        # done without a close time counts as done this week
        assert (summary.in_progress, summary.blocked, summary.done_this_week) == (2, 2, 2)

    def test_standup_format(self, board):
        text = format_standup(standup_summary(board, MAPPING, now=NOW), "Roadmap")
        assert text == (
            "Daily Standup Summary (Roadmap):\n"
            "2 in progress, 2 blocked, 2 done this week"
        )

    def test_open_count_includes_items_without_status(self, board):
        assert count_open(board, MAPPING) == 6

    def test_custom_mapping(self):
        mapping = StatusFieldMapping(done="Shipped")
        items = [make_item(1, "a", status="Shipped"), make_item(2, "b", status="Done")]
        assert count_open(items, mapping) == 1


# ---------------------------------------------------------------------------
# Time ranges and shipped items
# ---------------------------------------------------------------------------


class TestTimeRange:
    @pytest.mark.parametrize(
        "preset,start,description",
        [
            ("today", datetime(2025, 3, 12, tzinfo=timezone.utc), "today"),
            ("this_week", datetime(2025, 3, 10, tzinfo=timezone.utc), "this week"),
            ("last_7_days", datetime(2025, 3, 6, tzinfo=timezone.utc), "last 7 days"),
            ("last_30_days", datetime(2025, 2, 11, tzinfo=timezone.utc), "last 30 days"),
            ("this_month", datetime(2025, 3, 1, tzinfo=timezone.utc), "this month"),
        ],
    )
    def test_presets_end_today(self, preset, start, description):
        time_range = time_range_for(preset, NOW)
        assert time_range.start == start
        assert time_range.end.date() == NOW.date()
        assert time_range.end.hour == 23
        assert time_range.description == description

    def test_last_month_is_whole_previous_month(self):
        time_range = time_range_for("last_month", NOW)
        assert time_range.start == datetime(2025, 2, 1, tzinfo=timezone.utc)
        assert time_range.end.date() == datetime(2025, 2, 28).date()
        assert time_range.contains(datetime(2025, 2, 28, 23, 59, tzinfo=timezone.utc))
        assert not time_range.contains(datetime(2025, 3, 1, tzinfo=timezone.utc))

    def test_last_month_across_year_boundary(self):
        january = datetime(2025, 1, 15, tzinfo=timezone.utc)
        assert time_range_for("last_month", january).start == datetime(
            2024, 12, 1, tzinfo=timezone.utc
        )

    def test_sunday_belongs_to_the_week_started_monday(self):
        sunday = datetime(2025, 3, 16, 12, 0, tzinfo=timezone.utc)
        assert time_range_for("this_week", sunday).start.day == 10

    def test_unknown_preset(self):
        with pytest.raises(ValueError, match="this_week"):
            time_range_for("fortnight", NOW)


class TestParseTimeQuery:
    @pytest.mark.parametrize(
        "text,preset,confidence",
        [
            ("What did I ship today?", "today", 0.95),
            ("what did I complete this week", "this_week", 0.95),
            ("show me what was shipped this month", "this_month", 0.95),
            ("last month's completions", "last_month", 0.95),
            ("what have I done in the past 7 days", "last_7_days", 0.9),
            ("anything from last week?", "last_7_days", 0.9),
            ("what closed in the past month", "last_30_days", 0.9),
            ("what did I ship?", "this_week", 0.7),
        ],
    )
    def test_presets(self, text, preset, confidence):
        parsed = parse_time_query(text)
        assert (parsed.preset, parsed.confidence) == (preset, confidence)

    def test_no_time_reference(self):
        parsed = parse_time_query("move login to done")
        assert parsed.preset is None
        assert parsed.confidence == 0.0


class TestShipped:
    def test_done_and_closed_in_range_newest_first(self):
        items = [
            make_item(1, "CI", status="Done", closed_at="2025-03-10T09:00:00Z"),
            make_item(2, "Docs", status="done", closed_at="2025-03-11T18:30:00Z"),
            make_item(3, "Old", status="Done", closed_at="2025-03-02T09:00:00Z"),
            make_item(4, "Closed not done", status="In Progress", closed_at="2025-03-11T09:00:00Z"),
            make_item(5, "Done not closed", status="Done"),
        ]

        report = shipped_items(items, time_range_for("this_week", NOW), MAPPING)

        assert [(i.number, i.closed_day) for i in report.items] == [(2, "Tue"), (1, "Mon")]

    def test_format(self):
        items = [make_item(1, "CI", status="Done", closed_at="2025-03-10T09:00:00Z")]
        report = shipped_items(items, time_range_for("this_week", NOW), MAPPING)
        assert format_shipped_report(report) == (
            "What you shipped this week:\n"
            "- CI (#1) - closed Mon\n"
            "Total: 1 item shipped"
        )

    def test_format_nothing_shipped(self):
        report = shipped_items([], time_range_for("today", NOW), MAPPING)
        assert format_shipped_report(report) == "What you shipped today:\nNo items shipped."
