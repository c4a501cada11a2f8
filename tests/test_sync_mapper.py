"""Tests for sync/mapper.py -- task to issue translation.

Covers:
- priority labels (default and custom prefix)
- dependency resolution through the sync state
- issue body sections and footer
- filter_unsynced_tasks ordering
- initial status detection
"""

from taskmaster_sync.config_schema import StatusFieldMapping
from taskmaster_sync.sync.mapper import (
    determine_initial_status,
    filter_unsynced_tasks,
    format_issue_body,
    has_unresolved_dependencies,
    map_priority_to_label,
    map_task_to_issue,
    resolve_dependencies,
)
from taskmaster_sync.sync.models import LocalTask, SyncState, TaskMapping


def _task(task_id="1", **kwargs) -> LocalTask:
    data = {
        "id": task_id,
        "title": f"Task {task_id}",
        "description": "Do the thing",
        "priority": "high",
        "status": "pending",
    }
    data.update(kwargs)
    return LocalTask(**data)


def _state_with(**numbers: int) -> SyncState:
    return SyncState(
        task_mappings={
            task_id: TaskMapping(
                taskmaster_id=task_id,
                github_issue_number=number,
                github_issue_url=f"https://github.com/acme/roadmap/issues/{number}",
                synced_at="2025-01-01T00:00:00+00:00",
            )
            for task_id, number in numbers.items()
        }
    )


class TestPriorityLabel:
    def test_default_prefix(self):
        assert map_priority_to_label("high") == "priority:high"

    def test_custom_prefix(self):
        assert map_priority_to_label("low", "p/") == "p/low"


class TestResolveDependencies:
    def test_split_in_input_order(self):
        state = _state_with(**{"1": 10, "3": 30})
        resolved, unresolved = resolve_dependencies(["3", "2", "1"], state)
        assert resolved == [("3", 30), ("1", 10)]
        assert unresolved == ["2"]

    def test_without_state_everything_unresolved(self):
        assert resolve_dependencies(["1"], None) == ([], ["1"])


class TestFormatIssueBody:
    """Tests for format_issue_body()."""

    def test_minimal_body(self):
        body = format_issue_body(_task("7"), [], [])
        assert body.startswith("## Description\nDo the thing\n")
        assert "## Implementation Details" not in body
        assert "## Dependencies" not in body
        assert "## Test Strategy" not in body
        assert body.endswith("---\n*Synced from Taskmaster task #7*")

    def test_all_sections(self):
        task = _task(
            "2",
            details="Use the v2 API",
            testStrategy="Unit tests",
        )
        body = format_issue_body(task, [("1", 10)], ["5"])
        assert "## Implementation Details\nUse the v2 API" in body
        assert "- Depends on #10" in body
        assert "- Depends on Taskmaster task #5 (not yet synced)" in body
        assert "## Test Strategy\nUnit tests" in body
        assert body.index("## Dependencies") < body.index("## Test Strategy")

    def test_blank_details_omitted(self):
        body = format_issue_body(_task(details="   "), [], [])
        assert "## Implementation Details" not in body


class TestMapTaskToIssue:
    def test_payload(self):
        task = _task("2", dependencies=[1])
        mapped = map_task_to_issue(task, "acme", "roadmap", _state_with(**{"1": 10}))
        assert mapped.task_id == "2"
        assert mapped.issue_input.title == "Task 2"
        assert mapped.issue_input.labels == ["priority:high"]
        assert mapped.priority_label == "priority:high"
        assert mapped.resolved_dependencies == [("1", 10)]
        assert mapped.unresolved_dependencies == []
        assert "Depends on #10" in mapped.issue_input.body

    def test_custom_priority_prefix(self):
        mapped = map_task_to_issue(_task(), "acme", "roadmap", priority_prefix="P-")
        assert mapped.issue_input.labels == ["P-high"]


class TestFilterUnsynced:
    def test_preserves_order(self):
        tasks = [_task("3"), _task("1"), _task("2")]
        unsynced = filter_unsynced_tasks(tasks, _state_with(**{"1": 10}))
        assert [t.id for t in unsynced] == ["3", "2"]


class TestInitialStatus:
    def test_with_dependencies_is_backlog(self):
        mapping = StatusFieldMapping()
        assert determine_initial_status(_task(dependencies=["1"]), mapping) == "Backlog"

    def test_without_dependencies_is_ready(self):
        mapping = StatusFieldMapping(ready="Todo")
        assert determine_initial_status(_task(), mapping) == "Todo"

    def test_has_unresolved_dependencies(self):
        task = _task("3", dependencies=["1", "2"])
        assert has_unresolved_dependencies(task, _state_with(**{"1": 10}))
        assert not has_unresolved_dependencies(
            task, _state_with(**{"1": 10, "2": 20})
        )
