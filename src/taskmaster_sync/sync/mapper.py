"""Map Taskmaster tasks to GitHub issue payloads.

Field mapping:

- ``title`` -> issue title
- ``description`` / ``details`` -> issue body sections
- ``priority`` -> ``priority:<level>`` label
- ``dependencies`` -> "Depends on #N" lines, resolved through the sync state
- ``test_strategy`` -> "Test Strategy" body section

Every body ends with a footer naming the source task so issues can be
traced back to ``tasks.json``.
"""

from __future__ import annotations

from taskmaster_sync.config_schema import StatusFieldMapping
from taskmaster_sync.core.models import IssueInput
from taskmaster_sync.sync.models import (
    LocalTask,
    MappedIssue,
    Priority,
    SyncState,
)


def map_priority_to_label(
    priority: Priority, prefix: str = "priority:"
) -> str:
    return f"{prefix}{priority}"


def resolve_dependencies(
    dependencies: list[str], state: SyncState | None
) -> tuple[list[tuple[str, int]], list[str]]:
    """Split dependency ids into those with issues and those without.

    Returns:
        ``(resolved, unresolved)`` where *resolved* holds
        ``(task_id, issue_number)`` pairs, both in input order.
    """
    resolved: list[tuple[str, int]] = []
    unresolved: list[str] = []
    mappings = state.task_mappings if state is not None else {}
    for task_id in dependencies:
        mapping = mappings.get(task_id)
        if mapping is not None:
            resolved.append((task_id, mapping.github_issue_number))
        else:
            unresolved.append(task_id)
    return resolved, unresolved


def format_issue_body(
    task: LocalTask,
    resolved: list[tuple[str, int]],
    unresolved: list[str],
) -> str:
    """Render the Markdown issue body for *task*.

    Layout::

        ## Description
        <description>

        ## Implementation Details      (only when details are set)
        ## Dependencies                (only when the task has any)
        ## Test Strategy               (only when set)

        ---
        *Synced from Taskmaster task #<id>*
    """
    lines = ["## Description", task.description, ""]

    if task.details and task.details.strip():
        lines += ["## Implementation Details", task.details, ""]

    if resolved or unresolved:
        lines.append("## Dependencies")
        for _, issue_number in resolved:
            lines.append(f"- Depends on #{issue_number}")
        for task_id in unresolved:
            lines.append(
                f"- Depends on Taskmaster task #{task_id} (not yet synced)"
            )
        lines.append("")

    if task.test_strategy and task.test_strategy.strip():
        lines += ["## Test Strategy", task.test_strategy, ""]

    lines += ["---", f"*Synced from Taskmaster task #{task.id}*"]
    return "\n".join(lines)


def map_task_to_issue(
    task: LocalTask,
    owner: str,
    repo: str,
    state: SyncState | None = None,
    priority_prefix: str = "priority:",
) -> MappedIssue:
    """Translate *task* into an issue payload for ``owner/repo``.

    *owner* and *repo* are the target repository; the payload itself only
    carries issue fields.
    """
    resolved, unresolved = resolve_dependencies(task.dependencies, state)
    priority_label = map_priority_to_label(task.priority, priority_prefix)
    return MappedIssue(
        task_id=task.id,
        issue_input=IssueInput(
            title=task.title,
            body=format_issue_body(task, resolved, unresolved),
            labels=[priority_label],
        ),
        priority_label=priority_label,
        resolved_dependencies=resolved,
        unresolved_dependencies=unresolved,
    )


def filter_unsynced_tasks(
    tasks: list[LocalTask], state: SyncState
) -> list[LocalTask]:
    """Return the tasks without a mapping, preserving order."""
    return [t for t in tasks if t.id not in state.task_mappings]


# ---------------------------------------------------------------------------
# Project board status
# ---------------------------------------------------------------------------


def determine_initial_status(
    task: LocalTask, status_mapping: StatusFieldMapping
) -> str:
    """Tasks with any dependencies start in Backlog, the rest in Ready."""
    if task.dependencies:
        return status_mapping.backlog
    return status_mapping.ready


def has_unresolved_dependencies(task: LocalTask, state: SyncState) -> bool:
    return any(dep not in state.task_mappings for dep in task.dependencies)
