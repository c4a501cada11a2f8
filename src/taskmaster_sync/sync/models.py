"""Pydantic models for the task sync engine.

Defines the data contracts used across the sync modules:

- ``LocalTask`` / ``TasksFile``: the Taskmaster ``tasks.json`` document.
- ``TaskMapping`` / ``SyncState``: the persisted task -> issue ledger.
- ``MappedIssue``: a task translated into an issue payload.
- ``TaskSyncResult`` / ``SyncSummary``: outcome of a sync run.
- ``CleanupResult``, ``IntegrityReport``, ``IdempotencyReport``: state
  maintenance reports.
- ``SyncOptions``: settings for one ``SyncEngine`` run.

All models are frozen (immutable) for safety. State changes go through the
pure functions in ``taskmaster_sync.sync.state``, which return new values.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from taskmaster_sync.config import DEFAULT_STATE_PATH, DEFAULT_TASKS_PATH
from taskmaster_sync.config_schema import StatusFieldMapping
from taskmaster_sync.core.models import IssueInput

STATE_VERSION = "1.0.0"

Priority = Literal["high", "medium", "low"]
TaskStatus = Literal["pending", "in-progress", "done", "blocked"]


# ---------------------------------------------------------------------------
# Local tasks
# ---------------------------------------------------------------------------


class LocalTask(BaseModel):
    """One Taskmaster task.

    Task ids and dependency ids are strings; Taskmaster writes them as
    integers, so both are coerced on load.
    """

    id: str
    title: str
    description: str
    details: str | None = None
    test_strategy: str | None = Field(default=None, alias="testStrategy")
    priority: Priority
    dependencies: list[str] = Field(default_factory=list)
    status: TaskStatus
    subtasks: list[Any] = Field(default_factory=list)
    updated_at: str | None = Field(default=None, alias="updatedAt")

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value):
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("dependencies", mode="before")
    @classmethod
    def _coerce_dependencies(cls, value):
        if value is None:
            return []
        if isinstance(value, list):
            return [str(v) if isinstance(v, int) else v for v in value]
        return value


class TasksMetadata(BaseModel):
    """Optional ``master.metadata`` block of ``tasks.json``."""

    version: str | None = None
    last_modified: str | None = Field(default=None, alias="lastModified")
    task_count: int | None = Field(default=None, alias="taskCount")
    completed_count: int | None = Field(default=None, alias="completedCount")
    tags: list[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class TaskList(BaseModel):
    tasks: list[LocalTask]
    metadata: TasksMetadata = Field(default_factory=TasksMetadata)

    model_config = {"frozen": True}


class TasksFile(BaseModel):
    """Top level of ``tasks.json``: ``{"master": {"tasks": [...]}}``."""

    master: TaskList

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Persisted state
# ---------------------------------------------------------------------------


class TaskMapping(BaseModel):
    """Link between a local task and the GitHub issue created for it.

    Attributes:
        taskmaster_id: Local task id (also the key in ``task_mappings``).
        github_issue_number: Issue number, always positive.
        github_issue_url: Browser URL of the issue.
        project_item_id: Project item node id, if added to a project.
        synced_at: ISO 8601 timestamp of the sync.
    """

    taskmaster_id: str = Field(alias="taskmasterId")
    github_issue_number: int = Field(alias="githubIssueNumber")
    github_issue_url: str = Field(alias="githubIssueUrl")
    project_item_id: str | None = Field(default=None, alias="projectItemId")
    synced_at: str = Field(alias="syncedAt")

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class SyncState(BaseModel):
    """The whole ledger, as stored in ``sync-state.json``."""

    last_sync_at: str | None = Field(default=None, alias="lastSyncAt")
    task_mappings: dict[str, TaskMapping] = Field(
        default_factory=dict, alias="taskMappings"
    )
    version: str = STATE_VERSION

    model_config = ConfigDict(frozen=True, populate_by_name=True)


# ---------------------------------------------------------------------------
# Mapping
# ---------------------------------------------------------------------------


class MappedIssue(BaseModel):
    """A local task translated into an issue payload.

    Attributes:
        task_id: Id of the source task.
        issue_input: Title, body and labels to send.
        priority_label: The generated ``priority:*`` label.
        resolved_dependencies: ``(task_id, issue_number)`` pairs for
            dependencies that already have issues.
        unresolved_dependencies: Dependency task ids not yet synced.
    """

    task_id: str
    issue_input: IssueInput
    priority_label: str
    resolved_dependencies: list[tuple[str, int]] = Field(default_factory=list)
    unresolved_dependencies: list[str] = Field(default_factory=list)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Run results
# ---------------------------------------------------------------------------


class TaskSyncResult(BaseModel):
    """Result of syncing one task.

    Attributes:
        task_id: Id of the task.
        success: Whether the task was synced (or would be, in a dry run).
        issue_number: Created issue number.
        issue_url: Created issue URL.
        project_item_id: Project item id, when added to a project.
        error: Error message if the task failed.
        dry_run: ``True`` when nothing was actually created.
        skipped: ``True`` when a mapping appeared before the issue was
            created, so nothing was done.
        initial_status: Project status set on the new item.
        mapped_issue: The payload, recorded for dry runs.
    """

    task_id: str
    success: bool
    issue_number: int | None = None
    issue_url: str | None = None
    project_item_id: str | None = None
    error: str | None = None
    dry_run: bool = False
    skipped: bool = False
    initial_status: str | None = None
    mapped_issue: MappedIssue | None = None

    model_config = {"frozen": True}


class SyncSummary(BaseModel):
    """Aggregate outcome of a sync run."""

    total_tasks: int
    newly_synced: int
    already_synced: int
    failed: int
    results: list[TaskSyncResult] = Field(default_factory=list)
    stale_entries_removed: int | None = None
    skipped_due_to_duplicate_check: int = 0
    dry_run: bool = False

    model_config = {"frozen": True}

    @property
    def succeeded(self) -> list[TaskSyncResult]:
        return [r for r in self.results if r.success]

    @property
    def failures(self) -> list[TaskSyncResult]:
        return [r for r in self.results if not r.success]


class CleanupResult(BaseModel):
    """New state after dropping mappings for tasks that no longer exist."""

    state: SyncState
    removed_count: int
    removed_ids: list[str] = Field(default_factory=list)

    model_config = {"frozen": True}


class IntegrityReport(BaseModel):
    """Violations found in a state value. ``valid`` iff ``issues`` is empty."""

    valid: bool
    issues: list[str] = Field(default_factory=list)

    model_config = {"frozen": True}


class IdempotencyReport(BaseModel):
    """Whether every local task already has an issue."""

    is_idempotent: bool
    total_tasks: int
    synced_tasks: int
    unsynced_tasks: int
    unsynced_task_ids: list[str] = Field(default_factory=list)

    model_config = {"frozen": True}


class SyncOptions(BaseModel):
    """Settings for a single ``SyncEngine`` run.

    Attributes:
        owner: Repository owner.
        repo: Repository name.
        project_id: Project node id; issues are added to it when set.
        tasks_path: Path to ``tasks.json``.
        state_path: Path to the sync state file.
        dry_run: Map tasks without creating anything.
        use_locking: Hold the state lock for the whole run.
        cleanup_stale: Drop mappings for deleted tasks before syncing.
        save_after_each_task: Persist state after every created issue.
        auto_detect_status: Pick the initial project status from the
            task's dependencies.
        initial_status: Fixed initial project status (used when
            ``auto_detect_status`` is off).
        status_mapping: Project status names per workflow stage.
        priority_prefix: Prefix for the priority label.
    """

    owner: str
    repo: str
    project_id: str | None = None
    tasks_path: str = DEFAULT_TASKS_PATH
    state_path: str = DEFAULT_STATE_PATH
    dry_run: bool = False
    use_locking: bool = True
    cleanup_stale: bool = False
    save_after_each_task: bool = True
    auto_detect_status: bool = False
    initial_status: str | None = None
    status_mapping: StatusFieldMapping = Field(
        default_factory=StatusFieldMapping
    )
    priority_prefix: str = "priority:"

    model_config = {"frozen": True}
