"""Sync engine that turns unsynced Taskmaster tasks into GitHub issues.

The ``SyncEngine``:

1. Acquires the state lock (unless disabled or dry-run).
2. Reads every local task from ``tasks.json``.
3. Loads persisted sync state and optionally drops stale mappings.
4. Filters out tasks that already have an issue.
5. For each remaining task: maps it, creates the issue, adds it to the
   project with an initial status, and records the mapping.
6. Saves state per task (crash safety) or once at the end.
7. Releases the lock on every path and returns a ``SyncSummary``.

Error handling is per-task: a single failure does not abort the run.
Running the engine twice never creates an issue for the same task twice.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from taskmaster_sync.core.tracker import TrackerClient
from taskmaster_sync.errors import ResolutionError, TrackerError
from taskmaster_sync.resolve.status import resolve_status
from taskmaster_sync.sync.lock import FileLock
from taskmaster_sync.sync.mapper import (
    determine_initial_status,
    filter_unsynced_tasks,
    map_task_to_issue,
)
from taskmaster_sync.sync.models import (
    IdempotencyReport,
    LocalTask,
    SyncOptions,
    SyncState,
    SyncSummary,
    TaskMapping,
    TaskSyncResult,
)
from taskmaster_sync.sync.reader import get_all_tasks
from taskmaster_sync.sync.state import (
    StateStore,
    add_task_mapping,
    cleanup_stale_entries,
    get_task_mapping,
)

logger = logging.getLogger(__name__)


class SyncEngine:
    """Create GitHub issues for local tasks that do not have one yet.

    Args:
        client: Tracker used to create issues. May be ``None`` for dry runs.
        options: Run settings.
    """

    def __init__(
        self, client: TrackerClient | None, options: SyncOptions
    ) -> None:
        self.client = client
        self.options = options
        self.store = StateStore(options.state_path)

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    def run(self) -> SyncSummary:
        """Execute a full sync run.

        Raises:
            LockTimeoutError: If the state lock cannot be acquired.
            TaskFileError: If ``tasks.json`` cannot be read.
        """
        opts = self.options
        lock: FileLock | None = None
        token: str | None = None

        if opts.use_locking and not opts.dry_run:
            lock = self.store.lock()
            token = lock.acquire()

        try:
            return self._run()
        finally:
            if lock is not None:
                lock.release(token)

    def _run(self) -> SyncSummary:
        opts = self.options
        tasks = get_all_tasks(opts.tasks_path)
        state = self.store.load()

        stale_removed: int | None = None
        if opts.cleanup_stale:
            cleanup = cleanup_stale_entries(tasks, state)
            state = cleanup.state
            stale_removed = cleanup.removed_count
            if cleanup.removed_count and not opts.dry_run:
                state = self.store.save(state)

        to_sync = filter_unsynced_tasks(tasks, state)
        already_synced = len(tasks) - len(to_sync)
        logger.info(
            "Syncing %d of %d task(s) to %s/%s%s",
            len(to_sync),
            len(tasks),
            opts.owner,
            opts.repo,
            " (dry run)" if opts.dry_run else "",
        )

        results: list[TaskSyncResult] = []
        newly_synced = 0
        failed = 0
        skipped = 0

        for task in to_sync:
            result = self.sync_task(task, state)
            results.append(result)

            if not result.success:
                failed += 1
                logger.error("Task %s failed: %s", task.id, result.error)
                continue

            if result.skipped:
                already_synced += 1
                skipped += 1
                continue

            newly_synced += 1
            if opts.dry_run:
                continue

            state = add_task_mapping(
                state,
                TaskMapping(
                    taskmaster_id=task.id,
                    github_issue_number=result.issue_number,
                    github_issue_url=result.issue_url,
                    project_item_id=result.project_item_id,
                    synced_at=datetime.now(timezone.utc).isoformat(),
                ),
            )
            if opts.save_after_each_task:
                state = self.store.save(state)

        if not opts.dry_run and not opts.save_after_each_task and newly_synced:
            state = self.store.save(state)

        return SyncSummary(
            total_tasks=len(tasks),
            newly_synced=newly_synced,
            already_synced=already_synced,
            failed=failed,
            results=results,
            stale_entries_removed=stale_removed,
            skipped_due_to_duplicate_check=skipped,
            dry_run=opts.dry_run,
        )

    # ------------------------------------------------------------------
    # Per-task sync
    # ------------------------------------------------------------------

    def sync_task(self, task: LocalTask, state: SyncState) -> TaskSyncResult:
        """Sync one task against *state*.

        Never raises for a task-level failure; any error while creating
        the issue becomes a failed result.
        """
        existing = get_task_mapping(task.id, state)
        if existing is not None:
            # mapping appeared between filtering and syncing
            return TaskSyncResult(
                task_id=task.id,
                success=True,
                skipped=True,
                issue_number=existing.github_issue_number,
                issue_url=existing.github_issue_url,
                project_item_id=existing.project_item_id,
            )

        opts = self.options
        mapped = map_task_to_issue(
            task, opts.owner, opts.repo, state, opts.priority_prefix
        )

        if opts.dry_run:
            return TaskSyncResult(
                task_id=task.id,
                success=True,
                dry_run=True,
                mapped_issue=mapped,
            )

        if self.client is None:
            raise RuntimeError("A tracker client is required unless dry_run is set")

        try:
            initial_status = self._initial_status(task)
            option_id = None
            project = None
            if opts.project_id:
                project = self.client.get_project(opts.project_id)
                if initial_status:
                    # validated before creating so an unknown status
                    # never leaves an untracked issue behind
                    _, option_id = resolve_status(
                        initial_status, project.status_options
                    )

            issue = self.client.create_issue(
                opts.owner, opts.repo, mapped.issue_input
            )
        except (TrackerError, ResolutionError, ValueError) as exc:
            return TaskSyncResult(task_id=task.id, success=False, error=str(exc))
        except Exception as exc:
            logger.exception("Unexpected error syncing task %s", task.id)
            return TaskSyncResult(
                task_id=task.id,
                success=False,
                error=f"{type(exc).__name__}: {exc}",
            )

        # The issue exists from here on, so the task counts as synced even
        # if the project steps fail; otherwise a rerun would duplicate it.
        project_item_id = None
        status_set = None
        warning = None
        if project is not None:
            try:
                project_item_id = self.client.add_item_to_project(
                    project.project_id, issue.node_id
                )
                if option_id is not None:
                    self.client.set_item_field(
                        project.project_id,
                        project_item_id,
                        project.status_field_id,
                        option_id,
                    )
                    status_set = initial_status
            except Exception as exc:
                warning = f"Issue created but project update failed: {exc}"
                logger.warning("Task %s: %s", task.id, warning)

        logger.info("Task %s -> issue #%d", task.id, issue.number)
        return TaskSyncResult(
            task_id=task.id,
            success=True,
            issue_number=issue.number,
            issue_url=issue.url,
            project_item_id=project_item_id,
            initial_status=status_set,
            error=warning,
            mapped_issue=mapped,
        )

    def _initial_status(self, task: LocalTask) -> str | None:
        opts = self.options
        if not opts.project_id:
            return None
        if opts.auto_detect_status:
            return determine_initial_status(task, opts.status_mapping)
        return opts.initial_status

    # ------------------------------------------------------------------
    # Read-only checks
    # ------------------------------------------------------------------

    def verify_idempotency(self) -> IdempotencyReport:
        """Report whether another run would create any issue."""
        tasks = get_all_tasks(self.options.tasks_path)
        unsynced = filter_unsynced_tasks(tasks, self.store.load())
        return IdempotencyReport(
            is_idempotent=not unsynced,
            total_tasks=len(tasks),
            synced_tasks=len(tasks) - len(unsynced),
            unsynced_tasks=len(unsynced),
            unsynced_task_ids=[t.id for t in unsynced],
        )
