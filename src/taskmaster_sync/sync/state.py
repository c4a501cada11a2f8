"""Sync state persistence layer.

Manages the JSON ledger (``.taskmaster/sync-state.json``) mapping local
task ids to the GitHub issues created for them.

Key design choices:

* **Atomic writes** -- ``save()`` writes to a temp file then calls
  ``os.replace()`` so readers never see partial data.
* **Fail-soft reads** -- a missing or corrupt file loads as an empty state;
  corruption is logged, never raised.
* **Immutable state** -- ``SyncState`` is frozen.  The module-level helpers
  return new values instead of mutating their input.
* **Locking** -- ``locked_update()`` wraps load-modify-save in a
  ``FileLock`` so concurrent runs cannot interleave.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from collections import defaultdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable

from pydantic import ValidationError

from taskmaster_sync.sync.lock import FileLock
from taskmaster_sync.sync.models import (
    CleanupResult,
    IntegrityReport,
    LocalTask,
    SyncState,
    TaskMapping,
)

logger = logging.getLogger(__name__)


class StateStore:
    """Load, save and lock the sync state file.

    Args:
        path: Path to ``sync-state.json``.
        lock_timeout: Seconds ``lock()`` waits for a held lock.
    """

    def __init__(self, path: str | Path, lock_timeout: float = 30.0) -> None:
        self.path = Path(path)
        self.lock_timeout = lock_timeout

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> SyncState:
        """Load the state from disk.

        Returns:
            The stored state. A missing file, invalid JSON or a schema
            violation all yield an empty state.
        """
        if not self.path.exists():
            return create_empty_sync_state()
        try:
            with open(self.path, encoding="utf-8") as fh:
                raw = json.load(fh)
            return SyncState.model_validate(raw)
        except (ValueError, ValidationError, OSError) as exc:
            logger.warning(
                "state-corrupt: could not parse %s, starting fresh: %s",
                self.path,
                exc,
            )
            return create_empty_sync_state()

    def save(self, state: SyncState) -> SyncState:
        """Persist *state* atomically.

        Writes to a temporary file in the same directory then atomically
        replaces the target, creating parent directories as needed. On any
        failure the temp file is removed and the previous file is left
        untouched.

        Returns:
            The state as written, with ``last_sync_at`` set to now (UTC).
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        stamped = state.model_copy(
            update={"last_sync_at": datetime.now(timezone.utc).isoformat()}
        )
        payload = stamped.model_dump(by_alias=True, exclude_none=True)

        fd, tmp_path = tempfile.mkstemp(
            dir=str(self.path.parent), suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(payload, fh, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            # Clean up temp file on any failure.
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
        return stamped

    # ------------------------------------------------------------------
    # Locking
    # ------------------------------------------------------------------

    def lock(self) -> FileLock:
        """Return an unacquired ``FileLock`` for this state file."""
        return FileLock(self.path, timeout=self.lock_timeout)

    def locked_update(
        self, fn: Callable[[SyncState], SyncState]
    ) -> SyncState:
        """Load, transform with *fn* and save while holding the lock.

        Raises:
            LockTimeoutError: If the lock cannot be acquired.
        """
        lock = self.lock()
        token = lock.acquire()
        try:
            state = fn(self.load())
            return self.save(state)
        finally:
            lock.release(token)


# ---------------------------------------------------------------------------
# Pure state operations
# ---------------------------------------------------------------------------


def create_empty_sync_state() -> SyncState:
    return SyncState()


def is_task_synced(task_id: str, state: SyncState) -> bool:
    return task_id in state.task_mappings


def get_task_mapping(task_id: str, state: SyncState) -> TaskMapping | None:
    return state.task_mappings.get(task_id)


def add_task_mapping(state: SyncState, mapping: TaskMapping) -> SyncState:
    """Return a new state with *mapping* stored under its task id."""
    mappings = dict(state.task_mappings)
    mappings[mapping.taskmaster_id] = mapping
    return state.model_copy(update={"task_mappings": mappings})


def remove_task_mapping(state: SyncState, task_id: str) -> SyncState:
    """Return a new state without *task_id*. Absent ids are a no-op."""
    mappings = {
        k: v for k, v in state.task_mappings.items() if k != task_id
    }
    return state.model_copy(update={"task_mappings": mappings})


def get_synced_task_ids(state: SyncState) -> list[str]:
    return list(state.task_mappings.keys())


def get_all_mappings(state: SyncState) -> list[TaskMapping]:
    return list(state.task_mappings.values())


def find_mapping_by_issue_number(
    issue_number: int, state: SyncState
) -> TaskMapping | None:
    """Return the first mapping pointing at *issue_number*, if any."""
    for mapping in state.task_mappings.values():
        if mapping.github_issue_number == issue_number:
            return mapping
    return None


# ---------------------------------------------------------------------------
# Maintenance
# ---------------------------------------------------------------------------


def cleanup_stale_entries(
    tasks: Iterable[LocalTask | str], state: SyncState
) -> CleanupResult:
    """Drop mappings whose task id is not among *tasks*.

    Args:
        tasks: Current local tasks, or their ids.
        state: State to clean.

    Returns:
        ``CleanupResult`` with the new state and the removed ids.
    """
    current = {t if isinstance(t, str) else t.id for t in tasks}
    kept: dict[str, TaskMapping] = {}
    removed: list[str] = []
    for task_id, mapping in state.task_mappings.items():
        if task_id in current:
            kept[task_id] = mapping
        else:
            removed.append(task_id)

    if removed:
        logger.info("Removing %d stale mapping(s): %s", len(removed), removed)

    return CleanupResult(
        state=state.model_copy(update={"task_mappings": kept}),
        removed_count=len(removed),
        removed_ids=removed,
    )


def verify_state_integrity(state: SyncState) -> IntegrityReport:
    """Check *state* for inconsistencies without modifying it."""
    issues: list[str] = []
    by_number: dict[int, list[str]] = defaultdict(list)

    for key, mapping in state.task_mappings.items():
        if mapping.taskmaster_id != key:
            issues.append(
                f'Mapping key "{key}" does not match taskmasterId '
                f'"{mapping.taskmaster_id}"'
            )
        if mapping.github_issue_number <= 0:
            issues.append(
                f"Task {key} has invalid issue number "
                f"{mapping.github_issue_number}"
            )
        if not mapping.github_issue_url.startswith(("http://", "https://")):
            issues.append(
                f'Task {key} has invalid issue URL "{mapping.github_issue_url}"'
            )
        if not mapping.synced_at:
            issues.append(f"Task {key} is missing syncedAt")
        by_number[mapping.github_issue_number].append(key)

    for number, task_ids in by_number.items():
        if len(task_ids) > 1:
            issues.append(
                f"Issue #{number} is mapped to multiple tasks: "
                f"{', '.join(task_ids)}"
            )

    return IntegrityReport(valid=not issues, issues=issues)
