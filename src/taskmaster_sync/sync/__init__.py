"""Taskmaster task -> GitHub issue sync engine.

Public API for creating GitHub issues (and project items) from the tasks
in ``.taskmaster/tasks/tasks.json`` without ever creating the same issue
twice.

Modules:

- ``engine``    -- ``SyncEngine``: orchestrates a full sync run.
- ``state``     -- ``StateStore`` plus pure functions over ``SyncState``.
- ``lock``      -- ``FileLock``: exclusive lock file beside the state file.
- ``reader``    -- reads and validates ``tasks.json``.
- ``mapper``    -- task -> issue payload translation.
- ``models``    -- data contracts (``LocalTask``, ``SyncState``,
  ``SyncSummary``...).
- ``reporter``  -- human-readable and JSON summary formatting.

Usage example
-------------
::

    from taskmaster_sync.core.client import GitHubClient
    from taskmaster_sync.sync import SyncEngine, SyncOptions, format_sync_summary

    options = SyncOptions(owner="acme", repo="widgets", dry_run=True)
    engine = SyncEngine(client=github_client, options=options)

    # Dry-run first to preview the issues
    print(format_sync_summary(engine.run()))
"""

from .engine import SyncEngine
from .lock import FileLock
from .models import (
    LocalTask,
    SyncOptions,
    SyncState,
    SyncSummary,
    TaskMapping,
    TaskSyncResult,
)
from .reporter import format_sync_summary, summary_to_json
from .state import StateStore

__all__ = [
    "FileLock",
    "LocalTask",
    "StateStore",
    "SyncEngine",
    "SyncOptions",
    "SyncState",
    "SyncSummary",
    "TaskMapping",
    "TaskSyncResult",
    "format_sync_summary",
    "summary_to_json",
]
