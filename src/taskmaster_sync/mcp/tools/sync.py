"""MCP tool handlers for the Taskmaster -> GitHub sync.

Defines two tools:

- ``tasks_sync`` -- create issues for unsynced tasks (with optional dry-run).
- ``tasks_sync_status`` -- show the sync state, its integrity, and
  optionally the project board's status counts.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Any

import mcp.types as types

from ...core.async_utils import gather_with_timeout, run_sync
from ...errors import TaskFileError
from ...sync.engine import SyncEngine
from ...sync.models import SyncOptions
from ...sync.reporter import (
    format_integrity_report,
    format_sync_summary,
    summary_to_json,
)
from ...sync.state import StateStore, verify_state_integrity
from .registry import ToolContext, ToolSpec

logger = logging.getLogger(__name__)

BOARD_FETCH_TIMEOUT = 30.0


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------


SYNC_TOOLS: list[types.Tool] = [
    types.Tool(
        name="tasks_sync",
        description=(
            "Create GitHub issues for Taskmaster tasks that do not have one "
            "yet, and add them to the configured project. Safe to rerun: "
            "already synced tasks are never duplicated."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "dry_run": {
                    "type": "boolean",
                    "default": False,
                    "description": "Preview the issues without creating them",
                },
                "cleanup_stale": {
                    "type": "boolean",
                    "description": "Drop mappings for tasks that no longer exist",
                },
            },
            "required": [],
        },
    ),
    types.Tool(
        name="tasks_sync_status",
        description=(
            "Show sync state -- last sync time, number of mapped tasks, "
            "unsynced tasks and state integrity problems."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "include_board": {
                    "type": "boolean",
                    "default": False,
                    "description": "Also count project items per status",
                },
            },
            "required": [],
        },
    ),
]


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


def _sync_options(ctx: ToolContext, args: dict[str, Any]) -> SyncOptions:
    settings = ctx.settings.sync
    cleanup = args.get("cleanup_stale")
    return SyncOptions(
        owner=ctx.config.owner,
        repo=ctx.config.repo,
        project_id=ctx.config.project_id,
        tasks_path=ctx.config.tasks_path,
        state_path=ctx.config.state_path,
        dry_run=bool(args.get("dry_run", False)) or ctx.config.dry_run,
        use_locking=settings.use_locking,
        cleanup_stale=settings.cleanup_stale if cleanup is None else bool(cleanup),
        save_after_each_task=settings.save_after_each_task,
        auto_detect_status=settings.auto_detect_status,
        initial_status=settings.initial_status,
        status_mapping=ctx.settings.status_field_mapping,
        priority_prefix=ctx.settings.labels.priority_prefix,
    )


async def _handle_tasks_sync(
    ctx: ToolContext, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``tasks_sync`` tool."""
    engine = SyncEngine(client=ctx.client, options=_sync_options(ctx, args))
    summary = await run_sync(engine.run)

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=format_sync_summary(summary))],
        structuredContent=summary_to_json(summary),
        isError=summary.failed > 0,
    )


async def _handle_tasks_sync_status(
    ctx: ToolContext, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``tasks_sync_status`` tool."""
    state = await run_sync(StateStore(ctx.config.state_path).load)
    integrity = verify_state_integrity(state)

    lines = [
        f"Sync status for {ctx.config.owner}/{ctx.config.repo}",
        f"  Last sync:     {state.last_sync_at or 'never'}",
        f"  Mapped tasks:  {len(state.task_mappings)}",
    ]
    structured: dict[str, Any] = {
        "last_sync_at": state.last_sync_at,
        "mapped_tasks": len(state.task_mappings),
        "integrity": integrity.model_dump(),
    }

    engine = SyncEngine(client=None, options=_sync_options(ctx, {}))
    try:
        report = await run_sync(engine.verify_idempotency)
    except TaskFileError as exc:
        lines.append(f"  Tasks file:    unavailable ({exc.reason})")
    else:
        lines.append(f"  Local tasks:   {report.total_tasks}")
        lines.append(f"  Unsynced:      {report.unsynced_tasks}")
        structured["idempotency"] = report.model_dump()

    lines.append(f"  {format_integrity_report(integrity)}")

    if args.get("include_board") and ctx.config.project_id:
        board = await _board_counts(ctx, ctx.config.project_id)
        structured["board"] = board
        lines.append("  Board:")
        for status, count in board.get("status_counts", {}).items():
            lines.append(f"    {status}: {count}")
        for error in board.get("errors", []):
            lines.append(f"    (error: {error})")

    return types.CallToolResult(
        content=[types.TextContent(type="text", text="\n".join(lines))],
        structuredContent=structured,
    )


async def _board_counts(ctx: ToolContext, project_id: str) -> dict[str, Any]:
    """Fetch the project and its items concurrently and count by status."""
    project, items = await gather_with_timeout(
        [
            run_sync(ctx.client.get_project, project_id),
            run_sync(ctx.client.list_project_items, project_id),
        ],
        timeout=BOARD_FETCH_TIMEOUT,
        continue_on_error=True,
    )

    board: dict[str, Any] = {"errors": []}
    if isinstance(project, BaseException):
        board["errors"].append(str(project))
    else:
        board["title"] = project.title
        board["statuses"] = project.status_names()
    if isinstance(items, BaseException):
        board["errors"].append(str(items))
    else:
        counts = Counter(item.status or "(no status)" for item in items)
        board["status_counts"] = dict(counts)
    return board


# ToolSpec list for registry-based dispatch
SYNC_SPECS: list[ToolSpec] = [
    ToolSpec(
        tool=SYNC_TOOLS[0],
        scopes=frozenset({"repo"}),
        handler=_handle_tasks_sync,
    ),
    ToolSpec(
        tool=SYNC_TOOLS[1],
        scopes=frozenset(),
        handler=_handle_tasks_sync_status,
    ),
]
