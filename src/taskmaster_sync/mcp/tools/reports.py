"""MCP tool handlers for read-only project reports.

Defines two tools:

- ``project_report`` -- status breakdown, blocked items, standup summary
  or open-item count of the configured project.
- ``project_shipped`` -- items shipped in a time range, picked by preset
  or by a question such as "what did I ship this week?".
"""

from __future__ import annotations

import logging
from typing import Any

import mcp.types as types

from ...core.async_utils import gather_with_timeout, run_sync
from ...core.models import TrackedItem
from ...reports.board import (
    DEFAULT_MAX_ITEMS,
    STAGE_ORDER,
    build_status_report,
    count_open,
    find_blocked_items,
    format_blocked_items,
    format_standup,
    format_status_report,
    standup_summary,
)
from ...reports.shipped import (
    TIME_PRESETS,
    format_shipped_report,
    parse_time_query,
    shipped_items,
    time_range_for,
)
from .errors import build_error_response
from .registry import ToolContext, ToolSpec

logger = logging.getLogger(__name__)

REPORT_FETCH_TIMEOUT = 30.0

_PROJECT_ID_PROPERTY = {
    "type": "string",
    "description": "Project node id. Defaults to GITHUB_PROJECT_ID.",
}

_READ_ONLY = types.ToolAnnotations(
    readOnlyHint=True,
    destructiveHint=False,
    idempotentHint=True,
    openWorldHint=True,
)


REPORT_TOOLS: list[types.Tool] = [
    types.Tool(
        name="project_report",
        description=(
            "Summarize the project board. 'status' lists items per workflow "
            "stage plus what was done this week, 'blocked' lists blocked "
            "items with their reasons, 'standup' counts in-progress, "
            "blocked and recently done items, and 'open' counts items not "
            "yet done."
        ),
        annotations=_READ_ONLY,
        inputSchema={
            "type": "object",
            "properties": {
                "report": {
                    "type": "string",
                    "enum": ["status", "blocked", "standup", "open"],
                    "default": "status",
                },
                "stages": {
                    "type": "array",
                    "items": {"type": "string", "enum": list(STAGE_ORDER)},
                    "description": "Stages to include in a status report",
                },
                "max_items": {
                    "type": "integer",
                    "minimum": 1,
                    "default": DEFAULT_MAX_ITEMS,
                    "description": "Items listed per stage in a status report",
                },
                "project_id": _PROJECT_ID_PROPERTY,
            },
            "required": [],
        },
    ),
    types.Tool(
        name="project_shipped",
        description=(
            "List items moved to done and closed within a time range. Pass "
            "a preset such as 'this_week', or a question like 'what did I "
            "ship last month?'."
        ),
        annotations=_READ_ONLY,
        inputSchema={
            "type": "object",
            "properties": {
                "period": {
                    "type": "string",
                    "enum": list(TIME_PRESETS),
                    "description": "Time range preset",
                },
                "query": {
                    "type": "string",
                    "description": "Natural-language question (instead of period)",
                },
                "project_id": _PROJECT_ID_PROPERTY,
            },
            "required": [],
        },
    ),
]


async def _fetch_board(
    ctx: ToolContext, project_id: str
) -> tuple[str, list[TrackedItem]]:
    """Return the project title and items, fetched concurrently.

    A failed title lookup falls back to the project id; a failed item
    fetch is raised.
    """
    project, items = await gather_with_timeout(
        [
            run_sync(ctx.client.get_project, project_id),
            run_sync(ctx.client.list_project_items, project_id),
        ],
        timeout=REPORT_FETCH_TIMEOUT,
        continue_on_error=True,
    )
    if isinstance(items, BaseException):
        raise items
    if isinstance(project, BaseException):
        logger.warning("Could not read project %s: %s", project_id, project)
        return project_id, items
    return project.title or project_id, items


def _no_project() -> types.CallToolResult:
    return build_error_response(
        "validation_error",
        "No project configured",
        "Pass project_id or set GITHUB_PROJECT_ID.",
    )


async def _handle_project_report(
    ctx: ToolContext, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``project_report`` tool."""
    project_id = args.get("project_id") or ctx.config.project_id
    if not project_id:
        return _no_project()

    kind = args.get("report") or "status"
    mapping = ctx.settings.status_field_mapping
    title, items = await _fetch_board(ctx, project_id)

    match kind:
        case "status":
            report = build_status_report(
                items,
                mapping,
                project_title=title,
                max_items=args.get("max_items") or DEFAULT_MAX_ITEMS,
                stages=args.get("stages"),
            )
            text = format_status_report(report)
            structured = report.model_dump(mode="json")
        case "blocked":
            blocked = find_blocked_items(items, mapping)
            text = format_blocked_items(blocked)
            structured = {
                "project_title": title,
                "blocked": [b.model_dump(mode="json") for b in blocked],
            }
        case "standup":
            summary = standup_summary(items, mapping)
            text = format_standup(summary, title)
            structured = {"project_title": title, **summary.model_dump()}
        case "open":
            open_count = count_open(items, mapping)
            text = f"{title}: {open_count} open"
            structured = {"project_title": title, "open": open_count}
        case _:
            raise ValueError(
                f'Unknown report "{kind}". Expected status, blocked, standup or open.'
            )

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent=structured,
    )


async def _handle_project_shipped(
    ctx: ToolContext, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``project_shipped`` tool."""
    project_id = args.get("project_id") or ctx.config.project_id
    if not project_id:
        return _no_project()

    preset = args.get("period")
    if not preset and args.get("query"):
        preset = parse_time_query(args["query"]).preset
        if preset is None:
            return build_error_response(
                "parse_error",
                f'Could not find a time range in "{args["query"]}"',
                f"Ask e.g. 'what did I ship this week?' or pass period as one of: "
                f"{', '.join(TIME_PRESETS)}.",
            )
    time_range = time_range_for(preset or "this_week")

    _, items = await _fetch_board(ctx, project_id)
    report = shipped_items(items, time_range, ctx.settings.status_field_mapping)

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=format_shipped_report(report))],
        structuredContent=report.model_dump(mode="json"),
    )


# ToolSpec list for registry-based dispatch
REPORT_SPECS: list[ToolSpec] = [
    ToolSpec(
        tool=REPORT_TOOLS[0],
        scopes=frozenset({"project"}),
        handler=_handle_project_report,
    ),
    ToolSpec(
        tool=REPORT_TOOLS[1],
        scopes=frozenset({"project"}),
        handler=_handle_project_shipped,
    ),
]
