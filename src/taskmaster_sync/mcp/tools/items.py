"""MCP tool handlers for project items.

Defines two tools:

- ``item_status_update`` -- move an item to another status by fuzzy
  reference ("move API docs to done").
- ``item_note_add`` -- comment on an open issue (or any project item)
  by fuzzy reference.
"""

from __future__ import annotations

import logging
from typing import Any

import mcp.types as types

from ...core.async_utils import run_sync
from ...resolve.notes import NoteService, parse_note_request
from ...resolve.updater import (
    StatusUpdater,
    StatusUpdateRequest,
    parse_update_request,
)
from ...resolve.status import is_blocked_status
from .errors import build_error_response
from .registry import ToolContext, ToolSpec

logger = logging.getLogger(__name__)


ITEM_TOOLS: list[types.Tool] = [
    types.Tool(
        name="item_status_update",
        description=(
            "Change the project status of an issue or PR. Accepts a "
            "natural-language request such as 'move API docs to done' or "
            "'mark #12 as in progress', or an explicit query and status. "
            "Ambiguous or unknown references are rejected with suggestions."
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
                "request": {
                    "type": "string",
                    "description": "Natural-language update, e.g. 'set login page as blocked - waiting on design'",
                },
                "query": {
                    "type": "string",
                    "description": "Item title fragment or #number (instead of request)",
                },
                "status": {
                    "type": "string",
                    "description": "Target status or alias, e.g. 'wip' (instead of request)",
                },
                "project_id": {
                    "type": "string",
                    "description": "Project node id. Defaults to GITHUB_PROJECT_ID.",
                },
            },
            "required": [],
        },
    ),
    types.Tool(
        name="item_note_add",
        description=(
            "Add a note (comment) to an open issue found by title fragment "
            "or #number. Accepts 'note on <item>: <text>' or explicit "
            "query and note."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=False,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "request": {
                    "type": "string",
                    "description": "e.g. 'note on API docs: reviewed the schema section'",
                },
                "query": {
                    "type": "string",
                    "description": "Issue title fragment or #number",
                },
                "note": {
                    "type": "string",
                    "description": "Comment body (Markdown)",
                },
                "in_project": {
                    "type": "boolean",
                    "default": False,
                    "description": "Match against the project's items (open or closed) instead of open issues",
                },
                "project_id": {
                    "type": "string",
                    "description": "Project node id for in_project. Defaults to GITHUB_PROJECT_ID.",
                },
            },
            "required": [],
        },
    ),
]


async def _handle_item_status_update(
    ctx: ToolContext, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``item_status_update`` tool."""
    project_id = args.get("project_id") or ctx.config.project_id
    if not project_id:
        return build_error_response(
            "validation_error",
            "No project configured",
            "Pass project_id or set GITHUB_PROJECT_ID.",
        )

    if args.get("request"):
        request = parse_update_request(args["request"])
    elif args.get("query") and args.get("status"):
        status = args["status"].strip().lower()
        request = StatusUpdateRequest(
            query=args["query"],
            target_status=status,
            is_blocked=is_blocked_status(status),
        )
    else:
        return build_error_response(
            "validation_error",
            "Either request, or both query and status, are required",
            "Provide 'request' (e.g. 'move API docs to done') or 'query' and 'status'.",
        )

    updater = StatusUpdater(ctx.client, ctx.aliases, ctx.matcher_config)
    result = await run_sync(updater.update_status, request, project_id)

    text = (
        f"Moved #{result.number} {result.title} "
        f"from {result.previous_status or '(none)'} to {result.new_status}"
    )
    if result.message:
        text += f"\n{result.message}"

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent=result.model_dump(),
    )


async def _handle_item_note_add(
    ctx: ToolContext, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``item_note_add`` tool."""
    query, note = args.get("query"), args.get("note")
    if not (query and note) and args.get("request"):
        parsed = parse_note_request(args["request"])
        if parsed is None:
            return build_error_response(
                "parse_error",
                f'Could not parse note request: "{args["request"]}"',
                "Use 'note on <item>: <text>', or pass query and note.",
            )
        query, note = parsed
    if not (query and note):
        return build_error_response(
            "validation_error",
            "query and note are required",
            "Provide 'query' and 'note', or a 'request' like 'note on <item>: <text>'.",
        )

    service = NoteService(ctx.client, ctx.matcher_config)
    if args.get("in_project"):
        project_id = args.get("project_id") or ctx.config.project_id
        if not project_id:
            return build_error_response(
                "validation_error",
                "No project configured",
                "Pass project_id or set GITHUB_PROJECT_ID, or drop in_project.",
            )
        result = await run_sync(
            service.add_note_to_project_item,
            project_id,
            ctx.config.owner,
            ctx.config.repo,
            query,
            note,
        )
    else:
        result = await run_sync(
            service.add_note, ctx.config.owner, ctx.config.repo, query, note
        )

    return types.CallToolResult(
        content=[
            types.TextContent(
                type="text", text=f"{result.message}\n{result.comment.url}"
            )
        ],
        structuredContent=result.model_dump(),
    )


# ToolSpec list for registry-based dispatch
ITEM_SPECS: list[ToolSpec] = [
    ToolSpec(
        tool=ITEM_TOOLS[0],
        scopes=frozenset({"project"}),
        handler=_handle_item_status_update,
    ),
    ToolSpec(
        tool=ITEM_TOOLS[1],
        scopes=frozenset({"repo"}),
        handler=_handle_item_note_add,
    ),
]
