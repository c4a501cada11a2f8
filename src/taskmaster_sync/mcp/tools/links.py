"""MCP tool handler for pull request links.

Defines one tool, ``item_link_pr``, with three actions:

- ``link`` -- comment "Linked to PR #N" on an issue found by reference.
- ``find`` -- list the pull requests cross-referencing an issue.
- ``suggest`` -- score open pull requests against open issues.
"""

from __future__ import annotations

import logging
from typing import Any

import mcp.types as types

from ...core.async_utils import run_sync
from ...resolve.links import LinkRequest, LinkService, parse_link_request
from .errors import build_error_response
from .registry import ToolContext, ToolSpec

logger = logging.getLogger(__name__)


LINK_TOOLS: list[types.Tool] = [
    types.Tool(
        name="item_link_pr",
        description=(
            "Link pull requests to issues. Accepts 'link #12 to PR #45', "
            "'link task login page to PR #45', 'what PRs are linked to #12' "
            "or 'suggest PR links', or an explicit action with arguments. "
            "Suggestions score open PRs by issue references, branch names "
            "and title keywords."
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
                    "description": "Natural-language link request",
                },
                "action": {
                    "type": "string",
                    "enum": ["link", "find", "suggest"],
                    "description": "Action to run (instead of request)",
                },
                "query": {
                    "type": "string",
                    "description": "Issue title fragment or #number",
                },
                "pr_number": {
                    "type": "integer",
                    "description": "Pull request number (link only)",
                },
                "message": {
                    "type": "string",
                    "description": "Text placed above the link line (link only)",
                },
                "label": {
                    "type": "string",
                    "description": "Only suggest for issues with this label (suggest only)",
                },
            },
            "required": [],
        },
    ),
]


def _request_from_args(args: dict[str, Any]) -> LinkRequest | types.CallToolResult:
    if args.get("action"):
        return LinkRequest(
            action=args["action"],
            issue_query=args.get("query"),
            pr_number=args.get("pr_number"),
        )
    if args.get("request"):
        parsed = parse_link_request(args["request"])
        if parsed is None:
            return build_error_response(
                "parse_error",
                f'Could not parse link request: "{args["request"]}"',
                "Use 'link #<issue> to PR #<n>', 'what PRs are linked to "
                "#<issue>' or 'suggest PR links'.",
            )
        return parsed
    return build_error_response(
        "validation_error",
        "Either request or action is required",
        "Provide 'request' (e.g. 'link #12 to PR #45') or 'action' with its arguments.",
    )


async def _handle_item_link_pr(
    ctx: ToolContext, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``item_link_pr`` tool."""
    request = _request_from_args(args)
    if isinstance(request, types.CallToolResult):
        return request

    owner, repo = ctx.config.owner, ctx.config.repo
    service = LinkService(ctx.client, ctx.matcher_config)

    match request.action:
        case "link":
            if not (request.issue_query and request.pr_number):
                return build_error_response(
                    "validation_error",
                    "query and pr_number are required to link",
                    "Pass the issue as 'query' and the pull request as 'pr_number'.",
                )
            result = await run_sync(
                service.link_pr,
                owner,
                repo,
                request.issue_query,
                request.pr_number,
                args.get("message"),
            )
            text = f"{result.message}: {result.issue_title}\n{result.comment_url}"
            structured = result.model_dump()

        case "find":
            if not request.issue_query:
                return build_error_response(
                    "validation_error",
                    "query is required to find linked pull requests",
                    "Pass the issue title fragment or #number as 'query'.",
                )
            found = await run_sync(
                service.find_linked_prs, owner, repo, request.issue_query
            )
            lines = [f"Pull requests linked to #{found.issue_number} {found.issue_title}:"]
            for pr in found.pull_requests:
                lines.append(f"- #{pr.number} {pr.title} [{pr.state}, {pr.link_type}]")
            if not found.pull_requests:
                lines.append("- none")
            text = "\n".join(lines)
            structured = found.model_dump()

        case _:
            suggestions = await run_sync(
                service.suggest_links,
                owner,
                repo,
                request.issue_query,
                args.get("label"),
            )
            lines = ["Suggested PR links:"]
            for s in suggestions:
                lines.append(
                    f"- #{s.issue_number} {s.issue_title} <- PR #{s.pull_request.number} "
                    f"{s.pull_request.title} ({s.confidence:.0%}: {s.reason})"
                )
            if not suggestions:
                lines.append("- none")
            text = "\n".join(lines)
            structured = {"suggestions": [s.model_dump() for s in suggestions]}

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent=structured,
    )


# ToolSpec list for registry-based dispatch
LINK_SPECS: list[ToolSpec] = [
    ToolSpec(
        tool=LINK_TOOLS[0],
        scopes=frozenset({"repo"}),
        handler=_handle_item_link_pr,
    ),
]
