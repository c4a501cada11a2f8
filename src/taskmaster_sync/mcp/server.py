"""stdio MCP server exposing the Taskmaster sync and item tools.

Agents connect over stdin/stdout (JSON-RPC). Which tools are advertised
depends on the OAuth scopes of the GitHub token: see ``build_registry``.
"""

import argparse
import asyncio
import logging
import sys

import mcp.server.stdio
import mcp.types as types
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions

from .. import __version__
from ..core.async_utils import run_sync
from ..logger import setup_logging
from .lifespan import server_lifespan
from .tools import (
    ALL_SPECS,
    ToolContext,
    ToolRegistry,
    ToolSpec,
    build_error_response,
)

logger = logging.getLogger(__name__)

SERVER_NAME = "taskmaster-sync"
DEFAULT_LOG_FILE = "/tmp/taskmaster-sync.log"

server = Server(SERVER_NAME)

# Populated by main() for the lifetime of the stdio session
_context: ToolContext | None = None
_registry: ToolRegistry | None = None


# ---------------------------------------------------------------------------
# ping
# ---------------------------------------------------------------------------


def _text_result(text: str, is_error: bool = False) -> types.CallToolResult:
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        isError=is_error,
    )


async def _handle_ping(ctx: ToolContext, args: dict) -> types.CallToolResult:
    try:
        login = await run_sync(ctx.client.validate_token)
    except Exception as e:
        return _text_result(
            f"GitHub connection failed: {e}. Check GITHUB_TOKEN.", is_error=True
        )
    return _text_result(
        f"Connected to GitHub as {login}. "
        f"Repository: {ctx.config.owner}/{ctx.config.repo}"
    )


PING_SPEC = ToolSpec(
    tool=types.Tool(
        name="ping",
        description="Check the GitHub token and report the authenticated login",
        inputSchema={"type": "object", "properties": {}, "required": []},
        annotations=types.ToolAnnotations(readOnlyHint=True, openWorldHint=True),
    ),
    scopes=frozenset(),
    handler=_handle_ping,
)


# ---------------------------------------------------------------------------
# Session state
# ---------------------------------------------------------------------------


def get_context() -> ToolContext:
    """Return the active ToolContext.

    Raises:
        RuntimeError: Before main() has entered the lifespan.
    """
    if _context is None:
        raise RuntimeError("Tool context not initialized; server not started.")
    return _context


def set_context(ctx: ToolContext | None) -> None:
    global _context
    _context = ctx


def get_registry() -> ToolRegistry:
    """Return the active ToolRegistry.

    Raises:
        RuntimeError: Before main() has built the registry.
    """
    if _registry is None:
        raise RuntimeError("Tool registry not initialized; server not started.")
    return _registry


def set_registry(registry: ToolRegistry | None) -> None:
    global _registry
    _registry = registry


def build_registry(granted_scopes: frozenset[str] | None) -> ToolRegistry:
    """Build the registry of tools usable with *granted_scopes*.

    ``None`` (a fine-grained token, which reports no scopes) enables every
    tool; GitHub then rejects individual calls the token cannot make.
    """
    specs = [PING_SPEC, *ALL_SPECS]
    registry = ToolRegistry(specs, granted_scopes)
    logger.info("Enabled %d of %d tools", registry.tool_count(), len(specs))
    return registry


# ---------------------------------------------------------------------------
# Protocol handlers
# ---------------------------------------------------------------------------


@server.list_tools()
async def handle_list_tools() -> list[types.Tool]:
    return get_registry().list_tools()


@server.call_tool()
async def handle_call_tool(
    name: str, arguments: dict | None
) -> types.CallToolResult:
    try:
        return await get_registry().call_tool(name, arguments, get_context())
    except ValueError as e:
        # not registered, or hidden by the token's scopes
        return build_error_response(
            "unknown_tool",
            str(e),
            "Call list_tools for the tools this token can use.",
        )


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


async def main(config_overrides: dict | None = None):
    """Validate configuration, then serve MCP over stdio until EOF.

    Args:
        config_overrides: CLI values (owner, repo, project_id, log_file).
    """
    overrides = config_overrides or {}

    # stdout belongs to the protocol from here on
    setup_logging(mode="mcp", log_file=overrides.get("log_file"))

    async with server_lifespan(config_overrides=config_overrides) as state:
        client = state["client"]
        registry = build_registry(client.token_scopes)
        set_context(ToolContext.create(client, state["config"], state["settings"]))
        set_registry(registry)
        print(f"  Tools enabled: {registry.tool_count()}", file=sys.stderr)
        try:
            async with mcp.server.stdio.stdio_server() as (
                read_stream,
                write_stream,
            ):
                await server.run(
                    read_stream,
                    write_stream,
                    InitializationOptions(
                        server_name=SERVER_NAME,
                        server_version=__version__,
                        capabilities=server.get_capabilities(
                            notification_options=NotificationOptions(),
                            experimental_capabilities={},
                        ),
                    ),
                )
        finally:
            set_context(None)
            set_registry(None)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="taskmaster-sync-mcp",
        description="MCP server for syncing Taskmaster tasks and updating GitHub project items",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                                  # settings from env / .env / config.yml
  %(prog)s --owner acme --repo roadmap      # target another repository
  %(prog)s --log-file ~/taskmaster-sync.log

The server speaks JSON-RPC on stdin/stdout; status messages go to stderr.
Tools needing the 'repo' or 'project' token scope are hidden when the
token lacks them.
        """,
    )
    parser.add_argument("--owner", help="Repository owner (overrides GITHUB_OWNER)")
    parser.add_argument("--repo", help="Repository name (overrides GITHUB_REPO)")
    parser.add_argument(
        "--project-id", help="Project node id (overrides GITHUB_PROJECT_ID)"
    )
    parser.add_argument(
        "--log-file",
        default=DEFAULT_LOG_FILE,
        help=f"Log file path (default: {DEFAULT_LOG_FILE})",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    return parser


def run() -> None:
    """Console-script entry point."""
    args = build_parser().parse_args()
    overrides = {
        key: value
        for key, value in (
            ("owner", args.owner),
            ("repo", args.repo),
            ("project_id", args.project_id),
            ("log_file", args.log_file),
        )
        if value
    }

    try:
        asyncio.run(main(config_overrides=overrides or None))
    except RuntimeError:
        # the lifespan already explained the failure on stderr
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    run()
