"""Tests for mcp/server.py -- registry construction, ping and dispatch."""

from unittest.mock import MagicMock

import mcp.types as types
import pytest

from taskmaster_sync.config import Config
from taskmaster_sync.errors import AuthenticationError
from taskmaster_sync.mcp import server
from taskmaster_sync.mcp.tools.registry import ToolContext


def _text(result: types.CallToolResult) -> str:
    content = result.content[0]
    assert isinstance(content, types.TextContent)
    return content.text


@pytest.fixture
def ctx():
    client = MagicMock()
    client.validate_token.return_value = "octocat"
    return ToolContext.create(client, Config(token="t", owner="acme", repo="roadmap"))


@pytest.fixture
def installed(ctx):
    """Install a context and an unfiltered registry as the server globals."""
    server.set_context(ctx)
    server.set_registry(server.build_registry(None))
    yield ctx
    server.set_context(None)
    server.set_registry(None)


class TestBuildRegistry:
    def test_fine_grained_token_gets_every_tool(self):
        names = [t.name for t in server.build_registry(None).list_tools()]
        assert names == [
            "ping",
            "tasks_sync",
            "tasks_sync_status",
            "item_status_update",
            "item_note_add",
            "item_link_pr",
            "project_report",
            "project_shipped",
        ]

    def test_repo_scope_hides_project_tools(self):
        names = {t.name for t in server.build_registry(frozenset({"repo"})).list_tools()}
        assert not names & {"item_status_update", "project_report", "project_shipped"}
        assert {"ping", "tasks_sync", "item_note_add", "item_link_pr"} <= names

    def test_no_scopes_leaves_read_only_tools(self):
        names = [t.name for t in server.build_registry(frozenset()).list_tools()]
        assert names == ["ping", "tasks_sync_status"]


class TestGlobals:
    def test_uninitialized_context(self):
        server.set_context(None)
        with pytest.raises(RuntimeError, match="not initialized"):
            server.get_context()

    def test_uninitialized_registry(self):
        server.set_registry(None)
        with pytest.raises(RuntimeError, match="not initialized"):
            server.get_registry()


class TestHandlers:
    async def test_list_tools(self, installed):
        tools = await server.handle_list_tools()
        assert len(tools) == 5

    async def test_ping(self, installed):
        result = await server.handle_call_tool("ping", {})
        assert not result.isError
        assert _text(result) == "Connected to GitHub as octocat. Repository: acme/roadmap"

    async def test_ping_failure(self, installed):
        installed.client.validate_token.side_effect = AuthenticationError("Bad credentials", 401)
        result = await server.handle_call_tool("ping", None)
        assert result.isError is True
        assert "GitHub connection failed: Bad credentials" in _text(result)

    async def test_unknown_tool(self, installed):
        result = await server.handle_call_tool("wiki_get", {})
        assert result.isError is True
        assert _text(result).startswith("Error (unknown_tool): Unknown tool: wiki_get")

    async def test_filtered_tool_is_unknown(self, installed):
        server.set_registry(server.build_registry(frozenset()))
        result = await server.handle_call_tool("tasks_sync", {})
        assert "Error (unknown_tool)" in _text(result)
