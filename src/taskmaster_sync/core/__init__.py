"""Core GitHub client functionality shared between CLI and MCP server."""

from .async_utils import gather_with_timeout, run_sync
from .client import GitHubClient
from .tracker import TrackerClient

__all__ = ["GitHubClient", "TrackerClient", "gather_with_timeout", "run_sync"]
