"""MCP tool handlers for Taskmaster sync and project items.

This package contains MCP tool implementations that wrap the sync engine
and the resolvers with async handlers and structured error responses.
"""

from .errors import (
    build_error_response,
    translate_resolution_error,
    translate_tracker_error,
)
from .items import ITEM_SPECS, ITEM_TOOLS
from .links import LINK_SPECS, LINK_TOOLS
from .registry import ToolContext, ToolRegistry, ToolSpec
from .reports import REPORT_SPECS, REPORT_TOOLS
from .sync import SYNC_SPECS, SYNC_TOOLS

ALL_SPECS: list[ToolSpec] = SYNC_SPECS + ITEM_SPECS + LINK_SPECS + REPORT_SPECS

__all__ = [
    "build_error_response",
    "translate_resolution_error",
    "translate_tracker_error",
    # Registry
    "ToolContext",
    "ToolSpec",
    "ToolRegistry",
    # Spec lists
    "ALL_SPECS",
    "SYNC_SPECS",
    "ITEM_SPECS",
    "LINK_SPECS",
    "REPORT_SPECS",
    "SYNC_TOOLS",
    "ITEM_TOOLS",
    "LINK_TOOLS",
    "REPORT_TOOLS",
]
