"""Tool registration, scope filtering and dispatch.

Each tool is a ``ToolSpec``: its MCP definition, the classic OAuth scopes
the GitHub token needs for it, and an async ``(ctx, args)`` handler. The
``ToolRegistry`` drops specs the token cannot use when it is built, so a
token without ``project`` never advertises status updates. Exceptions
raised by handlers become ``isError`` results carrying a corrective
action for the agent.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field

import mcp.types as types

from ...config import Config
from ...config_schema import UnifiedConfig
from ...core.client import GitHubClient
from ...errors import (
    LockTimeoutError,
    RequestParseError,
    ResolutionError,
    TaskFileError,
    TrackerError,
)
from ...resolve.matcher import MatcherConfig
from ...resolve.status import StatusAliasTable
from .errors import (
    build_error_response,
    translate_resolution_error,
    translate_tracker_error,
)

logger = logging.getLogger(__name__)


@dataclass
class ToolContext:
    """Per-server state handed to every tool handler.

    Attributes:
        client: Authenticated GitHub client.
        config: Resolved runtime configuration.
        settings: Full YAML settings (sync, matching, status mapping...).
        aliases: Status alias table owned by this server instance.
    """

    client: GitHubClient
    config: Config
    settings: UnifiedConfig = field(default_factory=UnifiedConfig)
    aliases: StatusAliasTable = field(default_factory=StatusAliasTable)

    @classmethod
    def create(
        cls,
        client: GitHubClient,
        config: Config,
        settings: UnifiedConfig | None = None,
    ) -> ToolContext:
        """Build a context, seeding aliases from ``matching.status_aliases``."""
        settings = settings or UnifiedConfig()
        aliases = StatusAliasTable()
        for alias, status in settings.matching.status_aliases.items():
            aliases.add(alias, status)
        return cls(client=client, config=config, settings=settings, aliases=aliases)

    @property
    def matcher_config(self) -> MatcherConfig:
        m = self.settings.matching
        return MatcherConfig(
            min_score=m.min_score,
            ambiguity_threshold=m.ambiguity_threshold,
            near_certainty=m.near_certainty,
        )


Handler = Callable[[ToolContext, dict], Awaitable[types.CallToolResult]]


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """One tool as the registry sees it.

    Attributes:
        tool: MCP definition (name, description, input schema).
        scopes: Token scopes the tool needs; empty means none.
        handler: Coroutine function taking ``(ctx, args)``.
    """

    tool: types.Tool
    scopes: frozenset[str]
    handler: Handler


def _permitted(spec: ToolSpec, granted: frozenset[str] | None) -> bool:
    # fine-grained tokens report no scopes at all
    if granted is None or not spec.scopes:
        return True
    return spec.scopes <= granted


class ToolRegistry:
    """The tools one server session exposes, keyed by name.

    Args:
        specs: Candidate tools, in the order ``list_tools`` reports them.
        granted_scopes: The token's scopes, or ``None`` to keep every spec.
    """

    def __init__(
        self,
        specs: Iterable[ToolSpec],
        granted_scopes: frozenset[str] | None = None,
    ):
        self._specs: dict[str, ToolSpec] = {
            spec.tool.name: spec
            for spec in specs
            if _permitted(spec, granted_scopes)
        }

    def list_tools(self) -> list[types.Tool]:
        return [spec.tool for spec in self._specs.values()]

    def tool_count(self) -> int:
        return len(self._specs)

    async def call_tool(
        self,
        name: str,
        arguments: dict | None,
        ctx: ToolContext,
    ) -> types.CallToolResult:
        """Run the handler registered as *name*.

        Handler exceptions never escape: GitHub errors, resolution
        failures, lock and tasks-file problems, bad arguments and anything
        unexpected all come back as ``isError`` results.

        Raises:
            ValueError: *name* is unknown or was filtered out by scope.
        """
        spec = self._specs.get(name)
        if spec is None:
            raise ValueError(f"Unknown tool: {name}")

        try:
            return await spec.handler(ctx, arguments or {})
        except TrackerError as e:
            logger.warning("GitHub error in %s: %s", name, e.message)
            return translate_tracker_error(e, _error_domain(name))
        except ResolutionError as e:
            logger.info("Could not resolve request in %s: %s", name, e)
            return translate_resolution_error(e)
        except LockTimeoutError as e:
            return build_error_response(
                "lock_timeout",
                str(e),
                "Another sync is running. Wait for it to finish, or remove "
                f"{e.lock_path} if no sync process is alive.",
            )
        except TaskFileError as e:
            return build_error_response(
                "not_found",
                str(e),
                "Check TASKMASTER_TASKS_PATH or sync.tasks_path in config.yml.",
            )
        except RequestParseError as e:
            return build_error_response(
                "parse_error",
                str(e),
                "Rephrase as 'move <item> to <status>' or pass query and "
                "status separately.",
            )
        except ValueError as e:
            return build_error_response(
                "validation_error", str(e), "Fix the arguments and retry."
            )
        except Exception as e:
            logger.exception("Tool %s failed", name)
            return build_error_response(
                "server_error", str(e), "Retry later or check the server log."
            )


def _error_domain(name: str) -> str:
    """``"sync"`` for the ``tasks_*`` tools, ``"item"`` for the rest."""
    return "sync" if name.startswith("tasks_") else "item"
