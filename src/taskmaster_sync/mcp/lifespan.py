"""Startup and shutdown of the MCP server session."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from dotenv import load_dotenv

from ..config import Config, load_config
from ..config_loader import discover_config_files, load_hierarchical_config
from ..config_schema import UnifiedConfig, build_config, yaml_fallbacks
from ..core.async_utils import run_sync
from ..core.client import GitHubClient

logger = logging.getLogger(__name__)

_REQUIRED_VARS_HINT = "Ensure GITHUB_TOKEN, GITHUB_OWNER, GITHUB_REPO are set."


def _stderr_print(msg: str) -> None:
    """Write a status line to stderr; stdout is reserved for JSON-RPC."""
    print(msg, file=sys.stderr, flush=True)


def _load_runtime_config(
    overrides: dict[str, Any],
) -> tuple[Config, UnifiedConfig, list[str]]:
    """Resolve Config and YAML settings, and describe where they came from."""
    load_dotenv()

    settings = UnifiedConfig()
    fallbacks: dict[str, Any] | None = None
    sources: list[str] = []

    config_files = discover_config_files()
    if config_files:
        settings = build_config(load_hierarchical_config())
        fallbacks = yaml_fallbacks(settings)
        sources.append(f"config file: {config_files[0]}")

    config = load_config(
        owner=overrides.get("owner"),
        repo=overrides.get("repo"),
        project_id=overrides.get("project_id"),
        debug=overrides.get("debug", False),
        yaml_fallbacks=fallbacks,
    )
    if overrides:
        sources.append("CLI arguments")
    sources.append("environment variables")
    return config, settings, sources


@asynccontextmanager
async def server_lifespan(
    config_overrides: dict[str, Any] | None = None,
) -> AsyncIterator[dict[str, Any]]:
    """
    Load configuration and authenticate before serving any tool call.

    Config precedence is CLI overrides > env vars > .env > config.yml >
    defaults. The token is checked once against ``GET /user``; its
    classic scopes (if reported) are left on ``client.token_scopes`` for
    tool filtering.

    Args:
        config_overrides: owner / repo / project_id from the command line.

    Yields:
        ``{"client": GitHubClient, "config": Config, "settings": UnifiedConfig}``

    Raises:
        RuntimeError: Missing or invalid configuration, or a rejected token.
    """
    logger.info("Starting MCP server")
    _stderr_print("Taskmaster Sync MCP Server starting...")

    try:
        config, settings, sources = _load_runtime_config(config_overrides or {})
    except ValueError as e:
        logger.error("Invalid configuration: %s", e)
        _stderr_print(f"ERROR: Configuration error: {e}")
        _stderr_print(f"  {_REQUIRED_VARS_HINT}")
        raise RuntimeError(f"Configuration error: {e}. {_REQUIRED_VARS_HINT}") from e

    source_desc = ", ".join(sources)
    logger.info("Config sources: %s; repository %s/%s", source_desc, config.owner, config.repo)
    _stderr_print(f"  Configuration loaded from: {source_desc}")
    _stderr_print(f"  Repository: {config.owner}/{config.repo}")
    if config.project_id:
        _stderr_print(f"  Project: {config.project_id}")

    _stderr_print("  Validating GitHub token...")
    client = GitHubClient(config)
    try:
        login = await run_sync(client.validate_token)
    except Exception as e:
        logger.error("Token validation failed: %s", e)
        _stderr_print("ERROR: GitHub authentication failed.")
        _stderr_print(f"  {e}")
        raise RuntimeError(
            f"GitHub authentication failed: {e}. Check GITHUB_TOKEN."
        ) from e

    logger.info("Authenticated as %s", login)
    _stderr_print(f"  Authenticated as {login}")
    if client.token_scopes is not None:
        scopes = ", ".join(sorted(client.token_scopes)) or "(none)"
        _stderr_print(f"  Token scopes: {scopes}")
    _stderr_print("Server ready. Waiting for MCP client connection...")

    try:
        yield {"client": client, "config": config, "settings": settings}
    finally:
        logger.info("MCP server stopped")
        _stderr_print("Taskmaster Sync MCP Server shutting down.")
