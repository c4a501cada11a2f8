"""Pydantic schema for the YAML configuration file.

Each top-level section of ``config.yml`` has a frozen model with defaults,
so ``UnifiedConfig()`` (zero-config) is always valid. ``to_legacy_config``
folds a ``UnifiedConfig`` plus CLI overrides into the flat ``Config``
dataclass the CLI and MCP server run with.

Usage:
    from taskmaster_sync.config_schema import build_config, to_legacy_config

    unified = build_config(load_hierarchical_config())
    config = to_legacy_config(unified, cli_overrides={"dry_run": True})
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field, model_validator

if TYPE_CHECKING:
    from .config import Config

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class GitHubConfig(BaseModel):
    """GitHub connection settings.

    All fields are optional; env vars and CLI args can supply them instead.
    """

    token: str | None = Field(default=None, description="GitHub token")
    owner: str | None = Field(
        default=None, description="Repository owner (user or org)"
    )
    repo: str | None = Field(default=None, description="Repository name")
    project_id: str | None = Field(
        default=None, description="Project (v2) node id"
    )

    model_config = {"frozen": True}


class SyncSettings(BaseModel):
    """Behaviour of the task sync run."""

    tasks_path: str = Field(
        default=".taskmaster/tasks/tasks.json",
        description="Path to the Taskmaster tasks file",
    )
    state_path: str = Field(
        default=".taskmaster/sync-state.json",
        description="Path to the sync state file",
    )
    use_locking: bool = Field(
        default=True, description="Lock the state file during a run"
    )
    cleanup_stale: bool = Field(
        default=False,
        description="Drop mappings for tasks that no longer exist",
    )
    save_after_each_task: bool = Field(
        default=True,
        description="Persist state after every created issue",
    )
    auto_detect_status: bool = Field(
        default=False,
        description="Pick Backlog/Ready from task dependencies",
    )
    initial_status: str | None = Field(
        default=None, description="Fixed initial project status"
    )

    model_config = {"frozen": True}


class MatchingConfig(BaseModel):
    """Thresholds for fuzzy item resolution and extra status aliases."""

    min_score: float = Field(default=0.3, ge=0.0, le=1.0)
    ambiguity_threshold: float = Field(default=0.1, ge=0.0, le=1.0)
    near_certainty: float = Field(default=0.9, ge=0.0, le=1.0)
    status_aliases: dict[str, str] = Field(default_factory=dict)

    model_config = {"frozen": True}


class StatusFieldMapping(BaseModel):
    """Project status option names for each workflow stage."""

    backlog: str = "Backlog"
    ready: str = "Ready"
    in_progress: str = "In Progress"
    blocked: str = "Blocked"
    done: str = "Done"

    model_config = {"frozen": True}


class LabelConfig(BaseModel):
    """Prefixes for generated issue labels."""

    priority_prefix: str = "priority:"

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level configuration aggregating every section."""

    github: GitHubConfig = Field(default_factory=GitHubConfig)
    sync: SyncSettings = Field(default_factory=SyncSettings)
    matching: MatchingConfig = Field(default_factory=MatchingConfig)
    status_field_mapping: StatusFieldMapping = Field(
        default_factory=StatusFieldMapping
    )
    labels: LabelConfig = Field(default_factory=LabelConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}

    @model_validator(mode="before")
    @classmethod
    def _drop_null_sections(cls, data):
        # "sync:" with every key commented out parses as None
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from ``load_hierarchical_config()``.

    Args:
        raw_data: Merged configuration dictionary.

    Returns:
        Validated ``UnifiedConfig`` instance.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)


def yaml_fallbacks(unified: UnifiedConfig) -> dict:
    """Flatten the ``github`` and ``sync`` sections for ``load_config()``."""
    fallbacks = {
        k: v
        for k, v in unified.github.model_dump().items()
        if v is not None
    }
    fallbacks["tasks_path"] = unified.sync.tasks_path
    fallbacks["state_path"] = unified.sync.state_path
    return fallbacks


# ---------------------------------------------------------------------------
# Adapter: UnifiedConfig -> Config dataclass
# ---------------------------------------------------------------------------


def to_legacy_config(
    unified: UnifiedConfig,
    cli_overrides: dict | None = None,
) -> Config:
    """Convert a ``UnifiedConfig`` into the ``Config`` dataclass.

    Precedence: CLI override > unified config value > default. Not
    validated; run ``validate_config()`` separately if needed.

    Args:
        unified: The unified config produced by ``build_config()``.
        cli_overrides: Optional dict with keys token, owner, repo,
            project_id, dry_run, debug, tasks_path, state_path.

    Returns:
        ``Config`` dataclass instance.
    """
    from .config import Config

    overrides = cli_overrides or {}

    return Config(
        token=overrides.get("token") or unified.github.token or "",
        owner=overrides.get("owner") or unified.github.owner or "",
        repo=overrides.get("repo") or unified.github.repo or "",
        project_id=overrides.get("project_id")
        or unified.github.project_id,
        dry_run=bool(overrides.get("dry_run", False)),
        debug=bool(overrides.get("debug", False)),
        tasks_path=overrides.get("tasks_path") or unified.sync.tasks_path,
        state_path=overrides.get("state_path") or unified.sync.state_path,
    )
