"""Runtime configuration for the sync CLI and MCP server.

Reads GitHub settings from CLI args, environment variables, .env files,
and YAML config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    GITHUB_TOKEN: Personal access token with repo and project scopes (required)
    GITHUB_OWNER: Repository owner, user or organisation (required)
    GITHUB_REPO: Repository name (required)
    GITHUB_PROJECT_ID: Project (v2) node id to add issues to (optional)
    DRY_RUN: ``true`` to map tasks without creating issues (optional)
    TASKMASTER_TASKS_PATH: Path to tasks.json (optional)
    TASKMASTER_STATE_PATH: Path to sync-state.json (optional)
"""

import logging
import os
import re
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_TASKS_PATH = ".taskmaster/tasks/tasks.json"
DEFAULT_STATE_PATH = ".taskmaster/sync-state.json"

_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


@dataclass
class Config:
    token: str
    owner: str
    repo: str
    project_id: str | None = None
    dry_run: bool = False
    debug: bool = False
    tasks_path: str = DEFAULT_TASKS_PATH
    state_path: str = DEFAULT_STATE_PATH


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If the token is blank or owner/repo are not valid
            GitHub names.
    """
    config.token = config.token.strip()
    config.owner = config.owner.strip()
    config.repo = config.repo.strip()

    if not config.token:
        raise ValueError(
            "GitHub token cannot be empty. Set GITHUB_TOKEN environment variable."
        )

    if not _NAME_PATTERN.match(config.owner):
        raise ValueError(
            f"Invalid GitHub owner '{config.owner}': "
            "use letters, digits, '-', '_' or '.'"
        )

    if not _NAME_PATTERN.match(config.repo):
        raise ValueError(
            f"Invalid GitHub repo '{config.repo}': "
            "use letters, digits, '-', '_' or '.'"
        )

    if config.project_id is not None:
        config.project_id = config.project_id.strip() or None

    if config.dry_run:
        logger.info("Dry run enabled: no issues will be created")


def get_bool_env(key: str) -> bool | None:
    """Return True/False from env var, or None if unset."""
    val = os.getenv(key)
    if val is None:
        return None
    return val.lower() in ("true", "1", "yes", "on")


def load_config(
    token: str | None = None,
    owner: str | None = None,
    repo: str | None = None,
    project_id: str | None = None,
    dry_run: bool = False,
    debug: bool = False,
    tasks_path: str | None = None,
    state_path: str | None = None,
    yaml_fallbacks: dict | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        token: Override GitHub token.
        owner: Override repository owner.
        repo: Override repository name.
        project_id: Override project node id.
        dry_run: Dry-run flag from the CLI.
        debug: Enable debug logging (CLI flag).
        tasks_path: Override path to tasks.json.
        state_path: Override path to the sync state file.
        yaml_fallbacks: Dict of values from the YAML config ``github`` and
            ``sync`` sections, used when CLI arg and env var are unset.

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If token, owner or repo is missing after checking all
            sources.
    """
    fb = yaml_fallbacks or {}

    final_token = token or os.getenv("GITHUB_TOKEN") or fb.get("token")
    if not final_token:
        raise ValueError(
            "GITHUB_TOKEN environment variable is required "
            "(or add 'token' under github: in config.yml)."
        )

    final_owner = owner or os.getenv("GITHUB_OWNER") or fb.get("owner")
    if not final_owner:
        raise ValueError(
            "GITHUB_OWNER environment variable is required "
            "(or pass --owner, or add 'owner' to config.yml)."
        )

    final_repo = repo or os.getenv("GITHUB_REPO") or fb.get("repo")
    if not final_repo:
        raise ValueError(
            "GITHUB_REPO environment variable is required "
            "(or pass --repo, or add 'repo' to config.yml)."
        )

    final_project = (
        project_id
        or os.getenv("GITHUB_PROJECT_ID")
        or fb.get("project_id")
    )

    if dry_run:
        final_dry_run = True
    else:
        env_dry_run = get_bool_env("DRY_RUN")
        if env_dry_run is not None:
            final_dry_run = env_dry_run
        else:
            final_dry_run = bool(fb.get("dry_run", False))

    if debug:
        final_debug = True
    else:
        env_debug = get_bool_env("TASKMASTER_SYNC_DEBUG")
        final_debug = bool(env_debug) if env_debug is not None else False

    final_tasks = (
        tasks_path
        or os.getenv("TASKMASTER_TASKS_PATH")
        or fb.get("tasks_path")
        or DEFAULT_TASKS_PATH
    )
    final_state = (
        state_path
        or os.getenv("TASKMASTER_STATE_PATH")
        or fb.get("state_path")
        or DEFAULT_STATE_PATH
    )

    config = Config(
        token=final_token,
        owner=final_owner,
        repo=final_repo,
        project_id=final_project,
        dry_run=final_dry_run,
        debug=final_debug,
        tasks_path=final_tasks,
        state_path=final_state,
    )

    validate_config(config)

    return config
