"""
Locate, read and merge ``config.yml`` files.

Lookup order (highest precedence first):

1. the file named by ``TASKMASTER_SYNC_CONFIG``
2. ``.taskmaster_sync/config.yml`` (or ``config.yaml``) under the CWD
3. ``~/.config/taskmaster_sync/config.yml``

Top-level sections of a higher-precedence file replace whole sections of
lower ones. String values may reference the environment as ``${VAR}`` or
``${VAR:-fallback}``.

Usage:
    from taskmaster_sync.config_loader import load_hierarchical_config

    raw = load_hierarchical_config()
"""

import logging
import os
import re
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "TASKMASTER_SYNC_CONFIG"
PROJECT_CONFIG_DIR = ".taskmaster_sync"
GLOBAL_CONFIG_DIR = Path(".config") / "taskmaster_sync"

# ${NAME} or ${NAME:-fallback}
_ENV_REF = re.compile(r"\$\{([^}:]+?)(?::-(.*?))?\}")


# ---------------------------------------------------------------------------
# ${VAR} expansion
# ---------------------------------------------------------------------------


def interpolate_env_vars(value: str) -> str:
    """Expand ``${VAR}`` / ``${VAR:-fallback}`` references in *value*.

    Unset and empty variables both take the fallback (``""`` if none).
    """
    return _ENV_REF.sub(
        lambda m: os.environ.get(m.group(1)) or m.group(2) or "", value
    )


def _expand(node: Any) -> Any:
    match node:
        case str():
            return interpolate_env_vars(node)
        case dict():
            return {key: _expand(val) for key, val in node.items()}
        case list():
            return [_expand(val) for val in node]
        case _:
            return node


# ---------------------------------------------------------------------------
# Lookup
# ---------------------------------------------------------------------------


def _candidate_paths() -> Iterator[Path]:
    explicit = os.environ.get(CONFIG_ENV_VAR)
    if explicit:
        yield Path(explicit).expanduser().resolve()
    project_dir = Path.cwd() / PROJECT_CONFIG_DIR
    yield project_dir / "config.yml"
    yield project_dir / "config.yaml"
    yield Path.home() / GLOBAL_CONFIG_DIR / "config.yml"


def discover_config_files() -> list[Path]:
    """Return the config files that exist, highest precedence first."""
    return [path for path in _candidate_paths() if path.exists()]


def resolve_config_path() -> Path:
    """Return the file ``ensure_config()`` would use.

    That is the highest-precedence existing file, else the project path
    ``.taskmaster_sync/config.yml`` under the CWD.
    """
    found = discover_config_files()
    return found[0] if found else Path.cwd() / PROJECT_CONFIG_DIR / "config.yml"


_STARTER_CONFIG = """\
# taskmaster-sync configuration
#
# Environment variables override the github section:
#   GITHUB_TOKEN, GITHUB_OWNER, GITHUB_REPO, GITHUB_PROJECT_ID, DRY_RUN
#
# github:
#   token: ${GITHUB_TOKEN}
#   owner: my-org
#   repo: my-repo
#   project_id: PVT_kwDOA...
#
# sync:
#   tasks_path: .taskmaster/tasks/tasks.json
#   state_path: .taskmaster/sync-state.json
#   use_locking: true
#   cleanup_stale: false
#   save_after_each_task: true
#   auto_detect_status: false
#   initial_status: null
#
# matching:
#   min_score: 0.3
#   ambiguity_threshold: 0.1
#   near_certainty: 0.9
#   status_aliases:
#     shipped: done
#
# status_field_mapping:
#   backlog: Backlog
#   ready: Ready
#   in_progress: In Progress
#   blocked: Blocked
#   done: Done
#
# labels:
#   priority_prefix: "priority:"
#
# logging:
#   level: INFO
#   file: null
"""


def ensure_config(target: Path | None = None) -> Path:
    """Return the active config file, creating a commented starter if none.

    Args:
        target: Where to write the starter. Defaults to
            ``resolve_config_path()``.
    """
    found = discover_config_files()
    if found:
        logger.debug("Using existing config %s", found[0])
        return found[0]

    path = target or resolve_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(_STARTER_CONFIG, encoding="utf-8")
    logger.info("Wrote starter config to %s", path)
    return path


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def _read_yaml(path: Path) -> dict[str, Any]:
    logger.debug("Reading config %s", path)
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, yaml.YAMLError):
        logger.exception("Could not read config file %s", path)
        raise

    if data is None:
        return {}
    if not isinstance(data, dict):
        logger.warning(
            "Ignoring %s: top level is a %s, not a mapping",
            path,
            type(data).__name__,
        )
        return {}
    return data


def load_hierarchical_config() -> dict[str, Any]:
    """Merge every discovered config file into one dict.

    Returns ``{}`` when there is no config file at all.
    """
    paths = discover_config_files()
    if not paths:
        logger.debug("No config file found; using built-in defaults")
        return {}

    merged: dict[str, Any] = {}
    # lowest precedence first, so later updates win
    for path in reversed(paths):
        merged.update(_read_yaml(path))
    return _expand(merged)
