"""Reader for the Taskmaster ``tasks.json`` file."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from taskmaster_sync.config import DEFAULT_TASKS_PATH
from taskmaster_sync.errors import TaskFileError
from taskmaster_sync.sync.models import LocalTask, TasksFile, TaskStatus

logger = logging.getLogger(__name__)


def read_tasks_file(tasks_path: str | Path = DEFAULT_TASKS_PATH) -> TasksFile:
    """Read and validate a tasks file.

    Args:
        tasks_path: Path to ``tasks.json``, relative to the cwd or absolute.

    Returns:
        The parsed ``TasksFile``.

    Raises:
        TaskFileError: If the file is missing, is not valid JSON, or does
            not match the expected structure.
    """
    path = Path(tasks_path).resolve()
    if not path.exists():
        raise TaskFileError(str(path), "Tasks file not found")

    try:
        with open(path, encoding="utf-8") as fh:
            raw = json.load(fh)
    except json.JSONDecodeError as exc:
        raise TaskFileError(str(path), f"Invalid JSON in tasks file ({exc})") from exc

    try:
        return TasksFile.model_validate(raw)
    except ValidationError as exc:
        raise TaskFileError(
            str(path),
            f"Invalid tasks file format ({exc.error_count()} error(s))",
        ) from exc


def get_all_tasks(tasks_path: str | Path = DEFAULT_TASKS_PATH) -> list[LocalTask]:
    """Return every task in the file, in file order."""
    tasks = read_tasks_file(tasks_path).master.tasks
    logger.debug("Read %d task(s) from %s", len(tasks), tasks_path)
    return tasks


def get_tasks_by_status(
    status: TaskStatus, tasks_path: str | Path = DEFAULT_TASKS_PATH
) -> list[LocalTask]:
    return [t for t in get_all_tasks(tasks_path) if t.status == status]


def get_task_by_id(
    task_id: str, tasks_path: str | Path = DEFAULT_TASKS_PATH
) -> LocalTask | None:
    for task in get_all_tasks(tasks_path):
        if task.id == task_id:
            return task
    return None
