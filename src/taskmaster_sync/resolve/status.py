"""Resolution of free-text status names to project status options.

Lookups are exact (case-insensitive): either the name is one of the
project's options, or an alias maps it onto one. Nothing else is accepted.
"""

from __future__ import annotations

from typing import Iterator, Mapping

from taskmaster_sync.errors import InvalidStatusError

DEFAULT_STATUS_ALIASES: Mapping[str, str] = {
    # todo
    "todo": "todo",
    "to do": "todo",
    "backlog": "todo",
    "new": "todo",
    "open": "todo",
    "not started": "todo",
    # in progress
    "in progress": "in progress",
    "in-progress": "in progress",
    "inprogress": "in progress",
    "started": "in progress",
    "working": "in progress",
    "active": "in progress",
    "doing": "in progress",
    "wip": "in progress",
    # ready
    "ready": "ready",
    # done
    "done": "done",
    "complete": "done",
    "completed": "done",
    "finished": "done",
    "closed": "done",
    "resolved": "done",
    # blocked
    "blocked": "blocked",
    "on hold": "blocked",
    "waiting": "blocked",
    "paused": "blocked",
}

BLOCKED_STATUSES = frozenset({"blocked", "on hold", "waiting", "paused"})


class StatusAliasTable:
    """Mutable alias -> status table owned by its caller.

    Each table is seeded with ``DEFAULT_STATUS_ALIASES`` (unless *aliases*
    is given) and never shares storage with other tables.
    """

    def __init__(self, aliases: Mapping[str, str] | None = None) -> None:
        source = DEFAULT_STATUS_ALIASES if aliases is None else aliases
        self._aliases = {
            k.strip().lower(): v.strip().lower() for k, v in source.items()
        }

    def add(self, alias: str, status: str) -> None:
        self._aliases[alias.strip().lower()] = status.strip().lower()

    def remove(self, alias: str) -> bool:
        """Remove *alias*; return whether it was present."""
        return self._aliases.pop(alias.strip().lower(), None) is not None

    def get(self, alias: str) -> str | None:
        return self._aliases.get(alias.strip().lower())

    def copy(self) -> StatusAliasTable:
        return StatusAliasTable(self._aliases)

    def __contains__(self, alias: object) -> bool:
        return isinstance(alias, str) and alias.strip().lower() in self._aliases

    def __iter__(self) -> Iterator[str]:
        return iter(self._aliases)

    def __len__(self) -> int:
        return len(self._aliases)


def resolve_status(
    name: str,
    available: Mapping[str, str],
    aliases: StatusAliasTable | None = None,
) -> tuple[str, str]:
    """Resolve *name* against a project's status options.

    Args:
        name: Status as typed by the user (e.g. ``"WIP"``).
        available: Lowercase status name -> option id.
        aliases: Alias table; a fresh default table when omitted.

    Returns:
        ``(status_name, option_id)``.

    Raises:
        InvalidStatusError: If neither a direct nor an aliased hit exists.
    """
    normalized = name.strip().lower()

    option_id = available.get(normalized)
    if option_id is not None:
        return normalized, option_id

    aliases = aliases if aliases is not None else StatusAliasTable()
    target = aliases.get(normalized)
    if target is not None and target in available:
        return target, available[target]

    raise InvalidStatusError(name, list(available.keys()))


def is_blocked_status(status: str) -> bool:
    return status.strip().lower() in BLOCKED_STATUSES
