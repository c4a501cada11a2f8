"""Exception hierarchy shared by the sync core, the resolver and the client.

Every exception keeps the values it was built from as attributes (query,
candidates, available statuses, lock path...) so callers can render a
user-facing message without another lookup.
"""

from __future__ import annotations

from typing import Any


# ---------------------------------------------------------------------------
# Remote tracker errors
# ---------------------------------------------------------------------------


class TrackerError(Exception):
    """Base error for failed GitHub API calls.

    Attributes:
        status_code: HTTP status code when the failure came from a response.
        retryable: ``True`` for transient server-side failures.
    """

    kind = "server_error"

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.retryable = retryable


class AuthenticationError(TrackerError):
    """The token is missing, invalid or expired."""

    kind = "authentication"


class PermissionDeniedError(TrackerError):
    """The token is valid but lacks the required scope."""

    kind = "permission_denied"


class NotFoundError(TrackerError):
    """Repository, issue, project or field does not exist."""

    kind = "not_found"


class ValidationError(TrackerError):
    """GitHub rejected the payload (HTTP 422)."""

    kind = "validation_error"


# ---------------------------------------------------------------------------
# Resolution errors
# ---------------------------------------------------------------------------


class ResolutionError(Exception):
    """Base error for failed item or status resolution."""

    kind = "resolution_error"


class ItemNotFoundError(ResolutionError):
    """No item scored above the minimum threshold."""

    kind = "no_match"

    def __init__(
        self, query: str, suggestions: list[str] | None = None
    ) -> None:
        self.query = query
        self.suggestions = list(suggestions or [])
        if self.suggestions:
            message = (
                f'No item found matching "{query}". '
                f"Did you mean: {', '.join(self.suggestions)}?"
            )
        else:
            message = f'No item found matching "{query}"'
        super().__init__(message)


class AmbiguousMatchError(ResolutionError):
    """Two or more items matched with near-identical scores.

    ``candidates`` holds dicts with ``number``, ``title`` and ``score``.
    """

    kind = "ambiguous_match"

    def __init__(self, query: str, candidates: list[dict[str, Any]]) -> None:
        self.query = query
        self.candidates = list(candidates)
        listing = ", ".join(
            f"#{c['number']}: {c['title']}" for c in self.candidates
        )
        super().__init__(
            f'Multiple items match "{query}": {listing}. '
            "Please be more specific."
        )


class InvalidStatusError(ResolutionError):
    """The requested status is not one of the project's status options."""

    kind = "invalid_status"

    def __init__(self, status: str, available_statuses: list[str]) -> None:
        self.status = status
        self.available_statuses = list(available_statuses)
        super().__init__(
            f'Status "{status}" is not valid. '
            f"Available statuses: {', '.join(self.available_statuses)}"
        )


class RequestParseError(ValueError):
    """A natural-language update request could not be parsed."""

    def __init__(self, text: str) -> None:
        self.text = text
        super().__init__(
            f'Could not parse update request: "{text}". '
            'Expected format: "move [task] to [status]" or '
            '"set [task] as [status]"'
        )


# ---------------------------------------------------------------------------
# Local state errors
# ---------------------------------------------------------------------------


class LockTimeoutError(TimeoutError):
    """The state file lock could not be acquired in time."""

    def __init__(self, lock_path: str, timeout: float) -> None:
        self.lock_path = lock_path
        self.timeout = timeout
        super().__init__(
            f"Could not acquire lock {lock_path} within {timeout:g}s"
        )


class TaskFileError(Exception):
    """The Taskmaster tasks file is missing or malformed."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"{reason}: {path}")
