"""Turn exceptions into `isError` tool results.

Every result reads ``Error (<type>): <message>`` followed by an
``Action:`` line, so the calling agent knows what to try next.
"""

import mcp.types as types

from ...errors import (
    AmbiguousMatchError,
    InvalidStatusError,
    ItemNotFoundError,
    ResolutionError,
    TrackerError,
)


def build_error_response(
    error_type: str, message: str, corrective_action: str
) -> types.CallToolResult:
    """Return an ``isError`` result for *error_type* (``not_found``,
    ``validation_error``, ``lock_timeout``...) with *message* and a
    *corrective_action* the agent can follow.
    """
    error_text = f"Error ({error_type}): {message}\n\nAction: {corrective_action}"

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=error_text)],
        isError=True,
    )


# ---------------------------------------------------------------------------
# Actions per tool family
# ---------------------------------------------------------------------------

_DOMAIN_MESSAGES: dict[str, dict[str, str]] = {
    "sync": {
        "not_found": "Check GITHUB_OWNER, GITHUB_REPO and GITHUB_PROJECT_ID.",
        "validation_error": "Check the task data in tasks.json, then rerun tasks_sync.",
        "server": "Rerun tasks_sync later; already created issues are not duplicated.",
    },
    "item": {
        "not_found": "Check the project id and that the issue still exists.",
        "validation_error": "Check parameter values and retry.",
        "server": "Retry later.",
    },
}

_COMMON_MESSAGES = {
    "authentication": "Set a valid GITHUB_TOKEN and restart the server.",
    "permission_denied": "Grant the token the 'repo' and 'project' scopes.",
}


def translate_tracker_error(
    error: TrackerError, domain: str = "item"
) -> types.CallToolResult:
    """Map a client error onto an error result.

    *domain* is ``"sync"`` or ``"item"`` and picks the wording of the
    not-found, validation and server actions. Auth and permission
    failures read the same everywhere.
    """
    msgs = _DOMAIN_MESSAGES.get(domain, _DOMAIN_MESSAGES["item"])

    match error.kind:
        case "authentication" | "permission_denied" as kind:
            return build_error_response(kind, error.message, _COMMON_MESSAGES[kind])
        case "not_found" | "validation_error" as kind:
            return build_error_response(kind, error.message, msgs[kind])
        case _:
            action = msgs["server"]
            if error.retryable:
                action = "Transient GitHub failure. " + action
            return build_error_response("server_error", error.message, action)


def translate_resolution_error(error: ResolutionError) -> types.CallToolResult:
    """Translate a failed item or status resolution.

    The message already lists suggestions, candidates or the available
    statuses; the action tells the agent how to retry.
    """
    match error:
        case ItemNotFoundError(suggestions=suggestions) if suggestions:
            action = "Retry with one of the suggested items, e.g. its #number."
        case ItemNotFoundError():
            action = "Check the item title, or reference it by #number."
        case AmbiguousMatchError():
            action = "Retry with a more specific title or the #number of the intended item."
        case InvalidStatusError():
            action = "Retry with one of the available statuses."
        case _:
            action = "Rephrase the request and retry."
    return build_error_response(error.kind, str(error), action)
