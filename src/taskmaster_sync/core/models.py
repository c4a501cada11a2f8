"""Pydantic models for data exchanged with GitHub.

- ``IssueInput``: payload for creating an issue.
- ``IssueRef``: what the tracker returns for a created issue.
- ``CommentRef``: a created issue comment.
- ``TrackedItem``: read-only snapshot of an issue or PR, optionally as a
  project item.
- ``ProjectContext``: a project's id, status field id and status options.
- ``PullRequestRef``: an open or fetched pull request.
- ``LinkedPullRequest``: a pull request cross-referenced from an issue.

All models are frozen.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class IssueInput(BaseModel):
    """Fields sent to ``POST /repos/{owner}/{repo}/issues``."""

    title: str
    body: str
    labels: list[str] = []
    assignees: list[str] = []
    milestone: int | None = None

    model_config = {"frozen": True}


class IssueRef(BaseModel):
    """A created (or fetched) issue.

    Attributes:
        number: Issue number within the repository.
        url: Browser URL of the issue.
        node_id: GraphQL node id, needed to add the issue to a project.
    """

    number: int
    url: str
    node_id: str
    title: str = ""
    state: str = "open"

    model_config = {"frozen": True}


class CommentRef(BaseModel):
    """A created issue comment."""

    id: int
    url: str
    body: str
    author: str = ""
    created_at: str = ""

    model_config = {"frozen": True}


class TrackedItem(BaseModel):
    """Snapshot of an issue or pull request as seen by the resolver.

    Attributes:
        number: Issue or PR number.
        title: Current title.
        state: ``"open"`` or ``"closed"``.
        labels: Label names.
        closed_at: ISO 8601 close timestamp, if closed.
        item_id: Project item node id, when read from a project.
        url: Browser URL.
        status: Current project status option name, if any.
    """

    number: int
    title: str
    state: Literal["open", "closed"] = "open"
    labels: list[str] = Field(default_factory=list)
    closed_at: str | None = None
    item_id: str | None = None
    url: str | None = None
    status: str | None = None

    model_config = {"frozen": True}


class ProjectContext(BaseModel):
    """A GitHub Project (v2) and its single-select Status field.

    ``status_options`` maps the lowercase option name to its option id.
    """

    project_id: str
    title: str = ""
    status_field_id: str
    status_options: dict[str, str]

    model_config = {"frozen": True}

    def status_names(self) -> list[str]:
        """Return the available status names (lowercase), in field order."""
        return list(self.status_options.keys())


class PullRequestRef(BaseModel):
    """A pull request as read from ``/repos/{owner}/{repo}/pulls``."""

    number: int
    title: str
    url: str
    state: Literal["open", "closed", "merged"] = "open"
    branch: str = ""
    body: str = ""
    author: str = ""

    model_config = {"frozen": True}


class LinkedPullRequest(BaseModel):
    """A pull request that references an issue.

    Attributes:
        link_type: ``"closing"`` when the PR closes the issue on merge,
            ``"referenced"`` for a plain mention.
        linked_at: ISO 8601 time of the cross-reference event.
    """

    number: int
    title: str
    url: str
    state: Literal["open", "closed", "merged"] = "open"
    link_type: Literal["referenced", "closing"] = "referenced"
    linked_at: str = ""
    linked_by: str | None = None

    model_config = {"frozen": True}
