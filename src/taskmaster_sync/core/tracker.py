"""Protocol for the remote tracker consumed by the sync and resolve layers.

``GitHubClient`` implements it against the GitHub REST and GraphQL APIs;
tests substitute in-memory fakes.
"""

from __future__ import annotations

from typing import Protocol

from .models import (
    CommentRef,
    IssueInput,
    IssueRef,
    LinkedPullRequest,
    ProjectContext,
    PullRequestRef,
    TrackedItem,
)


class TrackerClient(Protocol):
    """Operations the core needs from an issue tracker."""

    def create_issue(
        self, owner: str, repo: str, payload: IssueInput
    ) -> IssueRef:
        """Create an issue and return its reference.

        Raises:
            AuthenticationError, PermissionDeniedError, NotFoundError,
            ValidationError: Not retried at this layer.
        """
        ...  # pragma: no cover

    def get_issue(self, owner: str, repo: str, number: int) -> IssueRef:
        """Fetch one issue by number.

        Raises:
            NotFoundError: No issue with that number in ``owner/repo``.
        """
        ...  # pragma: no cover

    def add_item_to_project(self, project_id: str, content_id: str) -> str:
        """Add an issue/PR node to a project; return the project item id."""
        ...  # pragma: no cover

    def set_item_field(
        self,
        project_id: str,
        item_id: str,
        field_id: str,
        option_id: str,
    ) -> None:
        """Set a single-select field value on a project item."""
        ...  # pragma: no cover

    def list_project_items(self, project_id: str) -> list[TrackedItem]:
        """Return every item of a project (pagination handled inside)."""
        ...  # pragma: no cover

    def get_project(self, project_id: str) -> ProjectContext:
        """Return the project's status field and options."""
        ...  # pragma: no cover

    def list_repo_issues(self, owner: str, repo: str) -> list[TrackedItem]:
        """Return the open issues of a repository."""
        ...  # pragma: no cover

    def add_comment(
        self, owner: str, repo: str, number: int, body: str
    ) -> CommentRef:
        """Post a comment on an issue or PR."""
        ...  # pragma: no cover

    def get_pull_request(
        self, owner: str, repo: str, number: int
    ) -> PullRequestRef:
        """Fetch one pull request by number.

        Raises:
            NotFoundError: No pull request with that number.
        """
        ...  # pragma: no cover

    def list_open_pull_requests(
        self, owner: str, repo: str
    ) -> list[PullRequestRef]:
        """Return the open pull requests of a repository."""
        ...  # pragma: no cover

    def list_linked_pull_requests(
        self, owner: str, repo: str, number: int
    ) -> list[LinkedPullRequest]:
        """Return pull requests that cross-reference issue ``#number``."""
        ...  # pragma: no cover
