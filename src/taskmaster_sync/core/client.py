import logging
import re
import threading
import time
from typing import Any

import requests

from ..config import Config
from ..errors import (
    AuthenticationError,
    NotFoundError,
    PermissionDeniedError,
    TrackerError,
    ValidationError,
)
from .models import (
    CommentRef,
    IssueInput,
    IssueRef,
    LinkedPullRequest,
    ProjectContext,
    PullRequestRef,
    TrackedItem,
)
from .queries import (
    ADD_PROJECT_ITEM,
    GET_PROJECT,
    GET_PROJECT_ITEMS,
    UPDATE_PROJECT_ITEM_FIELD,
)

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
GITHUB_GRAPHQL_URL = "https://api.github.com/graphql"

MAX_RETRIES = 3
BASE_DELAY_SECONDS = 1.0
PROJECT_CACHE_TTL = 60 * 60
PAGE_SIZE = 100

_RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})


class GitHubClient:
    """GitHub REST + GraphQL client implementing ``TrackerClient``."""

    def __init__(self, config: Config):
        self.config = config
        self._thread_local = threading.local()
        self._project_cache: dict[str, tuple[float, ProjectContext]] = {}
        self.token_scopes: frozenset[str] | None = None

    @property
    def session(self) -> requests.Session:
        """The current thread's session."""
        return self._get_session()

    def _get_session(self) -> requests.Session:
        """Get or create a thread-local requests.Session."""
        if not hasattr(self._thread_local, "session"):
            self._thread_local.session = self._create_session()
        return self._thread_local.session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update(
            {
                "Authorization": f"Bearer {self.config.token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            }
        )
        return session

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _request(
        self, method: str, url: str, retry: bool = True, **kwargs
    ) -> requests.Response:
        """Send a request, retrying transient failures with backoff.

        Pass ``retry=False`` for non-idempotent calls (creating an issue
        or comment): a timed-out POST may still have succeeded, and
        resending it would create a duplicate.

        Raises:
            TrackerError: (or a subclass) for any non-2xx final response
                or transport failure.
        """
        session = self._get_session()
        attempts = MAX_RETRIES if retry else 1

        for attempt in range(attempts):
            try:
                response = session.request(
                    method, url, timeout=(10, 60), **kwargs
                )
            except requests.Timeout as e:
                error = TrackerError(
                    f"GitHub request timed out: {e}", retryable=True
                )
            except requests.ConnectionError as e:
                error = TrackerError(
                    f"Connection to GitHub failed: {e}", retryable=True
                )
            except requests.RequestException as e:
                raise TrackerError(f"GitHub request failed: {e}") from e
            else:
                if response.ok:
                    return response
                error = self._error_from_response(response)
                if not error.retryable:
                    raise error

            if attempt == attempts - 1:
                raise error

            delay = BASE_DELAY_SECONDS * (2**attempt)
            logger.warning(
                "%s %s failed (%s), retrying in %.0fs",
                method,
                url,
                error,
                delay,
            )
            time.sleep(delay)

        raise AssertionError("unreachable")  # pragma: no cover

    @staticmethod
    def _error_from_response(response: requests.Response) -> TrackerError:
        status = response.status_code
        try:
            detail = response.json().get("message", "")
        except ValueError:
            detail = response.text[:200]

        match status:
            case 401:
                return AuthenticationError(
                    "Authentication failed. Check your GitHub token.", 401
                )
            case 403 if "rate limit" in detail.lower():
                return TrackerError(
                    "Rate limited. Please wait and try again.",
                    403,
                    retryable=True,
                )
            case 403:
                return PermissionDeniedError(
                    "Access denied. Ensure your token has repo and project scopes.",
                    403,
                )
            case 404:
                return NotFoundError(
                    f"Not found: {response.url}", 404
                )
            case 422:
                return ValidationError(f"Invalid data: {detail}", 422)
            case s if s in _RETRYABLE_STATUS:
                return TrackerError(
                    f"GitHub server error {s}: {detail}", s, retryable=True
                )
            case _:
                return TrackerError(
                    f"GitHub request failed ({status}): {detail}", status
                )

    def graphql(self, query: str, variables: dict[str, Any]) -> dict:
        """Execute a GraphQL document and return its ``data`` object.

        Raises:
            NotFoundError: When GraphQL reports a NOT_FOUND error.
            TrackerError: For any other GraphQL error.
        """
        response = self._request(
            "POST",
            GITHUB_GRAPHQL_URL,
            json={"query": query, "variables": variables},
        )
        payload = response.json()
        errors = payload.get("errors")
        if errors:
            first = errors[0]
            message = first.get("message", "GraphQL error")
            if first.get("type") == "NOT_FOUND":
                raise NotFoundError(message)
            if first.get("type") == "FORBIDDEN":
                raise PermissionDeniedError(message)
            raise TrackerError(message)
        return payload.get("data") or {}

    # ------------------------------------------------------------------
    # Issues (REST)
    # ------------------------------------------------------------------

    def create_issue(
        self, owner: str, repo: str, payload: IssueInput
    ) -> IssueRef:
        """Create an issue in ``owner/repo``.

        Sent once: GitHub may have created the issue even when the
        response is lost, so a failure here is never retried.
        """
        response = self._request(
            "POST",
            f"{GITHUB_API_URL}/repos/{owner}/{repo}/issues",
            retry=False,
            json=payload.model_dump(exclude_none=True),
        )
        data = response.json()
        logger.info("Created issue #%s in %s/%s", data["number"], owner, repo)
        return IssueRef(
            number=data["number"],
            url=data["html_url"],
            node_id=data["node_id"],
            title=data.get("title", payload.title),
            state=data.get("state", "open"),
        )

    def get_issue(self, owner: str, repo: str, number: int) -> IssueRef:
        """Fetch a single issue by number."""
        response = self._request(
            "GET", f"{GITHUB_API_URL}/repos/{owner}/{repo}/issues/{number}"
        )
        data = response.json()
        return IssueRef(
            number=data["number"],
            url=data["html_url"],
            node_id=data["node_id"],
            title=data.get("title", ""),
            state=data.get("state", "open"),
        )

    def list_repo_issues(self, owner: str, repo: str) -> list[TrackedItem]:
        """Return the open issues of ``owner/repo`` (PRs excluded)."""
        items: list[TrackedItem] = []
        page = 1
        while True:
            response = self._request(
                "GET",
                f"{GITHUB_API_URL}/repos/{owner}/{repo}/issues",
                params={"state": "open", "per_page": PAGE_SIZE, "page": page},
            )
            batch = response.json()
            for issue in batch:
                if "pull_request" in issue:
                    continue
                items.append(
                    TrackedItem(
                        number=issue["number"],
                        title=issue["title"],
                        state=issue.get("state", "open"),
                        labels=[lbl["name"] for lbl in issue.get("labels", [])],
                        closed_at=issue.get("closed_at"),
                        url=issue.get("html_url"),
                    )
                )
            if len(batch) < PAGE_SIZE:
                return items
            page += 1

    def add_comment(
        self, owner: str, repo: str, number: int, body: str
    ) -> CommentRef:
        """Post *body* as a comment on issue ``#number``."""
        if not body or not body.strip():
            raise ValueError("Comment body is required and cannot be empty")
        response = self._request(
            "POST",
            f"{GITHUB_API_URL}/repos/{owner}/{repo}/issues/{number}/comments",
            retry=False,
            json={"body": body},
        )
        data = response.json()
        return CommentRef(
            id=data["id"],
            url=data["html_url"],
            body=data["body"],
            author=(data.get("user") or {}).get("login", ""),
            created_at=data.get("created_at", ""),
        )

    # ------------------------------------------------------------------
    # Pull requests (REST)
    # ------------------------------------------------------------------

    def get_pull_request(
        self, owner: str, repo: str, number: int
    ) -> PullRequestRef:
        """Fetch pull request ``#number``."""
        response = self._request(
            "GET", f"{GITHUB_API_URL}/repos/{owner}/{repo}/pulls/{number}"
        )
        return _pull_request_from(response.json())

    def list_open_pull_requests(
        self, owner: str, repo: str
    ) -> list[PullRequestRef]:
        """Return the open pull requests of ``owner/repo``."""
        pulls: list[PullRequestRef] = []
        page = 1
        while True:
            response = self._request(
                "GET",
                f"{GITHUB_API_URL}/repos/{owner}/{repo}/pulls",
                params={"state": "open", "per_page": PAGE_SIZE, "page": page},
            )
            batch = response.json()
            pulls.extend(_pull_request_from(pr) for pr in batch)
            if len(batch) < PAGE_SIZE:
                return pulls
            page += 1

    def list_linked_pull_requests(
        self, owner: str, repo: str, number: int
    ) -> list[LinkedPullRequest]:
        """Return pull requests cross-referencing issue ``#number``.

        Read from the issue timeline. A PR whose body carries a closing
        keyword for the issue ("fixes #12") is reported as ``closing``.
        """
        closing = re.compile(
            rf"\b(?:close[sd]?|fix(?:e[sd])?|resolve[sd]?)\s+#{number}\b", re.I
        )
        linked: dict[str, LinkedPullRequest] = {}
        page = 1
        while True:
            response = self._request(
                "GET",
                f"{GITHUB_API_URL}/repos/{owner}/{repo}/issues/{number}/timeline",
                params={"per_page": PAGE_SIZE, "page": page},
            )
            batch = response.json()
            for event in batch:
                if event.get("event") != "cross-referenced":
                    continue
                source = (event.get("source") or {}).get("issue") or {}
                pull = source.get("pull_request")
                if not pull or source.get("html_url") in linked:
                    continue
                if pull.get("merged_at"):
                    state = "merged"
                else:
                    state = source.get("state", "open")
                if closing.search(source.get("body") or ""):
                    link_type = "closing"
                else:
                    link_type = "referenced"
                linked[source["html_url"]] = LinkedPullRequest(
                    number=source["number"],
                    title=source.get("title", ""),
                    url=source["html_url"],
                    state=state,
                    link_type=link_type,
                    linked_at=event.get("created_at", ""),
                    linked_by=(event.get("actor") or {}).get("login"),
                )
            if len(batch) < PAGE_SIZE:
                return list(linked.values())
            page += 1

    # ------------------------------------------------------------------
    # Projects (GraphQL)
    # ------------------------------------------------------------------

    def get_project(self, project_id: str) -> ProjectContext:
        """Return the project's Status field, cached for an hour."""
        cached = self._project_cache.get(project_id)
        if cached and time.monotonic() - cached[0] < PROJECT_CACHE_TTL:
            return cached[1]

        data = self.graphql(GET_PROJECT, {"projectId": project_id})
        node = data.get("node")
        if not node:
            raise NotFoundError(
                f"Project {project_id} not found. Ensure the project exists "
                "and your token has the project scope."
            )

        status_field = next(
            (
                f
                for f in node["fields"]["nodes"]
                if f and f.get("name") == "Status" and "options" in f
            ),
            None,
        )
        if status_field is None:
            raise NotFoundError(
                f'No Status field found in project "{node.get("title", project_id)}".'
            )

        context = ProjectContext(
            project_id=node["id"],
            title=node.get("title", ""),
            status_field_id=status_field["id"],
            status_options={
                opt["name"].lower(): opt["id"]
                for opt in status_field["options"]
            },
        )
        self._project_cache[project_id] = (time.monotonic(), context)
        return context

    def list_project_items(self, project_id: str) -> list[TrackedItem]:
        """Return all issue/PR items of a project, following pagination."""
        items: list[TrackedItem] = []
        cursor: str | None = None
        while True:
            data = self.graphql(
                GET_PROJECT_ITEMS,
                {"projectId": project_id, "first": PAGE_SIZE, "after": cursor},
            )
            node = data.get("node") or {}
            connection = node.get("items")
            if not connection:
                break
            for raw in connection["nodes"]:
                content = raw.get("content")
                # draft issues have no number
                if not content or "number" not in content:
                    continue
                status_value = raw.get("fieldValueByName") or {}
                items.append(
                    TrackedItem(
                        number=content["number"],
                        title=content["title"],
                        state="open" if content["state"] == "OPEN" else "closed",
                        labels=[
                            lbl["name"]
                            for lbl in (content.get("labels") or {}).get("nodes", [])
                        ],
                        closed_at=content.get("closedAt"),
                        item_id=raw["id"],
                        url=content.get("url"),
                        status=status_value.get("name"),
                    )
                )
            page_info = connection["pageInfo"]
            if not page_info["hasNextPage"]:
                break
            cursor = page_info["endCursor"]
        return items

    def add_item_to_project(self, project_id: str, content_id: str) -> str:
        data = self.graphql(
            ADD_PROJECT_ITEM,
            {"projectId": project_id, "contentId": content_id},
        )
        return data["addProjectV2ItemById"]["item"]["id"]

    def set_item_field(
        self,
        project_id: str,
        item_id: str,
        field_id: str,
        option_id: str,
    ) -> None:
        self.graphql(
            UPDATE_PROJECT_ITEM_FIELD,
            {
                "projectId": project_id,
                "itemId": item_id,
                "fieldId": field_id,
                "optionId": option_id,
            },
        )

    def clear_cache(self) -> None:
        """Forget cached project contexts."""
        self._project_cache.clear()

    def validate_token(self) -> str:
        """Return the login of the token's user.

        Also records the classic-token scopes from ``X-OAuth-Scopes`` in
        ``token_scopes`` (``None`` for fine-grained tokens, which do not
        report scopes).

        Raises:
            AuthenticationError: If the token is rejected.
        """
        response = self._request("GET", f"{GITHUB_API_URL}/user")
        header = response.headers.get("X-OAuth-Scopes")
        if header is not None:
            self.token_scopes = frozenset(
                s.strip() for s in header.split(",") if s.strip()
            )
        return response.json().get("login", "")


def _pull_request_from(data: dict) -> PullRequestRef:
    if data.get("merged_at"):
        state = "merged"
    else:
        state = data.get("state", "open")
    return PullRequestRef(
        number=data["number"],
        title=data.get("title", ""),
        url=data["html_url"],
        state=state,
        branch=(data.get("head") or {}).get("ref", ""),
        body=data.get("body") or "",
        author=(data.get("user") or {}).get("login", ""),
    )
