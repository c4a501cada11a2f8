"""Shared pytest fixtures for taskmaster-sync tests."""

import json
from unittest.mock import MagicMock

import pytest

from taskmaster_sync.config import Config
from taskmaster_sync.core.models import (
    CommentRef,
    IssueInput,
    IssueRef,
    LinkedPullRequest,
    ProjectContext,
    PullRequestRef,
    TrackedItem,
)
from taskmaster_sync.errors import NotFoundError


def pytest_addoption(parser):
    """Add custom CLI options for test filtering."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run tests that require a live GitHub repository",
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "live: mark test as requiring a live GitHub repository"
    )


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is passed."""
    if config.getoption("--run-live"):
        return
    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


# ---------------------------------------------------------------------------
# In-memory tracker
# ---------------------------------------------------------------------------


class FakeTrackerClient:
    """In-memory stand-in for ``GitHubClient``.

    Issues get sequential numbers starting at ``next_number``. Every call
    is recorded in ``calls`` as ``(method, args)``. Set ``fail_on`` to a
    method name (or ``{name: exception}``) to make that method raise.
    """

    def __init__(
        self,
        items: list[TrackedItem] | None = None,
        statuses: tuple[str, ...] = ("todo", "in progress", "done", "blocked"),
        next_number: int = 1,
        pull_requests: list[PullRequestRef] | None = None,
    ):
        self.items = list(items or [])
        self.pull_requests = list(pull_requests or [])
        self.linked: dict[int, list[LinkedPullRequest]] = {}
        self.project = ProjectContext(
            project_id="PVT_1",
            title="Roadmap",
            status_field_id="FIELD_STATUS",
            status_options={s: f"OPT_{s.replace(' ', '_')}" for s in statuses},
        )
        self.next_number = next_number
        self.created: list[IssueRef] = []
        self.comments: list[CommentRef] = []
        self.field_updates: list[tuple[str, str, str, str]] = []
        self.calls: list[tuple[str, tuple]] = []
        self.fail_on: dict[str, Exception] = {}

    def _record(self, name: str, *args):
        self.calls.append((name, args))
        if name in self.fail_on:
            raise self.fail_on[name]

    def create_issue(self, owner: str, repo: str, payload: IssueInput) -> IssueRef:
        self._record("create_issue", owner, repo, payload)
        number = self.next_number
        self.next_number += 1
        issue = IssueRef(
            number=number,
            url=f"https://github.com/{owner}/{repo}/issues/{number}",
            node_id=f"I_{number}",
            title=payload.title,
        )
        self.created.append(issue)
        return issue

    def add_item_to_project(self, project_id: str, content_id: str) -> str:
        self._record("add_item_to_project", project_id, content_id)
        return f"PVTI_{content_id}"

    def set_item_field(self, project_id, item_id, field_id, option_id) -> None:
        self._record("set_item_field", project_id, item_id, field_id, option_id)
        self.field_updates.append((project_id, item_id, field_id, option_id))

    def list_project_items(self, project_id: str) -> list[TrackedItem]:
        self._record("list_project_items", project_id)
        return list(self.items)

    def get_project(self, project_id: str) -> ProjectContext:
        self._record("get_project", project_id)
        if project_id != self.project.project_id:
            raise NotFoundError(f"Project {project_id} not found")
        return self.project

    def list_repo_issues(self, owner: str, repo: str) -> list[TrackedItem]:
        self._record("list_repo_issues", owner, repo)
        return [i for i in self.items if i.state == "open"]

    def add_comment(self, owner, repo, number, body) -> CommentRef:
        self._record("add_comment", owner, repo, number, body)
        comment = CommentRef(
            id=1000 + len(self.comments),
            url=f"https://github.com/{owner}/{repo}/issues/{number}#issuecomment-{1000 + len(self.comments)}",
            body=body,
        )
        self.comments.append(comment)
        return comment

    def get_issue(self, owner: str, repo: str, number: int) -> IssueRef:
        self._record("get_issue", owner, repo, number)
        for item in self.items:
            if item.number == number:
                return IssueRef(
                    number=number,
                    url=item.url or f"https://github.com/{owner}/{repo}/issues/{number}",
                    node_id=f"I_{number}",
                    title=item.title,
                    state=item.state,
                )
        raise NotFoundError(f"Issue #{number} not found", 404)

    def get_pull_request(self, owner, repo, number) -> PullRequestRef:
        self._record("get_pull_request", owner, repo, number)
        for pr in self.pull_requests:
            if pr.number == number:
                return pr
        raise NotFoundError("Not Found", 404)

    def list_open_pull_requests(self, owner, repo) -> list[PullRequestRef]:
        self._record("list_open_pull_requests", owner, repo)
        return [pr for pr in self.pull_requests if pr.state == "open"]

    def list_linked_pull_requests(self, owner, repo, number) -> list[LinkedPullRequest]:
        self._record("list_linked_pull_requests", owner, repo, number)
        return list(self.linked.get(number, []))


def make_item(number: int, title: str, **kwargs) -> TrackedItem:
    """Build a project item with an item id derived from the number."""
    kwargs.setdefault("item_id", f"PVTI_{number}")
    return TrackedItem(number=number, title=title, **kwargs)


def make_pr(number: int, title: str, **kwargs) -> PullRequestRef:
    """Build an open pull request with a URL derived from the number."""
    kwargs.setdefault("url", f"https://github.com/acme/roadmap/pull/{number}")
    return PullRequestRef(number=number, title=title, **kwargs)


def make_task(task_id, title=None, **kwargs) -> dict:
    """Build a raw tasks.json task dict."""
    task = {
        "id": task_id,
        "title": title or f"Task {task_id}",
        "description": f"Description of task {task_id}",
        "priority": "medium",
        "dependencies": [],
        "status": "pending",
    }
    task.update(kwargs)
    return task


def write_tasks(path, tasks: list[dict]):
    """Write a tasks.json document with *tasks* under ``master``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps({"master": {"tasks": tasks}}, indent=2), encoding="utf-8"
    )
    return path


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_config(tmp_path):
    """A valid Config pointing at files under tmp_path."""
    return Config(
        token="ghp_test",
        owner="acme",
        repo="roadmap",
        project_id="PVT_1",
        tasks_path=str(tmp_path / "tasks.json"),
        state_path=str(tmp_path / "sync-state.json"),
    )


@pytest.fixture
def fake_client():
    """A FakeTrackerClient with an empty project."""
    return FakeTrackerClient()


@pytest.fixture
def mock_github_client(mock_config):
    """A MagicMock constrained to the GitHubClient interface."""
    from taskmaster_sync.core.client import GitHubClient

    client = MagicMock(spec=GitHubClient)
    client.config = mock_config
    client.token_scopes = None
    return client


@pytest.fixture
def tasks_file(tmp_path):
    """Factory writing tasks.json under tmp_path and returning its path."""

    def _write(tasks: list[dict]):
        return write_tasks(tmp_path / "tasks.json", tasks)

    return _write


@pytest.fixture(autouse=True)
def _clean_github_env(monkeypatch):
    """Keep developer GITHUB_* / DRY_RUN settings out of tests."""
    for var in (
        "GITHUB_TOKEN",
        "GITHUB_OWNER",
        "GITHUB_REPO",
        "GITHUB_PROJECT_ID",
        "DRY_RUN",
        "TASKMASTER_SYNC_DEBUG",
        "TASKMASTER_TASKS_PATH",
        "TASKMASTER_STATE_PATH",
        "TASKMASTER_SYNC_CONFIG",
        "LOG_LEVEL",
        "LOG_FILE",
    ):
        monkeypatch.delenv(var, raising=False)
