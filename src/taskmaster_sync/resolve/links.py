"""Link pull requests to issues and suggest likely links.

Three requests are understood:

- ``link``: comment "Linked to PR #N" on an issue found by reference.
- ``find``: list the pull requests that cross-reference an issue.
- ``suggest``: score open pull requests against open issues.

Suggestion confidence uses the first rule that fires:

========================================  =====================
Rule                                      Confidence
========================================  =====================
PR title or body mentions ``#N``          0.95
branch name contains the issue number     0.9
keyword overlap ``j`` >= 0.7              0.8 * j
keyword overlap ``j`` >= 0.5              0.7 * j
========================================  =====================
"""

from __future__ import annotations

import logging
import re
from typing import Literal

from pydantic import BaseModel

from taskmaster_sync.core.models import (
    LinkedPullRequest,
    PullRequestRef,
    TrackedItem,
)
from taskmaster_sync.core.tracker import TrackerClient
from taskmaster_sync.errors import NotFoundError
from taskmaster_sync.resolve.matcher import (
    MatcherConfig,
    parse_number_query,
    require_item,
)

logger = logging.getLogger(__name__)

DEFAULT_MIN_CONFIDENCE = 0.5

_STOP_WORDS = frozenset(
    """
    a an the and or but in on at to for of with by from as is was are were
    been be have has had do does did will would could should may might must
    shall can need this that these those it its add update fix feature bug
    issue pr pull request
    """.split()
)

_LINK_PATTERNS = [
    re.compile(
        r"^link\s+(?:issue\s+)?#?(\d+)\s+to\s+(?:PR|pull request)\s+#?(\d+)$", re.I
    ),
    re.compile(
        r"^link\s+(?:task|issue)\s+(.+?)\s+to\s+(?:PR|pull request)\s+#?(\d+)$", re.I
    ),
]
_FIND_PATTERNS = [
    re.compile(
        r"^(?:what|which)\s+(?:PRs?|pull requests?)\s+(?:are\s+)?linked\s+to\s+#?(\d+)$",
        re.I,
    ),
    re.compile(r"^find\s+(?:PRs?|pull requests?)\s+(?:for|linked to)\s+(.+)$", re.I),
    re.compile(r"^(?:PRs?|pull requests?)\s+(?:for|linked to)\s+#?(\d+)$", re.I),
]
_SUGGEST_PATTERNS = [
    re.compile(
        r"^suggest\s+(?:PRs?|pull requests?)\s+(?:for\s+)?(?:in[- ]progress\s+)?issues?$",
        re.I,
    ),
    re.compile(r"^suggest\s+(?:PR|pull request)\s+links?$", re.I),
]


class LinkRequest(BaseModel):
    """A parsed link request."""

    action: Literal["link", "find", "suggest"]
    issue_query: str | None = None
    pr_number: int | None = None

    model_config = {"frozen": True}


class LinkResult(BaseModel):
    """A pull request linked to an issue by comment."""

    issue_number: int
    issue_title: str
    pr_number: int
    pr_title: str
    comment_url: str
    message: str

    model_config = {"frozen": True}


class LinkedPullRequests(BaseModel):
    """The pull requests cross-referencing one issue."""

    issue_number: int
    issue_title: str
    pull_requests: list[LinkedPullRequest]

    model_config = {"frozen": True}


class LinkSuggestion(BaseModel):
    """An open pull request that probably belongs to an issue."""

    issue_number: int
    issue_title: str
    pull_request: PullRequestRef
    confidence: float
    reason: str

    model_config = {"frozen": True}


def parse_link_request(text: str) -> LinkRequest | None:
    """Parse "link #12 to PR #45", "find PRs for login" or "suggest PR links".

    Returns:
        The request, or ``None`` when *text* matches no known phrasing.
    """
    stripped = text.strip()
    for pattern in _LINK_PATTERNS:
        match = pattern.match(stripped)
        if match:
            return LinkRequest(
                action="link",
                issue_query=match.group(1).strip(),
                pr_number=int(match.group(2)),
            )
    for pattern in _FIND_PATTERNS:
        match = pattern.match(stripped)
        if match:
            return LinkRequest(action="find", issue_query=match.group(1).strip())
    if any(pattern.match(stripped) for pattern in _SUGGEST_PATTERNS):
        return LinkRequest(action="suggest")
    return None


# ---------------------------------------------------------------------------
# Suggestion scoring
# ---------------------------------------------------------------------------


def extract_keywords(text: str) -> set[str]:
    """Lowercase words longer than two characters, minus stop words."""
    return {
        word
        for word in re.split(r"\W+", text.lower())
        if len(word) > 2 and word not in _STOP_WORDS
    }


def keyword_overlap(a: set[str], b: set[str]) -> float:
    """Jaccard similarity of two keyword sets (0.0 when either is empty)."""
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)


def score_pull_request(
    issue: TrackedItem, pr: PullRequestRef
) -> tuple[float, str]:
    """Return ``(confidence, reason)`` that *pr* implements *issue*."""
    number = issue.number
    reference = re.compile(rf"#{number}\b|issue[- ]?{number}\b", re.I)
    if reference.search(pr.title) or reference.search(pr.body):
        return 0.95, f"PR explicitly references issue #{number}"

    if str(number) in pr.branch.lower():
        return 0.9, f"Branch name contains issue number {number}"

    issue_words = extract_keywords(issue.title)
    title_overlap = keyword_overlap(issue_words, extract_keywords(pr.title))
    branch_overlap = keyword_overlap(
        issue_words, extract_keywords(re.sub(r"[-_]", " ", pr.branch))
    )
    best = max(title_overlap, branch_overlap)

    if best >= 0.7:
        source = "title" if title_overlap > branch_overlap else "branch"
        return best * 0.8, f"High keyword overlap between issue and PR {source}"
    if best >= 0.5:
        return best * 0.7, "Moderate keyword overlap between issue and PR"
    return 0.0, "No significant match found"


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class LinkService:
    """Link pull requests to issues of one repository."""

    def __init__(
        self,
        client: TrackerClient,
        matcher_config: MatcherConfig | None = None,
        min_confidence: float = DEFAULT_MIN_CONFIDENCE,
    ) -> None:
        self.client = client
        self.matcher_config = matcher_config or MatcherConfig()
        self.min_confidence = min_confidence

    def resolve_issue(self, owner: str, repo: str, query: str) -> tuple[int, str]:
        """Return ``(number, title)`` of the issue *query* refers to.

        A number reference is fetched directly, so closed issues resolve
        too. Free text is matched against the open issues.

        Raises:
            NotFoundError: The referenced issue number does not exist.
            ItemNotFoundError: No open issue matched the text.
            AmbiguousMatchError: Several open issues matched about equally.
        """
        number = parse_number_query(query)
        if number is not None:
            issue = self.client.get_issue(owner, repo, number)
            return issue.number, issue.title
        candidate = require_item(
            self.client.list_repo_issues(owner, repo), query, self.matcher_config
        )
        return candidate.number, candidate.title

    def link_pr(
        self,
        owner: str,
        repo: str,
        issue_query: str,
        pr_number: int,
        message: str | None = None,
    ) -> LinkResult:
        """Comment on the issue *issue_query* refers to, linking PR ``#pr_number``.

        Raises:
            NotFoundError: The issue or the pull request does not exist.
            ItemNotFoundError, AmbiguousMatchError: *issue_query* did not
                resolve to exactly one issue.
        """
        issue_number, issue_title = self.resolve_issue(owner, repo, issue_query)
        try:
            pr = self.client.get_pull_request(owner, repo, pr_number)
        except NotFoundError as e:
            raise NotFoundError(
                f"Pull request #{pr_number} not found in {owner}/{repo}",
                e.status_code,
            ) from e

        body = f"Linked to PR #{pr_number}"
        if message and message.strip():
            body = f"{message.strip()}\n\n{body}"
        comment = self.client.add_comment(owner, repo, issue_number, body)
        logger.info("Linked PR #%d to issue #%d", pr_number, issue_number)

        return LinkResult(
            issue_number=issue_number,
            issue_title=issue_title,
            pr_number=pr.number,
            pr_title=pr.title,
            comment_url=comment.url,
            message=f"Linked PR #{pr.number} to issue #{issue_number}",
        )

    def find_linked_prs(
        self, owner: str, repo: str, issue_query: str
    ) -> LinkedPullRequests:
        """List the pull requests cross-referencing the issue *issue_query* names."""
        issue_number, issue_title = self.resolve_issue(owner, repo, issue_query)
        return LinkedPullRequests(
            issue_number=issue_number,
            issue_title=issue_title,
            pull_requests=self.client.list_linked_pull_requests(
                owner, repo, issue_number
            ),
        )

    def suggest_links(
        self,
        owner: str,
        repo: str,
        issue_query: str | None = None,
        label: str | None = None,
    ) -> list[LinkSuggestion]:
        """Score open pull requests against open issues, best first.

        Pull requests already linked to an issue are not suggested for it.
        *issue_query* narrows the search to one issue and *label* to the
        issues carrying that label.
        """
        issues = self.client.list_repo_issues(owner, repo)
        if label:
            issues = [i for i in issues if label in i.labels]
        if issue_query:
            candidate = require_item(issues, issue_query, self.matcher_config)
            issues = [candidate.item]
        if not issues:
            return []

        pulls = self.client.list_open_pull_requests(owner, repo)
        suggestions: list[LinkSuggestion] = []
        for issue in issues:
            linked = {
                pr.number
                for pr in self.client.list_linked_pull_requests(
                    owner, repo, issue.number
                )
            }
            for pr in pulls:
                if pr.number in linked:
                    continue
                confidence, reason = score_pull_request(issue, pr)
                if confidence >= self.min_confidence:
                    suggestions.append(
                        LinkSuggestion(
                            issue_number=issue.number,
                            issue_title=issue.title,
                            pull_request=pr,
                            confidence=round(confidence, 3),
                            reason=reason,
                        )
                    )

        suggestions.sort(key=lambda s: s.confidence, reverse=True)
        return suggestions
