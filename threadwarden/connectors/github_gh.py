"""GitHub pull request review threads connector backed by gh CLI."""

from __future__ import annotations

import json
import logging
import re
import subprocess
import threading
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from threadwarden.connectors.base import ReviewConnector
from threadwarden.models import DiffRefs, Discussion, Note, NotePosition, ThreadAnchor, ThreadPage

_RATE_LIMIT_RE = re.compile(r"(?:api|secondary) rate limit", re.IGNORECASE)
logger = logging.getLogger(__name__)

_REVIEW_THREADS_QUERY = """
query($owner: String!, $name: String!, $number: Int!, $first: Int!, $after: String) {
  repository(owner: $owner, name: $name) {
    pullRequest(number: $number) {
      reviewThreads(first: $first, after: $after) {
        pageInfo { hasNextPage endCursor }
        nodes {
          id
          isResolved
          path
          line
          originalLine
          comments(first: 100) {
            nodes { id body }
          }
        }
      }
    }
  }
}
"""

_REPLY_MUTATION = """
mutation($threadId: ID!, $body: String!) {
  addPullRequestReviewThreadReply(input: {pullRequestReviewThreadId: $threadId, body: $body}) {
    comment { id }
  }
}
"""

_RESOLVE_MUTATION = """
mutation($threadId: ID!) {
  resolveReviewThread(input: {threadId: $threadId}) {
    thread { id isResolved }
  }
}
"""


class GithubApiError(RuntimeError):
    pass


class GithubRateLimitError(GithubApiError):
    pass


class GithubReviewComment(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    body: str | None = None


class GithubCommentConnection(BaseModel):
    model_config = ConfigDict(extra="ignore")

    nodes: list[GithubReviewComment] = Field(default_factory=list)


class GithubReviewThread(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    is_resolved: bool = Field(default=False, alias="isResolved")
    path: str | None = None
    line: int | None = None
    original_line: int | None = Field(default=None, alias="originalLine")
    comments: GithubCommentConnection = Field(default_factory=GithubCommentConnection)


class GithubPageInfo(BaseModel):
    model_config = ConfigDict(extra="ignore")

    has_next_page: bool = Field(default=False, alias="hasNextPage")
    end_cursor: str | None = Field(default=None, alias="endCursor")


class GithubGhClient:
    def __init__(self, repo: str, gh_bin: str = "gh") -> None:
        self.repo = repo
        self.gh_bin = gh_bin

    def graphql(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        payload = self._run(["graphql"], body={"query": query, "variables": variables}) or {}
        errors = payload.get("errors")
        if errors:
            messages = "; ".join(str(error.get("message", error)) for error in errors)
            raise GithubApiError(f"GitHub GraphQL request failed: {messages}")
        return payload.get("data") or {}

    def _api_json(self, endpoint: str, method: str = "GET", body: dict[str, Any] | None = None) -> Any:
        path = f"repos/{self.repo}/{endpoint.lstrip('/')}" if not endpoint.startswith("repos/") else endpoint
        return self._run([path, "-X", method], body=body)

    def _run(self, args: list[str], body: dict[str, Any] | None = None) -> Any:
        cmd = [self.gh_bin, "api", *args, "-H", "Accept: application/vnd.github+json"]
        if body is not None:
            proc = subprocess.run(
                [*cmd, "--input", "-"],
                input=json.dumps(body),
                text=True,
                capture_output=True,
                check=False,
            )
        else:
            proc = subprocess.run(cmd, text=True, capture_output=True, check=False)

        if proc.returncode != 0:
            stderr = proc.stderr.strip()
            if _RATE_LIMIT_RE.search(stderr):
                raise GithubRateLimitError(f"gh api rate limited: {' '.join(cmd)}\n{stderr}")
            raise GithubApiError(f"gh api failed: {' '.join(cmd)}\n{stderr}")

        output = proc.stdout.strip()
        if not output:
            return None
        return json.loads(output)


class GithubPullRequestConnector(ReviewConnector):
    """Review threads on one pull request.

    Resolution goes through GraphQL, which has no draft step, so batch mode
    only defers thread creation: comments are collected and submitted as one
    review by ``publish``.
    """

    suggestion_style = "github"

    def __init__(
        self,
        repo: str,
        pull_number: int,
        *,
        head_sha: str | None = None,
        gh_bin: str = "gh",
        publish_mode: str = "immediate",
        per_page: int = 100,
    ) -> None:
        if publish_mode not in ("batch", "immediate"):
            raise ValueError(f"Unsupported publish mode: {publish_mode}")
        owner, _, name = repo.partition("/")
        if not owner or not name:
            raise ValueError(f"Expected owner/repo slug, got: {repo}")
        self.repo = repo
        self.owner = owner
        self.name = name
        self.pull_number = pull_number
        self.head_sha = head_sha
        self.per_page = per_page
        self.batch_publish = publish_mode == "batch"
        self.client = GithubGhClient(repo=repo, gh_bin=gh_bin)
        self._pending_lock = threading.Lock()
        self._pending_comments: list[dict[str, Any]] = []

    def list_threads(self, page: str | None = None) -> ThreadPage:
        data = self.client.graphql(
            _REVIEW_THREADS_QUERY,
            {
                "owner": self.owner,
                "name": self.name,
                "number": self.pull_number,
                "first": self.per_page,
                "after": page,
            },
        )
        pull = ((data.get("repository") or {}).get("pullRequest")) or {}
        connection = pull.get("reviewThreads") or {}
        page_info = GithubPageInfo.model_validate(connection.get("pageInfo") or {})
        threads = [_normalize_thread(GithubReviewThread.model_validate(item)) for item in connection.get("nodes") or []]
        next_page = page_info.end_cursor if page_info.has_next_page else None
        logger.debug("Fetched review thread page after=%s (%s items)", page, len(threads))
        return ThreadPage(threads=threads, next_page=next_page)

    def diff_refs(self) -> DiffRefs:
        pull = self.client._api_json(f"pulls/{self.pull_number}") or {}
        base_sha = (pull.get("base") or {}).get("sha") or ""
        head_sha = self.head_sha or (pull.get("head") or {}).get("sha") or ""
        if not base_sha or not head_sha:
            raise GithubApiError(f"pull request #{self.pull_number} is missing base/head sha")
        return DiffRefs(base_sha=base_sha, head_sha=head_sha, start_sha=base_sha)

    def create_thread(self, body: str, anchor: ThreadAnchor) -> str:
        comment = {"path": anchor.new_path, "line": anchor.new_line, "side": "RIGHT", "body": body}
        if self.batch_publish:
            with self._pending_lock:
                self._pending_comments.append(comment)
            return ""
        payload = self.client._api_json(
            f"pulls/{self.pull_number}/comments",
            method="POST",
            body={**comment, "commit_id": anchor.head_sha},
        )
        return str((payload or {}).get("id", ""))

    def resolve_thread(self, discussion: Discussion, message: str) -> None:
        if message:
            self.client.graphql(_REPLY_MUTATION, {"threadId": discussion.id, "body": message})
        self.client.graphql(_RESOLVE_MUTATION, {"threadId": discussion.id})

    def publish(self) -> None:
        with self._pending_lock:
            comments, self._pending_comments = self._pending_comments, []
        if not comments:
            return
        body: dict[str, Any] = {"event": "COMMENT", "comments": comments}
        if self.head_sha:
            body["commit_id"] = self.head_sha
        self.client._api_json(f"pulls/{self.pull_number}/reviews", method="POST", body=body)


def _normalize_thread(thread: GithubReviewThread) -> Discussion:
    # Outdated threads lose `line`; keep them anchored where they were posted.
    position = None
    if thread.path:
        position = NotePosition(new_path=thread.path, new_line=thread.line or thread.original_line or 0)
    notes = [
        Note(
            id=comment.id,
            body=comment.body or "",
            position=position,
            resolvable=True,
            resolved=thread.is_resolved,
        )
        for comment in thread.comments.nodes
    ]
    return Discussion(id=thread.id, notes=notes)
