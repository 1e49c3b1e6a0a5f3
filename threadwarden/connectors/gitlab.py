"""GitLab merge request discussions connector over the REST v4 API."""

from __future__ import annotations

import json
import logging
import os
import urllib.error
import urllib.parse
import urllib.request
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from threadwarden.connectors.base import ReviewConnector
from threadwarden.models import DiffRefs, Discussion, Note, NotePosition, ThreadAnchor, ThreadPage

logger = logging.getLogger(__name__)

PUBLISH_MODES = ("batch", "immediate")


class GitlabApiError(RuntimeError):
    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class GitlabPosition(BaseModel):
    model_config = ConfigDict(extra="ignore")

    new_path: str | None = None
    new_line: int | None = None
    old_path: str | None = None
    old_line: int | None = None


class GitlabNote(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    body: str | None = None
    position: GitlabPosition | None = None
    resolvable: bool = False
    resolved: bool = False


class GitlabDiscussion(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    notes: list[GitlabNote] = Field(default_factory=list)


class GitlabDiffRefs(BaseModel):
    model_config = ConfigDict(extra="ignore")

    base_sha: str
    head_sha: str
    start_sha: str


class GitlabMergeRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    iid: int
    sha: str | None = None
    diff_refs: GitlabDiffRefs | None = None


class GitlabClient:
    def __init__(
        self,
        project: str,
        *,
        base_url: str = "https://gitlab.com/api/v4",
        token: str | None = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        self.project = project
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout_seconds = timeout_seconds

    def project_path(self, endpoint: str) -> str:
        quoted = urllib.parse.quote(self.project, safe="")
        return f"projects/{quoted}/{endpoint.lstrip('/')}"

    def request(
        self,
        method: str,
        endpoint: str,
        *,
        params: dict[str, Any] | None = None,
        body: dict[str, Any] | None = None,
    ) -> tuple[Any, dict[str, str]]:
        url = f"{self.base_url}/{self.project_path(endpoint)}"
        if params:
            url = f"{url}?{urllib.parse.urlencode(params)}"
        headers = {"Accept": "application/json"}
        if self.token:
            headers["PRIVATE-TOKEN"] = self.token
        data: bytes | None = None
        if body is not None:
            data = json.dumps(body).encode("utf-8")
            headers["Content-Type"] = "application/json"

        req = urllib.request.Request(url, data=data, headers=headers, method=method)
        try:
            with urllib.request.urlopen(req, timeout=self.timeout_seconds) as response:
                raw = response.read().decode("utf-8").strip()
                response_headers = {key.lower(): value for key, value in response.headers.items()}
        except urllib.error.HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="replace").strip()
            raise GitlabApiError(f"GitLab API {method} {endpoint} failed with {exc.code}: {detail}", status=exc.code) from exc
        except urllib.error.URLError as exc:
            raise GitlabApiError(f"GitLab API {method} {endpoint} failed: {exc.reason}") from exc

        if not raw:
            return None, response_headers
        return json.loads(raw), response_headers


class GitlabMergeRequestConnector(ReviewConnector):
    """Discussions on one merge request.

    In ``batch`` mode every comment and resolve reply is created as a draft
    note and ``publish`` releases them in one bulk call, so reviewers get a
    single notification. ``immediate`` mode writes discussions directly.
    """

    suggestion_style = "gitlab"

    def __init__(
        self,
        project: str,
        merge_request: int,
        *,
        head_sha: str | None = None,
        base_url: str = "https://gitlab.com/api/v4",
        token: str | None = None,
        token_env: str = "GITLAB_TOKEN",
        publish_mode: str = "batch",
        per_page: int = 100,
        timeout_seconds: float = 30.0,
    ) -> None:
        if publish_mode not in PUBLISH_MODES:
            raise ValueError(f"Unsupported publish mode: {publish_mode}")
        self.project = project
        self.merge_request = merge_request
        self.head_sha = head_sha
        self.per_page = per_page
        self.batch_publish = publish_mode == "batch"
        self.client = GitlabClient(
            project,
            base_url=base_url,
            token=token if token is not None else os.environ.get(token_env),
            timeout_seconds=timeout_seconds,
        )

    @property
    def _mr_path(self) -> str:
        return f"merge_requests/{self.merge_request}"

    def list_threads(self, page: str | None = None) -> ThreadPage:
        payload, headers = self.client.request(
            "GET",
            f"{self._mr_path}/discussions",
            params={"per_page": self.per_page, "page": page or "1"},
        )
        discussions = [_normalize_discussion(GitlabDiscussion.model_validate(item)) for item in payload or []]
        next_page = (headers.get("x-next-page") or "").strip() or None
        logger.debug("Fetched discussion page %s (%s items, next=%s)", page or "1", len(discussions), next_page)
        return ThreadPage(threads=discussions, next_page=next_page)

    def diff_refs(self) -> DiffRefs:
        payload, _ = self.client.request("GET", self._mr_path)
        mr = GitlabMergeRequest.model_validate(payload)
        if mr.diff_refs is None:
            raise GitlabApiError(f"merge request !{self.merge_request} has no diff refs yet")
        return DiffRefs(
            base_sha=mr.diff_refs.base_sha,
            head_sha=self.head_sha or mr.diff_refs.head_sha,
            start_sha=mr.diff_refs.start_sha,
        )

    def create_thread(self, body: str, anchor: ThreadAnchor) -> str:
        position: dict[str, Any] = {
            "position_type": "text",
            "base_sha": anchor.base_sha,
            "head_sha": anchor.head_sha,
            "start_sha": anchor.start_sha,
            "new_path": anchor.new_path,
            "new_line": anchor.new_line,
        }
        if anchor.old_path and anchor.old_line:
            position["old_path"] = anchor.old_path
            position["old_line"] = anchor.old_line

        if self.batch_publish:
            payload, _ = self.client.request("POST", f"{self._mr_path}/draft_notes", body={"note": body, "position": position})
        else:
            payload, _ = self.client.request("POST", f"{self._mr_path}/discussions", body={"body": body, "position": position})
        return str((payload or {}).get("id", ""))

    def resolve_thread(self, discussion: Discussion, message: str) -> None:
        if self.batch_publish:
            self.client.request(
                "POST",
                f"{self._mr_path}/draft_notes",
                body={
                    "note": message,
                    "in_reply_to_discussion_id": discussion.id,
                    "resolve_discussion": True,
                },
            )
            return
        self.client.request("POST", f"{self._mr_path}/discussions/{discussion.id}/notes", body={"body": message})
        self.client.request("PUT", f"{self._mr_path}/discussions/{discussion.id}", params={"resolved": "true"})

    def publish(self) -> None:
        if not self.batch_publish:
            return
        self.client.request("POST", f"{self._mr_path}/draft_notes/bulk_publish")


def _normalize_discussion(discussion: GitlabDiscussion) -> Discussion:
    notes: list[Note] = []
    for note in discussion.notes:
        position = None
        if note.position is not None:
            position = NotePosition(
                new_path=note.position.new_path or "",
                new_line=note.position.new_line or 0,
                old_path=note.position.old_path,
                old_line=note.position.old_line,
            )
        notes.append(
            Note(
                id=str(note.id),
                body=note.body or "",
                position=position,
                resolvable=note.resolvable,
                resolved=note.resolved,
            )
        )
    return Discussion(id=discussion.id, notes=notes)
