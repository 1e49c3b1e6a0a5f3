from typing import Any

import pytest

from threadwarden.connectors.gitlab import GitlabApiError, GitlabMergeRequestConnector
from threadwarden.models import Discussion, ThreadAnchor


class FakeGitlabClient:
    def __init__(self, pages: dict[str, tuple[list[dict[str, Any]], str]] | None = None) -> None:
        self.pages = pages or {}
        self.calls: list[tuple[str, str, dict[str, Any] | None, dict[str, Any] | None]] = []

    def request(self, method: str, endpoint: str, *, params=None, body=None):
        self.calls.append((method, endpoint, params, body))
        if endpoint.endswith("/discussions") and method == "GET":
            items, next_page = self.pages[str(params["page"])]
            return items, {"x-next-page": next_page}
        if endpoint == "merge_requests/7" and method == "GET":
            return {"iid": 7, "diff_refs": {"base_sha": "b1", "head_sha": "h1", "start_sha": "s1"}}, {}
        if method == "POST":
            return {"id": 99}, {}
        return None, {}


def _anchor(**overrides: Any) -> ThreadAnchor:
    values = {"new_path": "app.py", "new_line": 4, "base_sha": "b1", "head_sha": "h1", "start_sha": "s1"}
    values.update(overrides)
    return ThreadAnchor(**values)


def _connector(publish_mode: str = "batch", client: FakeGitlabClient | None = None, **kwargs: Any) -> GitlabMergeRequestConnector:
    connector = GitlabMergeRequestConnector("group/project", 7, publish_mode=publish_mode, token="t", **kwargs)
    connector.client = client or FakeGitlabClient()  # type: ignore[assignment]
    return connector


def test_list_threads_normalizes_discussions_and_next_page() -> None:
    client = FakeGitlabClient(
        {
            "1": (
                [
                    {
                        "id": "abc",
                        "individual_note": False,
                        "notes": [
                            {
                                "id": 1,
                                "body": "hello",
                                "position": {"new_path": "app.py", "new_line": 4, "old_path": "app.py", "old_line": None},
                                "resolvable": True,
                                "resolved": False,
                            },
                            {"id": 2, "body": "system note", "position": None},
                        ],
                    }
                ],
                "2",
            ),
            "2": ([], ""),
        }
    )
    connector = _connector(client=client)

    first = connector.list_threads()
    second = connector.list_threads(first.next_page)

    assert first.next_page == "2"
    assert second.next_page is None
    discussion = first.threads[0]
    assert discussion.id == "abc"
    assert discussion.notes[0].position is not None
    assert discussion.notes[0].position.new_line == 4
    assert discussion.notes[0].resolvable is True
    assert discussion.notes[1].position is None
    assert client.calls[0][2] == {"per_page": 100, "page": "1"}


def test_diff_refs_prefers_explicit_head_sha() -> None:
    assert _connector().diff_refs().head_sha == "h1"
    refs = _connector(head_sha="custom").diff_refs()
    assert (refs.base_sha, refs.head_sha, refs.start_sha) == ("b1", "custom", "s1")


def test_batch_mode_creates_draft_notes_and_bulk_publishes() -> None:
    client = FakeGitlabClient()
    connector = _connector("batch", client)

    thread_id = connector.create_thread("body", _anchor(old_path="old.py", old_line=2))
    connector.resolve_thread(Discussion(id="d1"), "Issue resolved.")
    connector.publish()

    assert thread_id == "99"
    method, endpoint, _, body = client.calls[0]
    assert (method, endpoint) == ("POST", "merge_requests/7/draft_notes")
    assert body["note"] == "body"
    assert body["position"]["position_type"] == "text"
    assert body["position"]["old_path"] == "old.py"
    assert client.calls[1][3] == {"note": "Issue resolved.", "in_reply_to_discussion_id": "d1", "resolve_discussion": True}
    assert client.calls[2][:2] == ("POST", "merge_requests/7/draft_notes/bulk_publish")


def test_immediate_mode_posts_discussions_and_resolves_explicitly() -> None:
    client = FakeGitlabClient()
    connector = _connector("immediate", client)

    connector.create_thread("body", _anchor())
    connector.resolve_thread(Discussion(id="d1"), "Issue resolved.")
    connector.publish()

    assert client.calls[0][:2] == ("POST", "merge_requests/7/discussions")
    assert "old_path" not in client.calls[0][3]["position"]
    assert client.calls[1][:2] == ("POST", "merge_requests/7/discussions/d1/notes")
    assert client.calls[2][:3] == ("PUT", "merge_requests/7/discussions/d1", {"resolved": "true"})
    assert len(client.calls) == 3
    assert connector.batch_publish is False


def test_diff_refs_missing_raises() -> None:
    class NoRefsClient(FakeGitlabClient):
        def request(self, method, endpoint, *, params=None, body=None):
            return {"iid": 7, "diff_refs": None}, {}

    with pytest.raises(GitlabApiError):
        _connector(client=NoRefsClient()).diff_refs()


def test_unknown_publish_mode_rejected() -> None:
    with pytest.raises(ValueError):
        GitlabMergeRequestConnector("group/project", 7, publish_mode="eventually")


def test_project_path_is_url_encoded() -> None:
    connector = GitlabMergeRequestConnector("group/sub/project", 7, token="t")
    assert connector.client.project_path("merge_requests/7") == "projects/group%2Fsub%2Fproject/merge_requests/7"
