from __future__ import annotations

import threading
from typing import Any

import pytest

from threadwarden.models import (
    Diagnostic,
    DiffRefs,
    Discussion,
    Note,
    NotePosition,
    ThreadAnchor,
    ThreadPage,
)


class FakeReviewConnector:
    """In-memory review host that behaves like a paginated discussions API."""

    suggestion_style = "gitlab"

    def __init__(self, threads: list[Discussion] | None = None, *, per_page: int = 100, batch_publish: bool = False) -> None:
        self.threads: list[Discussion] = list(threads or [])
        self.per_page = per_page
        self.batch_publish = batch_publish
        self.refs = DiffRefs(base_sha="base000", head_sha="head111", start_sha="base000")
        self.created: list[tuple[str, ThreadAnchor]] = []
        self.resolved: list[str] = []
        self.published = 0
        self.list_calls: list[str | None] = []
        self.fail_list = False
        self.fail_create_paths: set[str] = set()
        self.fail_resolve_ids: set[str] = set()
        self._lock = threading.Lock()
        self._next_id = 1

    def list_threads(self, page: str | None = None) -> ThreadPage:
        self.list_calls.append(page)
        if self.fail_list:
            raise RuntimeError("listing exploded")
        start = int(page or 0)
        end = start + self.per_page
        next_page = str(end) if end < len(self.threads) else None
        return ThreadPage(threads=self.threads[start:end], next_page=next_page)

    def diff_refs(self) -> DiffRefs:
        return self.refs

    def create_thread(self, body: str, anchor: ThreadAnchor) -> str:
        if anchor.new_path in self.fail_create_paths:
            raise RuntimeError(f"cannot comment on {anchor.new_path}")
        with self._lock:
            thread_id = f"d{self._next_id}"
            self._next_id += 1
            self.created.append((body, anchor))
            self.threads.append(
                Discussion(
                    id=thread_id,
                    notes=[
                        Note(
                            id=f"n-{thread_id}",
                            body=body,
                            position=NotePosition(new_path=anchor.new_path, new_line=anchor.new_line),
                            resolvable=True,
                        )
                    ],
                )
            )
        return thread_id

    def resolve_thread(self, discussion: Discussion, message: str) -> None:
        if discussion.id in self.fail_resolve_ids:
            raise RuntimeError(f"cannot resolve {discussion.id}")
        with self._lock:
            self.resolved.append(discussion.id)
            for thread in self.threads:
                if thread.id == discussion.id:
                    for note in thread.notes:
                        note.resolved = note.resolved or note.resolvable

    def publish(self) -> None:
        self.published += 1


def make_diagnostic(
    path: str = "x.go",
    line: int = 10,
    message: str = "unused variable",
    *,
    tool: str = "golint",
    in_diff: bool = True,
    **extra: Any,
) -> Diagnostic:
    return Diagnostic.model_validate(
        {
            "message": message,
            "location": {"path": path, "range": {"start": {"line": line}, "end": {"line": line}}},
            "source": {"name": tool},
            "in_diff": in_diff,
            **extra,
        }
    )


def make_thread(thread_id: str, body: str, *, path: str = "x.go", line: int = 10, resolved: bool = False) -> Discussion:
    return Discussion(
        id=thread_id,
        notes=[
            Note(
                id=f"n-{thread_id}",
                body=body,
                position=NotePosition(new_path=path, new_line=line),
                resolvable=True,
                resolved=resolved,
            )
        ],
    )


@pytest.fixture
def connector() -> FakeReviewConnector:
    return FakeReviewConnector()
