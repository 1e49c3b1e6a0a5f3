"""Connector interface for review hosts."""

from __future__ import annotations

from typing import Protocol

from threadwarden.models import DiffRefs, Discussion, ThreadAnchor, ThreadPage


class ReviewConnector(Protocol):
    batch_publish: bool
    suggestion_style: str

    def list_threads(self, page: str | None = None) -> ThreadPage: ...

    def diff_refs(self) -> DiffRefs: ...

    def create_thread(self, body: str, anchor: ThreadAnchor) -> str: ...

    def resolve_thread(self, discussion: Discussion, message: str) -> None: ...

    def publish(self) -> None: ...
