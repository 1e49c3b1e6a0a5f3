"""HTTP receiver that reconciles diagnostics submitted by CI jobs."""

from __future__ import annotations

import logging
import threading
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Literal

from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field

from threadwarden.ciutil import CIAllowList
from threadwarden.commands.common import ConnectorFactory, build_connector
from threadwarden.config import ThreadwardenConfig
from threadwarden.models import Diagnostic, FlushReport
from threadwarden.reconciler import DiscussionCommenter, ReconcileError

logger = logging.getLogger(__name__)


class ReviewSubmission(BaseModel):
    model_config = ConfigDict(extra="forbid")

    provider: Literal["gitlab", "github"]
    repo: str
    review: int = Field(ge=1)
    head_sha: str | None = None
    tool_name: str | None = None
    diagnostics: list[Diagnostic] = Field(default_factory=list)


class _ReviewLocks:
    """One lock per review so passes against the same review never overlap."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[tuple[str, str, int], threading.Lock] = {}

    def get(self, key: tuple[str, str, int]) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(key, threading.Lock())


def create_app(
    config: ThreadwardenConfig,
    *,
    connector_factory: ConnectorFactory | None = None,
    allow_list: CIAllowList | None = None,
) -> FastAPI:
    factory = connector_factory or build_connector
    ci_allow_list = allow_list or CIAllowList(
        config.server.static_ci_networks,
        travis_endpoint=config.server.travis_endpoint,
        timeout_seconds=config.server.travis_timeout_seconds,
    )
    review_locks = _ReviewLocks()

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        if config.server.refresh_travis_on_start:
            try:
                ci_allow_list.refresh()
            except Exception as exc:  # pragma: no cover - network dependent
                logger.warning("Could not refresh Travis CI address list: %s", exc)
        yield

    app = FastAPI(title="threadwarden receiver", lifespan=lifespan)

    @app.get("/healthz")
    def healthz() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/api/reviews", response_model=FlushReport)
    def submit_review(submission: ReviewSubmission, request: Request) -> FlushReport:
        address = request.client.host if request.client else ""
        if config.server.require_ci_origin and not ci_allow_list.is_from_ci(address):
            logger.warning("Rejected submission for %s#%s from %s", submission.repo, submission.review, address or "unknown")
            raise HTTPException(status_code=403, detail="Request did not originate from a known CI provider")

        connector = factory(
            config,
            provider=submission.provider,
            repo=submission.repo,
            review=submission.review,
            head_sha=submission.head_sha,
        )
        commenter = DiscussionCommenter(
            connector,
            submission.tool_name or config.reconcile.tool_name,
            resolve_message=config.reconcile.resolve_message,
            max_workers=config.reconcile.max_workers,
            dry_run=config.reconcile.dry_run,
        )
        for diagnostic in submission.diagnostics:
            commenter.post(diagnostic)

        with review_locks.get((submission.provider, submission.repo, submission.review)):
            try:
                return commenter.flush()
            except ReconcileError as exc:
                logger.error("Reconcile failed for %s#%s during %s: %s", submission.repo, submission.review, exc.operation, exc)
                raise HTTPException(status_code=502, detail=f"{exc.operation} failed: {exc}") from exc

    return app
