"""Reconcile analysis diagnostics against existing review threads."""

from __future__ import annotations

import logging
import threading

from threadwarden.connectors.base import ReviewConnector
from threadwarden.fingerprint import FingerprintError, fingerprint, fingerprint_all
from threadwarden.models import Diagnostic, DiffRefs, Discussion, FlushReport, PlannedComment, ReconcilePlan
from threadwarden.posted import PostedState
from threadwarden.rendering import legacy_comment_body, render_comment_body
from threadwarden.taskgroup import TaskGroup

logger = logging.getLogger(__name__)

DEFAULT_RESOLVE_MESSAGE = "Issue resolved."


class ReconcileError(RuntimeError):
    def __init__(self, message: str, *, operation: str, target: str | None = None) -> None:
        super().__init__(message)
        self.operation = operation
        self.target = target


class DiscussionCommenter:
    """Buffers diagnostics and syncs them to a review's discussion threads.

    ``post`` may be called from several threads. ``flush`` holds the same lock
    for the whole pass, so buffering waits until the pass has finished and two
    passes never overlap on one commenter.
    """

    def __init__(
        self,
        connector: ReviewConnector,
        tool_name: str,
        *,
        resolve_message: str = DEFAULT_RESOLVE_MESSAGE,
        max_workers: int | None = None,
        dry_run: bool = False,
        suggestion_style: str | None = None,
    ) -> None:
        self.connector = connector
        self.tool_name = tool_name
        self.resolve_message = resolve_message
        self.max_workers = max_workers
        self.dry_run = dry_run
        self.suggestion_style = suggestion_style or getattr(connector, "suggestion_style", "gitlab")
        self._lock = threading.Lock()
        self._pending: list[Diagnostic] = []

    def post(self, diagnostic: Diagnostic) -> None:
        with self._lock:
            self._pending.append(diagnostic)

    def flush(self) -> FlushReport:
        with self._lock:
            try:
                return self._flush_locked(list(self._pending))
            finally:
                self._pending = []

    def plan(self, state: PostedState, diagnostics: list[Diagnostic]) -> ReconcilePlan:
        """Classify diagnostics and consume ``state.outdated`` for still-reported issues."""
        plan = ReconcilePlan()
        eligible: list[Diagnostic] = []
        for diagnostic in diagnostics:
            if not diagnostic.in_diff or diagnostic.line == 0:
                plan.dropped += 1
                continue
            try:
                fingerprint(diagnostic)
            except FingerprintError as exc:
                logger.warning("Failed to calculate fingerprint: %s", exc)
                plan.fingerprint_failures += 1
                continue
            eligible.append(diagnostic)

        scheduled: set[str] = set()
        for diagnostic, fprint in zip(eligible, fingerprint_all(eligible)):
            line = diagnostic.line
            legacy_body = legacy_comment_body(diagnostic, self.suggestion_style)
            if state.posted.is_posted(diagnostic.path, line, fprint) or state.posted.is_posted(diagnostic.path, line, legacy_body):
                # Still reported, so its thread stays open.
                state.outdated.pop(fprint, None)
                plan.duplicates += 1
                continue
            if fprint in scheduled:
                plan.duplicates += 1
                continue

            scheduled.add(fprint)
            plan.creates.append(
                PlannedComment(
                    diagnostic=diagnostic,
                    fingerprint=fprint,
                    body=render_comment_body(diagnostic, fprint, self.tool_name, self.suggestion_style),
                )
            )

        plan.resolves = [discussion for discussion in state.outdated.values() if not discussion.is_resolved]
        return plan

    def _flush_locked(self, diagnostics: list[Diagnostic]) -> FlushReport:
        try:
            state = PostedState.rebuild(self.connector, self.tool_name)
        except Exception as exc:
            raise ReconcileError(f"failed to list review threads: {exc}", operation="list") from exc

        plan = self.plan(state, diagnostics)
        report = FlushReport(
            threads_seen=len(state.threads),
            duplicates=plan.duplicates,
            dropped=plan.dropped,
            fingerprint_failures=plan.fingerprint_failures,
            dry_run=self.dry_run,
        )
        logger.info(
            "Reconcile plan: diagnostics=%s threads=%s creates=%s resolves=%s duplicates=%s dropped=%s",
            len(diagnostics),
            len(state.threads),
            len(plan.creates),
            len(plan.resolves),
            plan.duplicates,
            plan.dropped,
        )

        if self.dry_run:
            for comment in plan.creates:
                logger.info("[dry-run] would comment on %s:%s (%s)", comment.diagnostic.path, comment.diagnostic.line, comment.fingerprint)
            for discussion in plan.resolves:
                logger.info("[dry-run] would resolve discussion %s", discussion.id)
            report.created = len(plan.creates)
            report.resolved = len(plan.resolves)
            return report

        group = TaskGroup(max_workers=self.max_workers)
        if plan.creates:
            try:
                refs = self.connector.diff_refs()
            except Exception as exc:
                raise ReconcileError(f"failed to get diff refs: {exc}", operation="diff_refs") from exc
            for comment in plan.creates:
                group.go(self._create, comment, refs)
        for discussion in plan.resolves:
            group.go(self._resolve, discussion)

        if len(group) == 0:
            return report

        group.wait()
        report.created = len(plan.creates)
        report.resolved = len(plan.resolves)

        if self.connector.batch_publish:
            try:
                self.connector.publish()
            except Exception as exc:
                raise ReconcileError(f"failed to publish draft notes: {exc}", operation="publish") from exc
            report.published = True

        logger.info("Flush complete: created=%s resolved=%s", report.created, report.resolved)
        return report

    def _create(self, comment: PlannedComment, refs: DiffRefs) -> str:
        target = f"{comment.diagnostic.path}:{comment.diagnostic.line}"
        try:
            return self.connector.create_thread(comment.body, comment.anchor(refs))
        except Exception as exc:
            raise ReconcileError(f"failed to create thread at {target}: {exc}", operation="create", target=target) from exc

    def _resolve(self, discussion: Discussion) -> None:
        try:
            self.connector.resolve_thread(discussion, self.resolve_message)
        except Exception as exc:
            raise ReconcileError(
                f"failed to resolve discussion {discussion.id}: {exc}",
                operation="resolve",
                target=discussion.id,
            ) from exc
