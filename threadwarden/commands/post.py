"""Reconcile diagnostics against a review from the command line."""

from __future__ import annotations

import argparse
import json
import logging

from threadwarden.commands.common import ConnectorFactory, build_connector, load_config, load_diagnostics
from threadwarden.reconciler import DiscussionCommenter, ReconcileError

logger = logging.getLogger(__name__)


def run(args: argparse.Namespace, *, connector_factory: ConnectorFactory | None = None) -> int:
    config = load_config(args)
    factory = connector_factory or build_connector
    diagnostics = load_diagnostics(args.input)
    logger.info("Loaded %s diagnostics for %s %s#%s", len(diagnostics), args.provider, args.repo, args.review)

    connector = factory(
        config,
        provider=args.provider,
        repo=args.repo,
        review=args.review,
        head_sha=args.head_sha,
    )
    commenter = DiscussionCommenter(
        connector,
        config.reconcile.tool_name,
        resolve_message=config.reconcile.resolve_message,
        max_workers=config.reconcile.max_workers,
        dry_run=config.reconcile.dry_run,
    )
    for diagnostic in diagnostics:
        commenter.post(diagnostic)

    try:
        report = commenter.flush()
    except ReconcileError as exc:
        logger.error("Reconcile failed during %s (target=%s): %s", exc.operation, exc.target or "-", exc)
        return 1

    print(json.dumps(report.model_dump(), indent=2))
    return 0
