"""Logging configuration helpers."""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] (%(threadName)s) %(message)s"


def resolve_level(level: str) -> int:
    return getattr(logging, level.upper(), logging.INFO)


def configure_logging(level: str = "INFO", *, quiet_loggers: tuple[str, ...] = ("uvicorn.access",)) -> None:
    resolved = resolve_level(level)
    logging.basicConfig(level=resolved, format=LOG_FORMAT)
    # Per-request access lines drown out reconcile summaries below DEBUG.
    for name in quiet_loggers:
        logging.getLogger(name).setLevel(max(resolved, logging.WARNING))
