"""Serve the CI diagnostics receiver."""

from __future__ import annotations

import argparse
import logging

from threadwarden.commands.common import load_config

logger = logging.getLogger(__name__)


def run(args: argparse.Namespace) -> int:
    config = load_config(args)

    try:
        import uvicorn
    except ImportError as exc:  # pragma: no cover - dependency/runtime
        raise RuntimeError("Missing optional server dependencies. Install with: pip install 'threadwarden[server]'") from exc

    from threadwarden.webapp import create_app

    logger.info("Starting receiver on http://%s:%s", args.host, args.port)
    app = create_app(config)
    uvicorn.run(app, host=args.host, port=args.port, reload=False, log_level=args.log_level.lower())
    return 0
