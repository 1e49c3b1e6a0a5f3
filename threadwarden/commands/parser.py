"""CLI parser construction."""

from __future__ import annotations

import argparse

from threadwarden.commands.common import PROVIDERS, add_common_config_flags


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Sync static analysis findings to review discussions")
    parser.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, WARNING, ERROR)")

    sub = parser.add_subparsers(dest="command", required=True)

    post = sub.add_parser("post", aliases=["sync"], help="Reconcile diagnostics against one merge/pull request")
    post.add_argument("--provider", choices=PROVIDERS, required=True, help="Review host")
    post.add_argument("--repo", required=True, help="Project path (GitLab) or owner/repo slug (GitHub)")
    post.add_argument("--review", type=int, required=True, help="Merge request IID or pull request number")
    post.add_argument("--input", default="-", help="Diagnostics JSON array or JSON lines file ('-' for stdin)")
    post.add_argument("--head-sha", help="Commit the diagnostics were computed on (defaults to the review head)")
    post.add_argument("--tool-name", help="Override reconcile.tool_name")
    post.add_argument("--max-workers", type=int, help="Cap concurrent remote writes (default: one per operation)")
    post.add_argument("--dry-run", action="store_true", help="Plan creates/resolves without writing to the review")
    add_common_config_flags(post)

    serve = sub.add_parser("serve", help="Run HTTP receiver that accepts diagnostics from CI")
    serve.add_argument("--host", default="127.0.0.1", help="Bind host")
    serve.add_argument("--port", type=int, default=8765, help="Bind port")
    add_common_config_flags(serve)

    return parser
