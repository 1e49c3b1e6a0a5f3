"""CLI entrypoint for threadwarden."""

from __future__ import annotations

from threadwarden.commands import post, serve
from threadwarden.commands.parser import build_parser
from threadwarden.logging_utils import configure_logging

ALIAS_TO_CANONICAL = {"sync": "post"}


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    command = ALIAS_TO_CANONICAL.get(args.command, args.command)
    if command == "post":
        return post.run(args)
    if command == "serve":
        return serve.run(args)

    parser.print_help()
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
