from __future__ import annotations

import argparse
import asyncio
import os
import sys
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import structlog
import uvicorn

from playarr.domain.entities.streaming import ResolvedStreamUrl, TitleQuery
from playarr.domain.streaming.exceptions import StreamError
from playarr.infrastructure.config import AppConfig, load_config
from playarr.infrastructure.logging.setup import configure_logging
from playarr.interfaces.app_state import AppState
from playarr.interfaces.composition import resolution_services
from playarr.interfaces.main import build_app

log = structlog.get_logger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1


def _parse_args(argv: Iterable[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="playarr")

    # Config wiring flags (shared by all commands)
    parser.add_argument("--config", default=None, help="Path to YAML config file.")
    parser.add_argument("--dotenv", default=None, help="Path to .env file.")
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override log level.",
    )
    parser.add_argument(
        "--log-format",
        default=None,
        choices=["json", "console"],
        help="Override log format.",
    )

    commands = parser.add_subparsers(dest="command")

    serve = commands.add_parser("serve", help="Run the HTTP API.")
    serve.add_argument("--host", default=None, help="Bind host (overrides HOST env).")
    serve.add_argument(
        "--port", default=None, type=int, help="Bind port (overrides PORT env)."
    )

    resolve = commands.add_parser("resolve", help="Resolve a title and print the URL.")
    resolve.add_argument("title", help="Media title to look up.")
    resolve.add_argument("--year", default=None, type=int, help="Release year.")
    resolve.add_argument(
        "--provider", default=None, help="Only ask this provider (no fallback)."
    )

    resolve_url = commands.add_parser(
        "resolve-url", help="Resolve a hoster page URL and print the stream URL."
    )
    resolve_url.add_argument("url", help="Hoster page URL.")

    # Bare `playarr` serves, like `playarr serve`
    parser.set_defaults(command="serve", host=None, port=None)

    return parser.parse_args(argv)


async def _resolve_once(config: AppConfig, args: argparse.Namespace) -> ResolvedStreamUrl:
    state = AppState()
    state.config = config
    async with resolution_services(state):
        if args.command == "resolve-url":
            return await state.coordinator.resolve_url(args.url)
        query = TitleQuery(title=args.title, year=args.year)
        return await state.coordinator.resolve_query(query, args.provider)


def _serve(config: AppConfig, args: argparse.Namespace) -> int:
    host = args.host or os.getenv("HOST", "0.0.0.0")
    port = int(args.port or os.getenv("PORT", "7980"))

    log_config = configure_logging(config)
    uvicorn.run(build_app(config), host=host, port=port, log_config=log_config)
    return EXIT_OK


def _resolve(config: AppConfig, args: argparse.Namespace) -> int:
    # stdout is reserved for the resolved URL
    configure_logging(config, stderr_only=True)
    try:
        stream = asyncio.run(_resolve_once(config, args))
    except StreamError as exc:
        print(f"error ({exc.kind}): {exc}", file=sys.stderr)
        for attempt in exc.attempts[:-1]:
            print(f"  earlier attempt ({attempt.kind}): {attempt}", file=sys.stderr)
        return EXIT_FAILED

    print(stream.url)
    return EXIT_OK


def start(argv: Iterable[str] | None = None) -> int:
    """
    Process entrypoint.

    Loads config exactly once, then dispatches to the sub-command.
    """
    if argv is None:
        argv = sys.argv[1:]

    args = _parse_args(argv)

    config_path = Path(args.config) if args.config else None
    dotenv_path = Path(args.dotenv) if args.dotenv else None

    cli_overrides: dict[str, Any] = {}
    if args.log_level:
        cli_overrides["log_level"] = args.log_level
    if args.log_format:
        cli_overrides["log_format"] = args.log_format

    config = load_config(
        config_path=config_path,
        dotenv_path=dotenv_path,
        cli_overrides=cli_overrides,
    )

    if args.command == "serve":
        return _serve(config, args)
    return _resolve(config, args)


if __name__ == "__main__":
    raise SystemExit(start())
