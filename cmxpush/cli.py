#!/usr/bin/env python3
"""
CLI entry point for the cmxpush location receiver.

Defines the following commands:
  cmxpush serve [-o ADDR] [-p PORT] [--db PATH] [--log-level LEVEL] SECRET VALIDATOR
  cmxpush version

Point the CMX Location Push API at http://<host>:<port>/events, pass the
secret you chose there and the validator it shows you, then click
"Validate server" in the dashboard.
"""

import sys
from argparse import ArgumentParser, Namespace
from importlib.metadata import PackageNotFoundError, version as _get_version
from typing import Optional, Sequence

import uvicorn

from cmxpush.config import DEFAULT_HOST, DEFAULT_PORT, Settings
from cmxpush.server import create_app
from cmxpush.utils.log import get_logger, set_level

logger = get_logger(__name__)


def serve(settings: Settings) -> None:
    """
    Spin up FastAPI+Uvicorn to receive pushes and answer client lookups.

    Parameters
    ----------
    settings
        Receiver configuration (secret, validator, bind address, database).
    """
    set_level(settings.log_level)
    logger.info(
        "Serve: host=%s, port=%d, db=%s", settings.host, settings.port, settings.db_path
    )
    app = create_app(settings)
    uvicorn.run(app, host=settings.host, port=settings.port)


def version() -> None:
    """
    Print the installed cmxpush package version.
    """
    try:
        ver = _get_version("cmxpush")
    except PackageNotFoundError:
        ver = "unknown"
    logger.info("cmxpush version %s", ver)


def parse_args(argv: Optional[Sequence[str]] = None) -> Namespace:
    """
    Parse command-line arguments and return the populated namespace.
    """
    parser = ArgumentParser(prog="cmxpush")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # cmxpush serve
    p = subparsers.add_parser("serve", help="Receive location pushes over HTTP.")
    p.add_argument(
        "-o", "--host", type=str, default=DEFAULT_HOST, help="Interface to bind."
    )
    p.add_argument(
        "-p", "--port", type=int, default=DEFAULT_PORT, help="Port number to serve on."
    )
    p.add_argument(
        "--db", type=str, default=":memory:",
        help="SQLite database path (default: in-memory, lost on exit).",
    )
    p.add_argument(
        "--log-level", type=str.upper, default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Log verbosity.",
    )
    p.add_argument("secret", type=str, help="Shared secret configured in the dashboard.")
    p.add_argument("validator", type=str, help="Validator string shown by the dashboard.")

    # cmxpush version
    subparsers.add_parser("version", help="Show cmxpush version and exit.")

    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> None:
    """
    Entry point: dispatch to the selected subcommand.
    """
    args = parse_args(argv)
    match args.command:
        case "serve":
            try:
                settings = Settings.from_args(args)
            except ValueError as exc:
                logger.error("Invalid configuration: %s", exc)
                sys.exit(2)
            serve(settings)
        case "version":
            version()
        case _:
            sys.exit(1)


if __name__ == "__main__":
    main()
