"""Command-line interface for lspservice."""

from __future__ import annotations

import argparse
import asyncio
from collections.abc import Sequence
from pathlib import Path

from lspservice import __version__
from lspservice.config import Config, load_config
from lspservice.languages import LanguageStore
from lspservice.logging import get_logger, setup_logging

log = get_logger()


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="lspservice",
        description="Serve stdio language servers to remote clients over WebSockets",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=None,
        help="Increase verbosity (can be repeated, up to -vvvv)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Config file merged over the system and user config",
    )
    parser.add_argument(
        "--project",
        help="Project directory whose .lspservice/config.yaml is merged in",
    )
    parser.add_argument("--host", help="Interface to listen on")
    parser.add_argument("--port", type=int, help="Port to listen on")
    parser.add_argument(
        "--language",
        action="append",
        default=[],
        metavar="NAME=PATH",
        help="Language server executable for a language (repeatable)",
    )
    return parser


def parse_language_option(value: str) -> tuple[str, str]:
    """Split a NAME=PATH option."""
    name, sep, path = value.partition("=")
    if not sep or not name.strip() or not path.strip():
        raise ValueError(f"Expected NAME=PATH, got {value!r}")
    return name.strip(), path.strip()


def apply_arguments(config: Config, args: argparse.Namespace) -> LanguageStore:
    """Apply command-line overrides to the config and build the language store."""
    if args.host:
        config.server.host = args.host
    if args.port is not None:
        config.server.port = args.port
    if args.verbose is not None:
        # -v means verbose, -vv trace
        config.logging.verbose = min(4, 2 + args.verbose)

    store = LanguageStore.from_config(config.languages)
    for option in args.language:
        name, path = parse_language_option(option)
        store.set(name, path)
    return store


def main(argv: Sequence[str] | None = None) -> int:
    """Run the language service."""
    from lspservice.server.server import serve

    parser = create_parser()
    args = parser.parse_args(argv)

    config = load_config(project_root=args.project, config_file=args.config)
    try:
        store = apply_arguments(config, args)
    except ValueError as e:
        parser.error(str(e))

    setup_logging(config.logging)
    log.info(
        "Starting language service (languages: %s)",
        ", ".join(store.languages()) or "none",
    )

    try:
        asyncio.run(serve(config, store))
    except KeyboardInterrupt:
        log.info("Interrupted, exiting")
    return 0
