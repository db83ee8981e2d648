"""CLI entry point — index, query and serve Library of Congress records."""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from collections.abc import Sequence
from pathlib import Path

from locindex.adapters.base.exceptions import DatabaseError
from locindex.adapters.base.registry import open_database
from locindex.config.settings import Settings
from locindex.core.monitor import CounterMonitor
from locindex.models.pagination import PageOptions
from locindex.observability.logging import setup_logging
from locindex.sources.csvfile import CSVSource


def main(argv: Sequence[str] | None = None) -> None:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.config:
        config_path = Path(args.config)
        if not config_path.exists():
            print(f"Error: Config file not found: {config_path}", file=sys.stderr)
            sys.exit(1)
        settings = Settings.from_yaml(config_path)
    else:
        settings = Settings()

    if args.log_level:
        settings.observability.log_level = args.log_level
    if args.database_uri:
        settings.database_uri = args.database_uri

    setup_logging(settings.observability)

    if args.command == "serve":
        _serve(settings, args)
        return

    try:
        if args.command == "index":
            sources = [_parse_source(value) for value in args.sources]
            asyncio.run(_index(settings.database_uri, sources, args.progress_interval))
        else:
            options = PageOptions(page=args.page, per_page=args.per_page)
            asyncio.run(_query(settings.database_uri, " ".join(args.terms), options))
    except DatabaseError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="locindex",
        description="Index and query Library of Congress records in Elasticsearch",
    )
    parser.add_argument("--config", "-c", type=str, default=None, help="Path to YAML configuration file")
    parser.add_argument(
        "--database-uri",
        "-d",
        type=str,
        default=None,
        help="Database URI, e.g. 'elasticsearch://?endpoint=http://localhost:9200&index=loc' (overrides config)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["debug", "info", "warning", "error"],
        default=None,
        help="Log level (overrides config)",
    )
    parser.add_argument("--version", action="version", version=f"locindex {_get_version()}")

    commands = parser.add_subparsers(dest="command", required=True)

    index = commands.add_parser("index", help="Bulk-index one or more CSV sources")
    index.add_argument(
        "sources",
        nargs="+",
        metavar="SOURCE",
        help="CSV file to index, as LABEL=PATH or PATH (label taken from the file name)",
    )
    index.add_argument(
        "--progress-interval",
        type=float,
        default=60.0,
        help="Seconds between progress log lines",
    )

    query = commands.add_parser("query", help="Query the database and print one page of results as JSON")
    query.add_argument("terms", nargs="+", metavar="TERM", help="Query terms, joined with spaces")
    query.add_argument("--page", type=_positive_int, default=1, help="1-based page number")
    query.add_argument("--per-page", type=_positive_int, default=10, help="Results per page")

    serve = commands.add_parser("serve", help="Run the HTTP query API")
    serve.add_argument("--host", type=str, default=None, help="Server bind address (overrides config)")
    serve.add_argument("--port", "-p", type=int, default=None, help="Server port (overrides config)")
    serve.add_argument("--reload", action="store_true", help="Enable auto-reload for development")

    return parser


def _positive_int(value: str) -> int:
    n = int(value)
    if n < 1:
        raise argparse.ArgumentTypeError(f"must be a positive integer, got {value}")
    return n


def _parse_source(value: str) -> CSVSource:
    """Parse ``LABEL=PATH`` (or a bare ``PATH``) into a CSV source."""
    label, sep, path = value.partition("=")
    if not sep:
        path = value
        label = Path(value).name.split(".", 1)[0]
    return CSVSource(label, path)


async def _index(uri: str, sources: list[CSVSource], interval: float) -> None:
    monitor = CounterMonitor(interval=interval)
    database = await open_database(uri)
    async with database:
        await monitor.start()
        try:
            await database.index(sources, monitor)
        finally:
            await monitor.stop()


async def _query(uri: str, q: str, options: PageOptions) -> None:
    database = await open_database(uri)
    async with database:
        results, pagination = await database.query(q, options)

    output = {
        "results": [r.model_dump() for r in results],
        "pagination": pagination.model_dump(),
    }
    print(json.dumps(output, indent=2, ensure_ascii=False))


def _serve(settings: Settings, args: argparse.Namespace) -> None:
    import uvicorn

    if args.host:
        settings.server.host = args.host
    if args.port:
        settings.server.port = args.port

    # The app factory reads settings from the environment in each worker
    os.environ["LOCINDEX_DATABASE_URI"] = settings.database_uri

    uvicorn.run(
        "locindex.api.app:create_app",
        factory=True,
        host=settings.server.host,
        port=settings.server.port,
        workers=settings.server.workers if not args.reload else 1,
        reload=args.reload,
        log_level=settings.observability.log_level,
    )


def _get_version() -> str:
    """Get the package version."""
    try:
        from locindex import __version__

        return __version__
    except ImportError:
        return "unknown"


if __name__ == "__main__":
    main()
