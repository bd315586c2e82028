"""Command-line entry point: ``knowledge-ingest``.

Examples
--------
    knowledge-ingest index ./docs
    knowledge-ingest index ./docs --force --workers 8 --timeout 600
    knowledge-ingest stats
    knowledge-ingest formats
    knowledge-ingest serve --port 8080
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Sequence

from knowledge_ingest import __version__
from knowledge_ingest.config import settings
from knowledge_ingest.errors import ConfigurationError, DirectoryUnreadable
from knowledge_ingest.log import configure_logging, shutdown_logging

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="knowledge-ingest",
        description="Ingest a directory of documents into a vector store.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable DEBUG logging")
    sub = parser.add_subparsers(dest="command", required=True)

    index = sub.add_parser("index", help="Ingest every file below a directory")
    index.add_argument(
        "directory",
        nargs="?",
        default=None,
        help=f"Directory to ingest (default: {settings.data_directory})",
    )
    index.add_argument("--force", action="store_true", help="Re-process files that are already indexed")
    index.add_argument("--workers", type=int, default=None, help="Files processed in parallel")
    index.add_argument("--timeout", type=float, default=None, help="Cancel the run after this many seconds")

    serve = sub.add_parser("serve", help="Run the REST API with uvicorn")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=8080)

    sub.add_parser("stats", help="Print vector-store statistics")
    sub.add_parser("formats", help="List supported file extensions")
    return parser


def _print_json(payload: object) -> None:
    print(json.dumps(payload, indent=2, sort_keys=True, default=str))


def main(argv: Sequence[str] | None = None) -> int:
    """Parse *argv*, run the command and return the process exit code."""
    args = _build_parser().parse_args(argv)
    configure_logging("DEBUG" if args.verbose else settings.log_level)

    try:
        if args.command == "formats":
            from knowledge_ingest.ingestion.dispatcher import default_dispatcher

            _print_json(default_dispatcher().supported_formats())
            return 0

        if args.command == "serve":
            import uvicorn

            uvicorn.run("knowledge_ingest.serving.app:app", host=args.host, port=args.port, log_config=None)
            return 0

        from knowledge_ingest.factory import build_coordinator, build_writer

        if args.command == "stats":
            _print_json(build_writer(settings).describe_stats())
            return 0

        if args.workers is not None and args.workers <= 0:
            logger.error("--workers must be positive")
            return 2

        coordinator = build_coordinator(settings)
        try:
            stats = coordinator.process_directory(
                args.directory,
                timeout=args.timeout,
                force=args.force,
                max_workers=args.workers,
            )
        except DirectoryUnreadable as exc:
            logger.error("%s", exc)
            return 1
        _print_json(stats.as_dict())
        return 0
    except ConfigurationError as exc:
        logger.error("Configuration error: %s", exc)
        return 2
    finally:
        shutdown_logging()


if __name__ == "__main__":
    sys.exit(main())
