"""Process-wide logging lifecycle.

Entry points call :func:`configure_logging` once at startup and
:func:`shutdown_logging` on exit.  Library modules only ever do
``logging.getLogger(__name__)``.
"""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)-7s [%(threadName)s] %(name)s: %(message)s"


def configure_logging(level: str | int = "INFO") -> None:
    """Install the root handler.  Unknown level names fall back to INFO."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT, force=True)
    # Chatty HTTP client loggers.
    for noisy in ("httpx", "httpcore", "openai", "chromadb.telemetry"):
        logging.getLogger(noisy).setLevel(max(level, logging.WARNING))


def shutdown_logging() -> None:
    """Flush and close every handler."""
    logging.shutdown()
