"""Recursive directory scanner."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from pathlib import Path

from knowledge_ingest.errors import DirectoryUnreadable
from knowledge_ingest.models import FileRecord

logger = logging.getLogger(__name__)

HIDDEN_PREFIX = "."


def scan_directory(root: str | Path) -> Iterator[FileRecord]:
    """Return a lazy iterator over every regular file below *root*.

    Hidden files are skipped and hidden directories are not descended.
    Unreadable sub-directories or entries are logged and skipped.  No
    ordering is guaranteed.

    Parameters
    ----------
    root:
        Directory to scan.

    Raises
    ------
    DirectoryUnreadable
        Immediately (not on first iteration) when *root* is missing, is
        not a directory, or cannot be listed.
    """
    root_path = Path(root).expanduser().absolute()
    if not root_path.is_dir():
        raise DirectoryUnreadable(f"Directory not found: {root_path}")
    try:
        with os.scandir(root_path):
            pass
    except OSError as exc:
        raise DirectoryUnreadable(f"Cannot list directory {root_path}: {exc}") from exc

    return _walk(root_path)


def _walk(root: Path) -> Iterator[FileRecord]:
    def _on_error(exc: OSError) -> None:
        logger.warning("Skipping unreadable entry %s: %s", exc.filename, exc)

    for dirpath, dirnames, filenames in os.walk(root, onerror=_on_error):
        # Prune in place so os.walk does not descend into hidden dirs.
        dirnames[:] = [d for d in dirnames if not d.startswith(HIDDEN_PREFIX)]
        for fname in filenames:
            if fname.startswith(HIDDEN_PREFIX):
                continue
            path = Path(dirpath) / fname
            try:
                if not path.is_file():
                    continue
                yield FileRecord.from_path(path)
            except OSError as exc:
                logger.warning("Skipping %s: %s", path, exc)
