"""Content-addressed file identity."""

from __future__ import annotations

import hashlib
from pathlib import Path

from knowledge_ingest.errors import ReadFailure

BLOCK_SIZE = 64 * 1024
DEFAULT_ALGORITHM = "sha256"


def compute_hash(path: str | Path, algorithm: str = DEFAULT_ALGORITHM) -> str:
    """Digest the full byte content of *path*.

    Returns ``"<algorithm>:<hexdigest>"``, e.g. ``"sha256:9f86d0..."``.
    Two files with identical bytes always hash the same, whatever their
    name or location.

    Raises
    ------
    ReadFailure
        If the file cannot be opened or read.
    """
    digest = hashlib.new(algorithm)
    try:
        with open(path, "rb") as fh:
            for block in iter(lambda: fh.read(BLOCK_SIZE), b""):
                digest.update(block)
    except OSError as exc:
        raise ReadFailure(f"Cannot read {path}: {exc}") from exc
    return f"{algorithm}:{digest.hexdigest()}"
