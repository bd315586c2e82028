"""Per-file states and run-level counters.

A file pipeline walks the :class:`FileState` machine and ends in exactly
one terminal state; :class:`RunStats` folds those terminal states into
the counters reported at the end of a run.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any


# ---------------------------------------------------------------------------
# File state machine
# ---------------------------------------------------------------------------


class FileState(str, Enum):
    """Lifecycle of one file through the pipeline.

    ``DISCOVERED → HASH_COMPUTED → {SKIPPED | EXTRACTION_FAILED | EXTRACTED}
    → SUMMARIZED → CHUNKED → {EMBEDDED | PARTIALLY_EMBEDDED |
    ZERO_CHUNKS_EMBEDDED} → {STORED | STORAGE_FAILED}``
    """

    DISCOVERED = "discovered"
    HASH_COMPUTED = "hash_computed"
    SKIPPED = "skipped"
    EXTRACTION_FAILED = "extraction_failed"
    EXTRACTED = "extracted"
    SUMMARIZED = "summarized"
    CHUNKED = "chunked"
    EMBEDDED = "embedded"
    PARTIALLY_EMBEDDED = "partially_embedded"
    ZERO_CHUNKS_EMBEDDED = "zero_chunks_embedded"
    STORED = "stored"
    STORAGE_FAILED = "storage_failed"
    READ_FAILED = "read_failed"
    EMPTY = "empty"
    CANCELLED = "cancelled"
    FAILED = "failed"


PROCESSED_STATES = frozenset({FileState.STORED, FileState.EMPTY, FileState.ZERO_CHUNKS_EMBEDDED})
SKIPPED_STATES = frozenset({FileState.SKIPPED})
ERROR_STATES = frozenset(
    {
        FileState.READ_FAILED,
        FileState.EXTRACTION_FAILED,
        FileState.STORAGE_FAILED,
        FileState.FAILED,
    }
)
TERMINAL_STATES = PROCESSED_STATES | SKIPPED_STATES | ERROR_STATES | {FileState.CANCELLED}


@dataclass
class FileResult:
    """Outcome of one file pipeline.

    Attributes
    ----------
    path:
        Source file.
    state:
        Terminal :class:`FileState`.
    content_hash:
        ``"sha256:<hex>"`` once computed, else ``""``.
    document_id:
        Set once a document was built.
    chunks:
        Chunks produced by the chunker.
    vectors_written:
        Vectors accepted by the vector store (committed batches only).
    degraded:
        ``True`` when chunks were produced but none could be embedded.
    error:
        Human-readable failure reason for error states.
    """

    path: Path
    state: FileState = FileState.DISCOVERED
    content_hash: str = ""
    document_id: str = ""
    chunks: int = 0
    vectors_written: int = 0
    degraded: bool = False
    error: str = ""

    @property
    def processed(self) -> bool:
        return self.state in PROCESSED_STATES

    @property
    def skipped(self) -> bool:
        return self.state in SKIPPED_STATES

    @property
    def errored(self) -> bool:
        return self.state in ERROR_STATES


# ---------------------------------------------------------------------------
# Run counters
# ---------------------------------------------------------------------------


@dataclass
class RunStats:
    """Aggregate counters for one directory run.

    Updated from worker threads through :meth:`record` / :meth:`discovered`,
    which serialise on an internal lock.
    """

    root: str = ""
    total: int = 0
    processed: int = 0
    skipped: int = 0
    errored: int = 0
    degraded: int = 0
    cancelled: int = 0
    chunks: int = 0
    vectors_written: int = 0
    started_at: float = field(default_factory=time.time)
    finished_at: float | None = None
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def discovered(self) -> None:
        with self._lock:
            self.total += 1

    def record(self, result: FileResult) -> None:
        """Fold one terminal :class:`FileResult` into the counters."""
        with self._lock:
            if result.state in PROCESSED_STATES:
                self.processed += 1
            elif result.state in SKIPPED_STATES:
                self.skipped += 1
            elif result.state in ERROR_STATES:
                self.errored += 1
            elif result.state is FileState.CANCELLED:
                self.cancelled += 1
            if result.degraded:
                self.degraded += 1
            self.chunks += result.chunks
            self.vectors_written += result.vectors_written

    def finish(self) -> None:
        with self._lock:
            self.finished_at = time.time()

    @property
    def running(self) -> bool:
        return self.finished_at is None

    def as_dict(self) -> dict[str, Any]:
        """Consistent snapshot of the counters."""
        with self._lock:
            end = self.finished_at if self.finished_at is not None else time.time()
            return {
                "root": self.root,
                "total": self.total,
                "processed": self.processed,
                "skipped": self.skipped,
                "errored": self.errored,
                "degraded": self.degraded,
                "cancelled": self.cancelled,
                "chunks": self.chunks,
                "vectors_written": self.vectors_written,
                "running": self.finished_at is None,
                "elapsed_seconds": round(end - self.started_at, 3),
            }
