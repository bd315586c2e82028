"""Pipeline coordinator — sequences the per-file stages and runs whole trees.

Per file::

    hash → dedup check → extract → (vision) → summarize → chunk → embed → upsert

Every per-file and per-chunk failure is recovered here and turned into a
terminal :class:`FileState`; only :class:`DirectoryUnreadable` escapes
:meth:`PipelineCoordinator.process_directory`.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from pathlib import Path
from typing import Any

from knowledge_ingest.clients.embedder import Embedder
from knowledge_ingest.clients.summarizer import SUMMARY_PLACEHOLDER, Summarizer
from knowledge_ingest.clients.vision import VisionAnalyzer
from knowledge_ingest.config import Settings, settings as default_settings
from knowledge_ingest.errors import (
    EmbeddingFailure,
    ExistenceCheckFailure,
    ExtractionFailure,
    ReadFailure,
    StorageFailure,
    SummarizationFailure,
    UnsupportedFormat,
    VisualAnalysisFailure,
)
from knowledge_ingest.ingestion.chunker import chunk_text
from knowledge_ingest.ingestion.dispatcher import FormatDispatcher
from knowledge_ingest.ingestion.extractors import is_image_extension
from knowledge_ingest.ingestion.hasher import compute_hash
from knowledge_ingest.ingestion.scanner import scan_directory
from knowledge_ingest.models import Chunk, Document, FileRecord, VectorRecord
from knowledge_ingest.pipeline.state import PROCESSED_STATES, SKIPPED_STATES, FileResult, FileState, RunStats
from knowledge_ingest.vectorstore.writer import VectorStoreWriter

# Seconds between cancellation checks while waiting on a duplicate's first copy.
_CLAIM_POLL_SECONDS = 0.1

# Outcomes after which the content of a hash is in the store.
_INDEXED_STATES = PROCESSED_STATES | SKIPPED_STATES


class _HashClaim:
    """One file's hold on a content hash; duplicates wait on ``done``."""

    def __init__(self, owner: Path) -> None:
        self.owner = owner
        self.done = threading.Event()
        self.indexed = False


class _RunContext:
    """State shared by the file pipelines of one run."""

    def __init__(self, cancel_event: threading.Event, *, skip_existing: bool) -> None:
        self.cancel_event = cancel_event
        self.skip_existing = skip_existing
        self._claims: dict[str, _HashClaim] = {}
        self._lock = threading.Lock()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def claim(self, content_hash: str, owner: Path) -> tuple[bool, _HashClaim]:
        """Reserve *content_hash* for *owner*.

        Returns ``(True, claim)`` when the caller now holds the hash, or
        ``(False, claim)`` with the current holder's claim otherwise.
        """
        with self._lock:
            held = self._claims.get(content_hash)
            if held is not None:
                return False, held
            claim = self._claims[content_hash] = _HashClaim(owner)
            return True, claim

    def release(self, content_hash: str, owner: Path, *, indexed: bool) -> None:
        """Publish *owner*'s outcome and wake its duplicates.

        A hash whose holder did not get it indexed is dropped so the next
        duplicate can claim it and run its own pipeline.
        """
        with self._lock:
            claim = self._claims.get(content_hash)
            if claim is None or claim.owner != owner:
                return
            claim.indexed = indexed
            if not indexed:
                del self._claims[content_hash]
        claim.done.set()


class PipelineCoordinator:
    """Drive files through the ingestion stages.

    Parameters
    ----------
    dispatcher:
        Format dispatcher holding the content extractors.
    summarizer:
        Document summarizer.
    embedder:
        Per-chunk embedder.
    writer:
        Vector store writer (upserts + existence checks).
    vision:
        Optional image analyzer; ``None`` disables the vision step.
    settings:
        Chunking, dedup and concurrency settings.
    logger:
        Logger for per-file and per-run lines; defaults to this module's.
    """

    def __init__(
        self,
        *,
        dispatcher: FormatDispatcher,
        summarizer: Summarizer,
        embedder: Embedder,
        writer: VectorStoreWriter,
        vision: VisionAnalyzer | None = None,
        settings: Settings | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.dispatcher = dispatcher
        self.summarizer = summarizer
        self.embedder = embedder
        self.writer = writer
        self.vision = vision
        self.settings = settings or default_settings
        self.logger = logger or logging.getLogger(__name__)

        self._lock = threading.Lock()
        self._stats: RunStats | None = None
        self._cancel_event: threading.Event | None = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def process_file(
        self,
        record: FileRecord,
        *,
        force: bool = False,
        cancel_event: threading.Event | None = None,
    ) -> FileResult:
        """Run a single file through the pipeline outside of a directory run."""
        ctx = _RunContext(
            cancel_event or threading.Event(),
            skip_existing=self.settings.skip_existing_documents and not force,
        )
        return self._process(record, ctx)

    def process_directory(
        self,
        root: str | Path | None = None,
        *,
        cancel_event: threading.Event | None = None,
        timeout: float | None = None,
        force: bool = False,
        max_workers: int | None = None,
    ) -> RunStats:
        """Ingest every file below *root* and return the run counters.

        Parameters
        ----------
        root:
            Directory to scan; defaults to ``settings.data_directory``.
        cancel_event:
            Set it to stop the run: no new file starts, in-flight files stop
            at their next stage boundary.
        timeout:
            Seconds after which *cancel_event* is set automatically;
            defaults to ``settings.run_timeout_seconds``.
        force:
            Re-process files even if their content hash is already indexed.
        max_workers:
            File-level parallelism; defaults to ``settings.max_workers``.

        Raises
        ------
        DirectoryUnreadable
            *root* is missing or cannot be listed.  Nothing is processed.
        """
        root = Path(root or self.settings.data_directory)
        records = scan_directory(root)

        cancel = cancel_event or threading.Event()
        timeout = timeout if timeout is not None else self.settings.run_timeout_seconds
        workers = max_workers or self.settings.max_workers
        ctx = _RunContext(cancel, skip_existing=self.settings.skip_existing_documents and not force)
        stats = RunStats(root=str(root))

        with self._lock:
            self._stats = stats
            self._cancel_event = cancel

        timer: threading.Timer | None = None
        if timeout:
            timer = threading.Timer(timeout, self._on_timeout, args=(cancel, timeout))
            timer.daemon = True
            timer.start()

        self.logger.info(
            "Starting ingestion of %s (workers=%d, skip_existing=%s)",
            root,
            workers,
            ctx.skip_existing,
        )
        try:
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="ingest") as pool:
                in_flight: set[Future[FileResult]] = set()
                for record in records:
                    if cancel.is_set():
                        self.logger.info("Run cancelled; no further files will be started")
                        break
                    stats.discovered()
                    if len(in_flight) >= 2 * workers:
                        done, in_flight = wait(in_flight, return_when=FIRST_COMPLETED)
                        for future in done:
                            stats.record(future.result())
                    in_flight.add(pool.submit(self._process, record, ctx))

                for future in in_flight:
                    stats.record(future.result())
        finally:
            if timer is not None:
                timer.cancel()
            stats.finish()

        summary = stats.as_dict()
        self.logger.info(
            "Ingestion finished: total=%d processed=%d skipped=%d errored=%d "
            "degraded=%d cancelled=%d chunks=%d vectors=%d (%.1fs)",
            summary["total"],
            summary["processed"],
            summary["skipped"],
            summary["errored"],
            summary["degraded"],
            summary["cancelled"],
            summary["chunks"],
            summary["vectors_written"],
            summary["elapsed_seconds"],
        )
        return stats

    def status(self) -> dict[str, Any]:
        """Counters of the current run, or of the last one."""
        with self._lock:
            stats = self._stats
        if stats is None:
            idle = RunStats()
            idle.finish()
            return idle.as_dict()
        return stats.as_dict()

    @property
    def running(self) -> bool:
        with self._lock:
            return self._stats is not None and self._stats.running

    def cancel(self) -> bool:
        """Cancel the active run; returns ``False`` when nothing is running."""
        with self._lock:
            event = self._cancel_event if self._stats is not None and self._stats.running else None
        if event is None:
            return False
        event.set()
        return True

    # ------------------------------------------------------------------
    # File pipeline
    # ------------------------------------------------------------------

    def _on_timeout(self, cancel: threading.Event, timeout: float) -> None:
        self.logger.warning("Run timeout of %.1fs reached; cancelling", timeout)
        cancel.set()

    def _process(self, record: FileRecord, ctx: _RunContext) -> FileResult:
        result = FileResult(path=record.path)
        if ctx.cancelled:
            result.state = FileState.CANCELLED
            self.logger.debug("Cancelled before start: %s", record.path)
            return result

        try:
            self._run_stages(record, ctx, result)
        except Exception as exc:
            self.logger.exception("Unexpected error while processing %s", record.path)
            result.state = FileState.FAILED
            result.error = f"{type(exc).__name__}: {exc}"
        finally:
            if ctx.skip_existing and result.content_hash:
                ctx.release(result.content_hash, record.path, indexed=result.state in _INDEXED_STATES)

        self._log_outcome(record, result)
        return result

    def _run_stages(self, record: FileRecord, ctx: _RunContext, result: FileResult) -> None:
        cfg = self.settings

        # Hash
        try:
            result.content_hash = compute_hash(record.path)
        except ReadFailure as exc:
            result.state, result.error = FileState.READ_FAILED, str(exc)
            return
        result.state = FileState.HASH_COMPUTED

        # Dedup
        if ctx.skip_existing:
            if not self._claim_hash(record, ctx, result):
                return
            try:
                if self.writer.exists(result.content_hash):
                    result.state = FileState.SKIPPED
                    result.error = "already indexed"
                    return
            except ExistenceCheckFailure as exc:
                self.logger.warning("Existence check failed for %s, processing anyway: %s", record.name, exc)

        if self._stop(ctx, result):
            return

        # Extract
        try:
            content = self.dispatcher.extract(record.path)
        except (UnsupportedFormat, ExtractionFailure) as exc:
            result.state, result.error = FileState.EXTRACTION_FAILED, str(exc)
            return
        result.state = FileState.EXTRACTED

        # Vision
        if self.vision is not None and is_image_extension(record.extension):
            try:
                visual = self.vision.analyze_image(record.path)
            except VisualAnalysisFailure as exc:
                self.logger.warning("Visual analysis failed for %s: %s", record.name, exc)
                visual = ""
            if visual:
                content += "\n\n" + visual

        if not content.strip():
            result.state = FileState.EMPTY
            return

        if self._stop(ctx, result):
            return

        # Summarize
        try:
            summary = self.summarizer.summarize(content)
        except SummarizationFailure as exc:
            self.logger.warning("Summary failed for %s, using placeholder: %s", record.name, exc)
            summary = SUMMARY_PLACEHOLDER
        result.state = FileState.SUMMARIZED

        # Chunk
        document = Document.build(
            path=record.path,
            extension=record.extension,
            content_hash=result.content_hash,
            summary=summary,
            chunk_texts=chunk_text(content, cfg.chunk_size, cfg.chunk_overlap),
        )
        result.document_id = document.document_id
        result.chunks = len(document.chunks)
        result.state = FileState.CHUNKED

        if self._stop(ctx, result):
            return

        # Embed
        vectors = self._embed_document(document, ctx)
        if ctx.cancelled:
            result.state = FileState.CANCELLED
            return
        if not vectors:
            result.state = FileState.ZERO_CHUNKS_EMBEDDED
            result.degraded = True
            return
        result.state = (
            FileState.EMBEDDED if len(vectors) == len(document.chunks) else FileState.PARTIALLY_EMBEDDED
        )

        if self._stop(ctx, result):
            return

        # Store
        try:
            self.writer.upsert(vectors)
        except StorageFailure as exc:
            result.state, result.error = FileState.STORAGE_FAILED, str(exc)
            result.vectors_written = min(exc.batches_written * self.writer.batch_size, len(vectors))
            return
        result.vectors_written = len(vectors)
        result.state = FileState.STORED

    def _stop(self, ctx: _RunContext, result: FileResult) -> bool:
        if ctx.cancelled:
            result.state = FileState.CANCELLED
            return True
        return False

    def _claim_hash(self, record: FileRecord, ctx: _RunContext, result: FileResult) -> bool:
        """Hold the file's content hash for this run; ``False`` stops the file.

        A duplicate of a file still in flight waits for that file's outcome:
        it is skipped once the content is indexed and takes over the hash
        when the first copy fails or is cancelled.
        """
        while True:
            owned, claim = ctx.claim(result.content_hash, record.path)
            if owned:
                return True
            while not claim.done.wait(_CLAIM_POLL_SECONDS):
                if ctx.cancelled:
                    break
            if claim.done.is_set() and claim.indexed:
                result.state = FileState.SKIPPED
                result.error = "duplicate content in this run"
                return False
            if self._stop(ctx, result):
                return False
            self.logger.debug(
                "First copy of %s was not indexed; retrying with %s",
                result.content_hash,
                record.name,
            )

    def _embed_document(self, document: Document, ctx: _RunContext) -> list[VectorRecord]:
        """Embed every chunk, dropping failures; records come back in chunk order.

        Returns an empty list as soon as the run is cancelled; queued chunks
        are never sent to the provider.
        """
        indexed_at = int(time.time())
        workers = max(1, min(self.settings.embed_concurrency, len(document.chunks)))
        embedded: list[list[float] | None] = []
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="embed") as pool:
            futures = [pool.submit(self._embed_chunk, chunk, ctx) for chunk in document.chunks]
            for future in futures:
                if ctx.cancelled:
                    pool.shutdown(wait=False, cancel_futures=True)
                    return []
                embedded.append(future.result())

        return [
            VectorRecord(
                id=chunk.chunk_id,
                values=values,
                metadata=document.chunk_metadata(chunk, indexed_at),
            )
            for chunk, values in zip(document.chunks, embedded)
            if values is not None
        ]

    def _embed_chunk(self, chunk: Chunk, ctx: _RunContext) -> list[float] | None:
        if ctx.cancelled:
            return None
        try:
            return self.embedder.embed(chunk.text)
        except EmbeddingFailure as exc:
            self.logger.warning(
                "Dropping chunk %d/%d of document %s: %s",
                chunk.index + 1,
                chunk.total,
                chunk.document_id,
                exc,
            )
            return None

    def _log_outcome(self, record: FileRecord, result: FileResult) -> None:
        state = result.state
        name = record.name
        if state is FileState.STORED:
            self.logger.info(
                "✓ %s: stored %d/%d chunks (document %s)",
                name,
                result.vectors_written,
                result.chunks,
                result.document_id,
            )
        elif state is FileState.SKIPPED:
            self.logger.info("✓ %s: skipped (%s)", name, result.error)
        elif state is FileState.EMPTY:
            self.logger.info("✓ %s: no content extracted", name)
        elif state is FileState.ZERO_CHUNKS_EMBEDDED:
            self.logger.warning("✓ %s: degraded, none of %d chunks could be embedded", name, result.chunks)
        elif state is FileState.CANCELLED:
            self.logger.info("✗ %s: cancelled", name)
        else:
            self.logger.warning("✗ %s: %s (%s)", name, state.value, result.error)
