"""FastAPI application exposing the ingestion pipeline as a REST API."""

from __future__ import annotations

import logging
import threading
from functools import lru_cache
from pathlib import Path
from typing import Any

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException
from pydantic import BaseModel

from knowledge_ingest import __version__
from knowledge_ingest.config import settings
from knowledge_ingest.errors import DirectoryUnreadable
from knowledge_ingest.pipeline.coordinator import PipelineCoordinator

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Knowledge Ingest API",
    version=__version__,
    description="REST interface to the document ingestion pipeline.",
)

# One directory run at a time per process.
_run_lock = threading.Lock()


@lru_cache(maxsize=1)
def get_coordinator() -> PipelineCoordinator:
    """Process-wide coordinator, built on first use."""
    from knowledge_ingest.factory import build_coordinator

    return build_coordinator(settings)


# ── Request / Response schemas ────────────────────────────────────────
class IndexRequest(BaseModel):
    """Directory ingestion request."""

    directory: str | None = None
    force: bool = False


class IndexResponse(BaseModel):
    """Acknowledgement for an accepted run."""

    status: str
    directory: str
    force: bool


# ── Background work ───────────────────────────────────────────────────
def _run_ingestion(coordinator: PipelineCoordinator, directory: str, force: bool) -> None:
    try:
        coordinator.process_directory(directory, force=force)
    except DirectoryUnreadable as exc:
        logger.error("Ingestion aborted: %s", exc)
    finally:
        _run_lock.release()


# ── Routes ────────────────────────────────────────────────────────────
@app.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe."""
    return {"status": "ok"}


@app.get("/ready")
def ready(coordinator: PipelineCoordinator = Depends(get_coordinator)) -> dict[str, str]:
    """Readiness probe — the vector store must answer."""
    if not coordinator.writer.store.health_check():
        raise HTTPException(status_code=503, detail="vector store unavailable")
    return {"status": "ready"}


@app.get("/formats")
def formats(coordinator: PipelineCoordinator = Depends(get_coordinator)) -> dict[str, list[str]]:
    """Supported file extensions grouped by extractor category."""
    return coordinator.dispatcher.supported_formats()


@app.post("/index", response_model=IndexResponse, status_code=202)
def index(
    request: IndexRequest,
    background_tasks: BackgroundTasks,
    coordinator: PipelineCoordinator = Depends(get_coordinator),
) -> IndexResponse:
    """Start a directory ingestion run in the background."""
    directory = request.directory or settings.data_directory
    if not Path(directory).is_dir():
        raise HTTPException(status_code=404, detail=f"Directory not found: {directory}")
    if not _run_lock.acquire(blocking=False):
        raise HTTPException(status_code=409, detail="an ingestion run is already in progress")

    logger.info("Accepted ingestion request for %s (force=%s)", directory, request.force)
    background_tasks.add_task(_run_ingestion, coordinator, directory, request.force)
    return IndexResponse(status="accepted", directory=directory, force=request.force)


@app.get("/status")
def status(coordinator: PipelineCoordinator = Depends(get_coordinator)) -> dict[str, Any]:
    """Counters of the current or last run."""
    return coordinator.status()


@app.get("/stats")
def stats(coordinator: PipelineCoordinator = Depends(get_coordinator)) -> dict[str, Any]:
    """Vector-store statistics."""
    try:
        return coordinator.writer.describe_stats()
    except Exception as exc:
        logger.warning("describe_stats failed: %s", exc)
        raise HTTPException(status_code=503, detail="vector store unavailable") from exc
