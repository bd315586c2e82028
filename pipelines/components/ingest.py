"""KFP v2 component — Ingest a directory into the vector store.

Runs the full per-file pipeline (hash → dedup → extract → summarize →
chunk → embed → upsert) inside the project image and reports the run
counters as KFP metrics.

Connection details and model names are component parameters; everything
else (API keys, vision, batch sizes) comes from the container environment
through ``Settings``.

Local testing
-------------
    from pipelines.components.ingest import ingest_directory
    ingest_directory.python_func(
        source_path="/data/documents",
        chroma_host="localhost",
        chroma_port=8000,
        collection_name="test",
        metrics=_FakeArtifact("/tmp/metrics"),
    )
"""

from kfp import dsl

INGEST_IMAGE = "ghcr.io/knowledge-ingest/knowledge-ingest:0.1.0"


@dsl.component(base_image=INGEST_IMAGE)
def ingest_directory(
    source_path: str,
    chroma_host: str,
    chroma_port: int,
    collection_name: str,
    metrics: dsl.Output[dsl.Metrics],
    embedding_provider: str = "openai",
    embedding_model: str = "text-embedding-3-small",
    embedding_dimension: int = 1536,
    llm_model_name: str = "gpt-4o-mini",
    llm_base_url: str = "",
    chunk_size: int = 1000,
    chunk_overlap: int = 200,
    max_workers: int = 4,
    force: bool = False,
    timeout_seconds: float = 0.0,
) -> str:
    """Ingest every file below *source_path*.

    Parameters
    ----------
    source_path:
        Directory mounted into the step (PVC or synced bucket).
    chroma_host / chroma_port / collection_name:
        Chroma connection details.
    metrics:
        Output Metrics artifact with the run counters.
    embedding_provider / embedding_model / embedding_dimension:
        Embedding configuration; the dimension must match the collection.
    llm_model_name / llm_base_url:
        Chat model used for summaries.
    chunk_size / chunk_overlap:
        Chunking parameters.
    max_workers:
        Files processed in parallel.
    force:
        Re-process files that are already indexed.
    timeout_seconds:
        Cancel the run after this many seconds (``0`` disables).

    Returns
    -------
    str
        Summary, e.g. ``"Processed 12, skipped 3, errored 0 → 'docs'"``.
    """
    import logging

    from knowledge_ingest.config import Settings
    from knowledge_ingest.factory import build_coordinator
    from knowledge_ingest.log import configure_logging

    configure_logging("INFO")
    log = logging.getLogger("ingest_directory")

    cfg = Settings(
        chroma_host=chroma_host,
        chroma_port=chroma_port,
        chroma_collection=collection_name,
        embedding_provider=embedding_provider,
        embedding_model=embedding_model,
        embedding_dimension=embedding_dimension,
        llm_model_name=llm_model_name,
        llm_base_url=llm_base_url,
        chunk_size=chunk_size,
        chunk_overlap=chunk_overlap,
        max_workers=max_workers,
    )
    coordinator = build_coordinator(cfg, logger=log)
    stats = coordinator.process_directory(
        source_path,
        timeout=timeout_seconds or None,
        force=force,
    ).as_dict()

    # KFP Metrics
    for name in ("total", "processed", "skipped", "errored", "degraded", "cancelled", "chunks", "vectors_written"):
        metrics.log_metric(name, stats[name])
    metrics.log_metric("elapsed_seconds", stats["elapsed_seconds"])
    metrics.log_metric("collection_name", collection_name)

    msg = (
        f"Processed {stats['processed']}, skipped {stats['skipped']}, "
        f"errored {stats['errored']} → '{collection_name}'"
    )
    log.info(msg)
    return msg
