"""KFP v2 pipeline — directory ingestion into the vector store.

A single step, ``ingest_directory``, runs the whole per-file pipeline
(hash → dedup → extract → summarize → chunk → embed → upsert) against a
mounted directory and emits the run counters as a ``Metrics`` artifact.

Compile
-------
    python -m pipelines.ingestion_pipeline --compile

Then submit the YAML to a KFP-compatible backend.
"""

from kfp import compiler, dsl

from pipelines.components.ingest import ingest_directory


# ──────────────────────────────────────────────────────────────────────
# Pipeline definition
# ──────────────────────────────────────────────────────────────────────


@dsl.pipeline(
    name="knowledge-ingestion-pipeline",
    description=(
        "Directory ingestion: extract → summarize → chunk → embed → index, "
        "skipping files whose content hash is already indexed."
    ),
)
def ingestion_pipeline(
    # ── Source ──────────────────────────────────────────────────────
    source_path: str = "/data/documents",
    force: bool = False,
    timeout_seconds: float = 0.0,
    max_workers: int = 4,
    # ── Chunking ───────────────────────────────────────────────────
    chunk_size: int = 1000,
    chunk_overlap: int = 200,
    # ── Models ─────────────────────────────────────────────────────
    embedding_provider: str = "openai",
    embedding_model: str = "text-embedding-3-small",
    embedding_dimension: int = 1536,
    llm_model_name: str = "gpt-4o-mini",
    llm_base_url: str = "",
    # ── Vector DB ──────────────────────────────────────────────────
    chroma_host: str = "chroma.kubeflow.svc.cluster.local",
    chroma_port: int = 8000,
    collection_name: str = "knowledge_ingest",
) -> None:
    """Ingest *source_path* into *collection_name*.

    Parameters
    ----------
    source_path:
        Directory to ingest, as mounted in the step container.
    force:
        Re-process files that are already indexed.
    timeout_seconds:
        Cancel the run after this many seconds (``0`` disables).
    max_workers:
        Files processed in parallel.
    chunk_size / chunk_overlap:
        Text chunking parameters.
    embedding_provider / embedding_model / embedding_dimension:
        Embedding configuration.
    llm_model_name / llm_base_url:
        Chat model used for document summaries.
    chroma_host / chroma_port / collection_name:
        Chroma connection details.
    """
    ingest_directory(
        source_path=source_path,
        chroma_host=chroma_host,
        chroma_port=chroma_port,
        collection_name=collection_name,
        embedding_provider=embedding_provider,
        embedding_model=embedding_model,
        embedding_dimension=embedding_dimension,
        llm_model_name=llm_model_name,
        llm_base_url=llm_base_url,
        chunk_size=chunk_size,
        chunk_overlap=chunk_overlap,
        max_workers=max_workers,
        force=force,
        timeout_seconds=timeout_seconds,
    )


# ──────────────────────────────────────────────────────────────────────
# CLI
# ──────────────────────────────────────────────────────────────────────


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Knowledge ingestion pipeline")
    parser.add_argument(
        "--compile",
        action="store_true",
        help="Compile pipeline to YAML",
    )
    parser.add_argument(
        "--output",
        default="pipelines/compiled/ingestion_pipeline.yaml",
        help="Output path for compiled YAML",
    )
    args = parser.parse_args()

    if args.compile:
        compiler.Compiler().compile(ingestion_pipeline, args.output)
        print(f"Pipeline compiled → {args.output}")
