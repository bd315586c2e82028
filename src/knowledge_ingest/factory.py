"""Wire the production collaborators into a :class:`PipelineCoordinator`."""

from __future__ import annotations

import logging

from knowledge_ingest.clients.embedder import Embedder
from knowledge_ingest.clients.llm import get_embedding_function, get_llm
from knowledge_ingest.clients.summarizer import Summarizer
from knowledge_ingest.clients.vision import VisionAnalyzer
from knowledge_ingest.config import Settings, settings as default_settings
from knowledge_ingest.ingestion.dispatcher import default_dispatcher
from knowledge_ingest.pipeline.coordinator import PipelineCoordinator
from knowledge_ingest.vectorstore.chroma_store import ChromaVectorStore
from knowledge_ingest.vectorstore.writer import VectorStoreWriter

_logger = logging.getLogger(__name__)


def build_writer(cfg: Settings | None = None) -> VectorStoreWriter:
    """Chroma-backed writer configured from *cfg*."""
    cfg = cfg or default_settings
    return VectorStoreWriter(
        ChromaVectorStore.from_settings(cfg),
        batch_size=cfg.upsert_batch_size,
        dimension=cfg.embedding_dimension,
    )


def build_coordinator(
    cfg: Settings | None = None,
    logger: logging.Logger | None = None,
) -> PipelineCoordinator:
    """Build a coordinator with Chroma, LangChain models and the default extractors.

    Raises
    ------
    ConfigurationError
        The embedding provider is unknown.
    """
    cfg = cfg or default_settings
    vision = None
    if cfg.vision_enabled:
        vision = VisionAnalyzer(get_llm(cfg, model=cfg.vision_model_name))
        _logger.info("Vision analysis enabled (model=%s)", cfg.vision_model_name)

    return PipelineCoordinator(
        dispatcher=default_dispatcher(),
        summarizer=Summarizer(get_llm(cfg), max_input_chars=cfg.summary_max_input_chars),
        embedder=Embedder(get_embedding_function(cfg), cfg.embedding_dimension),
        writer=build_writer(cfg),
        vision=vision,
        settings=cfg,
        logger=logger,
    )
