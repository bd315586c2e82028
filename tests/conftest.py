"""Shared pytest configuration and fixtures.

The fakes below stand in for the vector store and the model providers so
the pipeline can be exercised end-to-end without Chroma or OpenAI.
"""

from __future__ import annotations

import threading
from typing import Any, Callable
from unittest.mock import MagicMock

import pytest
from langchain_core.embeddings import Embeddings
from langchain_core.messages import AIMessage

from knowledge_ingest.clients.embedder import Embedder
from knowledge_ingest.clients.summarizer import Summarizer
from knowledge_ingest.config import Settings
from knowledge_ingest.ingestion.dispatcher import default_dispatcher
from knowledge_ingest.models import MetadataFilter, QueryMatch, VectorRecord
from knowledge_ingest.pipeline.coordinator import PipelineCoordinator
from knowledge_ingest.vectorstore.base import VectorStoreBase
from knowledge_ingest.vectorstore.writer import VectorStoreWriter

TEST_DIMENSION = 8


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests requiring external services")


# ── Fake vector store ───────────────────────────────────────────────────


def _matches(metadata: dict[str, Any], f: MetadataFilter) -> bool:
    value = metadata.get(f.field)
    if f.operator == "eq":
        return value == f.value
    if f.operator == "ne":
        return value != f.value
    if f.operator == "in":
        return value in f.value
    if f.operator == "nin":
        return value not in f.value
    raise ValueError(f"unsupported operator in fake store: {f.operator}")


class FakeVectorStore(VectorStoreBase):
    """In-memory store honouring ``eq``/``ne``/``in``/``nin`` filters.

    Parameters
    ----------
    fail_upsert_on_call:
        1-based upsert call number that raises (``None`` never fails).
    fail_query:
        Make every query raise ``ConnectionError``.
    """

    def __init__(self, *, fail_upsert_on_call: int | None = None, fail_query: bool = False) -> None:
        super().__init__("test-collection")
        self.records: dict[str, VectorRecord] = {}
        self.upsert_calls: list[int] = []
        self.queries: list[dict[str, Any]] = []
        self.fail_upsert_on_call = fail_upsert_on_call
        self.fail_query = fail_query
        self.healthy = True
        self._lock = threading.Lock()

    def upsert(self, records: list[VectorRecord]) -> None:
        with self._lock:
            self.upsert_calls.append(len(records))
            if self.fail_upsert_on_call == len(self.upsert_calls):
                raise RuntimeError("store rejected batch")
            for r in records:
                self.records[r.id] = r

    def query(
        self,
        vector: list[float],
        *,
        top_k: int = 5,
        filters: list[MetadataFilter] | None = None,
        include_metadata: bool = True,
    ) -> list[QueryMatch]:
        with self._lock:
            self.queries.append(
                {"vector": vector, "top_k": top_k, "filters": filters, "include_metadata": include_metadata}
            )
            if self.fail_query:
                raise ConnectionError("store unreachable")
            hits = [r for r in self.records.values() if all(_matches(r.metadata, f) for f in filters or [])]
        return [
            QueryMatch(id=r.id, score=1.0, metadata=dict(r.metadata) if include_metadata else {})
            for r in hits[:top_k]
        ]

    def describe_stats(self) -> dict[str, Any]:
        return {"collection": self.collection_name, "total_vector_count": len(self.records)}

    def health_check(self) -> bool:
        return self.healthy

    def file_hashes(self) -> set[str]:
        return {str(r.metadata["file_hash"]) for r in self.records.values()}


# ── Fake model providers ────────────────────────────────────────────────


class FakeEmbeddings(Embeddings):
    """Deterministic embeddings; texts containing a marker misbehave.

    Parameters
    ----------
    dimension:
        Length of the returned vectors.
    fail_on:
        Texts containing any of these substrings raise.
    wrong_dimension_on:
        Texts containing any of these substrings get one extra component.
    """

    def __init__(
        self,
        dimension: int = TEST_DIMENSION,
        *,
        fail_on: tuple[str, ...] = (),
        wrong_dimension_on: tuple[str, ...] = (),
    ) -> None:
        self.dimension = dimension
        self.fail_on = fail_on
        self.wrong_dimension_on = wrong_dimension_on

    def embed_query(self, text: str) -> list[float]:
        if any(marker in text for marker in self.fail_on):
            raise RuntimeError("embedding provider error")
        dim = self.dimension + 1 if any(m in text for m in self.wrong_dimension_on) else self.dimension
        seed = sum(ord(c) for c in text[:64])
        return [((seed + i) % 97) / 97.0 for i in range(dim)]

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return [self.embed_query(t) for t in texts]


def make_llm(content: str = "A short summary.", *, side_effect: Any = None) -> MagicMock:
    """Chat-model mock whose ``invoke`` returns an ``AIMessage``."""
    llm = MagicMock()
    if side_effect is not None:
        llm.invoke.side_effect = side_effect
    else:
        llm.invoke.return_value = AIMessage(content=content)
    return llm


# ── Fixtures ────────────────────────────────────────────────────────────


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        embedding_dimension=TEST_DIMENSION,
        chunk_size=1000,
        chunk_overlap=200,
        skip_existing_documents=True,
        max_workers=2,
        embed_concurrency=2,
        upsert_batch_size=100,
        run_timeout_seconds=None,
        vision_enabled=False,
    )


@pytest.fixture
def make_coordinator(test_settings: Settings) -> Callable[..., PipelineCoordinator]:
    """Factory building a coordinator over fakes; keyword overrides replace any piece."""

    def _make(
        *,
        store: FakeVectorStore | None = None,
        embeddings: Embeddings | None = None,
        llm: Any = None,
        vision: Any = None,
        **setting_overrides: Any,
    ) -> PipelineCoordinator:
        cfg = test_settings.model_copy(update=setting_overrides) if setting_overrides else test_settings
        return PipelineCoordinator(
            dispatcher=default_dispatcher(),
            summarizer=Summarizer(llm or make_llm(), max_input_chars=cfg.summary_max_input_chars),
            embedder=Embedder(embeddings or FakeEmbeddings(cfg.embedding_dimension), cfg.embedding_dimension),
            writer=VectorStoreWriter(
                store if store is not None else FakeVectorStore(),
                batch_size=cfg.upsert_batch_size,
                dimension=cfg.embedding_dimension,
            ),
            vision=vision,
            settings=cfg,
        )

    return _make
