"""Chroma implementation of the vector-store abstraction."""

from __future__ import annotations

import logging
from typing import Any

import chromadb

from knowledge_ingest.config import Settings, settings as default_settings
from knowledge_ingest.models import MetadataFilter, QueryMatch, VectorRecord
from knowledge_ingest.vectorstore.base import VectorStoreBase

logger = logging.getLogger(__name__)

_OP_MAP = {
    "eq": "$eq",
    "ne": "$ne",
    "gt": "$gt",
    "gte": "$gte",
    "lt": "$lt",
    "lte": "$lte",
    "in": "$in",
    "nin": "$nin",
}


def _build_chroma_where(filters: list[MetadataFilter]) -> dict[str, Any] | None:
    """Convert a list of :class:`MetadataFilter` to Chroma ``where`` syntax."""
    if not filters:
        return None

    clauses: list[dict[str, Any]] = []
    for f in filters:
        chroma_op = _OP_MAP.get(f.operator)
        if chroma_op is None:
            raise ValueError(f"Unsupported filter operator: {f.operator!r}")
        clauses.append({f.field: {chroma_op: f.value}})

    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


class ChromaVectorStore(VectorStoreBase):
    """Chroma-backed vector store.

    Parameters
    ----------
    collection_name:
        Name of the Chroma collection.
    client:
        Pre-built Chroma client.  When *None*, an ``HttpClient`` for
        *host*/*port* is created, or a ``PersistentClient`` when
        *persist_directory* is given.
    host / port:
        Chroma server location.
    persist_directory:
        Local path for an embedded, on-disk Chroma.
    distance_metric:
        ``hnsw:space`` of a newly created collection (``l2`` | ``cosine`` | ``ip``).
    dimension:
        Embedding dimension, reported by :meth:`describe_stats`.
    """

    def __init__(
        self,
        collection_name: str = default_settings.chroma_collection,
        *,
        client: Any | None = None,
        host: str = default_settings.chroma_host,
        port: int = default_settings.chroma_port,
        persist_directory: str = default_settings.chroma_persist_directory,
        distance_metric: str = default_settings.distance_metric,
        dimension: int = default_settings.embedding_dimension,
    ) -> None:
        super().__init__(collection_name)
        if client is None:
            if persist_directory:
                logger.info("Using embedded Chroma at %s", persist_directory)
                client = chromadb.PersistentClient(path=persist_directory)
            else:
                logger.info("Connecting to Chroma at %s:%d", host, port)
                client = chromadb.HttpClient(host=host, port=port)
        self._client = client
        self._dimension = dimension
        self._collection = self._client.get_or_create_collection(
            name=collection_name,
            metadata={"hnsw:space": distance_metric},
        )

    @classmethod
    def from_settings(cls, cfg: Settings) -> ChromaVectorStore:
        return cls(
            cfg.chroma_collection,
            host=cfg.chroma_host,
            port=cfg.chroma_port,
            persist_directory=cfg.chroma_persist_directory,
            distance_metric=cfg.distance_metric,
            dimension=cfg.embedding_dimension,
        )

    # -- VectorStoreBase overrides --------------------------------------------

    def upsert(self, records: list[VectorRecord]) -> None:
        if not records:
            return
        self._collection.upsert(
            ids=[r.id for r in records],
            embeddings=[r.values for r in records],
            documents=[str(r.metadata.get("content", "")) for r in records],
            metadatas=[dict(r.metadata) for r in records],
        )

    def query(
        self,
        vector: list[float],
        *,
        top_k: int = 5,
        filters: list[MetadataFilter] | None = None,
        include_metadata: bool = True,
    ) -> list[QueryMatch]:
        include = ["metadatas", "distances"] if include_metadata else ["distances"]
        results = self._collection.query(
            query_embeddings=[vector],
            n_results=top_k,
            where=_build_chroma_where(filters) if filters else None,
            include=include,
        )

        ids = (results.get("ids") or [[]])[0]
        distances = (results.get("distances") or [[]])[0] or [None] * len(ids)
        metas = (results.get("metadatas") or [[]])[0] or [None] * len(ids)

        matches: list[QueryMatch] = []
        for record_id, dist, meta in zip(ids, distances, metas):
            # Chroma returns distances; convert to a 0-1 similarity score.
            score = 1.0 / (1.0 + dist) if dist is not None else None
            matches.append(QueryMatch(id=record_id, score=score, metadata=meta or {}))
        return matches

    def describe_stats(self) -> dict[str, Any]:
        return {
            "collection": self.collection_name,
            "total_vector_count": self._collection.count(),
            "dimension": self._dimension,
        }

    def health_check(self) -> bool:
        try:
            self._client.heartbeat()
            return True
        except Exception:
            logger.warning("Chroma health-check failed", exc_info=True)
            return False

    def delete(self, ids: list[str]) -> None:
        self._collection.delete(ids=ids)
