"""Batching writer and dedup lookup on top of a :class:`VectorStoreBase`."""

from __future__ import annotations

import logging
from typing import Any

from knowledge_ingest.errors import ExistenceCheckFailure, StorageFailure
from knowledge_ingest.models import MetadataFilter, QueryMatch, VectorRecord
from knowledge_ingest.vectorstore.base import VectorStoreBase

logger = logging.getLogger(__name__)

HASH_FIELD = "file_hash"


class VectorStoreWriter:
    """Write vector records in provider-sized batches and answer "already indexed?".

    Parameters
    ----------
    store:
        Concrete vector-store backend.
    batch_size:
        Maximum records per upsert call.
    dimension:
        Embedding dimension; sizes the zero vector used by :meth:`exists`.
    """

    def __init__(self, store: VectorStoreBase, *, batch_size: int = 100, dimension: int = 1536) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self.store = store
        self.batch_size = batch_size
        self.dimension = dimension

    def upsert(self, vectors: list[VectorRecord]) -> int:
        """Upsert *vectors*, one store call per batch.

        Returns the number of batches written.  Atomicity holds per batch
        only: when a later batch fails the earlier ones stay committed.

        Raises
        ------
        StorageFailure
            A batch was rejected; ``batches_written`` counts the committed ones.
        """
        if not vectors:
            return 0

        batches = 0
        for start in range(0, len(vectors), self.batch_size):
            end = min(start + self.batch_size, len(vectors))
            try:
                self.store.upsert(vectors[start:end])
            except Exception as exc:
                raise StorageFailure(
                    f"failed to upsert batch {batches + 1} ({start}-{end}): {exc}",
                    batches_written=batches,
                ) from exc
            batches += 1
            logger.debug("Upserted batch %d (%d-%d)", batches, start, end)

        logger.debug("Upserted %d vectors in %d batches", len(vectors), batches)
        return batches

    def exists(self, content_hash: str) -> bool:
        """Return ``True`` when any record carries *content_hash*.

        Uses a metadata-filtered query with a zero vector and ``top_k=1``.

        Raises
        ------
        ExistenceCheckFailure
            The lookup itself failed (transport error, bad response, …).
        """
        try:
            matches = self.store.query(
                [0.0] * self.dimension,
                top_k=1,
                filters=[MetadataFilter.equals(HASH_FIELD, content_hash)],
                include_metadata=False,
            )
        except Exception as exc:
            raise ExistenceCheckFailure(f"existence check failed for {content_hash}: {exc}") from exc
        return len(matches) > 0

    def query(
        self,
        vector: list[float],
        *,
        top_k: int = 5,
        filters: list[MetadataFilter] | None = None,
        include_metadata: bool = True,
    ) -> list[QueryMatch]:
        return self.store.query(vector, top_k=top_k, filters=filters, include_metadata=include_metadata)

    def describe_stats(self) -> dict[str, Any]:
        return self.store.describe_stats()
