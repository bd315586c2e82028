"""Abstract base class for vector-store backends.

Adding a new backend (Pinecone, Weaviate, Qdrant …) only requires
subclassing :class:`VectorStoreBase` and implementing the abstract
methods.  The writer and coordinator are backend-agnostic.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from knowledge_ingest.models import MetadataFilter, QueryMatch, VectorRecord


class VectorStoreBase(ABC):
    """Backend-agnostic vector-store interface.

    Parameters
    ----------
    collection_name:
        Logical name of the collection / index / namespace.
    """

    def __init__(self, collection_name: str) -> None:
        self.collection_name = collection_name

    # -- required overrides ---------------------------------------------------

    @abstractmethod
    def upsert(self, records: list[VectorRecord]) -> None:
        """Insert or overwrite *records* in a single write call.

        The call is atomic for the backend only as far as the backend's
        own batch write is.  Implementations raise on any failure.
        """
        ...

    @abstractmethod
    def query(
        self,
        vector: list[float],
        *,
        top_k: int = 5,
        filters: list[MetadataFilter] | None = None,
        include_metadata: bool = True,
    ) -> list[QueryMatch]:
        """Return the *top_k* records closest to *vector* among those matching *filters*.

        Parameters
        ----------
        vector:
            Dense query vector.
        top_k:
            Maximum number of matches.
        filters:
            Optional metadata filters applied server-side (AND-ed).
        include_metadata:
            When ``False`` matches may carry empty metadata.
        """
        ...

    @abstractmethod
    def describe_stats(self) -> dict[str, Any]:
        """Index-level counters (record count, dimension, …) for observability."""
        ...

    @abstractmethod
    def health_check(self) -> bool:
        """Return ``True`` when the backend is reachable and ready."""
        ...

    # -- optional overrides ---------------------------------------------------

    def delete(self, ids: list[str]) -> None:
        """Delete records by their IDs.  Optional — raises by default."""
        raise NotImplementedError(f"{type(self).__name__} does not support delete")
