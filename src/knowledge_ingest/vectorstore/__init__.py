"""
Vector store — persistence of chunk vectors and the dedup lookup.

Public surface
--------------
- :class:`VectorStoreBase` — abstract backend (subclass for Pinecone, etc.).
- :class:`ChromaVectorStore` — default Chroma backend.
- :class:`VectorStoreWriter` — batching writer + content-hash existence check.
"""

from knowledge_ingest.vectorstore.base import VectorStoreBase
from knowledge_ingest.vectorstore.writer import VectorStoreWriter

__all__ = [
    "ChromaVectorStore",
    "VectorStoreBase",
    "VectorStoreWriter",
]


def __getattr__(name: str):  # noqa: ANN001
    """Lazy-import ChromaVectorStore to avoid pulling in chromadb at import time."""
    if name == "ChromaVectorStore":
        from knowledge_ingest.vectorstore.chroma_store import ChromaVectorStore

        return ChromaVectorStore
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
