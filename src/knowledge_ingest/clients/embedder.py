"""Per-chunk embeddings with a dimension contract."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from knowledge_ingest.errors import EmbeddingDimensionMismatch, EmbeddingFailure

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings

logger = logging.getLogger(__name__)


class Embedder:
    """Turn one chunk of text into a fixed-length vector.

    Parameters
    ----------
    embeddings:
        LangChain embedding model (``OpenAIEmbeddings`` or
        ``HuggingFaceEmbeddings``); see
        :func:`knowledge_ingest.clients.llm.get_embedding_function`.
    dimension:
        Expected vector length.  Must equal the vector store dimension.
    """

    def __init__(self, embeddings: Embeddings, dimension: int) -> None:
        self._embeddings = embeddings
        self.dimension = dimension

    def embed(self, text: str) -> list[float]:
        """Embed *text*.

        Raises
        ------
        EmbeddingFailure
            Empty text or provider error.
        EmbeddingDimensionMismatch
            The provider returned a vector of the wrong length.
        """
        if not text:
            raise EmbeddingFailure("text cannot be empty")
        try:
            vector = self._embeddings.embed_query(text)
        except Exception as exc:
            raise EmbeddingFailure(f"embedding request failed: {exc}") from exc

        if len(vector) != self.dimension:
            raise EmbeddingDimensionMismatch(self.dimension, len(vector))
        return [float(v) for v in vector]
