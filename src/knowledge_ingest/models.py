"""Domain models for files, documents, chunks, and vector records."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

MetadataValue = Union[str, int, float, bool]


class FileRecord(BaseModel):
    """A regular file discovered by the scanner.

    Attributes
    ----------
    path:
        Absolute path of the file.
    extension:
        Lower-cased suffix including the leading dot (``".md"``), or ``""``.
    size:
        Byte length at scan time.
    """

    path: Path
    extension: str = ""
    size: int = 0

    @classmethod
    def from_path(cls, path: str | Path) -> FileRecord:
        """Build a record from *path*, stat-ing the file.

        Raises ``OSError`` when the file cannot be stat-ed.
        """
        p = Path(path).absolute()
        st = os.stat(p)
        return cls(path=p, extension=p.suffix.lower(), size=st.st_size)

    @property
    def name(self) -> str:
        return self.path.name


class Chunk(BaseModel):
    """One window of a document's combined text.

    ``chunk_id`` is derived from the parent document id and the index, so
    re-processing a document yields the same ids (idempotent upsert key).
    """

    model_config = ConfigDict(frozen=True)

    chunk_id: str
    document_id: str
    index: int
    total: int
    text: str

    @staticmethod
    def make_id(document_id: str, index: int) -> str:
        return f"{document_id}-chunk-{index}"


class Document(BaseModel):
    """Logical unit derived from one successfully extracted file.

    Attributes
    ----------
    document_id:
        Opaque identifier, unique per processed file.
    path:
        Source file path.
    extension:
        Source file extension.
    content_hash:
        ``"<algorithm>:<hex>"`` digest of the source bytes.
    summary:
        Generated synopsis (or the failure placeholder).
    chunks:
        Ordered chunks, indices ``0..len(chunks)-1``.
    """

    model_config = ConfigDict(frozen=True)

    document_id: str = Field(default_factory=lambda: str(uuid4()))
    path: Path
    extension: str
    content_hash: str
    summary: str = ""
    chunks: tuple[Chunk, ...] = ()

    @classmethod
    def build(
        cls,
        *,
        path: Path,
        extension: str,
        content_hash: str,
        summary: str,
        chunk_texts: list[str],
    ) -> Document:
        """Create a document and its chunks in one go."""
        document_id = str(uuid4())
        total = len(chunk_texts)
        chunks = tuple(
            Chunk(
                chunk_id=Chunk.make_id(document_id, i),
                document_id=document_id,
                index=i,
                total=total,
                text=text,
            )
            for i, text in enumerate(chunk_texts)
        )
        return cls(
            document_id=document_id,
            path=path,
            extension=extension,
            content_hash=content_hash,
            summary=summary,
            chunks=chunks,
        )

    def chunk_metadata(self, chunk: Chunk, indexed_at: int) -> dict[str, MetadataValue]:
        """Denormalized metadata stored alongside *chunk*'s vector."""
        return {
            "document_id": self.document_id,
            "file_name": self.path.name,
            "file_path": str(self.path),
            "file_type": self.extension,
            "file_hash": self.content_hash,
            "chunk_index": chunk.index,
            "chunk_total": chunk.total,
            "content": chunk.text,
            "summary": self.summary,
            "indexed_at": indexed_at,
        }


class VectorRecord(BaseModel):
    """A persisted (id, embedding, metadata) triple.

    Vector-store metadata must be flat, so values are restricted to
    ``str`` / ``int`` / ``float`` / ``bool``.
    """

    id: str
    values: list[float]
    metadata: dict[str, MetadataValue] = Field(default_factory=dict)


class QueryMatch(BaseModel):
    """A single hit returned by a vector-store query."""

    id: str
    score: float | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class MetadataFilter(BaseModel):
    """Declarative metadata filter for vector-store queries.

    Attributes
    ----------
    field:
        The metadata key to filter on (e.g. ``"file_hash"``, ``"file_type"``).
    operator:
        Comparison operator — one of ``eq``, ``ne``, ``gt``, ``gte``,
        ``lt``, ``lte``, ``in``, ``nin``.
    value:
        The value (or list of values for ``in`` / ``nin``) to compare against.
    """

    field: str
    operator: str = "eq"
    value: Any = None

    # -- helpers for common filters ------------------------------------------

    @classmethod
    def equals(cls, field: str, value: Any) -> MetadataFilter:
        return cls(field=field, operator="eq", value=value)

    @classmethod
    def not_equals(cls, field: str, value: Any) -> MetadataFilter:
        return cls(field=field, operator="ne", value=value)

    @classmethod
    def one_of(cls, field: str, values: list[Any]) -> MetadataFilter:
        return cls(field=field, operator="in", value=values)
