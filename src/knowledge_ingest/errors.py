"""Error taxonomy for the ingestion pipeline.

Every failure the pipeline knows how to recover from has its own type so
the coordinator can branch on the *kind* of failure instead of on message
text.  Wrappers around third-party clients translate provider exceptions
into these types with ``raise ... from exc``.

Only :class:`DirectoryUnreadable` escapes a directory run; everything else
is handled per file or per chunk.
"""

from __future__ import annotations


class IngestionError(Exception):
    """Base class for all pipeline errors."""


class ConfigurationError(IngestionError):
    """Settings are inconsistent or a required collaborator is misconfigured."""


class DirectoryUnreadable(IngestionError):
    """The scan root does not exist or cannot be listed."""


class ReadFailure(IngestionError):
    """A file could not be opened or read while hashing it."""


class UnsupportedFormat(IngestionError):
    """No registered extractor accepts the file extension."""

    def __init__(self, extension: str) -> None:
        super().__init__(f"no extractor registered for file type {extension or '<none>'!r}")
        self.extension = extension


class ExtractionFailure(IngestionError):
    """An extractor matched the file but could not turn it into text."""


class VisualAnalysisFailure(IngestionError):
    """The vision collaborator could not describe an image."""


class SummarizationFailure(IngestionError):
    """The language model could not produce a summary."""


class EmbeddingFailure(IngestionError):
    """The embedding collaborator could not embed a chunk."""


class EmbeddingDimensionMismatch(EmbeddingFailure):
    """The embedding collaborator returned a vector of the wrong length."""

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(f"expected embedding dimension {expected}, got {actual}")
        self.expected = expected
        self.actual = actual


class StorageFailure(IngestionError):
    """An upsert batch was rejected by the vector store.

    ``batches_written`` tells how many batches of the same call were
    committed before the failure; they are not rolled back.
    """

    def __init__(self, message: str, *, batches_written: int = 0) -> None:
        super().__init__(message)
        self.batches_written = batches_written


class ExistenceCheckFailure(IngestionError):
    """The dedup lookup against the vector store failed."""
