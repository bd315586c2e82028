"""KFP v2 components — each file exports one @dsl.component."""

from pipelines.components.ingest import ingest_directory

__all__ = [
    "ingest_directory",
]
