"""
Pipeline — per-file state machine and directory runs.

Public surface
--------------
- :class:`PipelineCoordinator` — runs files and directory trees.
- :class:`FileState` / :class:`FileResult` — per-file outcome.
- :class:`RunStats` — run-level counters.
"""

from knowledge_ingest.pipeline.coordinator import PipelineCoordinator
from knowledge_ingest.pipeline.state import FileResult, FileState, RunStats

__all__ = [
    "FileResult",
    "FileState",
    "PipelineCoordinator",
    "RunStats",
]
