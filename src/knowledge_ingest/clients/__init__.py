"""
Clients — thin wrappers around the model providers.

Each wrapper owns one external call (summary, embedding, image
description), applies the input limits, and converts provider errors into
:mod:`knowledge_ingest.errors` types.  Models are LangChain objects, so
tests inject fakes and deployments swap providers through settings.
"""

from knowledge_ingest.clients.embedder import Embedder
from knowledge_ingest.clients.summarizer import SUMMARY_PLACEHOLDER, Summarizer
from knowledge_ingest.clients.vision import VisionAnalyzer

__all__ = [
    "SUMMARY_PLACEHOLDER",
    "Embedder",
    "Summarizer",
    "VisionAnalyzer",
]
