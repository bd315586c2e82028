"""Per-document summaries through a chat model."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from knowledge_ingest.clients.prompts import build_summary_prompt, response_text
from knowledge_ingest.errors import SummarizationFailure

if TYPE_CHECKING:
    from langchain_core.language_models import BaseChatModel

logger = logging.getLogger(__name__)

SUMMARY_PLACEHOLDER = "Summary generation failed"
DEFAULT_MAX_INPUT_CHARS = 10000


def truncate_for_summary(text: str, max_chars: int = DEFAULT_MAX_INPUT_CHARS) -> str:
    """Clip *text* to *max_chars*, marking the cut with ``"..."``."""
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + "..."


class Summarizer:
    """Generate a short synopsis of a document's combined content.

    Parameters
    ----------
    llm:
        Any LangChain chat model (``ChatOpenAI`` in production).
    max_input_chars:
        Input is truncated to this many characters before the call.
    """

    def __init__(self, llm: BaseChatModel, *, max_input_chars: int = DEFAULT_MAX_INPUT_CHARS) -> None:
        self._llm = llm
        self.max_input_chars = max_input_chars

    def summarize(self, text: str) -> str:
        """Return the summary of *text*.

        Raises
        ------
        SummarizationFailure
            Empty input, provider error, or empty response.
        """
        if not text.strip():
            raise SummarizationFailure("text cannot be empty")

        content = truncate_for_summary(text, self.max_input_chars)
        logger.debug("Generating summary (text_length=%d)", len(content))
        try:
            response = self._llm.invoke(build_summary_prompt(content))
        except Exception as exc:
            raise SummarizationFailure(f"summary request failed: {exc}") from exc

        summary = response_text(response).strip()
        if not summary:
            raise SummarizationFailure("no summary generated")
        logger.debug("Summary generated (summary_length=%d)", len(summary))
        return summary
