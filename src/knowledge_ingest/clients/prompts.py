"""Prompt templates for the model calls made during ingestion, and response parsing.

Keeping prompts in one place makes them easy to audit and version.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from langchain_core.messages import HumanMessage, SystemMessage

if TYPE_CHECKING:
    from langchain_core.messages import BaseMessage

# ── 1. Document summary ────────────────────────────────────────────────

SUMMARY_SYSTEM = """\
You are a helpful assistant that creates concise, informative summaries.
Focus on key points and main ideas. Mention what kind of file the content
comes from when it is apparent (diagram, source code, spreadsheet, ...).
"""


def build_summary_prompt(content: str) -> list[BaseMessage]:
    """Build the prompt for one document summary."""
    return [
        SystemMessage(content=SUMMARY_SYSTEM),
        HumanMessage(
            content=(
                "Please provide a comprehensive summary of the following content:\n\n"
                f"{content}"
            )
        ),
    ]


# ── 2. Image description ───────────────────────────────────────────────

IMAGE_SYSTEM = """\
You are a vision assistant. Describe the image precisely, focusing on
visible text, diagrams (boxes, arrows, labels and what they connect),
objects, and context. Plain text only, no markdown.
"""


def build_image_prompt(data_url: str) -> list[BaseMessage]:
    """Build a multimodal prompt carrying *data_url* (``data:<mime>;base64,...``)."""
    return [
        SystemMessage(content=IMAGE_SYSTEM),
        HumanMessage(
            content=[
                {"type": "text", "text": "Describe this image."},
                {"type": "image_url", "image_url": {"url": data_url}},
            ]
        ),
    ]


# ── Responses ──────────────────────────────────────────────────────────


def response_text(message: BaseMessage) -> str:
    """Return the text of a chat response.

    Multimodal responses carry a list of content blocks; only their text
    parts are kept, joined in order.
    """
    content = message.content
    if isinstance(content, str):
        return content
    parts: list[str] = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(str(block.get("text", "")))
    return "".join(parts)
