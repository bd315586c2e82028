"""Best-effort image descriptions through a multimodal chat model."""

from __future__ import annotations

import base64
import logging
import mimetypes
from pathlib import Path
from typing import TYPE_CHECKING

from knowledge_ingest.clients.prompts import build_image_prompt, response_text
from knowledge_ingest.errors import VisualAnalysisFailure
from knowledge_ingest.ingestion.extractors import VECTOR_IMAGE_EXTENSIONS

if TYPE_CHECKING:
    from langchain_core.language_models import BaseChatModel

logger = logging.getLogger(__name__)


class VisionAnalyzer:
    """Describe raster images with a vision-capable chat model.

    Vector images return an empty description: their text nodes are
    already captured by the image extractor and vision models do not
    accept SVG input.
    """

    def __init__(self, llm: BaseChatModel) -> None:
        self._llm = llm

    def analyze_image(self, path: str | Path) -> str:
        """Return a textual description of the image at *path*.

        Raises
        ------
        VisualAnalysisFailure
            The image cannot be read or the model call fails.
        """
        p = Path(path)
        if p.suffix.lower() in VECTOR_IMAGE_EXTENSIONS:
            return ""

        try:
            data = p.read_bytes()
        except OSError as exc:
            raise VisualAnalysisFailure(f"failed to read image {p}: {exc}") from exc

        mime = mimetypes.guess_type(p.name)[0] or "application/octet-stream"
        data_url = f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"
        logger.debug("Analyzing image %s (%d bytes)", p.name, len(data))

        try:
            response = self._llm.invoke(build_image_prompt(data_url))
        except Exception as exc:
            raise VisualAnalysisFailure(f"vision request failed for {p.name}: {exc}") from exc

        return response_text(response).strip()
