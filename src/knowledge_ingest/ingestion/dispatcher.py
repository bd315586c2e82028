"""Format dispatch — pick the first extractor that accepts an extension."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from knowledge_ingest.errors import ExtractionFailure, IngestionError, UnsupportedFormat
from knowledge_ingest.ingestion.extractors import (
    CodeExtractor,
    ContentExtractor,
    DocumentExtractor,
    ImageExtractor,
    SpreadsheetExtractor,
    TextExtractor,
)

logger = logging.getLogger(__name__)


class FormatDispatcher:
    """Ordered registry of :class:`ContentExtractor` variants.

    Extractors are tried in registration order; the first whose
    :meth:`~ContentExtractor.can_process` accepts the extension wins.

    Parameters
    ----------
    extractors:
        Initial extractors, in priority order.
    """

    def __init__(self, extractors: Iterable[ContentExtractor] = ()) -> None:
        self._extractors: list[ContentExtractor] = list(extractors)

    def register(self, extractor: ContentExtractor) -> None:
        """Append *extractor* with the lowest priority."""
        self._extractors.append(extractor)

    @property
    def extractors(self) -> tuple[ContentExtractor, ...]:
        return tuple(self._extractors)

    def select(self, extension: str) -> ContentExtractor:
        """Return the extractor for *extension* or raise :class:`UnsupportedFormat`."""
        for extractor in self._extractors:
            if extractor.can_process(extension):
                return extractor
        raise UnsupportedFormat(extension)

    def extract(self, path: str | Path) -> str:
        """Extract the text content of *path*.

        Raises
        ------
        UnsupportedFormat
            No extractor accepts the extension.
        ExtractionFailure
            The selected extractor failed.  Unexpected exceptions from an
            extractor are wrapped so callers only see the taxonomy.
        """
        p = Path(path)
        extractor = self.select(p.suffix.lower())
        logger.debug("Extracting %s with %r", p.name, extractor)
        try:
            return extractor.extract(p)
        except IngestionError:
            raise
        except Exception as exc:
            raise ExtractionFailure(f"{type(extractor).__name__} failed on {p}: {exc}") from exc

    def supported_formats(self) -> dict[str, list[str]]:
        """Map each extractor category to its sorted extensions."""
        formats: dict[str, list[str]] = {}
        for extractor in self._extractors:
            exts = formats.setdefault(extractor.category, [])
            exts.extend(e for e in extractor.extensions if e not in exts)
        return {category: sorted(exts) for category, exts in formats.items()}


def default_dispatcher() -> FormatDispatcher:
    """Dispatcher with the built-in extractors: text, image, document, spreadsheet, code."""
    return FormatDispatcher(
        [
            TextExtractor(),
            ImageExtractor(),
            DocumentExtractor(),
            SpreadsheetExtractor(),
            CodeExtractor(),
        ]
    )
