"""Content extractors — one class per family of file formats.

Adding a format family only requires subclassing
:class:`ContentExtractor`, listing its extensions, and implementing
:meth:`~ContentExtractor.extract`; the dispatcher never changes.
"""

from __future__ import annotations

import logging
import zipfile
from abc import ABC, abstractmethod
from pathlib import Path

from knowledge_ingest.errors import ExtractionFailure

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = frozenset({".png", ".jpg", ".jpeg", ".gif", ".bmp", ".webp", ".svg"})
VECTOR_IMAGE_EXTENSIONS = frozenset({".svg"})


def is_image_extension(extension: str) -> bool:
    return extension.lower() in IMAGE_EXTENSIONS


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        raise ExtractionFailure(f"Cannot read {path}: {exc}") from exc


def _read_bytes(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as exc:
        raise ExtractionFailure(f"Cannot read {path}: {exc}") from exc


def _placeholder(path: Path, kind: str) -> str:
    """Literal stand-in for formats we cannot parse into text."""
    try:
        size = path.stat().st_size
    except OSError as exc:
        raise ExtractionFailure(f"Cannot stat {path}: {exc}") from exc
    return (
        f"{kind}: {path.name}\n"
        f"Type: {path.suffix.lower().lstrip('.')}\n"
        f"Size: {size} bytes\n"
        "Content extraction is not supported for this format."
    )


class ContentExtractor(ABC):
    """Capability-predicate + operation pair used by the dispatcher.

    Subclasses set :attr:`category` and :attr:`extensions` and implement
    :meth:`extract`.
    """

    category: str = ""
    extensions: frozenset[str] = frozenset()

    def can_process(self, extension: str) -> bool:
        """Return ``True`` when *extension* (``".md"``) belongs to this family."""
        return extension.lower() in self.extensions

    @abstractmethod
    def extract(self, path: Path) -> str:
        """Return the text content of *path*.

        Empty output is valid.  Raise :class:`ExtractionFailure` when the
        file matches but cannot be turned into text.
        """
        ...

    def __repr__(self) -> str:  # noqa: D105
        return f"{type(self).__name__}({sorted(self.extensions)})"


class TextExtractor(ContentExtractor):
    """Plain-text formats, read verbatim."""

    category = "text"
    extensions = frozenset(
        {
            ".txt", ".md", ".markdown", ".rst", ".log",
            ".json", ".yaml", ".yml", ".xml", ".toml", ".ini", ".cfg", ".graphql",
        }
    )

    def extract(self, path: Path) -> str:
        return _read_text(path)


class ImageExtractor(ContentExtractor):
    """Raster images yield diagnostic metadata; SVG yields its text nodes."""

    category = "image"
    extensions = IMAGE_EXTENSIONS

    def extract(self, path: Path) -> str:
        if path.suffix.lower() in VECTOR_IMAGE_EXTENSIONS:
            return self._extract_svg(path)
        return self._describe_raster(path)

    def _describe_raster(self, path: Path) -> str:
        from PIL import Image, UnidentifiedImageError

        size = len(_read_bytes(path))
        try:
            with Image.open(path) as img:
                fmt = img.format or path.suffix.lstrip(".").upper()
                width, height = img.size
                mode = img.mode
        except (UnidentifiedImageError, OSError) as exc:
            raise ExtractionFailure(f"Cannot decode image {path}: {exc}") from exc

        return (
            f"Image: {path.name}\n"
            f"Format: {fmt}\n"
            f"Dimensions: {width}x{height}\n"
            f"Mode: {mode}\n"
            f"Size: {size} bytes"
        )

    def _extract_svg(self, path: Path) -> str:
        from bs4 import BeautifulSoup

        soup = BeautifulSoup(_read_text(path), "html.parser")
        texts: list[str] = []
        for tag in soup.find_all(["title", "desc", "text"]):
            value = tag.get_text(" ", strip=True)
            if value:
                texts.append(value)
        if not texts:
            return "SVG Diagram (no text content extracted)"
        return "SVG Diagram Content:\n" + "\n".join(texts)


class DocumentExtractor(ContentExtractor):
    """Office / PDF / HTML documents."""

    category = "document"
    extensions = frozenset({".pdf", ".docx", ".html", ".htm", ".pptx", ".odt", ".doc", ".rtf"})

    def extract(self, path: Path) -> str:
        suffix = path.suffix.lower()
        if suffix == ".pdf":
            return self._extract_pdf(path)
        if suffix == ".docx":
            return self._extract_docx(path)
        if suffix in (".html", ".htm"):
            return self._extract_html(path)
        return _placeholder(path, "Document")

    def _extract_pdf(self, path: Path) -> str:
        from pypdf import PdfReader
        from pypdf.errors import PdfReadError

        try:
            reader = PdfReader(str(path))
            pages = [page.extract_text() or "" for page in reader.pages]
        except (PdfReadError, OSError, ValueError) as exc:
            raise ExtractionFailure(f"Cannot parse PDF {path}: {exc}") from exc
        return "\n\n".join(p.strip() for p in pages if p.strip())

    def _extract_docx(self, path: Path) -> str:
        import docx
        from docx.opc.exceptions import PackageNotFoundError

        try:
            document = docx.Document(str(path))
        except (PackageNotFoundError, zipfile.BadZipFile, OSError, KeyError, ValueError) as exc:
            raise ExtractionFailure(f"Cannot parse DOCX {path}: {exc}") from exc

        parts = [p.text for p in document.paragraphs if p.text.strip()]
        for table in document.tables:
            for row in table.rows:
                cells = [c.text.strip() for c in row.cells if c.text.strip()]
                if cells:
                    parts.append(" | ".join(cells))
        return "\n".join(parts)

    def _extract_html(self, path: Path) -> str:
        from bs4 import BeautifulSoup

        soup = BeautifulSoup(_read_text(path), "html.parser")
        for tag in soup(["script", "style", "nav", "footer", "header", "aside", "noscript", "iframe"]):
            tag.decompose()
        return soup.get_text(separator="\n", strip=True)


class SpreadsheetExtractor(ContentExtractor):
    """Delimited text is kept literally; binary workbooks get a placeholder."""

    category = "spreadsheet"
    extensions = frozenset({".csv", ".tsv", ".xlsx", ".xls", ".ods"})

    def extract(self, path: Path) -> str:
        if path.suffix.lower() in (".csv", ".tsv"):
            return _read_text(path)
        return _placeholder(path, "Spreadsheet")


class CodeExtractor(ContentExtractor):
    """Source files, verbatim behind a small language header."""

    category = "code"
    languages: dict[str, str] = {
        ".go": "Go", ".py": "Python", ".js": "JavaScript", ".ts": "TypeScript",
        ".java": "Java", ".c": "C", ".cpp": "C++", ".h": "C header", ".hpp": "C++ header",
        ".rs": "Rust", ".rb": "Ruby", ".php": "PHP", ".swift": "Swift", ".kt": "Kotlin",
        ".scala": "Scala", ".r": "R", ".sql": "SQL", ".sh": "Shell", ".bash": "Bash",
        ".ps1": "PowerShell", ".dart": "Dart", ".lua": "Lua", ".pl": "Perl",
        ".groovy": "Groovy",
    }
    extensions = frozenset(languages)

    def extract(self, path: Path) -> str:
        source = _read_text(path)
        if not source.strip():
            return ""
        language = self.languages[path.suffix.lower()]
        return f"Language: {language}\nFile: {path.name}\n\n{source}"
