"""Fixed-window text chunking."""

from __future__ import annotations


def chunk_text(text: str, chunk_size: int = 1000, overlap: int = 200) -> list[str]:
    """Split *text* into overlapping windows of at most *chunk_size* characters.

    Window ``i`` covers ``[i * stride, i * stride + chunk_size)`` clipped to
    the text, with ``stride = chunk_size - overlap``.  Iteration stops after
    the first window that reaches the end of the text, so no window is
    fully contained in its predecessor.

    Parameters
    ----------
    text:
        Combined extracted content of one document.
    chunk_size:
        Maximum number of characters per chunk.
    overlap:
        Number of characters shared by consecutive chunks.  Must be
        ``< chunk_size``; settings validation enforces that upstream.

    Returns
    -------
    list[str]
        ``[text]`` when ``len(text) <= chunk_size``, otherwise
        ``ceil((len(text) - overlap) / (chunk_size - overlap))`` chunks.
    """
    length = len(text)
    if length <= chunk_size:
        return [text]

    stride = chunk_size - overlap
    chunks: list[str] = []
    start = 0
    while start < length:
        end = min(start + chunk_size, length)
        chunks.append(text[start:end])
        if end == length:
            break
        start += stride
    return chunks
