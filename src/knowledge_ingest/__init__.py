"""Knowledge ingestion — scan, extract, summarise, chunk, embed, and index files."""

__version__ = "0.1.0"
