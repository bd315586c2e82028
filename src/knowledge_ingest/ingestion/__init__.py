"""
Ingestion — everything between a directory on disk and extracted text.

Scanning, content hashing, format dispatch with per-format extractors,
and fixed-window chunking.  Nothing in here talks to a network service.
"""
