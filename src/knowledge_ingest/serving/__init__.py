"""Serving — REST surface for triggering and observing ingestion runs."""
