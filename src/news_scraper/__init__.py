"""Scrape a news listing page into a local article store with notes."""

__version__ = "0.1.0"
