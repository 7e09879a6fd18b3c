"""Bilingual EPUB reader with incremental, resumable translation."""

__version__ = "0.1.0"
