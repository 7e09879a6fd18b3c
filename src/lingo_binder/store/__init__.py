"""Persistent library storage."""

from lingo_binder.store.backend import SqliteKeyValueStore
from lingo_binder.store.library import LibraryStore
from lingo_binder.store.models import LibraryBook, ReadingProgress, TranslationRecord

__all__ = [
    "SqliteKeyValueStore",
    "LibraryStore",
    "LibraryBook",
    "ReadingProgress",
    "TranslationRecord",
]
