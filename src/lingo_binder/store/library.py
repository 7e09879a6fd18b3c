"""Library storage: archives, catalog, translation cache, reading progress."""

import logging
from pathlib import Path

from lingo_binder.store.backend import SqliteKeyValueStore
from lingo_binder.store.models import LibraryBook, ReadingProgress, TranslationRecord

log = logging.getLogger(__name__)


class LibraryStore:
    """Manages the four persisted record groups of the reader.

    Each group fails independently; only ``add_book`` and the primary part of
    ``delete_book`` span more than one bucket.
    """

    BOOKS = "books"
    FILES = "files"
    TRANSLATIONS = "translations"
    PROGRESS = "progress"
    KEY_SEPARATOR = "::"

    def __init__(self, backend: SqliteKeyValueStore):
        self.backend = backend

    @classmethod
    def open(cls, db_path: str | Path) -> "LibraryStore":
        return cls(SqliteKeyValueStore(db_path))

    def close(self) -> None:
        self.backend.close()

    @classmethod
    def _translation_key(cls, book_id: str, chapter_href: str) -> str:
        """Create a composite key from book id and chapter href."""
        return f"{book_id}{cls.KEY_SEPARATOR}{chapter_href}"

    # --- book blobs ---

    def put_book_file(self, book_id: str, data: bytes) -> None:
        self.backend.put(self.FILES, book_id, data)

    def get_book_file(self, book_id: str) -> bytes | None:
        return self.backend.get(self.FILES, book_id)

    def delete_book_file(self, book_id: str) -> None:
        self.backend.delete(self.FILES, book_id)

    # --- catalog ---

    def add_book(self, book: LibraryBook, data: bytes) -> None:
        """Store catalog entry and archive bytes together."""
        with self.backend.transaction():
            self.put_book(book)
            self.put_book_file(book.id, data)

    def put_book(self, book: LibraryBook) -> None:
        self.backend.put(self.BOOKS, book.id, book.model_dump_json().encode())

    def get_book(self, book_id: str) -> LibraryBook | None:
        raw = self.backend.get(self.BOOKS, book_id)
        return LibraryBook.model_validate_json(raw) if raw else None

    def list_books(self) -> list[LibraryBook]:
        """All catalog entries, most recently added first."""
        books = [LibraryBook.model_validate_json(v) for v in self.backend.values(self.BOOKS)]
        return sorted(books, key=lambda b: b.added_at, reverse=True)

    def delete_book(self, book_id: str) -> None:
        """Delete a book and, best effort, its cached translations.

        Blob, catalog entry and progress go in one transaction. The
        translation range is cleaned afterwards; a failure there is logged
        and does not undo the primary deletion.
        """
        with self.backend.transaction():
            self.backend.delete(self.BOOKS, book_id)
            self.backend.delete(self.FILES, book_id)
            self.backend.delete(self.PROGRESS, book_id)

        prefix = self._translation_key(book_id, "")
        try:
            removed = self.backend.delete_range(
                self.TRANSLATIONS, prefix, prefix + "\U0010ffff"
            )
            log.debug("Removed %d cached chapter translation(s) of %s", removed, book_id)
        except Exception as e:
            log.warning("Translation cleanup for book %s failed: %s", book_id, e)

    # --- translation cache ---

    def merge_translations(
        self, book_id: str, chapter_href: str, translations: dict[str, str]
    ) -> None:
        """Union-merge segment translations into the chapter's record.

        Entries for segment ids absent from ``translations`` are kept.
        """
        if not translations:
            return

        key = self._translation_key(book_id, chapter_href)
        with self.backend.transaction():
            raw = self.backend.get(self.TRANSLATIONS, key)
            record = (
                TranslationRecord.model_validate_json(raw)
                if raw
                else TranslationRecord(book_id=book_id, chapter_href=chapter_href)
            )
            record.segments.update(translations)
            self.backend.put(self.TRANSLATIONS, key, record.model_dump_json().encode())

    def get_translations(self, book_id: str, chapter_href: str) -> dict[str, str]:
        raw = self.backend.get(
            self.TRANSLATIONS, self._translation_key(book_id, chapter_href)
        )
        if raw is None:
            return {}
        return TranslationRecord.model_validate_json(raw).segments

    # --- reading progress ---

    def save_progress(self, book_id: str, chapter_index: int, segment_id: str) -> None:
        progress = ReadingProgress(
            book_id=book_id, chapter_index=chapter_index, segment_id=segment_id
        )
        self.backend.put(self.PROGRESS, book_id, progress.model_dump_json().encode())

    def get_progress(self, book_id: str) -> ReadingProgress | None:
        raw = self.backend.get(self.PROGRESS, book_id)
        return ReadingProgress.model_validate_json(raw) if raw else None
