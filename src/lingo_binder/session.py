"""Reading session: one open book with its runtime state."""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass

from lingo_binder.config import AppSettings
from lingo_binder.core.archive import EpubArchive, open_book
from lingo_binder.core.segmenter import ChapterSegmenter, SegmentMode
from lingo_binder.exceptions import BookNotFound
from lingo_binder.models.book import ChapterRef, ParsedBook
from lingo_binder.models.segment import Segment, release_segments
from lingo_binder.store.library import LibraryStore
from lingo_binder.translation.cancel import CancelToken
from lingo_binder.translation.orchestrator import (
    ChapterKey,
    RunResult,
    TranslationOrchestrator,
    UpdateCallback,
)

log = logging.getLogger(__name__)

SNIPPET_RADIUS = 40


@dataclass
class SearchHit:
    """One full-book search match."""

    chapter_index: int
    chapter_title: str
    segment_id: str
    snippet: str


class ProgressTracker:
    """Debounced writer of the reading position.

    Positions recorded in quick succession are coalesced; only the last one
    is written once ``delay`` seconds pass without a new record.
    """

    def __init__(self, store: LibraryStore, book_id: str, delay: float = 1.0):
        self.store = store
        self.book_id = book_id
        self.delay = delay
        self._pending: tuple[int, str] | None = None
        self._timer: threading.Timer | None = None
        self._lock = threading.Lock()

    def record(self, chapter_index: int, segment_id: str) -> None:
        with self._lock:
            self._pending = (chapter_index, segment_id)
            if self._timer is not None:
                self._timer.cancel()
            if self.delay <= 0:
                self._timer = None
            else:
                self._timer = threading.Timer(self.delay, self.flush)
                self._timer.daemon = True
                self._timer.start()
        if self.delay <= 0:
            self.flush()

    def flush(self) -> None:
        """Write the pending position now, if there is one."""
        with self._lock:
            pending, self._pending = self._pending, None
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        if pending is not None:
            self.store.save_progress(self.book_id, *pending)

    @property
    def has_pending(self) -> bool:
        return self._pending is not None


class ReadingSession:
    """Runtime state of one open book.

    Owns the archive handle, the current chapter's segments and the active
    translation run. Only one run is active at a time; starting another or
    switching chapters cancels it, and a stale run's late results are never
    applied.
    """

    def __init__(
        self,
        book_id: str,
        archive: EpubArchive,
        book: ParsedBook,
        store: LibraryStore,
        orchestrator: TranslationOrchestrator | None = None,
        settings: AppSettings | None = None,
    ):
        self.book_id = book_id
        self.archive = archive
        self.book = book
        self.store = store
        self.orchestrator = orchestrator
        self.settings = settings or AppSettings()
        self.segmenter = ChapterSegmenter(archive)
        self.progress = ProgressTracker(store, book_id, self.settings.progress_debounce)

        self.chapter_index: int | None = None
        self.segments: list[Segment] = []
        self._active_run: CancelToken | None = None

    @classmethod
    def open(
        cls,
        store: LibraryStore,
        book_id: str,
        orchestrator: TranslationOrchestrator | None = None,
        settings: AppSettings | None = None,
    ) -> "ReadingSession":
        """Open a stored book.

        Raises:
            BookNotFound: If no archive is stored under ``book_id``
            MalformedArchive: If the stored archive cannot be parsed
        """
        data = store.get_book_file(book_id)
        if data is None:
            raise BookNotFound(book_id)
        archive, book = open_book(data)
        log.info("Opened %r (%d chapters)", book.metadata.title, len(book.chapters))
        return cls(book_id, archive, book, store, orchestrator, settings)

    def __enter__(self) -> "ReadingSession":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def chapter(self) -> ChapterRef | None:
        if self.chapter_index is None:
            return None
        return self.book.chapters[self.chapter_index]

    def saved_chapter_index(self) -> int:
        """Chapter of the last saved position, or 0."""
        saved = self.store.get_progress(self.book_id)
        if saved and 0 <= saved.chapter_index < len(self.book.chapters):
            return saved.chapter_index
        return 0

    def load_chapter(self, index: int, mode: SegmentMode = SegmentMode.FULL) -> list[Segment]:
        """Make ``index`` the current chapter.

        Cancels any run in flight, releases the previous chapter's images and
        merges cached translations into the freshly segmented chapter.
        """
        if not 0 <= index < len(self.book.chapters):
            raise IndexError(f"Chapter index out of range: {index}")

        self.cancel_translation()
        self.flush_progress()
        release_segments(self.segments)

        chapter = self.book.chapters[index]
        segments = self.segmenter.segment_chapter(chapter, mode)
        cached = self.store.get_translations(self.book_id, chapter.href)
        for segment in segments:
            if segment.id in cached:
                segment.translated_text = cached[segment.id]

        self.chapter_index = index
        self.segments = segments
        log.debug(
            "Loaded chapter %d (%s): %d segments, %d cached translations",
            index,
            chapter.href,
            len(segments),
            len(cached),
        )
        return segments

    def chapter_index_for_href(self, href: str) -> int | None:
        return self.book.chapter_index_for_href(href)

    def translate_chapter(
        self,
        target_language: str,
        force: bool = False,
        on_update: UpdateCallback | None = None,
        cancel_token: CancelToken | None = None,
    ) -> RunResult:
        """Translate the current chapter, replacing any run in flight."""
        if self.orchestrator is None:
            raise RuntimeError("No translation orchestrator configured")
        chapter = self.chapter
        if chapter is None:
            raise RuntimeError("No chapter loaded")

        self.cancel_translation()
        token = cancel_token or CancelToken()
        self._active_run = token

        def is_current() -> bool:
            return (
                self._active_run is token
                and self.chapter is not None
                and self.chapter.href == chapter.href
            )

        try:
            return self.orchestrator.run_chapter(
                self.segments,
                target_language,
                force=force,
                cancel_token=token,
                chapter=ChapterKey(self.book_id, chapter.href),
                is_current=is_current,
                on_update=on_update,
            )
        finally:
            if self._active_run is token:
                self._active_run = None

    def cancel_translation(self) -> None:
        """Cancel the active run, if any."""
        if self._active_run is not None:
            self._active_run.cancel()
            self._active_run = None

    def record_position(self, segment_id: str) -> None:
        """Remember the segment being read (debounced)."""
        if self.chapter_index is None:
            return
        self.progress.record(self.chapter_index, segment_id)

    def flush_progress(self) -> None:
        """Write a pending position now instead of waiting for the debounce."""
        self.progress.flush()

    def search(
        self,
        query: str,
        limit: int | None = None,
        on_chapter: Callable[[int], None] | None = None,
    ) -> list[SearchHit]:
        """Case-insensitive search over every chapter's text segments."""
        needle = query.strip().lower()
        if not needle:
            return []

        hits: list[SearchHit] = []
        for chapter in self.book.chapters:
            if on_chapter:
                on_chapter(chapter.order)
            for segment in self.segmenter.segment_chapter(chapter, SegmentMode.TEXT_ONLY):
                position = segment.original_text.lower().find(needle)
                if position < 0:
                    continue
                hits.append(
                    SearchHit(
                        chapter_index=chapter.order,
                        chapter_title=chapter.title,
                        segment_id=segment.id,
                        snippet=_snippet(segment.original_text, position, len(needle)),
                    )
                )
                if limit is not None and len(hits) >= limit:
                    return hits
        return hits

    def close(self) -> None:
        """Cancel work, persist the position and release resources."""
        self.cancel_translation()
        self.flush_progress()
        release_segments(self.segments)
        self.segments = []
        self.archive.close()


def _snippet(text: str, position: int, length: int) -> str:
    start = max(0, position - SNIPPET_RADIUS)
    end = min(len(text), position + length + SNIPPET_RADIUS)
    snippet = " ".join(text[start:end].split())
    if start > 0:
        snippet = "..." + snippet
    if end < len(text):
        snippet += "..."
    return snippet
