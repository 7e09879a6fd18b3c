"""Batched chapter translation with retry, backoff and cancellation."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, NamedTuple

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from lingo_binder.config import TranslationSettings
from lingo_binder.exceptions import Cancelled, ProviderFormatError, RateLimited
from lingo_binder.models.segment import Segment
from lingo_binder.translation.cancel import CancelToken
from lingo_binder.translation.providers.base import TranslationProvider

if TYPE_CHECKING:
    from lingo_binder.store.library import LibraryStore

log = logging.getLogger(__name__)

FAILURE_MARKER = "[Translation Failed]"
RETRY_LIMIT_MARKER = "[Error: Retry Limit Exceeded]"


class RunState(str, Enum):
    """Lifecycle of one chapter translation run."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    EXHAUSTED = "exhausted"  # finished, but some batch hit the retry ceiling


class ChapterKey(NamedTuple):
    """Where a chapter's translations are persisted."""

    book_id: str
    chapter_href: str


@dataclass
class RunResult:
    """Outcome (and live progress) of a chapter run."""

    segments: list[Segment]
    state: RunState = RunState.IDLE
    total_batches: int = 0
    completed_batches: int = 0
    failed_batches: int = 0

    @property
    def progress(self) -> int:
        """Percentage of batches handled so far."""
        if not self.total_batches:
            return 100
        done = self.completed_batches + self.failed_batches
        return round(100 * done / self.total_batches)


UpdateCallback = Callable[[RunResult], None]


class TranslationOrchestrator:
    """Drive a chapter's text segments through a translation provider.

    Batches run strictly one after another. Each successful batch is merged
    into the store before the next one starts, so a cancelled or crashed run
    keeps everything it finished.
    """

    def __init__(
        self,
        provider: TranslationProvider,
        store: "LibraryStore | None" = None,
        settings: TranslationSettings | None = None,
    ):
        self.provider = provider
        self.store = store
        self.settings = settings or TranslationSettings()

    def translate_batch(
        self,
        texts: list[str],
        target_language: str,
        cancel_token: CancelToken | None = None,
    ) -> list[str]:
        """Translate one batch, retrying rate-limit failures with backoff.

        Returns:
            Translations in input order, exactly one per input text

        Raises:
            Cancelled: If the token fires before or during the call
            RateLimited: If the retry ceiling is exceeded
            ProviderFormatError: If the provider answers with a different
                number of strings (never truncated or padded)
        """
        token = cancel_token or CancelToken()
        retrying = Retrying(
            stop=stop_after_attempt(self.settings.max_retries + 1),
            wait=wait_exponential(
                multiplier=self.settings.initial_backoff,
                exp_base=self.settings.backoff_factor,
                max=self.settings.max_backoff,
            ),
            retry=retry_if_exception_type(RateLimited),
            sleep=token.sleep,
            before_sleep=before_sleep_log(log, logging.WARNING),
            reraise=True,
        )

        for attempt in retrying:
            with attempt:
                token.raise_if_cancelled()
                translations = self.provider.translate(texts, target_language)
                # The call itself cannot be interrupted; drop late results
                token.raise_if_cancelled()

                if len(translations) != len(texts):
                    raise ProviderFormatError(
                        f"Expected {len(texts)} translations, got {len(translations)}",
                        self.provider.name,
                    )
                return translations

        # Should never reach here, but satisfy type checker
        raise RateLimited("Retry limit exceeded", self.provider.name)

    def select_candidates(self, segments: list[Segment], force: bool = False) -> list[Segment]:
        """Text segments needing work: untranslated or failed, or all if forced."""
        return [
            s
            for s in segments
            if s.is_text and (force or not s.is_translated)
        ]

    def run_chapter(
        self,
        segments: list[Segment],
        target_language: str,
        *,
        force: bool = False,
        cancel_token: CancelToken | None = None,
        chapter: ChapterKey | None = None,
        is_current: Callable[[], bool] | None = None,
        on_update: UpdateCallback | None = None,
    ) -> RunResult:
        """Translate a chapter's segments in place.

        Args:
            segments: Segments of one chapter, updated in place
            target_language: Language name passed to the provider
            force: Retranslate every text segment (e.g. language change)
            cancel_token: Cooperative cancellation signal
            chapter: Store key for write-through merges; no writes when None
            is_current: Returns False once the reader moved to another
                chapter; pending results are then discarded
            on_update: Called after every state change with the live result

        Returns:
            RunResult with the final state
        """
        token = cancel_token or CancelToken()
        still_current = is_current or (lambda: True)
        size = self.settings.batch_size

        candidates = self.select_candidates(segments, force)
        batches = [candidates[i : i + size] for i in range(0, len(candidates), size)]
        result = RunResult(segments=segments, state=RunState.RUNNING, total_batches=len(batches))

        def notify() -> None:
            if on_update:
                on_update(result)

        def stop(state: RunState, batch: list[Segment] | None = None) -> RunResult:
            for segment in batch or []:
                segment.is_loading = False
            result.state = state
            notify()
            return result

        if not batches:
            return stop(RunState.COMPLETED)

        log.info(
            "Translating %d segment(s) in %d batch(es) into %s",
            len(candidates),
            len(batches),
            target_language,
        )
        exhausted = False

        for index, batch in enumerate(batches, start=1):
            if index > 1:
                try:
                    token.sleep(self.settings.batch_pause)
                except Cancelled:
                    return stop(RunState.CANCELLED)

            if not still_current():
                log.info("Chapter changed, stopping run before batch %d", index)
                return stop(RunState.CANCELLED)

            for segment in batch:
                segment.is_loading = True
            notify()

            translations: list[str] | None = None
            marker: str | None = None
            try:
                translations = self.translate_batch(
                    [s.original_text for s in batch], target_language, token
                )
            except Cancelled:
                log.info("Run cancelled during batch %d/%d", index, len(batches))
                return stop(RunState.CANCELLED, batch)
            except RateLimited as e:
                log.error("Batch %d/%d exceeded the retry limit: %s", index, len(batches), e)
                marker = RETRY_LIMIT_MARKER
                exhausted = True
            except Exception as e:
                log.warning("Batch %d/%d failed: %s", index, len(batches), e, exc_info=True)
                marker = FAILURE_MARKER

            if not still_current():
                log.info("Chapter changed, discarding results of batch %d", index)
                return stop(RunState.CANCELLED, batch)

            if translations is None:
                self._mark_failed(batch, marker or FAILURE_MARKER)
                result.failed_batches += 1
            else:
                self._apply(batch, translations)
                if self.store is not None and chapter is not None:
                    self.store.merge_translations(
                        chapter.book_id,
                        chapter.chapter_href,
                        {s.id: s.translated_text or "" for s in batch},
                    )
                result.completed_batches += 1
                log.debug("Batch %d/%d translated", index, len(batches))
            notify()

        return stop(RunState.EXHAUSTED if exhausted else RunState.COMPLETED)

    @staticmethod
    def _apply(batch: list[Segment], translations: list[str]) -> None:
        for segment, text in zip(batch, translations, strict=True):
            segment.translated_text = text
            segment.failed = False
            segment.is_loading = False

    @staticmethod
    def _mark_failed(batch: list[Segment], marker: str) -> None:
        for segment in batch:
            segment.translated_text = marker
            segment.failed = True
            segment.is_loading = False
