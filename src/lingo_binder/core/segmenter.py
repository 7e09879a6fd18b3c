"""Split chapter markup into ordered, alignable segments."""

import logging
import warnings
from enum import Enum

from bs4 import (
    BeautifulSoup,
    Comment,
    Declaration,
    Doctype,
    NavigableString,
    ProcessingInstruction,
    Tag,
    XMLParsedAsHTMLWarning,
)

from lingo_binder.core.archive import EpubArchive
from lingo_binder.core.paths import resolve_path
from lingo_binder.exceptions import MalformedArchive, ResourceNotFound
from lingo_binder.models.book import ChapterRef
from lingo_binder.models.segment import ImageResource, Segment, SegmentType

# Suppress XML parsing warnings - EPUB chapters are XHTML
warnings.filterwarnings("ignore", category=XMLParsedAsHTMLWarning)

log = logging.getLogger(__name__)

BLOCK_TAGS = frozenset(
    {"p", "h1", "h2", "h3", "h4", "h5", "h6", "li", "blockquote", "div"}
)
IMAGE_TAGS = frozenset({"img", "image", "svg"})
SKIPPED_TAGS = frozenset({"script", "style"})
DEFAULT_BLOCK_TAG = "p"
IMAGE_TAG_NAME = "img"
DEFAULT_ALT_TEXT = "Image"


class SegmentMode(str, Enum):
    """How much of a chapter to materialize."""

    FULL = "full"  # decode every referenced image
    TEXT_ONLY = "text_only"  # skip images entirely (search indexing)


class _SegmentWalker:
    """State of a single segmentation pass."""

    def __init__(self, chapter_path: str, mode: SegmentMode):
        self.chapter_path = chapter_path
        self.mode = mode
        self.segments: list[Segment] = []
        self.pending_images: list[tuple[Segment, str]] = []
        self._buffer: list[str] = []
        self._tag = DEFAULT_BLOCK_TAG
        self._counter = 0

    def next_id(self) -> str:
        self._counter += 1
        return f"seg-{self._counter}"

    def flush(self) -> None:
        """Emit the accumulated text (if any) and reset the block context."""
        text = "".join(self._buffer).strip()
        if text:
            self.segments.append(
                Segment(
                    id=self.next_id(),
                    type=SegmentType.TEXT,
                    tag_name=self._tag,
                    original_text=text,
                )
            )
        self._buffer = []
        self._tag = DEFAULT_BLOCK_TAG

    def walk(self, node: object) -> None:
        if isinstance(node, (Comment, Declaration, Doctype, ProcessingInstruction)):
            return
        if isinstance(node, NavigableString):
            self._buffer.append(str(node))
            return
        if not isinstance(node, Tag):
            return

        tag = node.name.lower()

        if tag in IMAGE_TAGS:
            self._visit_image(node, tag)
        elif tag in BLOCK_TAGS:
            self.flush()
            self._tag = tag
            for child in node.children:
                self.walk(child)
            self.flush()
        elif tag == "br":
            self._buffer.append("\n")
        elif tag in SKIPPED_TAGS:
            return
        else:
            for child in node.children:
                self.walk(child)

    def _visit_image(self, element: Tag, tag: str) -> None:
        self.flush()

        src = _image_source(element, tag)
        if not src:
            return

        segment_id = self.next_id()
        # Text-only passes still consume the id so ids line up with full passes
        if self.mode == SegmentMode.TEXT_ONLY:
            return

        path = resolve_path(self.chapter_path, src)
        segment = Segment(
            id=segment_id,
            type=SegmentType.IMAGE,
            tag_name=IMAGE_TAG_NAME,
            original_text=_attr(element, "alt") or _attr(element, "title") or DEFAULT_ALT_TEXT,
            image_path=path,
        )
        self.segments.append(segment)
        self.pending_images.append((segment, path))


def _attr(element: Tag, name: str) -> str | None:
    value = element.get(name)
    if isinstance(value, list):
        value = " ".join(value)
    return value or None


def _image_source(element: Tag, tag: str) -> str | None:
    """Pick the best source attribute: src, href, then the SVG xlink:href."""
    src = _attr(element, "src") or _attr(element, "href")
    if tag == "svg":
        inner = element.find("image")
        if isinstance(inner, Tag):
            src = _attr(inner, "href") or _attr(inner, "xlink:href")
    return src or _attr(element, "xlink:href")


class ChapterSegmenter:
    """Turn chapter markup into an ordered list of text and image segments.

    Segment ids come from a counter scoped to one call (``seg-1``, ``seg-2``,
    ...), so the same markup always yields the same ids. Cached translations,
    search hits and saved reading positions rely on that.
    """

    def __init__(self, archive: EpubArchive | None = None):
        self.archive = archive

    def segment(
        self,
        markup: bytes | str,
        chapter_path: str,
        mode: SegmentMode = SegmentMode.FULL,
    ) -> list[Segment]:
        """Segment one chapter's markup.

        Args:
            markup: Raw XHTML of the chapter
            chapter_path: Archive path of the chapter, used to resolve images
            mode: FULL decodes images, TEXT_ONLY skips them

        Returns:
            Segments in document order
        """
        soup = BeautifulSoup(markup, "lxml")
        root = soup.body or soup

        walker = _SegmentWalker(chapter_path, mode)
        for child in root.children:
            walker.walk(child)
        walker.flush()

        if mode == SegmentMode.FULL:
            self._load_images(walker.pending_images)

        return walker.segments

    def segment_chapter(
        self, chapter: ChapterRef, mode: SegmentMode = SegmentMode.FULL
    ) -> list[Segment]:
        """Read a chapter from the archive and segment it.

        A chapter entry missing from the archive yields an empty list.
        """
        if self.archive is None:
            raise ValueError("segment_chapter requires an archive")
        try:
            markup = self.archive.read(chapter.href)
        except ResourceNotFound:
            log.warning("Chapter not found in archive: %s", chapter.href)
            return []
        return self.segment(markup, chapter.href, mode)

    def _load_images(self, pending: list[tuple[Segment, str]]) -> None:
        """Decode queued images; a missing entry leaves the slot empty."""
        if not pending:
            return
        if self.archive is None:
            log.debug("No archive attached, %d image(s) left unresolved", len(pending))
            return

        for segment, path in pending:
            try:
                segment.image = ImageResource(path, self.archive.read(path))
            except ResourceNotFound:
                log.warning("Image not found in archive: %s", path)
            except MalformedArchive as e:
                log.warning("Could not decode image %s: %s", path, e)
