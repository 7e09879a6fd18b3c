"""Data models."""

from lingo_binder.models.book import (
    BookMetadata,
    ChapterRef,
    ParsedBook,
    TocItem,
)
from lingo_binder.models.segment import (
    ImageResource,
    Segment,
    SegmentType,
    release_segments,
)

__all__ = [
    # Book models
    "BookMetadata",
    "ChapterRef",
    "TocItem",
    "ParsedBook",
    # Segment models
    "SegmentType",
    "ImageResource",
    "Segment",
    "release_segments",
]
