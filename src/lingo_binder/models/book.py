"""Data models for book structure."""

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_TITLE = "Unknown Title"
DEFAULT_CREATOR = "Unknown Author"
DEFAULT_LANGUAGE = "en"


class BookMetadata(BaseModel):
    """Book-level metadata."""

    title: str = DEFAULT_TITLE
    creator: str = DEFAULT_CREATOR
    language: str = DEFAULT_LANGUAGE


class ChapterRef(BaseModel):
    """One spine entry, in reading order."""

    model_config = ConfigDict(frozen=True)

    id: str
    href: str  # archive-absolute path
    title: str
    order: int


class TocItem(BaseModel):
    """Single entry in table of contents."""

    label: str
    href: str  # archive-absolute, may carry a #fragment
    subitems: list["TocItem"] = Field(default_factory=list)

    @property
    def chapter_href(self) -> str:
        """Href without the navigation fragment."""
        return self.href.split("#", 1)[0]


class ParsedBook(BaseModel):
    """Complete parsed book structure.

    Holds no decompressed content; chapters and images are read on demand
    through the archive handle that produced it.
    """

    metadata: BookMetadata
    cover_path: str | None = None
    chapters: list[ChapterRef] = Field(default_factory=list)
    toc: list[TocItem] = Field(default_factory=list)

    def chapter_index_for_href(self, href: str) -> int | None:
        """Find the spine position a (TOC) href points at."""
        file_href = href.split("#", 1)[0]
        if not file_href:
            return None
        for chapter in self.chapters:
            if chapter.href == file_href:
                return chapter.order
        for chapter in self.chapters:
            if chapter.href.endswith("/" + file_href):
                return chapter.order
        return None
