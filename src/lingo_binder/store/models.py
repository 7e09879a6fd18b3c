"""Persisted record models."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class LibraryBook(BaseModel):
    """Catalog entry for an imported book (without the archive bytes)."""

    model_config = ConfigDict(ser_json_bytes="base64", val_json_bytes="base64")

    id: str
    title: str
    author: str
    cover: bytes | None = None
    added_at: datetime = Field(default_factory=datetime.now)


class TranslationRecord(BaseModel):
    """Cached translations of one chapter, keyed by segment id."""

    book_id: str
    chapter_href: str
    segments: dict[str, str] = Field(default_factory=dict)


class ReadingProgress(BaseModel):
    """Last reading position of a book."""

    book_id: str
    chapter_index: int
    segment_id: str
    updated_at: datetime = Field(default_factory=datetime.now)
