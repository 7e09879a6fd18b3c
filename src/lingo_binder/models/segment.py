"""Data models for segmented chapter content."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class SegmentType(str, Enum):
    """Kind of alignable unit."""

    TEXT = "text"
    IMAGE = "image"


class ImageResource:
    """Decoded image bytes owned by exactly one segment (or the cover)."""

    MEDIA_TYPES = {
        ".jpg": "image/jpeg",
        ".jpeg": "image/jpeg",
        ".png": "image/png",
        ".gif": "image/gif",
        ".svg": "image/svg+xml",
        ".webp": "image/webp",
    }

    def __init__(self, path: str, data: bytes, media_type: str | None = None):
        self.path = path
        self.data: bytes | None = data
        self.media_type = media_type or self.guess_media_type(path)

    @classmethod
    def guess_media_type(cls, path: str) -> str:
        suffix = path[path.rfind(".") :].lower() if "." in path else ""
        return cls.MEDIA_TYPES.get(suffix, "application/octet-stream")

    @property
    def released(self) -> bool:
        return self.data is None

    def release(self) -> None:
        """Drop the decoded bytes."""
        self.data = None

    def __repr__(self) -> str:
        size = "released" if self.data is None else f"{len(self.data)} bytes"
        return f"ImageResource({self.path!r}, {size})"


class Segment(BaseModel):
    """One alignable unit of chapter content, in document order."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: str
    type: SegmentType
    tag_name: str
    original_text: str
    image_path: str | None = None
    image: ImageResource | None = Field(default=None, exclude=True)
    translated_text: str | None = None
    failed: bool = False
    is_loading: bool = Field(default=False, exclude=True)

    @property
    def is_text(self) -> bool:
        return self.type == SegmentType.TEXT

    @property
    def is_translated(self) -> bool:
        return self.translated_text is not None and not self.failed

    def release(self) -> None:
        """Release the image resource held by this segment, if any."""
        if self.image is not None:
            self.image.release()
            self.image = None


def release_segments(segments: list[Segment]) -> None:
    """Release every image resource in a discarded segment list."""
    for segment in segments:
        segment.release()
