"""EPUB container parsing."""

import io
import logging
import zipfile
import zlib
from typing import NamedTuple

from bs4 import BeautifulSoup, Tag

from lingo_binder.core.paths import resolve_path
from lingo_binder.exceptions import MalformedArchive, ResourceNotFound
from lingo_binder.models.book import (
    DEFAULT_CREATOR,
    DEFAULT_LANGUAGE,
    DEFAULT_TITLE,
    BookMetadata,
    ChapterRef,
    ParsedBook,
    TocItem,
)
from lingo_binder.models.segment import ImageResource

log = logging.getLogger(__name__)

CONTAINER_PATH = "META-INF/container.xml"
NCX_MEDIA_TYPE = "application/x-dtbncx+xml"


class ManifestItem(NamedTuple):
    """Manifest entry with its href already resolved to an archive path."""

    href: str
    media_type: str
    properties: str


class EpubArchive:
    """Lazy view over an EPUB zip.

    Only the central directory is loaded up front; entries are decompressed
    when read. The handle stays open for on-demand chapter and image reads
    and may be shared read-only by every segmentation call of one book.
    """

    def __init__(self, zip_file: zipfile.ZipFile):
        self._zip = zip_file
        self._names = set(zip_file.namelist())

    @classmethod
    def from_bytes(cls, data: bytes) -> "EpubArchive":
        """Open an archive held in memory."""
        try:
            return cls(zipfile.ZipFile(io.BytesIO(data)))
        except (zipfile.BadZipFile, ValueError) as e:
            raise MalformedArchive(f"Not a zip archive: {e}") from e

    def __enter__(self) -> "EpubArchive":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._zip.close()

    def has(self, path: str) -> bool:
        return path in self._names

    def read(self, path: str) -> bytes:
        """Decompress one entry.

        Raises:
            ResourceNotFound: If no entry exists at ``path``
            MalformedArchive: If the entry cannot be decompressed
        """
        if path not in self._names:
            raise ResourceNotFound(path)
        try:
            return self._zip.read(path)
        except (zipfile.BadZipFile, zlib.error) as e:
            raise MalformedArchive(f"Corrupt entry {path}: {e}") from e

    def read_text(self, path: str) -> str:
        return self.read(path).decode("utf-8", errors="replace")

    # --- structure ---

    def parse(self) -> ParsedBook:
        """Parse container, package document and TOC into a ParsedBook."""
        opf_path = self._find_package_path()
        package = self._load_xml(opf_path, "package document").find("package")
        if not isinstance(package, Tag):
            raise MalformedArchive(f"No <package> element in {opf_path}")

        manifest = self._get_manifest(package, opf_path)
        spine = package.find("spine")
        toc = self._get_toc(spine, manifest)

        return ParsedBook(
            metadata=self._get_metadata(package),
            cover_path=self._get_cover_path(package, manifest),
            chapters=self._get_chapters(spine, manifest, toc),
            toc=toc,
        )

    def load_cover(self, book: ParsedBook) -> ImageResource | None:
        """Decompress the cover entry, the only image read during open."""
        if not book.cover_path:
            return None
        try:
            return ImageResource(book.cover_path, self.read(book.cover_path))
        except ResourceNotFound:
            log.warning("Cover image not found in archive: %s", book.cover_path)
            return None

    def _load_xml(self, path: str, what: str) -> BeautifulSoup:
        if not self.has(path):
            raise MalformedArchive(f"Missing {what}: {path}")
        return BeautifulSoup(self.read(path), "xml")

    def _find_package_path(self) -> str:
        """Read the first rootfile path from the container descriptor."""
        container = self._load_xml(CONTAINER_PATH, "container descriptor")
        rootfile = container.find("rootfile")
        opf_path = rootfile.get("full-path") if isinstance(rootfile, Tag) else None
        if not opf_path:
            raise MalformedArchive("Could not find package document path")
        return str(opf_path)

    def _get_metadata(self, package: Tag) -> BookMetadata:
        """Extract book metadata, falling back to defaults."""
        metadata = package.find("metadata")

        def text_of(name: str) -> str | None:
            if not isinstance(metadata, Tag):
                return None
            element = metadata.find(name)
            if element is None:
                return None
            return element.get_text(strip=True) or None

        return BookMetadata(
            title=text_of("title") or DEFAULT_TITLE,
            creator=text_of("creator") or DEFAULT_CREATOR,
            language=text_of("language") or DEFAULT_LANGUAGE,
        )

    def _get_manifest(self, package: Tag, opf_path: str) -> dict[str, ManifestItem]:
        """Map manifest ids to archive-absolute items."""
        manifest: dict[str, ManifestItem] = {}
        section = package.find("manifest")
        if not isinstance(section, Tag):
            return manifest

        for item in section.find_all("item"):
            item_id = item.get("id")
            href = item.get("href")
            if item_id and href:
                manifest[item_id] = ManifestItem(
                    href=resolve_path(opf_path, href),
                    media_type=item.get("media-type", ""),
                    properties=item.get("properties", ""),
                )
        return manifest

    def _get_chapters(
        self,
        spine: Tag | None,
        manifest: dict[str, ManifestItem],
        toc: list[TocItem],
    ) -> list[ChapterRef]:
        """Build the reading order from the spine."""
        if not isinstance(spine, Tag):
            return []

        toc_titles = self._build_toc_title_map(toc)
        chapters: list[ChapterRef] = []

        for itemref in spine.find_all("itemref"):
            idref = itemref.get("idref")
            if not idref or idref not in manifest:
                log.debug("Skipping spine itemref without manifest entry: %s", idref)
                continue
            href = manifest[idref].href
            order = len(chapters)
            chapters.append(
                ChapterRef(
                    id=idref,
                    href=href,
                    title=toc_titles.get(href) or f"Chapter {order + 1}",
                    order=order,
                )
            )
        return chapters

    def _get_cover_path(
        self, package: Tag, manifest: dict[str, ManifestItem]
    ) -> str | None:
        cover_meta = package.find("meta", attrs={"name": "cover"})
        if isinstance(cover_meta, Tag):
            cover_id = cover_meta.get("content")
            if cover_id and cover_id in manifest:
                return manifest[cover_id].href

        for item in manifest.values():
            if "cover-image" in item.properties.split():
                return item.href
        return None

    # --- table of contents ---

    def _get_toc(
        self, spine: Tag | None, manifest: dict[str, ManifestItem]
    ) -> list[TocItem]:
        """Locate and parse the navigation document."""
        toc_item: ManifestItem | None = None

        toc_id = spine.get("toc") if isinstance(spine, Tag) else None
        if toc_id and toc_id in manifest:
            toc_item = manifest[toc_id]

        if toc_item is None:
            toc_item = next(
                (i for i in manifest.values() if i.media_type == NCX_MEDIA_TYPE),
                None,
            )

        if toc_item is not None:
            if not self.has(toc_item.href):
                log.warning("TOC document missing from archive: %s", toc_item.href)
                return []
            return self._parse_ncx(self.read(toc_item.href), toc_item.href)

        nav_item = next(
            (i for i in manifest.values() if "nav" in i.properties.split()), None
        )
        if nav_item is not None and self.has(nav_item.href):
            return self._parse_nav(self.read(nav_item.href), nav_item.href)

        return []

    def _parse_ncx(self, content: bytes, toc_path: str) -> list[TocItem]:
        """Parse legacy NCX navMap into a TocItem forest."""
        soup = BeautifulSoup(content, "xml")
        nav_map = soup.find("navMap")
        if not isinstance(nav_map, Tag):
            return []
        return self._parse_nav_points(nav_map, toc_path)

    def _parse_nav_points(self, parent: Tag, toc_path: str) -> list[TocItem]:
        items = []
        for nav_point in parent.find_all("navPoint", recursive=False):
            content = nav_point.find("content", recursive=False)
            src = content.get("src") if isinstance(content, Tag) else None
            # A navPoint without a target is dropped together with its children
            if not src:
                continue

            label = "Untitled"
            nav_label = nav_point.find("navLabel", recursive=False)
            if isinstance(nav_label, Tag):
                text = nav_label.find("text")
                if text is not None:
                    label = text.get_text(strip=True) or label

            items.append(
                TocItem(
                    label=label,
                    href=resolve_path(toc_path, src),
                    subitems=self._parse_nav_points(nav_point, toc_path),
                )
            )
        return items

    def _parse_nav(self, content: bytes, nav_path: str) -> list[TocItem]:
        """Parse an EPUB3 navigation document."""
        soup = BeautifulSoup(content, "xml")
        nav = soup.find("nav", attrs={"epub:type": "toc"}) or soup.find("nav")
        if not isinstance(nav, Tag):
            return []
        ol = nav.find("ol")
        if not isinstance(ol, Tag):
            return []
        return self._parse_nav_list(ol, nav_path)

    def _parse_nav_list(self, ol: Tag, nav_path: str) -> list[TocItem]:
        items = []
        for li in ol.find_all("li", recursive=False):
            link = li.find("a", recursive=False)
            href = link.get("href") if isinstance(link, Tag) else None
            if not href:
                continue
            nested = li.find("ol", recursive=False)
            items.append(
                TocItem(
                    label=link.get_text(" ", strip=True) or "Untitled",
                    href=resolve_path(nav_path, href),
                    subitems=(
                        self._parse_nav_list(nested, nav_path)
                        if isinstance(nested, Tag)
                        else []
                    ),
                )
            )
        return items

    def _build_toc_title_map(self, toc: list[TocItem]) -> dict[str, str]:
        """Map chapter files to the first TOC label pointing at them."""
        title_map: dict[str, str] = {}

        def collect(items: list[TocItem]) -> None:
            for item in items:
                if item.chapter_href and item.chapter_href not in title_map:
                    title_map[item.chapter_href] = item.label
                collect(item.subitems)

        collect(toc)
        return title_map


def open_book(data: bytes) -> tuple[EpubArchive, ParsedBook]:
    """Open an archive and parse its structure.

    Raises:
        MalformedArchive: If the container or package document is missing
            or unreadable. No partial book is returned.
    """
    archive = EpubArchive.from_bytes(data)
    try:
        return archive, archive.parse()
    except Exception:
        archive.close()
        raise
