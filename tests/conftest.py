import io
import json
import zipfile
from collections.abc import Callable, Iterator

import pytest

from lingo_binder.config import TranslationSettings
from lingo_binder.store.backend import SqliteKeyValueStore
from lingo_binder.store.library import LibraryStore
from lingo_binder.translation.providers.base import TranslationProvider

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32

CONTAINER_XML = """<?xml version="1.0" encoding="UTF-8"?>
<container version="1.0" xmlns="urn:oasis:names:tc:opendocument:xmlns:container">
  <rootfiles>
    <rootfile full-path="OEBPS/content.opf" media-type="application/oebps-package+xml"/>
  </rootfiles>
</container>"""

CHAPTER_TEMPLATE = """<?xml version="1.0" encoding="UTF-8"?>
<!DOCTYPE html>
<html xmlns="http://www.w3.org/1999/xhtml">
<head><title>{title}</title><style>p {{ margin: 0; }}</style></head>
<body>
{body}
</body>
</html>"""

DEFAULT_CHAPTERS = [
    (
        "Text/ch1.xhtml",
        "<h1>The Beginning</h1>\n<p>It was a bright cold day in April.</p>\n"
        '<p><img src="../Images/fig1.png" alt="A clock"/></p>\n<p>The clocks were striking thirteen.</p>',
    ),
    (
        "Text/ch2.xhtml",
        "<h2>The Middle</h2>\n<p>Winston made for the stairs.</p>\n"
        '<img src="../Images/fig2.png"/>\n<div>Outside, even through the <em>shut</em> window-pane.</div>',
    ),
    (
        "Text/ch3.xhtml",
        "<h2>The End</h2>\n<p>He loved Big Brother.</p>\n"
        '<img src="../Images/fig3.png" title="Poster"/>',
    ),
]


def build_epub(
    chapters: list[tuple[str, str]] | None = None,
    *,
    title: str | None = "Nineteen Eighty-Four",
    creator: str | None = "George Orwell",
    language: str | None = "en",
    toc: list[tuple[str, str]] | None = None,
    images: dict[str, bytes] | None = None,
    cover: str | None = "Images/cover.jpg",
    with_ncx: bool = True,
    with_nav: bool = False,
) -> bytes:
    """Build an EPUB archive in memory.

    Chapter and image paths are relative to the OEBPS directory. ``toc``
    entries are (label, src) pairs relative to OEBPS; by default every
    chapter gets a "Part N" entry.
    """
    chapters = DEFAULT_CHAPTERS if chapters is None else chapters
    if images is None:
        images = {f"Images/fig{i}.png": PNG_BYTES for i in range(1, len(chapters) + 1)}
    if toc is None:
        toc = [(f"Part {i}", href) for i, (href, _) in enumerate(chapters, start=1)]

    metadata = []
    if title is not None:
        metadata.append(f"<dc:title>{title}</dc:title>")
    if creator is not None:
        metadata.append(f"<dc:creator>{creator}</dc:creator>")
    if language is not None:
        metadata.append(f"<dc:language>{language}</dc:language>")

    manifest = []
    spine = []
    for i, (href, _) in enumerate(chapters, start=1):
        manifest.append(f'<item id="ch{i}" href="{href}" media-type="application/xhtml+xml"/>')
        spine.append(f'<itemref idref="ch{i}"/>')
    for i, path in enumerate(images, start=1):
        manifest.append(f'<item id="img{i}" href="{path}" media-type="image/png"/>')
    if cover:
        manifest.append(f'<item id="cover-img" href="{cover}" media-type="image/jpeg"/>')
        metadata.append('<meta name="cover" content="cover-img"/>')
    if with_ncx:
        manifest.append('<item id="ncx" href="toc.ncx" media-type="application/x-dtbncx+xml"/>')
    if with_nav:
        manifest.append(
            '<item id="nav" href="nav.xhtml" media-type="application/xhtml+xml" properties="nav"/>'
        )

    spine_attr = ' toc="ncx"' if with_ncx else ""
    metadata_xml = "".join(metadata)
    manifest_xml = "".join(manifest)
    spine_xml = "".join(spine)
    opf = f"""<?xml version="1.0" encoding="UTF-8"?>
<package xmlns="http://www.idpf.org/2007/opf" version="2.0" unique-identifier="bookid">
  <metadata xmlns:dc="http://purl.org/dc/elements/1.1/">
    {metadata_xml}
  </metadata>
  <manifest>
    {manifest_xml}
  </manifest>
  <spine{spine_attr}>
    {spine_xml}
  </spine>
</package>"""

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        zf.writestr("mimetype", "application/epub+zip", compress_type=zipfile.ZIP_STORED)
        zf.writestr("META-INF/container.xml", CONTAINER_XML)
        zf.writestr("OEBPS/content.opf", opf)
        for i, (href, body) in enumerate(chapters, start=1):
            zf.writestr(
                f"OEBPS/{href}",
                CHAPTER_TEMPLATE.format(title=f"Chapter {i}", body=body),
                compress_type=zipfile.ZIP_DEFLATED,
            )
        for path, data in images.items():
            zf.writestr(f"OEBPS/{path}", data)
        if cover:
            zf.writestr(f"OEBPS/{cover}", b"\xff\xd8\xff\xe0cover")
        if with_ncx:
            zf.writestr("OEBPS/toc.ncx", _build_ncx(toc))
        if with_nav:
            zf.writestr("OEBPS/nav.xhtml", _build_nav(toc))
    return buffer.getvalue()


def _build_ncx(toc: list[tuple[str, str]]) -> str:
    points = "".join(
        f'<navPoint id="np{i}" playOrder="{i}">'
        f"<navLabel><text>{label}</text></navLabel>"
        f'<content src="{src}"/></navPoint>'
        for i, (label, src) in enumerate(toc, start=1)
    )
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<ncx xmlns="http://www.daisy.org/z3986/2005/ncx/" version="2005-1">
  <navMap>{points}</navMap>
</ncx>"""


def _build_nav(toc: list[tuple[str, str]]) -> str:
    items = "".join(f'<li><a href="{src}">{label}</a></li>' for label, src in toc)
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<html xmlns="http://www.w3.org/1999/xhtml" xmlns:epub="http://www.idpf.org/2007/ops">
<body><nav epub:type="toc"><ol>{items}</ol></nav></body>
</html>"""


class FakeProvider(TranslationProvider):
    """Scripted provider: each call pops the next response.

    A response is a raw JSON string, an exception instance to raise, or a
    callable taking the batch texts. With no script left, every text is
    echoed back with a language prefix.
    """

    name = "fake"

    def __init__(self, script: list[object] | None = None):
        self.script = list(script or [])
        self.calls: list[list[str]] = []

    def _request(self, texts: list[str], target_language: str) -> str:
        self.calls.append(list(texts))
        if self.script:
            step = self.script.pop(0)
            if isinstance(step, BaseException):
                raise step
            if callable(step):
                return step(texts)
            return step
        return json.dumps([f"[{target_language}] {t}" for t in texts], ensure_ascii=False)


@pytest.fixture
def epub_bytes() -> bytes:
    return build_epub()


@pytest.fixture
def epub_factory() -> Callable[..., bytes]:
    return build_epub


@pytest.fixture
def store() -> Iterator[LibraryStore]:
    library = LibraryStore(SqliteKeyValueStore(":memory:"))
    yield library
    library.close()


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def fast_settings() -> TranslationSettings:
    """No backoff or pauses, small batches."""
    return TranslationSettings(
        batch_size=2,
        max_retries=3,
        initial_backoff=0,
        backoff_factor=1.5,
        max_backoff=0,
        batch_pause=0,
    )


@pytest.fixture
def provider_factory() -> type[FakeProvider]:
    return FakeProvider
