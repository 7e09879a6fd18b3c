"""Reading command implementations: toc, read, search."""

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from lingo_binder.models.book import TocItem
from lingo_binder.models.segment import Segment
from lingo_binder.session import ReadingSession


def _add_toc_branch(tree: Tree, items: list[TocItem], session: ReadingSession) -> None:
    for item in items:
        index = session.chapter_index_for_href(item.href)
        suffix = f" [dim](ch {index + 1})[/]" if index is not None else " [red](missing)[/]"
        branch = tree.add(f"{escape(item.label)}{suffix}")
        _add_toc_branch(branch, item.subitems, session)


def execute_toc(session: ReadingSession, console: Console) -> None:
    """Show table of contents and reading order."""
    book = session.book
    tree = Tree(
        f"[bold]{escape(book.metadata.title)}[/] [dim]by {escape(book.metadata.creator)}[/]"
    )
    if book.toc:
        _add_toc_branch(tree, book.toc, session)
    else:
        tree.add("[dim]No table of contents[/]")
    console.print(tree)
    console.print()

    table = Table(title="Reading Order", show_header=True, header_style="bold cyan")
    table.add_column("#", style="dim", width=4)
    table.add_column("Title", style="white")
    table.add_column("File", style="dim")
    for chapter in book.chapters:
        table.add_row(str(chapter.order + 1), escape(chapter.title), escape(chapter.href))
    console.print(table)


def _render_original(segment: Segment) -> str:
    if segment.is_text:
        return escape(segment.original_text)
    label = f"[magenta]\\[image][/] {escape(segment.original_text)}"
    path = escape(segment.image_path or "")
    if segment.image is not None and segment.image.data is not None:
        return f"{label} [dim]({path}, {len(segment.image.data):,} bytes)[/]"
    return f"{label} [red](not found: {path})[/]"


def _render_translation(segment: Segment) -> str:
    if not segment.is_text:
        return ""
    if segment.failed:
        return f"[red]{escape(segment.translated_text or '')}[/] [dim](retry with 'translate')[/]"
    if segment.translated_text is None:
        return "[dim]-[/]"
    return escape(segment.translated_text)


def execute_read(
    session: ReadingSession,
    chapter_index: int | None,
    console: Console,
) -> None:
    """Print one chapter side by side with its cached translation."""
    index = chapter_index if chapter_index is not None else session.saved_chapter_index()
    segments = session.load_chapter(index)
    chapter = session.chapter
    assert chapter is not None

    table = Table(
        title=f"{escape(chapter.title)} ({index + 1}/{len(session.book.chapters)})",
        show_header=True,
        header_style="bold cyan",
        show_lines=True,
    )
    table.add_column("Id", style="dim", no_wrap=True)
    table.add_column("Original", style="white", ratio=1)
    table.add_column("Translation", style="green", ratio=1)

    for segment in segments:
        table.add_row(segment.id, _render_original(segment), _render_translation(segment))

    if segments:
        console.print(table)
        session.record_position(segments[0].id)
    else:
        console.print("[dim]This chapter has no content[/]")


def execute_search(
    session: ReadingSession,
    query: str,
    limit: int | None,
    console: Console,
) -> None:
    """Full-book text search."""
    hits = session.search(query, limit=limit)
    if not hits:
        console.print(f"[dim]No matches for[/] {escape(repr(query))}")
        return

    table = Table(
        title=f"Matches for {escape(repr(query))}", show_header=True, header_style="bold cyan"
    )
    table.add_column("Ch", style="dim", justify="right", width=4)
    table.add_column("Chapter", style="white")
    table.add_column("Segment", style="cyan", no_wrap=True)
    table.add_column("Context", style="dim")
    for hit in hits:
        table.add_row(
            str(hit.chapter_index + 1),
            escape(hit.chapter_title),
            hit.segment_id,
            escape(hit.snippet),
        )
    console.print(table)
