"""Library command implementations: add, list, remove, cover."""

import uuid
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from lingo_binder.core.archive import open_book
from lingo_binder.exceptions import BookNotFound
from lingo_binder.store.library import LibraryStore
from lingo_binder.store.models import LibraryBook


def execute_add(book_path: Path, store: LibraryStore, console: Console) -> LibraryBook:
    """Validate an EPUB and import it into the library."""
    data = book_path.read_bytes()
    archive, parsed = open_book(data)
    with archive:
        cover = archive.load_cover(parsed)

    entry = LibraryBook(
        id=uuid.uuid4().hex,
        title=parsed.metadata.title,
        author=parsed.metadata.creator,
        cover=cover.data if cover else None,
    )
    store.add_book(entry, data)

    info_lines = [
        f"[bold]{escape(entry.title)}[/]",
        "",
        f"[dim]Author:[/] {escape(entry.author)}",
        f"[dim]Language:[/] {escape(parsed.metadata.language)}",
        f"[dim]Chapters:[/] {len(parsed.chapters)}",
        f"[dim]Cover:[/] {'yes' if cover else 'no'}",
        f"[dim]Book id:[/] [cyan]{entry.id}[/]",
    ]
    console.print(Panel("\n".join(info_lines), title="Added to Library", border_style="green"))
    return entry


def execute_list(store: LibraryStore, console: Console) -> None:
    """Show catalog entries with their saved reading position."""
    books = store.list_books()
    if not books:
        console.print("[dim]Library is empty. Add a book with 'lingo-binder add'.[/]")
        return

    table = Table(title="Library", show_header=True, header_style="bold cyan")
    table.add_column("Id", style="cyan", no_wrap=True)
    table.add_column("Title", style="white")
    table.add_column("Author", style="dim")
    table.add_column("Added", style="dim")
    table.add_column("Position", justify="right", style="green")

    for book in books:
        progress = store.get_progress(book.id)
        position = (
            f"ch {progress.chapter_index + 1} / {progress.segment_id}" if progress else "-"
        )
        table.add_row(
            book.id,
            escape(book.title),
            escape(book.author),
            book.added_at.strftime("%Y-%m-%d %H:%M"),
            position,
        )

    console.print(table)


def execute_remove(book_id: str, store: LibraryStore, console: Console) -> None:
    """Delete a book together with its progress and cached translations."""
    book = store.get_book(book_id)
    if book is None:
        raise BookNotFound(book_id)
    store.delete_book(book_id)
    console.print(f"[green]Removed[/] {escape(book.title)}")


def execute_cover(book_id: str, output: Path, store: LibraryStore, console: Console) -> bool:
    """Write the stored cover image to ``output``. Returns False if none."""
    book = store.get_book(book_id)
    if book is None:
        raise BookNotFound(book_id)
    if not book.cover:
        console.print("[yellow]This book has no cover image[/]")
        return False
    output.write_bytes(book.cover)
    console.print(f"[green]Cover written to[/] {output}")
    return True
