"""Main CLI application."""

import logging
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from lingo_binder.commands.library import (
    execute_add,
    execute_cover,
    execute_list,
    execute_remove,
)
from lingo_binder.config import AppSettings, ProviderConfig, TargetLanguage, TranslationSettings
from lingo_binder.session import ReadingSession
from lingo_binder.store.library import LibraryStore

app = typer.Typer(
    name="lingo-binder",
    help="Read EPUB books side by side with a machine translation.",
    add_completion=False,
)

console = Console()

NOISY_LOGGERS = ("httpx", "httpcore", "openai", "google_genai")


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=verbose)],
        force=True,
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def _open_store(ctx: typer.Context) -> LibraryStore:
    settings: AppSettings = ctx.obj
    settings.library_path.parent.mkdir(parents=True, exist_ok=True)
    return LibraryStore.open(settings.library_path)


@app.callback()
def main(
    ctx: typer.Context,
    library: Annotated[
        Optional[Path],
        typer.Option(
            "--library",
            "-l",
            help="Library database file (default: ~/.lingo_binder/library.db)",
            envvar="LINGO_LIBRARY_PATH",
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logging"),
    ] = False,
) -> None:
    """Read EPUB books side by side with a machine translation."""
    _setup_logging(verbose)
    settings = AppSettings()
    if library is not None:
        settings.library_path = library
    ctx.obj = settings


@app.command()
def add(
    ctx: typer.Context,
    book_path: Annotated[
        Path,
        typer.Argument(
            help="Path to the EPUB file",
            exists=True,
            file_okay=True,
            dir_okay=False,
            resolve_path=True,
        ),
    ],
) -> None:
    """Import an EPUB into the library."""
    store = _open_store(ctx)
    try:
        execute_add(book_path, store, console)
    except Exception as e:
        console.print(f"[red]Error: {escape(str(e))}[/]")
        raise typer.Exit(1)
    finally:
        store.close()


@app.command("library")
def library_list(ctx: typer.Context) -> None:
    """List the books in the library."""
    store = _open_store(ctx)
    try:
        execute_list(store, console)
    except Exception as e:
        console.print(f"[red]Error: {escape(str(e))}[/]")
        raise typer.Exit(1)
    finally:
        store.close()


@app.command()
def remove(
    ctx: typer.Context,
    book_id: Annotated[str, typer.Argument(help="Book id (see 'lingo-binder library')")],
) -> None:
    """Remove a book with its progress and cached translations."""
    store = _open_store(ctx)
    try:
        execute_remove(book_id, store, console)
    except Exception as e:
        console.print(f"[red]Error: {escape(str(e))}[/]")
        raise typer.Exit(1)
    finally:
        store.close()


@app.command()
def toc(
    ctx: typer.Context,
    book_id: Annotated[str, typer.Argument(help="Book id")],
) -> None:
    """Show the table of contents and reading order."""
    from lingo_binder.commands.read import execute_toc

    store = _open_store(ctx)
    try:
        with ReadingSession.open(store, book_id, settings=ctx.obj) as session:
            execute_toc(session, console)
    except Exception as e:
        console.print(f"[red]Error: {escape(str(e))}[/]")
        raise typer.Exit(1)
    finally:
        store.close()


@app.command()
def read(
    ctx: typer.Context,
    book_id: Annotated[str, typer.Argument(help="Book id")],
    chapter: Annotated[
        Optional[int],
        typer.Option(
            "--chapter",
            "-c",
            help="Chapter number (default: last read chapter)",
            min=1,
        ),
    ] = None,
) -> None:
    """Show a chapter side by side with its cached translation."""
    from lingo_binder.commands.read import execute_read

    store = _open_store(ctx)
    try:
        with ReadingSession.open(store, book_id, settings=ctx.obj) as session:
            execute_read(session, chapter - 1 if chapter is not None else None, console)
    except Exception as e:
        console.print(f"[red]Error: {escape(str(e))}[/]")
        raise typer.Exit(1)
    finally:
        store.close()


@app.command()
def translate(
    ctx: typer.Context,
    book_id: Annotated[str, typer.Argument(help="Book id")],
    chapter: Annotated[
        Optional[int],
        typer.Option("--chapter", "-c", help="Chapter number (default: last read chapter)", min=1),
    ] = None,
    chapters: Annotated[
        Optional[str],
        typer.Option("--chapters", help="Chapters to translate: '1,3,5-7' or 'all'"),
    ] = None,
    all_chapters: Annotated[
        bool,
        typer.Option("--all", "-a", help="Translate every chapter"),
    ] = False,
    language: Annotated[
        Optional[TargetLanguage],
        typer.Option("--language", "-t", help="Target language"),
    ] = None,
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Retranslate segments that already have a translation"),
    ] = False,
    provider: Annotated[
        Optional[str],
        typer.Option("--provider", "-p", help="Translation provider: gemini or openai"),
    ] = None,
    model: Annotated[
        Optional[str],
        typer.Option("--model", "-m", help="Model name (default: provider default)"),
    ] = None,
    base_url: Annotated[
        Optional[str],
        typer.Option("--base-url", help="OpenAI-compatible endpoint URL"),
    ] = None,
    quiet: Annotated[
        bool,
        typer.Option("--quiet", "-q", help="Suppress progress output"),
    ] = False,
) -> None:
    """Translate chapters and cache the results.

    Press Ctrl-C to stop; finished batches are kept.
    """
    selected = [chapter is not None, chapters is not None, all_chapters]
    if sum(selected) > 1:
        console.print("[red]Use only one of --chapter, --chapters and --all[/]")
        raise typer.Exit(1)

    if provider is not None and provider not in ("gemini", "openai"):
        console.print(f"[red]Invalid provider: {escape(provider)}. Use gemini or openai.[/]")
        raise typer.Exit(1)

    if all_chapters:
        selection: str | None = "all"
    elif chapter is not None:
        selection = str(chapter)
    else:
        selection = chapters

    settings: AppSettings = ctx.obj
    target = (language or settings.target_language).value

    overrides: dict[str, object] = {}
    if provider is not None:
        overrides["kind"] = provider
    if model is not None:
        overrides["model"] = model
    if base_url is not None:
        overrides["base_url"] = base_url

    store = _open_store(ctx)
    try:
        from lingo_binder.commands.translate import execute_translate
        from lingo_binder.translation import TranslationOrchestrator, create_provider

        translator = create_provider(ProviderConfig(**overrides))
        orchestrator = TranslationOrchestrator(translator, store, TranslationSettings())
        with ReadingSession.open(store, book_id, orchestrator, settings) as session:
            execute_translate(
                session=session,
                chapters=selection,
                target_language=target,
                force=force,
                quiet=quiet,
                console=console,
            )
    except Exception as e:
        console.print(f"[red]Error: {escape(str(e))}[/]")
        raise typer.Exit(1)
    finally:
        store.close()


@app.command()
def search(
    ctx: typer.Context,
    book_id: Annotated[str, typer.Argument(help="Book id")],
    query: Annotated[str, typer.Argument(help="Text to look for (case-insensitive)")],
    limit: Annotated[
        Optional[int],
        typer.Option("--limit", "-n", help="Stop after N matches", min=1),
    ] = None,
) -> None:
    """Search the whole book."""
    from lingo_binder.commands.read import execute_search

    store = _open_store(ctx)
    try:
        with ReadingSession.open(store, book_id, settings=ctx.obj) as session:
            execute_search(session, query, limit, console)
    except Exception as e:
        console.print(f"[red]Error: {escape(str(e))}[/]")
        raise typer.Exit(1)
    finally:
        store.close()


@app.command()
def cover(
    ctx: typer.Context,
    book_id: Annotated[str, typer.Argument(help="Book id")],
    output: Annotated[
        Path,
        typer.Option("--output", "-o", help="Where to write the image", dir_okay=False),
    ],
) -> None:
    """Export a book's cover image."""
    store = _open_store(ctx)
    try:
        found = execute_cover(book_id, output, store, console)
    except Exception as e:
        console.print(f"[red]Error: {escape(str(e))}[/]")
        raise typer.Exit(1)
    finally:
        store.close()
    if not found:
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
