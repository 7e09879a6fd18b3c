"""Translate command implementation."""

import re
import signal

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
)
from rich.table import Table

from lingo_binder.core.segmenter import SegmentMode
from lingo_binder.session import ReadingSession
from lingo_binder.translation.cancel import CancelToken
from lingo_binder.translation.orchestrator import RunResult, RunState

STATE_STYLES = {
    RunState.COMPLETED: "green",
    RunState.EXHAUSTED: "yellow",
    RunState.CANCELLED: "red",
}


SELECTION_PART = re.compile(r"^(\d+)(?:\s*-\s*(\d+))?$")


def parse_chapter_selection(selection: str, total_chapters: int) -> list[int]:
    """Turn a 1-based selection such as ``"2,4-6"`` or ``"all"`` into spine indices.

    Numbers past the last chapter are ignored. Anything that is not a number
    or a range raises ValueError.
    """
    selection = selection.strip().lower()
    if selection == "all":
        return list(range(total_chapters))

    indices: set[int] = set()
    for part in filter(None, (p.strip() for p in selection.split(","))):
        match = SELECTION_PART.match(part)
        if match is None:
            raise ValueError(f"Invalid chapter selection: {part!r}")
        first = int(match.group(1))
        last = int(match.group(2) or first)
        if first < 1 or last < first:
            raise ValueError(f"Invalid chapter range: {part!r}")
        indices.update(range(first - 1, min(last, total_chapters)))

    return sorted(indices)


def execute_translate(
    session: ReadingSession,
    chapters: str | None,
    target_language: str,
    force: bool,
    quiet: bool,
    console: Console,
) -> list[tuple[int, RunResult]]:
    """Translate the selected chapters (default: the saved chapter).

    Ctrl-C cancels the run in flight; batches already finished stay cached.
    """
    total = len(session.book.chapters)
    if chapters is None:
        indices = [session.saved_chapter_index()]
    else:
        indices = parse_chapter_selection(chapters, total)

    if not indices:
        console.print("[yellow]No chapters selected. Exiting.[/]")
        return []

    token = CancelToken()

    def handle_interrupt(signum: int, frame: object) -> None:
        token.cancel()

    previous_handler = signal.signal(signal.SIGINT, handle_interrupt)
    results: list[tuple[int, RunResult]] = []

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=console,
            disable=quiet,
        ) as progress:
            for index in indices:
                if token.cancelled:
                    break

                session.load_chapter(index, SegmentMode.TEXT_ONLY)
                chapter = session.chapter
                assert chapter is not None
                task = progress.add_task(escape(chapter.title[:40]), total=None)

                def on_update(result: RunResult, task_id=task) -> None:
                    progress.update(
                        task_id,
                        total=max(result.total_batches, 1),
                        completed=result.completed_batches + result.failed_batches,
                    )

                result = session.translate_chapter(
                    target_language,
                    force=force,
                    on_update=on_update,
                    cancel_token=token,
                )
                progress.update(task, total=1, completed=1)
                results.append((index, result))
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    if not quiet:
        _print_summary(session, results, target_language, console)
    return results


def _print_summary(
    session: ReadingSession,
    results: list[tuple[int, RunResult]],
    target_language: str,
    console: Console,
) -> None:
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("#", style="dim", width=4)
    table.add_column("Chapter", style="white")
    table.add_column("State")
    table.add_column("Translated", justify="right", style="green")
    table.add_column("Failed", justify="right", style="red")

    for index, result in results:
        text_segments = [s for s in result.segments if s.is_text]
        style = STATE_STYLES.get(result.state, "white")
        table.add_row(
            str(index + 1),
            escape(session.book.chapters[index].title),
            f"[{style}]{result.state.value}[/]",
            f"{sum(1 for s in text_segments if s.is_translated)}/{len(text_segments)}",
            str(sum(1 for s in text_segments if s.failed)),
        )

    console.print()
    console.print(
        Panel(
            table,
            title=f"Translation into {target_language}",
            border_style="green",
        )
    )
