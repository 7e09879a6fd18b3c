# tests/unit/test_cli.py

from pathlib import Path
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from lingo_binder.cli import app
from lingo_binder.commands.translate import parse_chapter_selection
from lingo_binder.store.library import LibraryStore

runner = CliRunner()


@pytest.fixture
def library(tmp_path: Path) -> Path:
    return tmp_path / "library.db"


@pytest.fixture
def book_file(tmp_path: Path, epub_bytes: bytes) -> Path:
    path = tmp_path / "1984.epub"
    path.write_bytes(epub_bytes)
    return path


def _invoke(library: Path, *args: str):
    return runner.invoke(
        app,
        ["--library", str(library), *args],
        env={"LINGO_TRANSLATION_BATCH_PAUSE": "0"},
    )


def _added_book_id(library: Path, book_file: Path) -> str:
    result = _invoke(library, "add", str(book_file))
    assert result.exit_code == 0, result.output
    store = LibraryStore.open(library)
    try:
        return store.list_books()[0].id
    finally:
        store.close()


class TestLibraryCommands:
    def test_add_and_list(self, library: Path, book_file: Path) -> None:
        result = _invoke(library, "add", str(book_file))
        assert result.exit_code == 0, result.output
        assert "Added to Library" in result.output

        result = _invoke(library, "library")
        assert result.exit_code == 0
        assert "Orwell" in result.output

    def test_empty_library(self, library: Path) -> None:
        result = _invoke(library, "library")
        assert result.exit_code == 0
        assert "Library is empty" in result.output

    def test_add_rejects_non_epub(self, library: Path, tmp_path: Path) -> None:
        bogus = tmp_path / "notes.epub"
        bogus.write_text("plain text")

        result = _invoke(library, "add", str(bogus))

        assert result.exit_code == 1
        assert "Error" in result.output

    def test_remove(self, library: Path, book_file: Path) -> None:
        book_id = _added_book_id(library, book_file)

        result = _invoke(library, "remove", book_id)
        assert result.exit_code == 0
        assert "Removed" in result.output

        result = _invoke(library, "remove", book_id)
        assert result.exit_code == 1
        assert "Book not found" in result.output

    def test_cover(self, library: Path, book_file: Path, tmp_path: Path) -> None:
        book_id = _added_book_id(library, book_file)
        output = tmp_path / "cover.jpg"

        result = _invoke(library, "cover", book_id, "--output", str(output))

        assert result.exit_code == 0, result.output
        assert output.read_bytes() == b"\xff\xd8\xff\xe0cover"


class TestBracketedBookText:
    """Titles and labels taken from the book are printed literally."""

    @pytest.fixture
    def bracketed_book(self, tmp_path: Path, epub_factory) -> Path:
        path = tmp_path / "notes.epub"
        path.write_bytes(
            epub_factory(
                title="Notes [/] and more",
                creator="[bold]Anon",
                toc=[
                    ("[part one] Intro", "Text/ch1.xhtml"),
                    ("Part 2", "Text/ch2.xhtml"),
                    ("[x] End", "Text/ch3.xhtml"),
                ],
            )
        )
        return path

    def test_add_and_list(self, library: Path, bracketed_book: Path) -> None:
        result = _invoke(library, "add", str(bracketed_book))
        assert result.exit_code == 0, result.output
        assert "Notes [/] and more" in result.output
        assert "[bold]Anon" in result.output

        result = _invoke(library, "library")
        assert result.exit_code == 0, result.output
        assert "[/]" in result.output

    def test_toc(self, library: Path, bracketed_book: Path) -> None:
        book_id = _added_book_id(library, bracketed_book)
        result = _invoke(library, "toc", book_id)
        assert result.exit_code == 0, result.output
        assert "[part one] Intro" in result.output
        assert "Notes [/] and more" in result.output

    def test_search(self, library: Path, bracketed_book: Path) -> None:
        book_id = _added_book_id(library, bracketed_book)
        result = _invoke(library, "search", book_id, "Brother")
        assert result.exit_code == 0, result.output
        assert "[x]" in result.output

    def test_remove(self, library: Path, bracketed_book: Path) -> None:
        book_id = _added_book_id(library, bracketed_book)
        result = _invoke(library, "remove", book_id)
        assert result.exit_code == 0, result.output
        assert "Notes [/] and more" in result.output


class TestReadingCommands:
    def test_toc(self, library: Path, book_file: Path) -> None:
        book_id = _added_book_id(library, book_file)
        result = _invoke(library, "toc", book_id)
        assert result.exit_code == 0, result.output
        assert "Part 2" in result.output

    def test_read_saves_position(self, library: Path, book_file: Path) -> None:
        book_id = _added_book_id(library, book_file)

        result = _invoke(library, "read", book_id, "--chapter", "2")

        assert result.exit_code == 0, result.output
        assert "Winston" in result.output
        store = LibraryStore.open(library)
        try:
            progress = store.get_progress(book_id)
        finally:
            store.close()
        assert progress is not None
        assert progress.chapter_index == 1

    def test_read_unknown_book(self, library: Path) -> None:
        result = _invoke(library, "read", "missing")
        assert result.exit_code == 1
        assert "Book not found" in result.output

    def test_search(self, library: Path, book_file: Path) -> None:
        book_id = _added_book_id(library, book_file)
        result = _invoke(library, "search", book_id, "Brother")
        assert result.exit_code == 0, result.output
        assert "seg-2" in result.output

    def test_search_no_matches(self, library: Path, book_file: Path) -> None:
        book_id = _added_book_id(library, book_file)
        result = _invoke(library, "search", book_id, "zeppelin")
        assert result.exit_code == 0
        assert "No matches" in result.output


class TestTranslateCommand:
    def test_translate_all(
        self, library: Path, book_file: Path, fake_provider
    ) -> None:
        book_id = _added_book_id(library, book_file)

        with patch("lingo_binder.translation.create_provider", return_value=fake_provider):
            result = _invoke(library, "translate", book_id, "--all", "--language", "French")

        assert result.exit_code == 0, result.output
        assert len(fake_provider.calls) == 3
        store = LibraryStore.open(library)
        try:
            cached = store.get_translations(book_id, "OEBPS/Text/ch3.xhtml")
        finally:
            store.close()
        assert cached["seg-2"] == "[French] He loved Big Brother."

    def test_translate_defaults_to_saved_chapter(
        self, library: Path, book_file: Path, fake_provider
    ) -> None:
        book_id = _added_book_id(library, book_file)
        _invoke(library, "read", book_id, "--chapter", "3")

        with patch("lingo_binder.translation.create_provider", return_value=fake_provider):
            result = _invoke(library, "translate", book_id, "--quiet")

        assert result.exit_code == 0, result.output
        assert fake_provider.calls == [["The End", "He loved Big Brother."]]

    def test_conflicting_selection(self, library: Path, book_file: Path) -> None:
        book_id = _added_book_id(library, book_file)
        result = _invoke(library, "translate", book_id, "--all", "--chapter", "1")
        assert result.exit_code == 1
        assert "Use only one" in result.output

    def test_invalid_provider(self, library: Path, book_file: Path) -> None:
        book_id = _added_book_id(library, book_file)
        result = _invoke(library, "translate", book_id, "--provider", "babelfish")
        assert result.exit_code == 1
        assert "Invalid provider" in result.output


class TestChapterSelection:
    @pytest.mark.parametrize(
        "selection,expected",
        [
            ("all", [0, 1, 2, 3, 4]),
            ("1,3", [0, 2]),
            ("2-4", [1, 2, 3]),
            ("5, 1-2, 9", [0, 1, 4]),
            ("4-12", [3, 4]),
            (" ALL ", [0, 1, 2, 3, 4]),
            ("", []),
        ],
    )
    def test_parse_chapter_selection(self, selection: str, expected: list[int]) -> None:
        assert parse_chapter_selection(selection, 5) == expected

    @pytest.mark.parametrize("selection", ["x, 2", "0", "3-1", "1-2-3", "-2"])
    def test_invalid_selection_rejected(self, selection: str) -> None:
        with pytest.raises(ValueError):
            parse_chapter_selection(selection, 5)

    def test_invalid_selection_reported(
        self, library: Path, book_file: Path, fake_provider
    ) -> None:
        book_id = _added_book_id(library, book_file)
        with patch("lingo_binder.translation.create_provider", return_value=fake_provider):
            result = _invoke(library, "translate", book_id, "--chapters", "two")
        assert result.exit_code == 1
        assert "Invalid chapter selection" in result.output
