"""
Tests for bmm/cli.py

Runs main() with an explicit --db so every test gets its own database.
"""
import io
import json
from unittest.mock import patch

import pytest

from bmm.cli import build_parser, main
from bmm.db import Database
from bmm.tui import TuiContext
from bmm.utils import DraftBookmark


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Keep user config files and BMM_ variables out of the way."""
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.chdir(tmp_path)
    for key in ("BMM_DATABASE", "BMM_OUTPUT_FORMAT", "BMM_LOG_LEVEL", "BMM_LOG_FILE", "BMM_DEBUG"):
        monkeypatch.delenv(key, raising=False)


def run(db_path, *args):
    main(["--db", db_path, *args])


def saved(db_path):
    return Database(path=db_path)


class TestParser:
    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_format_choices(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["list", "-f", "yaml"])

    def test_tags_subcommand(self):
        args = build_parser().parse_args(["tags", "rename", "old", "new"])
        assert (args.old_tag, args.new_tag) == ("old", "new")


class TestSave:
    """Test the save and save-all commands."""

    def test_save(self, db_path, capsys):
        run(db_path, "save", "https://example.com", "--title", "Example", "-t", "a,B")

        bookmark = saved(db_path).get_by_uri("https://example.com")
        assert bookmark.title == "Example"
        assert bookmark.tag_names == ["a", "b"]
        assert "saved" in capsys.readouterr().out

    def test_save_invalid_uri_exits(self, db_path, capsys):
        with pytest.raises(SystemExit) as exc:
            run(db_path, "save", "not-a-uri")

        assert exc.value.code == 1
        assert "Error:" in capsys.readouterr().out

    def test_save_fail_if_exists(self, db_path, capsys):
        run(db_path, "save", "https://example.com")

        with pytest.raises(SystemExit):
            run(db_path, "save", "https://example.com", "-f")

        assert "already saved" in capsys.readouterr().out

    def test_save_all(self, db_path, capsys):
        run(db_path, "save-all", "https://one.example.com", "https://two.example.com", "-t", "x")

        db = saved(db_path)
        assert db.count() == 2
        assert db.tag_names() == ["x"]

    def test_save_all_from_stdin(self, db_path, monkeypatch):
        monkeypatch.setattr("sys.stdin", io.StringIO("https://one.example.com\n\nhttps://two.example.com\n"))

        run(db_path, "save-all", "--stdin")

        assert saved(db_path).count() == 2

    def test_save_all_nothing(self, db_path, capsys):
        run(db_path, "save-all")
        assert "nothing to save" in capsys.readouterr().out


@pytest.fixture
def filled(db_path):
    db = Database(path=db_path)
    db.save(DraftBookmark.create("https://github.com/dhth/bmm", title="bmm", tags=["tools", "cli"]), now=1700000200)
    db.save(DraftBookmark.create("https://crates.io/crates/sqlx", title="sqlx", tags=["rust"]), now=1700000100)
    return db_path


class TestListAndSearch:
    def test_list_all(self, filled, capsys):
        run(filled, "list")
        assert capsys.readouterr().out.splitlines() == [
            "https://github.com/dhth/bmm",
            "https://crates.io/crates/sqlx",
        ]

    def test_list_by_tag(self, filled, capsys):
        run(filled, "list", "-t", "rust")
        assert capsys.readouterr().out.splitlines() == ["https://crates.io/crates/sqlx"]

    def test_list_json(self, filled, capsys):
        run(filled, "list", "-u", "github", "-f", "json")
        data = json.loads(capsys.readouterr().out)
        assert [d["uri"] for d in data] == ["https://github.com/dhth/bmm"]

    def test_list_limit(self, filled, capsys):
        run(filled, "list", "-l", "1")
        assert len(capsys.readouterr().out.splitlines()) == 1

    def test_list_tui_preloads_results(self, filled):
        with patch("bmm.cli.run_tui") as mock_tui:
            run(filled, "list", "-t", "rust", "--tui")

        context = mock_tui.call_args[0][2]
        assert context.kind == "listing"
        assert [b.uri for b in context.bookmarks] == ["https://crates.io/crates/sqlx"]

    def test_search(self, filled, capsys):
        run(filled, "search", "rust", "sqlx")
        assert capsys.readouterr().out.splitlines() == ["https://crates.io/crates/sqlx"]

    def test_search_too_many_terms(self, filled, capsys):
        with pytest.raises(SystemExit):
            run(filled, "search", *[f"t{i}" for i in range(11)])
        assert "too many terms" in capsys.readouterr().out

    def test_search_tui(self, filled):
        with patch("bmm.cli.run_tui") as mock_tui:
            run(filled, "search", "rust", "--tui")

        context = mock_tui.call_args[0][2]
        assert context.kind == "search"
        assert context.terms.terms == ("rust",)

    def test_tui_command(self, filled):
        with patch("bmm.cli.run_tui") as mock_tui:
            run(filled, "tui")
        assert mock_tui.call_args[0][2] == TuiContext.blank()


class TestShowAndDelete:
    def test_show(self, filled, capsys):
        run(filled, "show", "https://crates.io/crates/sqlx")
        out = capsys.readouterr().out
        assert "Title: sqlx" in out
        assert "Tags : rust" in out

    def test_show_missing(self, filled, capsys):
        with pytest.raises(SystemExit):
            run(filled, "show", "https://nope.example.com")
        assert "doesn't exist" in capsys.readouterr().out

    def test_delete_with_yes(self, filled):
        run(filled, "delete", "-y", "https://crates.io/crates/sqlx")
        assert saved(filled).count() == 1

    def test_delete_confirmed(self, filled):
        with patch("builtins.input", return_value="y"):
            run(filled, "delete", "https://crates.io/crates/sqlx")
        assert saved(filled).count() == 1

    def test_delete_cancelled(self, filled, capsys):
        with patch("builtins.input", return_value="n"):
            run(filled, "delete", "https://crates.io/crates/sqlx")
        assert saved(filled).count() == 2
        assert "Cancelled" in capsys.readouterr().out


class TestTags:
    def test_tags_list(self, filled, capsys):
        run(filled, "tags", "list")
        assert capsys.readouterr().out.splitlines() == ["cli", "rust", "tools"]

    def test_tags_list_stats(self, filled, capsys):
        run(filled, "tags", "list", "--show-stats", "-f", "json")
        data = json.loads(capsys.readouterr().out)
        assert {"name": "rust", "num_bookmarks": 1} in data

    def test_tags_list_tui(self, filled):
        with patch("bmm.cli.run_tui") as mock_tui:
            run(filled, "tags", "list", "--tui")
        assert mock_tui.call_args[0][2] == TuiContext.tags()

    def test_tags_rename(self, filled):
        run(filled, "tags", "rename", "rust", "RustLang")
        assert saved(filled).tag_names() == ["cli", "rustlang", "tools"]

    def test_tags_rename_same(self, filled, capsys):
        run(filled, "tags", "rename", "rust", "rust")
        assert "nothing to do" in capsys.readouterr().out

    def test_tags_rename_invalid(self, filled, capsys):
        with pytest.raises(SystemExit):
            run(filled, "tags", "rename", "rust", "bad tag")
        assert saved(filled).tag_names() == ["cli", "rust", "tools"]

    def test_tags_delete(self, filled):
        run(filled, "tags", "delete", "-y", "rust")
        assert saved(filled).tag_names() == ["cli", "tools"]


class TestImportCommand:
    def test_import(self, db_path, tmp_path, capsys):
        path = tmp_path / "uris.txt"
        path.write_text("https://one.example.com\n")

        run(db_path, "import", str(path))

        assert saved(db_path).count() == 1
        assert "imported 1 bookmarks" in capsys.readouterr().out

    def test_import_dry_run(self, db_path, tmp_path, capsys):
        path = tmp_path / "uris.txt"
        path.write_text("https://one.example.com\n")

        run(db_path, "import", str(path), "--dry-run")

        data = json.loads(capsys.readouterr().out)
        assert data == [{"uri": "https://one.example.com", "title": None, "tags": []}]
        assert saved(db_path).count() == 0


class TestDebug:
    def test_debug_prints_config(self, db_path, capsys):
        run(db_path, "--debug", "list")
        out = capsys.readouterr().out
        assert "DEBUG INFO" in out
        assert "<computed config>" in out
