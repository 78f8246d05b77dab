"""
Tests for bmm/db.py

Tests the Database class:
- Initialization
- Saving (create, update, merge and reset semantics)
- Deleting bookmarks
- Tag listing, renaming and deletion
- Orphaned tag cleanup
- Error wrapping
"""
import os
import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from bmm.db import (
    BookmarkExistsError, Database, SameTagError, StoreError, TagNotFoundError, get_db
)
from bmm.models import Bookmark, Tag
from bmm.query import SearchTerms, TagStats
from bmm.utils import DraftBookmark


def draft(uri, title=None, tags=()):
    return DraftBookmark.create(uri, title=title, tags=tags)


class TestDatabaseInit:
    """Test Database initialization."""

    def test_init_with_path(self):
        """Test initialization with explicit path."""
        with tempfile.TemporaryDirectory() as tmpdir:
            db_path = os.path.join(tmpdir, "bookmarks.db")
            db = Database(path=db_path)

            assert db.path.exists()
            assert db.url == f"sqlite:///{db_path}"

    def test_init_with_url(self):
        """Test initialization with database URL."""
        with tempfile.TemporaryDirectory() as tmpdir:
            url = f"sqlite:///{os.path.join(tmpdir, 'test.db')}"
            db = Database(url=url)

            assert db.url == url
            assert db.path is None

    def test_init_creates_parent_directory(self):
        """Test that parent directories are created."""
        with tempfile.TemporaryDirectory() as tmpdir:
            db_path = os.path.join(tmpdir, "subdir", "nested", "test.db")
            Database(path=db_path)

            assert Path(db_path).parent.exists()

    def test_schema_creation(self, db):
        """Test that schema is created on initialization."""
        with db.session() as session:
            assert session.execute(select(Bookmark)).all() == []
            assert session.execute(select(Tag)).all() == []

    def test_get_db_returns_same_instance(self, db_path):
        """get_db caches the instance until a new path is given."""
        first = get_db(db_path)
        assert get_db() is first


class TestSave:
    """Test Database.save()."""

    def test_save_new_bookmark(self, db):
        """A new URI creates a bookmark with both timestamps set."""
        bookmark = db.save(draft("https://example.com", "Example", ["web", "demo"]), now=1700000000)

        assert bookmark.uri == "https://example.com"
        assert bookmark.title == "Example"
        assert bookmark.tag_names == ["demo", "web"]
        assert bookmark.created_at == 1700000000
        assert bookmark.updated_at == 1700000000
        assert db.count() == 1

    def test_save_existing_updates_in_place(self, db):
        """Saving the same URI again updates instead of duplicating."""
        db.save(draft("https://example.com", "Old"), now=1700000000)
        bookmark = db.save(draft("https://example.com", "New"), now=1700000500)

        assert db.count() == 1
        assert bookmark.title == "New"
        assert bookmark.created_at == 1700000000
        assert bookmark.updated_at == 1700000500

    def test_save_merges_tags(self, db):
        """Without reset, new tags are added to the existing ones."""
        db.save(draft("https://example.com", tags=["a", "b"]))
        bookmark = db.save(draft("https://example.com", tags=["c"]))

        assert bookmark.tag_names == ["a", "b", "c"]

    def test_save_keeps_title_when_not_given(self, db):
        """A missing title doesn't erase the saved one."""
        db.save(draft("https://example.com", "Keep me"))
        bookmark = db.save(draft("https://example.com"))

        assert bookmark.title == "Keep me"

    def test_save_reset_missing(self, db):
        """With reset, missing title is cleared and tags are replaced."""
        db.save(draft("https://example.com", "Old", ["a", "b"]))
        bookmark = db.save(draft("https://example.com", tags=["c"]), reset_missing=True)

        assert bookmark.title is None
        assert bookmark.tag_names == ["c"]
        assert db.tag_names() == ["c"]

    def test_save_fail_if_exists(self, db):
        """fail_if_exists refuses to touch a saved URI."""
        db.save(draft("https://example.com", "Original"))

        with pytest.raises(BookmarkExistsError, match="already saved"):
            db.save(draft("https://example.com", "Other"), fail_if_exists=True)

        assert db.get_by_uri("https://example.com").title == "Original"

    def test_tags_are_shared_between_bookmarks(self, db):
        """The same tag name maps to a single tag row."""
        db.save(draft("https://one.example.com", tags=["shared"]))
        db.save(draft("https://two.example.com", tags=["shared"]))

        with db.session() as session:
            assert len(session.execute(select(Tag)).scalars().all()) == 1

    def test_save_all(self, db):
        """save_all stores every draft in one go."""
        saved = db.save_all([
            draft("https://one.example.com", tags=["x"]),
            draft("https://two.example.com", tags=["x", "y"]),
        ], now=1700000000)

        assert saved == 2
        assert db.count() == 2
        assert db.tag_names() == ["x", "y"]

    def test_save_all_updates_existing(self, db):
        """save_all merges into already saved bookmarks."""
        db.save(draft("https://one.example.com", "One", ["x"]))
        db.save_all([draft("https://one.example.com", tags=["y"])])

        bookmark = db.get_by_uri("https://one.example.com")
        assert bookmark.title == "One"
        assert bookmark.tag_names == ["x", "y"]

    def test_tag_created_elsewhere_keeps_earlier_drafts(self, db):
        """Losing a tag insert race reuses the tag without undoing the batch."""
        db.save(draft("https://one.example.com", tags=["shared"]))
        find_tag = db._find_tag
        missed = []

        def stale_find(session, name):
            # the first lookup misses a tag another writer already committed
            if name == "shared" and not missed:
                missed.append(name)
                return None
            return find_tag(session, name)

        with patch.object(db, "_find_tag", side_effect=stale_find):
            db.save_all([
                draft("https://two.example.com", tags=["x"]),
                draft("https://three.example.com", tags=["shared"]),
            ])

        assert missed == ["shared"]
        assert db.count() == 3
        assert db.tag_names() == ["shared", "x"]
        assert db.get_by_uri("https://two.example.com").tag_names == ["x"]
        assert db.get_by_uri("https://three.example.com").tag_names == ["shared"]


class TestGetAndDelete:
    """Test Database.get_by_uri() and Database.delete()."""

    def test_get_by_uri(self, populated_db):
        bookmark = populated_db.get_by_uri("https://crates.io/crates/sqlx")
        assert bookmark.title == "sqlx"
        assert bookmark.tag_names == ["crate", "rust"]

    def test_get_by_uri_missing(self, populated_db):
        assert populated_db.get_by_uri("https://nope.example.com") is None

    def test_delete(self, populated_db):
        """Deleting returns the number of bookmarks removed."""
        deleted = populated_db.delete(["https://crates.io/crates/sqlx", "https://nope.example.com"])

        assert deleted == 1
        assert populated_db.count() == 3

    def test_delete_removes_orphaned_tags(self, populated_db):
        """Tags only used by deleted bookmarks go away."""
        populated_db.delete(["https://crates.io/crates/sqlx"])

        names = populated_db.tag_names()
        assert "rust" not in names
        assert "crate" not in names

    def test_delete_nothing(self, populated_db):
        assert populated_db.delete([]) == 0


class TestTags:
    """Test tag operations."""

    def test_tag_names_sorted(self, populated_db):
        assert populated_db.tag_names() == [
            "cli", "crate", "docs", "github", "python", "rust", "tools"
        ]

    def test_all_tags_with_counts(self, db):
        """Most used first, ties by name."""
        db.save(draft("https://one.example.com", tags=["b", "a"]))
        db.save(draft("https://two.example.com", tags=["b"]))

        assert db.all_tags_with_counts() == [TagStats("b", 2), TagStats("a", 1)]

    def test_rename_tag(self, populated_db):
        """Renaming to a new name keeps every bookmark tagged."""
        renamed = populated_db.rename_tag("rust", "rustlang")

        assert renamed == 1
        assert populated_db.get_by_uri("https://crates.io/crates/sqlx").tag_names == ["crate", "rustlang"]
        assert "rust" not in populated_db.tag_names()

    def test_rename_tag_merges_into_existing(self, db):
        """Renaming onto an existing tag merges the two."""
        db.save(draft("https://one.example.com", tags=["old", "new"]))
        db.save(draft("https://two.example.com", tags=["old"]))

        renamed = db.rename_tag("old", "new")

        assert renamed == 2
        assert db.tag_names() == ["new"]
        assert db.get_by_uri("https://one.example.com").tag_names == ["new"]
        assert db.get_by_uri("https://two.example.com").tag_names == ["new"]

    def test_rename_missing_tag(self, populated_db):
        with pytest.raises(TagNotFoundError):
            populated_db.rename_tag("nope", "other")

    def test_rename_tag_onto_itself(self, populated_db):
        """Renaming a tag to its own name is refused and changes nothing."""
        with pytest.raises(SameTagError, match="source and target tags are the same"):
            populated_db.rename_tag("rust", "rust")

        assert "rust" in populated_db.tag_names()
        assert populated_db.get_by_uri("https://crates.io/crates/sqlx").tag_names == ["crate", "rust"]

    def test_delete_tags_keeps_bookmarks(self, populated_db):
        """Deleting a tag leaves its bookmarks in place."""
        deleted = populated_db.delete_tags(["rust", "nope"])

        assert deleted == 1
        assert populated_db.count() == 4
        assert populated_db.get_by_uri("https://crates.io/crates/sqlx").tag_names == ["crate"]


class TestErrors:
    """Test error wrapping."""

    def test_sqlalchemy_errors_become_store_errors(self, db):
        """Failures inside a session surface as StoreError."""
        with patch.object(db, "Session") as factory:
            factory.return_value.execute.side_effect = OperationalError("SELECT", {}, Exception("disk I/O error"))
            with pytest.raises(StoreError, match="couldn't search bookmarks"):
                db.search_by_terms(SearchTerms.parse("x"))

    def test_session_rolls_back_on_error(self, db):
        """Nothing is committed when the block raises."""
        with pytest.raises(RuntimeError):
            with db.session() as session:
                session.add(Bookmark(uri="https://example.com"))
                session.flush()
                raise RuntimeError("boom")

        assert db.count() == 0
