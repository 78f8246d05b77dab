import os
import tempfile

import pytest

import bmm.config
import bmm.db
from bmm.config import BmmConfig
from bmm.db import Database
from bmm.utils import DraftBookmark


SAMPLE_BOOKMARKS = [
    # (uri, title, tags, updated_at)
    ("https://github.com/dhth/bmm", "bmm: a bookmark manager", ["tools", "cli", "github"], 1700000300),
    ("https://crates.io/crates/sqlx", "sqlx", ["rust", "crate"], 1700000200),
    ("https://docs.python.org/3/", "Python documentation", ["python", "docs"], 1700000100),
    ("https://news.ycombinator.com", None, [], 1700000000),
]


@pytest.fixture(autouse=True)
def reset_globals():
    """Drop the process-wide config and database between tests."""
    yield
    bmm.config._config = None
    bmm.db._db = None


@pytest.fixture
def config():
    """Default configuration, untouched by files or environment."""
    return BmmConfig()


@pytest.fixture
def db_path():
    with tempfile.TemporaryDirectory(prefix="bmm_test_") as tmpdir:
        yield os.path.join(tmpdir, "bmm.db")


@pytest.fixture
def db(db_path):
    """Create a temporary database for each test."""
    return Database(path=db_path)


@pytest.fixture
def populated_db(db):
    """Database holding SAMPLE_BOOKMARKS with fixed timestamps."""
    for uri, title, tags, updated_at in SAMPLE_BOOKMARKS:
        db.save(DraftBookmark.create(uri, title=title, tags=tags), now=updated_at)
    return db
