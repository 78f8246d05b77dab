"""
bmm - a bookmark manager

Bookmarks are stored in a single SQLite database through SQLAlchemy; they can
be listed with a fielded filter, searched by free-text terms and browsed
interactively.

Example Usage:
    >>> from bmm import Database, DraftBookmark, SearchTerms
    >>> db = Database("bookmarks.db")
    >>> db.save(DraftBookmark.create("https://example.com", title="Example", tags=["demo"]))
    >>> db.search_by_terms(SearchTerms.parse("example"))
"""

__version__ = "0.1.0"

# Core database API
from bmm.db import Database, get_db, StoreError

# Configuration
from bmm.config import BmmConfig, get_config, init_config

# Models
from bmm.models import Bookmark, Tag

# Queries
from bmm.query import FieldFilter, SearchTerms, TagStats

# Import
from bmm.importers import import_file

# Validation
from bmm.utils import BmmError, DraftBookmark

__all__ = [
    "Database",
    "get_db",
    "StoreError",
    "BmmConfig",
    "get_config",
    "init_config",
    "Bookmark",
    "Tag",
    "FieldFilter",
    "SearchTerms",
    "TagStats",
    "import_file",
    "BmmError",
    "DraftBookmark",
]
