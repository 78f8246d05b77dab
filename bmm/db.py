"""
Database interface for bmm.

Provides a small API over SQLAlchemy for the operations the CLI and the
interactive session need. A single ``Database`` handle is safe to share across
threads: each call opens its own session, and SQLite connections are not
pooled.
"""
import logging
import threading
from pathlib import Path
from typing import Optional, List, Generator, Iterable, Sequence
from contextlib import contextmanager

from sqlalchemy import create_engine, select, func, delete, event
from sqlalchemy.orm import Session, sessionmaker, selectinload
from sqlalchemy.pool import NullPool
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from bmm.models import Base, Bookmark, Tag, bookmark_tags, unix_now
from bmm.config import get_config
from bmm.query import FieldFilter, SearchTerms, TagStats, build_statement
from bmm.utils import BmmError, DraftBookmark

logger = logging.getLogger(__name__)

# Global lock for tag creation to prevent race conditions
_tag_creation_lock = threading.Lock()


class StoreError(BmmError):
    """A store operation failed."""

    def __init__(self, action: str, cause: Exception):
        self.action = action
        self.cause = cause
        super().__init__(f"couldn't {action}: {cause}")


class BookmarkExistsError(BmmError):
    def __init__(self, uri: str):
        self.uri = uri
        super().__init__(f"uri already saved: {uri}")


class BookmarkNotFoundError(BmmError):
    def __init__(self, uri: str):
        self.uri = uri
        super().__init__(f"bookmark doesn't exist: {uri}")


class TagNotFoundError(BmmError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"no such tag: {name}")


class SameTagError(BmmError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"source and target tags are the same: {name}")


class Database:
    """
    Minimal database interface for bmm.

    Provides a clean API for bookmark operations. Works directly with a
    single database file (or any SQLAlchemy URL).
    """

    def __init__(self, path: Optional[str] = None, url: Optional[str] = None, echo: Optional[bool] = None):
        """
        Initialize database connection.

        Args:
            path: Database file path (for SQLite). Uses config default if not provided.
            url: Full database URL (overrides path).
            echo: SQLAlchemy echo override (defaults to config.database_echo)

        Examples:
            Database()  # Uses config default
            Database(path="bookmarks.db")  # SQLite file
            Database(url="sqlite:///:memory:")
        """
        config = get_config()
        if echo is None:
            echo = config.database_echo

        if url:
            self.url = url
            self.path = None
        elif path:
            self.path = Path(path)
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.url = f"sqlite:///{self.path}"
        else:
            self.url = config.get_database_url()
            if config.is_sqlite() and not config.database_url:
                self.path = config.get_database_path()
                self.path.parent.mkdir(parents=True, exist_ok=True)
            else:
                self.path = None

        try:
            if self.url.startswith("sqlite:"):
                self.engine = create_engine(
                    self.url,
                    connect_args={"check_same_thread": False},
                    poolclass=NullPool,  # NullPool for thread-safe SQLite access
                    echo=echo
                )
                event.listen(self.engine, "connect", self._configure_sqlite)
                event.listen(self.engine, "begin", self._begin_sqlite)
            else:
                self.engine = create_engine(self.url, pool_pre_ping=True, echo=echo)

            self.Session = sessionmaker(bind=self.engine, autoflush=False)

            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            raise StoreError("initialize database", e) from e

    @staticmethod
    def _configure_sqlite(dbapi_conn, connection_record):
        """Configure SQLite for concurrent readers."""
        # Transactions are begun by _begin_sqlite so savepoints nest properly
        dbapi_conn.isolation_level = None
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys = ON")
        cursor.execute("PRAGMA journal_mode = WAL")
        cursor.execute("PRAGMA synchronous = NORMAL")
        cursor.execute("PRAGMA busy_timeout = 5000")
        cursor.close()

    @staticmethod
    def _begin_sqlite(conn):
        conn.exec_driver_sql("BEGIN")

    @contextmanager
    def session(self, action: str = "execute query", expire_on_commit: bool = True) -> Generator[Session, None, None]:
        """
        Context manager for database sessions.

        Args:
            action: Description used in the StoreError raised on failure
            expire_on_commit: If False, objects won't expire after commit (useful for detached access)

        Yields:
            SQLAlchemy session with automatic commit/rollback

        Raises:
            StoreError: Wrapping any SQLAlchemy error
        """
        session = self.Session()
        session.expire_on_commit = expire_on_commit
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreError(action, e) from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def fielded_search(self, field_filter: FieldFilter, limit: Optional[int] = None) -> List[Bookmark]:
        """
        Bookmarks matching every predicate present in the filter.

        Args:
            field_filter: URI/title substrings and required tags
            limit: Maximum number of results

        Returns:
            Bookmarks, most recently updated first
        """
        with self.session("query bookmarks", expire_on_commit=False) as session:
            return list(session.execute(build_statement(field_filter, limit)).scalars().unique())

    def search_by_terms(self, terms: SearchTerms, limit: Optional[int] = None) -> List[Bookmark]:
        """
        Bookmarks where every term matches the URI, the title or one of the tags.

        Args:
            terms: Validated search terms
            limit: Maximum number of results

        Returns:
            Bookmarks, most recently updated first
        """
        with self.session("search bookmarks", expire_on_commit=False) as session:
            return list(session.execute(build_statement(terms, limit)).scalars().unique())

    def all_tags_with_counts(self) -> List[TagStats]:
        """All tags with the number of bookmarks carrying them, most used first."""
        with self.session("fetch tags with stats") as session:
            count = func.count(bookmark_tags.c.bookmark_id)
            query = (
                select(Tag.name, count.label("count"))
                .select_from(Tag)
                .outerjoin(bookmark_tags, Tag.id == bookmark_tags.c.tag_id)
                .group_by(Tag.id, Tag.name)
                .order_by(count.desc(), Tag.name)
            )
            return [TagStats(name=name, num_bookmarks=n) for name, n in session.execute(query).all()]

    def tag_names(self) -> List[str]:
        """All tag names, sorted."""
        with self.session("fetch tags") as session:
            return list(session.execute(select(Tag.name).order_by(Tag.name)).scalars())

    def get_by_uri(self, uri: str) -> Optional[Bookmark]:
        """Get the bookmark saved under exactly this URI."""
        with self.session("fetch bookmark by uri", expire_on_commit=False) as session:
            query = select(Bookmark).options(selectinload(Bookmark.tags)).where(Bookmark.uri == uri)
            return session.execute(query).scalar_one_or_none()

    def count(self) -> int:
        with self.session("count bookmarks") as session:
            return session.execute(select(func.count(Bookmark.id))).scalar()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def save(
        self,
        draft: DraftBookmark,
        now: Optional[int] = None,
        fail_if_exists: bool = False,
        reset_missing: bool = False
    ) -> Bookmark:
        """
        Create a bookmark, or update the one already saved under the same URI.

        Args:
            draft: Validated bookmark details
            now: Timestamp to record (Unix seconds, defaults to the current time)
            fail_if_exists: Raise instead of updating an existing bookmark
            reset_missing: On update, clear the title when the draft has none
                and replace tags instead of merging them

        Returns:
            The saved bookmark

        Raises:
            BookmarkExistsError: If fail_if_exists and the URI is already saved
        """
        now = now if now is not None else unix_now()
        with self.session("save bookmark", expire_on_commit=False) as session:
            existing = session.execute(
                select(Bookmark).where(Bookmark.uri == draft.uri)
            ).scalar_one_or_none()
            if existing is not None and fail_if_exists:
                raise BookmarkExistsError(draft.uri)

            bookmark = self._upsert(session, draft, now, reset_missing, existing)
            session.flush()
            self._delete_orphan_tags(session)
            logger.debug("saved %s", draft.uri)
            return bookmark

    def save_all(self, drafts: Sequence[DraftBookmark], now: Optional[int] = None, reset_missing: bool = False) -> int:
        """
        Save many bookmarks in one transaction.

        Returns:
            Number of bookmarks created or updated
        """
        now = now if now is not None else unix_now()
        with self.session("save bookmarks") as session:
            for draft in drafts:
                existing = session.execute(
                    select(Bookmark).where(Bookmark.uri == draft.uri)
                ).scalar_one_or_none()
                self._upsert(session, draft, now, reset_missing, existing)
                session.flush()
            self._delete_orphan_tags(session)
        logger.debug("saved %d bookmarks", len(drafts))
        return len(drafts)

    def delete(self, uris: Iterable[str]) -> int:
        """
        Delete bookmarks by exact URI.

        Returns:
            Number of bookmarks deleted
        """
        uris = list(uris)
        if not uris:
            return 0
        with self.session("delete bookmarks") as session:
            bookmarks = session.execute(select(Bookmark).where(Bookmark.uri.in_(uris))).scalars().all()
            for bookmark in bookmarks:
                session.delete(bookmark)
            session.flush()
            self._delete_orphan_tags(session)
            return len(bookmarks)

    def rename_tag(self, old: str, new: str) -> int:
        """
        Rename a tag across all bookmarks, merging into ``new`` if it already exists.

        Returns:
            Number of bookmarks carrying the renamed tag

        Raises:
            SameTagError: If ``old`` and ``new`` are the same tag
            TagNotFoundError: If ``old`` doesn't exist
        """
        if old == new:
            raise SameTagError(old)

        with self.session("rename tag") as session:
            old_tag = session.execute(select(Tag).where(Tag.name == old)).scalar_one_or_none()
            if old_tag is None:
                raise TagNotFoundError(old)

            bookmarks = session.execute(
                select(Bookmark).where(Bookmark.tags.any(Tag.id == old_tag.id))
            ).scalars().all()

            new_tag = session.execute(select(Tag).where(Tag.name == new)).scalar_one_or_none()
            if new_tag is None:
                old_tag.name = new
            else:
                for bookmark in bookmarks:
                    bookmark.tags.remove(old_tag)
                    if new_tag not in bookmark.tags:
                        bookmark.tags.append(new_tag)
                session.flush()
                session.delete(old_tag)

            return len(bookmarks)

    def delete_tags(self, names: Iterable[str]) -> int:
        """
        Delete tags (bookmarks are kept).

        Returns:
            Number of tags deleted
        """
        names = list(names)
        if not names:
            return 0
        with self.session("delete tags") as session:
            tags = session.execute(select(Tag).where(Tag.name.in_(names))).scalars().all()
            for tag in tags:
                session.delete(tag)
            return len(tags)

    def _upsert(
        self,
        session: Session,
        draft: DraftBookmark,
        now: int,
        reset_missing: bool,
        existing: Optional[Bookmark]
    ) -> Bookmark:
        if existing is None:
            bookmark = Bookmark(uri=draft.uri, title=draft.title, created_at=now, updated_at=now)
            bookmark.tags = self._get_or_create_tags(session, draft.tags)
            session.add(bookmark)
            return bookmark

        if draft.title is not None or reset_missing:
            existing.title = draft.title

        if reset_missing:
            existing.tags = self._get_or_create_tags(session, draft.tags)
        else:
            current = {t.name for t in existing.tags}
            missing = [name for name in draft.tags if name not in current]
            existing.tags.extend(self._get_or_create_tags(session, missing))

        existing.updated_at = now
        return existing

    def _delete_orphan_tags(self, session: Session) -> None:
        result = session.execute(
            delete(Tag).where(~Tag.bookmarks.any()).execution_options(synchronize_session=False)
        )
        if result.rowcount:
            logger.debug("removed %d orphaned tags", result.rowcount)

    def _find_tag(self, session: Session, name: str) -> Optional[Tag]:
        return session.execute(select(Tag).where(Tag.name == name)).scalar_one_or_none()

    def _get_or_create_tags(self, session: Session, tag_names: Iterable[str]) -> List[Tag]:
        """Get or create tags by name (thread-safe using global lock)."""
        tags = []
        for name in tag_names:
            with _tag_creation_lock:
                tag = self._find_tag(session, name)

                if not tag:
                    tag = Tag(name=name)
                    try:
                        # A failed insert only rolls back to the savepoint
                        with session.begin_nested():
                            session.add(tag)
                    except IntegrityError:
                        logger.debug("tag %s was created elsewhere, reusing it", name)
                        tag = self._find_tag(session, name)

                tags.append(tag)

        return tags


# Global database instance
_db: Optional[Database] = None


def get_db(path: Optional[str] = None, reload: bool = False) -> Database:
    """
    Get the global database instance.

    Args:
        path: Database file path
        reload: Force new connection

    Returns:
        Database instance
    """
    global _db
    if _db is None or reload or path:
        _db = Database(path)
    return _db
