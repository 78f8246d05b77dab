"""
SQLAlchemy models for bmm.

This module defines the database schema for bookmarks, tags, and their relationships.
Timestamps are stored as integer Unix seconds; ``updated_at`` drives recency ordering.
"""
import time
from typing import Optional, List
from sqlalchemy import (
    Column, Integer, String, ForeignKey, Table, Index
)
from sqlalchemy.orm import (
    DeclarativeBase, relationship, Mapped, mapped_column
)

TITLE_MAX_LENGTH = 500
URI_MAX_LENGTH = 2048
TAG_MAX_LENGTH = 30


def unix_now() -> int:
    """Current time as integer Unix seconds."""
    return int(time.time())


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


# Association table for many-to-many relationship between bookmarks and tags
bookmark_tags = Table(
    'bookmark_tags',
    Base.metadata,
    Column('bookmark_id', Integer, ForeignKey('bookmarks.id', ondelete='CASCADE'), primary_key=True),
    Column('tag_id', Integer, ForeignKey('tags.id', ondelete='CASCADE'), primary_key=True),
    Index('ix_bookmark_tags_bookmark_id', 'bookmark_id'),
    Index('ix_bookmark_tags_tag_id', 'tag_id')
)


class Bookmark(Base):
    """
    Bookmark model representing a saved URI with metadata.

    Attributes:
        id: Primary key
        uri: The bookmarked URI (unique)
        title: Optional title, at most 500 characters
        created_at: Unix seconds when the bookmark was first saved
        updated_at: Unix seconds of the last change (used for recency ordering)
        tags: Tags attached to the bookmark
    """
    __tablename__ = 'bookmarks'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    uri: Mapped[str] = mapped_column(String(URI_MAX_LENGTH), unique=True, nullable=False, index=True)
    title: Mapped[Optional[str]] = mapped_column(String(TITLE_MAX_LENGTH), nullable=True)

    created_at: Mapped[int] = mapped_column(Integer, nullable=False, default=unix_now)
    updated_at: Mapped[int] = mapped_column(Integer, nullable=False, default=unix_now)

    tags: Mapped[List["Tag"]] = relationship(
        "Tag",
        secondary=bookmark_tags,
        back_populates="bookmarks",
        lazy="selectin"  # Eager load tags to avoid N+1 queries
    )

    __table_args__ = (
        Index('ix_bookmarks_updated_at', 'updated_at'),
    )

    @property
    def tag_names(self) -> List[str]:
        """Sorted list of tag names for this bookmark."""
        return sorted(tag.name for tag in self.tags)

    def __repr__(self):
        title = (self.title or '')[:50]
        return f"<Bookmark(id={self.id}, title='{title}', uri='{self.uri[:50]}')>"


class Tag(Base):
    """Tag model for categorizing bookmarks."""
    __tablename__ = 'tags'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(TAG_MAX_LENGTH), unique=True, nullable=False, index=True)

    bookmarks: Mapped[List["Bookmark"]] = relationship(
        "Bookmark",
        secondary=bookmark_tags,
        back_populates="tags"
    )

    def __repr__(self):
        return f"<Tag(id={self.id}, name='{self.name}')>"
