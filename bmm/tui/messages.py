"""
Messages consumed by the interactive session's ``update`` function.

Three families share one inbound queue: translated terminal events, runtime
ticks and effect completions. Completions carry either a payload or an error
string, never both.
"""
from dataclasses import dataclass, field
from typing import Optional, Tuple

from bmm.models import Bookmark
from bmm.query import TagStats
from bmm.tui.model import Pane


# Translated terminal events

@dataclass(frozen=True)
class TerminalResized:
    width: int
    height: int


@dataclass(frozen=True)
class GoToNextItem:
    pass


@dataclass(frozen=True)
class GoToPreviousItem:
    pass


@dataclass(frozen=True)
class GoToFirstItem:
    pass


@dataclass(frozen=True)
class GoToLastItem:
    pass


@dataclass(frozen=True)
class OpenSelection:
    pass


@dataclass(frozen=True)
class ShowView:
    pane: Pane


@dataclass(frozen=True)
class SearchInputKey:
    """A key press meant for the search input buffer."""
    key: str
    data: str = ""


@dataclass(frozen=True)
class SubmitSearch:
    pass


@dataclass(frozen=True)
class ShowBookmarksForTag:
    pass


@dataclass(frozen=True)
class GoBackOrQuit:
    pass


# Runtime

@dataclass(frozen=True)
class Tick:
    pass


# Effect completions

@dataclass(frozen=True)
class UriOpened:
    uri: str
    error: Optional[str] = None


@dataclass(frozen=True)
class SearchFinished:
    bookmarks: Tuple[Bookmark, ...] = field(default_factory=tuple)
    error: Optional[str] = None


@dataclass(frozen=True)
class TagsFetched:
    tags: Tuple[TagStats, ...] = field(default_factory=tuple)
    error: Optional[str] = None


@dataclass(frozen=True)
class BookmarksForTagFetched:
    tag: str
    bookmarks: Tuple[Bookmark, ...] = field(default_factory=tuple)
    error: Optional[str] = None
