"""
Effect dispatcher for the interactive session.

Each command runs as its own job on a thread pool and delivers exactly one
completion message to the session inbox. Jobs are never deduplicated,
cancelled or sequenced: when two searches overlap, whichever completion is
delivered last is what the user sees.
"""
import logging
import webbrowser
from concurrent.futures import Executor, Future
from typing import Callable, Dict, Optional

from bmm.db import Database
from bmm.query import DEFAULT_LIMIT, FieldFilter
from bmm.tui.commands import FetchBookmarksForTag, FetchTags, OpenInBrowser, RunSearch
from bmm.tui.errors import MessageDeliveryError
from bmm.tui.inbox import Inbox
from bmm.tui.messages import BookmarksForTagFetched, SearchFinished, TagsFetched, UriOpened

logger = logging.getLogger(__name__)


class Dispatcher:
    """
    Runs commands concurrently and reports their outcome.

    A completion that doesn't fit in the inbox is recorded in ``failure``;
    the session loop treats that as fatal. Completions arriving after the
    inbox is closed are dropped.
    """

    def __init__(self, db: Database, inbox: Inbox, executor: Executor, search_limit: int = DEFAULT_LIMIT):
        self.db = db
        self.inbox = inbox
        self.executor = executor
        self.search_limit = search_limit
        self.failure: Optional[MessageDeliveryError] = None

        self._handlers: Dict[type, Callable] = {
            OpenInBrowser: self._open_in_browser,
            RunSearch: self._run_search,
            FetchTags: self._fetch_tags,
            FetchBookmarksForTag: self._fetch_bookmarks_for_tag,
        }

    def dispatch(self, command) -> Future:
        """
        Start a job for ``command``.

        Raises:
            TypeError: For an object that isn't a known command
        """
        handler = self._handlers.get(type(command))
        if handler is None:
            raise TypeError(f"unknown command: {command!r}")
        logger.debug("dispatching %r", command)
        return self.executor.submit(self._run, handler, command)

    def _run(self, handler: Callable, command):
        self.deliver(handler(command))

    def deliver(self, message):
        if self.inbox.closed:
            logger.debug("session closed, discarding %r", type(message).__name__)
            return
        if not self.inbox.offer(message):
            logger.error("inbox full, couldn't deliver %s", type(message).__name__)
            self.failure = MessageDeliveryError(message)

    def _open_in_browser(self, command: OpenInBrowser) -> UriOpened:
        try:
            opened = webbrowser.open(command.uri)
        except webbrowser.Error as e:
            return UriOpened(command.uri, error=str(e))
        if not opened:
            return UriOpened(command.uri, error="no usable browser found")
        return UriOpened(command.uri)

    def _run_search(self, command: RunSearch) -> SearchFinished:
        try:
            bookmarks = self.db.search_by_terms(command.terms, self.search_limit)
        except Exception as e:
            logger.debug("search for '%s' failed: %s", command.terms, e)
            return SearchFinished(error=str(e))
        logger.debug("search for '%s' returned %d bookmarks", command.terms, len(bookmarks))
        return SearchFinished(bookmarks=tuple(bookmarks))

    def _fetch_tags(self, command: FetchTags) -> TagsFetched:
        try:
            tags = self.db.all_tags_with_counts()
        except Exception as e:
            logger.debug("fetching tags failed: %s", e)
            return TagsFetched(error=str(e))
        return TagsFetched(tags=tuple(tags))

    def _fetch_bookmarks_for_tag(self, command: FetchBookmarksForTag) -> BookmarksForTagFetched:
        try:
            bookmarks = self.db.fielded_search(FieldFilter.create(tags=[command.tag]), self.search_limit)
        except Exception as e:
            logger.debug("fetching bookmarks tagged '%s' failed: %s", command.tag, e)
            return BookmarksForTagFetched(command.tag, error=str(e))
        return BookmarksForTagFetched(command.tag, bookmarks=tuple(bookmarks))
