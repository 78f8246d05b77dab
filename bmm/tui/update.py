"""
Session state machine.

``update(model, message)`` applies one message to the model in place and
returns the commands the dispatcher should run. It never performs I/O itself,
so it can be driven directly in tests.
"""
from typing import Callable, Dict, List

from prompt_toolkit.keys import Keys

from bmm.query import SearchTerms, SearchTermsError
from bmm.tui import messages as m
from bmm.tui.commands import FetchBookmarksForTag, FetchTags, OpenInBrowser, RunSearch
from bmm.tui.model import Model, Pane, RunningState, TuiContext

# Messages that originate from terminal input
INPUT_MESSAGES = (
    m.GoToNextItem, m.GoToPreviousItem, m.GoToFirstItem, m.GoToLastItem,
    m.OpenSelection, m.ShowView, m.SearchInputKey, m.SubmitSearch,
    m.ShowBookmarksForTag, m.GoBackOrQuit,
)


def initial_commands(context: TuiContext) -> List:
    """Commands to run as soon as a session starts."""
    if context.kind == "search" and context.terms is not None:
        return [RunSearch(context.terms)]
    if context.kind == "tags":
        return [FetchTags()]
    return []


def update(model: Model, message) -> List:
    """
    Apply a message to the model.

    Args:
        model: Session state, mutated in place
        message: One of the message types in ``bmm.tui.messages``

    Returns:
        Commands to dispatch, possibly empty

    Raises:
        TypeError: For an object that isn't a known message
    """
    handler = _HANDLERS.get(type(message))
    if handler is None:
        raise TypeError(f"unknown message: {message!r}")

    if isinstance(message, INPUT_MESSAGES):
        model.event_counter += 1

    commands = handler(model, message)
    model.render_counter += 1
    return commands


def _count(n: int, noun: str) -> str:
    return f"{n} {noun}" if n == 1 else f"{n} {noun}s"


# Terminal events

def _resize(model: Model, msg: m.TerminalResized) -> List:
    model.resize(msg.width, msg.height)
    return []


def _select(operation: str) -> Callable[[Model, object], List]:
    def handler(model: Model, msg) -> List:
        items = model.active_list()
        if items is not None and not model.terminal_too_small:
            getattr(items, operation)()
        return []
    return handler


def _open_selection(model: Model, msg: m.OpenSelection) -> List:
    if model.active_pane is not Pane.BOOKMARKS or model.terminal_too_small:
        return []
    bookmark = model.bookmarks.current
    if bookmark is None:
        return []
    return [OpenInBrowser(bookmark.uri)]


def _show_view(model: Model, msg: m.ShowView) -> List:
    if model.terminal_too_small:
        return []

    if msg.pane is Pane.HELP and model.active_pane is Pane.HELP:
        model.active_pane = Pane.BOOKMARKS
        return []

    model.active_pane = msg.pane
    if msg.pane is Pane.TAGS and not model.tags.items:
        return [FetchTags()]
    return []


def _search_input_key(model: Model, msg: m.SearchInputKey) -> List:
    if model.active_pane is not Pane.SEARCH_INPUT:
        return []

    buffer = model.search_input
    key = msg.key
    if key == Keys.Backspace:
        buffer.delete_before_cursor()
    elif key == Keys.Delete:
        buffer.delete()
    elif key == Keys.Left:
        buffer.cursor_left()
    elif key == Keys.Right:
        buffer.cursor_right()
    elif key == Keys.Home:
        buffer.cursor_position = 0
    elif key == Keys.End:
        buffer.cursor_position = len(buffer.text)
    elif key == Keys.ControlU:
        buffer.reset()
    elif len(msg.data) == 1 and msg.data.isprintable():
        buffer.insert_text(msg.data)
    return []


def _submit_search(model: Model, msg: m.SubmitSearch) -> List:
    if model.active_pane is not Pane.SEARCH_INPUT or model.terminal_too_small:
        return []

    try:
        terms = SearchTerms.parse(model.search_input.text)
    except SearchTermsError as e:
        model.info(str(e))
        return []

    model.search_input.reset()
    model.active_pane = Pane.BOOKMARKS
    # Search results replace whatever tag was being browsed
    model.tag_history.clear()
    return [RunSearch(terms)]


def _show_bookmarks_for_tag(model: Model, msg: m.ShowBookmarksForTag) -> List:
    if model.active_pane is not Pane.TAGS or model.terminal_too_small:
        return []
    tag = model.tags.current
    if tag is None:
        return []

    model.tag_history.append(tag.name)
    model.active_pane = Pane.BOOKMARKS
    return [FetchBookmarksForTag(tag.name)]


def _go_back_or_quit(model: Model, msg: m.GoBackOrQuit) -> List:
    if model.terminal_too_small:
        model.running_state = RunningState.DONE
    elif model.active_pane is Pane.BOOKMARKS:
        if model.tag_history:
            model.tag_history.pop()
            model.active_pane = Pane.TAGS
        else:
            model.running_state = RunningState.DONE
    else:
        model.active_pane = Pane.BOOKMARKS
    return []


# Runtime

def _tick(model: Model, msg: m.Tick) -> List:
    if model.notice is not None:
        model.notice.ticks_left -= 1
        if model.notice.ticks_left <= 0:
            model.notice = None
    return []


# Effect completions

def _uri_opened(model: Model, msg: m.UriOpened) -> List:
    if msg.error is not None:
        model.error(f"couldn't open {msg.uri}: {msg.error}")
    else:
        model.info("uri opened!")
    return []


def _search_finished(model: Model, msg: m.SearchFinished) -> List:
    if msg.error is not None:
        model.error(msg.error)
        return []

    model.bookmarks.replace(msg.bookmarks)
    if msg.bookmarks:
        model.info(f"{_count(len(msg.bookmarks), 'bookmark')} found")
    else:
        model.info("no bookmarks found for query")
    return []


def _tags_fetched(model: Model, msg: m.TagsFetched) -> List:
    if msg.error is not None:
        model.error(msg.error)
        return []

    model.tags.replace(msg.tags)
    if msg.tags:
        model.info(f"{_count(len(msg.tags), 'tag')} found")
    else:
        model.info("no tags found")
    return []


def _bookmarks_for_tag_fetched(model: Model, msg: m.BookmarksForTagFetched) -> List:
    if msg.error is not None:
        model.error(msg.error)
        return []

    model.bookmarks.replace(msg.bookmarks)
    model.info(f"{_count(len(msg.bookmarks), 'bookmark')} tagged '{msg.tag}'")
    return []


_HANDLERS: Dict[type, Callable[[Model, object], List]] = {
    m.TerminalResized: _resize,
    m.GoToNextItem: _select("select_next"),
    m.GoToPreviousItem: _select("select_previous"),
    m.GoToFirstItem: _select("select_first"),
    m.GoToLastItem: _select("select_last"),
    m.OpenSelection: _open_selection,
    m.ShowView: _show_view,
    m.SearchInputKey: _search_input_key,
    m.SubmitSearch: _submit_search,
    m.ShowBookmarksForTag: _show_bookmarks_for_tag,
    m.GoBackOrQuit: _go_back_or_quit,
    m.Tick: _tick,
    m.UriOpened: _uri_opened,
    m.SearchFinished: _search_finished,
    m.TagsFetched: _tags_fetched,
    m.BookmarksForTagFetched: _bookmarks_for_tag_fetched,
}
