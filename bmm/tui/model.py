"""
State of an interactive session.

The ``Model`` is only ever mutated by ``bmm.tui.update.update``; everything
else (the view, the event source) reads it.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, List, Optional, Sequence, Tuple, TypeVar

from prompt_toolkit.buffer import Buffer

from bmm.config import BmmConfig
from bmm.models import Bookmark
from bmm.query import SearchTerms

T = TypeVar("T")


class Pane(Enum):
    SEARCH_INPUT = "search"
    BOOKMARKS = "bookmarks"
    TAGS = "tags"
    HELP = "help"


class RunningState(Enum):
    RUNNING = "running"
    DONE = "done"


class NoticeLevel(Enum):
    INFO = "info"
    ERROR = "error"


@dataclass
class Notice:
    """A transient message shown in the status bar."""
    text: str
    level: NoticeLevel
    ticks_left: int

    @property
    def is_error(self) -> bool:
        return self.level is NoticeLevel.ERROR


class SelectableList(Generic[T]):
    """
    A list with an optional selection index.

    The selection is ``None`` exactly when the list is empty; otherwise it is
    a valid index. Every operation keeps it that way.
    """

    def __init__(self, items: Sequence[T] = (), selected: Optional[int] = None):
        self.items: List[T] = list(items)
        self.selected: Optional[int] = None
        if self.items:
            self.selected = 0 if selected is None else max(0, min(selected, len(self.items) - 1))

    def __len__(self):
        return len(self.items)

    def __iter__(self):
        return iter(self.items)

    @property
    def current(self) -> Optional[T]:
        if self.selected is None:
            return None
        return self.items[self.selected]

    def select_next(self):
        if self.selected is not None:
            self.selected = min(self.selected + 1, len(self.items) - 1)

    def select_previous(self):
        if self.selected is not None:
            self.selected = max(self.selected - 1, 0)

    def select_first(self):
        if self.selected is not None:
            self.selected = 0

    def select_last(self):
        if self.selected is not None:
            self.selected = len(self.items) - 1

    def replace(self, items: Sequence[T]):
        """
        Swap in new items.

        A prior selection is kept if it is still in range and clamped to the
        last item otherwise; with no prior selection the first item is
        selected.
        """
        self.items = list(items)
        if not self.items:
            self.selected = None
        elif self.selected is None:
            self.selected = 0
        else:
            self.selected = min(self.selected, len(self.items) - 1)


@dataclass(frozen=True)
class TuiContext:
    """
    How a session starts.

    Use one of the constructors: ``blank()``, ``search(terms)``, ``tags()``
    or ``listing(bookmarks)``.
    """
    kind: str = "blank"
    terms: Optional[SearchTerms] = None
    bookmarks: Tuple[Bookmark, ...] = field(default_factory=tuple)

    @classmethod
    def blank(cls) -> "TuiContext":
        return cls("blank")

    @classmethod
    def search(cls, terms: SearchTerms) -> "TuiContext":
        return cls("search", terms=terms)

    @classmethod
    def tags(cls) -> "TuiContext":
        return cls("tags")

    @classmethod
    def listing(cls, bookmarks: Sequence[Bookmark]) -> "TuiContext":
        return cls("listing", bookmarks=tuple(bookmarks))


@dataclass
class Model:
    active_pane: Pane = Pane.BOOKMARKS
    bookmarks: SelectableList = field(default_factory=SelectableList)
    tags: SelectableList = field(default_factory=SelectableList)
    search_input: Buffer = field(default_factory=Buffer)
    notice: Optional[Notice] = None
    terminal_width: int = 0
    terminal_height: int = 0
    terminal_too_small: bool = False
    tag_history: List[str] = field(default_factory=list)
    running_state: RunningState = RunningState.RUNNING
    render_counter: int = 0
    event_counter: int = 0
    debug: bool = False

    min_terminal_width: int = 96
    min_terminal_height: int = 30
    info_notice_ticks: int = 12
    error_notice_ticks: int = 40

    @classmethod
    def create(
        cls,
        config: BmmConfig,
        context: Optional[TuiContext] = None,
        width: int = 0,
        height: int = 0
    ) -> "Model":
        """
        Build the starting model for a session.

        Args:
            config: Supplies thresholds, notice durations and the debug flag
            context: How the session starts (blank if omitted)
            width: Terminal width at startup (0 if unknown)
            height: Terminal height at startup
        """
        context = context or TuiContext.blank()
        model = cls(
            debug=config.debug,
            min_terminal_width=config.min_terminal_width,
            min_terminal_height=config.min_terminal_height,
            info_notice_ticks=config.info_notice_ticks,
            error_notice_ticks=config.error_notice_ticks,
        )
        if width and height:
            model.resize(width, height)

        if context.kind == "tags":
            model.active_pane = Pane.TAGS
        elif context.kind == "listing":
            model.bookmarks.replace(context.bookmarks)
        elif context.kind == "blank":
            model.active_pane = Pane.SEARCH_INPUT

        return model

    @property
    def is_running(self) -> bool:
        return self.running_state is RunningState.RUNNING

    def resize(self, width: int, height: int):
        self.terminal_width = width
        self.terminal_height = height
        self.terminal_too_small = width < self.min_terminal_width or height < self.min_terminal_height

    def info(self, text: str):
        self.notice = Notice(text, NoticeLevel.INFO, self.info_notice_ticks)

    def error(self, text: str):
        self.notice = Notice(text, NoticeLevel.ERROR, self.error_notice_ticks)

    def active_list(self) -> Optional[SelectableList]:
        if self.active_pane is Pane.BOOKMARKS:
            return self.bookmarks
        if self.active_pane is Pane.TAGS:
            return self.tags
        return None
