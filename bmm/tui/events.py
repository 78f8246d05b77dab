"""
Terminal event source.

A background thread polls the terminal on a short interval and turns key
presses and size changes into session messages. Key translation depends on
the active pane; keys with no meaning there are discarded. When the inbox is
full, input is dropped rather than queued.
"""
import logging
import select
import threading
from typing import Callable, Dict, List, Optional, Tuple

from prompt_toolkit.input import Input
from prompt_toolkit.key_binding import KeyPress
from prompt_toolkit.keys import Keys

from bmm.tui import messages as m
from bmm.tui.inbox import Inbox
from bmm.tui.model import Model, Pane

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.016

ENTER = (Keys.Enter.value, Keys.ControlJ.value)
BACK = (Keys.Escape.value, "q")

# Messages after which the following keys belong to another pane
PANE_CHANGES = (m.ShowView, m.SubmitSearch, m.GoBackOrQuit, m.ShowBookmarksForTag)

_NAVIGATION: Dict[str, object] = {
    "j": m.GoToNextItem(),
    Keys.Down.value: m.GoToNextItem(),
    "k": m.GoToPreviousItem(),
    Keys.Up.value: m.GoToPreviousItem(),
    "g": m.GoToFirstItem(),
    "G": m.GoToLastItem(),
    "s": m.ShowView(Pane.SEARCH_INPUT),
    "/": m.ShowView(Pane.SEARCH_INPUT),
    "?": m.ShowView(Pane.HELP),
    "q": m.GoBackOrQuit(),
    Keys.Escape.value: m.GoBackOrQuit(),
}

KEYMAPS: Dict[Pane, Dict[str, object]] = {
    Pane.BOOKMARKS: {
        **_NAVIGATION,
        "o": m.OpenSelection(),
        Keys.Enter.value: m.OpenSelection(),
        Keys.ControlJ.value: m.OpenSelection(),
        "t": m.ShowView(Pane.TAGS),
    },
    Pane.TAGS: {
        **_NAVIGATION,
        Keys.Enter.value: m.ShowBookmarksForTag(),
        Keys.ControlJ.value: m.ShowBookmarksForTag(),
    },
    Pane.HELP: {
        "?": m.ShowView(Pane.HELP),
        "q": m.GoBackOrQuit(),
        Keys.Escape.value: m.GoBackOrQuit(),
    },
}


def key_name(key) -> str:
    """Plain string for a prompt_toolkit key (``Keys`` member or character)."""
    return key.value if isinstance(key, Keys) else key


def translate_key(model: Model, key, data: str = ""):
    """
    Map a key press to a message for the active pane.

    Args:
        model: Current session state (read only)
        key: ``Keys`` member or the typed character
        data: Raw data of the key press

    Returns:
        A message, or None if the key means nothing here
    """
    name = key_name(key)

    if name == Keys.ControlC.value:
        return m.GoBackOrQuit()

    # Only leaving is possible while the size notice is up
    if model.terminal_too_small:
        return m.GoBackOrQuit() if name in BACK else None

    if model.active_pane is Pane.SEARCH_INPUT:
        if name in ENTER:
            return m.SubmitSearch()
        if name == Keys.Escape.value:
            return m.GoBackOrQuit()
        return m.SearchInputKey(name, data)

    return KEYMAPS[model.active_pane].get(name)


class EventSource(threading.Thread):
    """
    Polls terminal input off the main loop.

    Input is only read once ``select`` reports it readable; idle polls flush
    a pending lone escape key and check the terminal size. A polling failure
    stops the thread and is kept in ``error`` for the session loop to raise.

    Keys are translated against the pane the loop has actually reached. Once
    a key switches panes, the rest of the burst is held until the loop has
    applied every message sent so far (``model.event_counter`` catches up
    with ``sent``).
    """

    def __init__(
        self,
        terminal_input: Input,
        inbox: Inbox,
        model: Model,
        size: Callable[[], Tuple[int, int]],
        poll_interval: float = DEFAULT_POLL_INTERVAL
    ):
        super().__init__(name="bmm-events", daemon=True)
        self.terminal_input = terminal_input
        self.inbox = inbox
        self.model = model
        self.size = size
        self.poll_interval = poll_interval
        self.error: Optional[Exception] = None
        self.dropped = 0
        self.sent = model.event_counter
        self._held: List[KeyPress] = []
        self._release_at = self.sent
        self._stopping = threading.Event()

    def stop(self):
        self._stopping.set()

    def run(self):
        last_size = self.size()
        while not self._stopping.is_set():
            try:
                if self.poll():
                    self._held.extend(self.terminal_input.read_keys())
                else:
                    self._held.extend(self.terminal_input.flush_keys())

                self.translate_held()

                current_size = self.size()
                if current_size != last_size:
                    last_size = current_size
                    self.emit(m.TerminalResized(*current_size))
            except (OSError, ValueError) as e:
                logger.debug("polling for terminal events failed: %s", e)
                self.error = e
                return

    def translate_held(self):
        """Send held key presses until one of them changes the pane."""
        while self._held and self.model.event_counter >= self._release_at:
            key_press = self._held.pop(0)
            message = translate_key(self.model, key_press.key, key_press.data)
            if not self.emit(message):
                continue
            self.sent += 1
            if isinstance(message, PANE_CHANGES):
                self._release_at = self.sent

    def poll(self) -> bool:
        """Wait up to one poll interval for terminal input."""
        readable, _, _ = select.select([self.terminal_input.fileno()], [], [], self.poll_interval)
        return bool(readable)

    def emit(self, message) -> bool:
        """Offer a message to the inbox; False if it was not delivered."""
        if message is None or self._stopping.is_set():
            return False
        if not self.inbox.offer(message):
            self.dropped += 1
            logger.debug("inbox full, dropping %s", type(message).__name__)
            return False
        return True
