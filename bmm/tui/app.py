"""
Interactive query-and-browse session.

One loop owns the model: it waits on the inbox, feeds each message to
``update``, redraws and hands the resulting commands to the dispatcher. The
event source and the dispatcher's jobs run on other threads and only ever
talk to the loop through the inbox.
"""
import logging
import termios
import time
from concurrent.futures import ThreadPoolExecutor
from contextlib import ExitStack
from typing import Optional, Tuple

from prompt_toolkit.input import Input, create_input
from rich.console import Console
from rich.errors import ConsoleError
from rich.live import Live

from bmm.config import BmmConfig, get_config
from bmm.db import Database
from bmm.tui.dispatcher import Dispatcher
from bmm.tui.errors import DrawError, PollError, RestoreTerminalError, TerminalInitError
from bmm.tui.events import EventSource
from bmm.tui.inbox import Inbox
from bmm.tui.messages import Tick
from bmm.tui.model import Model, TuiContext
from bmm.tui.update import initial_commands, update
from bmm.tui.view import view

logger = logging.getLogger(__name__)

TERMINAL_ERRORS = (OSError, ValueError, ConsoleError, termios.error)


class Session:
    """A single run of the interactive UI."""

    def __init__(
        self,
        db: Database,
        config: BmmConfig,
        context: TuiContext,
        console: Console,
        terminal_input: Input
    ):
        self.console = console
        self.terminal_input = terminal_input
        self.context = context
        self.tick_interval = config.tick_interval_ms / 1000

        width, height = self.terminal_size()
        self.model = Model.create(config, context, width, height)
        self.inbox = Inbox(config.queue_capacity)
        self.executor = ThreadPoolExecutor(max_workers=config.max_workers, thread_name_prefix="bmm-job")
        self.dispatcher = Dispatcher(db, self.inbox, self.executor, config.tui_search_limit)
        self.events = EventSource(
            terminal_input,
            self.inbox,
            self.model,
            self.terminal_size,
            poll_interval=config.event_poll_interval_ms / 1000,
        )
        self.live = Live(
            console=console,
            screen=True,
            auto_refresh=False,
            redirect_stdout=False,
            redirect_stderr=False,
        )

    def terminal_size(self) -> Tuple[int, int]:
        size = self.console.size
        return size.width, size.height

    def run(self):
        """
        Run until the user quits.

        Raises:
            TuiError: If the terminal can't be set up, drawn to, polled or
                restored, or if a completion couldn't be delivered
        """
        terminal = ExitStack()
        try:
            if not self.console.is_terminal:
                raise OSError("output is not a terminal")
            terminal.enter_context(self.terminal_input.raw_mode())
            terminal.enter_context(self.live)
        except TERMINAL_ERRORS as e:
            terminal.close()
            raise TerminalInitError(e) from e

        try:
            self.loop()
        finally:
            self.shutdown()
            try:
                terminal.close()
            except TERMINAL_ERRORS as e:
                raise RestoreTerminalError(e) from e

    def loop(self):
        self.draw()
        for command in initial_commands(self.context):
            self.dispatcher.dispatch(command)
        self.events.start()

        next_tick = time.monotonic() + self.tick_interval
        while self.model.is_running:
            self.check_failures()

            now = time.monotonic()
            if now >= next_tick:
                next_tick = now + self.tick_interval
                if self.model.notice is not None:
                    self.step(Tick())
                continue

            message = self.inbox.get(timeout=next_tick - now)
            if message is not None:
                self.step(message)

    def step(self, message):
        commands = update(self.model, message)
        if not self.model.is_running:
            return
        self.draw()
        for command in commands:
            self.dispatcher.dispatch(command)

    def draw(self):
        try:
            self.live.update(view(self.model), refresh=True)
        except TERMINAL_ERRORS as e:
            raise DrawError(e) from e

    def check_failures(self):
        if self.dispatcher.failure is not None:
            raise self.dispatcher.failure
        if self.events.error is not None:
            raise PollError(self.events.error)

    def shutdown(self):
        """Stop producers without waiting for running jobs."""
        self.inbox.close()
        self.events.stop()
        if self.events.is_alive():
            self.events.join(timeout=1.0)
        self.executor.shutdown(wait=False)
        logger.debug(
            "session finished after %d renders, %d events, %d dropped",
            self.model.render_counter, self.model.event_counter, self.events.dropped,
        )


def run_tui(
    db: Database,
    config: Optional[BmmConfig] = None,
    context: Optional[TuiContext] = None,
    console: Optional[Console] = None,
    terminal_input: Optional[Input] = None
):
    """
    Start an interactive session and block until it ends.

    Args:
        db: Store to query
        config: Session settings (global config if omitted)
        context: How to start: blank, with a search, on the tags pane or
            with preloaded bookmarks
        console: rich console to draw on
        terminal_input: prompt_toolkit input to read keys from

    Raises:
        TuiError: On any fatal terminal or delivery failure
    """
    config = config or get_config()
    console = console or Console()
    try:
        terminal_input = terminal_input or create_input(always_prefer_tty=True)
    except TERMINAL_ERRORS as e:
        raise TerminalInitError(e) from e

    Session(db, config, context or TuiContext.blank(), console, terminal_input).run()
