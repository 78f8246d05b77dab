"""
Interactive query-and-browse UI.

Usage:
    from bmm.tui import run_tui, TuiContext

    run_tui(db, context=TuiContext.tags())
"""
from bmm.tui.app import run_tui
from bmm.tui.errors import (
    TuiError, TerminalInitError, RestoreTerminalError, DrawError, PollError, MessageDeliveryError
)
from bmm.tui.model import TuiContext

__all__ = [
    "run_tui",
    "TuiContext",
    "TuiError",
    "TerminalInitError",
    "RestoreTerminalError",
    "DrawError",
    "PollError",
    "MessageDeliveryError",
]
