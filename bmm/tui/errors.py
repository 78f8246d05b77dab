"""Errors that end an interactive session."""
from bmm.utils import BmmError


class TuiError(BmmError):
    """The session couldn't continue."""


class TerminalInitError(TuiError):
    def __init__(self, cause: Exception):
        self.cause = cause
        super().__init__(f"couldn't initialize bmm's TUI: {cause}")


class RestoreTerminalError(TuiError):
    def __init__(self, cause: Exception):
        self.cause = cause
        super().__init__(f"couldn't restore terminal to its original state: {cause}")


class DrawError(TuiError):
    def __init__(self, cause: Exception):
        self.cause = cause
        super().__init__(f"couldn't draw a TUI frame: {cause}")


class PollError(TuiError):
    def __init__(self, cause: Exception):
        self.cause = cause
        super().__init__(f"couldn't poll for terminal events: {cause}")


class MessageDeliveryError(TuiError):
    def __init__(self, message):
        self.message = message
        super().__init__(f"couldn't send a message to the internal queue: {message!r}")
