"""The single bounded queue feeding the session loop."""
import queue
import threading
from typing import Optional

DEFAULT_CAPACITY = 10


class Inbox:
    """
    Bounded FIFO shared by the event source and the dispatcher.

    Producers never block: ``offer`` reports whether the message fit. Once
    the inbox is closed every offer is accepted and thrown away.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        self._queue = queue.Queue(maxsize=capacity)
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def close(self):
        self._closed.set()

    def offer(self, message) -> bool:
        """
        Enqueue without blocking.

        Returns:
            False if the queue is full, True otherwise (including when closed)
        """
        if self.closed:
            return True
        try:
            self._queue.put_nowait(message)
        except queue.Full:
            return False
        return True

    def get(self, timeout: Optional[float] = None):
        """Next message, or None if nothing arrived within ``timeout`` seconds."""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def qsize(self) -> int:
        return self._queue.qsize()
