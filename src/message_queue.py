import threading
from queue import Queue, Empty, Full
from typing import Optional

from models import Transaction


class InMemoryQueue:
    """
    Thread-safe FIFO queue between the CSV publisher and the single consumer.
    All synchronization is internal - callers never need to lock.
    Order of consumption is exactly the order of publication.
    """

    DEFAULT_TIMEOUT = 0.1

    def __init__(self, max_size: int = 0):
        self._main_queue: Queue[Transaction] = Queue(maxsize=max_size)
        self._shutdown_event = threading.Event()
        self._abort_event = threading.Event()

    def publish_message(self, message: Transaction) -> bool:
        """
        Add message to the queue, waiting while it is full. Thread-safe.
        Returns False if the queue was aborted before the message fit.
        """
        while not self._abort_event.is_set():
            try:
                self._main_queue.put(message, timeout=self.DEFAULT_TIMEOUT)
                return True
            except Full:
                continue
        return False

    def consume_message(self) -> Optional[Transaction]:
        """
        Get next message from the queue.
        Returns None if queue is empty after timeout.
        Thread-safe.
        """
        try:
            return self._main_queue.get(timeout=self.DEFAULT_TIMEOUT)
        except Empty:
            return None

    def is_empty(self) -> bool:
        """Check if the queue is empty."""
        return self._main_queue.empty()

    def size(self) -> int:
        """Return approximate queue size."""
        return self._main_queue.qsize()

    def shutdown(self) -> None:
        """Signal no more messages will be published."""
        self._shutdown_event.set()

    def is_shutdown(self) -> bool:
        """Check if shutdown has been signaled."""
        return self._shutdown_event.is_set()

    def is_drained(self) -> bool:
        """True once shutdown was signaled and every message was consumed."""
        return self.is_shutdown() and self.is_empty()

    def abort(self) -> None:
        """Stop accepting messages; a blocked publisher gives up."""
        self._abort_event.set()

    def is_aborted(self) -> bool:
        return self._abort_event.is_set()
