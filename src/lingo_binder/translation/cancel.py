"""Cooperative cancellation."""

import threading

from lingo_binder.exceptions import Cancelled


class CancelToken:
    """Cancellation signal threaded through every suspending call.

    ``cancel()`` may be called from any thread (a signal handler, a timer);
    the run observing the token unwinds at its next check or sleep.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise Cancelled()

    def sleep(self, seconds: float) -> None:
        """Wait up to ``seconds``, waking immediately on cancellation.

        Raises:
            Cancelled: If the token is or becomes cancelled
        """
        self.raise_if_cancelled()
        if seconds > 0 and self._event.wait(seconds):
            raise Cancelled()
