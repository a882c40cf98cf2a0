"""Cooperative cancellation for the inter-attempt suspension."""

import threading


class CancellationToken:
    """
    Thread-safe cancellation flag with an interruptible wait.
    
    One token may be shared by every controller of a session; cancelling it
    ends the suspension of whichever retry sequence is currently waiting.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, seconds: float) -> bool:
        """Block for up to ``seconds``; return True if cancelled meanwhile."""
        return self._event.wait(timeout=seconds)
