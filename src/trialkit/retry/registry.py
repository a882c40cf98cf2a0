"""
Registry of live retry controllers, keyed by unit-of-work identity.

The pytest plugin keeps one registry per session. A controller is inserted
once, looked up for every attempt of the same test, and discarded when the
test reaches its verdict.
"""

import threading
from collections.abc import Callable

from trialkit.retry.controller import RetryController


class ControllerRegistry:
    """Get-or-create map from test identity to RetryController."""

    def __init__(self) -> None:
        self._controllers: dict[str, RetryController] = {}
        self._lock = threading.Lock()

    def get_or_create(self, key: str, factory: Callable[[], RetryController]) -> RetryController:
        """
        Return the controller for ``key``, creating it on first request.
        
        The factory runs at most once per key; if it raises, nothing is
        stored and the error propagates.
        """
        with self._lock:
            controller = self._controllers.get(key)
            if controller is None:
                controller = factory()
                self._controllers[key] = controller
            return controller

    def get(self, key: str) -> RetryController | None:
        return self._controllers.get(key)

    def discard(self, key: str) -> None:
        with self._lock:
            self._controllers.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self._controllers

    def __len__(self) -> int:
        return len(self._controllers)
