"""
Stopwatch extension: reports how long a test's call phase took.

The entry is published as a ``user_properties`` pair, so it shows up in
JUnit XML and in any reporter that reads report properties.
"""

import time

REPORT_KEY = "stopwatch"


class Stopwatch:
    """Monotonic timer for one test call."""

    def __init__(self, clock=time.perf_counter) -> None:
        self._clock = clock
        self._started: float | None = None

    def start(self) -> None:
        self._started = self._clock()

    def elapsed_ms(self) -> int:
        if self._started is None:
            raise RuntimeError("Stopwatch was never started")
        return int((self._clock() - self._started) * 1000)


def format_entry(test_name: str, elapsed_ms: int) -> str:
    """Report entry text, e.g. "Execution of 'test_x()' took [12] ms."."""
    return f"Execution of '{test_name}()' took [{elapsed_ms}] ms."
