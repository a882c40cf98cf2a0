"""
Unit tests for the stopwatch helpers.
"""

from unittest.mock import Mock

import pytest

from trialkit.extensions.stopwatch import Stopwatch, format_entry


def test_elapsed_ms_uses_clock():
    clock = Mock(side_effect=[10.0, 10.2505])
    stopwatch = Stopwatch(clock=clock)

    stopwatch.start()

    assert stopwatch.elapsed_ms() == 250


def test_elapsed_requires_start():
    with pytest.raises(RuntimeError, match="never started"):
        Stopwatch().elapsed_ms()


def test_format_entry():
    assert format_entry("test_upload", 42) == "Execution of 'test_upload()' took [42] ms."
