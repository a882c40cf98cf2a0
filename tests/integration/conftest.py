"""Integration test fixtures (in-process pytest runs with the plugin).

Every run loads the plugin explicitly, so the tests also pass when the
package is importable but its entry point is not installed.
"""

import pytest

PLUGIN_ARGS = ("-p", "trialkit.plugin")


@pytest.fixture
def run_tests(pytester: pytest.Pytester):
    """Write a test module and run it with the plugin.
    
    Usage:
        def test_something(run_tests):
            result = run_tests("def test_ok(): pass", "-v")
    """
    def _run(source: str, *args: str) -> pytest.RunResult:
        pytester.makepyfile(source)
        return pytester.runpytest(*PLUGIN_ARGS, *args)
    
    return _run


@pytest.fixture
def inline_tests(pytester: pytest.Pytester):
    """Like run_tests, but returns the HookRecorder for report inspection."""
    def _run(source: str, *args: str) -> pytest.HookRecorder:
        pytester.makepyfile(source)
        return pytester.inline_run(*PLUGIN_ARGS, *args)
    
    return _run

