"""
trialkit: pytest extensions for flaky and stateful tests.

Provides:
- Retrying tests with a bounded attempt budget and a success quota
- Stopwatch report entries for test timing
- Environment variable snapshot/restore around each test

Architecture: frozen retry policy + per-item retry controller, driven by a
pytest plugin that owns one controller per test node id.
"""

__version__ = "0.1.0"
