"""
Environment variable isolation around a test.

Works on ``os.environ`` with a snapshot/restore contract:

    state = EnvironmentSnapshot.snapshot()
    ... mutate os.environ ...
    EnvironmentSnapshot.restore(state)

Markers (repeatable; class-level markers are applied before method-level ones):
    @pytest.mark.set_environment_variable("KEY", "value")
    @pytest.mark.clear_environment_variable("KEY")
    @pytest.mark.restore_environment
"""

import os
from collections.abc import Iterable, Mapping

import structlog

logger = structlog.get_logger(__name__)


class EnvironmentSnapshot:
    """Snapshot and restore of the process environment."""

    @staticmethod
    def snapshot() -> dict[str, str]:
        return dict(os.environ)

    @staticmethod
    def restore(state: Mapping[str, str]) -> None:
        """Make ``os.environ`` equal to ``state`` again."""
        for key in list(os.environ):
            if key not in state:
                del os.environ[key]
        for key, value in state.items():
            if os.environ.get(key) != value:
                os.environ[key] = value


def apply_environment_changes(
    to_set: Iterable[tuple[str, str]],
    to_clear: Iterable[str],
) -> None:
    """
    Apply set/clear instructions in order.
    
    Raises:
        ValueError: If a key is both set and cleared, or has an invalid name
    """
    to_set = list(to_set)
    to_clear = list(to_clear)

    conflicting = {key for key, _ in to_set} & set(to_clear)
    if conflicting:
        raise ValueError(
            f"Environment variables cannot be set and cleared at the same time: {sorted(conflicting)}"
        )

    for key, value in to_set:
        if not key or "=" in key:
            raise ValueError(f"Invalid environment variable name: {key!r}")
        os.environ[key] = value
    for key in to_clear:
        os.environ.pop(key, None)

    logger.debug("Environment changed", set=[key for key, _ in to_set], cleared=to_clear)
