"""Shared test fixtures and configuration for all tests.

This conftest.py provides common fixtures used across unit and integration tests.
"""

import pytest

from trialkit.config import Settings
from trialkit.naming import DEFAULT_NAME_TEMPLATE
from trialkit.retry.controller import RetryController
from trialkit.retry.policy import RetryPolicy


@pytest.fixture
def test_settings() -> Settings:
    """Test settings with explicit defaults.
    
    Override specific settings in individual tests as needed:
        def test_something(test_settings):
            test_settings.DEFAULT_SUSPEND_FOR_MS = 10
    """
    return Settings(
        LOG_LEVEL="DEBUG",
        ENVIRONMENT="development",
        DEFAULT_NAME_TEMPLATE=DEFAULT_NAME_TEMPLATE,
        DEFAULT_MIN_SUCCESS=1,
        DEFAULT_SUSPEND_FOR_MS=0,
        STOPWATCH_ENABLED=True,
    )


@pytest.fixture
def create_policy():
    """Factory fixture to create RetryPolicy with custom values.
    
    Usage:
        def test_something(create_policy):
            policy = create_policy(max_attempts=4, min_success=2)
    """
    def _create(
        max_attempts: int = 3,
        min_success: int = 1,
        suspend_for_ms: int = 0,
        on_exceptions: tuple[type[BaseException], ...] = (),
        name: str = DEFAULT_NAME_TEMPLATE,
    ) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=max_attempts,
            min_success=min_success,
            suspend_for_ms=suspend_for_ms,
            on_exceptions=on_exceptions,
            name=name,
        )
    
    return _create


@pytest.fixture
def create_controller(create_policy):
    """Factory fixture to create RetryController that never really sleeps.
    
    Usage:
        def test_something(create_controller):
            controller = create_controller(max_attempts=4, min_success=2)
    """
    def _create(display_name: str = "test_flaky", sleep=lambda seconds: None, **policy_kwargs) -> RetryController:
        return RetryController(create_policy(**policy_kwargs), display_name=display_name, sleep=sleep)
    
    return _create
