"""
Retry runner for plain callables.

A minimal host runtime around RetryController: runs a function until the
policy reaches a verdict and either returns the last successful result or
raises the terminal exception.

Usage:
    @retrying(max_attempts=3, on_exceptions=(ConnectionError,))
    def fetch():
        ...
"""

import functools
from collections.abc import Callable
from typing import Any, TypeVar

import structlog

from trialkit.models.enums import SignalKind
from trialkit.naming import DEFAULT_NAME_TEMPLATE
from trialkit.retry.cancellation import CancellationToken
from trialkit.retry.controller import RetryController
from trialkit.retry.policy import RetryPolicy

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def run_with_retry(
    policy: RetryPolicy,
    func: Callable[..., T],
    *args: Any,
    base_display_name: str | None = None,
    cancel_token: CancellationToken | None = None,
    **kwargs: Any,
) -> T | None:
    """
    Call ``func`` under ``policy`` until a verdict is reached.
    
    Args:
        policy: Retry policy
        func: Callable to invoke once per attempt
        base_display_name: Name used for attempt names (defaults to func's name)
        cancel_token: Optional token that cancels the inter-attempt wait
    
    Returns:
        Result of the last successful attempt
    
    Raises:
        RetryExhausted: Quota unreachable within budget (cause = last error)
        AttemptAborted: An attempt was skipped
        RetryCancelled: The suspension was cancelled
        Exception: Any unexpected-kind exception, unchanged
    """
    controller = RetryController(
        policy,
        display_name=base_display_name or getattr(func, "__name__", repr(func)),
    )
    result: T | None = None

    while controller.has_next_attempt():
        slot = controller.next_attempt(cancel_token)
        try:
            attempt_result = func(*args, **kwargs)
        except (Exception, *controller.abort_kinds) as e:
            signal = controller.report_outcome(e)
        else:
            result = attempt_result
            signal = controller.report_outcome(None)

        if signal.retrying:
            logger.debug("Transient failure swallowed", attempt=slot.index, message=signal.message)
            continue
        if signal.kind is not SignalKind.SUCCESS:
            signal.raise_for_signal()

    return result


def retrying(
    value: int = 0,
    *,
    max_attempts: int = 0,
    min_success: int = 1,
    suspend_for_ms: int = 0,
    on_exceptions: tuple[type[BaseException], ...] = (),
    name: str = DEFAULT_NAME_TEMPLATE,
) -> Callable[[Callable[..., T]], Callable[..., T | None]]:
    """
    Decorator form of run_with_retry.
    
    The policy is validated once, when the decorator is applied.
    """
    policy = RetryPolicy.create(
        value=value,
        max_attempts=max_attempts,
        min_success=min_success,
        suspend_for_ms=suspend_for_ms,
        on_exceptions=on_exceptions,
        name=name,
    )

    def decorator(func: Callable[..., T]) -> Callable[..., T | None]:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T | None:
            return run_with_retry(policy, func, *args, **kwargs)

        return wrapper

    return decorator
