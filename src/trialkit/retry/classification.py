"""
Exception classification for attempt outcomes.

Maps whatever an attempt raised onto the closed OutcomeKind taxonomy.
Abort signals win over expected-kind membership, so a skipped attempt is
never retried even when every exception kind is expected.
"""

from collections.abc import Iterable

import pytest

from trialkit.exceptions import AttemptAborted, RetryCancelled
from trialkit.models.enums import OutcomeKind

ExceptionKinds = tuple[type[BaseException], ...]

# pytest.skip()/pytest.xfail() inside an attempt, plus our own skip signal
DEFAULT_ABORT_KINDS: ExceptionKinds = (
    pytest.skip.Exception,
    pytest.xfail.Exception,
    AttemptAborted,
)


def is_expected(exception: BaseException, on_exceptions: Iterable[type[BaseException]]) -> bool:
    """
    Check if an exception is of an expected (retryable) kind.
    
    An empty kind set means every kind is expected. Otherwise the exception
    must be an instance of at least one configured kind (subtypes match).
    """
    kinds = tuple(on_exceptions)
    if not kinds:
        return True
    return isinstance(exception, kinds)


def classify(
    exception: BaseException | None,
    on_exceptions: Iterable[type[BaseException]] = (),
    abort_kinds: ExceptionKinds = DEFAULT_ABORT_KINDS,
) -> OutcomeKind:
    """
    Classify the outcome of one attempt.
    
    Args:
        exception: What the attempt raised, or None if it succeeded
        on_exceptions: Expected exception kinds (empty = all expected)
        abort_kinds: Exception kinds that mean "attempt skipped"
    
    Returns:
        OutcomeKind of the attempt
    """
    if exception is None:
        return OutcomeKind.SUCCESS
    if isinstance(exception, RetryCancelled):
        return OutcomeKind.CANCELLED
    if isinstance(exception, abort_kinds):
        return OutcomeKind.ABORTED
    if is_expected(exception, on_exceptions):
        return OutcomeKind.EXPECTED_FAILURE
    return OutcomeKind.UNEXPECTED_FAILURE
