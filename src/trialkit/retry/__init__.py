"""
Retry controller for flaky tests.

This module decides, attempt by attempt, whether a test should run again:

1. **RetryPolicy**: Frozen, validated budget (max attempts), quota (min
   successes), suspension between attempts, and expected exception kinds
2. **RetryController**: Per-test counters and the continuation decision
3. **Classification**: Maps an attempt's exception to success / abort /
   expected failure / unexpected failure
4. **ControllerRegistry**: One controller per test identity for the host

Main Components:
    - RetryPolicy: Immutable configuration, validated once
    - RetryController: has_next_attempt / next_attempt / report_outcome
    - RetryExhausted: Raised when the quota is out of reach
    - run_with_retry / retrying: Host runtime for plain callables

Usage:
    >>> from trialkit.retry import RetryPolicy, run_with_retry
    >>> policy = RetryPolicy.create(max_attempts=4, min_success=2)
    >>> run_with_retry(policy, flaky_function)
"""

from trialkit.exceptions import (
    AttemptAborted,
    NoMoreAttempts,
    RetryCancelled,
    RetryConfigurationError,
    RetryExhausted,
    RetryStateError,
    TrialkitError,
)
from trialkit.retry.cancellation import CancellationToken
from trialkit.retry.classification import classify, is_expected
from trialkit.retry.controller import RetryController
from trialkit.retry.policy import RetryPolicy
from trialkit.retry.registry import ControllerRegistry
from trialkit.retry.runner import retrying, run_with_retry

__all__ = [
    "AttemptAborted",
    "CancellationToken",
    "ControllerRegistry",
    "NoMoreAttempts",
    "RetryCancelled",
    "RetryConfigurationError",
    "RetryController",
    "RetryExhausted",
    "RetryPolicy",
    "RetryStateError",
    "TrialkitError",
    "classify",
    "is_expected",
    "retrying",
    "run_with_retry",
]
