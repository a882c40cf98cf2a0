"""
trialkit exceptions.

Two families live here:

- Configuration errors, raised once while building a RetryPolicy and always
  fatal to the test before any attempt runs.
- Attempt-outcome signals (abort, exhaustion, cancellation) that the host
  runtime surfaces as the verdict of a test, plus contract violations by the
  host itself.
"""

from typing import Any


class TrialkitError(Exception):
    """
    Base exception for all trialkit errors.
    
    Allows catching any library-raised error with a single except clause.
    """
    
    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class RetryConfigurationError(TrialkitError):
    """
    Raised when retry options are invalid.
    
    The message names the violated constraint. ``details["constraint"]``
    holds a stable identifier of it for programmatic checks.
    """

    def __init__(self, message: str, constraint: str | None = None, **details: Any):
        if constraint:
            details["constraint"] = constraint
        super().__init__(message, details)
        self.constraint = constraint


class RetryStateError(TrialkitError):
    """
    Raised when the host runtime breaks the attempt protocol.
    
    The protocol is strict alternation: ``next_attempt`` then exactly one
    ``report_outcome``.
    """
    pass


class NoMoreAttempts(RetryStateError):
    """Raised by ``next_attempt`` when ``has_next_attempt`` is false."""
    pass


class AttemptAborted(TrialkitError):
    """
    Skip-style signal for a single attempt or for the whole test.
    
    Raised for transient failures that will be retried and for attempts
    that were skipped (failed precondition). Never counts as a hard failure.
    """
    pass


class RetryExhausted(TrialkitError, AssertionError):
    """
    Raised when the success quota can no longer be met within the budget.
    
    ``__cause__`` is the last expected-kind exception. The counters are
    enough to reconstruct the decision without re-running the test.
    
    Attributes:
        attempts: Attempts that actually ran
        max_attempts: Attempt budget
        min_success: Successes required
        successes: Successes achieved
    """

    def __init__(self, attempts: int, max_attempts: int, min_success: int, successes: int) -> None:
        self.attempts = attempts
        self.max_attempts = max_attempts
        self.min_success = min_success
        self.successes = successes
        
        super().__init__(
            f"Test execution #{attempts} (of up to {max_attempts} with at least "
            f"{min_success} successes) failed ~> test fails after {successes} "
            f"successful execution(s) - see cause for details",
            {
                "attempts": attempts,
                "max_attempts": max_attempts,
                "min_success": min_success,
                "successes": successes,
            },
        )


class RetryCancelled(TrialkitError):
    """
    Raised when the inter-attempt suspension is cancelled.
    
    Fatal to the whole retry sequence: no partial credit, no further attempts.
    """
    pass
