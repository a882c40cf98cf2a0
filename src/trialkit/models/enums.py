"""
Enumerations for retry outcomes and verdicts.

All enums are closed taxonomies - no values outside these sets are permitted.
"""

from enum import Enum


class OutcomeKind(str, Enum):
    """
    Classification of a single attempt's outcome.
    
    Computed from the exception (or its absence) reported by the host.
    """
    
    SUCCESS = "success"
    ABORTED = "aborted"
    CANCELLED = "cancelled"
    EXPECTED_FAILURE = "expected_failure"
    UNEXPECTED_FAILURE = "unexpected_failure"


class SignalKind(str, Enum):
    """
    Kind of signal the host runtime must surface for an attempt.
    
    Downstream reporting branches on this, not on message wording.
    """
    
    SUCCESS = "success"
    SKIP = "skip"
    FAILURE = "failure"


class Verdict(str, Enum):
    """
    Terminal verdict of a retry sequence.
    
    Exactly one is reached per test.
    """
    
    SUCCESS = "success"
    EXHAUSTED_FAILURE = "exhausted_failure"
    UNEXPECTED_FAILURE = "unexpected_failure"
    ABORTED = "aborted"
    CANCELLED = "cancelled"
