"""
Retry controller: the per-test state machine behind ``@retrying``.

The host runtime drives the controller in strict alternation:

    while controller.has_next_attempt():
        slot = controller.next_attempt()
        ... run the test once ...
        signal = controller.report_outcome(exception_or_none)

``has_next_attempt`` is a pure query. ``report_outcome`` updates the counters
and returns an AttemptSignal instead of raising, so the host decides how to
surface skips and failures.

Continuation rule (after the first attempt, which is never refused):
    required  = min_success - successes
    remaining = max_attempts - attempts
    continue iff required > 0 and remaining >= required

The sequence ends in exactly one Verdict, after at most max_attempts attempts.
"""

import time

import structlog

from trialkit.exceptions import (
    NoMoreAttempts,
    RetryCancelled,
    RetryExhausted,
    RetryStateError,
)
from trialkit.models.attempt import AttemptSignal, AttemptSlot
from trialkit.models.enums import OutcomeKind, SignalKind, Verdict
from trialkit.naming import format_display_name
from trialkit.retry.cancellation import CancellationToken
from trialkit.retry.classification import DEFAULT_ABORT_KINDS, ExceptionKinds, classify
from trialkit.retry.policy import RetryPolicy

logger = structlog.get_logger(__name__)

ABORT_MESSAGE = "Test execution was skipped, possibly because of a failed assumption."


class RetryController:
    """
    Attempt and success bookkeeping for one retrying test.

    Not safe for concurrent use: attempts of one test must run strictly one
    after another on the same thread. Controllers of different tests share
    nothing and may run in parallel.

    Attributes:
        policy: Validated retry policy (shared, read-only)
        display_name: Base name of the test, used for attempt names
        abort_kinds: Exception kinds treated as "attempt skipped"
        attempts_so_far: Attempts started (monotonic)
        failures_so_far: Attempts that did not succeed (monotonic)
        verdict: Terminal verdict, None while the sequence is running
        cancellation: The RetryCancelled that ended the sequence, if any
    """

    def __init__(
        self,
        policy: RetryPolicy,
        display_name: str = "",
        abort_kinds: ExceptionKinds = DEFAULT_ABORT_KINDS,
        sleep=time.sleep,
    ):
        """
        Initialize retry controller.

        Args:
            policy: Validated retry policy
            display_name: Base name of the test
            abort_kinds: Exception kinds treated as "attempt skipped"
            sleep: Blocking sleep used when no cancellation token is given
        """
        self.policy = policy
        self.display_name = display_name
        self.abort_kinds = abort_kinds
        self._sleep = sleep

        self.attempts_so_far = 0
        self.failures_so_far = 0
        self.seen_abort = False
        self.seen_unexpected = False
        self.seen_cancellation = False
        self.verdict: Verdict | None = None
        self.cancellation: RetryCancelled | None = None
        self._outstanding: AttemptSlot | None = None

    @property
    def successes_so_far(self) -> int:
        return self.attempts_so_far - self.failures_so_far

    @property
    def is_first_attempt(self) -> bool:
        return self.attempts_so_far == 0

    def has_next_attempt(self) -> bool:
        """Return True if another attempt should run."""
        # there is always at least one attempt
        if self.is_first_attempt:
            return True
        if self.seen_abort or self.seen_unexpected or self.seen_cancellation:
            return False
        return self._quota_reachable(self.failures_so_far)

    def continues_after(self, exception: BaseException | None) -> bool:
        """
        Return True if reporting ``exception`` for the outstanding attempt
        would leave another attempt to run.

        Pure query: lets a host prepare for the next attempt (for example,
        keep shared fixtures alive) before the outcome is reported.
        """
        if self._outstanding is None:
            return False
        outcome = classify(exception, self.policy.on_exceptions, self.abort_kinds)
        if outcome is OutcomeKind.SUCCESS:
            return self._quota_reachable(self.failures_so_far)
        if outcome is OutcomeKind.EXPECTED_FAILURE:
            return self._quota_reachable(self.failures_so_far + 1)
        return False

    def _quota_reachable(self, failures: int) -> bool:
        remaining = self.policy.max_attempts - self.attempts_so_far
        required = self.policy.min_success - (self.attempts_so_far - failures)
        return required > 0 and remaining >= required

    def next_attempt(self, cancel_token: CancellationToken | None = None) -> AttemptSlot:
        """
        Issue the next invocation slot.

        Every attempt after the first is preceded by the policy's suspension.

        Args:
            cancel_token: Optional token that can cut the suspension short

        Returns:
            AttemptSlot for the attempt about to run

        Raises:
            NoMoreAttempts: If has_next_attempt() is false
            RetryStateError: If the previous slot's outcome was never reported
            RetryCancelled: If the suspension was cancelled
            KeyboardInterrupt: Re-raised unchanged if it arrives while suspended
        """
        if self._outstanding is not None:
            raise RetryStateError(
                f"Outcome of attempt #{self._outstanding.index} was not reported before requesting another attempt."
            )
        if not self.has_next_attempt():
            raise NoMoreAttempts(
                f"No more attempts: {self.attempts_so_far} of up to {self.policy.max_attempts} already ran.",
                {"verdict": self.verdict.value if self.verdict else None},
            )

        if not self.is_first_attempt:
            self._suspend(cancel_token)

        self.attempts_so_far += 1
        slot = AttemptSlot(
            index=self.attempts_so_far,
            display_name=format_display_name(self.policy.name, self.attempts_so_far, self.display_name),
        )
        self._outstanding = slot

        logger.debug(
            "Starting attempt",
            test=self.display_name,
            attempt=slot.index,
            max_attempts=self.policy.max_attempts,
            attempt_name=slot.display_name,
        )
        return slot

    def report_outcome(self, exception: BaseException | None = None) -> AttemptSignal:
        """
        Record the outcome of the most recently issued slot.

        Args:
            exception: What the attempt raised, or None if it succeeded

        Returns:
            AttemptSignal the host must surface

        Raises:
            RetryStateError: If no slot is outstanding
        """
        outcome = classify(exception, self.policy.on_exceptions, self.abort_kinds)

        if outcome is OutcomeKind.CANCELLED:
            # no attempt was consumed by a cancelled suspension
            self.seen_cancellation = True
            self.cancellation = exception
            self._outstanding = None
            return self._finish(
                Verdict.CANCELLED,
                AttemptSignal(
                    kind=SignalKind.FAILURE,
                    message=str(exception),
                    error=exception,
                    verdict=Verdict.CANCELLED,
                ),
            )

        if self._outstanding is None:
            raise RetryStateError("No attempt is outstanding; call next_attempt() first.")
        slot = self._outstanding
        self._outstanding = None

        if outcome is OutcomeKind.SUCCESS:
            if self.has_next_attempt():
                return AttemptSignal(
                    kind=SignalKind.SUCCESS,
                    message=self._progress_message(slot, "succeeded"),
                )
            return self._finish(
                Verdict.SUCCESS,
                AttemptSignal(
                    kind=SignalKind.SUCCESS,
                    message=self._progress_message(slot, "succeeded ~> test passes"),
                    verdict=Verdict.SUCCESS,
                ),
            )

        self.failures_so_far += 1

        if outcome is OutcomeKind.ABORTED:
            self.seen_abort = True
            return self._finish(
                Verdict.ABORTED,
                AttemptSignal(
                    kind=SignalKind.SKIP,
                    message=ABORT_MESSAGE,
                    error=exception,
                    verdict=Verdict.ABORTED,
                ),
            )

        if outcome is OutcomeKind.UNEXPECTED_FAILURE:
            self.seen_unexpected = True
            return self._finish(
                Verdict.UNEXPECTED_FAILURE,
                AttemptSignal(
                    kind=SignalKind.FAILURE,
                    message=f"Test execution #{slot.index} raised unexpected {type(exception).__name__}",
                    error=exception,
                    verdict=Verdict.UNEXPECTED_FAILURE,
                ),
            )

        if self.has_next_attempt():
            message = (
                f"Test execution #{slot.index} (of up to {self.policy.max_attempts}) failed "
                f"~> will retry in {self.policy.suspend_for_ms} ms..."
            )
            logger.info(
                "Attempt failed, retrying",
                test=self.display_name,
                attempt=slot.index,
                max_attempts=self.policy.max_attempts,
                error_type=type(exception).__name__,
                suspend_for_ms=self.policy.suspend_for_ms,
            )
            return AttemptSignal(
                kind=SignalKind.SKIP,
                message=message,
                error=exception,
                retrying=True,
            )

        exhausted = RetryExhausted(
            attempts=self.attempts_so_far,
            max_attempts=self.policy.max_attempts,
            min_success=self.policy.min_success,
            successes=self.successes_so_far,
        )
        exhausted.__cause__ = exception
        return self._finish(
            Verdict.EXHAUSTED_FAILURE,
            AttemptSignal(
                kind=SignalKind.FAILURE,
                message=str(exhausted),
                error=exhausted,
                verdict=Verdict.EXHAUSTED_FAILURE,
            ),
        )

    def _suspend(self, cancel_token: CancellationToken | None) -> None:
        seconds = self.policy.suspend_for_ms / 1000
        try:
            if cancel_token is not None:
                cancelled = cancel_token.wait(seconds) if seconds > 0 else cancel_token.cancelled
            else:
                if seconds > 0:
                    self._sleep(seconds)
                cancelled = False
        except KeyboardInterrupt:
            self.report_outcome(RetryCancelled("Interrupted during retry suspension."))
            raise

        if cancelled:
            error = RetryCancelled(
                "Retry suspension was cancelled.",
                {"attempts": self.attempts_so_far, "max_attempts": self.policy.max_attempts},
            )
            self.report_outcome(error)
            raise error

    def _finish(self, verdict: Verdict, signal: AttemptSignal) -> AttemptSignal:
        self.verdict = verdict
        log = logger.warning if verdict in (Verdict.EXHAUSTED_FAILURE, Verdict.CANCELLED) else logger.info
        log(
            "Retry sequence finished",
            test=self.display_name,
            verdict=verdict.value,
            attempts=self.attempts_so_far,
            max_attempts=self.policy.max_attempts,
            min_success=self.policy.min_success,
            successes=self.successes_so_far,
        )
        return signal

    def _progress_message(self, slot: AttemptSlot, what: str) -> str:
        return (
            f"Test execution #{slot.index} (of up to {self.policy.max_attempts} with at least "
            f"{self.policy.min_success} successes) {what}"
        )
