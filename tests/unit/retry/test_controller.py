"""
Unit tests for RetryController.

Tests attempt sequencing, the continuation rule, outcome classification and
the terminal verdicts.
"""

from unittest.mock import Mock

import pytest
from structlog.testing import capture_logs

from trialkit.exceptions import (
    AttemptAborted,
    NoMoreAttempts,
    RetryCancelled,
    RetryExhausted,
    RetryStateError,
)
from trialkit.models.attempt import AttemptSignal
from trialkit.models.enums import SignalKind, Verdict
from trialkit.retry.cancellation import CancellationToken
from trialkit.retry.controller import RetryController
from trialkit.retry.policy import RetryPolicy


def drive(controller: RetryController, outcomes: list[BaseException | None]) -> list[AttemptSignal]:
    """Helper to run attempts with scripted outcomes until the controller stops.

    Outcomes past the last offered attempt are never consumed.
    """
    signals = []
    scripted = iter(outcomes)
    while controller.has_next_attempt():
        controller.next_attempt()
        signals.append(controller.report_outcome(next(scripted)))
    return signals


class FlakyError(Exception):
    pass


class FlakyTimeout(FlakyError):
    pass


# ============================================================================
# Sequencing
# ============================================================================


def test_first_attempt_is_never_refused(create_controller):
    controller = create_controller(max_attempts=2)

    assert controller.attempts_so_far == 0
    assert controller.has_next_attempt() is True


def test_has_next_attempt_is_side_effect_free(create_controller):
    controller = create_controller(max_attempts=3)
    controller.next_attempt()
    controller.report_outcome(FlakyError())

    for _ in range(5):
        assert controller.has_next_attempt() is True
    assert controller.attempts_so_far == 1
    assert controller.failures_so_far == 1


def test_slots_are_numbered_and_named(create_controller):
    controller = create_controller(max_attempts=3, name="{displayName} [{index}]", display_name="test_login")

    first = controller.next_attempt()
    controller.report_outcome(FlakyError())
    second = controller.next_attempt()

    assert (first.index, first.display_name) == (1, "test_login [1]")
    assert (second.index, second.display_name) == (2, "test_login [2]")
    assert first.attempt_id != second.attempt_id


def test_next_attempt_without_report_breaks_protocol(create_controller):
    controller = create_controller(max_attempts=3)
    controller.next_attempt()

    with pytest.raises(RetryStateError, match="was not reported"):
        controller.next_attempt()


def test_report_without_attempt_breaks_protocol(create_controller):
    controller = create_controller(max_attempts=3)

    with pytest.raises(RetryStateError, match="No attempt is outstanding"):
        controller.report_outcome(None)


def test_next_attempt_after_verdict(create_controller):
    controller = create_controller(max_attempts=3)
    drive(controller, [None])

    with pytest.raises(NoMoreAttempts):
        controller.next_attempt()
    assert controller.attempts_so_far == 1


def test_continues_after_matches_reported_outcome(create_controller):
    controller = create_controller(max_attempts=4, min_success=2, on_exceptions=(FlakyError,))
    outcomes = [FlakyError(), None, FlakyError(), None]

    for outcome in outcomes:
        controller.next_attempt()
        predicted = controller.continues_after(outcome)
        controller.report_outcome(outcome)
        assert predicted is controller.has_next_attempt()

    assert controller.verdict is Verdict.SUCCESS


@pytest.mark.parametrize(
    "outcome",
    [TypeError("unexpected"), pytest.skip.Exception("skipped"), RetryCancelled("stop")],
    ids=["unexpected", "abort", "cancelled"],
)
def test_continues_after_terminal_outcomes(create_controller, outcome):
    controller = create_controller(max_attempts=5, on_exceptions=(FlakyError,))
    controller.next_attempt()

    assert controller.continues_after(outcome) is False
    assert controller.continues_after(FlakyError()) is True
    assert controller.attempts_so_far == 1
    assert controller.failures_so_far == 0


def test_continues_after_without_outstanding_attempt(create_controller):
    controller = create_controller(max_attempts=3)

    assert controller.continues_after(None) is False


# ============================================================================
# Success quota
# ============================================================================


@pytest.mark.parametrize("max_attempts,min_success", [(2, 1), (3, 2), (5, 1), (5, 4), (10, 3)])
def test_always_succeeding_stops_after_min_success(create_controller, max_attempts, min_success):
    controller = create_controller(max_attempts=max_attempts, min_success=min_success)

    signals = drive(controller, [None] * max_attempts)

    assert controller.attempts_so_far == min_success
    assert controller.verdict is Verdict.SUCCESS
    assert all(signal.kind is SignalKind.SUCCESS for signal in signals)
    assert signals[-1].verdict is Verdict.SUCCESS
    assert all(signal.verdict is None for signal in signals[:-1])


def test_scenario_failures_then_quota_met_on_last_attempt(create_controller):
    """max=4, min=2: fail, fail, pass, pass -> all four attempts run, success."""
    controller = create_controller(max_attempts=4, min_success=2)

    signals = drive(controller, [FlakyError(), FlakyError(), None, None])

    assert controller.attempts_so_far == 4
    assert controller.successes_so_far == 2
    assert controller.verdict is Verdict.SUCCESS
    assert [s.kind for s in signals] == [SignalKind.SKIP, SignalKind.SKIP, SignalKind.SUCCESS, SignalKind.SUCCESS]


def test_scenario_first_attempt_success(create_controller):
    """max=5, min=1: first attempt passes -> stop after one attempt."""
    controller = create_controller(max_attempts=5, min_success=1)

    drive(controller, [None, None, None, None, None])

    assert controller.attempts_so_far == 1
    assert controller.verdict is Verdict.SUCCESS


# ============================================================================
# Exhaustion
# ============================================================================


@pytest.mark.parametrize("max_attempts", [2, 3, 7])
def test_always_failing_runs_whole_budget(create_controller, max_attempts):
    controller = create_controller(max_attempts=max_attempts)

    signals = drive(controller, [FlakyError()] * (max_attempts + 2))

    assert controller.attempts_so_far == max_attempts
    assert controller.verdict is Verdict.EXHAUSTED_FAILURE
    assert all(signal.retrying for signal in signals[:-1])
    assert signals[-1].kind is SignalKind.FAILURE


def test_scenario_quota_unreachable_stops_early(create_controller):
    """max=3, min=2: two failures leave one attempt for two successes -> stop at 2."""
    controller = create_controller(max_attempts=3, min_success=2)

    signals = drive(controller, [FlakyError(), FlakyError(), None])

    assert controller.attempts_so_far == 2
    assert controller.verdict is Verdict.EXHAUSTED_FAILURE
    assert len(signals) == 2


def test_exhaustion_error_carries_counters_and_cause(create_controller):
    controller = create_controller(max_attempts=3, min_success=2)
    last = FlakyError("second failure")

    signals = drive(controller, [FlakyError("first failure"), None, last])
    error = signals[-1].error

    assert isinstance(error, RetryExhausted)
    assert isinstance(error, AssertionError)
    assert error.__cause__ is last
    assert (error.attempts, error.max_attempts, error.min_success, error.successes) == (3, 3, 2, 1)
    assert "Test execution #3 (of up to 3 with at least 2 successes) failed" in str(error)
    assert "after 1 successful execution(s)" in str(error)


def test_transient_failure_message(create_controller):
    controller = create_controller(max_attempts=4, suspend_for_ms=150)
    cause = FlakyError()

    signal = drive(controller, [cause, None])[0]

    assert signal.kind is SignalKind.SKIP
    assert signal.retrying is True
    assert signal.error is cause
    assert signal.message == "Test execution #1 (of up to 4) failed ~> will retry in 150 ms..."


def test_counters_stay_within_budget(create_controller):
    controller = create_controller(max_attempts=6, min_success=3)
    outcomes = [FlakyError(), None, FlakyError(), None, FlakyError(), None, None]

    previous = 0
    while controller.has_next_attempt():
        controller.next_attempt()
        assert controller.attempts_so_far >= previous
        assert controller.attempts_so_far <= controller.policy.max_attempts
        previous = controller.attempts_so_far
        controller.report_outcome(outcomes[previous - 1])

    assert controller.attempts_so_far == 6
    assert controller.verdict is Verdict.SUCCESS


# ============================================================================
# Unexpected exceptions and aborts
# ============================================================================


def test_unexpected_exception_ends_sequence_immediately(create_controller):
    controller = create_controller(max_attempts=5, on_exceptions=(FlakyError,))
    unexpected = TypeError("not a flaky failure")

    signals = drive(controller, [FlakyError(), unexpected, None])

    assert controller.attempts_so_far == 2
    assert controller.verdict is Verdict.UNEXPECTED_FAILURE
    assert signals[-1].kind is SignalKind.FAILURE
    assert signals[-1].error is unexpected


def test_subclass_of_expected_kind_is_retried(create_controller):
    controller = create_controller(max_attempts=3, on_exceptions=(FlakyError,))

    signal = drive(controller, [FlakyTimeout(), None])[0]

    assert signal.retrying is True
    assert controller.verdict is Verdict.SUCCESS


def test_empty_kind_set_retries_everything(create_controller):
    controller = create_controller(max_attempts=3)

    signals = drive(controller, [KeyError(), TypeError(), None])

    assert [s.retrying for s in signals] == [True, True, False]
    assert controller.verdict is Verdict.SUCCESS


def test_abort_ends_sequence_as_skip(create_controller):
    controller = create_controller(max_attempts=5)
    skipped = pytest.skip.Exception("precondition not met")

    signals = drive(controller, [FlakyError(), skipped, None])

    assert controller.attempts_so_far == 2
    assert controller.verdict is Verdict.ABORTED
    assert signals[-1].kind is SignalKind.SKIP
    assert signals[-1].retrying is False
    assert signals[-1].message == "Test execution was skipped, possibly because of a failed assumption."


def test_abort_wins_over_expected_kinds(create_controller):
    controller = create_controller(max_attempts=5, on_exceptions=(AttemptAborted,))

    drive(controller, [AttemptAborted("skip me")])

    assert controller.verdict is Verdict.ABORTED
    assert controller.has_next_attempt() is False


# ============================================================================
# Suspension and cancellation
# ============================================================================


def test_suspension_only_between_attempts():
    sleep = Mock()
    controller = RetryController(RetryPolicy(max_attempts=3, suspend_for_ms=40), sleep=sleep)

    controller.next_attempt()
    sleep.assert_not_called()
    controller.report_outcome(FlakyError())

    controller.next_attempt()
    sleep.assert_called_once_with(0.04)
    controller.report_outcome(FlakyError())

    controller.next_attempt()
    assert sleep.call_count == 2


def test_zero_suspension_does_not_sleep(create_controller):
    sleep = Mock()
    controller = create_controller(max_attempts=3, sleep=sleep)

    drive(controller, [FlakyError(), FlakyError(), FlakyError()])

    sleep.assert_not_called()


def test_cancelled_suspension_is_fatal_and_consumes_no_attempt(create_controller):
    token = CancellationToken()
    controller = create_controller(max_attempts=3, suspend_for_ms=10_000)
    controller.next_attempt()
    controller.report_outcome(FlakyError())
    token.cancel()

    with pytest.raises(RetryCancelled) as exc_info:
        controller.next_attempt(token)

    assert controller.attempts_so_far == 1
    assert controller.verdict is Verdict.CANCELLED
    assert controller.cancellation is exc_info.value
    assert controller.has_next_attempt() is False


def test_first_attempt_ignores_cancelled_token(create_controller):
    token = CancellationToken()
    token.cancel()
    controller = create_controller(max_attempts=3)

    slot = controller.next_attempt(token)

    assert slot.index == 1


def test_keyboard_interrupt_during_suspension_is_reraised(create_controller):
    sleep = Mock(side_effect=KeyboardInterrupt)
    controller = create_controller(max_attempts=3, suspend_for_ms=50, sleep=sleep)
    controller.next_attempt()
    controller.report_outcome(FlakyError())

    with pytest.raises(KeyboardInterrupt):
        controller.next_attempt()

    assert controller.attempts_so_far == 1
    assert controller.verdict is Verdict.CANCELLED
    assert "Interrupted" in controller.cancellation.message
    assert controller.has_next_attempt() is False


# ============================================================================
# Signals and logging
# ============================================================================


def test_raise_for_signal(create_controller):
    controller = create_controller(max_attempts=2)
    cause = FlakyError()

    transient, final = drive(controller, [cause, FlakyError()])

    with pytest.raises(AttemptAborted, match="will retry") as exc_info:
        transient.raise_for_signal()
    assert exc_info.value.__cause__ is cause
    with pytest.raises(RetryExhausted):
        final.raise_for_signal()


def test_retry_log_fields_are_top_level(create_controller):
    controller = create_controller(max_attempts=3, suspend_for_ms=25, display_name="test_search")

    with capture_logs() as logs:
        drive(controller, [FlakyError(), None])

    retrying = [entry for entry in logs if entry["event"] == "Attempt failed, retrying"]
    assert len(retrying) == 1
    assert "extra" not in retrying[0]
    assert retrying[0]["test"] == "test_search"
    assert retrying[0]["attempt"] == 1
    assert retrying[0]["error_type"] == "FlakyError"
    assert retrying[0]["suspend_for_ms"] == 25


def test_verdict_is_logged(create_controller):
    controller = create_controller(max_attempts=2, display_name="test_payment")

    with capture_logs() as logs:
        drive(controller, [FlakyError(), FlakyError()])

    finished = [entry for entry in logs if entry["event"] == "Retry sequence finished"]
    assert len(finished) == 1
    assert finished[0]["log_level"] == "warning"
    assert finished[0]["verdict"] == "exhausted_failure"
    assert finished[0]["test"] == "test_payment"
    assert finished[0]["attempts"] == 2
