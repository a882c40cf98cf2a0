"""
pytest plugin: host runtime for the retry controller and the extensions.

Markers:
    @pytest.mark.retrying(3)
    @pytest.mark.retrying(max_attempts=4, min_success=2, suspend_for_ms=50,
                          on_exceptions=(ConnectionError,), name="{displayName} [{index}]")
    @pytest.mark.stopwatch
    @pytest.mark.set_environment_variable("KEY", "value")
    @pytest.mark.clear_environment_variable("KEY")
    @pytest.mark.restore_environment

A retrying test runs its setup, call and teardown phases once per attempt.
Fixtures above function scope are kept between attempts and torn down after
the last one. Each attempt's reports are rewritten according to the
controller's signal: transient failures become skips with status RETRIED,
exhaustion keeps the failed report and appends a "retry summary" section,
unexpected failures and aborts are reported as they happened.

The suspension between attempts waits on the session's CancellationToken
(``config.stash[cancel_token_key]``). Cancelling it, or a KeyboardInterrupt
during the wait, fails the test with a RetryCancelled report and stops the
session.
"""

from typing import Any

import pytest
import structlog
from _pytest.runner import call_and_report, show_test_item

from trialkit.config import Settings
from trialkit.exceptions import RetryCancelled, RetryConfigurationError
from trialkit.extensions.environment import EnvironmentSnapshot, apply_environment_changes
from trialkit.extensions.stopwatch import REPORT_KEY as STOPWATCH_KEY
from trialkit.extensions.stopwatch import Stopwatch, format_entry
from trialkit.logging_config import configure_logging
from trialkit.models.attempt import AttemptSignal, AttemptSlot
from trialkit.models.enums import Verdict
from trialkit.models.marker_options import RetryingOptions
from trialkit.naming import DEFAULT_NAME_TEMPLATE
from trialkit.retry.cancellation import CancellationToken
from trialkit.retry.controller import RetryController
from trialkit.retry.registry import ControllerRegistry

logger = structlog.get_logger(__name__)

RETRY_ATTEMPT_PROPERTY = "retry_attempt"
RETRY_SUMMARY_SECTION = "retry summary"

settings_key = pytest.StashKey[Settings]()
registry_key = pytest.StashKey[ControllerRegistry]()
cancel_token_key = pytest.StashKey[CancellationToken]()
attempt_exception_key = pytest.StashKey[Any]()
config_error_key = pytest.StashKey[RetryConfigurationError]()

MARKERS = (
    f"retrying(value=0, *, max_attempts=0, min_success=1, suspend_for_ms=0, on_exceptions=(), name='{DEFAULT_NAME_TEMPLATE}'): "
    "re-run a flaky test until it succeeds min_success times within max_attempts attempts",
    "stopwatch: publish the test's call duration as a 'stopwatch' report property",
    "set_environment_variable(key, value): set an environment variable for the duration of the test",
    "clear_environment_variable(key): unset an environment variable for the duration of the test",
    "restore_environment: restore all environment variables after the test",
)


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("trialkit", "retrying and isolation extensions")
    group.addoption(
        "--retry-disable",
        action="store_true",
        default=False,
        dest="retry_disable",
        help="run tests marked 'retrying' once, without retries",
    )


def pytest_configure(config: pytest.Config) -> None:
    for marker in MARKERS:
        config.addinivalue_line("markers", marker)

    settings = Settings()
    configure_logging(settings.LOG_LEVEL, settings.ENVIRONMENT)

    config.stash[settings_key] = settings
    config.stash[registry_key] = ControllerRegistry()
    config.stash[cancel_token_key] = CancellationToken()


def _create_controller(item: pytest.Item, marker: pytest.Mark, settings: Settings) -> RetryController:
    options = RetryingOptions.from_marker(marker.args, marker.kwargs)
    policy = options.to_policy(settings)
    logger.debug(
        "Retrying test registered",
        nodeid=item.nodeid,
        max_attempts=policy.max_attempts,
        min_success=policy.min_success,
        suspend_for_ms=policy.suspend_for_ms,
        on_exceptions=[kind.__name__ for kind in policy.on_exceptions],
    )
    return RetryController(policy, display_name=item.name)


@pytest.hookimpl(tryfirst=True)
def pytest_runtest_protocol(item: pytest.Item, nextitem: pytest.Item | None) -> bool | None:
    marker = item.get_closest_marker("retrying")
    if marker is None or item.config.getoption("retry_disable"):
        return None

    settings = item.config.stash[settings_key]
    registry = item.config.stash[registry_key]
    try:
        controller = registry.get_or_create(
            item.nodeid, lambda: _create_controller(item, marker, settings)
        )
    except RetryConfigurationError as e:
        logger.error("Invalid retrying configuration", nodeid=item.nodeid, error=e.message, **e.details)
        # surfaced by pytest_runtest_setup through the default protocol
        item.stash[config_error_key] = e
        return None

    ihook = item.ihook
    ihook.pytest_runtest_logstart(nodeid=item.nodeid, location=item.location)
    try:
        _run_attempts(item, nextitem, controller)
    finally:
        registry.discard(item.nodeid)
    ihook.pytest_runtest_logfinish(nodeid=item.nodeid, location=item.location)
    return True


def _run_attempts(item: pytest.Item, nextitem: pytest.Item | None, controller: RetryController) -> None:
    cancel_token = item.config.stash[cancel_token_key]
    teardown_target = nextitem

    while controller.has_next_attempt():
        try:
            slot = controller.next_attempt(cancel_token)
        except RetryCancelled as e:
            _report_cancelled(item, e)
            item.session.shouldstop = f"{item.nodeid}: {e.message}"
            return
        except KeyboardInterrupt:
            if controller.cancellation is not None:
                _report_cancelled(item, controller.cancellation)
            raise

        item.stash[attempt_exception_key] = None
        reports, teardown_target = _run_phases(item, nextitem, controller)
        signal = controller.report_outcome(item.stash[attempt_exception_key])

        for report in reports:
            _apply_signal(item, report, slot, signal)
            item.ihook.pytest_runtest_logreport(report=report)

    # a failing teardown can end a sequence that was expected to continue
    if teardown_target is not nextitem and not (item.session.shouldfail or item.session.shouldstop):
        _finish_teardown(item, nextitem)


def _run_phases(
    item: pytest.Item, nextitem: pytest.Item | None, controller: RetryController
) -> tuple[list[pytest.TestReport], pytest.Item | pytest.Collector | None]:
    """
    Run setup, call and teardown of one attempt without logging the reports.

    While another attempt will follow, teardown stops at the test itself so
    class, module and session fixtures are shared by all attempts.
    """
    if hasattr(item, "_request") and not item._request:
        item._initrequest()

    reports = [call_and_report(item, "setup", log=False)]
    if reports[0].passed:
        if item.config.getoption("setupshow", False):
            show_test_item(item)
        if not item.config.getoption("setuponly", False):
            reports.append(call_and_report(item, "call", log=False))

    if item.session.shouldfail or item.session.shouldstop:
        teardown_target = None
    elif controller.continues_after(item.stash[attempt_exception_key]):
        teardown_target = item.parent
    else:
        teardown_target = nextitem
    reports.append(call_and_report(item, "teardown", log=False, nextitem=teardown_target))

    if hasattr(item, "_request"):
        item._request = False
        item.funcargs = None
    return reports, teardown_target


def _finish_teardown(item: pytest.Item, nextitem: pytest.Item | None) -> None:
    call = pytest.CallInfo.from_call(
        lambda: item.session._setupstate.teardown_exact(nextitem), when="teardown"
    )
    if call.excinfo is not None:
        report = item.ihook.pytest_runtest_makereport(item=item, call=call)
        item.ihook.pytest_runtest_logreport(report=report)


def _report_cancelled(item: pytest.Item, error: RetryCancelled) -> None:
    """Log the cancelled sequence as a failure of the test."""
    report = pytest.TestReport(
        nodeid=item.nodeid,
        location=item.location,
        keywords={name: 1 for name in item.keywords},
        outcome="failed",
        longrepr=f"{type(error).__name__}: {error.message}",
        when="call",
        user_properties=list(item.user_properties),
    )
    item.ihook.pytest_runtest_logreport(report=report)


def _apply_signal(item: pytest.Item, report: pytest.TestReport, slot: AttemptSlot, signal: AttemptSignal) -> None:
    """Rewrite one phase report of an attempt according to the controller's signal."""
    report.user_properties.append((RETRY_ATTEMPT_PROPERTY, slot.display_name))
    if not report.failed:
        return

    if signal.retrying:
        path, lineno = item.reportinfo()[:2]
        report.outcome = "skipped"
        report.longrepr = (str(path), (lineno or 0) + 1, f"Skipped: {signal.message}")
        report.retried = True
    elif signal.verdict is Verdict.EXHAUSTED_FAILURE:
        report.sections.append((RETRY_SUMMARY_SECTION, signal.message))


@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_makereport(item: pytest.Item, call: pytest.CallInfo):
    yield
    if attempt_exception_key not in item.stash or call.excinfo is None:
        return
    # the first failing phase decides the attempt's outcome
    if item.stash[attempt_exception_key] is None:
        item.stash[attempt_exception_key] = call.excinfo.value


@pytest.hookimpl(tryfirst=True)
def pytest_runtest_setup(item: pytest.Item) -> None:
    error = item.stash.get(config_error_key, None)
    if error is not None:
        raise error


def pytest_report_teststatus(report: pytest.TestReport, config: pytest.Config):
    if getattr(report, "retried", False):
        return "retried", "R", ("RETRIED", {"yellow": True})
    return None


@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_call(item: pytest.Item):
    settings = item.config.stash[settings_key]
    if not settings.STOPWATCH_ENABLED or item.get_closest_marker("stopwatch") is None:
        yield
        return

    stopwatch = Stopwatch()
    stopwatch.start()
    yield
    # one entry per report, even across retry attempts
    item.user_properties[:] = [prop for prop in item.user_properties if prop[0] != STOPWATCH_KEY]
    item.user_properties.append((STOPWATCH_KEY, format_entry(item.name, stopwatch.elapsed_ms())))


def _marker_args(item: pytest.Item, name: str, arity: int) -> list[tuple[str, ...]]:
    """Marker arguments, farthest (class/module) first so the test's own markers win."""
    collected = []
    for marker in reversed(list(item.iter_markers(name))):
        if len(marker.args) != arity or not all(isinstance(arg, str) for arg in marker.args):
            raise ValueError(
                f"{item.nodeid}: @{name} expects {arity} string argument(s), got {marker.args!r}"
            )
        collected.append(marker.args)
    return collected


@pytest.fixture(autouse=True)
def _trialkit_environment(request: pytest.FixtureRequest):
    """Apply environment markers and restore the environment afterwards."""
    item = request.node
    to_set = [(key, value) for key, value in _marker_args(item, "set_environment_variable", 2)]
    to_clear = [key for (key,) in _marker_args(item, "clear_environment_variable", 1)]
    restore = item.get_closest_marker("restore_environment") is not None

    if not (to_set or to_clear or restore):
        yield
        return

    state = EnvironmentSnapshot.snapshot()
    try:
        apply_environment_changes(to_set, to_clear)
        yield
    finally:
        EnvironmentSnapshot.restore(state)
