"""Reporter callbacks.

A reporter observes execution: the runner emits events in the order they
occur and the reporter consumes them. Reporters never affect execution;
an exception raised by a reporter callback is logged and discarded.

Per test, the event order is:

    test_started
        step_started, step_finished  (for each executed step)
        cleanup_finished             (for each released entry)
    test_finished

and `suite_finished` closes a suite run.
"""

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pytest_relay.schema import StepInstance, Test

    from .results import CleanupResult, StepResult, SuiteResult, TestResult

logger = logging.getLogger(__name__)

#: Names of all reporter callbacks in emission order.
EVENTS = (
    'test_started',
    'step_started',
    'step_finished',
    'cleanup_finished',
    'test_finished',
    'suite_finished',
)


class BaseReporter:
    """Reporter ignoring every event.

    Subclasses override the callbacks they are interested in.
    """

    def test_started(self, test: 'Test') -> None:
        """Called before a test starts, before its system is built."""

    def step_started(self, test: 'Test', index: int, step: 'StepInstance') -> None:
        """Called before a step instance resolves its inputs."""

    def step_finished(self, test: 'Test', result: 'StepResult') -> None:
        """Called after a step instance finished with any outcome."""

    def cleanup_finished(self, test: 'Test', result: 'CleanupResult') -> None:
        """Called after a cleanup entry was released or failed."""

    def test_finished(self, result: 'TestResult') -> None:
        """Called after the test teardown, system stop included."""

    def suite_finished(self, result: 'SuiteResult') -> None:
        """Called after every test of a suite run finished."""


class LoggingReporter(BaseReporter):
    """Reporter writing events to a standard library logger."""

    def __init__(self, logger_name: str = 'pytest_relay.report') -> None:
        """Initialize a reporter.

        Args:
            logger_name: Name of the logger receiving the events.
        """
        self.logger = logging.getLogger(logger_name)

    def test_started(self, test: 'Test') -> None:
        self.logger.info('Test %r started', test.label)

    def step_started(self, test: 'Test', index: int, step: 'StepInstance') -> None:
        self.logger.debug('Step %d %r started', index + 1, step.label)

    def step_finished(self, test: 'Test', result: 'StepResult') -> None:
        level = logging.INFO if result.outcome == 'pass' else logging.WARNING
        self.logger.log(level, 'Step %d %r: %s', result.index + 1,
                        result.title or result.name, result.outcome)

        if result.error is not None:
            self.logger.debug('%s', result.error.details or result.error.message)

    def cleanup_finished(self, test: 'Test', result: 'CleanupResult') -> None:
        level = logging.DEBUG if result.outcome == 'pass' else logging.WARNING
        self.logger.log(level, 'Cleanup %s %r: %s', result.kind, result.key, result.outcome)

    def test_finished(self, result: 'TestResult') -> None:
        level = logging.INFO if result.passed else logging.WARNING
        self.logger.log(level, 'Test %r: %s in %.3fs%s', result.title or result.name,
                        result.outcome, result.elapsed.total_seconds(),
                        ' (dirty teardown)' if result.dirty_teardown else '')

    def suite_finished(self, result: 'SuiteResult') -> None:
        summary = result.summary()
        self.logger.info(
            'Suite finished: %d total, %d passed, %d failed, %d errors, %d dirty',
            summary['total'], summary['pass'], summary['fail'],
            summary['error'], summary['dirty'],
        )


class RecordingReporter(BaseReporter):
    """Reporter keeping every event in order.

    Events are stored as `(name, payload)` pairs, where the payload is
    the last argument of the callback.
    """

    def __init__(self) -> None:
        """Initialize an empty recording."""
        self.events: list[tuple[str, Any]] = []

    @property
    def names(self) -> list[str]:
        """Recorded event names in emission order."""
        return [name for name, _ in self.events]

    def test_started(self, test: 'Test') -> None:
        self.events.append(('test_started', test))

    def step_started(self, test: 'Test', index: int, step: 'StepInstance') -> None:
        self.events.append(('step_started', step))

    def step_finished(self, test: 'Test', result: 'StepResult') -> None:
        self.events.append(('step_finished', result))

    def cleanup_finished(self, test: 'Test', result: 'CleanupResult') -> None:
        self.events.append(('cleanup_finished', result))

    def test_finished(self, result: 'TestResult') -> None:
        self.events.append(('test_finished', result))

    def suite_finished(self, result: 'SuiteResult') -> None:
        self.events.append(('suite_finished', result))


def emit(reporter: BaseReporter, event: str, *args: Any) -> None:  # noqa: ANN401
    """Deliver an event to a reporter, discarding its failures.

    Args:
        reporter: Event consumer.
        event: Callback name, one of `EVENTS`.
        *args: Callback arguments.
    """
    try:
        getattr(reporter, event)(*args)

    except Exception:
        logger.exception('Reporter %r failed on %s', type(reporter).__name__, event)
