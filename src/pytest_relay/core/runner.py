"""Test execution engine.

This module sequences step execution within a test and test execution
within a suite:

- step inputs are resolved against the context and the system;
- the procedure runs with a step handle collecting assertion events;
- the result is folded into the context by the output specification;
- the first step that does not pass short-circuits the test;
- cleanup obligations are released in reverse order on every exit path;
- in a suite, every test runs against a freshly built system that is
  stopped after the test teardown.

Failures are caught at the step boundary and converted to report data.
The runner raises only for suite-level misconfiguration.
"""

import logging
from time import perf_counter
from typing import TYPE_CHECKING

from pytest_relay.context import Context
from pytest_relay.errors import LifecycleError, RelayConfigError, RelayRuntimeError
from pytest_relay.schema import Test
from pytest_relay.schema.inputs import resolve_inputs
from pytest_relay.schema.outputs import register_output
from pytest_relay.settings import RunnerSettings

from .assertions import AssertionFailure, StepHandle
from .cleanup import CleanupRegistry, CleanupStack
from .reporter import BaseReporter, emit
from .results import (
    AssertionEvent,
    ErrorInfo,
    Outcome,
    StepResult,
    SuiteResult,
    TestResult,
    elapsed_since,
    utc_now,
)
from .system import SystemLifecycle

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from pytest_relay.schema import StepInstance
    from pytest_relay.values import RuntimeValue

    from .results import CleanupResult
    from .system import SystemConstructor

logger = logging.getLogger(__name__)


class Runner:
    """Executes tests and suites.

    A runner holds the execution policy shared by every test it runs:
    the cleanup handler registry, the reporter, and the settings. It
    keeps no per-test state, so one runner may execute any number of
    tests and suites.
    """

    def __init__(self, cleanups: CleanupRegistry | None = None,
                 reporter: BaseReporter | None = None,
                 settings: RunnerSettings | None = None) -> None:
        """Initialize a runner.

        Args:
            cleanups: Cleanup handler registry. By default a registry
                populated from installed cleanup plugins is created.
            reporter: Event consumer. Defaults to a no-op reporter.
            settings: Execution policy. Defaults to the settings
                resolved from the environment.

        Raises:
            PluginError: If plugin loading fails on strict mode.
        """
        self.settings = settings or RunnerSettings()

        if cleanups is None:
            cleanups = CleanupRegistry(strict=self.settings.strict_plugins)
            if self.settings.load_plugins:
                cleanups.load_plugins(self.settings.plugin_group)

        self.cleanups = cleanups
        self.reporter = reporter or BaseReporter()

    def run_test(self, system: 'RuntimeValue', test: Test,
                 context: 'Mapping[str, RuntimeValue] | None' = None) -> TestResult:
        """Run a single test against an available system.

        The system lifecycle is not managed: the system is neither
        started nor stopped.

        Args:
            system: System under test, or any value supporting item access.
            test: Test to run.
            context: Initial execution context.

        Returns:
            Full test result.

        Raises:
            RelayConfigError: If `test` is not a test definition, or the
                initial context has non-string keys.
        """
        if not isinstance(test, Test):
            raise RelayConfigError(f'Expected a test definition, got {type(test).__name__}')

        invalid = [key for key in context or {} if not isinstance(key, str)]
        if invalid:
            raise RelayConfigError(f'Context keys must be strings, got {invalid[0]!r}')

        emit(self.reporter, 'test_started', test)
        result = self._execute(system, test, context)
        emit(self.reporter, 'test_finished', result)

        return result

    def run_suite(self, constructor: 'SystemConstructor', tests: 'Iterable[Test]',
                  config: 'RuntimeValue' = None) -> SuiteResult:
        """Run tests in order, each against a freshly built system.

        One test's failure never prevents the following tests from
        running.

        Args:
            constructor: Callable building a system from the configuration.
            tests: Tests to run, in execution order.
            config: Opaque configuration value passed to the constructor.

        Returns:
            Suite result with one test result per test, in supplied order.

        Raises:
            RelayConfigError: If the constructor is absent or not callable,
                or an element of `tests` is not a test definition.
        """
        if constructor is None or not callable(constructor):
            raise RelayConfigError('System constructor is absent or not callable')

        tests = tuple(tests)
        for position, test in enumerate(tests):
            if not isinstance(test, Test):
                raise RelayConfigError(
                    f'Expected a test definition at position {position}, '
                    f'got {type(test).__name__}',
                )

        logger.info('Running %d test(s)', len(tests))

        started_at = utc_now()
        started = perf_counter()

        results = tuple(
            self._run_managed(constructor, test, config)
            for test in tests
        )

        suite = SuiteResult(
            tests=results,
            started_at=started_at,
            finished_at=utc_now(),
            elapsed=elapsed_since(started),
        )
        emit(self.reporter, 'suite_finished', suite)

        return suite

    def run_tests(self, constructor: 'SystemConstructor', tests: 'Iterable[Test]',
                  config: 'RuntimeValue' = None) -> bool:
        """Run a suite and return whether every test passed."""
        return self.run_suite(constructor, tests, config).passed

    def _run_managed(self, constructor: 'SystemConstructor', test: Test,
                     config: 'RuntimeValue') -> TestResult:
        """Run a test inside the lifecycle of a fresh system."""
        emit(self.reporter, 'test_started', test)

        started_at = utc_now()
        started = perf_counter()

        lifecycle = SystemLifecycle(constructor, config)
        try:
            with lifecycle as system:
                result = self._execute(system, test)

        except LifecycleError as base:
            result = TestResult(
                name=test.name,
                title=test.title,
                outcome=Outcome.ERROR,
                error=ErrorInfo.from_exception(base, details=base.message),
                started_at=started_at,
                finished_at=utc_now(),
                elapsed=elapsed_since(started),
            )

        else:
            stop_error = None
            if lifecycle.stop_error is not None:
                stop_error = ErrorInfo.from_exception(lifecycle.stop_error)

            result = result.model_copy(update={
                'stop_error': stop_error,
                'started_at': started_at,
                'finished_at': utc_now(),
                'elapsed': elapsed_since(started),
            })

        emit(self.reporter, 'test_finished', result)

        return result

    def _execute(self, system: 'RuntimeValue', test: Test,
                 context: 'Mapping[str, RuntimeValue] | None' = None) -> TestResult:
        """Run the steps of a test, then its cleanup teardown."""
        started_at = utc_now()
        started = perf_counter()

        stack = CleanupStack()
        state = Context(context or {})
        steps: list[StepResult] = []

        try:
            for index, instance in enumerate(test.steps):
                result, state = self._run_step(system, test, index, instance, state, stack)
                steps.append(result)

                if result.outcome is not Outcome.PASS:
                    logger.debug(
                        'Test %r stopped at step %d with outcome %s',
                        test.name, index + 1, result.outcome,
                    )
                    break

        finally:
            cleanups = self._teardown(system, test, stack)

        outcome = Outcome.worst(step.outcome for step in steps)
        failed = next((step for step in steps if step.outcome is outcome), None)

        return TestResult(
            name=test.name,
            title=test.title,
            outcome=outcome,
            steps=tuple(steps),
            cleanups=cleanups,
            context=state.snapshot(),
            error=failed.error if failed is not None else None,
            started_at=started_at,
            finished_at=utc_now(),
            elapsed=elapsed_since(started),
        )

    def _run_step(self, system: 'RuntimeValue', test: Test, index: int,  # noqa: PLR0913
                  instance: 'StepInstance', context: Context,
                  stack: CleanupStack) -> tuple[StepResult, Context]:
        """Run a single step instance.

        Returns:
            The step result and the next context. The context is
            unchanged unless the procedure returned normally.
        """
        emit(self.reporter, 'step_started', test, index, instance)

        handle = StepHandle(stack, abort_on_assertion=self.settings.abort_on_assertion)
        started_at = utc_now()
        started = perf_counter()

        inputs: dict[str, RuntimeValue] = {}
        value = None
        error = None

        try:
            inputs = resolve_inputs(instance.inputs, context, system)
            value = instance.procedure(inputs, handle)
            context = register_output(instance.output, context, value)

        except AssertionFailure:
            pass

        except AssertionError as base:
            handle.events.append(AssertionEvent(
                type='fail',
                message=str(base) or 'Assertion failed',
            ))

        except Exception as base:
            logger.debug('Step %r of test %r raised %r', instance.name, test.name, base)
            error = ErrorInfo.from_exception(
                base,
                details=self._describe_error(base, test, index, instance, context),
            )

        outcome = Outcome.PASS
        if error is not None:
            outcome = Outcome.ERROR
        elif handle.failed:
            outcome = Outcome.FAIL

        result = StepResult(
            index=index,
            name=instance.name,
            title=instance.title,
            outcome=outcome,
            events=tuple(handle.events),
            inputs=inputs,
            value=value,
            error=error,
            started_at=started_at,
            elapsed=elapsed_since(started),
        )
        emit(self.reporter, 'step_finished', test, result)

        return result, context

    def _teardown(self, system: 'RuntimeValue', test: Test,
                  stack: CleanupStack) -> tuple['CleanupResult', ...]:
        """Release every registered cleanup entry in reverse order."""
        results = []

        for entry in stack.drain():
            result = self.cleanups.release(entry, system)
            results.append(result)
            emit(self.reporter, 'cleanup_finished', test, result)

        return tuple(results)

    @staticmethod
    def _describe_error(error: Exception, test: Test, index: int,  # noqa: PLR0913
                        instance: 'StepInstance', context: Context) -> str:
        """Format where a step error happened.

        Falls back to the bare error representation when the description
        itself can not be rendered.
        """
        message = error.message if isinstance(error, RelayRuntimeError) else repr(error)
        element = {
            'step': instance.name,
            'title': instance.title,
            'inputs': dict(instance.inputs),
        }

        described = RelayRuntimeError.from_element(
            {key: value for key, value in element.items() if value},
            message=message,
            context=dict(context),
            location=instance.location,
            test_name=test.name,
            step_num=index,
        )

        try:
            return str(described)

        except Exception:
            logger.warning(
                'Failed to describe error of step %r in test %r',
                instance.name, test.name, exc_info=True,
            )
            return message


def run_test(system: 'RuntimeValue', test: Test,
             context: 'Mapping[str, RuntimeValue] | None' = None, *,
             reporter: BaseReporter | None = None,
             settings: RunnerSettings | None = None) -> TestResult:
    """Run a single test with a default runner.

    See `Runner.run_test`.
    """
    return Runner(reporter=reporter, settings=settings).run_test(system, test, context)


def run_tests(constructor: 'SystemConstructor', tests: 'Iterable[Test]',
              config: 'RuntimeValue' = None, *,
              reporter: BaseReporter | None = None,
              settings: RunnerSettings | None = None) -> bool:
    """Run a suite with a default runner and return whether it passed.

    See `Runner.run_suite`.
    """
    return Runner(reporter=reporter, settings=settings).run_tests(constructor, tests, config)
