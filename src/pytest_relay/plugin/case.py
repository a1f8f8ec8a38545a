"""Pytest items executing test definitions.

Module-level test definitions found in collected Python modules are
wrapped into `TestCase` items. Each item runs its test through the
engine runner, either against a fresh system built by the module's
`relay_system` constructor, or against an empty component map when the
module declares none.
"""

from typing import TYPE_CHECKING

import pytest

from pytest_relay.core import Runner, SystemMap
from pytest_relay.errors import ErrorContext, ErrorFormatter

if TYPE_CHECKING:
    from typing import Any

if TYPE_CHECKING:
    from _pytest._code.code import ExceptionInfo, TerminalRepr

if TYPE_CHECKING:
    from pytest_relay.core import TestResult
    from pytest_relay.schema import Test

#: Module attribute holding the system constructor.
SYSTEM_ATTR = 'relay_system'
#: Module attribute holding the configuration passed to the constructor.
CONFIG_ATTR = 'relay_config'


class RelayTestFailure(Exception):
    """Raised by an item whose test did not pass."""

    def __init__(self, result: 'TestResult') -> None:
        """Initialize the failure.

        Args:
            result: Result of the failed test.
        """
        self.result = result

        super().__init__(f'Test {result.name!r} finished with outcome {result.outcome}')


class TestCase(pytest.Item):
    """Pytest item executing a single test definition."""

    __test__ = False

    def __init__(self, *, test: 'Test', **kwargs: 'Any') -> None:
        """Initialize a pytest item backed by a test definition.

        Args:
            test: Test definition to run.
            **kwargs: Keyword pytest.Item arguments.
        """
        super().__init__(**kwargs)

        self.test = test
        self.result: TestResult | None = None

    def runtest(self) -> None:
        """Run the test definition.

        Raises:
            RelayTestFailure: If the test outcome is not `pass`.
        """
        module = self.getparent(pytest.Module)
        constructor = getattr(module.obj, SYSTEM_ATTR, None) if module else None

        runner = Runner(
            cleanups=self.config.relay_cleanups,  # type: ignore[attr-defined]
            settings=self.config.relay_settings,  # type: ignore[attr-defined]
        )

        if constructor is None:
            self.result = runner.run_test(SystemMap(), self.test)
        else:
            config = getattr(module.obj, CONFIG_ATTR, None)
            suite = runner.run_suite(constructor, (self.test,), config)
            self.result = suite.tests[0]

        if not self.result.passed:
            raise RelayTestFailure(self.result)

    def repr_failure(self, excinfo: 'ExceptionInfo[BaseException]',
                     style: 'Any' = None) -> 'str | TerminalRepr':
        """Describe a failed test with its failed step and assertions."""
        if isinstance(excinfo.value, RelayTestFailure):
            return describe_result(excinfo.value.result)

        return super().repr_failure(excinfo, style=style)

    def reportinfo(self) -> tuple['Any', int | None, str]:
        """Location of the test definition."""
        line_num = None
        if self.test.location is not None:
            line_num = self.test.location.line_num

        return self.path, line_num, f'relay test: {self.test.label}'


def describe_result(result: 'TestResult') -> str:
    """Format a test result for the pytest failure report."""
    lines = [f'Test {result.name!r} finished with outcome {result.outcome}']

    if (step := result.failed_step) is not None:
        lines.append(f'  step {step.index + 1} {step.title or step.name!r}: {step.outcome}')
        for event in step.failures:
            lines.append(f'    assertion failed: {event.message or "no message"}')
            lines.append(ErrorFormatter.get_snippet_string(
                ErrorContext(element={'expected': event.expected, 'actual': event.actual}),
                indent=6,
            ).rstrip())

    if result.error is not None:
        lines.append(result.error.details or result.error.message)
        if result.error.traceback:
            lines.append(result.error.traceback)

    for cleanup in result.cleanups:
        if cleanup.error is not None:
            lines.append(f'  cleanup {cleanup.kind} {cleanup.key!r}: {cleanup.error.message}')

    if result.stop_error is not None:
        lines.append(f'  system stop: {result.stop_error.message}')

    return '\n'.join(lines)
