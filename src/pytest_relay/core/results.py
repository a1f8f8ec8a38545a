"""Immutable report records.

Step results roll into test results, and test results roll into the
suite result. Records are plain Pydantic models so that reporters can
dump them with `model_dump` without knowing the engine internals.
"""

from datetime import UTC, datetime, timedelta
from enum import StrEnum
from time import perf_counter
from traceback import format_exception
from typing import TYPE_CHECKING, Any, Literal, Self

from pydantic import Field

from pytest_relay.errors import RelayError
from pytest_relay.models import SchemaModel
from pytest_relay.values import RuntimeValue

if TYPE_CHECKING:
    from collections.abc import Iterable


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(UTC)


def elapsed_since(started: float) -> timedelta:
    """Return the time passed since a `perf_counter` reading."""
    return timedelta(seconds=perf_counter() - started)


class Outcome(StrEnum):
    """Classification of a step, a test, or a cleanup entry."""

    PASS = 'pass'
    FAIL = 'fail'
    ERROR = 'error'

    @classmethod
    def worst(cls, outcomes: 'Iterable[Outcome]') -> 'Outcome':
        """Return the most severe outcome, `PASS` for none."""
        severity = (cls.PASS, cls.FAIL, cls.ERROR)

        return max(outcomes, key=severity.index, default=cls.PASS)


class ErrorInfo(SchemaModel):
    """Captured exception."""

    type: str
    message: str
    details: str | None = None
    traceback: str | None = None

    @classmethod
    def from_exception(cls, error: BaseException, *,
                       details: str | None = None) -> Self:
        """Capture an exception with its traceback.

        Args:
            error: Exception to capture.
            details: Optional formatted description of where it happened.

        Returns:
            Error record.
        """
        message = error.message if isinstance(error, RelayError) else str(error)

        return cls(
            type=type(error).__name__,
            message=message or repr(error),
            details=details,
            traceback=''.join(format_exception(error)),
        )


class AssertionEvent(SchemaModel):
    """Single assertion recorded inside a step procedure."""

    type: Literal['pass', 'fail']
    expected: RuntimeValue = None
    actual: RuntimeValue = None
    message: str | None = None

    @property
    def passed(self) -> bool:
        """Whether the assertion held."""
        return self.type == 'pass'


class CleanupResult(SchemaModel):
    """Outcome of releasing one cleanup entry."""

    kind: str
    key: RuntimeValue
    outcome: Outcome
    error: ErrorInfo | None = None
    elapsed: timedelta = Field(default_factory=timedelta)


class StepResult(SchemaModel):
    """Outcome of a single step instance."""

    index: int
    name: str
    title: str | None = None
    outcome: Outcome
    events: tuple[AssertionEvent, ...] = ()
    inputs: dict[str, RuntimeValue] = Field(default_factory=dict)
    value: RuntimeValue = None
    error: ErrorInfo | None = None
    started_at: datetime
    elapsed: timedelta

    @property
    def failures(self) -> tuple[AssertionEvent, ...]:
        """Failed assertion events."""
        return tuple(event for event in self.events if not event.passed)


class TestResult(SchemaModel):
    """Outcome of a single test execution."""

    __test__ = False

    name: str
    title: str | None = None
    outcome: Outcome
    steps: tuple[StepResult, ...] = ()
    cleanups: tuple[CleanupResult, ...] = ()
    context: dict[str, RuntimeValue] = Field(default_factory=dict)
    error: ErrorInfo | None = None
    stop_error: ErrorInfo | None = None
    started_at: datetime
    finished_at: datetime
    elapsed: timedelta

    @property
    def passed(self) -> bool:
        """Whether the test passed."""
        return self.outcome is Outcome.PASS

    @property
    def dirty_teardown(self) -> bool:
        """Whether a cleanup handler or the system stop failed."""
        return self.stop_error is not None or any(
            cleanup.outcome is not Outcome.PASS
            for cleanup in self.cleanups
        )

    @property
    def failed_step(self) -> StepResult | None:
        """The step that short-circuited the test, if any."""
        for result in self.steps:
            if result.outcome is not Outcome.PASS:
                return result

        return None


class SuiteResult(SchemaModel):
    """Aggregated outcome of a suite run."""

    tests: tuple[TestResult, ...] = ()
    started_at: datetime
    finished_at: datetime
    elapsed: timedelta

    @property
    def passed(self) -> bool:
        """Whether every test passed."""
        return all(result.passed for result in self.tests)

    def count(self, outcome: Outcome) -> int:
        """Count tests with the given outcome."""
        return sum(1 for result in self.tests if result.outcome is outcome)

    def summary(self) -> dict[str, Any]:
        """Return the suite tally."""
        return {
            'total': len(self.tests),
            'pass': self.count(Outcome.PASS),
            'fail': self.count(Outcome.FAIL),
            'error': self.count(Outcome.ERROR),
            'dirty': sum(1 for result in self.tests if result.dirty_teardown),
            'passed': self.passed,
        }
