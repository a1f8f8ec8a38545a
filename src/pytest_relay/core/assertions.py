"""Step handle passed to every step procedure.

The handle is the only collaborator a procedure receives besides its
resolved inputs. It records assertion events and registers cleanup
obligations on the stack of the running test.
"""

from typing import TYPE_CHECKING

from pytest_relay.builtins.checkers import compare, exact_match, partial_match, regex_match

from .results import AssertionEvent

if TYPE_CHECKING:
    from pytest_relay.values import RuntimeValue

    from .cleanup import CleanupEntry, CleanupStack


class AssertionFailure(AssertionError):  # noqa: N818
    """Raised by a failed assertion primitive when aborting is enabled.

    The event is recorded before the exception is raised, so the runner
    does not record it a second time.
    """

    def __init__(self, event: AssertionEvent) -> None:
        """Initialize the failure.

        Args:
            event: The recorded failing event.
        """
        self.event = event

        super().__init__(event.message or 'Assertion failed')


class StepHandle:
    """Assertion and cleanup collaborator of one step execution.

    Every assertion primitive records an event and returns whether the
    assertion held. A failed assertion does not interrupt the procedure
    unless the handle was created with `abort_on_assertion`.
    """

    def __init__(self, cleanups: 'CleanupStack', *,
                 abort_on_assertion: bool = False) -> None:
        """Initialize a handle.

        Args:
            cleanups: Cleanup stack of the running test.
            abort_on_assertion: Whether a failed assertion raises
                `AssertionFailure`.
        """
        self.cleanups = cleanups
        self.abort_on_assertion = abort_on_assertion
        self.events: list[AssertionEvent] = []

    @property
    def failed(self) -> bool:
        """Whether any recorded assertion failed."""
        return any(not event.passed for event in self.events)

    def register(self, kind: str, key: 'RuntimeValue') -> 'CleanupEntry':
        """Register a cleanup obligation for a created resource.

        Args:
            kind: Resource kind selecting the cleanup handler.
            key: Resource key passed to the handler.

        Returns:
            The registered entry.
        """
        return self.cleanups.push(kind, key)

    def record(self, passed: bool, *, expected: 'RuntimeValue' = None,
               actual: 'RuntimeValue' = None, message: str | None = None) -> bool:
        """Record an assertion event.

        Args:
            passed: Whether the assertion held.
            expected: Expected value.
            actual: Actual value.
            message: Description of the assertion.

        Returns:
            The `passed` flag.

        Raises:
            AssertionFailure: If the assertion failed on abort mode.
        """
        event = AssertionEvent(
            type='pass' if passed else 'fail',
            expected=expected,
            actual=actual,
            message=message,
        )
        self.events.append(event)

        if not passed and self.abort_on_assertion:
            raise AssertionFailure(event)

        return passed

    def check(self, condition: 'RuntimeValue', message: str | None = None) -> bool:
        """Assert that a condition is truthy."""
        return self.record(bool(condition), expected=True, actual=condition, message=message)

    def is_true(self, actual: 'RuntimeValue', message: str | None = None) -> bool:
        """Assert that a value is exactly `True`."""
        return self.record(actual is True, expected=True, actual=actual, message=message)

    def equal(self, actual: 'RuntimeValue', expected: 'RuntimeValue',
              message: str | None = None, *, partial: bool = False) -> bool:
        """Assert that a value matches the expected one.

        Args:
            actual: Actual value.
            expected: Expected value.
            message: Description of the assertion.
            partial: Whether the actual value may contain more than expected.

        Returns:
            Whether the assertion held.
        """
        check = partial_match if partial else exact_match

        return self.record(
            check(actual, expected),
            expected=expected,
            actual=actual,
            message=message,
        )

    def not_equal(self, actual: 'RuntimeValue', expected: 'RuntimeValue',
                  message: str | None = None, *, partial: bool = False) -> bool:
        """Assert that a value does not match the given one."""
        check = partial_match if partial else exact_match

        return self.record(
            not check(actual, expected),
            expected=expected,
            actual=actual,
            message=message,
        )

    def less_than(self, actual: 'RuntimeValue', bound: 'RuntimeValue',
                  message: str | None = None) -> bool:
        """Assert `actual < bound`."""
        return self.record(compare(actual, bound), expected=bound,
                           actual=actual, message=message)

    def less_or_equal(self, actual: 'RuntimeValue', bound: 'RuntimeValue',
                      message: str | None = None) -> bool:
        """Assert `actual <= bound`."""
        return self.record(compare(actual, bound, inclusive=True), expected=bound,
                           actual=actual, message=message)

    def greater_than(self, actual: 'RuntimeValue', bound: 'RuntimeValue',
                     message: str | None = None) -> bool:
        """Assert `actual > bound`."""
        return self.record(compare(actual, bound, swap=True), expected=bound,
                           actual=actual, message=message)

    def greater_or_equal(self, actual: 'RuntimeValue', bound: 'RuntimeValue',
                         message: str | None = None) -> bool:
        """Assert `actual >= bound`."""
        return self.record(compare(actual, bound, swap=True, inclusive=True),
                           expected=bound, actual=actual, message=message)

    def matches(self, actual: 'RuntimeValue', pattern: str,
                message: str | None = None, *,
                ignore_case: bool = False, multiline: bool = False) -> bool:
        """Assert that a string contains a match of a regular expression."""
        return self.record(
            regex_match(actual, pattern, ignore_case=ignore_case, multiline=multiline),
            expected=pattern,
            actual=actual,
            message=message,
        )
