"""Tests for the step handle passed to step procedures."""

import pytest

from pytest_relay.core import AssertionFailure, CleanupStack, StepHandle


@pytest.fixture
def handle() -> StepHandle:
    """Provide a non-aborting handle."""
    return StepHandle(CleanupStack())


@pytest.mark.parametrize('method, args, passed', (
    pytest.param('check', (1,), True, id='check truthy'),
    pytest.param('check', ([],), False, id='check falsy'),
    pytest.param('is_true', (True,), True, id='is true'),
    pytest.param('is_true', (1,), False, id='is true not bool'),
    pytest.param('equal', (1, 1), True, id='equal'),
    pytest.param('equal', (1, 2), False, id='not equal'),
    pytest.param('not_equal', (1, 2), True, id='differs'),
    pytest.param('not_equal', ('a', 'a'), False, id='same'),
    pytest.param('less_than', (1, 2), True, id='less than'),
    pytest.param('less_or_equal', (2, 2), True, id='less or equal'),
    pytest.param('greater_than', (2, 2), False, id='greater than equal'),
    pytest.param('greater_or_equal', (3, 2), True, id='greater or equal'),
    pytest.param('matches', ('id-42', r'^id-\d+$'), True, id='matches'),
    pytest.param('matches', ('id-x', r'^id-\d+$'), False, id='does not match'),
))
def test_primitives(handle: StepHandle, method: str, args: tuple, passed: bool) -> None:
    """Record one event per primitive call."""
    assert getattr(handle, method)(*args) is passed

    assert len(handle.events) == 1
    assert handle.events[0].passed is passed
    assert handle.failed is not passed


def test_event_shape(handle: StepHandle) -> None:
    """Record expected and actual values with the message."""
    handle.equal({'id': 1, 'name': 'alice'}, {'id': 1}, 'user matches', partial=True)
    handle.less_than(5, 3, 'count is small')

    first, second = handle.events

    assert first.model_dump() == {
        'type': 'pass',
        'expected': {'id': 1},
        'actual': {'id': 1, 'name': 'alice'},
        'message': 'user matches',
    }
    assert second.type == 'fail'
    assert second.expected == 3
    assert second.actual == 5


def test_failures_are_not_fatal(handle: StepHandle) -> None:
    """Keep going after failed assertions by default."""
    assert handle.check(False, 'first') is False
    assert handle.check(True, 'second') is True

    assert [event.type for event in handle.events] == ['fail', 'pass']


def test_abort_on_assertion() -> None:
    """Raise after recording a failed assertion on abort mode."""
    handle = StepHandle(CleanupStack(), abort_on_assertion=True)

    assert handle.check(True) is True

    with pytest.raises(AssertionFailure, match='must be positive') as error:
        handle.greater_than(-1, 0, 'must be positive')

    assert error.value.event is handle.events[-1]
    assert len(handle.events) == 2


def test_register_cleanup() -> None:
    """Push cleanup entries on the stack of the test."""
    stack = CleanupStack()
    handle = StepHandle(stack)

    entry = handle.register('db/row', 42)

    assert entry.kind == 'db/row'
    assert entry.key == 42
    assert list(stack.drain()) == [entry]
