"""Tests for output specifications and output registration."""

import pytest

from pytest_relay.context import Context
from pytest_relay.errors import OutputMismatchError
from pytest_relay.schema import OutputFunction, OutputKey, OutputKeys, register_output
from pytest_relay.schema.outputs import as_output


@pytest.fixture
def context() -> Context:
    """Provide a context with a single key."""
    return Context({'existing': 1})


def test_no_output_keeps_context(context: Context) -> None:
    """Leave the context unchanged without an output specification."""
    assert register_output(None, context, 'ignored') is context


def test_single_key(context: Context) -> None:
    """Bind the whole result under one key."""
    after = register_output(OutputKey(key='user'), context, {'id': 1})

    assert after == {'existing': 1, 'user': {'id': 1}}
    assert context == {'existing': 1}


@pytest.mark.parametrize('value', (
    pytest.param(['alice', 42], id='list'),
    pytest.param(('alice', 42), id='tuple'),
))
def test_sequence_of_keys(value: list | tuple, context: Context) -> None:
    """Bind sequence elements positionally."""
    after = register_output(OutputKeys(keys=('name', 'age')), context, value)

    assert after == {'existing': 1, 'name': 'alice', 'age': 42}


@pytest.mark.parametrize('value', (
    pytest.param(['alice'], id='shorter'),
    pytest.param(['alice', 42, 'extra'], id='longer'),
    pytest.param('ab', id='string'),
    pytest.param(b'ab', id='bytes'),
    pytest.param({'name': 'alice', 'age': 42}, id='mapping'),
    pytest.param(None, id='none'),
))
def test_sequence_of_keys_mismatch(value: object, context: Context) -> None:
    """Reject results that can not be bound without a partial bind."""
    spec = OutputKeys(keys=('name', 'age'))

    with pytest.raises(OutputMismatchError, match='Expected a sequence of 2 values'):
        register_output(spec, context, value)

    assert context == {'existing': 1}


def test_function_overrides_context(context: Context) -> None:
    """Replace the context with the function result."""
    spec = OutputFunction(function=lambda ctx, value: {'only': value})
    after = register_output(spec, context, 'new')

    assert isinstance(after, Context)
    assert after == {'only': 'new'}


def test_function_may_preserve_context(context: Context) -> None:
    """Keep prior keys when the function merges them."""
    spec = OutputFunction(function=lambda ctx, value: {**ctx, 'total': ctx['existing'] + value})

    assert register_output(spec, context, 2) == {'existing': 1, 'total': 3}


def test_function_must_return_mapping(context: Context) -> None:
    """Reject non-mapping function results."""
    spec = OutputFunction(function=lambda ctx, value: [value])

    with pytest.raises(OutputMismatchError, match='must return a mapping'):
        register_output(spec, context, 'new')


def test_function_must_return_string_keys(context: Context) -> None:
    """Reject function results with non-string keys."""
    spec = OutputFunction(function=lambda ctx, value: {**ctx, 1: value})

    with pytest.raises(OutputMismatchError, match='string keys, got 1'):
        register_output(spec, context, 'new')


@pytest.mark.parametrize('value, expected', (
    pytest.param(None, None, id='none'),
    pytest.param('user', OutputKey(key='user'), id='key'),
    pytest.param(['a', 'b'], OutputKeys(keys=('a', 'b')), id='list'),
    pytest.param(('a',), OutputKeys(keys=('a',)), id='tuple'),
    pytest.param(OutputKey(key='x'), OutputKey(key='x'), id='spec'),
))
def test_as_output(value: object, expected: object) -> None:
    """Normalize raw output specifications."""
    assert as_output(value) == expected


def test_as_output_function() -> None:
    """Normalize callables into output functions."""
    spec = as_output(lambda ctx, value: ctx)

    assert isinstance(spec, OutputFunction)


def test_as_output_invalid() -> None:
    """Reject values that can not describe an output."""
    with pytest.raises(ValueError, match='not a valid output specification'):
        as_output(42)
