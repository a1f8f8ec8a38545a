"""Tests for error formatting."""

import pytest

from pytest_relay.errors import (
    DefinitionError,
    ErrorContext,
    ErrorFormatter,
    MissingComponentError,
    RelayRuntimeError,
)
from pytest_relay.models import SourceLocation
from pytest_relay.schema import define_test


def test_format_without_context() -> None:
    """Keep messages without context as is."""
    assert ErrorFormatter.format('Plain message') == 'Plain message'
    assert str(MissingComponentError('db')) == "Missing component 'db'"


@pytest.mark.parametrize('context, expected', (
    pytest.param({}, 'in "<unknown source>"', id='unknown source'),
    pytest.param(
        {'filename': 'suite.py', 'line_num': 9},
        'in "suite.py", line 10',
        id='file and line',
    ),
    pytest.param(
        {'test_name': 'users', 'step_num': 0},
        "on test 'users', step 1",
        id='test and step',
    ),
    pytest.param({'step_num': 2}, 'on step 3', id='step only'),
))
def test_location_string(context: ErrorContext, expected: str) -> None:
    """Describe where an error happened."""
    assert expected in ErrorFormatter.get_location_string(context)


def test_runtime_error_snippet() -> None:
    """Render the failing element and hide runtime objects."""
    error = RelayRuntimeError.from_element(
        {'step': 'users.create', 'inputs': {'client': object(), 'name': 'alice'}},
        message='connection refused',
        context={'token': 'secret'},
        location=SourceLocation(filename='suite.py', line_num=9),
        test_name='users',
        step_num=0,
    )

    text = str(error)

    assert text.startswith('Runtime error')
    assert 'connection refused' in text
    assert 'in "suite.py", line 10' in text
    assert "on test 'users', step 1" in text
    assert 'step: users.create' in text
    assert 'client: <runtime object>' in text
    assert 'name: alice' in text
    assert 'token: secret' in text


def test_snippet_without_element() -> None:
    """Render no snippet without an element."""
    assert ErrorFormatter.get_snippet_string(ErrorContext(test_name='users')) == ''


def test_definition_error_location() -> None:
    """Point definition errors at the defining line."""
    with pytest.raises(DefinitionError, match='name: String should match') as error:
        define_test('bad name')

    assert error.value.context is not None
    assert error.value.context['filename'].endswith('test_errors.py')
    assert 'test: bad name' in str(error.value)


def test_snippet_with_cycles() -> None:
    """Cut self-referencing containers in snippets."""
    node: dict = {'name': 'root', 'children': []}
    node['children'].append(node)

    snippet = ErrorFormatter.get_snippet_string(ErrorContext(element={'node': node}))

    assert 'name: root' in snippet
    assert '- <runtime object>' in snippet
