"""Built-in value matchers used by step assertions.

This module defines the comparison predicates behind the assertion
primitives of a step handle: strict and partial equality, ordering
comparisons and regular expression matching.

Matching is strict about types: `1` does not equal `'1'`, and ordering
comparisons between values of unrelated types do not hold. Partial
matching applies to sequences and mappings, recursively.
"""

# ruff: noqa: S101

from contextlib import suppress
from itertools import product
from numbers import Real
from re import IGNORECASE, MULTILINE, UNICODE, search
from typing import TYPE_CHECKING

from pytest_relay.values import MAPPINGS, SCALARS, SEQUENCES

if TYPE_CHECKING:
    from pytest_relay.values import RuntimeValue

__all__ = (
    'compare',
    'exact_match',
    'partial_match',
    'regex_match',
)


def _exact_match(actual: 'RuntimeValue', expected: 'RuntimeValue') -> bool:
    """Perform strict equality comparison.

    Raises:
        AssertionError: If values differ or types do not match.
    """
    if expected is None:
        assert actual is None
        return True

    assert isinstance(actual, type(expected))
    assert actual == expected

    return True


def _seq_partial_match(actual: 'RuntimeValue', expected: 'RuntimeValue') -> bool:
    """Perform partial match for sequences.

    A partial sequence match succeeds if *each expected element*
    matches *at least one* element in the actual sequence.

    Raises:
        AssertionError: If inputs are not sequences.
    """
    assert isinstance(actual, SEQUENCES)
    assert isinstance(expected, SEQUENCES)

    matched = set()
    for (index, expected_item), actual_item in product(enumerate(expected), actual):
        if index in matched:
            continue
        with suppress(AssertionError):
            if _partial_match(actual_item, expected_item):
                matched.add(index)

    return len(matched) == len(expected)


def _map_partial_match(actual: 'RuntimeValue', expected: 'RuntimeValue') -> bool:
    """Perform partial match for mappings.

    A mapping partially matches if all keys from the expected mapping
    exist in the actual mapping and their corresponding values match
    recursively.

    Raises:
        AssertionError: If inputs are not mappings or keys are missing.
    """
    assert isinstance(actual, MAPPINGS)
    assert isinstance(expected, MAPPINGS)

    result = True
    for key, value in expected.items():
        assert key in actual
        result &= _partial_match(actual[key], value)

    return result


def _partial_match(actual: 'RuntimeValue', expected: 'RuntimeValue') -> bool:
    """Recursively perform partial matching.

    Matching strategy depends on the type of the expected value.
    Values of other types are compared strictly.
    """
    if expected is None or isinstance(expected, SCALARS):
        return _exact_match(actual, expected)

    if isinstance(expected, SEQUENCES):
        return _seq_partial_match(actual, expected)

    if isinstance(expected, MAPPINGS):
        return _map_partial_match(actual, expected)

    return _exact_match(actual, expected)


def _cmp(actual: 'RuntimeValue', expected: 'RuntimeValue',
         swap: bool = False, inclusive: bool = False) -> bool:
    """Base implementation for comparisons."""
    if expected is None or actual is None:
        return actual is expected and inclusive

    if not (isinstance(actual, Real) and isinstance(expected, Real)):
        assert isinstance(actual, type(expected)) or isinstance(expected, type(actual))

    if swap:
        actual, expected = expected, actual

    assert actual < expected or (inclusive and actual == expected)

    return True


def exact_match(actual: 'RuntimeValue', expected: 'RuntimeValue') -> bool:
    """Check strict equality.

    Args:
        actual: Actual value produced by a step.
        expected: Expected value.

    Returns:
        True if the values are equal and of compatible types.
    """
    try:
        return _exact_match(actual, expected)
    except AssertionError:
        return False


def partial_match(actual: 'RuntimeValue', expected: 'RuntimeValue') -> bool:
    """Check recursive partial equality.

    Every key of an expected mapping must be present in the actual
    mapping with a partially matching value, and every element of an
    expected sequence must partially match some element of the actual
    sequence. Scalars are compared strictly.

    Args:
        actual: Actual value produced by a step.
        expected: Expected value or shape.

    Returns:
        True if the actual value contains the expected one.
    """
    try:
        return _partial_match(actual, expected)
    except AssertionError:
        return False


def compare(actual: 'RuntimeValue', expected: 'RuntimeValue', *,
            swap: bool = False, inclusive: bool = False) -> bool:
    """Check an ordering relation.

    By default checks `actual < expected`. `swap` turns it into
    `actual > expected` and `inclusive` allows equality.

    Args:
        actual: Actual value produced by a step.
        expected: Bound to compare with.
        swap: Whether to check greater-than instead of less-than.
        inclusive: Whether equal values satisfy the relation.

    Returns:
        True if the relation holds.
    """
    try:
        return _cmp(actual, expected, swap=swap, inclusive=inclusive)
    except (AssertionError, TypeError):
        return False


def regex_match(value: 'RuntimeValue', pattern: str, *,
                ignore_case: bool = False, multiline: bool = False) -> bool:
    """Check that a string contains a match of a pattern.

    Args:
        value: Actual value; non-strings never match.
        pattern: Regular expression.
        ignore_case: Whether to perform case-insensitive matching.
        multiline: Whether `^` and `$` match at line boundaries.

    Returns:
        True if the pattern is found in the value.
    """
    if not isinstance(value, str) or not isinstance(pattern, str):
        return False

    flags = UNICODE
    if ignore_case:
        flags |= IGNORECASE
    if multiline:
        flags |= MULTILINE

    return search(pattern, value, flags) is not None
