"""Core type definitions for the execution engine.

This module defines the foundational type aliases shared by steps,
tests, the execution context and the report records, together with
a tolerant nested lookup helper used by context key-path inputs.
"""

from collections.abc import Callable, Mapping, Sequence
from datetime import date, datetime, timedelta
from typing import Any

from pydantic import SecretStr

#: A value in runtime represents any Python object produced by a step
#: procedure, held in the context, or exposed by a system component.
type RuntimeValue = Any

#: Context keys are plain strings.
type Key = str

#: A key path is an ordered sequence of mapping keys and sequence
#: indexes used to walk nested structures.
type KeyPath = Sequence[str | int]

#: Deferred values are evaluated against the whole execution context.
type ContextCallable[T] = Callable[[Mapping[str, RuntimeValue]], T]

MAPPINGS = (dict,)
SCALARS = (date, datetime, timedelta, str, bytes, int, float, bool, SecretStr)
SEQUENCES = (list, tuple, set)


def _step_into(value: RuntimeValue, key: str | int) -> tuple[bool, RuntimeValue]:
    """Apply a single path segment to a value.

    Args:
        value: Current value being walked.
        key: Mapping key, or sequence index (integer or decimal string).

    Returns:
        A pair of a found flag and the nested value.
    """
    if isinstance(value, Mapping):
        if key in value:
            return True, value[key]
        return False, None

    if isinstance(value, (list, tuple)):
        if isinstance(key, str) and key.isdecimal():
            key = int(key)
        if isinstance(key, int) and not isinstance(key, bool) and 0 <= key < len(value):
            return True, value[key]

    return False, None


def get_in(value: RuntimeValue, path: KeyPath) -> RuntimeValue:
    """Resolve a key path against nested mappings and sequences.

    The walk is intentionally tolerant: any missing key, invalid
    index, or type mismatch results in `None` instead of raising
    an exception.

    Args:
        value: Root value to walk.
        path: Ordered sequence of keys and indexes.

    Returns:
        The nested value if the full path is valid, otherwise `None`.
    """
    for key in path:
        found, value = _step_into(value, key)
        if not found:
            return None

    return value
