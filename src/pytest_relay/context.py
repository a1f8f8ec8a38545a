"""Execution context threaded through the steps of one test.

This module defines the context object: an accumulating mapping of keys
to values that steps read through their input specification and extend
through their output specification.
"""

from typing import TYPE_CHECKING, Self

from pytest_relay.values import RuntimeValue, get_in

if TYPE_CHECKING:
    from collections.abc import Mapping

    from pytest_relay.values import Key, KeyPath


class Context(dict[str, RuntimeValue]):
    """Accumulating key/value state of a single test execution.

    Context instances are expected to be immutable in practice, although
    this is not strictly enforced at the type level. Every write produces
    a new instance, so a value written by a step is visible to the steps
    that follow it and never to the steps that already ran.
    """

    def assoc(self, key: 'Key', value: RuntimeValue) -> Self:
        """Return a new context with a single key bound.

        Args:
            key: Context key.
            value: Value to bind.

        Returns:
            A new context; the current one is left untouched.
        """
        return type(self)({**self, key: value})

    def merge(self, values: 'Mapping[str, RuntimeValue]') -> Self:
        """Return a new context with all given keys bound.

        Args:
            values: Mapping of keys to values, overriding existing keys.

        Returns:
            A new context; the current one is left untouched.
        """
        return type(self)({**self, **values})

    def get_in(self, path: 'KeyPath') -> RuntimeValue:
        """Walk nested values starting at this context.

        Args:
            path: Ordered sequence of keys and indexes.

        Returns:
            The nested value, or `None` when the path is absent.
        """
        return get_in(self, path)

    def snapshot(self) -> dict[str, RuntimeValue]:
        """Return a plain shallow copy suitable for report records."""
        return dict(self)
