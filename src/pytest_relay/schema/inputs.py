"""Input sources and the input resolution protocol.

An input specification maps procedure parameter names to input sources.
Before a step procedure runs, every source is resolved against the
current execution context and the system under test, producing the
concrete mapping passed to the procedure.

The set of sources is closed:
- `Const` returns its value verbatim;
- `Component` looks a component up in the system;
- `ContextKey` reads a single context key;
- `ContextPath` walks nested context values;
- `ContextFunction` computes a value from the whole context.

Bare values are accepted in specifications as a shorthand: callables
become `ContextFunction`, anything else becomes `Const`.
"""

from collections.abc import Callable, Mapping
from typing import Literal

from pydantic import Field

from pytest_relay.errors import MissingComponentError
from pytest_relay.models import SchemaModel
from pytest_relay.values import ContextCallable, Key, RuntimeValue, get_in


def lookup_component(system: RuntimeValue, key: RuntimeValue) -> RuntimeValue:
    """Look a named component up in a system.

    Args:
        system: A mapping-like system value.
        key: Component key.

    Returns:
        The component.

    Raises:
        MissingComponentError: If the system has no such component.
    """
    try:
        return system[key]
    except (KeyError, IndexError, TypeError) as base:
        raise MissingComponentError(key) from base


class Const(SchemaModel):
    """Literal input returned verbatim."""

    source: Literal['const'] = 'const'

    value: RuntimeValue = Field(
        title='Literal value',
        description='Value passed to the procedure as is, callables included.',
    )

    def resolve(self, context: Mapping[str, RuntimeValue],  # noqa: ARG002
                system: RuntimeValue) -> RuntimeValue:  # noqa: ARG002
        """Return the literal value."""
        return self.value


class Component(SchemaModel):
    """Reference to a named component of the system."""

    source: Literal['component'] = 'component'

    key: RuntimeValue = Field(
        title='Component key',
        description='Key of the component in the system.',
    )

    def resolve(self, context: Mapping[str, RuntimeValue],  # noqa: ARG002
                system: RuntimeValue) -> RuntimeValue:
        """Return the referenced component.

        Raises:
            MissingComponentError: If the system has no such component.
        """
        return lookup_component(system, self.key)


class ContextKey(SchemaModel):
    """Lookup of a single context key.

    An unset key resolves to `None`; this is not an error.
    """

    source: Literal['context'] = 'context'

    key: Key = Field(
        title='Context key',
    )

    def resolve(self, context: Mapping[str, RuntimeValue],
                system: RuntimeValue) -> RuntimeValue:  # noqa: ARG002
        """Return the context value or `None`."""
        return context.get(self.key)


class ContextPath(SchemaModel):
    """Lookup of a nested context value by key path.

    The walk is tolerant: an absent path resolves to `None`.
    """

    source: Literal['context_path'] = 'context_path'

    path: tuple[str | int, ...] = Field(
        min_length=1,
        title='Key path',
        description=(
            'Ordered sequence of keys and indexes. '
            'The first element is a context key.'
        ),
    )

    def resolve(self, context: Mapping[str, RuntimeValue],
                system: RuntimeValue) -> RuntimeValue:  # noqa: ARG002
        """Return the nested context value or `None`."""
        return get_in(context, self.path)


class ContextFunction(SchemaModel):
    """Value computed from the whole context.

    Any exception raised by the function propagates to the runner and
    is reported as a step error.
    """

    source: Literal['context_function'] = 'context_function'

    function: ContextCallable[RuntimeValue] = Field(
        title='Context function',
        description='Callable receiving the whole execution context.',
    )

    def resolve(self, context: Mapping[str, RuntimeValue],
                system: RuntimeValue) -> RuntimeValue:  # noqa: ARG002
        """Return the value computed by the function."""
        return self.function(context)


type InputSource = Const | Component | ContextKey | ContextPath | ContextFunction

INPUT_SOURCES = (Const, Component, ContextKey, ContextPath, ContextFunction)


def lookup(*args: 'str | int | Callable[..., RuntimeValue]') -> InputSource:
    """Build a context lookup source.

    Args:
        *args: A single key, several keys forming a path, or a callable.

    Returns:
        `ContextKey`, `ContextPath`, or `ContextFunction` accordingly.

    Raises:
        ValueError: If no argument is given or a callable is mixed with keys.
    """
    if not args:
        raise ValueError('lookup requires a key, a key path or a function')

    first = args[0]
    if callable(first):
        if len(args) > 1:
            raise ValueError('lookup accepts a single function')
        return ContextFunction(function=first)

    if len(args) == 1 and isinstance(first, str):
        return ContextKey(key=first)

    return ContextPath(path=tuple(args))  # type: ignore[arg-type]


def as_source(value: RuntimeValue) -> InputSource:
    """Normalize a specification entry into an input source.

    Args:
        value: An input source, a callable, or a literal value.

    Returns:
        The matching input source.
    """
    if isinstance(value, INPUT_SOURCES):
        return value

    if callable(value):
        return ContextFunction(function=value)

    return Const(value=value)


def resolve_inputs(spec: Mapping[str, RuntimeValue],
                   context: Mapping[str, RuntimeValue],
                   system: RuntimeValue) -> dict[str, RuntimeValue]:
    """Resolve an input specification.

    Args:
        spec: Mapping of parameter names to input sources.
        context: Current execution context.
        system: System under test.

    Returns:
        Mapping of parameter names to resolved values.

    Raises:
        MissingComponentError: If a referenced component is absent.
        Any exception raised by a context function.
    """
    return {
        name: as_source(source).resolve(context, system)
        for name, source in spec.items()
    }


def merge_inputs(defaults: Mapping[str, RuntimeValue],
                 overrides: 'Mapping[str, RuntimeValue] | None') -> dict[str, RuntimeValue]:
    """Merge bind-time overrides over template defaults.

    The merge is shallow and key by key: an override replaces the
    default source of the same parameter.
    """
    if not overrides:
        return dict(defaults)

    return {**defaults, **overrides}

