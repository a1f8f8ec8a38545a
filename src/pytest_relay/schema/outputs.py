"""Output specifications and the output registration protocol.

An output specification describes how the value returned by a step
procedure is folded into the execution context:
- no specification leaves the context unchanged;
- `OutputKey` binds the whole value under one key;
- `OutputKeys` binds the elements of a sequence positionally;
- `OutputFunction` computes the full next context.
"""

from collections.abc import Callable, Mapping
from typing import Literal

from pydantic import Field

from pytest_relay.context import Context
from pytest_relay.errors import OutputMismatchError
from pytest_relay.models import SchemaModel
from pytest_relay.values import Key, RuntimeValue

#: The function receives the prior context and the step result and
#: returns the complete next context. Unrelated keys are dropped
#: unless the function preserves them.
type OutputCallable = Callable[[Mapping[str, RuntimeValue], RuntimeValue], Mapping[str, RuntimeValue]]


class OutputKey(SchemaModel):
    """Bind the step result under a single context key."""

    kind: Literal['key'] = 'key'

    key: Key = Field(
        title='Context key',
    )

    def register(self, context: Context, value: RuntimeValue) -> Context:
        """Return the context with the result bound."""
        return context.assoc(self.key, value)


class OutputKeys(SchemaModel):
    """Bind the elements of a sequence result to context keys positionally."""

    kind: Literal['keys'] = 'keys'

    keys: tuple[Key, ...] = Field(
        min_length=1,
        title='Context keys',
    )

    def register(self, context: Context, value: RuntimeValue) -> Context:
        """Return the context with every element bound.

        Raises:
            OutputMismatchError: If the result is not a sequence or its
                length differs from the number of keys.
        """
        if isinstance(value, (str, bytes)) or not isinstance(value, (list, tuple)):
            raise OutputMismatchError(
                f'Expected a sequence of {len(self.keys)} values, '
                f'got {type(value).__name__}',
            )

        if len(value) != len(self.keys):
            raise OutputMismatchError(
                f'Expected a sequence of {len(self.keys)} values, '
                f'got {len(value)}',
            )

        return context.merge(dict(zip(self.keys, value, strict=True)))


class OutputFunction(SchemaModel):
    """Compute the next context from the prior one and the step result."""

    kind: Literal['function'] = 'function'

    function: OutputCallable = Field(
        title='Output function',
    )

    def register(self, context: Context, value: RuntimeValue) -> Context:
        """Return the context computed by the function.

        Raises:
            OutputMismatchError: If the function does not return a mapping
                with string keys.
        """
        result = self.function(context, value)
        if not isinstance(result, Mapping):
            raise OutputMismatchError(
                f'Output function must return a mapping, '
                f'got {type(result).__name__}',
            )

        if invalid := [key for key in result if not isinstance(key, str)]:
            raise OutputMismatchError(
                f'Output function must return string keys, got {invalid[0]!r}',
            )

        return Context(result)


type OutputSpec = OutputKey | OutputKeys | OutputFunction

OUTPUT_KINDS = (OutputKey, OutputKeys, OutputFunction)


def as_output(value: RuntimeValue) -> OutputSpec | None:
    """Normalize a raw output specification.

    Args:
        value: `None`, an output specification, a key, a list or
            tuple of keys, or a callable.

    Returns:
        The matching output specification, or `None`.

    Raises:
        ValueError: If the value can not describe an output.
    """
    if value is None or isinstance(value, OUTPUT_KINDS):
        return value

    if isinstance(value, str):
        return OutputKey(key=value)

    if isinstance(value, (list, tuple)):
        return OutputKeys(keys=tuple(value))

    if callable(value):
        return OutputFunction(function=value)

    raise ValueError(f'{value!r} is not a valid output specification')


def register_output(spec: OutputSpec | None, context: Context,
                    value: RuntimeValue) -> Context:
    """Fold a step result into the context.

    Args:
        spec: Output specification of the step instance.
        context: Prior execution context.
        value: Value returned by the step procedure.

    Returns:
        The next execution context.

    Raises:
        OutputMismatchError: If the value can not be bound.
        Any exception raised by an output function.
    """
    if spec is None:
        return context

    return spec.register(context, value)
