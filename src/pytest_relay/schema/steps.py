"""Step templates and step instances.

A step is a reusable, named unit of test logic with declared inputs and
outputs. Steps are immutable templates: a test uses a step through a
*step instance* produced by `Step.bind`, which may override the inputs,
the output, and the title without touching the template. The same
template can therefore appear several times in one test, or in many
tests, with different bindings.
"""

from collections.abc import Callable, Mapping
from inspect import getdoc
from typing import Any, Self, overload

from pydantic import Field, ValidationError, field_validator

from pytest_relay.errors import DefinitionError
from pytest_relay.models import DescribedMixin, SchemaModel, SourceLocation
from pytest_relay.names import Name  # noqa: TC001
from pytest_relay.values import RuntimeValue

from .inputs import merge_inputs
from .outputs import OutputSpec, as_output

#: The procedure receives the resolved inputs and a step handle offering
#: assertion primitives and cleanup registration. Its return value is
#: folded into the context according to the output specification.
type StepProcedure = Callable[[Mapping[str, RuntimeValue], Any], RuntimeValue]


class OutputMixin(SchemaModel):
    """Mixin declaring an output specification with shorthand support."""

    output: OutputSpec | None = Field(
        default=None,
        title='Output specification',
        description=(
            'How the procedure result is folded into the context. '
            'Accepts a key, a list of keys, a function of the context '
            'and the result, or nothing.'
        ),
    )

    @field_validator('output', mode='before')
    @classmethod
    def normalize_output(cls, value: RuntimeValue) -> OutputSpec | None:
        """Expand output shorthands."""
        return as_output(value)


class Step(OutputMixin, DescribedMixin, SchemaModel):
    """Reusable step template."""

    name: Name = Field(
        title='Step name',
    )

    inputs: dict[str, RuntimeValue] = Field(
        default_factory=dict,
        title='Input specification',
        description=(
            'Mapping of procedure parameter names to input sources. '
            'Bare callables are context functions and other bare '
            'values are literals.'
        ),
    )

    procedure: StepProcedure = Field(
        title='Test procedure',
    )

    location: SourceLocation | None = Field(
        default=None,
        title='Source location',
    )

    def bind(self, *, inputs: Mapping[str, RuntimeValue] | None = None,
             output: RuntimeValue = ...,
             title: str | None = None) -> 'StepInstance':
        """Produce a step instance with optional overrides.

        Args:
            inputs: Input sources merged key by key over the template ones.
            output: Output specification replacing the template one.
                Omit it to keep the template output, pass `None` to drop it.
            title: Title replacing the template one.

        Returns:
            A new step instance. The template is left untouched.

        Raises:
            DefinitionError: If an override is invalid.
        """
        data = {
            'step': self,
            'inputs': merge_inputs(self.inputs, inputs),
            'output': self.output if output is ... else output,
            'title': title or self.title,
        }

        try:
            return StepInstance.model_validate(data)
        except ValidationError as base:
            raise DefinitionError.from_pydantic_error(
                base,
                data={'step': self.name},
                location=self.location,
            ) from base


class StepInstance(OutputMixin, SchemaModel):
    """Step template bound for use inside a test."""

    step: Step = Field(
        title='Step template',
    )

    inputs: dict[str, RuntimeValue] = Field(
        default_factory=dict,
        title='Effective input specification',
    )

    title: str | None = Field(
        default=None,
        title='Effective title',
    )

    @property
    def name(self) -> str:
        """Name of the template."""
        return self.step.name

    @property
    def description(self) -> str | None:
        """Description of the template."""
        return self.step.description

    @property
    def procedure(self) -> StepProcedure:
        """Procedure of the template."""
        return self.step.procedure

    @property
    def location(self) -> SourceLocation | None:
        """Source location of the template."""
        return self.step.location

    @property
    def label(self) -> str:
        """Title used in reports, falling back to the name."""
        return self.title or self.name

    @classmethod
    def of(cls, value: 'Step | StepInstance') -> Self:
        """Bind a bare template with no overrides."""
        if isinstance(value, Step):
            return value.bind()  # type: ignore[return-value]

        return value  # type: ignore[return-value]


@overload
def step(name: StepProcedure, /) -> Step:
    ...  # pragma: no cover


@overload
def step(name: str | None = None, /, *,
         title: str | None = None,
         description: str | None = None,
         inputs: Mapping[str, RuntimeValue] | None = None,
         output: RuntimeValue = None) -> Callable[[StepProcedure], Step]:
    ...  # pragma: no cover


def step(name: 'str | StepProcedure | None' = None, /, *,
         title: str | None = None,
         description: str | None = None,
         inputs: Mapping[str, RuntimeValue] | None = None,
         output: RuntimeValue = None) -> 'Step | Callable[[StepProcedure], Step]':
    """Define a step template from a procedure function.

    Can be used bare (`@step`) or with arguments (`@step('users.create')`).
    The step name defaults to the function name and the description to
    its docstring.

    Args:
        name: Step name.
        title: Human-readable title.
        description: Free-text description.
        inputs: Input specification.
        output: Output specification.

    Returns:
        A step template, or a decorator producing one.

    Raises:
        DefinitionError: If the definition is invalid.
    """
    def decorator(procedure: StepProcedure) -> Step:
        location = None
        if code := getattr(procedure, '__code__', None):
            location = SourceLocation.from_code(code)

        data = {
            'name': name if isinstance(name, str) else procedure.__name__,
            'title': title,
            'description': description or getdoc(procedure),
            'inputs': dict(inputs or {}),
            'procedure': procedure,
            'output': output,
            'location': location,
        }

        try:
            return Step.model_validate(data)
        except ValidationError as base:
            raise DefinitionError.from_pydantic_error(
                base,
                data={'step': data['name']},
                location=location,
            ) from base

    if callable(name):
        procedure, name = name, None
        return decorator(procedure)

    return decorator
