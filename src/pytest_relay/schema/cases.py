"""Test definitions.

A test is an ordered composition of step instances sharing one context
and one system. Tests carry metadata tags used by matchers to select a
subset of tests for execution.
"""

from inspect import currentframe
from typing import TYPE_CHECKING

from pydantic import Field, ValidationError, field_validator

from pytest_relay.errors import DefinitionError
from pytest_relay.models import DescribedMixin, SchemaModel, SourceLocation
from pytest_relay.names import Name, Tag  # noqa: TC001
from pytest_relay.values import RuntimeValue

from .steps import Step, StepInstance

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping


class Test(DescribedMixin, SchemaModel):
    """Immutable test definition."""

    __test__ = False

    name: Name = Field(
        title='Test name',
        description='Identifying name used by pattern matchers and reports.',
    )

    steps: tuple[StepInstance, ...] = Field(
        default=(),
        title='Steps',
        description=(
            'Ordered step instances. Bare step templates are bound '
            'without overrides.'
        ),
    )

    tags: frozenset[Tag] = Field(
        default_factory=frozenset,
        title='Metadata tags',
    )

    metadata: dict[str, RuntimeValue] = Field(
        default_factory=dict,
        title='Test metadata',
        description='Additional metadata associated with the test.',
    )

    location: SourceLocation | None = Field(
        default=None,
        title='Source location',
    )

    @field_validator('steps', mode='before')
    @classmethod
    def bind_steps(cls, value: RuntimeValue) -> RuntimeValue:
        """Bind bare step templates."""
        if not isinstance(value, (list, tuple)):
            return value

        return tuple(
            StepInstance.of(item) if isinstance(item, Step) else item
            for item in value
        )

    @field_validator('tags', mode='before')
    @classmethod
    def split_tags(cls, value: RuntimeValue) -> RuntimeValue:
        """Accept a single tag as a string."""
        if isinstance(value, str):
            return frozenset((value,))

        return value

    @property
    def label(self) -> str:
        """Title used in reports, falling back to the name."""
        return self.title or self.name

    def has_tag(self, tag: str) -> bool:
        """Check whether the test is tagged.

        A tag is present when it is declared in `tags`, or when the
        metadata maps it to `True`.
        """
        return tag in self.tags or self.metadata.get(tag) is True


def define_test(name: str, *steps: Step | StepInstance,  # noqa: PLR0913
                title: str | None = None,
                description: str | None = None,
                tags: 'Iterable[str] | str' = (),
                metadata: 'Mapping[str, RuntimeValue] | None' = None) -> Test:
    """Define a test and record where it was defined.

    Args:
        name: Test name.
        *steps: Step templates or instances in execution order.
        title: Human-readable title.
        description: Free-text description.
        tags: Metadata tags.
        metadata: Additional metadata.

    Returns:
        An immutable test definition.

    Raises:
        DefinitionError: If the definition is invalid.
    """
    frame = currentframe()
    location = SourceLocation.from_frame(frame.f_back if frame else None)

    data = {
        'name': name,
        'title': title,
        'description': description,
        'steps': steps,
        'tags': tags,
        'metadata': dict(metadata or {}),
        'location': location,
    }

    try:
        return Test.model_validate(data)
    except ValidationError as base:
        raise DefinitionError.from_pydantic_error(
            base,
            data={'test': name},
            location=location,
        ) from base
