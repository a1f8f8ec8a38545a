"""Declarative cleanup plugin definition.

This module defines the top-level declarative container used to describe
cleanup handlers provided by an installed package.

A plugin is exposed through the `relay_cleanups` entry point group:

    [project.entry-points.relay_cleanups]
    database = "my_package.cleanups:plugin"

The plugin model itself is purely declarative. It contains no execution
logic and is consumed by the cleanup registry during initialization to
register all provided handlers in a structured and validated form.
"""

from collections.abc import Callable

from pydantic import Field

from pytest_relay.models import SchemaModel
from pytest_relay.names import Name, ResourceKind  # noqa: TC001
from pytest_relay.values import RuntimeValue

#: A handler receives the system under test and the key of the resource
#: registered by a step, and releases that resource.
type CleanupHandler = Callable[[RuntimeValue, RuntimeValue], RuntimeValue]

__all__ = (
    'CleanupHandler',
    'CleanupPlugin',
)


class CleanupPlugin(SchemaModel):
    """Declarative container for cleanup handlers.

    A plugin represents a logical namespace that groups together the
    handlers contributed by an extension package. Plugin instances do
    not execute logic themselves.
    """

    name: Name = Field(
        title='Plugin namespace',
        description=(
            'Logical namespace of the plugin. '
            'Used for identification, diagnostics, and conflict detection.'
        ),
    )

    version: int = Field(
        default=1,
        title='Contract version',
        description=(
            'Version of the cleanup handler contract. '
            'This is not a semantic version of the plugin implementation.'
        ),
    )

    handlers: dict[ResourceKind, CleanupHandler] = Field(
        default_factory=dict,
        title='Handlers',
        description='Mapping of resource kinds to cleanup handlers.',
    )
