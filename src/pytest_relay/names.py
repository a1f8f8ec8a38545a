"""Name primitive types and validation rules.

This module defines base name patterns and strongly-typed aliases used by
the execution engine to validate step and test identifiers, metadata tags
and cleanup resource kinds.

The rules defined here form part of the public contract and are relied upon
by definitions, matchers, cleanup plugins and the command line.
"""

from re import ASCII
from re import compile as regexp
from typing import Annotated

from pydantic import Field

#: Base pattern for all identifiers.
#: Identifiers must start with a letter and may contain letters, digits,
#: underscores or dashes.
_NAME_PATTERN = r'[a-zA-Z][\w-]*'

#: Compiled pattern for step and test identifiers.
#: Supports both plain names ("login") and namespaced names ("users.create").
NAME_PATTERN = regexp(
    rf'^({_NAME_PATTERN}\.)*{_NAME_PATTERN}$',
    flags=ASCII,
)

#: Compiled pattern for metadata tags.
TAG_PATTERN = regexp(
    rf'^{_NAME_PATTERN}$',
    flags=ASCII,
)

#: Compiled pattern for cleanup resource kinds.
#: Supports plain kinds ("tmpdir") and namespaced ones ("db/row", "http.session").
RESOURCE_KIND_PATTERN = regexp(
    rf'^((?P<namespace>{_NAME_PATTERN})[/.])?(?P<name>{_NAME_PATTERN})$',
    flags=ASCII,
)


Name = Annotated[
    str, Field(
        pattern=NAME_PATTERN.pattern,
        title='Identifier',
        description=(
            'Identifying name of a step or a test. '
            'A name may be namespaced using dot notation '
            '(for example, `users.create`). '
            'Names are limited to ASCII letters, digits, '
            'underscores, and dashes.'
        ),
        examples=[
            'login',
            'users.create',
        ],
    ),
]

Tag = Annotated[
    str, Field(
        pattern=TAG_PATTERN.pattern,
        title='Metadata tag',
        description=(
            'Keyword attached to a test and used by tag matchers '
            'to select a subset of tests for execution.'
        ),
        examples=[
            'smoke',
            'integration',
        ],
    ),
]

ResourceKind = Annotated[
    str, Field(
        pattern=RESOURCE_KIND_PATTERN.pattern,
        title='Resource kind',
        description=(
            'Kind of a resource registered for cleanup. '
            'Used to dispatch the cleanup obligation to a handler. '
            'A kind may be namespaced with a slash or a dot '
            '(for example, `db/row`).'
        ),
        examples=[
            'db/row',
            'http.session',
        ],
    ),
]
