"""Core exception hierarchy.

This module defines base error and warning types used across the library
to report plugin loading issues, invalid definitions, suite-level
misconfiguration, and runtime execution errors in a structured and
extensible way.
"""

from os import linesep
from typing import TYPE_CHECKING, Any, TypedDict

from yaml import dump

from pytest_relay.values import MAPPINGS, SCALARS, SEQUENCES

if TYPE_CHECKING:
    from importlib.metadata import EntryPoint
    from typing import Self

if TYPE_CHECKING:
    from pydantic import ValidationError

if TYPE_CHECKING:
    from pytest_relay.models import SourceLocation

SNIPPET_ELLIPSIS = f' ...{linesep}'
SNIPPET_SEPARATOR = f' ---{linesep}'
SNIPPET_INDENT = 2

FORMAT_REPLACER = '<runtime object>'
FORMAT_FILENAME = '<unknown source>'
FORMAT_INDENT = 4


class ErrorContext(TypedDict, total=False):
    """Container describing contextual information for error formatting.

    This structure aggregates optional metadata that may be available
    at different stages of definition, resolution, or execution.

    All fields are optional; the formatter adapts output based on
    provided values.
    """

    #: Name of the source file where the failing element was defined.
    filename: str | None
    #: Line number in the source file.
    line_num: int | None

    #: Name of the test being executed.
    test_name: str | None
    #: Number of the step where the error occurred.
    step_num: int | None

    #: Underlying exception that triggered formatting.
    error: Exception | None

    #: Runtime context values available at the moment of failure.
    context: dict[str, Any] | None
    #: Runtime element associated with the error.
    element: Any


class ErrorFormatter:
    """Utility class for formatting engine errors.

    This formatter is responsible for producing human-readable
    error messages with optional source location and YAML-based
    contextual snippets.
    """

    @classmethod
    def format(cls, message: str, context: ErrorContext | None = None) -> str:
        """Format an error message using contextual information.

        Args:
            message: Base human-readable error message.
            context: Optional error context with location and data.

        Returns:
            A fully formatted error message suitable for display.
        """
        if not context:
            return message

        message += linesep
        message += cls.get_location_string(context, indent=FORMAT_INDENT)
        message += cls.get_snippet_string(context, indent=FORMAT_INDENT * 2)

        return message

    @classmethod
    def get_location_string(cls, context: ErrorContext, *,
                            indent: str | int | None = None) -> str:
        """Format source and execution location information.

        Args:
            context: Error context containing location metadata.
            indent: Optional indentation (string or number of spaces).

        Returns:
            A formatted location string including filename, line,
            test name, and step number when available.
        """
        indent = cls._ensure_indent(indent)

        filename = context.get('filename')
        if not filename:
            filename = FORMAT_FILENAME

        message = f'{indent}in "{filename}"'
        if (line_num := context.get('line_num')) is not None:
            line_num += 1
            message += f', line {line_num}'
        message += linesep

        test_name = context.get('test_name')
        step_num = context.get('step_num')
        if test_name or step_num is not None:
            message += f'{indent}on'
            if test_name:
                message += f' test {test_name!r}'
            if step_num is not None:
                if test_name:
                    message += ','
                message += f' step {step_num + 1}'
            message += linesep

        return message

    @classmethod
    def get_snippet_string(cls, context: ErrorContext, *,
                           indent: str | int | None = None) -> str:
        """Generate a formatted snippet illustrating the error context.

        Args:
            context: Error context containing element data.
            indent: Optional indentation (string or number of spaces).

        Returns:
            A formatted multi-line snippet string, or an empty string
            if no snippet data is available.
        """
        indent = cls._ensure_indent(indent)

        if element := context.get('element'):
            return cls._make_snippet(element, context, indent)

        return ''

    @classmethod
    def _make_snippet(cls, element: dict[str, Any],
                      context: ErrorContext, indent: str) -> str:
        """Build a YAML-based snippet for an element.

        Args:
            element: Element associated with the error.
            context: Error context containing optional runtime values.
            indent: String indentation prefix.

        Returns:
            A formatted snippet string including context and element data.
        """
        snippet = f'{indent}{SNIPPET_ELLIPSIS}'

        if values := context.get('context'):
            snippet += cls._make_yaml({'context': {**values}}, indent)
            snippet += linesep
            snippet += f'{indent}{SNIPPET_SEPARATOR}'

        snippet += cls._make_yaml(element, indent)
        snippet += linesep

        return snippet

    @classmethod
    def _filter_unsafe(cls, value: Any,  # noqa: ANN401
                       seen: frozenset[int] = frozenset()) -> Any:  # noqa: ANN401
        """Recursively sanitize values for safe YAML serialization.

        Non-scalar and non-container objects are replaced with
        a placeholder to prevent leaking executable or opaque data.
        Containers referencing themselves are cut with the same
        placeholder.

        Args:
            value: Arbitrary value to sanitize.
            seen: Identities of the containers being walked.

        Returns:
            A YAML-safe representation of the value.
        """
        if value is None or isinstance(value, SCALARS):
            return value

        if id(value) in seen:
            return FORMAT_REPLACER

        if isinstance(value, MAPPINGS):
            return {
                key: cls._filter_unsafe(item, seen | {id(value)})
                for key, item in value.items()
            }

        if isinstance(value, SEQUENCES):
            return [
                cls._filter_unsafe(item, seen | {id(value)})
                for item in value
            ]

        return FORMAT_REPLACER

    @classmethod
    def _make_yaml(cls, value: Any, indent: str = '') -> str:  # noqa: ANN401
        """Serialize a value to a YAML-formatted string.

        Args:
            value: Arbitrary value to serialize.
            indent: Optional indentation prefix.

        Returns:
            A YAML-formatted string representation of the value.
        """
        data = dump(
            cls._filter_unsafe(value),
            indent=SNIPPET_INDENT,
            sort_keys=False,
        )

        return cls._make_indent(data, indent)

    @staticmethod
    def _make_indent(value: str, indent: str) -> str:
        """Apply indentation to a multi-line string.

        Empty or whitespace-only lines are omitted.
        """
        if not indent:
            return value

        return linesep.join(
            f'{indent}{line}'
            for line in value.splitlines()
            if line.strip()
        )

    @staticmethod
    def _ensure_indent(indent: str | int | None = None) -> str:
        """Normalize indentation input."""
        if isinstance(indent, int) and indent > 0:
            return ' ' * indent

        if isinstance(indent, str):
            return indent

        return ''


class PluginWarning(UserWarning):
    """Warning emitted for non-fatal plugin-related issues.

    This warning is used when a cleanup plugin cannot be loaded or a
    handler shadows an existing one, but the issue does not prevent
    further execution (for example, when running in non-strict mode).
    """


class RelayError(Exception, ErrorFormatter):
    """Base exception for all pytest-relay errors.

    All custom exceptions raised by the library inherit from this class
    to allow unified error handling by callers.
    """

    def __init__(self, message: str, *,
                 context: ErrorContext | None = None) -> None:
        """Initialize an error.

        Args:
            message: Human-readable error description.
            context: Error context containing optional runtime values.
        """
        self.message = message
        self.context = context

        super().__init__(message)

    def __str__(self) -> str:
        """String representation."""
        return self.format(self.message, self.context)


class PluginError(RelayError):
    """Error raised for fatal plugin-related failures.

    This exception is raised when a cleanup plugin entry point is invalid,
    misconfigured, or fails to load in strict mode.
    """

    def __init__(self, message: str, *,
                 entrypoint: 'EntryPoint | None' = None) -> None:
        """Initialize a plugin error.

        Args:
            message: Human-readable error description.
            entrypoint: Optional plugin entry point associated with the error.
        """
        self.entrypoint = entrypoint

        super().__init__(message)


class DefinitionError(RelayError):
    """Error raised when a step or test definition is invalid."""

    @classmethod
    def from_pydantic_error(cls, error: 'ValidationError', *,
                            data: Any = None,  # noqa: ANN401
                            location: 'SourceLocation | None' = None) -> 'Self':
        """Create a definition error from a Pydantic validation failure.

        The message is taken from the first reported issue and prefixed
        with the dotted location of the offending field.

        Args:
            error: ValidationError raised by Pydantic.
            data: Definition data.
            location: Source location of the definition.

        Returns:
            DefinitionError representing the validation failure.
        """
        error_context = ErrorContext(
            error=error,
            element=data if isinstance(data, dict) else None,
        )
        if location is not None:
            error_context['filename'] = location.filename
            error_context['line_num'] = location.line_num

        for item in error.errors(include_url=False, include_input=False):
            message = (item.get('msg') or '').strip()
            if not message:
                continue
            if loc := '.'.join(str(part) for part in item['loc']):
                message = f'{loc}: {message}'
            return cls(message, context=error_context)

        return cls('Validation error', context=error_context)


class RelayConfigError(RelayError):
    """Error raised for unrecoverable suite-level misconfiguration.

    This is the only kind of error a runner raises to its caller:
    individual test failures are always converted into report data.
    """


class MatcherError(RelayConfigError):
    """Error raised when a test matcher is malformed."""


class RelayRuntimeError(RelayError):
    """Error raised during step execution.

    This exception indicates a failure that occurs while resolving
    inputs, running a procedure, or registering outputs.
    """

    @classmethod
    def from_element(cls, element: dict[str, Any], *,  # noqa: PLR0913
                     message: str | None = None,
                     context: dict[str, Any] | None = None,
                     location: 'SourceLocation | None' = None,
                     test_name: str | None = None,
                     step_num: int | None = None) -> 'Self':
        """Create a runtime error describing a failing element.

        Args:
            element: Plain description of the failing element.
            message: An optional custom message.
            context: A context dictionary.
            location: Source location of the element definition.
            test_name: Name of the running test.
            step_num: Position of the step.

        Returns:
            RelayRuntimeError representing the failure.
        """
        error_context = ErrorContext(
            test_name=test_name,
            step_num=step_num,
            context=context,
            element=element,
        )
        if location is not None:
            error_context['filename'] = location.filename
            error_context['line_num'] = location.line_num

        error_message = 'Runtime error'
        if message:
            error_message += f'{linesep}{' ' * FORMAT_INDENT}{message}'

        return cls(error_message, context=error_context)


class MissingComponentError(RelayRuntimeError):
    """Error raised when a step references a component absent from the system."""

    def __init__(self, key: Any) -> None:  # noqa: ANN401
        """Initialize the error.

        Args:
            key: Requested component key.
        """
        self.key = key

        super().__init__(f'Missing component {key!r}')


class OutputMismatchError(RelayRuntimeError):
    """Error raised when a step result can not be bound to its output."""


class CleanupError(RelayError):
    """Error raised while releasing a registered cleanup obligation."""


class MissingCleanupHandlerError(CleanupError):
    """Error raised when no handler is registered for a resource kind."""

    def __init__(self, kind: str) -> None:
        """Initialize the error.

        Args:
            kind: Resource kind without a handler.
        """
        self.kind = kind

        super().__init__(f'No cleanup handler for resource kind {kind!r}')


class LifecycleError(RelayError):
    """Error raised when a system fails to be built, started, or stopped."""
