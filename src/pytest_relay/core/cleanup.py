"""Cleanup stack and handler registry.

Steps register deferred teardown obligations as (resource kind, resource
key) pairs. At test teardown the stack is drained in reverse registration
order and each entry is dispatched to the handler registered for its kind.

Handlers form an open set: host applications register them directly on
a `CleanupRegistry`, or ship them as plugins through entry points, so new
resource kinds are supported without changing the engine.
"""

import logging
from time import perf_counter
from typing import TYPE_CHECKING

from pydantic import Field, TypeAdapter, ValidationError

from pytest_relay.errors import CleanupError, MissingCleanupHandlerError, RelayConfigError
from pytest_relay.models import SchemaModel
from pytest_relay.names import ResourceKind
from pytest_relay.values import RuntimeValue

from .loader import CleanupLoaderMixin
from .results import CleanupResult, ErrorInfo, Outcome, elapsed_since

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from importlib.metadata import EntryPoint

    from pytest_relay.extensions import CleanupHandler

logger = logging.getLogger(__name__)

_KIND_ADAPTER: TypeAdapter[str] = TypeAdapter(ResourceKind)


class CleanupEntry(SchemaModel):
    """Deferred teardown obligation registered by a step."""

    kind: ResourceKind = Field(
        title='Resource kind',
    )

    key: RuntimeValue = Field(
        title='Resource key',
        description='Identifier of the resource, passed to the handler.',
    )


class CleanupStack:
    """Append-only, reverse-drained list of cleanup entries.

    A stack belongs to exactly one test execution. Entries are consumed
    exactly once: draining empties the stack.
    """

    def __init__(self) -> None:
        """Initialize an empty stack."""
        self._entries: list[CleanupEntry] = []

    def __len__(self) -> int:
        """Number of pending entries."""
        return len(self._entries)

    def push(self, kind: str, key: RuntimeValue) -> CleanupEntry:
        """Register a cleanup obligation.

        Args:
            kind: Resource kind used to select the handler.
            key: Resource key passed to the handler.

        Returns:
            The registered entry.

        Raises:
            ValidationError: If the kind is not a valid resource kind.
        """
        entry = CleanupEntry(kind=kind, key=key)
        self._entries.append(entry)

        return entry

    def drain(self) -> 'Iterator[CleanupEntry]':
        """Pop entries in last-in-first-out order."""
        while self._entries:
            yield self._entries.pop()


class CleanupRegistry(CleanupLoaderMixin):
    """Mapping of resource kinds to cleanup handlers."""

    def __init__(self, handlers: 'dict[str, CleanupHandler] | None' = None, *,
                 strict: bool = False) -> None:
        """Initialize a registry.

        Args:
            handlers: Initial handlers by resource kind.
            strict: Whether shadowing and plugin issues raise instead
                of emitting warnings.
        """
        self.strict_mode = strict
        self.handlers = {}

        for kind, handler in (handlers or {}).items():
            self.register(kind, handler)

    def __contains__(self, kind: object) -> bool:
        """Whether a handler is registered for the kind."""
        return kind in self.handlers

    def register(self, kind: str, handler: 'CleanupHandler',
                 entrypoint: 'EntryPoint | None' = None) -> None:
        """Register a cleanup handler.

        Args:
            kind: Resource kind.
            handler: Callable receiving the system and the resource key.
            entrypoint: Entry point from which the handler was loaded.

        Raises:
            RelayConfigError: If the kind or the handler is invalid.
            PluginError: If the handler shadows an existing one on strict mode.
        """
        try:
            kind = _KIND_ADAPTER.validate_python(kind)
        except ValidationError as base:
            raise RelayConfigError(f'Invalid resource kind {kind!r}') from base

        if not callable(handler):
            raise RelayConfigError(f'Cleanup handler for {kind!r} is not callable')

        if kind in self.handlers and (error := self.emit_plugin_issue(
            f'Cleanup handler {kind!r} is shadowing an existing',
            entrypoint,
        )):
            raise error

        self.handlers[kind] = handler

    def handler(self, kind: str) -> 'Callable[[CleanupHandler], CleanupHandler]':
        """Decorator registering a cleanup handler.

        Args:
            kind: Resource kind.

        Returns:
            Decorator returning the handler unchanged.
        """
        def decorator(handler: 'CleanupHandler') -> 'CleanupHandler':
            self.register(kind, handler)
            return handler

        return decorator

    def resolve(self, kind: str) -> 'CleanupHandler':
        """Return the handler for a resource kind.

        Raises:
            MissingCleanupHandlerError: If no handler is registered.
        """
        try:
            return self.handlers[kind]
        except KeyError as base:
            raise MissingCleanupHandlerError(kind) from base

    def release(self, entry: CleanupEntry, system: RuntimeValue) -> CleanupResult:
        """Release a single entry, capturing any failure.

        Args:
            entry: Entry to release.
            system: System under test passed to the handler.

        Returns:
            Cleanup record with outcome `pass` or `error`.
        """
        started = perf_counter()

        try:
            self.resolve(entry.kind)(system, entry.key)

        except Exception as base:
            logger.warning('Cleanup of %s %r failed: %s', entry.kind, entry.key, base)
            details = f'Cleanup handler for {entry.kind!r} failed'
            if isinstance(base, CleanupError):
                details = base.message
            return CleanupResult(
                kind=entry.kind,
                key=entry.key,
                outcome=Outcome.ERROR,
                error=ErrorInfo.from_exception(base, details=details),
                elapsed=elapsed_since(started),
            )

        logger.debug('Released %s %r', entry.kind, entry.key)

        return CleanupResult(
            kind=entry.kind,
            key=entry.key,
            outcome=Outcome.PASS,
            elapsed=elapsed_since(started),
        )

