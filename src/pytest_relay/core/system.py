"""System lifecycle management.

A system is the collection of external dependencies a test runs against.
It is produced by a caller-supplied constructor and looked up by key
through component references. Any value supporting item access can act
as a system; objects exposing `start()` and `stop()` methods get them
called around the test.

The lifecycle of one system is a small state machine:

    UNBUILT -> STARTED -> STOPPED

A system that fails to build or start never leaves `UNBUILT` and is
never stopped.
"""

import logging
from collections.abc import Mapping
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Self

from pytest_relay.errors import LifecycleError
from pytest_relay.schema.inputs import lookup_component
from pytest_relay.values import RuntimeValue

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from types import TracebackType

__all__ = (
    'LifecycleState',
    'SystemLifecycle',
    'SystemMap',
    'lookup_component',
)

logger = logging.getLogger(__name__)

#: A constructor receives the opaque configuration value and returns
#: a fresh system. It is invoked once per test.
type SystemConstructor = Callable[[RuntimeValue], RuntimeValue]


def _call_hook(target: RuntimeValue, name: str) -> RuntimeValue:
    """Call an optional lifecycle method if the target exposes one."""
    hook = getattr(target, name, None)
    if not callable(hook):
        return None

    return hook()


class LifecycleState(StrEnum):
    """State of a system lifecycle."""

    UNBUILT = 'unbuilt'
    STARTED = 'started'
    STOPPED = 'stopped'


class SystemLifecycle:
    """Scoped acquisition of one freshly built system.

    Used as a context manager, the lifecycle builds and starts the
    system on enter and stops it on every exit path:

        with SystemLifecycle(make_system, config) as system:
            runner.run_test(system, test)

    Start failures raise `LifecycleError` from `__enter__`, so the body
    never runs and no stop is attempted. Stop failures are logged and
    kept on `stop_error`; they are never raised.
    """

    def __init__(self, constructor: 'SystemConstructor',
                 config: RuntimeValue = None) -> None:
        """Initialize a lifecycle.

        Args:
            constructor: Callable building a system from the configuration.
            config: Opaque configuration value passed to the constructor.
        """
        self.constructor = constructor
        self.config = config

        self.state = LifecycleState.UNBUILT
        self.system: RuntimeValue = None
        self.stop_error: Exception | None = None

    def start(self) -> RuntimeValue:
        """Build and start the system.

        The constructor is called with the configuration value, then the
        `start()` method of the result, if present. A mapping returned by
        `start()` replaces the system; any other return value is ignored.

        Returns:
            The started system.

        Raises:
            LifecycleError: If the system is already built, or if
                building or starting it fails.
        """
        if self.state is not LifecycleState.UNBUILT:
            raise LifecycleError(f'System can not be started from state {self.state!r}')

        try:
            system = self.constructor(self.config)
            if isinstance(started := _call_hook(system, 'start'), Mapping):
                system = started

        except Exception as base:
            logger.error('System failed to start: %s', base)
            raise LifecycleError(f'System failed to start: {base}') from base

        self.system = system
        self.state = LifecycleState.STARTED
        logger.debug('System started: %r', type(system).__name__)

        return system

    def stop(self) -> Exception | None:
        """Stop the system if it was started.

        Returns:
            The stop failure, or `None`.
        """
        if self.state is not LifecycleState.STARTED:
            return None

        try:
            _call_hook(self.system, 'stop')

        except Exception as base:
            logger.warning('System failed to stop: %s', base)
            self.stop_error = base

        self.state = LifecycleState.STOPPED
        logger.debug('System stopped')

        return self.stop_error

    def __enter__(self) -> RuntimeValue:
        """Build and start the system."""
        return self.start()

    def __exit__(self, exc_type: type[BaseException] | None,
                 exc_value: BaseException | None,
                 traceback: 'TracebackType | None') -> None:
        """Stop the system on any exit path."""
        self.stop()


class SystemMap(dict[str, Any]):
    """System made of named components.

    Components exposing `start()` are started in insertion order and
    components exposing `stop()` are stopped in reverse order. Every
    stop is attempted even when a previous one fails.

    A component that fails to start causes the already started ones
    to be stopped before the failure propagates.
    """

    def start(self) -> Self:
        """Start every component.

        Raises:
            LifecycleError: If a component fails to start.
        """
        started: list[str] = []

        for name, component in self.items():
            try:
                _call_hook(component, 'start')

            except Exception as base:
                logger.error('Component %r failed to start: %s', name, base)
                self._stop_all(reversed(started))
                raise LifecycleError(f'Component {name!r} failed to start') from base

            started.append(name)

        return self

    def stop(self) -> None:
        """Stop every component in reverse order.

        Raises:
            LifecycleError: If any component fails to stop, after
                every stop was attempted.
        """
        if errors := self._stop_all(reversed(self)):
            name, base = errors[0]
            raise LifecycleError(
                f'{len(errors)} component(s) failed to stop, '
                f'first was {name!r}',
            ) from base

    def _stop_all(self, names: 'Iterable[str]') -> list[tuple[str, Exception]]:
        """Stop the named components, collecting failures."""
        errors = []

        for name in names:
            try:
                _call_hook(self[name], 'stop')

            except Exception as base:
                logger.warning('Component %r failed to stop: %s', name, base)
                errors.append((name, base))

        return errors
