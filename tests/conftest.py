"""Tests configurations and fixtures."""

from importlib.metadata import EntryPoint, EntryPoints
from typing import TYPE_CHECKING

import pytest

from pytest_relay.core import CleanupRegistry, RecordingReporter, Runner
from pytest_relay.schema import step
from pytest_relay.settings import RunnerSettings

if TYPE_CHECKING:
    from collections.abc import Callable

if TYPE_CHECKING:
    from pytest_mock import MockerFixture, MockType

if TYPE_CHECKING:
    from pytest_relay.extensions import CleanupPlugin
    from pytest_relay.schema import Step


class FakeSystem(dict):
    """Component map recording lifecycle calls."""

    def __init__(self, *args: object, **kwargs: object) -> None:
        super().__init__(*args, **kwargs)
        self.calls: list[str] = []

    def start(self) -> None:
        self.calls.append('start')

    def stop(self) -> None:
        self.calls.append('stop')


@pytest.fixture
def settings() -> RunnerSettings:
    """Provide settings isolated from the environment and installed plugins."""
    return RunnerSettings(load_plugins=False)


@pytest.fixture
def released() -> list[tuple[str, object]]:
    """Provide the journal of released cleanup entries."""
    return []


@pytest.fixture
def cleanups(released: list[tuple[str, object]]) -> CleanupRegistry:
    """Provide a registry whose handlers record released entries.

    Kind `db/row` always succeeds, kind `db/broken` always raises.
    """
    registry = CleanupRegistry()

    @registry.handler('db/row')
    def release_row(system: object, key: object) -> None:
        released.append(('db/row', key))

    @registry.handler('db/broken')
    def release_broken(system: object, key: object) -> None:
        released.append(('db/broken', key))
        raise RuntimeError(f'can not delete {key!r}')

    return registry


@pytest.fixture
def reporter() -> RecordingReporter:
    """Provide a reporter recording events."""
    return RecordingReporter()


@pytest.fixture
def runner(cleanups: CleanupRegistry, reporter: RecordingReporter,
           settings: RunnerSettings) -> Runner:
    """Provide a runner wired to the recording fixtures."""
    return Runner(cleanups=cleanups, reporter=reporter, settings=settings)


@pytest.fixture
def journal() -> list[str]:
    """Provide the journal of executed step names."""
    return []


@pytest.fixture
def make_step(journal: list[str]) -> 'Callable[..., Step]':
    """Provide a factory of journaling steps.

    The produced step appends its name to the journal, then returns
    the `value` input, raises the `raises` input, or fails the
    `fail` input assertion.
    """
    def factory(name: str, **kwargs: object) -> 'Step':
        @step(name, **kwargs)
        def procedure(inputs: dict, handle: object) -> object:
            journal.append(name)
            if error := inputs.get('raises'):
                raise error
            if inputs.get('fail'):
                handle.check(False, f'{name} failed')
            if kind := inputs.get('register'):
                handle.register(kind, name)
            return inputs.get('value')

        return procedure

    return factory


@pytest.fixture
def patch_entrypoints(mocker: 'MockerFixture') -> 'Callable[..., MockType]':
    """Provide a factory for mocking `importlib.metadata.entry_points`.

    Returns a callable that patches `entry_points()` to simulate
    discovery of plugins in the `relay_cleanups` entry point group.

    The returned factory allows configuring:
    - a successfully loadable plugin,
    - or an exception raised during plugin loading,
    - or an empty entry point list.

    This fixture is intended for testing plugin discovery and error
    handling logic without relying on real installed entry points.
    """
    def patch(*plugins: 'CleanupPlugin | object',
              raises: Exception | None = None) -> 'MockType':
        """Patch `entry_points` with a controlled plugin configuration.

        Args:
            plugins: Plugin objects to be returned by `EntryPoint.load()`.
                If empty, no entry points are registered.
            raises: Exception to raise when `EntryPoint.load()` is called.
                Used to simulate plugin load failures.

        Returns:
            A mock patch object produced by `mocker.patch` that replaces
            `importlib.metadata.entry_points` for the duration of the test.
        """
        entrypoints = []
        for plugin in plugins:
            ep = mocker.Mock(spec=EntryPoint)
            ep.group = 'relay_cleanups'
            ep.name = 'tests'
            ep.value = 'tests.plugins:cleanups'
            ep.load.return_value = plugin
            if raises is not None:
                ep.load.side_effect = raises
            entrypoints.append(ep)

        return mocker.patch(
            'importlib.metadata.entry_points',
            return_value=EntryPoints(entrypoints),
        )

    return patch
