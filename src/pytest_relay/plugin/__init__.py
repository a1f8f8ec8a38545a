"""Pytest plugin for running pytest-relay test definitions.

This module integrates the engine with pytest by:
- registering custom command-line options;
- configuring shared runner settings and a cleanup handler registry;
- collecting module-level test definitions as pytest test items;
- providing fixtures for running tests from regular pytest functions.

A test definition bound to a module-level name matching the pytest
function prefix (`test_*` by default) is collected as a `TestCase`.
"""

from typing import TYPE_CHECKING

import pytest

from pytest_relay.core import CleanupRegistry, RecordingReporter, Runner
from pytest_relay.schema import Test
from pytest_relay.settings import RunnerSettings

from .case import TestCase

if TYPE_CHECKING:
    from _pytest.config import Config
    from _pytest.config.argparsing import Parser
    from _pytest.python import PyCollector


def pytest_addoption(parser: 'Parser') -> None:
    """Register pytest command-line options for pytest-relay.

    Args:
        parser: Pytest argument parser.
    """
    group = parser.getgroup('relay', 'integration-test execution engine')
    group.addoption(
        '--relay-abort-on-assertion',
        action='store_true',
        dest='relay_abort_on_assertion',
        default=False,
        help='Stop a step at its first failed assertion.',
    )
    group.addoption(
        '--relay-strict-plugins',
        action='store_true',
        dest='relay_strict_plugins',
        default=False,
        help=(
            'Fail on cleanup plugin loading issues and handler shadowing '
            'instead of emitting warnings.'
        ),
    )


def pytest_configure(config: 'Config') -> None:
    """Configure pytest-relay integration.

    This hook resolves runner settings from the environment and the
    command line, and attaches them to the pytest configuration object
    as `config.relay_settings`, together with a cleanup registry
    populated from installed plugins as `config.relay_cleanups`.

    Args:
        config: Pytest configuration object.
    """
    overrides = {}
    if config.getoption('relay_abort_on_assertion', default=False):
        overrides['abort_on_assertion'] = True
    if config.getoption('relay_strict_plugins', default=False):
        overrides['strict_plugins'] = True

    settings = RunnerSettings(**overrides)

    cleanups = CleanupRegistry(strict=settings.strict_plugins)
    if settings.load_plugins:
        cleanups.load_plugins(settings.plugin_group)

    config.relay_settings = settings  # type: ignore[attr-defined]
    config.relay_cleanups = cleanups  # type: ignore[attr-defined]


@pytest.hookimpl(tryfirst=True)
def pytest_pycollect_makeitem(collector: 'PyCollector', name: str,
                              obj: object) -> TestCase | None:
    """Collect module-level test definitions.

    Args:
        collector: Module collector.
        name: Attribute name of the object.
        obj: Collected object.

    Returns:
        A `TestCase` item for test definitions with a matching name,
        otherwise `None` to let pytest collect the object.
    """
    if not isinstance(obj, Test) or not isinstance(collector, pytest.Module):
        return None

    if not collector.funcnamefilter(name):
        return None

    return TestCase.from_parent(collector, name=name, test=obj)


@pytest.fixture
def relay_settings(pytestconfig: pytest.Config) -> RunnerSettings:
    """Runner settings resolved for the session."""
    return pytestconfig.relay_settings  # type: ignore[attr-defined]


@pytest.fixture
def relay_cleanups(pytestconfig: pytest.Config) -> CleanupRegistry:
    """Cleanup handler registry isolated per test.

    The registry starts with the handlers of installed plugins; handlers
    registered by the test do not leak into other tests.
    """
    shared: CleanupRegistry = pytestconfig.relay_cleanups  # type: ignore[attr-defined]

    return CleanupRegistry(dict(shared.handlers), strict=shared.strict_mode)


@pytest.fixture
def relay_reporter() -> RecordingReporter:
    """Reporter recording the events of the test."""
    return RecordingReporter()


@pytest.fixture
def relay_runner(relay_cleanups: CleanupRegistry,
                 relay_reporter: RecordingReporter,
                 relay_settings: RunnerSettings) -> Runner:
    """Runner wired to the per-test registry and reporter."""
    return Runner(
        cleanups=relay_cleanups,
        reporter=relay_reporter,
        settings=relay_settings,
    )
