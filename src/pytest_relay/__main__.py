"""Command-line interface for running pytest-relay suites.

A suite module exposes a system constructor and its test definitions:

    # suite.py
    def system(config):
        return SystemMap(db=Database(config['dsn']))

    tests = [create_user, delete_user]

and is run by module name or file path:

    relay run suite.py --config system.yml --tag smoke

When the module has no tests attribute, every module-level test
definition is collected in declaration order.
"""

import logging
from importlib import import_module
from importlib.util import module_from_spec, spec_from_file_location
from pathlib import Path
from typing import TYPE_CHECKING, Any

from click import Choice, ClickException, argument, echo, group, option, pass_context
from click import Path as PathParam
from yaml import YAMLError, safe_load

from pytest_relay.core import LoggingReporter, Runner, find_tests, make_matcher
from pytest_relay.errors import RelayError
from pytest_relay.schema import Test
from pytest_relay.settings import RunnerSettings

if TYPE_CHECKING:
    from types import ModuleType

if TYPE_CHECKING:
    from click import Context

    from pytest_relay.core import TestSelection

LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR')
LOG_FORMAT = '%(asctime)s %(levelname)-8s %(name)s: %(message)s'

InputFilepath = PathParam(
    exists=True,
    dir_okay=False,
    readable=True,
    path_type=Path,
)

OutputFilepath = PathParam(
    dir_okay=False,
    writable=True,
    path_type=Path,
)


def load_module(target: str) -> 'ModuleType':
    """Import a suite module by dotted name or file path.

    Raises:
        ClickException: If the module can not be imported.
    """
    try:
        if target.endswith('.py'):
            path = Path(target)
            spec = spec_from_file_location(path.stem, path)
            if spec is None or spec.loader is None:
                raise ImportError(f'Can not load {target!r}')
            module = module_from_spec(spec)
            spec.loader.exec_module(module)
            return module

        return import_module(target)

    except (ImportError, OSError) as base:
        raise ClickException(f'Can not import suite module {target!r}: {base}') from base


def load_config(path: Path | None) -> Any:  # noqa: ANN401
    """Load the system configuration from a YAML file.

    Raises:
        ClickException: If the file is not valid YAML.
    """
    if path is None:
        return None

    try:
        with path.open('rt', encoding='utf-8') as content:
            return safe_load(content)

    except YAMLError as base:
        raise ClickException(f'Invalid configuration file {path}: {base}') from base


def collect_tests(module: 'ModuleType', attr: str) -> list[Test]:
    """Return the tests of a suite module.

    The named attribute is used when present, otherwise every
    module-level test definition is collected in declaration order.
    """
    if (tests := getattr(module, attr, None)) is not None:
        return list(tests)

    return [
        value
        for value in vars(module).values()
        if isinstance(value, Test)
    ]


def select_tests(module: 'ModuleType', attr: str,
                 tag: str | None, pattern: str | None) -> 'TestSelection':
    """Collect and filter the tests of a suite module."""
    return find_tests(collect_tests(module, attr), make_matcher(tag, pattern))


@group(help='Command-line utilities for pytest-relay suites.')
@option(
    '--log-level',
    type=Choice(LOG_LEVELS, case_sensitive=False),
    default='WARNING',
    show_default=True,
    help='Logging level of the engine and of the report.',
)
def cli(log_level: str) -> None:
    """Root CLI group for pytest-relay tools."""
    logging.basicConfig(level=log_level.upper(), format=LOG_FORMAT)


@cli.command(
    name='run',
    help='Run the tests of a suite module and exit non-zero unless all pass.',
)
@argument('module')
@option(
    '--tests-attr',
    default='tests',
    show_default=True,
    help='Module attribute holding the test definitions.',
)
@option(
    '--system-attr',
    default='system',
    show_default=True,
    help='Module attribute holding the system constructor.',
)
@option('-t', '--tag', help='Run only the tests carrying this metadata tag.')
@option('-k', '--pattern', help='Run only the tests whose name or title matches.')
@option(
    '-c', '--config',
    type=InputFilepath,
    help='YAML file with the configuration passed to the system constructor.',
)
@option(
    '-r', '--report',
    type=OutputFilepath,
    help='Write the suite result as JSON to this file.',
)
@option(
    '--abort-on-assertion',
    is_flag=True,
    default=None,
    help='Stop a step at its first failed assertion.',
)
@option(
    '--strict-plugins',
    is_flag=True,
    default=None,
    help='Fail on cleanup plugin loading issues instead of warning.',
)
@pass_context
def run_suite(ctx: 'Context', module: str, tests_attr: str,  # noqa: PLR0913
              system_attr: str, tag: str | None, pattern: str | None,
              config: Path | None, report: Path | None,
              abort_on_assertion: bool | None, strict_plugins: bool | None) -> None:
    """Run a suite module."""
    suite_module = load_module(module)

    constructor = getattr(suite_module, system_attr, None)
    overrides = {
        key: value
        for key, value in (
            ('abort_on_assertion', abort_on_assertion),
            ('strict_plugins', strict_plugins),
        )
        if value is not None
    }

    try:
        tests = select_tests(suite_module, tests_attr, tag, pattern)
        runner = Runner(
            reporter=LoggingReporter(),
            settings=RunnerSettings(**overrides),
        )
        result = runner.run_suite(constructor, tests, load_config(config))

    except RelayError as base:
        raise ClickException(str(base)) from base

    summary = result.summary()
    for test in result.tests:
        marker = ' (dirty teardown)' if test.dirty_teardown else ''
        echo(f'{test.outcome.upper():5} {test.name}{marker}')
        if test.error is not None:
            echo(test.error.details or test.error.message)

    echo(
        f'{summary['total']} total, {summary['pass']} passed, '
        f'{summary['fail']} failed, {summary['error']} errors',
    )

    if report is not None:
        report.parent.mkdir(parents=True, exist_ok=True)
        report.write_text(result.model_dump_json(indent=2), encoding='utf-8')

    if not result.passed:
        ctx.exit(1)


@cli.command(
    name='list',
    help='List the tests of a suite module selected by the given filters.',
)
@argument('module')
@option(
    '--tests-attr',
    default='tests',
    show_default=True,
    help='Module attribute holding the test definitions.',
)
@option('-t', '--tag', help='List only the tests carrying this metadata tag.')
@option('-k', '--pattern', help='List only the tests whose name or title matches.')
def list_tests(module: str, tests_attr: str,
               tag: str | None, pattern: str | None) -> None:
    """List the tests of a suite module."""
    suite_module = load_module(module)

    try:
        tests = select_tests(suite_module, tests_attr, tag, pattern)
    except RelayError as base:
        raise ClickException(str(base)) from base

    for test in tests:
        tags = ', '.join(sorted(test.tags))
        echo(f'{test.name}' + (f' [{tags}]' if tags else ''))


if __name__ == '__main__':
    cli()
