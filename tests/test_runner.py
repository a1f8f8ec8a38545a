"""Tests for test and suite execution."""

from typing import TYPE_CHECKING

import pytest

from pytest_relay.core import Outcome, RecordingReporter, Runner, run_test, run_tests
from pytest_relay.errors import RelayConfigError, RelayRuntimeError
from pytest_relay.schema import Component, ContextKey, define_test, lookup, step
from pytest_relay.settings import RunnerSettings

from .conftest import FakeSystem

if TYPE_CHECKING:
    from collections.abc import Callable

    from pytest_mock import MockerFixture

    from pytest_relay.schema import Step


def test_steps_run_in_order(runner: Runner, make_step: 'Callable[..., Step]',
                            journal: list[str]) -> None:
    """Run every step of a passing test in declaration order."""
    test = define_test('ordered', make_step('first'), make_step('second'), make_step('third'))

    result = runner.run_test({}, test)

    assert result.outcome is Outcome.PASS
    assert result.passed
    assert journal == ['first', 'second', 'third']
    assert [step.index for step in result.steps] == [0, 1, 2]
    assert result.error is None
    assert result.finished_at >= result.started_at


@pytest.mark.parametrize('inputs, outcome', (
    pytest.param({'fail': True}, Outcome.FAIL, id='failure'),
    pytest.param({'raises': RuntimeError('boom')}, Outcome.ERROR, id='error'),
))
def test_short_circuit(runner: Runner, make_step: 'Callable[..., Step]',
                       journal: list[str], released: list,
                       inputs: dict, outcome: Outcome) -> None:
    """Skip the remaining steps but still release cleanups."""
    test = define_test(
        'short',
        make_step('first', inputs={'register': 'db/row'}),
        make_step('second', inputs=inputs),
        make_step('third'),
    )

    result = runner.run_test({}, test)

    assert result.outcome is outcome
    assert journal == ['first', 'second']
    assert len(result.steps) == 2
    assert result.failed_step is result.steps[1]
    assert released == [('db/row', 'first')]


def test_cleanups_released_in_reverse(runner: Runner, make_step: 'Callable[..., Step]',
                                      released: list) -> None:
    """Release every entry in reverse order despite failures."""
    test = define_test(
        'cleanups',
        make_step('a', inputs={'register': 'db/row'}),
        make_step('b', inputs={'register': 'db/broken'}),
        make_step('c', inputs={'register': 'db/row'}),
    )

    result = runner.run_test({}, test)

    assert released == [('db/row', 'c'), ('db/broken', 'b'), ('db/row', 'a')]
    assert [cleanup.outcome for cleanup in result.cleanups] == [
        Outcome.PASS,
        Outcome.ERROR,
        Outcome.PASS,
    ]
    assert result.outcome is Outcome.PASS
    assert result.dirty_teardown


def test_context_flows_forward(runner: Runner) -> None:
    """Expose outputs to later steps only."""
    seen = []

    @step(inputs={'value': ContextKey(key='x')}, output='x')
    def produce(inputs: dict, handle: object) -> int:
        seen.append(inputs['value'])
        return (inputs['value'] or 0) + 1

    test = define_test('context', produce, produce, produce)

    result = runner.run_test({}, test)

    assert seen == [None, 1, 2]
    assert result.context == {'x': 3}
    assert [step.inputs for step in result.steps] == [{'value': None}, {'value': 1}, {'value': 2}]


def test_initial_context(runner: Runner) -> None:
    """Start a single test from a supplied context."""
    @step(inputs={'name': lookup('user', 'name')}, output='greeting')
    def greet(inputs: dict, handle: object) -> str:
        return f'hello {inputs['name']}'

    result = runner.run_test({}, define_test('greet', greet), {'user': {'name': 'alice'}})

    assert result.context == {'user': {'name': 'alice'}, 'greeting': 'hello alice'}


def test_output_mismatch_is_error(runner: Runner, make_step: 'Callable[..., Step]',
                                  journal: list[str]) -> None:
    """Report length mismatches as step errors without a partial bind."""
    test = define_test(
        'mismatch',
        make_step('pair', inputs={'value': [1, 2, 3]}, output=['a', 'b']),
        make_step('after'),
    )

    result = runner.run_test({}, test)

    assert result.outcome is Outcome.ERROR
    assert journal == ['pair']
    assert result.context == {}
    assert result.error is not None
    assert result.error.type == 'OutputMismatchError'
    assert result.steps[0].value == [1, 2, 3]


def test_missing_component_is_error(runner: Runner) -> None:
    """Report missing components as step errors."""
    @step(inputs={'db': Component(key='db')})
    def query(inputs: dict, handle: object) -> None:
        return None

    result = runner.run_test({'cache': object()}, define_test('query', query))

    assert result.outcome is Outcome.ERROR
    assert result.error is not None
    assert result.error.type == 'MissingComponentError'
    assert "Missing component 'db'" in result.error.message
    assert "on test 'query', step 1" in (result.error.details or '')


def test_error_details(runner: Runner) -> None:
    """Capture the message, the traceback, and where the error happened."""
    @step('users.fetch', inputs={'user_id': 7})
    def fetch(inputs: dict, handle: object) -> None:
        raise LookupError('user 7 not found')

    result = runner.run_test({}, define_test('fetch', fetch), {'token': 'abc'})
    error = result.steps[0].error

    assert error is not None
    assert error.type == 'LookupError'
    assert error.message == 'user 7 not found'
    assert 'LookupError' in (error.traceback or '')
    assert 'step: users.fetch' in (error.details or '')
    assert 'token: abc' in (error.details or '')


def test_error_details_with_cyclic_context(runner: Runner) -> None:
    """Describe step errors when the context references itself."""
    @step
    def explode(inputs: dict, handle: object) -> None:
        raise RuntimeError('exploded')

    node: dict = {'name': 'root'}
    node['self'] = node

    result = runner.run_test({}, define_test('cyclic', explode), {'node': node})
    error = result.steps[0].error

    assert result.outcome is Outcome.ERROR
    assert error is not None
    assert error.message == 'exploded'
    assert 'self: <runtime object>' in (error.details or '')


def test_error_details_fallback(runner: Runner, mocker: 'MockerFixture') -> None:
    """Fall back to the error representation when details can not be rendered."""
    mocker.patch.object(RelayRuntimeError, 'format', side_effect=ValueError('unrenderable'))

    @step
    def explode(inputs: dict, handle: object) -> None:
        raise RuntimeError('exploded')

    result = runner.run_test({}, define_test('unrenderable', explode))
    error = result.steps[0].error

    assert result.outcome is Outcome.ERROR
    assert error is not None
    assert error.details == "RuntimeError('exploded')"


def test_output_function_with_non_string_keys(runner: Runner,
                                              make_step: 'Callable[..., Step]',
                                              journal: list[str]) -> None:
    """Report non-string context keys as step errors and keep the suite going."""
    tests = [
        define_test(
            'numbered',
            make_step('keyed', inputs={'value': 'x'}, output=lambda ctx, value: {**ctx, 1: value}),
            make_step('skipped'),
        ),
        define_test('following', make_step('ok')),
    ]

    suite = runner.run_suite(lambda config: FakeSystem(), tests)
    numbered, following = suite.tests

    assert numbered.outcome is Outcome.ERROR
    assert numbered.error is not None
    assert numbered.error.type == 'OutputMismatchError'
    assert numbered.context == {}
    assert following.outcome is Outcome.PASS
    assert journal == ['keyed', 'ok']


def test_bare_assertion_is_failure(runner: Runner) -> None:
    """Classify a bare `AssertionError` as a failed assertion."""
    @step
    def check(inputs: dict, handle: object) -> None:
        raise AssertionError('numbers differ')

    result = runner.run_test({}, define_test('bare', check))

    assert result.outcome is Outcome.FAIL
    assert result.error is None
    assert [event.message for event in result.steps[0].failures] == ['numbers differ']


def test_assertions_collected(runner: Runner) -> None:
    """Run the whole procedure and record every event by default."""
    @step(output='done')
    def check(inputs: dict, handle: object) -> bool:
        handle.equal(1, 2, 'first')
        handle.equal(2, 2, 'second')
        return True

    result = runner.run_test({}, define_test('collected', check))

    assert result.outcome is Outcome.FAIL
    assert [event.type for event in result.steps[0].events] == ['fail', 'pass']
    assert result.context == {'done': True}


def test_abort_on_assertion(cleanups: object, reporter: RecordingReporter) -> None:
    """Stop the procedure at the first failed assertion."""
    runner = Runner(
        cleanups=cleanups,  # type: ignore[arg-type]
        reporter=reporter,
        settings=RunnerSettings(load_plugins=False, abort_on_assertion=True),
    )

    @step(output='done')
    def check(inputs: dict, handle: object) -> bool:
        handle.equal(1, 2, 'first')
        handle.equal(2, 2, 'second')
        return True

    result = runner.run_test({}, define_test('aborted', check))

    assert result.outcome is Outcome.FAIL
    assert [event.message for event in result.steps[0].events] == ['first']
    assert result.context == {}


def test_step_bindings_reuse_template(runner: Runner) -> None:
    """Reuse one template with different bindings in one test."""
    @step(inputs={'amount': 1}, output='total')
    def add(inputs: dict, handle: object) -> int:
        return inputs['amount'] + (inputs.get('total') or 0)

    test = define_test(
        'bindings',
        add.bind(inputs={'total': ContextKey(key='total')}),
        add.bind(inputs={'amount': 10, 'total': ContextKey(key='total')}, title='Add ten'),
        add.bind(output='last', inputs={'amount': 100}),
    )

    result = runner.run_test({}, test)

    assert result.context == {'total': 11, 'last': 100}
    assert [step.title for step in result.steps] == [None, 'Add ten', None]


def test_empty_test_passes(runner: Runner) -> None:
    """Pass a test without steps."""
    result = runner.run_test({}, define_test('empty'))

    assert result.outcome is Outcome.PASS
    assert result.steps == ()


def test_run_test_rejects_non_tests(runner: Runner) -> None:
    """Reject values which are not test definitions."""
    with pytest.raises(RelayConfigError):
        runner.run_test({}, 'not a test')  # type: ignore[arg-type]


def test_run_test_rejects_non_string_context_keys(runner: Runner) -> None:
    """Reject initial contexts with non-string keys."""
    with pytest.raises(RelayConfigError, match='got 1'):
        runner.run_test({}, define_test('numbered'), {1: 'x'})  # type: ignore[dict-item]


def test_suite_isolates_failures(runner: Runner, make_step: 'Callable[..., Step]',
                                 journal: list[str]) -> None:
    """Run every test against a fresh system despite earlier failures."""
    systems: list[FakeSystem] = []

    def constructor(config: object) -> FakeSystem:
        systems.append(FakeSystem(config=config))
        return systems[-1]

    tests = [
        define_test('broken', make_step('boom', inputs={'raises': RuntimeError('boom')})),
        define_test('failing', make_step('fail', inputs={'fail': True})),
        define_test('passing', make_step('ok')),
    ]

    suite = runner.run_suite(constructor, tests, 'config')

    assert [result.name for result in suite.tests] == ['broken', 'failing', 'passing']
    assert [result.outcome for result in suite.tests] == [Outcome.ERROR, Outcome.FAIL, Outcome.PASS]
    assert journal == ['boom', 'fail', 'ok']
    assert len(systems) == 3
    assert all(system.calls == ['start', 'stop'] for system in systems)
    assert all(system['config'] == 'config' for system in systems)
    assert suite.passed is False
    assert suite.summary() == {
        'total': 3,
        'pass': 1,
        'fail': 1,
        'error': 1,
        'dirty': 0,
        'passed': False,
    }


def test_suite_start_failure(runner: Runner, make_step: 'Callable[..., Step]',
                             journal: list[str]) -> None:
    """Error a test whose system fails to start, without steps or stop."""
    stops = []

    class Broken(FakeSystem):
        def start(self) -> None:
            raise ConnectionError('database is down')

        def stop(self) -> None:
            stops.append('stop')

    suite = runner.run_suite(lambda config: Broken(), [define_test('t', make_step('never'))])
    result = suite.tests[0]

    assert result.outcome is Outcome.ERROR
    assert result.steps == ()
    assert result.cleanups == ()
    assert result.error is not None
    assert result.error.type == 'LifecycleError'
    assert 'database is down' in result.error.message
    assert journal == []
    assert stops == []


def test_suite_stop_failure(runner: Runner, make_step: 'Callable[..., Step]') -> None:
    """Record stop failures without failing the test."""
    class Flaky(FakeSystem):
        def stop(self) -> None:
            raise TimeoutError('stop timed out')

    suite = runner.run_suite(lambda config: Flaky(), [define_test('t', make_step('ok'))])
    result = suite.tests[0]

    assert result.outcome is Outcome.PASS
    assert result.stop_error is not None
    assert result.stop_error.type == 'TimeoutError'
    assert result.dirty_teardown
    assert suite.passed
    assert suite.summary()['dirty'] == 1


def test_teardown_order(runner: Runner) -> None:
    """Drain cleanups before stopping the system."""
    events: list[str] = []

    class Recording(FakeSystem):
        def stop(self) -> None:
            events.append('stop')

    runner.cleanups.register('tmp', lambda system, key: events.append(f'cleanup {key}'))

    @step
    def create(inputs: dict, handle: object) -> None:
        events.append('step')
        handle.register('tmp', 'file')

    runner.run_suite(lambda config: Recording(), [define_test('t', create)])

    assert events == ['step', 'cleanup file', 'stop']


def test_reporter_event_order(runner: Runner, reporter: RecordingReporter,
                              make_step: 'Callable[..., Step]') -> None:
    """Emit events in the order they occur."""
    tests = [
        define_test('first', make_step('a', inputs={'register': 'db/row'}), make_step('b')),
        define_test('second', make_step('c', inputs={'fail': True}), make_step('d')),
    ]

    runner.run_suite(lambda config: FakeSystem(), tests)

    assert reporter.names == [
        'test_started',
        'step_started', 'step_finished',
        'step_started', 'step_finished',
        'cleanup_finished',
        'test_finished',
        'test_started',
        'step_started', 'step_finished',
        'test_finished',
        'suite_finished',
    ]


def test_reporter_errors_are_ignored(cleanups: object, settings: RunnerSettings,
                                     make_step: 'Callable[..., Step]') -> None:
    """Keep executing when a reporter callback raises."""
    class Broken(RecordingReporter):
        def step_finished(self, test: object, result: object) -> None:
            raise RuntimeError('reporter is broken')

    runner = Runner(cleanups=cleanups, reporter=Broken(), settings=settings)  # type: ignore[arg-type]
    result = runner.run_test({}, define_test('t', make_step('a'), make_step('b')))

    assert result.outcome is Outcome.PASS
    assert len(result.steps) == 2


@pytest.mark.parametrize('constructor, tests', (
    pytest.param(None, [], id='absent constructor'),
    pytest.param('not callable', [], id='not callable'),
    pytest.param(lambda config: {}, ['not a test'], id='not a test'),
))
def test_suite_misconfiguration(runner: Runner, constructor: object, tests: list) -> None:
    """Raise only for suite-level misconfiguration."""
    with pytest.raises(RelayConfigError):
        runner.run_suite(constructor, tests)  # type: ignore[arg-type]


def test_module_level_helpers(mocker: object, make_step: 'Callable[..., Step]') -> None:
    """Run tests with default runners."""
    mocker.patch.dict('os.environ', {'RELAY_LOAD_PLUGINS': '0'})  # type: ignore[attr-defined]

    passing = define_test('passing', make_step('ok'))
    failing = define_test('failing', make_step('fail', inputs={'fail': True}))

    assert run_test({}, passing).passed
    assert run_tests(lambda config: {}, [passing]) is True
    assert run_tests(lambda config: {}, [passing, failing]) is False
    assert run_tests(lambda config: {}, []) is True
