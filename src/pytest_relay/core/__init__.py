"""Execution engine.

This package runs test definitions from `pytest_relay.schema`:

- `Runner` sequences steps within a test and tests within a suite;
- `SystemLifecycle` builds, starts, and stops a system per test;
- `CleanupRegistry` releases resources registered by steps;
- `StepHandle` collects assertion events inside step procedures;
- `find_tests` selects tests by tag or name pattern;
- reporters observe execution events.

The primary public entry points are `Runner`, `run_test`, and `run_tests`.
"""

from .assertions import AssertionFailure, StepHandle
from .cleanup import CleanupEntry, CleanupRegistry, CleanupStack
from .discovery import PatternMatcher, TagMatcher, TestSelection, find_tests, make_matcher
from .reporter import BaseReporter, LoggingReporter, RecordingReporter
from .results import (
    AssertionEvent,
    CleanupResult,
    ErrorInfo,
    Outcome,
    StepResult,
    SuiteResult,
    TestResult,
)
from .runner import Runner, run_test, run_tests
from .system import LifecycleState, SystemLifecycle, SystemMap, lookup_component

__all__ = (
    'AssertionEvent',
    'AssertionFailure',
    'BaseReporter',
    'CleanupEntry',
    'CleanupRegistry',
    'CleanupResult',
    'CleanupStack',
    'ErrorInfo',
    'LifecycleState',
    'LoggingReporter',
    'Outcome',
    'PatternMatcher',
    'RecordingReporter',
    'Runner',
    'StepHandle',
    'StepResult',
    'SuiteResult',
    'SystemLifecycle',
    'SystemMap',
    'TagMatcher',
    'TestResult',
    'TestSelection',
    'find_tests',
    'lookup_component',
    'make_matcher',
    'run_test',
    'run_tests',
)
