"""Declarative definitions of steps, tests, inputs, and outputs.

Defines immutable Pydantic models that describe step templates and their
bindings, tests, input sources and output specifications. The package
specifies the structural contract of test definitions and is consumed by
the execution engine in `pytest_relay.core`.
"""

from .cases import Test, define_test
from .inputs import (
    Component,
    Const,
    ContextFunction,
    ContextKey,
    ContextPath,
    InputSource,
    lookup,
    resolve_inputs,
)
from .outputs import OutputFunction, OutputKey, OutputKeys, OutputSpec, register_output
from .steps import Step, StepInstance, StepProcedure, step

__all__ = (
    'Component',
    'Const',
    'ContextFunction',
    'ContextKey',
    'ContextPath',
    'InputSource',
    'OutputFunction',
    'OutputKey',
    'OutputKeys',
    'OutputSpec',
    'Step',
    'StepInstance',
    'StepProcedure',
    'Test',
    'define_test',
    'lookup',
    'register_output',
    'resolve_inputs',
    'step',
)
