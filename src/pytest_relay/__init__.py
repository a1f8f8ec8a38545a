"""Integration-test execution engine with a pytest plugin.

The `pytest_relay` package runs ordered sequences of test steps against
a lifecycle-managed system of external dependencies, threading a growing
context of values between steps, and produces a structured report.

Key features:
- immutable, reusable step templates bound per test with overrides;
- declarative inputs resolved from the system and the context;
- declarative outputs folded back into the context;
- guaranteed reverse-order cleanup of resources created by steps;
- a fresh system per test with guaranteed stop;
- selection of tests by metadata tag or name pattern;
- a command line and pytest integration.
"""
