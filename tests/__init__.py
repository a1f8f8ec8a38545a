"""Test suite for the pytest-relay package.

This package contains unit and integration tests validating step and
test definitions, input and output protocols, cleanup and lifecycle
guarantees, execution semantics, and the command line and pytest
integrations.
"""
