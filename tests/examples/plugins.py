"""Example cleanup plugin definition for pytest-relay.

This module demonstrates how to declare a cleanup plugin releasing
resources created by steps. The plugin is exposed by an installed
package through the `relay_cleanups` entry point group.

The example plugin:
- defines a plugin namespace (`example`),
- releases keys of the in-memory store of the example suite.
"""

from pytest_relay.extensions import CleanupPlugin


def release_key(system: dict, key: str) -> None:
    """Remove a key from the store component."""
    del system['store'][key]


example = CleanupPlugin(
    name='example',
    handlers={
        'example/key': release_key,
    },
)
