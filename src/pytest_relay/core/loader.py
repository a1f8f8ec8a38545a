"""Cleanup plugin discovery and loading infrastructure.

This module defines a mixin responsible for discovering, loading, and
registering cleanup plugins exposed via Python entry points.

Plugins are loaded defensively: individual failures do not interrupt
the loading process unless strict mode is enabled.
"""

import logging
from typing import TYPE_CHECKING
from warnings import warn

from pydantic import ValidationError

from pytest_relay.errors import PluginError, PluginWarning
from pytest_relay.extensions import CleanupPlugin
from pytest_relay.settings import DEFAULT_PLUGIN_GROUP

if TYPE_CHECKING:
    from importlib.metadata import EntryPoint

if TYPE_CHECKING:
    from pytest_relay.extensions import CleanupHandler

logger = logging.getLogger(__name__)


class CleanupLoaderMixin:
    """Mixin defining cleanup plugin loading behavior.

    Implementers are expected to override `register` to perform actual
    registration. This class provides only orchestration and
    error-handling logic.

    Attributes:
        strict_mode: If True, any plugin loading issue raises an error.
            If False, issues are emitted as warnings and loading continues.
    """

    strict_mode: bool = False

    handlers: dict[str, 'CleanupHandler']

    def register(self, kind: str, handler: 'CleanupHandler',
                 entrypoint: 'EntryPoint | None' = None) -> None:
        """Register a cleanup handler.

        Args:
            kind: Resource kind.
            handler: Handler releasing resources of that kind.
            entrypoint: Entry point from which the handler was loaded.
        """
        raise NotImplementedError  # pragma: no cover

    def emit_plugin_issue(self, message: str,
                          entrypoint: 'EntryPoint | None' = None) -> Exception | None:
        """Emit a plugin warning or return the exception.

        Args:
            message: Warning message to emit.
            entrypoint: Entry point from which the plugin was loaded, if applicable.

        Returns:
            PluginError on strict mode, otherwise `None`
                with producing a PluginWarning.
        """
        if self.strict_mode:
            return PluginError(message, entrypoint=entrypoint)

        warn(message, category=PluginWarning, stacklevel=3)

        return None

    def _load_plugin(self, entrypoint: 'EntryPoint') -> None:
        """Load and process a single plugin entry point.

        Args:
            entrypoint: Entry point describing the plugin to load.

        Raises:
            PluginError: If any loading issues occur on strict mode.
        """
        try:
            plugin = entrypoint.load()

        except ValidationError as base:
            if error := self.emit_plugin_issue(
                f'Failed to validate entrypoint {entrypoint.name!r}',
                entrypoint,
            ):
                raise error from base
            return None

        except Exception as base:
            if error := self.emit_plugin_issue(
                f'Failed to load entrypoint {entrypoint.name!r}',
                entrypoint,
            ):
                raise error from base
            return None

        if not isinstance(plugin, CleanupPlugin):
            if error := self.emit_plugin_issue(
                f'Loaded from entrypoint {entrypoint.name!r} object is not a cleanup plugin',
                entrypoint,
            ):
                raise error
            return None

        logger.debug('Loading cleanup plugin %r from %r', plugin.name, entrypoint.value)

        for kind, handler in plugin.handlers.items():
            self.register(kind, handler, entrypoint)

        return None

    def load_plugins(self, group: str = DEFAULT_PLUGIN_GROUP) -> None:
        """Load plugins via entry points and register their handlers.

        Args:
            group: Entry point group to discover plugins from.

        Raises:
            PluginError: If any loading issues occur on strict mode.
        """
        from importlib.metadata import entry_points  # noqa: PLC0415

        for entrypoint in entry_points().select(group=group):
            self._load_plugin(entrypoint)
