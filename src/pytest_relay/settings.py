"""Runner settings resolved from the environment."""

from pydantic import Field
from pydantic_settings import SettingsConfigDict

from pytest_relay.models import SettingsModel

DEFAULT_PLUGIN_GROUP = 'relay_cleanups'


class RunnerSettings(SettingsModel):
    """Execution policy of a runner.

    Every field may be provided through an environment variable with
    the `RELAY_` prefix, for example `RELAY_ABORT_ON_ASSERTION=1`.
    """

    model_config = SettingsConfigDict(
        env_prefix='RELAY_',
        frozen=True,
        extra='ignore',
    )

    abort_on_assertion: bool = Field(
        default=False,
        title='Abort on assertion',
        description=(
            'Stop a step at its first failed assertion. '
            'By default failed assertions are recorded and the step '
            'procedure keeps running until it returns.'
        ),
    )

    strict_plugins: bool = Field(
        default=False,
        title='Strict plugins',
        description=(
            'Raise on cleanup plugin loading issues and handler shadowing '
            'instead of emitting warnings.'
        ),
    )

    load_plugins: bool = Field(
        default=True,
        title='Load plugins',
        description='Discover cleanup handlers from installed entry points.',
    )

    plugin_group: str = Field(
        default=DEFAULT_PLUGIN_GROUP,
        title='Plugin entry point group',
    )
