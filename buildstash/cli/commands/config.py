"""
Native Click implementation of the config command.

Usage: buildstash config [list|get|set] [key] [value]
"""

import click

from ...config import config_get, config_list, config_set

_SECRET_KEYS = {"api.key"}


def _display(key: str, value) -> str:
    if value is None:
        return "(not set)"
    if key in _SECRET_KEYS:
        return "****"
    return str(value)


@click.group("config", invoke_without_command=True)
@click.pass_context
def config(ctx: click.Context) -> None:
    """View or set configuration.

    Config is stored in .buildstash/config.toml

    \b
    Examples:

        buildstash config list                        # List all options

        buildstash config get transfer.max_workers    # Get a value

        buildstash config set transfer.max_workers 8  # Set a value
    """
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@config.command("list")
def config_list_cmd() -> None:
    """List all config options with their effective values."""
    keys = config_list()
    click.echo("Available config options:")
    click.echo("")

    for key, info in keys.items():
        click.echo(f"  {key}")
        click.echo(f"    {info['description']}")
        click.echo(f"    Default: {info['default']}")
        click.echo(f"    Current: {_display(key, config_get(key))}")
        click.echo("")


@config.command("get")
@click.argument("key")
def config_get_cmd(key: str) -> None:
    """Get a config value.

    Arguments:

        KEY    The config key to get (e.g. transfer.max_attempts)
    """
    click.echo(f"{key}: {_display(key, config_get(key))}")


@config.command("set")
@click.argument("key")
@click.argument("value")
def config_set_cmd(key: str, value: str) -> None:
    """Set a config value.

    Arguments:

        KEY    The config key to set

        VALUE  The value to set
    """
    try:
        config_path, typed_value = config_set(key, value)
    except ValueError as e:
        raise click.ClickException(str(e)) from e
    click.echo(f"Set {key} = {_display(key, typed_value)}")
    click.echo(f"Saved to {config_path}")
