"""
Click-based CLI for buildstash.

This module provides the main Click command group and serves as the
entry point for the buildstash CLI.

Usage:
    from buildstash.cli import cli
    cli()  # Invokes the CLI
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

import click

from .context import BuildstashContext

try:
    __version__ = version("buildstash-cli")
except PackageNotFoundError:
    __version__ = "0.1.0"


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="buildstash")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """buildstash - publish build artifacts to Buildstash

    Uploads a build (primary file plus optional expansion file) with its
    version, platform, CI run and version-control provenance.

    \b
    Publishing:
        buildstash upload <file> ...   Upload a build
        buildstash detect              Show detected version-control facts

    \b
    Configuration:
        buildstash config              View or set configuration
    """
    ctx.ensure_object(dict)

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())
        ctx.exit(0)
    else:
        from ..core.bootstrap import bootstrap

        bootstrap()
        ctx.obj = BuildstashContext.create()


def register_commands() -> None:
    """Register all CLI commands with the main group."""
    from .commands import COMMANDS

    for cmd in COMMANDS:
        cli.add_command(cmd)


register_commands()


__all__ = [
    "BuildstashContext",
    "__version__",
    "cli",
    "register_commands",
]
