"""
Entry point for the `buildstash` command-line interface.

buildstash publishes build artifacts (a primary file and an optional
expansion file) to the Buildstash registry with version, CI and
version-control provenance.

This module provides the main() entry point that delegates to the Click CLI.
"""


def main():
    """Main entry point for the buildstash CLI."""
    from .cli import cli

    cli()


if __name__ == "__main__":
    main()
