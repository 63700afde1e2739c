#!/usr/bin/env python3
"""
DropForge - Command Line Interface

Publish asset manifests to the blob store, inspect collections and their
slots on the ledger, and build or resolve mint share links.
"""

import sys
from typing import Optional

import click

from cli import __version__
from cli.commands.collection import collections, publish, resolve_link, share, show, slots
from cli.commands.config import config
from cli.config import OUTPUT_FORMATS, PROFILES
from cli.context import CLIContext, handle_cli_error, pass_context


@click.group(context_settings={'help_option_names': ['-h', '--help']})
@click.option('--config-file', '-c',
              help='Path to configuration file')
@click.option('--profile', '-p',
              type=click.Choice(sorted(PROFILES)),
              help='Configuration profile')
@click.option('--output-format', '-o',
              type=click.Choice(OUTPUT_FORMATS),
              help='Output format (default: cli.output_format from configuration)')
@click.option('--verbose', '-v',
              count=True,
              help='Increase verbosity (-v for INFO, -vv for DEBUG)')
@click.version_option(__version__, prog_name='dropforge')
@pass_context
@handle_cli_error
def cli(ctx: CLIContext, config_file: Optional[str], profile: Optional[str],
        output_format: Optional[str], verbose: int):
    """
    DropForge Command Line Interface

    Publish numbered NFT collections backed by Walrus blobs and inspect
    their mint progress.

    Examples:
        dropforge publish art/*.png
        dropforge show 0x5f...
        dropforge share 0x5f... 2
        dropforge resolve-link "https://dropforge.app/collections/0x5f...?mintIndex=2"
    """
    ctx.config_file = config_file
    ctx.profile = profile
    ctx.output_format = output_format or ctx.config.get('cli.output_format', 'table')
    ctx.verbose = verbose or int(ctx.config.get('cli.verbose', 0))

    if ctx.output_format not in OUTPUT_FORMATS:
        raise click.ClickException(
            f"Invalid cli.output_format in configuration: {ctx.output_format}"
        )

    ctx.setup_logging()
    ctx.logger.debug("CLI initialized with context")


def register_commands():
    """Register all command modules with the main CLI."""
    for command in (publish, show, slots, collections, share, resolve_link, config):
        cli.add_command(command)


register_commands()


def main():
    cli()


if __name__ == '__main__':
    sys.exit(main())
