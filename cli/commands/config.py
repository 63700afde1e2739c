#!/usr/bin/env python3
"""
Configuration Management Commands for the DropForge CLI
"""

import sys
from typing import Optional

import click

from cli.context import CLIContext, config_summary, handle_cli_error, pass_context


@click.group()
@pass_context
def config(ctx: CLIContext):
    """
    Configuration management commands.

    Inspect the merged configuration and validate it.
    """
    ctx.logger.debug("Config command group invoked")


@config.command('show')
@click.option('--key', help='Specific configuration key to show (dot notation)')
@click.option('--sources', is_flag=True, help='Show configuration sources')
@pass_context
@handle_cli_error
def show_config(ctx: CLIContext, key: Optional[str], sources: bool):
    """Show the merged configuration."""
    manager = ctx.config

    if sources:
        ctx.output(manager.get_sources())
        return

    if key:
        config_data = manager.get(key)
        if config_data is None:
            raise click.ClickException(f"Configuration key not found: {key}")
        if not isinstance(config_data, dict):
            ctx.output({key: config_data})
            return
    else:
        config_data = manager.load()

    ctx.output(config_summary(config_data) if ctx.output_format == "table" else config_data)


@config.command('validate')
@pass_context
@handle_cli_error
def validate_config(ctx: CLIContext):
    """Validate the merged configuration."""
    errors = ctx.config.validate()

    if not errors:
        click.echo("Configuration is valid.")
        return

    click.echo(f"Found {len(errors)} configuration error(s):", err=True)
    for error in errors:
        click.echo(f"  - {error}", err=True)
    sys.exit(1)
