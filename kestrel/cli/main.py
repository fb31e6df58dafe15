"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Kestrel, a product of Garudex Labs

CLI entry point for Kestrel.

Provides commands for building requests, verifying responses against the
stored client state, inspecting wire messages and showing the state.
"""

import sys
from pathlib import Path
from typing import Optional

import click

from kestrel._version import __version__
from kestrel.cli.context import CLIContext, pass_context
from kestrel.config.settings import get_default_config_path, load_config
from kestrel.exceptions import ConfigurationError
from kestrel.logging_config import get_logger, setup_logging


@click.group()
@click.option(
    '--config',
    '-c',
    type=click.Path(exists=False, dir_okay=False, path_type=Path),
    default=None,
    help=f'Path to configuration file (default: {get_default_config_path()})',
)
@click.option(
    '--log-level',
    '-l',
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'], case_sensitive=False),
    default=None,
    help='Set logging level (default: from configuration)',
)
@click.option(
    '--verbose',
    '-v',
    is_flag=True,
    help='Enable verbose output',
)
@click.version_option(version=__version__, prog_name='kestrel')
@pass_context
def cli(ctx: CLIContext, config: Optional[Path], log_level: Optional[str], verbose: bool):
    """
    Kestrel - key transparency verification.
    
    Verifies search, update and monitoring responses from a key transparency
    log and keeps the trusted client state.
    """
    ctx.verbose = verbose
    ctx.config_path = str(config) if config else None
    
    try:
        ctx.config = load_config(ctx.config_path)
    except ConfigurationError as e:
        click.echo(f"Error: Invalid configuration: {e}", err=True)
        sys.exit(1)
    
    effective_log_level = log_level.upper() if log_level else ctx.config.logging.level
    log_file = Path(ctx.config.logging.file) if ctx.config.logging.file else None
    setup_logging(
        level=effective_log_level,
        log_file=log_file,
        json_format=ctx.config.logging.json_format,
    )
    
    if verbose:
        logger = get_logger("cli")
        logger.info(
            "cli_started",
            config_path=ctx.config_path or "defaults",
            log_level=effective_log_level,
        )


@cli.group()
def request():
    """Build encoded requests from the stored state."""
    pass


from kestrel.cli.requests import monitor_request, search_request, update_request
request.add_command(search_request, name='search')
request.add_command(update_request, name='update')
request.add_command(monitor_request, name='monitor')


@cli.group()
def verify():
    """Verify responses and update the stored state."""
    pass


from kestrel.cli.verify import verify_monitor, verify_search, verify_update
verify.add_command(verify_search, name='search')
verify.add_command(verify_update, name='update')
verify.add_command(verify_monitor, name='monitor')


@cli.group()
def state():
    """Show and manage the stored client state."""
    pass


from kestrel.cli.state import forget, show
state.add_command(show)
state.add_command(forget)


from kestrel.cli.wire import inspect
cli.add_command(inspect)


if __name__ == '__main__':
    cli()
