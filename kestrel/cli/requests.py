"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Kestrel, a product of Garudex Labs

CLI commands that build encoded requests.

Requests carry the tree sizes the client already trusts, so they are built
from the stored state and must be verified against the same state.
"""

import sys
from pathlib import Path
from typing import Optional

import click

from kestrel.client.session import (
    build_monitor_request,
    build_search_request,
    build_update_request,
)
from kestrel.exceptions import KestrelError
from kestrel.wire.codec import encode


def _write(output: Path, message) -> None:
    data = encode(message)
    output.write_bytes(data)
    click.echo(f"Wrote {type(message).__name__} ({len(data)} bytes) to {output}")


@click.command('search')
@click.argument('search_key')
@click.option(
    '--version',
    'key_version',
    type=click.IntRange(min=0),
    default=None,
    help='Version to look up (default: greatest version)',
)
@click.option(
    '--output',
    '-o',
    type=click.Path(dir_okay=False, writable=True, path_type=Path),
    required=True,
    help='File to write the encoded SearchRequest to',
)
@click.pass_context
def search_request(ctx, search_key: str, key_version: Optional[int], output: Path):
    """
    Build a SearchRequest for SEARCH_KEY.
    
    Examples:
    
        kestrel request search alice -o search.bin
        
        kestrel request search alice --version 2 -o search.bin
    """
    try:
        state = ctx.obj.state_store().load()
        _write(output, build_search_request(state, search_key, key_version))
    except KestrelError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@click.command('update')
@click.argument('search_key')
@click.option(
    '--value-file',
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    required=True,
    help='File holding the new value',
)
@click.option(
    '--output',
    '-o',
    type=click.Path(dir_okay=False, writable=True, path_type=Path),
    required=True,
    help='File to write the encoded UpdateRequest to',
)
@click.pass_context
def update_request(ctx, search_key: str, value_file: Path, output: Path):
    """
    Build an UpdateRequest setting SEARCH_KEY to the contents of a file.
    
    Examples:
    
        kestrel request update alice --value-file identity.key -o update.bin
    """
    try:
        state = ctx.obj.state_store().load()
        _write(output, build_update_request(state, search_key, value_file.read_bytes()))
    except KestrelError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@click.command('monitor')
@click.option(
    '--output',
    '-o',
    type=click.Path(dir_okay=False, writable=True, path_type=Path),
    required=True,
    help='File to write the encoded MonitorRequest to',
)
@click.pass_context
def monitor_request(ctx, output: Path):
    """
    Build a MonitorRequest for every monitored key.
    """
    try:
        state = ctx.obj.state_store().load()
        _write(output, build_monitor_request(state))
    except (ValueError, KestrelError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
