"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Kestrel, a product of Garudex Labs

CLI commands that verify responses.

Each command decodes a request and the log's response, verifies the
response against the stored state and saves the new state. Exit status is
1 for rejected responses and 2 when the response proves the log misbehaved.
"""

import sys
from pathlib import Path

import click

from kestrel.exceptions import KestrelError, LogMisbehaviorError
from kestrel.wire.codec import decode
from kestrel.wire.messages import (
    MonitorRequest,
    MonitorResponse,
    SearchRequest,
    SearchResponse,
    UpdateRequest,
    UpdateResponse,
)

EXIT_REJECTED = 1
EXIT_MISBEHAVIOR = 2

_request_option = click.option(
    '--request',
    '-r',
    'request_file',
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    required=True,
    help='Encoded request that was sent to the log',
)
_response_option = click.option(
    '--response',
    '-s',
    'response_file',
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    required=True,
    help='Encoded response returned by the log',
)


def _run(ctx, operation: str, request_type, response_type, request_file: Path, response_file: Path):
    """Decode, verify, save. Returns the verification result."""
    cli_ctx = ctx.obj
    try:
        session, store = cli_ctx.open_session()
        request = decode(request_type, request_file.read_bytes())
        response = decode(response_type, response_file.read_bytes())
        result = getattr(session, f"verify_{operation}")(request, response)
        store.save(session.state)
        return result
    except LogMisbehaviorError as e:
        click.echo(f"LOG MISBEHAVIOR: {type(e).__name__}: {e}", err=True)
        sys.exit(EXIT_MISBEHAVIOR)
    except KestrelError as e:
        click.echo(f"Rejected: {type(e).__name__}: {e}", err=True)
        sys.exit(EXIT_REJECTED)


@click.command('search')
@_request_option
@_response_option
@click.pass_context
def verify_search(ctx, request_file: Path, response_file: Path):
    """
    Verify a SearchResponse and print the found value.
    
    Examples:
    
        kestrel verify search -r search.bin -s search-response.bin
    """
    result = _run(ctx, "search", SearchRequest, SearchResponse, request_file, response_file)
    click.echo(f"Search key: {result.search_key}")
    click.echo(f"Version:    {result.version}")
    click.echo(f"Position:   {result.position}")
    click.echo(f"Tree size:  {result.head.tree_size}")
    click.echo(f"Value:      {result.value.hex()}")


@click.command('update')
@_request_option
@_response_option
@click.pass_context
def verify_update(ctx, request_file: Path, response_file: Path):
    """
    Verify an UpdateResponse and start monitoring the key as owned.
    """
    result = _run(ctx, "update", UpdateRequest, UpdateResponse, request_file, response_file)
    click.echo(
        f"Updated {result.search_key} to version {result.version} "
        f"at position {result.position} (tree size {result.head.tree_size})"
    )


@click.command('monitor')
@_request_option
@_response_option
@click.pass_context
def verify_monitor(ctx, request_file: Path, response_file: Path):
    """
    Verify a MonitorResponse for all monitored keys.
    """
    result = _run(ctx, "monitor", MonitorRequest, MonitorResponse, request_file, response_file)
    click.echo(f"Monitored {len(result.monitoring)} keys at tree size {result.head.tree_size}")
    if ctx.obj.verbose:
        for search_key, data in sorted(result.monitoring.items()):
            pointers = ", ".join(f"{pos}:{counter}" for pos, counter in sorted(data.ptrs.items()))
            click.echo(f"  {search_key}: {pointers}")
