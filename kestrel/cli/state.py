"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Kestrel, a product of Garudex Labs

CLI commands for the stored client state.
"""

import json
import sys

import click

from kestrel.exceptions import KestrelError


@click.command('show')
@click.option(
    '--format',
    '-f',
    type=click.Choice(['table', 'json'], case_sensitive=False),
    default='table',
    help='Output format (default: table)',
)
@click.pass_context
def show(ctx, format: str):
    """
    Show trusted tree heads and monitored keys.
    
    Examples:
    
        kestrel state show
        
        kestrel state show --format json
    """
    try:
        snapshot = ctx.obj.state_store().load().snapshot()
    except KestrelError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    
    if format.lower() == 'json':
        output = {
            "head": snapshot.head.to_dict() if snapshot.head else None,
            "distinguished": snapshot.distinguished.to_dict() if snapshot.distinguished else None,
            "auditor_head": snapshot.auditor_head.to_dict() if snapshot.auditor_head else None,
            "monitoring": {
                search_key: data.to_dict() for search_key, data in sorted(snapshot.monitoring.items())
            },
        }
        click.echo(json.dumps(output, indent=2))
        return
    
    if snapshot.head is None:
        click.echo("No trusted tree head.")
    else:
        click.echo(f"Tree size:      {snapshot.head.tree_size}")
        click.echo(f"Timestamp (ms): {snapshot.head.timestamp}")
        click.echo(f"Root:           {snapshot.head.root.hex()}")
    if snapshot.distinguished is not None:
        click.echo(f"Distinguished:  size {snapshot.distinguished.tree_size}")
    if snapshot.auditor_head is not None:
        click.echo(f"Auditor head:   size {snapshot.auditor_head.tree_size}")
    click.echo()
    
    if not snapshot.monitoring:
        click.echo("No monitored keys.")
        return
    
    key_width = max(len("Search key"), max(len(key) for key in snapshot.monitoring))
    header = f"{'Search key':<{key_width}}  {'Owned':<5}  {'Pos':>8}  Pointers"
    click.echo(header)
    click.echo("-" * len(header))
    for search_key, data in sorted(snapshot.monitoring.items()):
        pointers = ", ".join(f"{pos}:{counter}" for pos, counter in sorted(data.ptrs.items()))
        click.echo(
            f"{search_key:<{key_width}}  {'yes' if data.owned else 'no':<5}  {data.pos:>8}  {pointers}"
        )


@click.command('forget')
@click.argument('search_key')
@click.pass_context
def forget(ctx, search_key: str):
    """
    Stop monitoring SEARCH_KEY.
    """
    try:
        store = ctx.obj.state_store()
        state = store.load()
        if not state.stop_monitoring(search_key):
            click.echo(f"Error: '{search_key}' is not monitored", err=True)
            sys.exit(1)
        store.save(state)
        click.echo(f"Stopped monitoring {search_key}")
    except KestrelError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
