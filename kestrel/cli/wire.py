"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Kestrel, a product of Garudex Labs

CLI command for decoding wire messages.
"""

import json
import sys
from pathlib import Path

import click

from kestrel import wire
from kestrel.exceptions import WireFormatError
from kestrel.wire.codec import decode
from kestrel.wire.schema import MESSAGES


@click.command('inspect')
@click.argument('message_type', type=click.Choice(sorted(MESSAGES)))
@click.argument('path', type=click.Path(exists=True, dir_okay=False, path_type=Path))
def inspect(message_type: str, path: Path):
    """
    Decode a protobuf encoded MESSAGE_TYPE from PATH and print it as JSON.
    
    Examples:
    
        kestrel inspect SearchResponse search-response.bin
    """
    try:
        message = decode(getattr(wire, message_type), path.read_bytes())
    except WireFormatError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    click.echo(json.dumps(message.to_dict(), indent=2))
