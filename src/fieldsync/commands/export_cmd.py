"""fieldsync export - dump the whole store as a single JSON document."""

from __future__ import annotations

import json
import sys

import click

from fieldsync import __version__
from fieldsync.cli import FieldSyncContext, pass_ctx
from fieldsync.document import build_snapshot
from fieldsync.errors import FilesystemError


@click.command("export")
@click.option("--output", "-o", type=click.Path(dir_okay=False),
              help="Write to FILE instead of stdout")
@click.option("--no-values", is_flag=True, help="Leave out field values")
@pass_ctx
def export_cmd(ctx: FieldSyncContext, output: str | None, no_values: bool) -> None:
    """Export every group, its fields and (optionally) values."""
    ctx.ensure_initialized()
    assert ctx.store is not None and ctx.gateway is not None

    data = build_snapshot(ctx.store, __version__, include_values=not no_values)

    if not output:
        click.echo(json.dumps(data, indent=4, ensure_ascii=False))
        return

    try:
        ctx.gateway.write_document(output, data)
    except FilesystemError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    if not ctx.quiet:
        click.echo(f"Exported {len(data['groups'])} group(s) to {output}")
