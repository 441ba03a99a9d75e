"""fieldsync import - load an export document into the store."""

from __future__ import annotations

import sys

import click

from fieldsync.cli import FieldSyncContext, pass_ctx
from fieldsync.errors import FilesystemError
from fieldsync.importer import MODE_MERGE, MODE_REPLACE, import_document
from fieldsync.utils import import_summary_lines


@click.command("import")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--mode", type=click.Choice([MODE_MERGE, MODE_REPLACE]), default=MODE_MERGE,
              show_default=True,
              help="merge: create/update groups by slug; replace: delete all groups first")
@pass_ctx
def import_cmd(ctx: FieldSyncContext, file: str, mode: str) -> None:
    """Import groups (and values) from FILE."""
    ctx.ensure_initialized()
    assert ctx.store is not None and ctx.gateway is not None

    try:
        data = ctx.gateway.read_document(file)
    except FilesystemError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    result = import_document(ctx.store, data, mode=mode, source=file)

    if ctx.json_output:
        ctx.output(result.to_dict())
    elif not ctx.quiet:
        for line in import_summary_lines(result):
            click.echo(line)

    if not result.ok:
        if not ctx.json_output:
            for message in result.error_messages():
                click.echo(f"  {message}", err=True)
        sys.exit(1)
