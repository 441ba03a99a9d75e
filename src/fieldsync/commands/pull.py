"""fieldsync pull - load groups from their JSON files into the database."""

from __future__ import annotations

import sys

import click

from fieldsync.cli import FieldSyncContext, pass_ctx
from fieldsync.utils import import_summary_lines


@click.command("pull")
@click.argument("slug", required=False)
@click.option("--all", "pull_all", is_flag=True, help="Pull every group file")
@pass_ctx
def pull(ctx: FieldSyncContext, slug: str | None, pull_all: bool) -> None:
    """Pull a group (or --all groups) from the sync directory."""
    if not slug and not pull_all:
        click.echo("Error: give a group SLUG or --all", err=True)
        sys.exit(1)
    ctx.ensure_initialized()
    assert ctx.sync is not None and ctx.config is not None

    if not ctx.config.sync_enabled:
        click.echo("Error: sync is disabled (sync-enabled: false)", err=True)
        sys.exit(1)

    if pull_all:
        batch = ctx.sync.pull_all_groups()
        if ctx.json_output:
            ctx.output(batch.to_dict())
        elif not ctx.quiet:
            click.echo(f"Pulled {batch.succeeded} group(s), {batch.failed} failed")
        for error in batch.errors:
            click.echo(f"  {error}", err=True)
        if batch.failed or (batch.errors and not batch.succeeded):
            sys.exit(1)
        return

    result = ctx.sync.pull_group(slug)
    if ctx.json_output:
        ctx.output(result.to_dict())
    if not result.ok:
        click.echo(f"Error: {result.message}", err=True)
        for message in result.error_messages():
            click.echo(f"  {message}", err=True)
        sys.exit(1)
    if not ctx.json_output and not ctx.quiet:
        for line in import_summary_lines(result):
            click.echo(line)
