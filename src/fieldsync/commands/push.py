"""fieldsync push - write groups from the database to their JSON files."""

from __future__ import annotations

import sys

import click

from fieldsync.cli import FieldSyncContext, pass_ctx


@click.command("push")
@click.argument("slug", required=False)
@click.option("--all", "push_all", is_flag=True, help="Push every group")
@pass_ctx
def push(ctx: FieldSyncContext, slug: str | None, push_all: bool) -> None:
    """Push a group (or --all groups) to the sync directory."""
    if not slug and not push_all:
        click.echo("Error: give a group SLUG or --all", err=True)
        sys.exit(1)
    ctx.ensure_initialized()
    assert ctx.sync is not None and ctx.store is not None and ctx.config is not None

    if not ctx.config.sync_enabled:
        click.echo("Error: sync is disabled (sync-enabled: false)", err=True)
        sys.exit(1)

    if push_all:
        batch = ctx.sync.push_all_groups()
        if ctx.json_output:
            ctx.output(batch.to_dict())
        elif not ctx.quiet:
            click.echo(f"Pushed {batch.succeeded} group(s), {batch.failed} failed")
        for error in batch.errors:
            click.echo(f"  {error}", err=True)
        if batch.failed:
            sys.exit(1)
        return

    group = ctx.store.find_group_by_slug(slug)
    if group is None:
        click.echo(f"Error: group not found: {slug}", err=True)
        sys.exit(1)
    result = ctx.sync.push_group(group.id)
    if ctx.json_output:
        ctx.output(result.to_dict())
    if not result.success:
        click.echo(f"Error: {result.error}", err=True)
        sys.exit(1)
    if not ctx.json_output and not ctx.quiet:
        click.echo(f"Pushed {slug} to {result.path}")
        click.echo(f"  Checksum: {result.checksum}")
