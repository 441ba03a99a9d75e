"""fieldsync status - per-group sync status between database and files."""

from __future__ import annotations

import click

from fieldsync.cli import FieldSyncContext, pass_ctx
from fieldsync.utils import format_group_row


@click.command("status")
@click.argument("slug", required=False)
@pass_ctx
def status(ctx: FieldSyncContext, slug: str | None) -> None:
    """Show which groups need a push or a pull."""
    ctx.ensure_initialized()
    assert ctx.sync is not None and ctx.gateway is not None

    if slug:
        entry = ctx.sync.classifier.classify_slug(slug)
        if ctx.json_output:
            ctx.output(entry.to_dict())
            return
        click.echo(format_group_row(entry))
        if entry.description:
            click.echo(f"  {entry.description}")
        if entry.db_checksum or entry.file_checksum:
            click.echo(f"  database: {entry.db_checksum or '-'}")
            click.echo(f"  file:     {entry.file_checksum or '-'}")
        return

    report = ctx.sync.get_sync_status()
    if ctx.json_output:
        ctx.output(report.to_dict())
        return

    click.echo(f"Sync directory: {ctx.gateway.root}")
    if not report.enabled:
        click.echo("Sync is disabled (sync-enabled: false)")
    if not report.groups:
        click.echo("No groups in database or sync directory.")
        return
    for entry in report.groups:
        click.echo(format_group_row(entry))
    click.echo()
    click.echo(f"{report.synced} synced, {report.need_push} to push, "
               f"{report.need_pull} to pull")
