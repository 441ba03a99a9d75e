"""fieldsync autosync - whole-store snapshot sync."""

from __future__ import annotations

import sys

import click

from fieldsync.cli import FieldSyncContext, pass_ctx
from fieldsync.errors import EmptySourceError, FilesystemError
from fieldsync.importer import ImportResult
from fieldsync.utils import format_epoch, import_summary_lines


def _report(ctx: FieldSyncContext, result: ImportResult) -> None:
    if ctx.json_output:
        ctx.output(result.to_dict())
    elif not ctx.quiet:
        for line in import_summary_lines(result):
            click.echo(line)
    if not result.success:
        if not ctx.json_output:
            for message in result.error_messages():
                click.echo(f"  {message}", err=True)
        sys.exit(1)


@click.group("autosync")
def autosync() -> None:
    """Whole-store snapshot sync (fieldsync-config.json)."""


@autosync.command("status")
@pass_ctx
def autosync_status(ctx: FieldSyncContext) -> None:
    """Compare the snapshot file with the last sync of the database."""
    ctx.ensure_initialized()
    assert ctx.autosync is not None

    info = ctx.autosync.get_file_info()
    status = ctx.autosync.get_sync_status()

    if ctx.json_output:
        ctx.output({
            "enabled": ctx.autosync.is_enabled(),
            "file": info.to_dict(),
            **status.to_dict(),
        })
        return

    click.echo(f"Auto-sync: {'enabled' if ctx.autosync.is_enabled() else 'disabled'}")
    click.echo(f"Sync file: {info.path}")
    if info.exists and info.readable:
        click.echo(f"  {info.groups_count} group(s), {info.fields_count} field(s), "
                   f"{info.size} bytes")
        click.echo(f"  Written: {format_epoch(info.timestamp)}")
    elif info.exists:
        click.echo("  [WARN] file cannot be parsed")
    click.echo(f"Last database sync: {format_epoch(status.db_timestamp)}")
    click.echo(f"Status: {status.status}")
    click.echo(f"  {status.message}")


@autosync.command("export")
@pass_ctx
def autosync_export(ctx: FieldSyncContext) -> None:
    """Write the whole store to the snapshot file now."""
    ctx.ensure_initialized()
    assert ctx.autosync is not None

    try:
        ctx.autosync.export_now()
    except (EmptySourceError, FilesystemError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    if not ctx.quiet:
        click.echo(f"Exported configuration to {ctx.autosync.config_file_path}")


@autosync.command("import")
@click.option("--replace", is_flag=True, help="Delete all groups before importing")
@pass_ctx
def autosync_import(ctx: FieldSyncContext, replace: bool) -> None:
    """Import the snapshot file into the database."""
    ctx.ensure_initialized()
    assert ctx.autosync is not None

    _report(ctx, ctx.autosync.import_from_file(merge=not replace))


@autosync.command("sync")
@pass_ctx
def autosync_sync(ctx: FieldSyncContext) -> None:
    """Import or export, whichever side is older gets updated."""
    ctx.ensure_initialized()
    assert ctx.autosync is not None

    _report(ctx, ctx.autosync.sync_now())


@autosync.command("dismiss")
@pass_ctx
def autosync_dismiss(ctx: FieldSyncContext) -> None:
    """Mark the current snapshot file as already synchronized."""
    ctx.ensure_initialized()
    assert ctx.autosync is not None

    if not ctx.autosync.dismiss_notification():
        click.echo("Error: no readable sync file to dismiss", err=True)
        sys.exit(1)
    if not ctx.quiet:
        click.echo("Notification dismissed")
