"""fieldsync doctor - health checks."""

from __future__ import annotations

import os

import click

from fieldsync.cli import FieldSyncContext, pass_ctx
from fieldsync.config import get_db_path
from fieldsync.errors import FilesystemError
from fieldsync.importer import validate_document


@click.command("doctor")
@pass_ctx
def doctor(ctx: FieldSyncContext) -> None:
    """Run health checks on the fieldsync project."""
    ctx.ensure_initialized()
    assert ctx.store is not None and ctx.fieldsync_dir is not None
    assert ctx.gateway is not None and ctx.autosync is not None

    issues_found = 0

    click.echo("fieldsync Doctor")
    click.echo("─" * 40)

    click.echo(f"  .fieldsync/ directory: {ctx.fieldsync_dir}")
    click.echo("    [OK] exists")

    db_path = get_db_path(ctx.fieldsync_dir, ctx.config)
    click.echo(f"  Database: {db_path}")
    version = ctx.store.get_metadata("schema_version")
    click.echo(f"    Schema version: {version or 'unknown'}")
    click.echo(f"    Groups: {len(ctx.store.find_all_groups())}")

    root = ctx.gateway.root
    click.echo(f"  Sync directory: {root}")
    if not os.path.isdir(root):
        click.echo("    [INFO] not found (created on first push or export)")
    else:
        if not os.access(root, os.W_OK):
            click.echo("    [ERROR] not writable")
            issues_found += 1
        for name in (".htaccess", "index.php"):
            if not os.path.exists(os.path.join(root, name)):
                click.echo(f"    [WARN] missing protective file {name}")

    # Every group file must parse and validate
    for slug in ctx.gateway.list_group_slugs():
        try:
            data = ctx.gateway.read_document(ctx.gateway.group_path(slug))
        except FilesystemError as e:
            click.echo(f"    [ERROR] {slug}.json: {e}")
            issues_found += 1
            continue
        errors = validate_document(data)
        if errors:
            click.echo(f"    [ERROR] {slug}.json: {'; '.join(errors)}")
            issues_found += 1

    info = ctx.autosync.get_file_info()
    click.echo(f"  Sync file: {info.path}")
    if not info.exists:
        click.echo("    [INFO] not found (no snapshot exported yet)")
    elif not info.readable:
        click.echo("    [ERROR] cannot be parsed")
        issues_found += 1
    else:
        click.echo(f"    [OK] {info.groups_count} group(s), {info.size} bytes")

    click.echo()
    if issues_found:
        click.echo(f"Found {issues_found} issue(s)")
    else:
        click.echo("All checks passed!")
