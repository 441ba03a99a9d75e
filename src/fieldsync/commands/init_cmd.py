"""fieldsync init - initialize a new .fieldsync/ directory."""

from __future__ import annotations

import os

import click

from fieldsync.cli import FieldSyncContext, pass_ctx
from fieldsync.config import (
    FIELDSYNC_DIR, PATH_CUSTOM, FieldSyncConfig, get_db_path, project_root,
    resolve_sync_root,
)
from fieldsync.storage.sqlite_store import SQLiteStorage


@click.command("init")
@click.option("--theme", default="classic", show_default=True, help="Active theme name")
@click.option("--themes-dir", default="themes", show_default=True,
              help="Directory holding the themes")
@click.option("--sync-path", help="Custom sync directory (overrides the theme location)")
@click.option("--auto-sync", is_flag=True, help="Export the whole store after every change")
@pass_ctx
def init_cmd(ctx: FieldSyncContext, theme: str, themes_dir: str, sync_path: str | None,
             auto_sync: bool) -> None:
    """Initialize a new fieldsync project in the current directory."""
    fieldsync_dir = os.path.join(os.getcwd(), FIELDSYNC_DIR)

    if os.path.exists(fieldsync_dir):
        click.echo(f"fieldsync already initialized at {fieldsync_dir}")
        return

    os.makedirs(fieldsync_dir, exist_ok=True)

    config = FieldSyncConfig(theme=theme, themes_dir=themes_dir, auto_sync_enabled=auto_sync)
    if sync_path:
        config.sync_path_type = PATH_CUSTOM
        config.sync_custom_path = sync_path
    config.save(fieldsync_dir)

    gitignore_path = os.path.join(fieldsync_dir, ".gitignore")
    with open(gitignore_path, "w") as f:
        f.write("# fieldsync local files (not shared via git)\n")
        f.write("*.db\n")
        f.write("*.db-wal\n")
        f.write("*.db-shm\n")

    db_path = get_db_path(fieldsync_dir, config)
    store = SQLiteStorage(db_path)
    store.close()

    click.echo(f"Initialized fieldsync in {fieldsync_dir}")
    click.echo(f"  Database: {db_path}")
    click.echo(f"  Sync directory: {resolve_sync_root(project_root(fieldsync_dir), config)}")
