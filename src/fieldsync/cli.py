"""Click CLI root and global flags for fieldsync."""

from __future__ import annotations

import json
import logging
import os
import sys

import click

from fieldsync import __version__
from fieldsync.autosync import AutoSyncService
from fieldsync.config import (
    FieldSyncConfig, find_fieldsync_dir, get_db_path, project_root, resolve_sync_root,
)
from fieldsync.debounce import Debouncer, UnitOfWork
from fieldsync.gateway import FileGateway
from fieldsync.storage.sqlite_store import SQLiteStorage
from fieldsync.sync import SyncService


class FieldSyncContext:
    """Shared context for all commands."""

    def __init__(self) -> None:
        self.fieldsync_dir: str | None = None
        self.store: SQLiteStorage | None = None
        self.config: FieldSyncConfig | None = None
        self.gateway: FileGateway | None = None
        self.sync: SyncService | None = None
        self.autosync: AutoSyncService | None = None
        self.unit_of_work: UnitOfWork | None = None
        self.debouncer: Debouncer | None = None
        self.json_output: bool = False
        self.verbose: bool = False
        self.quiet: bool = False

    def ensure_initialized(self) -> None:
        """Ensure the .fieldsync directory, storage and services are available."""
        if self.store is not None:
            return
        self.fieldsync_dir = find_fieldsync_dir()
        if self.fieldsync_dir is None:
            click.echo("Error: not in a fieldsync project (no .fieldsync/ directory found)", err=True)
            click.echo("Run 'fieldsync init' to create one", err=True)
            sys.exit(1)
        self.config = FieldSyncConfig.load(self.fieldsync_dir)
        self.store = SQLiteStorage(get_db_path(self.fieldsync_dir, self.config))
        root = resolve_sync_root(project_root(self.fieldsync_dir), self.config)
        self.gateway = FileGateway(root)
        self.sync = SyncService(self.store, self.gateway, self.config, __version__)
        self.autosync = AutoSyncService(self.store, self.gateway, self.config, __version__)

        # Store changes made by this command are exported once, when it ends
        self.unit_of_work = UnitOfWork()
        self.debouncer = self.autosync.create_debouncer(self.unit_of_work)
        click.get_current_context().find_root().call_on_close(self.auto_flush)

    def auto_flush(self) -> None:
        """Run deferred exports for this command and release the store."""
        if self.unit_of_work is not None:
            self.unit_of_work.run_deferred()
            if self.debouncer is not None and self.debouncer.last_error and not self.quiet:
                click.echo(f"Warning: auto-sync export failed: {self.debouncer.last_error}",
                           err=True)
        if self.store is not None:
            self.store.close()
            self.store = None

    def output(self, data: dict | list) -> None:
        """Output data as JSON."""
        click.echo(json.dumps(data, indent=2, default=str))


pass_ctx = click.make_pass_decorator(FieldSyncContext, ensure=True)


@click.group(invoke_without_command=True)
@click.option("--db", envvar="FIELDSYNC_DB", help="Path to database file")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.version_option(__version__, prog_name="fieldsync")
@click.pass_context
def cli(ctx: click.Context, db: str | None, json_output: bool, verbose: bool,
        quiet: bool) -> None:
    """fieldsync - keep field-schema definitions in sync between database and files"""
    fctx = ctx.ensure_object(FieldSyncContext)
    fctx.verbose = verbose
    fctx.quiet = quiet
    if json_output:
        fctx.json_output = True
    if db:
        os.environ["FIELDSYNC_DB"] = db

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# --- Register all command groups ---

from fieldsync.commands.init_cmd import init_cmd
from fieldsync.commands.status import status
from fieldsync.commands.push import push
from fieldsync.commands.pull import pull
from fieldsync.commands.export_cmd import export_cmd
from fieldsync.commands.import_cmd import import_cmd
from fieldsync.commands.autosync import autosync
from fieldsync.commands.config_cmd import config_cmd
from fieldsync.commands.doctor import doctor

cli.add_command(init_cmd, "init")
cli.add_command(status, "status")
cli.add_command(push, "push")
cli.add_command(pull, "pull")
cli.add_command(export_cmd, "export")
cli.add_command(import_cmd, "import")
cli.add_command(autosync, "autosync")
cli.add_command(config_cmd, "config")
cli.add_command(doctor, "doctor")


def main() -> None:
    cli(auto_envvar_prefix="FIELDSYNC")
