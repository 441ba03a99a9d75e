"""fieldsync config - manage configuration."""

from __future__ import annotations

import sys

import click

from fieldsync.cli import FieldSyncContext, pass_ctx
from fieldsync.config import FieldSyncConfig


@click.group("config")
def config_cmd() -> None:
    """Manage fieldsync configuration."""


@config_cmd.command("get")
@click.argument("key")
@pass_ctx
def config_get(ctx: FieldSyncContext, key: str) -> None:
    """Get a config value."""
    ctx.ensure_initialized()
    assert ctx.config is not None

    try:
        value = ctx.config.get(key)
    except KeyError:
        click.echo(f"Config key not found: {key}", err=True)
        sys.exit(1)

    if ctx.json_output:
        ctx.output({key: value})
    else:
        click.echo(value)


@config_cmd.command("set")
@click.argument("key")
@click.argument("value")
@pass_ctx
def config_set(ctx: FieldSyncContext, key: str, value: str) -> None:
    """Set a config value."""
    ctx.ensure_initialized()
    assert ctx.config is not None and ctx.fieldsync_dir is not None

    try:
        ctx.config.set(key, value)
    except KeyError:
        click.echo(f"Unknown config key: {key} (known: {', '.join(FieldSyncConfig.keys())})",
                   err=True)
        sys.exit(1)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    ctx.config.save(ctx.fieldsync_dir)

    if not ctx.quiet:
        click.echo(f"Set {key} = {ctx.config.get(key)}")


@config_cmd.command("list")
@pass_ctx
def config_list(ctx: FieldSyncContext) -> None:
    """List all config values."""
    ctx.ensure_initialized()
    assert ctx.config is not None

    values = ctx.config.to_dict()

    if ctx.json_output:
        ctx.output(values)
        return

    for key, value in values.items():
        click.echo(f"  {key} = {value}")
