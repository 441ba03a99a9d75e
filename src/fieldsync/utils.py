"""Display helpers for the fieldsync CLI."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

from fieldsync.models import SyncStatus

if TYPE_CHECKING:
    from fieldsync.importer import ImportResult
    from fieldsync.status import GroupStatus


def status_symbol(status: str) -> str:
    """Return a symbol for status display."""
    symbols = {
        SyncStatus.SYNCED: "=",
        SyncStatus.MODIFIED: "~",
        SyncStatus.NEED_PUSH: ">",
        SyncStatus.NEED_PULL: "<",
        SyncStatus.THEME_ONLY: "<",
        SyncStatus.CONFLICT: "!",
        SyncStatus.DISABLED: "-",
        SyncStatus.ERROR: "x",
    }
    return symbols.get(status, "?")


def format_time_ago(dt: datetime) -> str:
    """Format a datetime as a relative time string."""
    now = datetime.now(timezone.utc)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    seconds = int((now - dt).total_seconds())
    if seconds < 60:
        return "just now"
    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes}m ago"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h ago"
    days = hours // 24
    if days < 30:
        return f"{days}d ago"
    months = days // 30
    if months < 12:
        return f"{months}mo ago"
    return f"{days // 365}y ago"


def format_epoch(ts: int | None) -> str:
    if not ts:
        return "never"
    dt = datetime.fromtimestamp(ts, tz=timezone.utc)
    return f"{dt:%Y-%m-%d %H:%M:%S} UTC ({format_time_ago(dt)})"


def truncate(s: str, max_len: int = 60) -> str:
    """Truncate a string with ellipsis."""
    if len(s) <= max_len:
        return s
    return s[:max_len - 3] + "..."


def format_group_row(entry: GroupStatus) -> str:
    """Format a group's sync status as a single-line row."""
    sym = status_symbol(entry.status)
    title = truncate(entry.title or entry.slug, 40)
    actions = ", ".join(entry.actions) or "-"
    return f"[{sym}] {entry.slug:<24} {entry.label:<14} {title:<40} ({actions})"


def import_summary_lines(result: ImportResult) -> list[str]:
    lines = [result.message or ("Import succeeded" if result.ok else "Import failed")]
    if result.fields_imported:
        lines.append(f"  Fields imported: {result.fields_imported}")
    if result.values_imported or result.values_skipped:
        lines.append(
            f"  Values imported: {result.values_imported} "
            f"(skipped: {result.values_skipped})"
        )
    for slug, reason in result.skipped.items():
        lines.append(f"  Skipped {slug}: {reason}")
    for warning in result.warnings:
        lines.append(f"  Warning: {warning}")
    return lines
