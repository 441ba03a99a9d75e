"""Sync status classification.

Two independent classifiers:

- per group, comparing the checksum recomputed from the store with the one
  stored in ``groups/<slug>.json``
- whole store, comparing the snapshot file's timestamp with the last-sync
  marker kept in store metadata
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from fieldsync.checksum import checksum_matches, compute_checksum
from fieldsync.document import load_fields
from fieldsync.models import SchemaGroup, SyncStatus

if TYPE_CHECKING:
    from fieldsync.gateway import FileGateway
    from fieldsync.storage.interface import Storage

# status -> (label, recommended actions)
STATUS_DISPLAY: dict[str, tuple[str, list[str]]] = {
    SyncStatus.SYNCED: ("Synced", ["push", "export"]),
    SyncStatus.MODIFIED: ("Modified", ["push", "pull", "diff", "export"]),
    SyncStatus.NEED_PUSH: ("Not in theme", ["push", "export"]),
    SyncStatus.NEED_PULL: ("Not in database", ["pull"]),
    SyncStatus.THEME_ONLY: ("Theme only", ["pull"]),
    SyncStatus.CONFLICT: ("Conflict", ["push", "pull", "diff"]),
    SyncStatus.NO_FILE: ("No data", []),
    SyncStatus.DISABLED: ("Sync disabled", []),
    SyncStatus.ERROR: ("Group not found", []),
}

# Timestamps closer than this are considered equal
SNAPSHOT_TOLERANCE_SECONDS = 2


@dataclass
class GroupStatus:
    slug: str
    status: str
    group_id: int | None = None
    title: str = ""
    db_checksum: str | None = None
    file_checksum: str | None = None

    @property
    def label(self) -> str:
        return STATUS_DISPLAY.get(self.status, (self.status, []))[0]

    @property
    def actions(self) -> list[str]:
        return list(STATUS_DISPLAY.get(self.status, ("", []))[1])

    @property
    def description(self) -> str:
        return SyncStatus.DESCRIPTIONS.get(self.status, "")

    def to_dict(self) -> dict[str, Any]:
        return {
            "slug": self.slug,
            "group_id": self.group_id,
            "title": self.title,
            "status": self.status,
            "label": self.label,
            "description": self.description,
            "actions": self.actions,
            "db_checksum": self.db_checksum,
            "file_checksum": self.file_checksum,
        }


@dataclass
class SyncReport:
    enabled: bool = True
    groups: list[GroupStatus] = field(default_factory=list)
    synced: int = 0
    need_push: int = 0
    need_pull: int = 0

    def add(self, entry: GroupStatus) -> None:
        self.groups.append(entry)
        if entry.status == SyncStatus.SYNCED:
            self.synced += 1
        elif entry.status in (SyncStatus.NEED_PUSH, SyncStatus.MODIFIED):
            self.need_push += 1
        elif entry.status in (SyncStatus.NEED_PULL, SyncStatus.THEME_ONLY):
            self.need_pull += 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "groups": [g.to_dict() for g in self.groups],
            "summary": {
                "total": len(self.groups),
                "synced": self.synced,
                "need_push": self.need_push,
                "need_pull": self.need_pull,
            },
        }


class SyncStatusClassifier:
    """Per-group checksum comparison between the store and the sync root."""

    def __init__(self, store: Storage, gateway: FileGateway, enabled: bool = True):
        self.store = store
        self.gateway = gateway
        self.enabled = enabled

    def _classify(self, slug: str, group: SchemaGroup | None) -> GroupStatus:
        entry = GroupStatus(slug=slug, status=SyncStatus.NO_FILE)
        if group is not None:
            entry.group_id = group.id
            entry.title = group.title
        if not self.enabled:
            entry.status = SyncStatus.DISABLED
            return entry

        if not self.gateway.has_group_file(slug):
            entry.status = SyncStatus.NEED_PUSH if group is not None else SyncStatus.NO_FILE
            return entry
        entry.file_checksum = self.gateway.read_checksum(slug)
        if group is None:
            entry.status = SyncStatus.THEME_ONLY
            return entry

        entry.db_checksum = compute_checksum(group, load_fields(self.store, group.id))
        if checksum_matches(entry.db_checksum, entry.file_checksum):
            entry.status = SyncStatus.SYNCED
        else:
            entry.status = SyncStatus.MODIFIED
        return entry

    def classify_slug(self, slug: str) -> GroupStatus:
        return self._classify(slug, self.store.find_group_by_slug(slug))

    def classify_group(self, group_id: int) -> GroupStatus:
        group = self.store.get_group(group_id)
        if group is None:
            return GroupStatus(slug="", status=SyncStatus.ERROR, group_id=group_id)
        return self._classify(group.slug, group)

    def classify_all(self) -> SyncReport:
        """Store groups first, then slugs that only exist on file."""
        report = SyncReport(enabled=self.enabled)
        seen = set()
        for group in self.store.find_all_groups():
            seen.add(group.slug)
            report.add(self._classify(group.slug, group))
        if self.enabled:
            for slug in self.gateway.list_group_slugs():
                if slug not in seen:
                    report.add(self._classify(slug, None))
        return report


# --- Whole-store snapshot ---

@dataclass
class SnapshotInfo:
    """What is known about the snapshot file without importing it."""

    path: str
    exists: bool = False
    readable: bool = True
    timestamp: int | None = None
    updated_at: str | None = None
    groups_count: int = 0
    fields_count: int = 0
    size: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "exists": self.exists,
            "readable": self.readable,
            "timestamp": self.timestamp,
            "updated_at": self.updated_at,
            "groups_count": self.groups_count,
            "fields_count": self.fields_count,
            "size": self.size,
        }


@dataclass
class SnapshotStatus:
    status: str
    file_timestamp: int | None
    db_timestamp: int
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "file_timestamp": self.file_timestamp,
            "db_timestamp": self.db_timestamp,
            "message": self.message,
        }


def classify_snapshot(info: SnapshotInfo | None, db_has_groups: bool,
                      db_timestamp: int) -> SnapshotStatus:
    """Decide which side of the whole-store sync is newer.

    An empty side is never newer than a populated one; only when both sides
    hold groups (or neither does) are the timestamps compared.
    """
    if info is None or not info.exists or not info.readable:
        if db_has_groups:
            return SnapshotStatus(
                SyncStatus.DB_NEWER, None, db_timestamp,
                "No sync file found. Export configuration to create it.",
            )
        return SnapshotStatus(
            SyncStatus.NO_FILE, None, db_timestamp,
            "No sync file found and database is empty. Export configuration to create it.",
        )

    file_timestamp = info.timestamp or 0
    file_has_groups = info.groups_count > 0

    if file_has_groups and not db_has_groups:
        return SnapshotStatus(
            SyncStatus.FILE_NEWER, file_timestamp, db_timestamp,
            "The sync file contains data but database is empty. Import to update.",
        )
    if db_has_groups and not file_has_groups:
        return SnapshotStatus(
            SyncStatus.DB_NEWER, file_timestamp, db_timestamp,
            "The database contains data but sync file is empty. Export to update.",
        )

    if abs(file_timestamp - db_timestamp) <= SNAPSHOT_TOLERANCE_SECONDS:
        return SnapshotStatus(
            SyncStatus.SYNCED, file_timestamp, db_timestamp,
            "Configuration is synchronized.",
        )
    if file_timestamp > db_timestamp:
        return SnapshotStatus(
            SyncStatus.FILE_NEWER, file_timestamp, db_timestamp,
            "The sync file is newer than the database. Import to update.",
        )
    return SnapshotStatus(
        SyncStatus.DB_NEWER, file_timestamp, db_timestamp,
        "The database is newer than the sync file. Export to update.",
    )
