"""Whole-store auto-sync through ``<sync root>/fieldsync-config.json``.

Store changes mark a Debouncer dirty; at the end of the unit of work the
whole store is exported once. The snapshot carries an epoch ``timestamp``
that is compared with the last-sync marker kept in store metadata to tell
which side is newer.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from fieldsync.config import LAST_SYNC_KEY
from fieldsync.debounce import Debouncer, UnitOfWork
from fieldsync.document import build_snapshot
from fieldsync.errors import EmptySourceError, FilesystemError
from fieldsync.importer import ImportResult, import_merge, import_replace
from fieldsync.models import SyncStatus, format_timestamp, now_utc
from fieldsync.status import SnapshotInfo, SnapshotStatus, classify_snapshot

if TYPE_CHECKING:
    from fieldsync.config import FieldSyncConfig
    from fieldsync.gateway import FileGateway
    from fieldsync.storage.interface import Storage

logger = logging.getLogger(__name__)


class AutoSyncService:
    def __init__(self, store: Storage, gateway: FileGateway, config: FieldSyncConfig,
                 module_version: str):
        self.store = store
        self.gateway = gateway
        self.config = config
        self.module_version = module_version
        self._debouncer: Debouncer | None = None

    @property
    def config_file_path(self) -> str:
        return self.gateway.snapshot_path

    def is_enabled(self) -> bool:
        return self.config.auto_sync_enabled

    def _db_has_groups(self) -> bool:
        return len(self.store.find_all_groups()) > 0

    def db_timestamp(self) -> int:
        raw = self.store.get_metadata(LAST_SYNC_KEY)
        try:
            return int(raw) if raw else 0
        except ValueError:
            logger.warning("Ignoring malformed %s metadata value %r", LAST_SYNC_KEY, raw)
            return 0

    def _stamp(self, timestamp: int) -> None:
        self.store.set_metadata(LAST_SYNC_KEY, str(timestamp))

    # --- Export ---

    def _guard_empty_export(self) -> None:
        """Refuse to replace a populated (or unreadable) snapshot with nothing."""
        path = self.config_file_path
        if not os.path.exists(path):
            return
        try:
            existing = self.gateway.read_document(path)
        except FilesystemError as e:
            raise EmptySourceError(
                f"Cannot export: database is empty and {path} cannot be parsed ({e})"
            ) from e
        if len(existing.get("groups") or []) > 0:
            raise EmptySourceError(
                "Cannot export: database is empty. Import data first."
            )

    def export_now(self) -> bool:
        """Write the whole store to the snapshot file and record the sync marker."""
        data = build_snapshot(self.store, self.module_version)
        if not data["groups"]:
            self._guard_empty_export()

        now = now_utc()
        timestamp = int(now.timestamp())
        data["timestamp"] = timestamp
        data["updated_at"] = format_timestamp(now)

        self.gateway.ensure_directory()
        self.gateway.write_document(self.config_file_path, data)
        self._stamp(timestamp)
        logger.info("Auto-sync: exported %d groups to %s",
                    len(data["groups"]), self.config_file_path)
        return True

    def create_debouncer(self, unit_of_work: UnitOfWork | None = None) -> Debouncer:
        """Debouncer that exports the snapshot once per unit of work.

        The debouncer is registered as a store change listener.
        """
        self._debouncer = Debouncer(self.export_now, enabled=self.is_enabled(),
                                    unit_of_work=unit_of_work)
        self.store.add_change_listener(self._debouncer.mark_dirty)
        return self._debouncer

    def mark_dirty(self) -> None:
        if self._debouncer is not None:
            self._debouncer.mark_dirty()

    def export_if_dirty(self) -> bool:
        if self._debouncer is None:
            return False
        return self._debouncer.flush()

    # --- Status ---

    def get_file_info(self) -> SnapshotInfo:
        path = self.config_file_path
        if not os.path.exists(path):
            return SnapshotInfo(path=path, exists=False)
        try:
            data = self.gateway.read_document(path)
        except FilesystemError as e:
            logger.error("Auto-sync: cannot read file info: %s", e)
            return SnapshotInfo(path=path, exists=True, readable=False)

        groups = data.get("groups") or []
        mtime = os.path.getmtime(path)
        timestamp = data.get("timestamp")
        try:
            timestamp = int(timestamp) if timestamp is not None else int(mtime)
        except (TypeError, ValueError):
            timestamp = int(mtime)
        updated_at = data.get("updated_at") or format_timestamp(
            datetime.fromtimestamp(mtime, tz=timezone.utc)
        )
        return SnapshotInfo(
            path=path,
            exists=True,
            timestamp=timestamp,
            updated_at=updated_at,
            groups_count=len(groups),
            fields_count=sum(len(g.get("fields") or []) for g in groups if isinstance(g, dict)),
            size=os.path.getsize(path),
        )

    def get_sync_status(self) -> SnapshotStatus:
        return classify_snapshot(self.get_file_info(), self._db_has_groups(), self.db_timestamp())

    def has_newer_config(self) -> bool:
        return self.get_sync_status().status == SyncStatus.FILE_NEWER

    # --- Import ---

    def import_from_file(self, merge: bool = True) -> ImportResult:
        """Import the snapshot file with auto-export suspended for the duration."""
        path = self.config_file_path
        if not os.path.exists(path):
            return ImportResult(success=False, message="Sync file not found", source=path)
        try:
            data = self.gateway.read_document(path)
        except FilesystemError as e:
            return ImportResult(success=False, message=f"Invalid JSON in sync file: {e}",
                                source=path)

        debouncer = self._debouncer
        was_enabled = debouncer.enabled if debouncer is not None else False
        if debouncer is not None:
            debouncer.enabled = False
        try:
            if merge:
                result = import_merge(self.store, data, source=path)
            else:
                result = import_replace(self.store, data, source=path)
        except Exception as e:
            logger.error("Auto-sync: import failed: %s", e)
            return ImportResult(success=False, message=f"Import error: {e}", source=path)
        finally:
            if debouncer is not None:
                debouncer.enabled = was_enabled

        if result.success:
            # Store now matches the file
            info = self.get_file_info()
            self._stamp(info.timestamp or int(now_utc().timestamp()))
            logger.info("Auto-sync: imported from file (%d created, %d updated)",
                        len(result.created), len(result.updated))
        return result

    def dismiss_notification(self) -> bool:
        """Treat the current snapshot file as already synced."""
        info = self.get_file_info()
        if info.exists and info.readable and info.timestamp is not None:
            self._stamp(info.timestamp)
            logger.info("Auto-sync: notification dismissed")
            return True
        return False

    def _export_result(self) -> ImportResult:
        try:
            self.export_now()
        except (EmptySourceError, FilesystemError) as e:
            logger.error("Auto-sync: export failed during sync: %s", e)
            return ImportResult(success=False, message=f"Export failed: {e}")
        return ImportResult(success=True, message="Configuration exported successfully")

    def sync_now(self) -> ImportResult:
        """Import or export depending on which side is newer."""
        status = self.get_sync_status()

        if status.status == SyncStatus.SYNCED:
            return ImportResult(success=True, message="Already synchronized")

        if status.status == SyncStatus.FILE_NEWER:
            # Replace so groups deleted from the file disappear from the store
            result = self.import_from_file(merge=False)
            if not result.success:
                logger.error("Auto-sync: import failed: %s", result.message)
                return result
            if not self._db_has_groups():
                logger.error("Auto-sync: import reported success but no groups found")
                return ImportResult(
                    success=False,
                    message="Import completed but no groups found in database. "
                            "Import may have failed silently.",
                )
            return result

        if status.status == SyncStatus.DB_NEWER:
            return self._export_result()

        if status.status == SyncStatus.NO_FILE:
            if not self._db_has_groups():
                return ImportResult(
                    success=False,
                    message="Cannot sync: database is empty and no sync file exists. "
                            "Import data first or create groups manually.",
                )
            return self._export_result()

        return ImportResult(success=False, message=f"Unknown sync status: {status.status}")
