"""Per-group push/pull between the store and ``<sync root>/groups/<slug>.json``."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from fieldsync.document import build_group_record
from fieldsync.errors import FilesystemError
from fieldsync.importer import ImportResult, import_record
from fieldsync.status import GroupStatus, SyncReport, SyncStatusClassifier

if TYPE_CHECKING:
    from fieldsync.config import FieldSyncConfig
    from fieldsync.gateway import FileGateway
    from fieldsync.storage.interface import Storage

logger = logging.getLogger(__name__)


@dataclass
class PushResult:
    success: bool
    slug: str = ""
    path: str = ""
    checksum: str = ""
    error: str = ""

    def to_dict(self) -> dict[str, Any]:
        if not self.success:
            return {"success": False, "slug": self.slug, "error": self.error}
        return {"success": True, "slug": self.slug, "path": self.path,
                "checksum": self.checksum}


@dataclass
class BatchResult:
    succeeded: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"succeeded": self.succeeded, "failed": self.failed, "errors": self.errors}


class SyncService:
    """Push groups to their JSON files and pull them back."""

    def __init__(self, store: Storage, gateway: FileGateway, config: FieldSyncConfig,
                 module_version: str):
        self.store = store
        self.gateway = gateway
        self.config = config
        self.module_version = module_version

    @property
    def classifier(self) -> SyncStatusClassifier:
        return SyncStatusClassifier(self.store, self.gateway, self.config.sync_enabled)

    def push_group(self, group_id: int) -> PushResult:
        group = self.store.get_group(group_id)
        if group is None:
            return PushResult(False, error="Group not found")
        record = build_group_record(self.store, group, self.module_version)
        try:
            path = self.gateway.group_path(group.slug)
            self.gateway.write_document(path, record)
        except FilesystemError as e:
            logger.error("Push of group %s failed: %s", group.slug, e)
            return PushResult(False, slug=group.slug, error=str(e))
        logger.info("Group %s pushed to %s", group.slug, path)
        return PushResult(True, slug=group.slug, path=path, checksum=record["checksum"])

    def push_all_groups(self) -> BatchResult:
        results = BatchResult()
        for group in self.store.find_all_groups():
            pushed = self.push_group(group.id)
            if pushed.success:
                results.succeeded += 1
            else:
                results.failed += 1
                results.errors.append(f"{group.slug}: {pushed.error or 'Unknown error'}")
        return results

    def pull_group(self, slug: str) -> ImportResult:
        try:
            path = self.gateway.group_path(slug)
        except FilesystemError as e:
            return ImportResult(success=False, message=str(e))
        if not self.gateway.has_group_file(slug):
            return ImportResult(success=False, message="JSON file not found", source=path)
        try:
            data = self.gateway.read_document(path)
        except FilesystemError as e:
            return ImportResult(success=False, message=str(e), source=path)
        result = import_record(self.store, data, source=path)
        file_slug = data.get("group", {}).get("slug") if isinstance(data.get("group"), dict) else None
        if file_slug and file_slug != slug:
            result.add_warning(f"File {slug}.json holds group {file_slug!r}")
        if result.ok:
            logger.info("Group %s pulled from %s", slug, path)
        return result

    def pull_all_groups(self) -> BatchResult:
        results = BatchResult()
        slugs = self.gateway.list_group_slugs()
        if not slugs and not self.gateway.groups_dir_exists():
            results.errors.append("Sync directory does not exist")
            return results
        for slug in slugs:
            pulled = self.pull_group(slug)
            if pulled.ok:
                results.succeeded += 1
            else:
                results.failed += 1
                detail = "; ".join(pulled.error_messages()) or pulled.message or "Unknown error"
                results.errors.append(f"{slug}: {detail}")
        return results

    def get_sync_status(self) -> SyncReport:
        return self.classifier.classify_all()

    def get_group_sync_status(self, group_id: int) -> GroupStatus:
        return self.classifier.classify_group(group_id)

    def auto_sync_on_save(self, group_id: int) -> PushResult | None:
        """Push a group right after it was saved, when configured to."""
        if not (self.config.sync_enabled and self.config.auto_sync_on_save):
            return None
        return self.push_group(group_id)
