"""Filesystem side of the sync: directory layout, locked atomic writes, reads."""

from __future__ import annotations

import fcntl
import hashlib
import json
import logging
import os
import tempfile
from typing import Any

from fieldsync.errors import FilesystemError

logger = logging.getLogger(__name__)

GROUPS_DIRNAME = "groups"
SNAPSHOT_FILENAME = "fieldsync-config.json"

HTACCESS = """# Deny direct access to sync files
<IfModule mod_authz_core.c>
    Require all denied
</IfModule>
<IfModule !mod_authz_core.c>
    Order deny,allow
    Deny from all
</IfModule>
"""

INDEX_PHP = """<?php
header('Location: /');
exit;
"""


def is_safe_slug(slug: str) -> bool:
    """True when ``slug`` names a file directly inside the groups directory."""
    return bool(slug) and not slug.startswith(".") and not any(
        c in slug for c in ("/", "\\", "\0")
    )


def lock_path_for(path: str) -> str:
    """Lock file for writes to ``path``, kept outside the sync tree."""
    digest = hashlib.sha1(os.path.abspath(path).encode("utf-8")).hexdigest()[:16]
    return os.path.join(tempfile.gettempdir(), f"fieldsync-{digest}.lock")


class FileGateway:
    """Reads and writes sync documents below a sync root directory."""

    def __init__(self, root: str):
        self.root = root

    @property
    def groups_dir(self) -> str:
        return os.path.join(self.root, GROUPS_DIRNAME)

    def group_path(self, slug: str) -> str:
        if not is_safe_slug(slug):
            raise FilesystemError(f"Invalid group slug: {slug!r}")
        return os.path.join(self.groups_dir, f"{slug}.json")

    @property
    def snapshot_path(self) -> str:
        return os.path.join(self.root, SNAPSHOT_FILENAME)

    # --- Directories ---

    def _write_protection(self, directory: str) -> None:
        for name, content in ((".htaccess", HTACCESS), ("index.php", INDEX_PHP)):
            target = os.path.join(directory, name)
            if not os.path.exists(target):
                with open(target, "w", encoding="utf-8") as f:
                    f.write(content)

    def ensure_directory(self, path: str | None = None) -> None:
        """Create ``path`` (default: the sync root) and any missing parents.

        When the sync root itself is created, protective ``.htaccess`` and
        ``index.php`` files are written into it.
        """
        path = path or self.root
        root_existed = os.path.isdir(self.root)
        try:
            os.makedirs(path, exist_ok=True)
            if not root_existed and os.path.isdir(self.root):
                self._write_protection(self.root)
                logger.info("Created sync directory %s", self.root)
        except OSError as e:
            raise FilesystemError(f"Cannot create directory {path}: {e}") from e

    # --- Documents ---

    def write_document(self, path: str, data: dict[str, Any]) -> None:
        """Write ``data`` as pretty JSON, atomically and under an exclusive lock."""
        directory = os.path.dirname(path) or "."
        self.ensure_directory(directory)
        lock_path = lock_path_for(path)
        try:
            with open(lock_path, "w") as lock:
                fcntl.flock(lock.fileno(), fcntl.LOCK_EX)
                try:
                    self._replace(path, directory, data)
                finally:
                    fcntl.flock(lock.fileno(), fcntl.LOCK_UN)
        except OSError as e:
            raise FilesystemError(f"Cannot write {path}: {e}") from e
        logger.debug("Wrote %s", path)

    def _replace(self, path: str, directory: str, data: dict[str, Any]) -> None:
        fd, tmp_path = tempfile.mkstemp(
            dir=directory, prefix=f".{os.path.basename(path)}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=4, ensure_ascii=False)
                f.write("\n")
            os.replace(tmp_path, path)
        except Exception:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def read_document(self, path: str) -> dict[str, Any]:
        if not os.path.exists(path):
            raise FilesystemError(f"File not found: {path}")
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except OSError as e:
            raise FilesystemError(f"Cannot read {path}: {e}") from e
        except json.JSONDecodeError as e:
            raise FilesystemError(f"Invalid JSON in {path}: {e}") from e
        if not isinstance(data, dict):
            raise FilesystemError(f"Expected a JSON object in {path}")
        return data

    # --- Per-group files ---

    def groups_dir_exists(self) -> bool:
        return os.path.isdir(self.groups_dir)

    def has_group_file(self, slug: str) -> bool:
        return is_safe_slug(slug) and os.path.isfile(self.group_path(slug))

    def read_checksum(self, slug: str) -> str | None:
        """The checksum stored in a group's file, or None if absent/unreadable."""
        try:
            data = self.read_document(self.group_path(slug))
        except FilesystemError:
            return None
        checksum = data.get("checksum")
        return checksum if isinstance(checksum, str) else None

    def list_group_slugs(self) -> list[str]:
        if not os.path.isdir(self.groups_dir):
            return []
        return sorted(
            name[:-len(".json")]
            for name in os.listdir(self.groups_dir)
            if name.endswith(".json") and not name.startswith(".")
        )

    def delete_group_file(self, slug: str) -> bool:
        path = self.group_path(slug)
        if not os.path.exists(path):
            return False
        try:
            os.unlink(path)
        except OSError as e:
            raise FilesystemError(f"Cannot delete {path}: {e}") from e
        return True
