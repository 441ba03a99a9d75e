"""SQLite storage implementation for fieldsync."""

from __future__ import annotations

import json
import logging
import sqlite3
from typing import Any, Callable

from fieldsync.errors import InvalidHierarchyError, NotFoundError, SlugConflictError
from fieldsync.models import (
    FieldType, FieldValue, SchemaField, SchemaGroup, decode_option_bag,
    format_timestamp, index_value_for, now_utc, parse_timestamp,
)
from fieldsync.storage.interface import Storage
from fieldsync.storage.schema import SCHEMA

logger = logging.getLogger(__name__)


def _encode_bag(value: Any) -> str:
    if value is None or value == "":
        return "{}"
    if isinstance(value, str):
        value = decode_option_bag(value)
    return json.dumps(value, ensure_ascii=False)


class SQLiteStorage(Storage):
    """SQLite-based storage backend."""

    def __init__(self, db_path: str):
        self._db_path = db_path
        self._conn = sqlite3.connect(db_path)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")
        self._conn.execute("PRAGMA busy_timeout=5000")
        self._listeners: list[Callable[[], None]] = []
        self._tx_depth = 0
        self._init_schema()

    def _init_schema(self) -> None:
        self._conn.executescript(SCHEMA)
        self._conn.commit()

    def path(self) -> str:
        return self._db_path

    def close(self) -> None:
        self._conn.close()

    # --- Helpers ---

    def _commit(self) -> None:
        """Commit unless an enclosing run_in_transaction owns the commit."""
        if self._tx_depth == 0:
            self._conn.commit()

    def _changed(self) -> None:
        for listener in self._listeners:
            listener()

    def _row_to_group(self, row: sqlite3.Row) -> SchemaGroup:
        group = SchemaGroup()
        group.id = row["id"]
        group.uuid = row["uuid"]
        group.slug = row["slug"]
        group.title = row["title"]
        group.description = row["description"]
        group.location_rules = decode_option_bag(row["location_rules"])
        group.placement_tab = row["placement_tab"] or "description"
        group.placement_position = row["placement_position"]
        group.priority = row["priority"]
        group.bo_options = decode_option_bag(row["bo_options"])
        group.fo_options = decode_option_bag(row["fo_options"])
        group.active = bool(row["active"])
        group.created_at = parse_timestamp(row["created_at"]) or now_utc()
        group.updated_at = parse_timestamp(row["updated_at"]) or now_utc()
        group.shop_ids = self.get_shop_ids(group.id)
        return group

    def _row_to_field(self, row: sqlite3.Row) -> SchemaField:
        f = SchemaField()
        f.id = row["id"]
        f.uuid = row["uuid"]
        f.group_id = row["group_id"]
        f.parent_id = row["parent_id"]
        f.slug = row["slug"]
        f.type = row["type"]
        f.title = row["title"]
        f.instructions = row["instructions"]
        f.position = row["position"]
        f.config = decode_option_bag(row["config"])
        f.validation = decode_option_bag(row["validation"])
        f.conditions = decode_option_bag(row["conditions"])
        f.wrapper = decode_option_bag(row["wrapper"])
        f.fo_options = decode_option_bag(row["fo_options"])
        f.value_translatable = bool(row["value_translatable"])
        f.active = bool(row["active"])
        f.created_at = parse_timestamp(row["created_at"]) or now_utc()
        f.updated_at = parse_timestamp(row["updated_at"]) or now_utc()
        return f

    def _row_to_value(self, row: sqlite3.Row) -> FieldValue:
        return FieldValue(
            field_id=row["field_id"],
            entity_type=row["entity_type"],
            entity_id=row["entity_id"],
            id_shop=row["id_shop"],
            id_lang=row["id_lang"],
            value=row["value"],
            value_index=row["value_index"],
        )

    # --- Groups ---

    def get_group(self, group_id: int) -> SchemaGroup | None:
        row = self._conn.execute(
            "SELECT * FROM field_groups WHERE id = ?", (group_id,)
        ).fetchone()
        return self._row_to_group(row) if row else None

    def find_group_by_slug(self, slug: str) -> SchemaGroup | None:
        row = self._conn.execute(
            "SELECT * FROM field_groups WHERE slug = ?", (slug,)
        ).fetchone()
        return self._row_to_group(row) if row else None

    def find_all_groups(self) -> list[SchemaGroup]:
        rows = self._conn.execute(
            "SELECT * FROM field_groups ORDER BY priority, slug"
        ).fetchall()
        return [self._row_to_group(r) for r in rows]

    def create_group(self, group: SchemaGroup) -> int:
        if self.find_group_by_slug(group.slug) is not None:
            raise SlugConflictError(group.slug)
        now = now_utc()
        group.created_at = now
        group.updated_at = now
        cur = self._conn.execute(
            """INSERT INTO field_groups (
                uuid, slug, title, description, location_rules, placement_tab,
                placement_position, priority, bo_options, fo_options, active,
                created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (group.uuid, group.slug, group.title, group.description,
             _encode_bag(group.location_rules), group.placement_tab,
             group.placement_position, group.priority,
             _encode_bag(group.bo_options), _encode_bag(group.fo_options),
             int(group.active), format_timestamp(now), format_timestamp(now))
        )
        group.id = cur.lastrowid
        self._write_shops(group.id, group.shop_ids)
        self._commit()
        self._changed()
        return group.id

    def update_group(self, group: SchemaGroup) -> None:
        current = self.get_group(group.id)
        if current is None:
            raise NotFoundError(f"Group not found: {group.id}")
        other = self.find_group_by_slug(group.slug)
        if other is not None and other.id != group.id:
            raise SlugConflictError(group.slug)
        group.uuid = current.uuid
        group.created_at = current.created_at
        group.updated_at = now_utc()
        self._conn.execute(
            """UPDATE field_groups SET
                slug = ?, title = ?, description = ?, location_rules = ?,
                placement_tab = ?, placement_position = ?, priority = ?,
                bo_options = ?, fo_options = ?, active = ?, updated_at = ?
            WHERE id = ?""",
            (group.slug, group.title, group.description,
             _encode_bag(group.location_rules), group.placement_tab,
             group.placement_position, group.priority,
             _encode_bag(group.bo_options), _encode_bag(group.fo_options),
             int(group.active), format_timestamp(group.updated_at), group.id)
        )
        self._commit()
        self._changed()

    def delete_group(self, group_id: int) -> None:
        self._conn.execute("DELETE FROM field_groups WHERE id = ?", (group_id,))
        self._commit()
        self._changed()

    def get_shop_ids(self, group_id: int) -> list[int]:
        rows = self._conn.execute(
            "SELECT id_shop FROM field_group_shops WHERE group_id = ? ORDER BY id_shop",
            (group_id,)
        ).fetchall()
        return [r["id_shop"] for r in rows]

    def _write_shops(self, group_id: int, shop_ids: list[int]) -> None:
        self._conn.execute("DELETE FROM field_group_shops WHERE group_id = ?", (group_id,))
        for shop_id in sorted(set(int(s) for s in shop_ids)):
            self._conn.execute(
                "INSERT INTO field_group_shops (group_id, id_shop) VALUES (?, ?)",
                (group_id, shop_id)
            )

    def set_shop_associations(self, group_id: int, shop_ids: list[int]) -> None:
        self._write_shops(group_id, shop_ids)
        self._commit()
        self._changed()

    # --- Fields ---

    def _get_field(self, field_id: int) -> SchemaField | None:
        row = self._conn.execute(
            "SELECT * FROM fields WHERE id = ?", (field_id,)
        ).fetchone()
        return self._row_to_field(row) if row else None

    def find_fields_by_group(self, group_id: int) -> list[SchemaField]:
        rows = self._conn.execute(
            "SELECT * FROM fields WHERE group_id = ? AND parent_id IS NULL "
            "ORDER BY position, id",
            (group_id,)
        ).fetchall()
        return [self._row_to_field(r) for r in rows]

    def find_fields_by_parent(self, parent_id: int) -> list[SchemaField]:
        rows = self._conn.execute(
            "SELECT * FROM fields WHERE parent_id = ? ORDER BY position, id",
            (parent_id,)
        ).fetchall()
        return [self._row_to_field(r) for r in rows]

    def find_field_by_slug(self, slug: str) -> SchemaField | None:
        row = self._conn.execute(
            "SELECT * FROM fields WHERE slug = ?", (slug,)
        ).fetchone()
        return self._row_to_field(row) if row else None

    def _check_parent(self, field: SchemaField) -> None:
        parent = self._get_field(field.parent_id)
        if parent is None:
            raise InvalidHierarchyError(f"Parent field not found: {field.parent_id}")
        if parent.group_id != field.group_id:
            raise InvalidHierarchyError(
                f"Parent field {parent.slug} belongs to another group"
            )
        if not FieldType.can_have_children(parent.type):
            raise InvalidHierarchyError(
                f"Parent field {parent.slug} is of type {parent.type}, not repeater"
            )
        if parent.parent_id is not None:
            raise InvalidHierarchyError(
                f"Parent field {parent.slug} is itself nested"
            )

    def create_field(self, field: SchemaField) -> int:
        if self.find_field_by_slug(field.slug) is not None:
            raise SlugConflictError(field.slug)
        if field.parent_id is not None:
            self._check_parent(field)
        now = now_utc()
        field.created_at = now
        field.updated_at = now
        try:
            cur = self._conn.execute(
                """INSERT INTO fields (
                    uuid, group_id, parent_id, slug, type, title, instructions,
                    position, config, validation, conditions, wrapper, fo_options,
                    value_translatable, active, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (field.uuid, field.group_id, field.parent_id, field.slug,
                 field.type, field.title, field.instructions, field.position,
                 _encode_bag(field.config), _encode_bag(field.validation),
                 _encode_bag(field.conditions), _encode_bag(field.wrapper),
                 _encode_bag(field.fo_options), int(field.value_translatable),
                 int(field.active), format_timestamp(now), format_timestamp(now))
            )
        except sqlite3.IntegrityError as e:
            if "slug" in str(e):
                raise SlugConflictError(field.slug) from e
            raise
        field.id = cur.lastrowid
        self._commit()
        self._changed()
        return field.id

    def delete_fields_by_group(self, group_id: int) -> None:
        self._conn.execute("DELETE FROM fields WHERE group_id = ?", (group_id,))
        self._commit()
        self._changed()

    # --- Values ---

    def find_values_by_group(self, group_id: int) -> list[FieldValue]:
        rows = self._conn.execute(
            """SELECT v.* FROM field_values v
            JOIN fields f ON f.id = v.field_id
            WHERE f.group_id = ?
            ORDER BY f.position, f.id, v.entity_type, v.entity_id, v.id_shop, v.id_lang""",
            (group_id,)
        ).fetchall()
        return [self._row_to_value(r) for r in rows]

    def save_value(self, value: FieldValue) -> None:
        if value.value_index is None:
            value.value_index = index_value_for(value.value)
        else:
            value.value_index = index_value_for(value.value_index)
        now = format_timestamp(now_utc())
        row = self._conn.execute(
            "SELECT id FROM field_values WHERE field_id = ? AND entity_type = ? "
            "AND entity_id = ? AND id_shop = ? AND id_lang IS ?",
            value.key()
        ).fetchone()
        if row:
            self._conn.execute(
                "UPDATE field_values SET value = ?, value_index = ?, updated_at = ? WHERE id = ?",
                (value.value, value.value_index, now, row["id"])
            )
        else:
            self._conn.execute(
                "INSERT INTO field_values (field_id, entity_type, entity_id, id_shop, "
                "id_lang, value, value_index, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                value.key() + (value.value, value.value_index, now, now)
            )
        self._commit()
        self._changed()

    # --- Metadata ---

    def get_metadata(self, key: str) -> str | None:
        row = self._conn.execute(
            "SELECT value FROM metadata WHERE key = ?", (key,)
        ).fetchone()
        return row["value"] if row else None

    def set_metadata(self, key: str, value: str) -> None:
        self._conn.execute(
            "INSERT INTO metadata (key, value) VALUES (?, ?) "
            "ON CONFLICT (key) DO UPDATE SET value = excluded.value",
            (key, value)
        )
        self._commit()

    # --- Change notification ---

    def add_change_listener(self, listener: Callable[[], None]) -> None:
        self._listeners.append(listener)

    # --- Transactions ---

    def run_in_transaction(self, fn: Callable[[Storage], Any]) -> Any:
        self._tx_depth += 1
        try:
            result = fn(self)
        except Exception:
            self._tx_depth -= 1
            if self._tx_depth == 0:
                self._conn.rollback()
                logger.debug("Transaction rolled back")
            raise
        self._tx_depth -= 1
        self._commit()
        return result


def open_storage(db_path: str) -> SQLiteStorage:
    """Open or create a SQLite storage at the given path."""
    return SQLiteStorage(db_path)
