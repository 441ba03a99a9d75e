"""Import sync documents into the store.

Two modes:
- replace: delete every stored group, then create each document group
- merge: upsert each document group by slug, leave other groups untouched

A single SyncRecord (``group`` + ``fields``) is pulled with merge semantics.
Each group is written inside its own store transaction, so a group that fails
part-way leaves no rows behind and the remaining groups still import.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable

from fieldsync.document import parse_group_record
from fieldsync.errors import DocumentError
from fieldsync.gateway import is_safe_slug
from fieldsync.models import (
    FieldType, FieldValue, SchemaField, SchemaGroup, encode_value_for_store,
)

if TYPE_CHECKING:
    from fieldsync.storage.interface import Storage

logger = logging.getLogger(__name__)

DEFAULT_SHOP_IDS = [1]

MODE_MERGE = "merge"
MODE_REPLACE = "replace"


@dataclass
class ImportResult:
    success: bool = True
    message: str = ""
    version: str = "unknown"
    source: str = ""
    created: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    skipped: dict[str, str] = field(default_factory=dict)
    errors: dict[str, list[str]] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)
    fields_imported: int = 0
    values_imported: int = 0
    values_skipped: int = 0

    @classmethod
    def failed(cls, message: str, errors: list[str] | None = None,
               key: str = "validation") -> ImportResult:
        result = cls(success=False, message=message)
        for error in errors or []:
            result.add_error(key, error)
        return result

    @property
    def ok(self) -> bool:
        return self.success and not self.errors

    def add_created(self, slug: str) -> None:
        self.created.append(slug)

    def add_updated(self, slug: str) -> None:
        self.updated.append(slug)

    def add_skipped(self, slug: str, reason: str) -> None:
        self.skipped[slug] = reason

    def add_error(self, key: str, message: str) -> None:
        self.errors.setdefault(key, []).append(message)

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)

    def error_messages(self) -> list[str]:
        return [f"{key}: {msg}" for key, msgs in self.errors.items() for msg in msgs]

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "version": self.version,
            "source": self.source,
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
            "errors": self.errors,
            "warnings": self.warnings,
            "summary": {
                "created": len(self.created),
                "updated": len(self.updated),
                "skipped": len(self.skipped),
                "errors": sum(len(v) for v in self.errors.values()),
                "fields_imported": self.fields_imported,
                "values_imported": self.values_imported,
                "values_skipped": self.values_skipped,
            },
        }


# --- Document shape ---

def _nest_flat_fields(fields: list[Any]) -> list[Any]:
    """Older exports list children flat with ``id``/``id_parent``; nest them."""
    if not any(isinstance(f, dict) and f.get("id_parent") for f in fields):
        return fields
    by_id = {f["id"]: dict(f, subfields=list(f.get("subfields") or []))
             for f in fields if isinstance(f, dict) and f.get("id") is not None}
    nested = []
    for f in fields:
        if not isinstance(f, dict):
            nested.append(f)
            continue
        copy = by_id.get(f.get("id")) or f
        parent = by_id.get(f.get("id_parent")) if f.get("id_parent") else None
        if parent is not None:
            parent["subfields"].append(copy)
        else:
            nested.append(copy)
    return nested


def groups_in(data: dict[str, Any]) -> list[Any]:
    """Group bodies carried by a snapshot (``groups``) or a SyncRecord."""
    if isinstance(data.get("groups"), list):
        groups = data["groups"]
    elif isinstance(data.get("group"), dict):
        body = dict(data["group"])
        body.setdefault("fields", data.get("fields"))
        body.setdefault("field_values", data.get("field_values") or [])
        groups = [body]
    else:
        return []
    result = []
    for g in groups:
        if isinstance(g, dict) and isinstance(g.get("fields"), list):
            g = dict(g, fields=_nest_flat_fields(g["fields"]))
        result.append(g)
    return result


def _is_int(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    if isinstance(value, str):
        try:
            int(value)
        except ValueError:
            return False
        return True
    return False


def _check_int(where: str, body: dict, key: str, errors: list[str]) -> None:
    value = body.get(key)
    if value is not None and not _is_int(value):
        errors.append(f'{where}: "{key}" must be an integer')


def _validate_values(where: str, values: Any, errors: list[str]) -> None:
    if values is None:
        return
    if not isinstance(values, list):
        errors.append(f"{where}: values must be a list")
        return
    for i, record in enumerate(values):
        at = f"{where}, value at index {i}"
        if not isinstance(record, dict):
            errors.append(f"{at}: not an object")
            continue
        for key in ("entity_id", "id_shop", "id_lang"):
            _check_int(at, record, key, errors)


def _validate_field(group_slug: str, index: int, raw: Any, errors: list[str],
                    parent: dict | None = None) -> None:
    where = f'Group "{group_slug}", field at index {index}'
    if parent is not None:
        where = f'Group "{group_slug}", field "{parent.get("slug")}", subfield at index {index}'
    if not isinstance(raw, dict):
        errors.append(f"{where}: not an object")
        return
    for key in ("type", "title", "slug"):
        if not raw.get(key):
            errors.append(f'{where}: missing required field "{key}"')
    ftype = raw.get("type")
    if ftype and not FieldType.is_valid(ftype):
        errors.append(f'{where}: unknown field type "{ftype}"')
    _check_int(where, raw, "position", errors)
    subfields = raw.get("subfields") or []
    if not subfields:
        return
    if not isinstance(subfields, list):
        errors.append(f'{where}: "subfields" must be a list')
        return
    if parent is not None:
        errors.append(f"{where}: subfields may only be nested one level deep")
        return
    if ftype != FieldType.REPEATER:
        errors.append(f"{where}: only repeater fields may have subfields")
        return
    for i, sub in enumerate(subfields):
        _validate_field(group_slug, i, sub, errors, parent=raw)


def _slugs(fields: list[Any]):
    for f in fields:
        if isinstance(f, dict):
            if f.get("slug"):
                yield f["slug"]
            if isinstance(f.get("subfields"), list):
                yield from _slugs(f["subfields"])


def validate_document(data: Any) -> list[str]:
    """Every structural violation in an import document (empty when valid)."""
    if not isinstance(data, dict):
        return ["Import data must be a JSON object"]
    errors: list[str] = []
    if not data.get("version"):
        errors.append("Missing required field: version")
    if "groups" in data and not isinstance(data["groups"], list):
        errors.append('"groups" must be a list')
        return errors
    if "groups" not in data and "group" not in data:
        errors.append("Import data must contain groups")
        return errors

    seen_groups: set[str] = set()
    seen_fields: set[str] = set()
    for index, group in enumerate(groups_in(data)):
        if not isinstance(group, dict):
            errors.append(f"Group at index {index} is not an object")
            continue
        for key in ("title", "slug"):
            if not group.get(key):
                errors.append(f'Group at index {index}: missing required field "{key}"')
        fields = group.get("fields")
        if not isinstance(fields, list):
            errors.append(f'Group at index {index}: missing required field "fields" (array)')
            continue
        slug = group.get("slug") or "unknown"
        if group.get("slug"):
            if not isinstance(slug, str) or not is_safe_slug(slug):
                errors.append(f"Group at index {index}: invalid slug {slug!r}")
                continue
            if slug in seen_groups:
                errors.append(f'Duplicate group slug "{slug}"')
            seen_groups.add(slug)
        for key in ("priority", "position"):
            _check_int(f"Group at index {index}", group, key, errors)
        shop_ids = group.get("shop_ids")
        if shop_ids is not None and (
            not isinstance(shop_ids, list) or not all(_is_int(s) for s in shop_ids)
        ):
            errors.append(f'Group at index {index}: "shop_ids" must be a list of integers')
        _validate_values(f'Group "{slug}"', group.get("field_values"), errors)
        for i, raw in enumerate(fields):
            _validate_field(slug, i, raw, errors)
        for field_slug in _slugs(fields):
            if field_slug in seen_fields:
                errors.append(f'Duplicate field slug "{field_slug}"')
            seen_fields.add(field_slug)
    _validate_values("Top-level", data.get("values"), errors)
    return errors


# --- Writing ---

def _create_fields(store: Storage, group_id: int, raw_fields: list[dict]) -> dict[str, int]:
    """Create fields parents-first; returns slug -> new id."""
    ids: dict[str, int] = {}
    fields = [SchemaField.from_dict(raw, default_position=i) for i, raw in enumerate(raw_fields)]
    for f in sorted(fields, key=lambda f: f.position):
        children, f.subfields = f.subfields, []
        f.group_id = group_id
        f.parent_id = None
        ids[f.slug] = store.create_field(f)
        for sub in sorted(children, key=lambda s: s.position):
            sub.group_id = group_id
            sub.parent_id = f.id
            ids[sub.slug] = store.create_field(sub)
    return ids


@dataclass
class _GroupOutcome:
    fields: int = 0
    values: int = 0
    values_skipped: int = 0
    unknown_slugs: set[str] = field(default_factory=set)


def _import_values(store: Storage, resolve: Callable[[str], int | None],
                   values: list[Any], outcome: _GroupOutcome) -> None:
    """Save value records whose field slug resolves; count the rest as skipped."""
    for record in values:
        if not isinstance(record, dict):
            outcome.values_skipped += 1
            continue
        slug = record.get("field_slug")
        field_id = resolve(slug) if slug else None
        if field_id is None:
            logger.debug("Skipping value for unknown field slug %r", slug)
            outcome.values_skipped += 1
            if slug:
                outcome.unknown_slugs.add(str(slug))
            continue
        id_lang = record.get("id_lang")
        store.save_value(FieldValue(
            field_id=field_id,
            entity_type=record.get("entity_type") or "product",
            entity_id=int(record.get("entity_id") or 0),
            id_shop=int(record.get("id_shop") or 1),
            id_lang=int(id_lang) if id_lang is not None else None,
            value=encode_value_for_store(record.get("value")),
            value_index=record.get("value_index"),
        ))
        outcome.values += 1


def _write_group(store: Storage, body: dict[str, Any],
                 existing: SchemaGroup | None) -> _GroupOutcome:
    group = SchemaGroup.from_dict(body)
    if not group.shop_ids:
        group.shop_ids = list(DEFAULT_SHOP_IDS)
    if existing is None:
        store.create_group(group)
    else:
        group.id = existing.id
        store.update_group(group)
        store.set_shop_associations(group.id, group.shop_ids)
        store.delete_fields_by_group(group.id)
    ids = _create_fields(store, group.id, body.get("fields") or [])
    outcome = _GroupOutcome(fields=len(ids))
    _import_values(store, ids.get, body.get("field_values") or [], outcome)
    return outcome


def _apply_outcome(result: ImportResult, outcome: _GroupOutcome) -> None:
    result.fields_imported += outcome.fields
    result.values_imported += outcome.values
    result.values_skipped += outcome.values_skipped
    for slug in sorted(outcome.unknown_slugs):
        result.add_skipped(slug, "unknown field")


def _import_top_level_values(store: Storage, data: dict[str, Any], result: ImportResult) -> None:
    values = data.get("values")
    if not isinstance(values, list) or not values:
        return

    def resolve(slug: str) -> int | None:
        f = store.find_field_by_slug(slug)
        return f.id if f else None

    outcome = _GroupOutcome()
    try:
        store.run_in_transaction(lambda s: _import_values(s, resolve, values, outcome))
    except Exception as e:
        logger.error("Import of top-level values failed: %s", e)
        result.add_error("values", str(e))
        return
    _apply_outcome(result, outcome)


def _begin(data: Any, source: str) -> tuple[ImportResult, list[Any] | None]:
    errors = validate_document(data)
    if errors:
        result = ImportResult.failed("Invalid import data", errors)
        result.source = source
        if isinstance(data, dict):
            result.version = str(data.get("version") or "unknown")
        logger.warning("Import rejected: %d validation error(s)", len(errors))
        return result, None
    result = ImportResult(version=str(data.get("version")), source=source)
    return result, groups_in(data)


def import_replace(store: Storage, data: Any, source: str = "") -> ImportResult:
    """Delete every stored group, then create each group of the document."""
    result, groups = _begin(data, source)
    if groups is None:
        return result
    if not groups:
        return ImportResult(success=False, message="No groups to import", source=source)

    def delete_all(s: Storage) -> None:
        for g in s.find_all_groups():
            s.delete_group(g.id)

    store.run_in_transaction(delete_all)

    for body in groups:
        slug = body["slug"]
        try:
            outcome = store.run_in_transaction(lambda s: _write_group(s, body, None))
        except Exception as e:
            logger.error("Import of group %s failed: %s", slug, e)
            result.add_error(slug, str(e))
            continue
        _apply_outcome(result, outcome)
        result.add_created(slug)

    _import_top_level_values(store, data, result)

    if not result.created:
        result.success = False
        result.add_error("import", "No groups were successfully imported")
        result.message = "Import failed: No groups were imported"
    else:
        result.message = f"{len(result.created)} groups imported"
    logger.info("Replace import: %s", result.message)
    return result


def import_merge(store: Storage, data: Any, source: str = "") -> ImportResult:
    """Create or update each document group by slug; leave other groups alone."""
    result, groups = _begin(data, source)
    if groups is None:
        return result
    if not groups:
        return ImportResult(success=False, message="No data to import", source=source)

    for body in groups:
        slug = body["slug"]
        existing = store.find_group_by_slug(slug)
        try:
            outcome = store.run_in_transaction(lambda s: _write_group(s, body, existing))
        except Exception as e:
            logger.error("Import of group %s failed: %s", slug, e)
            result.add_error(slug, str(e))
            continue
        _apply_outcome(result, outcome)
        if existing is None:
            result.add_created(slug)
        else:
            result.add_updated(slug)

    _import_top_level_values(store, data, result)

    if result.errors and not (result.created or result.updated):
        result.success = False
    result.message = (
        f"{len(result.created)} groups created, {len(result.updated)} groups updated"
    )
    logger.info("Merge import: %s", result.message)
    return result


def import_record(store: Storage, data: Any, source: str = "") -> ImportResult:
    """Pull a single per-group SyncRecord into the store (merge semantics)."""
    errors = validate_document(data)
    if errors:
        result = ImportResult.failed("Invalid sync record", errors)
        result.source = source
        return result
    try:
        parse_group_record(data)
    except DocumentError as e:
        result = ImportResult.failed(str(e), e.errors)
        result.source = source
        return result
    return import_merge(store, data, source=source)


def import_document(store: Storage, data: Any, mode: str = MODE_MERGE,
                    source: str = "") -> ImportResult:
    if mode == MODE_REPLACE:
        return import_replace(store, data, source=source)
    if mode == MODE_MERGE:
        return import_merge(store, data, source=source)
    raise ValueError(f"Unknown import mode: {mode}")
