"""Canonical sync documents: per-group records and the whole-store snapshot."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fieldsync.checksum import compute_checksum
from fieldsync.errors import DocumentError
from fieldsync.models import (
    SchemaField, SchemaGroup, decode_option_bag, decode_value_for_export,
    encode_value_for_store, format_timestamp, now_utc,
)

if TYPE_CHECKING:
    from fieldsync.storage.interface import Storage

__all__ = [
    "FORMAT_VERSION", "build_group_record", "build_snapshot", "decode_option_bag",
    "decode_value_for_export", "encode_value_for_store", "field_body",
    "group_body", "load_fields", "parse_group_record", "values_for_group",
]

FORMAT_VERSION = "1.0"


def load_fields(store: Storage, group_id: int) -> list[SchemaField]:
    """Top-level fields of a group with repeater children attached."""
    fields = store.find_fields_by_group(group_id)
    for f in fields:
        f.subfields = store.find_fields_by_parent(f.id)
    return fields


def group_body(group: SchemaGroup) -> dict[str, Any]:
    return group.to_dict()


def field_body(field: SchemaField) -> dict[str, Any]:
    return field.to_dict()


def values_for_group(store: Storage, group_id: int,
                     fields: list[SchemaField] | None = None) -> list[dict[str, Any]]:
    """Export records for every value of the group, addressed by field slug."""
    if fields is None:
        fields = load_fields(store, group_id)
    slugs: dict[int, str] = {}
    for f in fields:
        slugs[f.id] = f.slug
        for sub in f.subfields:
            slugs[sub.id] = sub.slug
    return [
        v.to_dict(slugs[v.field_id])
        for v in store.find_values_by_group(group_id)
        if v.field_id in slugs
    ]


def build_group_record(store: Storage, group: SchemaGroup,
                       module_version: str) -> dict[str, Any]:
    """The per-group SyncRecord written to ``groups/<slug>.json``."""
    fields = load_fields(store, group.id)
    return {
        "version": FORMAT_VERSION,
        "module_version": module_version,
        "exported_at": format_timestamp(now_utc()),
        "checksum": compute_checksum(group, fields),
        "group": group_body(group),
        "fields": [field_body(f) for f in fields],
    }


def build_snapshot(store: Storage, module_version: str,
                   include_values: bool = True) -> dict[str, Any]:
    """Whole-store document: every group with its fields and values."""
    groups = []
    for group in store.find_all_groups():
        fields = load_fields(store, group.id)
        body = group_body(group)
        body["fields"] = [field_body(f) for f in fields]
        body["field_values"] = (
            values_for_group(store, group.id, fields) if include_values else []
        )
        groups.append(body)
    return {
        "version": FORMAT_VERSION,
        "exported_at": format_timestamp(now_utc()),
        "module_version": module_version,
        "groups": groups,
    }


def parse_group_record(data: Any) -> tuple[SchemaGroup, list[SchemaField]]:
    """Validate the top-level shape of a SyncRecord and build its models.

    Extra top-level keys are ignored.
    """
    if not isinstance(data, dict):
        raise DocumentError("Document must be a JSON object")
    errors = []
    if not isinstance(data.get("group"), dict):
        errors.append('Missing or invalid "group" object')
    if not isinstance(data.get("fields"), list):
        errors.append('Missing or invalid "fields" list')
    if errors:
        raise DocumentError("Invalid sync record", errors)
    try:
        group = SchemaGroup.from_dict(data["group"])
    except (TypeError, ValueError) as e:
        raise DocumentError(f'Invalid "group" object: {e}') from e
    fields = []
    for i, raw in enumerate(data["fields"]):
        if not isinstance(raw, dict):
            raise DocumentError(f"Field at index {i} is not an object")
        try:
            fields.append(SchemaField.from_dict(raw, default_position=i))
        except (AttributeError, TypeError, ValueError) as e:
            raise DocumentError(f"Invalid field at index {i}: {e}") from e
    return group, fields
