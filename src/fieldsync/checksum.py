"""Content checksums for change detection between the store and sync files.

The digest covers only the attributes that define a group's schema. Store ids,
uuids, timestamps and the key order inside option bags never affect it.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any, Iterable

from fieldsync.models import SchemaField, SchemaGroup, decode_option_bag

PREFIX = "sha256:"


def _field_entry(field: SchemaField, parent_slug: str | None = None) -> dict[str, Any]:
    entry = {
        "slug": field.slug,
        "type": field.type,
        "title": field.title,
        "config": decode_option_bag(field.config),
        "validation": decode_option_bag(field.validation),
    }
    if parent_slug is not None:
        entry["parent"] = parent_slug
    return entry


def canonical_value(group: SchemaGroup, fields: Iterable[SchemaField]) -> dict[str, Any]:
    """The structure that gets hashed.

    ``fields`` are the group's top-level fields with ``subfields`` loaded.
    Each top-level field is followed by its children, both in position order.
    """
    entries = []
    for field in sorted(fields, key=lambda f: f.position):
        entries.append(_field_entry(field))
        for sub in sorted(field.subfields, key=lambda f: f.position):
            entries.append(_field_entry(sub, parent_slug=field.slug))
    return {
        "group": {
            "slug": group.slug,
            "title": group.title,
            "location_rules": decode_option_bag(group.location_rules),
            "placement_tab": group.placement_tab,
            "priority": int(group.priority),
            "active": bool(group.active),
        },
        "fields": entries,
    }


def compute_checksum(group: SchemaGroup, fields: Iterable[SchemaField]) -> str:
    """Return ``sha256:<hex>`` over the canonical group/field value."""
    encoded = json.dumps(
        canonical_value(group, fields),
        sort_keys=True, separators=(",", ":"), ensure_ascii=False,
    )
    return PREFIX + hashlib.sha256(encoded.encode("utf-8")).hexdigest()


def checksum_matches(a: str | None, b: str | None) -> bool:
    if not a or not b:
        return False
    return a == b
