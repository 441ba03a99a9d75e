"""Core data models for field groups, fields and field values."""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


# --- FieldType constants ---

class FieldType:
    TEXT = "text"
    TEXTAREA = "textarea"
    RICHTEXT = "richtext"
    NUMBER = "number"
    EMAIL = "email"
    URL = "url"
    SELECT = "select"
    RADIO = "radio"
    CHECKBOX = "checkbox"
    BOOLEAN = "boolean"
    DATE = "date"
    TIME = "time"
    DATETIME = "datetime"
    COLOR = "color"
    STAR_RATING = "star_rating"
    IMAGE = "image"
    GALLERY = "gallery"
    FILE = "file"
    FILES = "files"
    VIDEO = "video"
    RELATION = "relation"
    LIST = "list"
    REPEATER = "repeater"

    _VALID = {
        TEXT, TEXTAREA, RICHTEXT, NUMBER, EMAIL, URL, SELECT, RADIO, CHECKBOX,
        BOOLEAN, DATE, TIME, DATETIME, COLOR, STAR_RATING, IMAGE, GALLERY,
        FILE, FILES, VIDEO, RELATION, LIST, REPEATER,
    }

    @classmethod
    def is_valid(cls, t: str) -> bool:
        return t in cls._VALID

    @classmethod
    def can_have_children(cls, t: str) -> bool:
        return t == cls.REPEATER


# --- SyncStatus constants ---

class SyncStatus:
    SYNCED = "synced"
    MODIFIED = "modified"
    NEED_PUSH = "need_push"
    NEED_PULL = "need_pull"
    THEME_ONLY = "theme_only"
    CONFLICT = "conflict"  # Reserved, never produced by the checksum classifier
    NO_FILE = "no_file"
    DISABLED = "disabled"
    ERROR = "error"

    # Whole-store snapshot comparison
    FILE_NEWER = "file_newer"
    DB_NEWER = "db_newer"

    DESCRIPTIONS = {
        SYNCED: "Group is in sync with the JSON file",
        MODIFIED: "Group differs from the JSON file",
        NEED_PUSH: "Group exists in the database but not on file",
        NEED_PULL: "Group exists on file but not in the database",
        THEME_ONLY: "Group only exists on file",
        CONFLICT: "Both database and file have different changes",
        NO_FILE: "Neither side has data",
        DISABLED: "Sync is disabled",
        ERROR: "Status could not be determined",
        FILE_NEWER: "The sync file is newer than the database",
        DB_NEWER: "The database is newer than the sync file",
    }


# --- Helper: timestamp handling ---

def parse_timestamp(s: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp string to datetime."""
    if not s:
        return None
    s = s.strip()
    if not s:
        return None
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(s)
    except ValueError:
        pass
    for fmt in ("%Y-%m-%dT%H:%M:%S%z", "%Y-%m-%dT%H:%M:%S.%f%z", "%Y-%m-%d %H:%M:%S"):
        try:
            return datetime.strptime(s, fmt)
        except ValueError:
            continue
    raise ValueError(f"Cannot parse timestamp: {s}")


def format_timestamp(dt: datetime | None) -> str | None:
    """Format datetime to an ISO-8601 string with a Z suffix for UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    s = dt.isoformat()
    if s.endswith("+00:00"):
        s = s[:-6] + "Z"
    return s


def now_utc() -> datetime:
    """Current time in UTC."""
    return datetime.now(timezone.utc)


def new_uuid() -> str:
    """Portable identity for groups and fields, assigned once at creation."""
    return str(uuid.uuid4())


INDEX_VALUE_MAX = 255


def index_value_for(value: str | None) -> str | None:
    """Plain-text projection of a stored value used for search/filtering."""
    if value is None:
        return None
    return value[:INDEX_VALUE_MAX]


# --- Dataclasses ---

@dataclass
class SchemaGroup:
    """A named, orderable collection of fields."""

    id: int = 0
    uuid: str = field(default_factory=new_uuid)
    slug: str = ""
    title: str = ""
    description: str | None = None
    location_rules: Any = field(default_factory=dict)
    placement_tab: str = "description"
    placement_position: str | None = None
    priority: int = 10
    active: bool = True
    bo_options: dict = field(default_factory=dict)
    fo_options: dict = field(default_factory=dict)
    shop_ids: list[int] = field(default_factory=list)
    created_at: datetime = field(default_factory=now_utc)
    updated_at: datetime = field(default_factory=now_utc)

    def validate(self) -> str | None:
        """Validate group fields. Returns error message or None if valid."""
        if not self.slug:
            return "slug is required"
        if not self.title:
            return "title is required"
        return None

    def to_dict(self) -> dict:
        """Canonical group attributes (no store-local id, no timestamps)."""
        return {
            "uuid": self.uuid,
            "slug": self.slug,
            "title": self.title,
            "description": self.description,
            "location_rules": self.location_rules,
            "placement_tab": self.placement_tab,
            "placement_position": self.placement_position,
            "priority": self.priority,
            "bo_options": self.bo_options,
            "fo_options": self.fo_options,
            "active": self.active,
            "shop_ids": list(self.shop_ids),
        }

    @classmethod
    def from_dict(cls, d: dict) -> SchemaGroup:
        """Build a group from a document body. Unknown keys are ignored."""
        group = cls()
        if d.get("uuid"):
            group.uuid = d["uuid"]
        group.slug = d.get("slug", "")
        group.title = d.get("title", "")
        group.description = d.get("description")
        group.location_rules = _bag(d.get("location_rules"), {})
        group.placement_tab = d.get("placement_tab") or "description"
        group.placement_position = d.get("placement_position")
        # Older exports carry the priority as "position"
        priority = d.get("priority", d.get("position", 10))
        group.priority = int(priority) if priority is not None else 10
        group.active = bool(d.get("active", True))
        group.bo_options = _bag(d.get("bo_options"), {})
        group.fo_options = _bag(d.get("fo_options"), {})
        group.shop_ids = [int(s) for s in (d.get("shop_ids") or [])]
        return group


@dataclass
class SchemaField:
    """A single typed data slot within a group."""

    id: int = 0
    uuid: str = field(default_factory=new_uuid)
    group_id: int = 0
    parent_id: int | None = None
    slug: str = ""
    type: str = FieldType.TEXT
    title: str = ""
    instructions: str | None = None
    position: int = 0
    value_translatable: bool = False
    active: bool = True
    config: dict = field(default_factory=dict)
    validation: dict = field(default_factory=dict)
    conditions: Any = field(default_factory=dict)
    wrapper: dict = field(default_factory=dict)
    fo_options: dict = field(default_factory=dict)
    created_at: datetime = field(default_factory=now_utc)
    updated_at: datetime = field(default_factory=now_utc)

    # Populated when the aggregate is loaded for export/import
    subfields: list[SchemaField] = field(default_factory=list)

    def validate(self) -> str | None:
        if not self.slug:
            return "slug is required"
        if not self.title:
            return "title is required"
        if not self.type:
            return "type is required"
        if not FieldType.is_valid(self.type):
            return f"invalid field type: {self.type}"
        return None

    def to_dict(self) -> dict:
        d: dict[str, Any] = {
            "uuid": self.uuid,
            "slug": self.slug,
            "type": self.type,
            "title": self.title,
            "instructions": self.instructions,
            "position": self.position,
            "config": self.config,
            "validation": self.validation,
            "conditions": self.conditions,
            "wrapper": self.wrapper,
            "fo_options": self.fo_options,
            "value_translatable": self.value_translatable,
            "active": self.active,
        }
        if self.subfields:
            d["subfields"] = [
                f.to_dict() for f in sorted(self.subfields, key=lambda f: f.position)
            ]
        return d

    @classmethod
    def from_dict(cls, d: dict, default_position: int = 0) -> SchemaField:
        f = cls()
        if d.get("uuid"):
            f.uuid = d["uuid"]
        f.slug = d.get("slug", "")
        f.type = d.get("type", "")
        f.title = d.get("title", "")
        f.instructions = d.get("instructions")
        position = d.get("position")
        f.position = int(position) if position is not None else default_position
        f.value_translatable = bool(d.get("value_translatable", d.get("translatable", False)))
        f.active = bool(d.get("active", True))
        f.config = _bag(d.get("config"), {})
        f.validation = _bag(d.get("validation"), {})
        f.conditions = _bag(d.get("conditions"), {})
        f.wrapper = _bag(d.get("wrapper"), {})
        f.fo_options = _bag(d.get("fo_options"), {})
        f.subfields = [
            cls.from_dict(sub, default_position=i)
            for i, sub in enumerate(d.get("subfields") or [])
        ]
        return f


@dataclass
class FieldValue:
    """The value an entity holds for one field."""

    field_id: int = 0
    entity_type: str = "product"
    entity_id: int = 0
    id_shop: int = 1
    id_lang: int | None = None
    value: str | None = None
    value_index: str | None = None

    def key(self) -> tuple:
        return (self.field_id, self.entity_type, self.entity_id, self.id_shop, self.id_lang)

    def to_dict(self, field_slug: str) -> dict:
        """Export record addressing the field by slug."""
        return {
            "field_slug": field_slug,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "id_shop": self.id_shop,
            "id_lang": self.id_lang,
            "value": decode_value_for_export(self.value),
            "value_index": self.value_index,
        }


def decode_value_for_export(value: str | None) -> Any:
    """Decode a stored value: JSON composites become structures, text stays text."""
    if value is None or value == "":
        return None
    try:
        decoded = json.loads(value)
    except (json.JSONDecodeError, TypeError):
        return value
    # Bare numbers and booleans stay as the stored text
    if isinstance(decoded, (dict, list)):
        return decoded
    return value


def encode_value_for_store(value: Any) -> str | None:
    """Inverse of decode_value_for_export."""
    if value is None:
        return None
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    if isinstance(value, bool):
        return "1" if value else "0"
    return str(value)


def decode_option_bag(value: Any) -> Any:
    """Tolerant decoding of an option bag.

    Accepts a dict or list (returned as-is), a JSON string, a JSON string that
    was itself JSON-quoted, or an empty value. Anything undecodable becomes an
    empty dict.
    """
    if isinstance(value, (dict, list)):
        return value
    if value is None:
        return {}
    if not isinstance(value, str):
        return {}
    s = value.strip()
    if s in ("", "{}", "null"):
        return {}
    if s == "[]":
        return []
    try:
        decoded = json.loads(s)
    except json.JSONDecodeError:
        return {}
    # Double-encoded: '"{\"a\":1}"'
    if isinstance(decoded, str):
        try:
            decoded = json.loads(decoded)
        except json.JSONDecodeError:
            return {}
    if isinstance(decoded, (dict, list)):
        return decoded
    return {}


def _bag(value: Any, default: Any) -> Any:
    if value is None:
        return default
    return decode_option_bag(value)
