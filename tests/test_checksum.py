"""Tests for content checksums."""

import re

from conftest import add_group
from fieldsync.checksum import checksum_matches, compute_checksum
from fieldsync.document import load_fields
from fieldsync.models import FieldType, SchemaField, SchemaGroup


def _group(**kwargs) -> SchemaGroup:
    defaults = dict(slug="specs", title="Specifications", location_rules={"a": 1, "b": 2})
    defaults.update(kwargs)
    return SchemaGroup(**defaults)


def _fields(**kwargs) -> list[SchemaField]:
    defaults = dict(slug="material", type=FieldType.TEXT, title="Material",
                    config={"placeholder": "e.g. cotton", "max": 80})
    defaults.update(kwargs)
    return [SchemaField(**defaults)]


def test_format():
    assert re.fullmatch(r"sha256:[0-9a-f]{64}", compute_checksum(_group(), _fields()))


def test_stable_across_calls():
    assert compute_checksum(_group(), _fields()) == compute_checksum(_group(), _fields())


def test_option_bag_key_order_ignored():
    a = compute_checksum(_group(location_rules={"a": 1, "b": 2}), _fields())
    b = compute_checksum(_group(location_rules={"b": 2, "a": 1}), _fields())
    assert a == b
    c = compute_checksum(_group(), _fields(config={"max": 80, "placeholder": "e.g. cotton"}))
    assert a == c


def test_json_string_bags_equal_decoded():
    a = compute_checksum(_group(), _fields())
    b = compute_checksum(_group(location_rules='{"b": 2, "a": 1}'), _fields())
    assert a == b


def test_ids_uuids_and_timestamps_ignored():
    g1, g2 = _group(), _group()
    g2.id = 99
    assert g1.uuid != g2.uuid
    f2 = _fields()
    f2[0].id = 7
    f2[0].uuid = "other"
    assert compute_checksum(g1, _fields()) == compute_checksum(g2, f2)


def test_listed_attributes_change_digest():
    base = compute_checksum(_group(), _fields())
    assert compute_checksum(_group(title="Specs"), _fields()) != base
    assert compute_checksum(_group(priority=1), _fields()) != base
    assert compute_checksum(_group(active=False), _fields()) != base
    assert compute_checksum(_group(placement_tab="extra"), _fields()) != base
    assert compute_checksum(_group(), _fields(type=FieldType.TEXTAREA)) != base
    assert compute_checksum(_group(), _fields(validation={"required": True})) != base
    assert compute_checksum(_group(), _fields(title="Fabric")) != base
    assert compute_checksum(_group(), _fields(slug="fabric")) != base
    assert compute_checksum(_group(), _fields(config={"placeholder": "e.g. wool", "max": 80})) != base


def test_unlisted_attributes_ignored():
    base = compute_checksum(_group(), _fields())
    assert compute_checksum(_group(description="Notes"), _fields()) == base
    assert compute_checksum(_group(), _fields(instructions="Help")) == base


def test_subfields_included():
    rows = SchemaField(slug="rows", type=FieldType.REPEATER, title="Rows")
    base = compute_checksum(_group(), [rows])
    rows.subfields = [SchemaField(slug="label", type="text", title="Label")]
    assert compute_checksum(_group(), [rows]) != base


def test_field_order_by_position():
    a = SchemaField(slug="a", type="text", title="A", position=0)
    b = SchemaField(slug="b", type="text", title="B", position=1)
    assert compute_checksum(_group(), [a, b]) == compute_checksum(_group(), [b, a])
    b.position = -1
    assert compute_checksum(_group(), [a, b]) != compute_checksum(_group(), [
        SchemaField(slug="a", type="text", title="A", position=0),
        SchemaField(slug="b", type="text", title="B", position=1),
    ])


def test_store_round_trip_keeps_checksum(store):
    group = _group()
    fields = _fields()
    expected = compute_checksum(group, fields)
    add_group(store, group.slug, group.title, fields, location_rules={"b": 2, "a": 1})
    stored = store.find_group_by_slug("specs")
    assert compute_checksum(stored, load_fields(store, stored.id)) == expected


def test_checksum_matches():
    assert checksum_matches("sha256:ab", "sha256:ab")
    assert not checksum_matches("sha256:ab", "sha256:cd")
    assert not checksum_matches(None, None)
    assert not checksum_matches("sha256:ab", None)
