"""Tests for replace/merge import."""

import copy

import pytest

from conftest import add_group
from fieldsync.document import build_group_record, build_snapshot
from fieldsync.importer import (
    MODE_REPLACE, ImportResult, import_document, import_merge, import_record,
    import_replace, validate_document,
)
from fieldsync.models import FieldType


def _doc(*groups, **extra) -> dict:
    data = {"version": "1.0", "groups": list(groups)}
    data.update(extra)
    return data


def _group(slug: str, *fields, **kwargs) -> dict:
    body = {"slug": slug, "title": slug.title(), "fields": list(fields)}
    body.update(kwargs)
    return body


def _field(slug: str, type: str = "text", **kwargs) -> dict:
    body = {"slug": slug, "type": type, "title": slug.title()}
    body.update(kwargs)
    return body


class TestValidate:
    def test_valid(self):
        assert validate_document(_doc(_group("specs", _field("material")))) == []

    def test_missing_version(self):
        errors = validate_document({"groups": []})
        assert "Missing required field: version" in errors

    def test_no_groups_key(self):
        assert "Import data must contain groups" in validate_document({"version": "1.0"})

    def test_group_errors(self):
        errors = validate_document(_doc({"slug": "", "title": "", "fields": None}))
        assert 'Group at index 0: missing required field "title"' in errors
        assert 'Group at index 0: missing required field "slug"' in errors
        assert 'Group at index 0: missing required field "fields" (array)' in errors

    def test_field_errors_all_reported(self):
        errors = validate_document(_doc(_group("specs", {"slug": "a"}, {"type": "text"})))
        assert 'Group "specs", field at index 0: missing required field "type"' in errors
        assert 'Group "specs", field at index 0: missing required field "title"' in errors
        assert 'Group "specs", field at index 1: missing required field "slug"' in errors

    def test_unknown_type(self):
        errors = validate_document(_doc(_group("specs", _field("x", "hologram"))))
        assert any("unknown field type" in e for e in errors)

    def test_subfields_only_under_repeater(self):
        bad = _field("list", FieldType.LIST, subfields=[_field("child")])
        errors = validate_document(_doc(_group("specs", bad)))
        assert any("only repeater fields may have subfields" in e for e in errors)

    def test_subfields_one_level_deep(self):
        inner = _field("inner", FieldType.REPEATER, subfields=[_field("deep")])
        outer = _field("outer", FieldType.REPEATER, subfields=[inner])
        errors = validate_document(_doc(_group("specs", outer)))
        assert any("one level deep" in e for e in errors)

    def test_duplicate_slugs(self):
        errors = validate_document(_doc(
            _group("a", _field("material")),
            _group("b", _field("material")),
            _group("a", _field("other")),
        ))
        assert 'Duplicate field slug "material"' in errors
        assert 'Duplicate group slug "a"' in errors

    def test_numbers_must_be_integers(self):
        errors = validate_document(_doc(
            _group("specs", _field("material", position="first"), priority="high",
                   shop_ids=[1, "two"]),
            _group("care", position=True),
        ))
        assert 'Group at index 0: "priority" must be an integer' in errors
        assert 'Group at index 0: "shop_ids" must be a list of integers' in errors
        assert 'Group "specs", field at index 0: "position" must be an integer' in errors
        assert 'Group at index 1: "position" must be an integer' in errors

    def test_numeric_strings_accepted(self):
        data = _doc(_group("specs", _field("material", position="2"), priority="5",
                           shop_ids=["1"]))
        assert validate_document(data) == []

    def test_unsafe_group_slug(self):
        errors = validate_document(_doc(_group("../outside", _field("material"))))
        assert errors == ["Group at index 0: invalid slug '../outside'"]

    def test_value_records(self):
        errors = validate_document(_doc(
            _group("specs", _field("material"), field_values=[{"entity_id": "abc"}]),
            values=[{"field_slug": "material", "entity_id": 1, "id_lang": "fr"}, "x"],
        ))
        assert 'Group "specs", value at index 0: "entity_id" must be an integer' in errors
        assert 'Top-level, value at index 0: "id_lang" must be an integer' in errors
        assert "Top-level, value at index 1: not an object" in errors

    def test_single_record_shape(self):
        record = {"version": "1.0", "group": {"slug": "specs", "title": "Specs"},
                  "fields": [_field("material")]}
        assert validate_document(record) == []


class TestReplace:
    def test_round_trip_identity(self, store, specs_group):
        original_fields = store.find_fields_by_group(specs_group.id)
        data = build_snapshot(store, "1.0")
        store.delete_group(specs_group.id)

        result = import_replace(store, data)
        assert result.ok, result.errors
        assert result.message == "1 groups imported"
        got = store.find_group_by_slug("specs")
        assert got.title == specs_group.title
        assert got.uuid == specs_group.uuid
        assert got.id != specs_group.id
        fields = store.find_fields_by_group(got.id)
        assert [(f.slug, f.type, f.position) for f in fields] == [
            (f.slug, f.type, f.position) for f in original_fields
        ]
        assert fields[0].uuid == original_fields[0].uuid
        [value] = store.find_values_by_group(got.id)
        assert value.value == "Cotton"
        assert value.field_id == fields[0].id

    def test_is_destructive(self, store):
        add_group(store, "a")
        add_group(store, "b")
        result = import_replace(store, _doc(_group("c", _field("x"))))
        assert result.ok
        assert [g.slug for g in store.find_all_groups()] == ["c"]

    def test_validation_failure_leaves_store_alone(self, store):
        add_group(store, "a")
        result = import_replace(store, {"groups": [{"slug": "b"}]})
        assert not result.success
        assert result.errors["validation"]
        assert store.find_group_by_slug("a") is not None

    def test_no_groups(self, store):
        add_group(store, "a")
        result = import_replace(store, _doc())
        assert not result.success
        assert result.message == "No groups to import"
        assert store.find_group_by_slug("a") is not None

    def test_duplicate_slugs_rejected_before_delete(self, store):
        add_group(store, "a")
        data = _doc(_group("b", _field("x")), _group("c", _field("x")))
        result = import_replace(store, data)
        assert not result.success
        assert store.find_group_by_slug("a") is not None

    def test_per_group_error_continues(self, store, monkeypatch):
        original = store.create_field

        def flaky(field):
            if field.slug == "broken":
                raise RuntimeError("disk on fire")
            return original(field)

        monkeypatch.setattr(store, "create_field", flaky)
        data = _doc(_group("bad", _field("ok1"), _field("broken")), _group("good", _field("ok2")))
        result = import_replace(store, data)
        assert result.created == ["good"]
        assert result.errors["bad"] == ["disk on fire"]
        assert not result.ok
        # The failed group left nothing behind
        assert store.find_group_by_slug("bad") is None
        assert store.find_field_by_slug("ok1") is None

    def test_zero_created_is_failure(self, store, monkeypatch):
        def boom(field):
            raise RuntimeError("nope")

        monkeypatch.setattr(store, "create_field", boom)
        result = import_replace(store, _doc(_group("a", _field("x"))))
        assert not result.success
        assert "No groups were successfully imported" in result.errors["import"]

    def test_parents_before_children(self, store):
        rows = _field("rows", FieldType.REPEATER, position=1,
                      subfields=[_field("label", position=0)])
        result = import_replace(store, _doc(_group("table", _field("title", position=0), rows)))
        assert result.ok
        assert result.fields_imported == 3
        parent = store.find_field_by_slug("rows")
        child = store.find_field_by_slug("label")
        assert child.parent_id == parent.id

    def test_legacy_flat_children(self, store):
        fields = [
            {"id": 10, "slug": "rows", "type": "repeater", "title": "Rows", "position": 0},
            {"id": 11, "id_parent": 10, "slug": "label", "type": "text", "title": "Label",
             "position": 0},
        ]
        result = import_replace(store, _doc(_group("table", *fields)))
        assert result.ok
        assert store.find_field_by_slug("label").parent_id == store.find_field_by_slug("rows").id


class TestValues:
    def test_unknown_slug_skipped(self, store):
        data = _doc(_group("specs", _field("material"), field_values=[
            {"field_slug": "material", "entity_id": 1, "value": "Wool"},
            {"field_slug": "ghost", "entity_id": 1, "value": "Boo"},
        ]))
        result = import_replace(store, data)
        assert result.ok
        assert result.values_imported == 1
        assert result.values_skipped == 1
        assert result.skipped == {"ghost": "unknown field"}

    def test_malformed_top_level_value_rejected(self, store):
        data = _doc(_group("specs", _field("material")), values=[
            {"field_slug": "material", "entity_id": "abc", "value": "Wool"},
        ])
        result = import_merge(store, data)
        assert not result.success
        assert result.errors["validation"]
        # Rejected before anything was written
        assert store.find_group_by_slug("specs") is None

    def test_failing_top_level_values_reported(self, store, monkeypatch):
        def fail(value):
            raise RuntimeError("disk full")

        data = _doc(_group("specs", _field("material")), values=[
            {"field_slug": "material", "entity_id": 1, "value": "Wool"},
        ])
        monkeypatch.setattr(store, "save_value", fail)
        result = import_merge(store, data)
        assert result.errors["values"] == ["disk full"]
        assert result.created == ["specs"]
        assert result.values_imported == 0

    def test_top_level_values(self, store):
        data = _doc(_group("specs", _field("colors", FieldType.CHECKBOX)), values=[
            {"field_slug": "colors", "entity_type": "category", "entity_id": 3,
             "id_shop": 2, "id_lang": 1, "value": ["red", "blue"]},
        ])
        result = import_replace(store, data)
        assert result.values_imported == 1
        group = store.find_group_by_slug("specs")
        [value] = store.find_values_by_group(group.id)
        assert value.entity_type == "category"
        assert value.id_shop == 2
        assert value.id_lang == 1
        assert value.value == '["red","blue"]'

    def test_defaults(self, store):
        data = _doc(_group("specs", _field("material"), field_values=[
            {"field_slug": "material", "entity_id": 9, "value": 12},
        ]))
        import_replace(store, data)
        [value] = store.find_values_by_group(store.find_group_by_slug("specs").id)
        assert value.entity_type == "product"
        assert value.id_shop == 1
        assert value.value == "12"


class TestMerge:
    def test_preserves_untouched_groups(self, store):
        add_group(store, "a", fields=[("a_field", "text")])
        add_group(store, "b", fields=[("b_field", "text")])
        result = import_merge(store, _doc(_group("b", _field("b_new")), _group("c", _field("c1"))))
        assert result.ok
        assert result.created == ["c"]
        assert result.updated == ["b"]
        assert result.message == "1 groups created, 1 groups updated"
        assert store.find_field_by_slug("a_field") is not None
        assert store.find_field_by_slug("b_field") is None
        assert store.find_field_by_slug("b_new") is not None

    def test_update_keeps_id_and_uuid(self, store):
        group = add_group(store, "specs", "Old title")
        result = import_merge(store, _doc(_group("specs", uuid="different", title="New",
                                                 shop_ids=[2])))
        assert result.updated == ["specs"]
        got = store.find_group_by_slug("specs")
        assert got.id == group.id
        assert got.uuid == group.uuid
        assert got.title == "New"
        assert got.shop_ids == [2]

    def test_slug_conflict_with_other_group(self, store):
        add_group(store, "a", fields=[("material", "text")])
        add_group(store, "b", fields=[("keep", "text")])
        result = import_merge(store, _doc(_group("b", _field("material"))))
        assert result.errors["b"]
        assert not result.success
        # Rolled back: group b still has its old field
        assert store.find_field_by_slug("keep") is not None


class TestRecord:
    def test_pull_record(self, store, specs_group):
        record = build_group_record(store, specs_group, "1.0")
        store.delete_group(specs_group.id)
        result = import_record(store, record)
        assert result.ok
        assert result.created == ["specs"]
        assert store.find_group_by_slug("specs").uuid == specs_group.uuid

    def test_invalid_record(self, store):
        result = import_record(store, {"version": "1.0", "group": "nope"})
        assert not result.success
        assert result.errors["validation"]

    def test_non_integer_priority(self, store):
        record = {"version": "1.0", "group": {"slug": "specs", "title": "S", "priority": "high"},
                  "fields": []}
        result = import_record(store, record, source="specs.json")
        assert not result.success
        assert result.source == "specs.json"
        assert 'Group at index 0: "priority" must be an integer' in result.errors["validation"]
        assert store.find_group_by_slug("specs") is None

    def test_subfields_not_a_list(self, store):
        record = {"version": "1.0", "group": {"slug": "specs", "title": "S"},
                  "fields": [_field("rows", FieldType.REPEATER, subfields="abc")]}
        result = import_record(store, record)
        assert not result.success
        assert any('"subfields" must be a list' in e for e in result.errors["validation"])


def test_import_document_dispatch(store):
    add_group(store, "a")
    result = import_document(store, _doc(_group("b", _field("x"))), mode=MODE_REPLACE)
    assert result.ok
    assert store.find_group_by_slug("a") is None
    with pytest.raises(ValueError):
        import_document(store, _doc(), mode="sideways")


def test_result_to_dict():
    result = ImportResult(message="ok")
    result.add_created("a")
    result.add_error("b", "bad")
    result.add_skipped("c", "exists")
    d = result.to_dict()
    assert d["summary"]["created"] == 1
    assert d["summary"]["errors"] == 1
    assert d["summary"]["skipped"] == 1
    assert not result.ok


def test_source_document_not_mutated(store):
    data = _doc(_group("specs", _field("material")))
    before = copy.deepcopy(data)
    import_replace(store, data)
    assert data == before
