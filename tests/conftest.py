"""Shared fixtures: a temporary SQLite store and a sync root."""

import os
import tempfile

import pytest

from fieldsync.gateway import FileGateway
from fieldsync.models import FieldType, FieldValue, SchemaField, SchemaGroup
from fieldsync.storage.sqlite_store import SQLiteStorage


@pytest.fixture
def store():
    """Create a temporary storage for testing."""
    fd, path = tempfile.mkstemp(suffix=".db")
    os.close(fd)
    s = SQLiteStorage(path)
    yield s
    s.close()
    os.unlink(path)


@pytest.fixture
def sync_root(tmp_path):
    return str(tmp_path / "themes" / "classic" / "fields")


@pytest.fixture
def gateway(sync_root):
    return FileGateway(sync_root)


def add_group(store, slug: str, title: str = "", fields=(), **kwargs) -> SchemaGroup:
    """Create a group with top-level (and nested) fields.

    ``fields`` items are (slug, type) tuples or SchemaField instances; a
    SchemaField's ``subfields`` are created beneath it.
    """
    group = SchemaGroup(slug=slug, title=title or slug.title(), shop_ids=[1], **kwargs)
    store.create_group(group)
    for position, spec in enumerate(fields):
        if isinstance(spec, tuple):
            spec = SchemaField(slug=spec[0], type=spec[1], title=spec[0].title())
        children, spec.subfields = spec.subfields, []
        spec.group_id = group.id
        spec.position = position
        store.create_field(spec)
        for i, child in enumerate(children):
            child.group_id = group.id
            child.parent_id = spec.id
            child.position = i
            store.create_field(child)
    return group


@pytest.fixture
def specs_group(store):
    """The 'specs' group holding a single text field 'material'."""
    group = add_group(store, "specs", "Specifications", [("material", FieldType.TEXT)])
    field = store.find_field_by_slug("material")
    store.save_value(FieldValue(field_id=field.id, entity_id=42, value="Cotton"))
    return group
