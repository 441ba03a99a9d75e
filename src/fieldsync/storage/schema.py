"""SQLite schema for the field-schema store."""

SCHEMA = """
-- Field groups
CREATE TABLE IF NOT EXISTS field_groups (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    uuid TEXT NOT NULL,
    slug TEXT NOT NULL UNIQUE,
    title TEXT NOT NULL,
    description TEXT,
    location_rules TEXT NOT NULL DEFAULT '{}',
    placement_tab TEXT NOT NULL DEFAULT 'description',
    placement_position TEXT,
    priority INTEGER NOT NULL DEFAULT 10,
    bo_options TEXT NOT NULL DEFAULT '{}',
    fo_options TEXT NOT NULL DEFAULT '{}',
    active INTEGER NOT NULL DEFAULT 1,
    created_at DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_field_groups_uuid ON field_groups(uuid);

-- Shop associations
CREATE TABLE IF NOT EXISTS field_group_shops (
    group_id INTEGER NOT NULL,
    id_shop INTEGER NOT NULL,
    PRIMARY KEY (group_id, id_shop),
    FOREIGN KEY (group_id) REFERENCES field_groups(id) ON DELETE CASCADE
);

-- Fields (parent_id set only for children of a repeater)
CREATE TABLE IF NOT EXISTS fields (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    uuid TEXT NOT NULL,
    group_id INTEGER NOT NULL,
    parent_id INTEGER,
    slug TEXT NOT NULL UNIQUE,
    type TEXT NOT NULL,
    title TEXT NOT NULL,
    instructions TEXT,
    position INTEGER NOT NULL DEFAULT 0,
    config TEXT NOT NULL DEFAULT '{}',
    validation TEXT NOT NULL DEFAULT '{}',
    conditions TEXT NOT NULL DEFAULT '{}',
    wrapper TEXT NOT NULL DEFAULT '{}',
    fo_options TEXT NOT NULL DEFAULT '{}',
    value_translatable INTEGER NOT NULL DEFAULT 0,
    active INTEGER NOT NULL DEFAULT 1,
    created_at DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (group_id) REFERENCES field_groups(id) ON DELETE CASCADE,
    FOREIGN KEY (parent_id) REFERENCES fields(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_fields_group ON fields(group_id, position);
CREATE INDEX IF NOT EXISTS idx_fields_parent ON fields(parent_id);

-- Field values
CREATE TABLE IF NOT EXISTS field_values (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    field_id INTEGER NOT NULL,
    entity_type TEXT NOT NULL DEFAULT 'product',
    entity_id INTEGER NOT NULL,
    id_shop INTEGER NOT NULL DEFAULT 1,
    id_lang INTEGER,
    value TEXT,
    value_index TEXT,
    created_at DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (field_id) REFERENCES fields(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_field_values_field ON field_values(field_id);
CREATE INDEX IF NOT EXISTS idx_field_values_entity ON field_values(entity_type, entity_id);
CREATE INDEX IF NOT EXISTS idx_field_values_index ON field_values(value_index);

-- Metadata table
CREATE TABLE IF NOT EXISTS metadata (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

-- Schema version in metadata
INSERT OR IGNORE INTO metadata (key, value) VALUES ('schema_version', '1');
"""
