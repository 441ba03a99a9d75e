"""fieldsync - field-schema synchronization between a database and JSON files."""

__version__ = "0.1.0"
