"""Storage interface (abstract base) for fieldsync."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable

from fieldsync.models import FieldValue, SchemaField, SchemaGroup


class Storage(ABC):
    """Abstract base class defining the store operations the sync engine uses."""

    @abstractmethod
    def path(self) -> str:
        """Return the database file path."""

    @abstractmethod
    def close(self) -> None:
        """Close the storage connection."""

    # --- Groups ---

    @abstractmethod
    def get_group(self, group_id: int) -> SchemaGroup | None:
        """Get a group by store id. Returns None if not found."""

    @abstractmethod
    def find_group_by_slug(self, slug: str) -> SchemaGroup | None:
        """Get a group by slug. Returns None if not found."""

    @abstractmethod
    def find_all_groups(self) -> list[SchemaGroup]:
        """All groups ordered by priority, then slug."""

    @abstractmethod
    def create_group(self, group: SchemaGroup) -> int:
        """Insert a group (and its shop associations). Returns the new id."""

    @abstractmethod
    def update_group(self, group: SchemaGroup) -> None:
        """Update group attributes in place. id and uuid are never changed."""

    @abstractmethod
    def delete_group(self, group_id: int) -> None:
        """Delete a group, cascading to its fields and their values."""

    @abstractmethod
    def get_shop_ids(self, group_id: int) -> list[int]:
        """Shop scope ids the group is associated with."""

    @abstractmethod
    def set_shop_associations(self, group_id: int, shop_ids: list[int]) -> None:
        """Replace the group's shop associations."""

    # --- Fields ---

    @abstractmethod
    def find_fields_by_group(self, group_id: int) -> list[SchemaField]:
        """Top-level fields of a group in position order."""

    @abstractmethod
    def find_fields_by_parent(self, parent_id: int) -> list[SchemaField]:
        """Children of a repeater field in position order."""

    @abstractmethod
    def find_field_by_slug(self, slug: str) -> SchemaField | None:
        """Get a field by its install-wide unique slug."""

    @abstractmethod
    def create_field(self, field: SchemaField) -> int:
        """Insert a field. Returns the new id.

        Raises SlugConflictError when the slug is taken, and
        InvalidHierarchyError when parent_id does not name a top-level
        repeater of the same group.
        """

    @abstractmethod
    def delete_fields_by_group(self, group_id: int) -> None:
        """Delete every field of a group, cascading to values."""

    # --- Values ---

    @abstractmethod
    def find_values_by_group(self, group_id: int) -> list[FieldValue]:
        """Every stored value for the group's fields."""

    @abstractmethod
    def save_value(self, value: FieldValue) -> None:
        """Insert or update a value keyed by (field, entity, shop, lang)."""

    # --- Metadata ---

    @abstractmethod
    def get_metadata(self, key: str) -> str | None:
        """Get a metadata value."""

    @abstractmethod
    def set_metadata(self, key: str, value: str) -> None:
        """Set a metadata value."""

    # --- Change notification ---

    @abstractmethod
    def add_change_listener(self, listener: Callable[[], None]) -> None:
        """Register a callback invoked after every schema or value mutation."""

    # --- Transactions ---

    @abstractmethod
    def run_in_transaction(self, fn: Callable[[Storage], Any]) -> Any:
        """Run fn(store) atomically. Rolls back and re-raises on error."""
