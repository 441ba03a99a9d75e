"""Exception hierarchy for fieldsync."""

from __future__ import annotations


class FieldSyncError(Exception):
    """Base class for all fieldsync errors."""


class DocumentError(FieldSyncError):
    """A sync document is malformed. ``errors`` lists every violation found."""

    def __init__(self, message: str, errors: list[str] | None = None):
        super().__init__(message)
        self.errors = list(errors) if errors else [message]


class FilesystemError(FieldSyncError):
    """A sync directory or file could not be created, written or read."""


class EmptySourceError(FieldSyncError):
    """Refused to overwrite a populated sync file with an empty store."""


class StoreError(FieldSyncError):
    """Base class for store invariant violations."""


class SlugConflictError(StoreError):
    def __init__(self, slug: str):
        super().__init__(f"Slug already in use: {slug}")
        self.slug = slug


class InvalidHierarchyError(StoreError):
    """Field parent is missing, in another group, not a repeater, or nested."""


class NotFoundError(StoreError):
    pass
