"""Deferred export: many store changes in one unit of work, one export at its end."""

from __future__ import annotations

import logging
from typing import Callable

logger = logging.getLogger(__name__)


class UnitOfWork:
    """Collects callbacks and runs each once when the scope exits.

    Callbacks run in registration order, also when the scope exits with an
    exception. A failing callback is logged and does not stop the others.
    """

    def __init__(self) -> None:
        self._callbacks: list[Callable[[], object]] = []
        self._closed = False

    def defer(self, callback: Callable[[], object]) -> None:
        self._callbacks.append(callback)

    def run_deferred(self) -> None:
        if self._closed:
            return
        self._closed = True
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception("Deferred callback failed")

    def __enter__(self) -> UnitOfWork:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.run_deferred()


class Debouncer:
    """Coalesces change notifications into a single export per unit of work."""

    def __init__(self, export: Callable[[], object], enabled: bool = True,
                 unit_of_work: UnitOfWork | None = None):
        self._export = export
        self.enabled = enabled
        self.unit_of_work = unit_of_work
        self.dirty = False
        self.registered = False
        self.last_error: Exception | None = None

    def mark_dirty(self) -> None:
        if not self.enabled:
            return
        self.dirty = True
        if not self.registered:
            self.registered = True
            if self.unit_of_work is not None:
                self.unit_of_work.defer(self.flush)

    def flush(self) -> bool:
        """Export if dirty. Returns True when an export ran and succeeded.

        A failed export is logged and recorded in ``last_error``; the dirty
        flag stays set and the export is not retried in this unit of work.
        """
        if not self.dirty or not self.enabled:
            return False
        try:
            self._export()
        except Exception as e:
            self.last_error = e
            logger.error("Deferred export failed: %s", e)
            return False
        self.dirty = False
        self.last_error = None
        return True

    def reset(self) -> None:
        self.dirty = False
        self.registered = False
        self.last_error = None
