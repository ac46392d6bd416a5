"""
travel_app/services/city_store_service.py -- Reactive Qt wrapper around CityStore.

Every mutation and every reload triggered by an external file change is
funnelled through one ``SerializedTaskQueue``, so the core store is only
ever touched from the owner thread.  Results are published as Qt signals.

Usage::

    from travel_app.services.city_store_service import CityStoreService

    service = CityStoreService(store)
    service.visited_changed.connect(refresh_button)
    service.start()
    service.mark_visited("Berg")      # safe from any thread
"""

from __future__ import annotations

import logging
import os

from PySide6.QtCore import QObject, Signal

from travel_app.services.file_watcher import DebouncedFileWatcher
from travel_app.services.task_queue import SerializedTaskQueue
from travel_engine.city_store import CityStore
from travel_engine.results import LoadStatus

logger = logging.getLogger(__name__)


class CityStoreService(QObject):
    """Qt-facing service for one :class:`CityStore`.

    Signals
    -------
    cities_changed()
        Emitted after the registry is (re)loaded or any record changes.
    visited_changed(str)
        Emitted with the city name when its visited flag becomes true.
    store_saved()
        Emitted after a successful write.
    store_error(str)
        Emitted with a human-readable message for any failed operation.
    """

    cities_changed = Signal()
    visited_changed = Signal(str)
    store_saved = Signal()
    store_error = Signal(str)

    def __init__(self, store: CityStore, parent: QObject | None = None, watch: bool = True):
        super().__init__(parent)
        self._store = store
        self._queue = SerializedTaskQueue(self)
        self._queue.task_failed.connect(self.store_error)
        self._watcher: DebouncedFileWatcher | None = None
        self._watch = watch
        self._last_written: bytes | None = None

    @property
    def store(self) -> CityStore:
        return self._store

    @property
    def task_queue(self) -> SerializedTaskQueue:
        return self._queue

    @property
    def watcher(self) -> DebouncedFileWatcher | None:
        return self._watcher

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Load, run the one-time legacy migration, and start watching."""
        self._queue.enqueue(self._initial_load)
        if self._watch and self._watcher is None:
            self._watcher = DebouncedFileWatcher(
                [self._store.cities_path, self._store.legacy_cfg_path],
                debounce_ms=self._store.settings.debounce_ms,
                parent=self,
            )
            self._watcher.changed.connect(self._on_file_changed)

    def _initial_load(self) -> None:
        self._reload()
        report, write = self._store.migrate_legacy_file()
        if report.changed:
            for name in report.applied:
                self.visited_changed.emit(name)
            self._publish_write(write)
            self.cities_changed.emit()

    def _reload(self) -> None:
        result = self._store.load()
        if result.status is LoadStatus.ABORTED_NO_BASELINE:
            self.store_error.emit(
                "The cities file and its backup are both unreadable. "
                "Changes will not be saved until the store is reset."
            )
        self.cities_changed.emit()

    # ------------------------------------------------------------------
    # External changes
    # ------------------------------------------------------------------

    def _read_bytes(self, path: str) -> bytes | None:
        try:
            with open(path, "rb") as fh:
                return fh.read()
        except OSError:
            return None

    def _on_file_changed(self, path: str) -> None:
        self._queue.enqueue(lambda: self._handle_file_changed(path))

    def _handle_file_changed(self, path: str) -> None:
        if os.path.abspath(path) == os.path.abspath(self._store.cities_path):
            if self._last_written is not None and self._read_bytes(path) == self._last_written:
                logger.debug("Ignoring change event for our own write to %s", path)
                return
            logger.info("Cities file changed externally; reloading")
            self._reload()
            self._store.invalidate()
        elif os.path.abspath(path) == os.path.abspath(self._store.legacy_cfg_path):
            logger.info("Legacy config changed; re-running migration")
            report, write = self._store.migrate_legacy_file(path)
            if report.changed:
                for name in report.applied:
                    self.visited_changed.emit(name)
                self._publish_write(write)
                self.cities_changed.emit()

    # ------------------------------------------------------------------
    # Mutations (any thread)
    # ------------------------------------------------------------------

    def mark_visited(self, name: str) -> None:
        self._queue.enqueue(lambda: self._apply(*self._store.mark_visited(name)))

    def record_scene_visit(self, scene_name: str, coords=None, anchor_id=None, desc=None) -> None:
        self._queue.enqueue(
            lambda: self._apply(*self._store.record_scene_visit(scene_name, coords, anchor_id, desc))
        )

    def record_variant_observation(self, scene_name: str, normal=None, destroyed=None,
                                   last_known=None, confidence="medium") -> None:
        self._queue.enqueue(
            lambda: self._apply(*self._store.record_variant_observation(
                scene_name, normal, destroyed, last_known, confidence,
            ))
        )

    def invalidate(self) -> None:
        """Host hook for save-load events."""
        self._queue.enqueue(self._store.invalidate)

    def _apply(self, mutation, write) -> None:
        if not mutation.ok:
            self.store_error.emit(mutation.message)
            return
        if not mutation.changed:
            return
        if mutation.visited_changed and mutation.record is not None:
            self.visited_changed.emit(mutation.record.name)
        self.cities_changed.emit()
        self._publish_write(write)

    def _publish_write(self, write) -> None:
        if write is None:
            return
        if write.ok:
            self._last_written = self._read_bytes(self._store.cities_path)
            self.store_saved.emit()
        else:
            self.store_error.emit("; ".join(write.errors) or str(write.error))
