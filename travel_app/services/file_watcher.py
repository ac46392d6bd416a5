"""
travel_app/services/file_watcher.py -- Debounced file change notifications.

Editors and our own atomic writes produce bursts of change events; the
watcher lets one through and drops any that follow within the debounce
interval (150 ms by default).

``os.replace()`` swaps the inode, and QFileSystemWatcher silently stops
watching a replaced file, so the path is re-added after every event.  A
watched path that does not exist yet is picked up through its directory.
"""

from __future__ import annotations

import logging
import os
import time
from typing import Callable

from PySide6.QtCore import QFileSystemWatcher, QObject, Signal

from travel_engine.settings import WATCH_DEBOUNCE_MS

logger = logging.getLogger(__name__)


class Debouncer:
    """Leading-edge debounce: accept an event only if *interval_ms* has passed."""

    def __init__(self, interval_ms: int = WATCH_DEBOUNCE_MS,
                 clock: Callable[[], float] = time.monotonic):
        self._interval = interval_ms / 1000.0
        self._clock = clock
        self._last: dict[str, float] = {}

    def should_fire(self, key: str = "") -> bool:
        now = self._clock()
        last = self._last.get(key)
        if last is not None and now - last < self._interval:
            return False
        self._last[key] = now
        return True

    def reset(self) -> None:
        self._last.clear()


class DebouncedFileWatcher(QObject):
    """Watches a set of files and emits ``changed(path)`` at most once per interval.

    Signals
    -------
    changed(str)
        Absolute path of a watched file that was modified, created or
        replaced.
    """

    changed = Signal(str)

    def __init__(self, paths=(), debounce_ms: int = WATCH_DEBOUNCE_MS,
                 parent: QObject | None = None, clock: Callable[[], float] = time.monotonic):
        super().__init__(parent)
        self._paths: set[str] = set()
        self._debouncer = Debouncer(debounce_ms, clock)
        self._watcher = QFileSystemWatcher(self)
        self._watcher.fileChanged.connect(self._on_file_changed)
        self._watcher.directoryChanged.connect(self._on_directory_changed)
        for path in paths:
            self.watch(path)

    @property
    def paths(self) -> list[str]:
        return sorted(self._paths)

    def watch(self, path) -> None:
        path = os.path.abspath(str(path))
        self._paths.add(path)
        self._rearm(path)

    def unwatch(self, path) -> None:
        path = os.path.abspath(str(path))
        self._paths.discard(path)
        if path in self._watcher.files():
            self._watcher.removePath(path)

    def _rearm(self, path: str) -> None:
        directory = os.path.dirname(path)
        if os.path.isdir(directory) and directory not in self._watcher.directories():
            self._watcher.addPath(directory)
        if os.path.exists(path) and path not in self._watcher.files():
            self._watcher.addPath(path)

    def notify(self, path: str) -> bool:
        """Run *path* through the debouncer; emit and return True if accepted."""
        path = os.path.abspath(path)
        if path not in self._paths:
            return False
        self._rearm(path)
        if not self._debouncer.should_fire(path):
            logger.debug("Debounced change event for %s", path)
            return False
        logger.debug("File changed: %s", path)
        self.changed.emit(path)
        return True

    def _on_file_changed(self, path: str) -> None:
        self.notify(path)

    def _on_directory_changed(self, directory: str) -> None:
        directory = os.path.abspath(directory)
        for path in list(self._paths):
            if os.path.dirname(path) != directory:
                continue
            # Only react to files that (re)appeared; modifications arrive
            # via fileChanged.
            if os.path.exists(path) and path not in self._watcher.files():
                self.notify(path)
