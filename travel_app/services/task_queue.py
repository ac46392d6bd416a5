"""
travel_app/services/task_queue.py -- Serialized execution context.

All registry mutations and reloads run on the thread that owns the queue
(normally the Qt main thread), one task per event-loop turn.  Any thread
may enqueue; a queued signal wakes the owner thread.  A failing task is
logged and the queue moves on.

Usage::

    from travel_app.services.task_queue import SerializedTaskQueue

    queue = SerializedTaskQueue()
    queue.enqueue(lambda: store.mark_visited("Berg"))
"""

from __future__ import annotations

import logging
import queue
from typing import Callable

from PySide6.QtCore import QObject, Qt, QTimer, Signal

logger = logging.getLogger(__name__)


class SerializedTaskQueue(QObject):
    """Single-consumer task queue drained on the owning thread.

    Signals
    -------
    task_failed(str)
        Emitted with the error message when a task raises.
    drained()
        Emitted when the queue becomes empty after running tasks.
    """

    task_failed = Signal(str)
    drained = Signal()

    _wake = Signal()

    def __init__(self, parent: QObject | None = None):
        super().__init__(parent)
        self._tasks: queue.SimpleQueue[Callable[[], object]] = queue.SimpleQueue()
        self._scheduled = False
        self._wake.connect(self._schedule, Qt.ConnectionType.QueuedConnection)

    @property
    def pending(self) -> int:
        return self._tasks.qsize()

    def enqueue(self, task: Callable[[], object]) -> None:
        """Queue *task*; safe to call from any thread."""
        self._tasks.put(task)
        self._wake.emit()

    def _schedule(self) -> None:
        if self._scheduled:
            return
        self._scheduled = True
        QTimer.singleShot(0, self._run_one)

    def _run_one(self) -> None:
        self._scheduled = False
        if not self._run_next():
            self.drained.emit()
            return
        if not self._tasks.empty():
            self._schedule()
        else:
            self.drained.emit()

    def _run_next(self) -> bool:
        try:
            task = self._tasks.get_nowait()
        except queue.Empty:
            return False
        try:
            task()
        except Exception as exc:
            logger.exception("Queued task %r failed", task)
            self.task_failed.emit(str(exc))
        return True

    def drain(self) -> int:
        """Run every pending task now, on the calling (owner) thread."""
        count = 0
        while self._run_next():
            count += 1
        if count:
            self.drained.emit()
        return count
