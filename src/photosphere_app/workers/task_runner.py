"""Utilities for running functions in background threads."""
from __future__ import annotations

import threading
import traceback
from typing import Any, Callable, Iterable, Optional

from loguru import logger
from PyQt6.QtCore import QObject, QRunnable, QThreadPool, pyqtSignal

from ..errors import CompositionCancelled
from ..io.compositor import PanoramaCompositor
from ..models.capture_session import CapturedPhoto


class TaskSignals(QObject):
    """Signals available from a background task."""

    finished = pyqtSignal(object)
    failed = pyqtSignal(str)
    progress = pyqtSignal(int)
    cancelled = pyqtSignal()


class FunctionTask(QRunnable):
    """Wrap a callable for execution in the Qt thread pool."""

    def __init__(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        super().__init__()
        self.fn = fn
        self.args = args
        self.kwargs = kwargs
        self.signals = TaskSignals()

    def run(self) -> None:
        try:
            result = self.fn(*self.args, **self.kwargs)
        except Exception as exc:  # noqa: BLE001
            tb = traceback.format_exc()
            self.signals.failed.emit(f"{exc}\n{tb}")
        else:
            self.signals.finished.emit(result)


class CompositionTask(QRunnable):
    """Compose a panorama off the UI thread with progress and cancellation.

    The photos are copied when the task is created. After :meth:`cancel` the
    task emits ``cancelled`` instead of ``finished`` or ``failed``, even if the
    compositor had already produced a buffer or raised.
    """

    def __init__(
        self,
        photos: Iterable[CapturedPhoto],
        compositor: Optional[PanoramaCompositor] = None,
    ) -> None:
        super().__init__()
        self.photos = tuple(photos)
        self.compositor = compositor or PanoramaCompositor()
        self.signals = TaskSignals()
        self._cancel_event = threading.Event()

    @property
    def is_cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def cancel(self) -> None:
        self._cancel_event.set()

    def run(self) -> None:
        try:
            buffer = self.compositor.compose(
                self.photos,
                progress=self._report_progress,
                cancel_event=self._cancel_event,
            )
        except CompositionCancelled:
            self.signals.cancelled.emit()
        except Exception as exc:  # noqa: BLE001
            if self._cancel_event.is_set():
                logger.info("Composition failed after cancellation: {}", exc)
                self.signals.cancelled.emit()
                return
            tb = traceback.format_exc()
            self.signals.failed.emit(f"{exc}\n{tb}")
        else:
            if self._cancel_event.is_set():
                self.signals.cancelled.emit()
            else:
                self.signals.finished.emit(buffer)

    def _report_progress(self, percent: int) -> None:
        if not self._cancel_event.is_set():
            self.signals.progress.emit(percent)


class TaskRunner:
    """Thin wrapper around QThreadPool for convenience."""

    def __init__(self, max_threads: int | None = None) -> None:
        self._pool = QThreadPool.globalInstance()
        if max_threads is not None:
            self._pool.setMaxThreadCount(max_threads)

    def submit(self, task: QRunnable) -> None:
        self._pool.start(task)
