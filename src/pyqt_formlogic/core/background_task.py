"""Background task with cancellation and lifecycle tracking."""

import logging
from typing import Callable, Any, Optional, Set, Tuple
from PyQt6.QtCore import QThread, pyqtSignal

logger = logging.getLogger(__name__)

# --- Module-level constants ---
CLEANUP_WAIT_MS = 200     # Wait time per task during dispose


class BackgroundTask(QThread):
    """
    Runs a callable on a worker thread and reports back through signals.

    Signals are delivered on the thread that connected them (the evaluation
    thread), so callbacks may mutate form state without locking.

    Usage:
        task = BackgroundTask(target=client.get, args=(url,))
        task.result_ready.connect(on_success)
        task.error_occurred.connect(on_error)  # Receives Exception, not str
        task.start()

        task.cancel()  # Signals won't emit after this
    """

    result_ready = pyqtSignal(object)
    error_occurred = pyqtSignal(Exception)

    def __init__(
        self,
        target: Callable[..., Any],
        args: Tuple = (),
        kwargs: dict = None,
        parent=None
    ):
        super().__init__(parent)
        self._target = target
        self._args = args
        self._kwargs = kwargs or {}
        self.cancelled = False

    def run(self):
        """Execute target in background, respecting cancellation."""
        try:
            result = self._target(*self._args, **self._kwargs)
            if not self.cancelled:
                self.result_ready.emit(result)
        except Exception as e:
            if not self.cancelled:
                self.error_occurred.emit(e)

    def cancel(self):
        """Cancel task; signals won't emit after this."""
        self.cancelled = True


class BackgroundTaskManager:
    """
    Owns a set of concurrently running background tasks.

    Unlike a single-slot manager, earlier tasks are not cancelled when a new
    one starts: callers decide staleness themselves (e.g. by request key).
    ``cleanup()`` cancels and joins everything still running.
    """

    def __init__(self):
        self._tasks: Set[BackgroundTask] = set()

    @property
    def active_count(self) -> int:
        return len(self._tasks)

    def run(
        self,
        target: Callable[..., Any],
        args: Tuple = (),
        kwargs: dict = None,
        on_success: Optional[Callable[[Any], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ) -> BackgroundTask:
        """Start ``target`` on a worker thread and return its task."""
        task = BackgroundTask(target=target, args=args, kwargs=kwargs)
        if on_success is not None:
            task.result_ready.connect(on_success)
        if on_error is not None:
            task.error_occurred.connect(on_error)
        task.finished.connect(lambda: self._tasks.discard(task))
        self._tasks.add(task)
        task.start()
        return task

    def cleanup(self):
        """Cancel and wait for all running tasks."""
        for task in list(self._tasks):
            task.cancel()
            if task.isRunning() and not task.wait(CLEANUP_WAIT_MS):
                logger.warning(f"Background task did not finish within {CLEANUP_WAIT_MS}ms")
        self._tasks.clear()
