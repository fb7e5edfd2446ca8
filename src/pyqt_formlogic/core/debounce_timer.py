"""Trailing debounce timer used to coalesce bursts of dependent-value changes."""

from typing import Callable, Optional
from PyQt6.QtCore import QObject, QTimer


class DebounceTimer:
    """
    Trailing debounce timer.

    Every ``trigger()`` restarts the window; the handler fires once, after
    ``delay_ms`` of inactivity. A delay of 0 still defers to the event loop.

    Usage:
        self._debounce = DebounceTimer(delay_ms=300, handler=self._fire_request)

        def on_dependency_changed(self):
            self._debounce.trigger()  # Restarts window
    """

    def __init__(self, delay_ms: int, handler: Callable[[], None], parent: Optional[QObject] = None):
        self._delay_ms = max(0, int(delay_ms))
        self._handler = handler
        self._timer = QTimer(parent)
        self._timer.setSingleShot(True)
        self._timer.timeout.connect(self._handler)

    @property
    def delay_ms(self) -> int:
        return self._delay_ms

    def is_pending(self) -> bool:
        """True while a trigger is waiting for its window to expire."""
        return self._timer.isActive()

    def trigger(self):
        """Restart the debounce window."""
        self._timer.start(self._delay_ms)

    def cancel(self):
        """Drop a pending trigger without firing."""
        self._timer.stop()

    def force(self):
        """Fire immediately if a trigger is pending."""
        if self._timer.isActive():
            self._timer.stop()
            self._handler()

    def dispose(self):
        self._timer.stop()
        self._timer.timeout.disconnect()
        self._timer.deleteLater()
