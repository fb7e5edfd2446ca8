"""
Form value store.

Owns the live nested form value. Every mutation is addressed by path and
reported through ``values_changed`` with the set of changed paths, which the
form logic manager turns into one settle pass.
"""

import copy
import logging
from typing import Any, Iterable, Mapping, Optional, Set

from PyQt6.QtCore import QObject, pyqtSignal

from pyqt_formlogic.core.path_utils import deep_equal, get_path, normalize_path, set_path

logger = logging.getLogger(__name__)


class FormValueStore(QObject):
    """
    Reactive holder of one form's value tree.

    Signals:
        values_changed(object): frozenset of changed paths
    """

    values_changed = pyqtSignal(object)

    def __init__(self, initial_value: Optional[Mapping[str, Any]] = None, parent: Optional[QObject] = None):
        super().__init__(parent)
        self._value = copy.deepcopy(dict(initial_value or {}))

    @property
    def value(self) -> dict:
        """The live value tree. Callers must not mutate it directly."""
        return self._value

    def get(self, path: Optional[str] = None, default: Any = None) -> Any:
        if not path:
            return self._value
        return get_path(self._value, path, default)

    def set(self, path: str, value: Any, notify: bool = True) -> bool:
        """Write ``value`` at ``path``. Returns False when nothing changed."""
        path = normalize_path(path)
        if deep_equal(get_path(self._value, path), value):
            return False
        set_path(self._value, path, copy.deepcopy(value))
        if notify:
            self.values_changed.emit(frozenset({path}))
        return True

    def patch(self, values: Mapping[str, Any], notify: bool = True) -> Set[str]:
        """Write several paths and emit a single notification."""
        changed = {normalize_path(path) for path, value in values.items() if self.set(path, value, notify=False)}
        if changed and notify:
            self.values_changed.emit(frozenset(changed))
        return changed

    def fill_defaults(self, defaults: Iterable) -> Set[str]:
        """Write ``(path, value)`` pairs only where the path currently holds nothing."""
        filled = set()
        for path, value in defaults:
            if get_path(self._value, path) is None:
                set_path(self._value, path, copy.deepcopy(value))
                filled.add(path)
        return filled

    def snapshot(self) -> dict:
        return copy.deepcopy(self._value)
