"""
Core PyQt6 utilities.

Domain-free building blocks: path addressing into nested values, a trailing
debounce timer, background tasks on QThread, and pass timing.
"""

from .debounce_timer import DebounceTimer
from .background_task import BackgroundTask, BackgroundTaskManager
from .path_utils import (
    WILDCARD,
    INDEX_PLACEHOLDER,
    split_path,
    join_path,
    normalize_path,
    get_path,
    has_path,
    set_path,
    delete_path,
    is_prefix,
    path_affects,
    any_affected,
    substitute_index,
    substitute_indices,
    deep_equal,
)

__all__ = [
    "DebounceTimer",
    "BackgroundTask",
    "BackgroundTaskManager",
    "WILDCARD",
    "INDEX_PLACEHOLDER",
    "split_path",
    "join_path",
    "normalize_path",
    "get_path",
    "has_path",
    "set_path",
    "delete_path",
    "is_prefix",
    "path_affects",
    "any_affected",
    "substitute_index",
    "substitute_indices",
    "deep_equal",
]
