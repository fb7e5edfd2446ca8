"""
Context manager factory for boolean engine flags.

Pattern:
    Instead of:
        self._in_batch = True
        try:
            # ... logic
        finally:
            self._in_batch = False

    Use:
        with FlagContextManager.manage_flags(self, _in_batch=True):
            # ... logic
"""

from contextlib import contextmanager
from enum import Enum
from typing import Any, Dict, Set
import logging

logger = logging.getLogger(__name__)


class EngineFlag(Enum):
    """
    Registry of valid FormLogicManager flags.

    Add new flags here as they're introduced to the codebase.
    """
    DISPATCHING = '_dispatching'
    IN_BATCH = '_in_batch'
    INITIAL_LOAD_COMPLETE = '_initial_load_complete'


class FlagContextManager:
    """
    Sets flags for the duration of a block and restores previous values on exit.

    Examples:
        with FlagContextManager.manage_flags(manager, _dispatching=True):
            dispatcher.run_pass(paths)

        with FlagContextManager.batch_context(manager):
            for path, value in updates.items():
                manager.set_value(path, value)
    """

    VALID_FLAGS: Set[str] = {flag.value for flag in EngineFlag}

    @staticmethod
    @contextmanager
    def manage_flags(obj: Any, **flags: bool):
        """
        Set flags on entry and restore previous values on exit, even on exception.

        Raises:
            ValueError: If any flag name is not in VALID_FLAGS registry
        """
        invalid_flags = set(flags.keys()) - FlagContextManager.VALID_FLAGS
        if invalid_flags:
            raise ValueError(
                f"Invalid flags: {invalid_flags}. "
                f"Valid flags: {FlagContextManager.VALID_FLAGS}. "
                f"Add new flags to EngineFlag enum."
            )

        # Direct attribute access: flags must be initialized in __init__
        prev_values: Dict[str, bool] = {name: getattr(obj, name) for name in flags}

        for flag_name, flag_value in flags.items():
            setattr(obj, flag_name, flag_value)

        try:
            yield
        finally:
            for flag_name, prev_value in prev_values.items():
                setattr(obj, flag_name, prev_value)

    @staticmethod
    @contextmanager
    def batch_context(obj: Any):
        """Coalesce several writes into one settle pass (run by the caller on exit)."""
        with FlagContextManager.manage_flags(obj, **{EngineFlag.IN_BATCH.value: True}):
            yield

    @staticmethod
    @contextmanager
    def initial_load_context(obj: Any):
        """
        Mark the object as loading during form build; sets
        _initial_load_complete=True on exit.
        """
        getattr(obj, EngineFlag.INITIAL_LOAD_COMPLETE.value)  # fail loud if missing
        setattr(obj, EngineFlag.INITIAL_LOAD_COMPLETE.value, False)
        try:
            yield
        finally:
            setattr(obj, EngineFlag.INITIAL_LOAD_COMPLETE.value, True)

    @staticmethod
    def is_flag_set(obj: Any, flag: EngineFlag) -> bool:
        return getattr(obj, flag.value)
