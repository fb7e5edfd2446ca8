"""
Live form instances.

FormLogicManager is the public entry point: it owns the value store, the
live field tree and every per-form engine.
"""

from .form_value_store import FormValueStore
from .field_tree import FieldTree
from .form_logic_manager import FormLogicManager

__all__ = [
    "FormValueStore",
    "FieldTree",
    "FormLogicManager",
]
