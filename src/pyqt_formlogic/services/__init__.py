"""
Engine services.

Type-dispatch base class, engine flag management, the field change
dispatcher that runs settle passes, and submission value exclusion.
"""

from .type_dispatch import TypeDispatchServiceABC
from .flag_context_manager import EngineFlag, FlagContextManager
from .value_exclusion_service import ValueExclusionService
from .field_change_dispatcher import FieldChangeDispatcher, FieldChangeEvent

__all__ = [
    "TypeDispatchServiceABC",
    "EngineFlag",
    "FlagContextManager",
    "ValueExclusionService",
    "FieldChangeDispatcher",
    "FieldChangeEvent",
]
