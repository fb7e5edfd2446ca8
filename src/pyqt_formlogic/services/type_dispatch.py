"""
Abstract base class for services with auto-discovery dispatch on tagged unions.

Conditions, logic rules and validators are closed tagged unions of frozen
dataclasses. Services that act on them define one handler per variant, named
``{prefix}{ClassName}``, instead of an if/elif chain over isinstance checks.

Pattern:
    class ConditionEvaluator(TypeDispatchServiceABC):
        def _get_handler_prefix(self) -> str:
            return '_evaluate_'

        def _evaluate_AndCondition(self, condition, context):
            ...

        def _evaluate_OrCondition(self, condition, context):
            ...

Adding a variant = add the dataclass + one handler per service.
"""

from typing import Dict, Callable, Any
from abc import ABC, abstractmethod
import logging

logger = logging.getLogger(__name__)


class TypeDispatchServiceABC(ABC):
    """
    Abstract base for services with auto-discovery dispatch.

    Subclasses must:
    1. Implement _get_handler_prefix() to return method prefix (e.g., '_evaluate_')
    2. Define handler methods following naming convention: {prefix}{ClassName}
    """

    def __init__(self):
        """Discover all methods matching ``{prefix}{ClassName}``."""
        self._handlers: Dict[str, Callable] = {}
        prefix = self._get_handler_prefix()

        for attr_name in dir(self):
            if attr_name.startswith(prefix):
                class_name = attr_name[len(prefix):]
                handler = getattr(self, attr_name)
                if callable(handler):
                    self._handlers[class_name] = handler

        if self._handlers:
            logger.debug(
                f"{self.__class__.__name__} auto-discovered handlers: "
                f"{sorted(self._handlers)}"
            )
        else:
            logger.warning(
                f"{self.__class__.__name__} found no handlers with prefix '{prefix}'. "
                f"Did you forget to define handler methods?"
            )

    @abstractmethod
    def _get_handler_prefix(self) -> str:
        """Return the method prefix for this service's handlers (with leading underscore)."""
        pass

    def dispatch(self, item: Any, *args, **kwargs) -> Any:
        """
        Call the handler registered for ``type(item).__name__``.

        Raises:
            ValueError: If no handler is defined for the item's class
        """
        class_name = item.__class__.__name__
        handler = self._handlers.get(class_name)

        if handler is None:
            raise ValueError(
                f"No handler for {class_name} in {self.__class__.__name__}. "
                f"Available handlers: {sorted(self._handlers)}. "
                f"Did you forget to define {self._get_handler_prefix()}{class_name}()?"
            )

        return handler(item, *args, **kwargs)
