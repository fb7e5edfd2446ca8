"""Custom function registry for expressions, conditions and derivations.

Allows applications to expose their own functions to the expression language
(``isAdult(formValue.age)``), to ``custom`` conditions and to derivations with a
``functionName`` without pyqt-formlogic depending on them.
"""

from typing import Protocol, Optional, Callable, Dict, Mapping


class FunctionRegistryProtocol(Protocol):
    """Protocol for registries that provide custom function lookup.

    Example:
        from pyqt_formlogic.protocols import register_function_registry
        from myapp.registry import MyFunctionRegistry

        register_function_registry(MyFunctionRegistry())
    """

    def get_function_by_name(self, name: str) -> Optional[Callable]:
        """Get function by name, or None if not registered."""
        ...

    def get_all_functions(self) -> Dict[str, Callable]:
        """Get all registered functions keyed by name."""
        ...


class FunctionRegistry:
    """Dict-backed FunctionRegistryProtocol implementation.

    Form-local registries layer on top of the global one: a lookup falls back
    to ``parent`` when the name is not registered locally.
    """

    def __init__(
        self,
        functions: Optional[Mapping[str, Callable]] = None,
        parent: Optional[FunctionRegistryProtocol] = None,
    ):
        self._functions: Dict[str, Callable] = dict(functions or {})
        self._parent = parent

    def register(self, name: str, func: Callable) -> None:
        self._functions[name] = func

    def get_function_by_name(self, name: str) -> Optional[Callable]:
        func = self._functions.get(name)
        if func is None and self._parent is not None:
            return self._parent.get_function_by_name(name)
        return func

    def get_all_functions(self) -> Dict[str, Callable]:
        merged = dict(self._parent.get_all_functions()) if self._parent is not None else {}
        merged.update(self._functions)
        return merged


# Global registry instance (set by application)
_function_registry: Optional[FunctionRegistryProtocol] = None


def register_function_registry(registry: Optional[FunctionRegistryProtocol]) -> None:
    """Register the global function registry implementation.

    Args:
        registry: Object implementing FunctionRegistryProtocol, or None to clear
    """
    global _function_registry
    _function_registry = registry


def get_function_registry() -> Optional[FunctionRegistryProtocol]:
    """Get the registered global function registry.

    Returns:
        Registered registry or None if not registered
    """
    return _function_registry
