"""
Extension points and global configuration.

Applications register implementations here instead of subclassing engine
internals: global configuration, custom function lookup, and the HTTP
request runner contract.
"""

from .form_config import FormLogicConfig, set_form_logic_config, get_form_logic_config
from .function_registry import (
    FunctionRegistry,
    FunctionRegistryProtocol,
    register_function_registry,
    get_function_registry,
)
from .request_runner import HttpRequest, HttpStatusError, RequestHandle, RequestRunner

__all__ = [
    "FormLogicConfig",
    "set_form_logic_config",
    "get_form_logic_config",
    "FunctionRegistry",
    "FunctionRegistryProtocol",
    "register_function_registry",
    "get_function_registry",
    "HttpRequest",
    "HttpStatusError",
    "RequestHandle",
    "RequestRunner",
]
