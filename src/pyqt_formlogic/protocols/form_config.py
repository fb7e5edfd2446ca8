"""Base configuration for the form logic engine.

Provides hooks for applications to customize engine behavior globally.
Per-form overrides live on ``FormOptions`` and take precedence over these values.
"""

from typing import Any, Optional
from dataclasses import dataclass


@dataclass
class FormLogicConfig:
    """Global configuration for the form logic engine.

    Applications can subclass this to provide custom configuration.

    Attributes:
        default_http_debounce_ms: Debounce window for HTTP conditions without an explicit debounceMs
        http_timeout_s: Timeout for outbound HTTP condition requests
        http_cache_ttl_ms: Max age of cached HTTP results (None = lifetime of the form instance)
        default_pending_value: Pending value for HTTP conditions without an explicit pendingValue
        exclude_value_if_hidden: Global tier of value exclusion for hidden fields
        exclude_value_if_disabled: Global tier of value exclusion for disabled fields
        exclude_value_if_readonly: Global tier of value exclusion for readonly fields
        strict_cycle_detection: Raise DerivationCycleError when the runtime depth guard trips
        max_derivation_iterations: Runtime depth guard for derivation settle passes
        default_derivation_debounce_ms: Quiet period for derivations with trigger "debounced"
        default_async_derivation_debounce_ms: Quiet period before an async derivation function runs
    """

    default_http_debounce_ms: int = 300
    http_timeout_s: float = 10.0
    http_cache_ttl_ms: Optional[int] = None
    default_pending_value: Any = False
    exclude_value_if_hidden: bool = True
    exclude_value_if_disabled: bool = True
    exclude_value_if_readonly: bool = True
    strict_cycle_detection: bool = True
    max_derivation_iterations: int = 10
    default_derivation_debounce_ms: int = 500
    default_async_derivation_debounce_ms: int = 300
    performance_logger_name: str = "pyqt_formlogic.performance"
    slow_pass_threshold_ms: float = 50.0


# Global config instance (set by application)
_form_logic_config: Optional[FormLogicConfig] = None


def set_form_logic_config(config: Optional[FormLogicConfig]) -> None:
    """Set the global form logic configuration.

    Args:
        config: FormLogicConfig instance, or None to restore defaults
    """
    global _form_logic_config
    _form_logic_config = config


def get_form_logic_config() -> FormLogicConfig:
    """Get the current form logic configuration.

    Returns:
        Current FormLogicConfig or default if not set
    """
    if _form_logic_config is None:
        return FormLogicConfig()
    return _form_logic_config
