"""
Logic rule tagged union.

State rules (hidden/disabled/readonly/required) drive one boolean flag of the
owning field. Derivation rules compute a value and write it to a target field,
the owning field itself when no ``targetField`` is given.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional, Tuple

from pyqt_formlogic.exceptions import FormConfigurationError
from pyqt_formlogic.models.conditions import BooleanCondition, Condition, parse_condition
from pyqt_formlogic.models.http import UNSET, HttpConditionConfig


class StateKind(Enum):
    HIDDEN = "hidden"
    DISABLED = "disabled"
    READONLY = "readonly"
    REQUIRED = "required"


ALWAYS = BooleanCondition(True)

ON_CHANGE = "onChange"
DEBOUNCED = "debounced"
DERIVATION_TRIGGERS = (ON_CHANGE, DEBOUNCED)


class LogicRule:
    """Base class for logic rule variants."""


@dataclass(frozen=True)
class StateRule(LogicRule):
    kind: StateKind
    condition: Condition


@dataclass(frozen=True)
class DerivationRule(LogicRule):
    """Computes a value for ``target_field``.

    Exactly one source is set: ``expression``, ``value``, ``function_name``,
    ``async_function_name`` or ``http``. ``depends_on`` replaces the statically
    extracted dependencies.

    ``debounced`` rules and async functions run after their dependencies have
    been quiet for ``debounce_ms`` instead of inside the settle pass. With
    ``stop_on_user_override`` the rule stops writing once the user has edited
    the target; ``re_engage_on_dependency_change`` lets a later dependency
    change lift that hold.
    """
    target_field: Optional[str] = None
    expression: Optional[str] = None
    value: Any = UNSET
    function_name: Optional[str] = None
    async_function_name: Optional[str] = None
    http: Optional[HttpConditionConfig] = None
    condition: Condition = ALWAYS
    depends_on: Optional[Tuple[str, ...]] = None
    debug_name: Optional[str] = None
    trigger: str = ON_CHANGE
    debounce_ms: Optional[int] = None
    stop_on_user_override: bool = False
    re_engage_on_dependency_change: bool = False

    @property
    def source_kind(self) -> str:
        if self.expression is not None:
            return "expression"
        if self.function_name is not None:
            return "function"
        if self.async_function_name is not None:
            return "asyncFunction"
        if self.http is not None:
            return "http"
        return "value"

    @property
    def is_deferred(self) -> bool:
        """Runs on its own debounce timer rather than inside the settle pass."""
        return self.trigger == DEBOUNCED or self.async_function_name is not None

    @property
    def label(self) -> str:
        return (self.debug_name or self.expression or self.function_name
                or self.async_function_name or self.source_kind)


def parse_logic(config: Any) -> LogicRule:
    """Build a LogicRule from ``{"type": ..., ...}``.

    Raises:
        FormConfigurationError: unknown type, missing source, or unsupported trigger
    """
    if isinstance(config, LogicRule):
        return config
    if not isinstance(config, Mapping):
        raise FormConfigurationError(f"Logic rule must be a mapping, got {type(config).__name__}")

    rule_type = config.get("type")
    if rule_type == "derivation":
        return _parse_derivation(config)

    try:
        kind = StateKind(rule_type)
    except ValueError:
        raise FormConfigurationError(f"Unknown logic type {rule_type!r}") from None
    if "condition" not in config:
        raise FormConfigurationError(f"'{rule_type}' logic requires a 'condition'")
    return StateRule(kind, parse_condition(config["condition"]))


def _parse_derivation(config: Mapping[str, Any]) -> DerivationRule:
    sources = [k for k in ("expression", "value", "functionName", "asyncFunctionName", "http") if k in config]
    if len(sources) != 1:
        raise FormConfigurationError(
            f"Derivation needs exactly one of expression/value/functionName/asyncFunctionName/http, got {sources}"
        )
    trigger = config.get("trigger") or ON_CHANGE
    if trigger not in DERIVATION_TRIGGERS:
        raise FormConfigurationError(f"Unsupported derivation trigger {trigger!r}")

    depends_on = config.get("dependsOn")
    http = config.get("http")
    http_config = None
    debounce_ms = config.get("debounceMs")
    if http is not None:
        if trigger == DEBOUNCED:
            raise FormConfigurationError("HTTP derivations debounce through http.debounceMs, not trigger 'debounced'")
        merged = dict(http)
        for key in ("responsePath", "responseExpression", "pendingValue", "debounceMs"):
            if key in config and key not in merged:
                merged[key] = config[key]
        http_config = HttpConditionConfig.from_config(merged)
        debounce_ms = None
    elif debounce_ms is not None and trigger != DEBOUNCED and "asyncFunctionName" not in config:
        raise FormConfigurationError("debounceMs on a derivation requires trigger 'debounced'")
    if debounce_ms is not None and (not isinstance(debounce_ms, int) or debounce_ms < 0):
        raise FormConfigurationError(f"debounceMs must be a non-negative integer, got {debounce_ms!r}")

    condition = config.get("condition")
    return DerivationRule(
        target_field=config.get("targetField"),
        expression=config.get("expression"),
        value=config.get("value", UNSET),
        function_name=config.get("functionName"),
        async_function_name=config.get("asyncFunctionName"),
        http=http_config,
        condition=ALWAYS if condition is None else parse_condition(condition),
        depends_on=tuple(depends_on) if depends_on is not None else None,
        debug_name=config.get("debugName"),
        trigger=trigger,
        debounce_ms=debounce_ms,
        stop_on_user_override=bool(config.get("stopOnUserOverride", False)),
        re_engage_on_dependency_change=bool(config.get("reEngageOnDependencyChange", False)),
    )
