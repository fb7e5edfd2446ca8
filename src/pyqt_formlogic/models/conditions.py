"""
Condition tagged union.

Conditions are immutable trees built once from static field configuration.
Each variant is a frozen dataclass; the metaclass registers every variant that
declares a ``type_tag`` so ``parse_condition`` can map declarative config to
the right class without a hand-maintained switch. The evaluator dispatches on
the class name (``_evaluate_<ClassName>``), so adding a variant means adding
one dataclass and one evaluator method.

Declarative forms accepted by ``parse_condition``:
    True / False                                   -> BooleanCondition
    "formInvalid" | "formSubmitting" | "pageInvalid" -> FormStateCondition
    {"type": "fieldValue", "fieldPath", "operator", "value"}
    {"type": "formValue", "operator", "value"}
    {"type": "javascript", "expression"}
    {"type": "and" | "or", "conditions": [...]}
    {"type": "http", "http": {...}}
    {"type": "custom", "functionName"}
    {"type": "boolean", "value"}
"""

from abc import ABCMeta
from dataclasses import dataclass
from enum import Enum
import logging
from typing import Any, ClassVar, Dict, Mapping, Tuple, Type

from pyqt_formlogic.exceptions import FormConfigurationError
from pyqt_formlogic.models.http import HttpConditionConfig

logger = logging.getLogger(__name__)


class ComparisonOperator(Enum):
    EQUALS = "equals"
    NOT_EQUALS = "notEquals"
    GREATER = "greater"
    LESS = "less"
    GREATER_OR_EQUAL = "greaterOrEqual"
    LESS_OR_EQUAL = "lessOrEqual"
    CONTAINS = "contains"
    STARTS_WITH = "startsWith"
    ENDS_WITH = "endsWith"
    MATCHES = "matches"


class FormStateKind(Enum):
    FORM_INVALID = "formInvalid"
    FORM_SUBMITTING = "formSubmitting"
    PAGE_INVALID = "pageInvalid"


class ConditionMeta(ABCMeta):
    """Registers every condition class that declares a ``type_tag``."""
    _registry: Dict[str, Type] = {}

    def __new__(mcs, name, bases, namespace):
        cls = super().__new__(mcs, name, bases, namespace)
        tag = namespace.get("type_tag")
        if tag:
            mcs._registry[tag] = cls
            logger.debug(f"Registered condition type '{tag}': {name}")
        return cls

    @classmethod
    def get_registry(mcs) -> Dict[str, Type]:
        return dict(mcs._registry)


class Condition(metaclass=ConditionMeta):
    """Base class for condition variants."""
    type_tag: ClassVar[str] = ""

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "Condition":
        raise NotImplementedError


@dataclass(frozen=True)
class BooleanCondition(Condition):
    value: bool
    type_tag: ClassVar[str] = "boolean"

    @classmethod
    def from_config(cls, config):
        return cls(bool(config.get("value", False)))


@dataclass(frozen=True)
class FieldValueCondition(Condition):
    """Compares the value at ``field_path`` against a literal."""
    field_path: str
    operator: ComparisonOperator
    value: Any = None
    type_tag: ClassVar[str] = "fieldValue"

    @classmethod
    def from_config(cls, config):
        if not config.get("fieldPath"):
            raise FormConfigurationError(f"fieldValue condition requires 'fieldPath': {dict(config)!r}")
        return cls(config["fieldPath"], _operator(config), config.get("value"))


@dataclass(frozen=True)
class FormValueCondition(Condition):
    """Compares the whole form value against a literal."""
    operator: ComparisonOperator
    value: Any = None
    type_tag: ClassVar[str] = "formValue"

    @classmethod
    def from_config(cls, config):
        return cls(_operator(config), config.get("value"))


@dataclass(frozen=True)
class JavaScriptCondition(Condition):
    """Boolean expression over ``formValue``/``fieldValue`` in the restricted language."""
    expression: str
    type_tag: ClassVar[str] = "javascript"

    @classmethod
    def from_config(cls, config):
        if not isinstance(config.get("expression"), str):
            raise FormConfigurationError(f"javascript condition requires 'expression': {dict(config)!r}")
        return cls(config["expression"])


@dataclass(frozen=True)
class AndCondition(Condition):
    conditions: Tuple[Condition, ...]
    type_tag: ClassVar[str] = "and"

    @classmethod
    def from_config(cls, config):
        return cls(tuple(parse_condition(c) for c in config.get("conditions", ())))


@dataclass(frozen=True)
class OrCondition(Condition):
    conditions: Tuple[Condition, ...]
    type_tag: ClassVar[str] = "or"

    @classmethod
    def from_config(cls, config):
        return cls(tuple(parse_condition(c) for c in config.get("conditions", ())))


@dataclass(frozen=True)
class FormStateCondition(Condition):
    """Aggregate form/page status; only valid on button fields."""
    kind: FormStateKind
    type_tag: ClassVar[str] = "formState"

    @classmethod
    def from_config(cls, config):
        return cls(FormStateKind(config.get("kind")))


@dataclass(frozen=True)
class HttpCondition(Condition):
    http: HttpConditionConfig
    type_tag: ClassVar[str] = "http"

    @classmethod
    def from_config(cls, config):
        return cls(HttpConditionConfig.from_config(config.get("http") or {}))


@dataclass(frozen=True)
class CustomCondition(Condition):
    """Calls a registered function with the evaluation context."""
    function_name: str
    type_tag: ClassVar[str] = "custom"

    @classmethod
    def from_config(cls, config):
        name = config.get("functionName") or config.get("expression")
        if not name:
            raise FormConfigurationError(f"custom condition requires 'functionName': {dict(config)!r}")
        return cls(name)


def _operator(config: Mapping[str, Any]) -> ComparisonOperator:
    try:
        return ComparisonOperator(config.get("operator"))
    except ValueError:
        raise FormConfigurationError(f"Unknown comparison operator {config.get('operator')!r}") from None


def parse_condition(config: Any) -> Condition:
    """Build a Condition from its declarative form.

    Raises:
        FormConfigurationError: unknown type, or malformed config
    """
    if isinstance(config, Condition):
        return config
    if isinstance(config, bool):
        return BooleanCondition(config)
    if isinstance(config, str):
        try:
            return FormStateCondition(FormStateKind(config))
        except ValueError:
            raise FormConfigurationError(f"Unknown condition {config!r}") from None
    if not isinstance(config, Mapping):
        raise FormConfigurationError(f"Condition must be bool, str or mapping, got {type(config).__name__}")

    cls = ConditionMeta.get_registry().get(config.get("type"))
    if cls is None:
        raise FormConfigurationError(f"Unknown condition type {config.get('type')!r}")
    return cls.from_config(config)


def iter_conditions(condition: Condition):
    """Yield ``condition`` and all nested conditions, depth first."""
    yield condition
    if isinstance(condition, (AndCondition, OrCondition)):
        for child in condition.conditions:
            yield from iter_conditions(child)


def contains_form_state(condition: Condition) -> bool:
    return any(isinstance(c, FormStateCondition) for c in iter_conditions(condition))


def contains_http(condition: Condition) -> bool:
    return any(isinstance(c, HttpCondition) for c in iter_conditions(condition))
