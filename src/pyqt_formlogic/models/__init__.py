"""
Immutable configuration and runtime-state models.

Everything here is built once from declarative (dict) configuration at form
build time; runtime state objects are replaced, never mutated.
"""

from .http import UNSET, CacheScope, HttpConditionConfig
from .conditions import (
    ComparisonOperator,
    FormStateKind,
    ConditionMeta,
    Condition,
    BooleanCondition,
    FieldValueCondition,
    FormValueCondition,
    JavaScriptCondition,
    AndCondition,
    OrCondition,
    FormStateCondition,
    HttpCondition,
    CustomCondition,
    parse_condition,
    iter_conditions,
    contains_form_state,
    contains_http,
)
from .logic import ALWAYS, StateKind, LogicRule, StateRule, DerivationRule, parse_logic
from .validator import ValidatorKind, ValidatorEntry, SHORTHAND_KEYS, lower_shorthand
from .schema import SchemaApplication, SchemaDefinition
from .state import FieldRuntimeState, FormStatus, ValueExclusionConfig, FormOptions
from .field_def import (
    FieldDef,
    CONTAINER_TYPES,
    FLATTENING_TYPES,
    BUTTON_TYPES,
    DISPLAY_TYPES,
)

__all__ = [
    "UNSET",
    "CacheScope",
    "HttpConditionConfig",
    "ComparisonOperator",
    "FormStateKind",
    "ConditionMeta",
    "Condition",
    "BooleanCondition",
    "FieldValueCondition",
    "FormValueCondition",
    "JavaScriptCondition",
    "AndCondition",
    "OrCondition",
    "FormStateCondition",
    "HttpCondition",
    "CustomCondition",
    "parse_condition",
    "iter_conditions",
    "contains_form_state",
    "contains_http",
    "ALWAYS",
    "StateKind",
    "LogicRule",
    "StateRule",
    "DerivationRule",
    "parse_logic",
    "ValidatorKind",
    "ValidatorEntry",
    "SHORTHAND_KEYS",
    "lower_shorthand",
    "SchemaApplication",
    "SchemaDefinition",
    "FieldRuntimeState",
    "FormStatus",
    "ValueExclusionConfig",
    "FormOptions",
    "FieldDef",
    "CONTAINER_TYPES",
    "FLATTENING_TYPES",
    "BUTTON_TYPES",
    "DISPLAY_TYPES",
]
