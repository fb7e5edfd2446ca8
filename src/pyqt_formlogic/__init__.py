"""
pyqt-formlogic: reactive logic engine for declarative dynamic forms on PyQt6.

Form structure, validation and conditional behavior are described as data.
The engine maps them onto a live value tree and keeps field state consistent
as the form is edited: conditions drive hidden/disabled/readonly/required
flags, derivations compute values, and HTTP-backed conditions resolve
asynchronously through a debounced, cached, per-form resolver.

Architecture:
- Tier 1 (Core): Path utilities, debounce timer, background tasks, pass timing
- Tier 2 (Protocols): Global configuration, function registry, request runner
- Tier 3 (Expressions): Restricted expression language with static dependencies
- Tier 4 (Models): Conditions, logic rules, validators, field and schema definitions
- Tier 5 (Logic): Condition evaluator, logic applier, derivations, HTTP resolver
- Tier 6 (Schema): Schema registry and composer, validation
- Tier 7 (Services): Field change dispatcher, value exclusion
- Tier 8 (Forms): FormLogicManager

Headless: only PyQt6.QtCore is used, no widgets.
"""

__version__ = "0.1.0"

from pyqt_formlogic.exceptions import (
    FormLogicError,
    FormConfigurationError,
    SchemaReferenceError,
    SchemaCycleError,
    DerivationCycleError,
    ExpressionError,
    ExpressionSyntaxError,
    ExpressionEvaluationError,
)
from pyqt_formlogic.protocols import FormLogicConfig, get_form_logic_config, set_form_logic_config
from pyqt_formlogic.models import FieldDef, FieldRuntimeState, FormOptions, FormStatus, ValueExclusionConfig
from pyqt_formlogic.forms import FormLogicManager

__all__ = [
    "__version__",
    "FormLogicError",
    "FormConfigurationError",
    "SchemaReferenceError",
    "SchemaCycleError",
    "DerivationCycleError",
    "ExpressionError",
    "ExpressionSyntaxError",
    "ExpressionEvaluationError",
    "FormLogicConfig",
    "get_form_logic_config",
    "set_form_logic_config",
    "FieldDef",
    "FieldRuntimeState",
    "FormOptions",
    "FormStatus",
    "ValueExclusionConfig",
    "FormLogicManager",
]
