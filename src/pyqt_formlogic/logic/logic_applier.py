"""
Logic rule applier.

Computes a field's hidden/disabled/readonly/required flags from its state
rules. Rules of the same kind combine with OR, and the statically configured
property ORs into the same flag. Flags are always recomputed from scratch.
"""

import logging
from typing import Tuple

from pyqt_formlogic.logic.condition_evaluator import ConditionDependencyService, ConditionEvaluator
from pyqt_formlogic.logic.context import EvaluationContext
from pyqt_formlogic.models.conditions import contains_form_state
from pyqt_formlogic.models.logic import StateKind
from pyqt_formlogic.models.state import FieldRuntimeState

logger = logging.getLogger(__name__)


class LogicApplier:
    """
    Computes a field's runtime flags from its static settings and state rules.

    Examples:
        applier = LogicApplier(ConditionEvaluator(), ConditionDependencyService())
        state = applier.compute_state(field, context)
    """

    def __init__(self, evaluator: ConditionEvaluator, dependencies: ConditionDependencyService):
        self._evaluator = evaluator
        self._dependencies = dependencies

    def compute_state(self, field, context: EvaluationContext) -> FieldRuntimeState:
        definition = field.definition
        flags = {
            StateKind.HIDDEN: definition.hidden,
            StateKind.DISABLED: definition.disabled,
            StateKind.READONLY: definition.readonly,
            StateKind.REQUIRED: definition.required,
        }
        # Every rule is evaluated so HTTP bindings track the current request key
        for rule in field.state_rules:
            if self._evaluator.evaluate(rule.condition, context):
                flags[rule.kind] = True
        return FieldRuntimeState(
            hidden=flags[StateKind.HIDDEN],
            disabled=flags[StateKind.DISABLED],
            readonly=flags[StateKind.READONLY],
            required=flags[StateKind.REQUIRED],
        )

    def dependencies(self, field, context: EvaluationContext) -> Tuple[frozenset, bool]:
        """Return ``(paths, uses_form_state)`` for the field's state rules."""
        paths = set()
        uses_form_state = False
        for rule in field.state_rules:
            paths |= self._dependencies.collect(rule.condition, context)
            uses_form_state = uses_form_state or contains_form_state(rule.condition)
        return frozenset(paths), uses_form_state
